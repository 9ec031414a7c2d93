"""
lcbridge Merkle Proof Verification

Sorted-pair Merkle trees: every parent is ``keccak256(min(a, b) || max(a, b))``
with children ordered by their big-endian numeric value, so a proof is just
the list of siblings from leaf to root and carries no left/right flags.

Rules:
  1. Leaves and nodes are 32-byte values
  2. Parent hashing: keccak256 over the numerically ordered pair
  3. An odd node at any level is promoted unchanged
  4. Single leaf: root = leaf
"""

from typing import List, Sequence

from ..constants import HASH_SIZE
from ..crypto.hashing import keccak256


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Canonical two-input node hash; argument order does not matter."""
    if int.from_bytes(a, 'big') <= int.from_bytes(b, 'big'):
        return keccak256(a + b)
    return keccak256(b + a)


def _is_node(value) -> bool:
    return isinstance(value, (bytes, bytearray)) and len(value) == HASH_SIZE


def compute_merkle_root(leaf: bytes, sibling_path: Sequence[bytes]) -> bytes:
    """Fold ``sibling_path`` into ``leaf`` and return the resulting root."""
    current = bytes(leaf)
    for sibling in sibling_path:
        current = hash_pair(current, bytes(sibling))
    return current


def verify_merkle_proof(leaf: bytes, sibling_path: Sequence[bytes], root: bytes) -> bool:
    """
    Check that ``leaf`` is committed to by ``root`` through ``sibling_path``.

    Pure and side-effect free. Malformed input (any value that is not
    32 bytes) verifies as False rather than raising.

    Args:
        leaf: Claimed leaf (e.g. a transaction hash)
        sibling_path: Sibling hashes from the leaf level upwards
        root: Root the caller trusts (e.g. a light-client attested receipt root)

    Returns:
        True iff folding the path over the leaf reproduces ``root``
    """
    if not _is_node(leaf) or not _is_node(root):
        return False
    if any(not _is_node(s) for s in sibling_path):
        return False
    return compute_merkle_root(leaf, sibling_path) == bytes(root)


def build_merkle_tree(leaves: Sequence[bytes]) -> List[List[bytes]]:
    """
    Build every level of a sorted-pair tree, leaves first, root last.

    Raises:
        ValueError: on an empty leaf list or a malformed leaf
    """
    if not leaves:
        raise ValueError("cannot build a Merkle tree without leaves")
    for leaf in leaves:
        if not _is_node(leaf):
            raise ValueError(f"leaves must be {HASH_SIZE}-byte values")

    levels = [[bytes(leaf) for leaf in leaves]]
    while len(levels[-1]) > 1:
        level = levels[-1]
        parents = [hash_pair(level[i], level[i + 1]) for i in range(0, len(level) - 1, 2)]
        if len(level) % 2:
            parents.append(level[-1])
        levels.append(parents)
    return levels


def build_merkle_root(leaves: Sequence[bytes]) -> bytes:
    return build_merkle_tree(leaves)[-1][0]


def build_merkle_proof(leaves: Sequence[bytes], index: int) -> List[bytes]:
    """
    Sibling path for ``leaves[index]``, suitable for verify_merkle_proof.

    Levels where the node was promoted without a sibling contribute nothing.
    """
    levels = build_merkle_tree(leaves)
    if not 0 <= index < len(leaves):
        raise IndexError(f"leaf index {index} out of range")

    path = []
    for level in levels[:-1]:
        sibling_index = index ^ 1
        if sibling_index < len(level):
            path.append(level[sibling_index])
        index //= 2
    return path
