"""
lcbridge Light-Client Interface

The engine never fetches foreign chain data. A light client per source chain
answers two questions:

  - is this receipt root attested at (block_number, block_hash)?
  - does this receipt-inclusion proof hold for the given BridgeProof?

``TrustedRootLightClient`` is the in-process reference implementation: it
records headers pushed to it by an attestation feed (SPV relayer, sync
committee, ...) and treats exactly those roots as attested. Receipt proofs
are checked by a pluggable verifier; with none configured they are refused.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from ..crypto.hashing import to_hex
from ..logger import get_logger
from .types import BridgeProof

logger = get_logger(__name__)


@runtime_checkable
class LightClient(Protocol):
    """Capability the ChainRegistry stores per supported chain."""

    def is_root_attested(self, root: bytes, block_number: int, block_hash: bytes) -> bool:
        """True iff ``root`` is the attested receipt root of that block."""
        ...

    def verify_receipt_proof(self, proof: BridgeProof) -> bool:
        """True iff the proof's receipt-inclusion evidence holds."""
        ...


def verify_transfer_commitment(proof: BridgeProof) -> bool:
    """
    Receipt verifier for sources whose transaction leaf is the transfer
    commitment.

    Once the Merkle path ties ``tx_hash`` to an attested root, this ties the
    proof's lock id, amount, recipient and asset to ``tx_hash``.
    """
    return proof.tx_hash == proof.transfer_commitment


@dataclass(frozen=True)
class AttestedHeader:
    """
    A foreign block header the light client has accepted.

    Attributes:
        block_number: Height on the foreign chain
        block_hash: Hash of the header
        receipt_root: Receipts (or transactions) root committed by the header
    """
    block_number: int
    block_hash: bytes
    receipt_root: bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "block_number": self.block_number,
            "block_hash": to_hex(self.block_hash),
            "receipt_root": to_hex(self.receipt_root),
        }


class TrustedRootLightClient:
    """
    Light client backed by headers its attestation feed has accepted.

    Headers may arrive in any order (proofs for old locks stay verifiable),
    but a block number is attested once: a conflicting header for an
    already-attested height is rejected.

    Args:
        chain_id: Foreign chain this client follows
        receipt_verifier: Callable(proof) → bool checking the receipt-inclusion
            proof, e.g. verify_transfer_commitment. Without one every
            receipt proof is rejected.
    """

    def __init__(
        self,
        chain_id: int,
        receipt_verifier: Optional[Callable[[BridgeProof], bool]] = None,
    ):
        self.chain_id = chain_id
        self._receipt_verifier = receipt_verifier
        self._headers: Dict[int, AttestedHeader] = {}
        self._lock = threading.Lock()

    def attest_header(self, block_number: int, block_hash: bytes, receipt_root: bytes) -> bool:
        """
        Accept a header from the attestation feed.

        Returns:
            True if recorded (or already identical), False on conflict
        """
        header = AttestedHeader(block_number, bytes(block_hash), bytes(receipt_root))
        with self._lock:
            current = self._headers.get(block_number)
            if current is not None:
                if current != header:
                    logger.warning(
                        f"Conflicting header rejected: chain={self.chain_id} "
                        f"block {block_number} {to_hex(block_hash)}"
                    )
                    return False
                return True
            self._headers[block_number] = header
        logger.debug(f"Header attested: chain={self.chain_id} block {block_number}")
        return True

    def is_root_attested(self, root: bytes, block_number: int, block_hash: bytes) -> bool:
        with self._lock:
            header = self._headers.get(block_number)
        if header is None:
            return False
        return header.block_hash == bytes(block_hash) and header.receipt_root == bytes(root)

    def verify_receipt_proof(self, proof: BridgeProof) -> bool:
        if self._receipt_verifier is None:
            logger.warning(f"Receipt proof rejected: chain={self.chain_id} has no receipt verifier")
            return False
        return bool(self._receipt_verifier(proof))

    def latest_block(self) -> Optional[int]:
        with self._lock:
            return max(self._headers) if self._headers else None

    def get_header(self, block_number: int) -> Optional[AttestedHeader]:
        with self._lock:
            return self._headers.get(block_number)

    def get_history(self, limit: int = 100) -> List[AttestedHeader]:
        """Most recent attested headers by block number."""
        with self._lock:
            numbers = sorted(self._headers)[-limit:]
            return [self._headers[n] for n in numbers]

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "chain_id": self.chain_id,
                "headers": len(self._headers),
                "latest_block": max(self._headers) if self._headers else None,
            }
