"""
lcbridge Crypto Hashing Module

Provides the hash functions used by the bridge:
- keccak256: identifiers, proof hashes and Merkle nodes (EVM compatible)
- sha256: Bitcoin-compatible HTLC hash locks
"""

import hashlib
from typing import Union

from Crypto.Hash import keccak as _keccak

from ..constants import HASH_SIZE


def _as_bytes(data: Union[bytes, str]) -> bytes:
    if isinstance(data, str):
        if data.startswith('0x') or data.startswith('0X'):
            return bytes.fromhex(data[2:])
        return bytes.fromhex(data)
    return bytes(data)


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum standard).

    Args:
        data: Input bytes or hex string

    Returns:
        32-byte hash
    """
    k = _keccak.new(digest_bits=256)
    k.update(_as_bytes(data))
    return k.digest()


def sha256(data: Union[bytes, str]) -> bytes:
    """
    Compute SHA-256 hash.

    Args:
        data: Input bytes or hex string

    Returns:
        32-byte hash
    """
    return hashlib.sha256(_as_bytes(data)).digest()


def keccak256_hex(data: Union[bytes, str]) -> str:
    """Keccak-256 as a 0x-prefixed hex string."""
    return '0x' + keccak256(data).hex()


def to_bytes32(value: Union[bytes, str]) -> bytes:
    """
    Normalize a 32-byte value given as bytes or (0x-prefixed) hex.

    Raises:
        ValueError: if the value is not exactly 32 bytes
    """
    raw = _as_bytes(value)
    if len(raw) != HASH_SIZE:
        raise ValueError(f"expected {HASH_SIZE} bytes, got {len(raw)}")
    return raw


def to_hex(value: bytes) -> str:
    return '0x' + value.hex()


def encode_uint(value: int, size: int = 32) -> bytes:
    """Big-endian fixed-width encoding, as used for hashed integer fields."""
    return int(value).to_bytes(size, 'big')


def encode_str(value: str) -> bytes:
    """Length-prefixed UTF-8 so adjacent string fields cannot collide."""
    raw = value.encode('utf-8')
    return len(raw).to_bytes(4, 'big') + raw
