"""
lcbridge Crypto

Hash primitives shared by the bridge engine.
"""

from .hashing import (
    encode_str,
    encode_uint,
    keccak256,
    keccak256_hex,
    sha256,
    to_bytes32,
    to_hex,
)

__all__ = [
    "encode_str",
    "encode_uint",
    "keccak256",
    "keccak256_hex",
    "sha256",
    "to_bytes32",
    "to_hex",
]
