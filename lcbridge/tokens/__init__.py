"""
lcbridge Asset Ledgers

Provides:
  - AssetLedger   : interface the bridge engine moves value through
  - BridgeToken   : in-memory ERC-20–style reference ledger
  - AssetRegistry : asset handle → ledger resolution
"""

from .ledger import (
    ApprovalEvent,
    AssetLedger,
    AssetRegistry,
    BridgeToken,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    TokenError,
    TokenFrozenError,
    TransferEvent,
)

__all__ = [
    "ApprovalEvent",
    "AssetLedger",
    "AssetRegistry",
    "BridgeToken",
    "InsufficientAllowanceError",
    "InsufficientBalanceError",
    "TokenError",
    "TokenFrozenError",
    "TransferEvent",
]
