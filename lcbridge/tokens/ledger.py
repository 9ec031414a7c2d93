"""
lcbridge Asset Ledger

The engine moves value only through the ``AssetLedger`` interface:

  - balance_of(address) → int
  - transfer(sender, recipient, amount) → bool
  - transfer_from(spender, owner, recipient, amount) → bool

``BridgeToken`` is the in-memory, ERC-20–style reference ledger (balances,
allowances, transfer events, freeze switch). ``AssetRegistry`` resolves the
asset handles used in bridge records to their ledgers.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class TokenError(Exception):
    """Base exception for token ledger operations."""


class InsufficientBalanceError(TokenError):
    """Raised when sender balance is too low."""


class InsufficientAllowanceError(TokenError):
    """Raised when spender allowance is too low."""


class TokenFrozenError(TokenError):
    """Raised when the token is frozen."""


# ══════════════════════════════════════════════════════════════════════
#  LEDGER INTERFACE
# ══════════════════════════════════════════════════════════════════════

@runtime_checkable
class AssetLedger(Protocol):
    """Fungible-asset capability consumed by the bridge engine."""

    def balance_of(self, address: str) -> int:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        ...

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        ...


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferEvent:
    """Emitted on every successful transfer."""
    token_symbol: str
    sender: str
    recipient: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "token": self.token_symbol,
            "from": self.sender,
            "to": self.recipient,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ApprovalEvent:
    """Emitted on every successful approve."""
    token_symbol: str
    owner: str
    spender: str
    amount: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Approval",
            "token": self.token_symbol,
            "owner": self.owner,
            "spender": self.spender,
            "amount": self.amount,
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  BRIDGE TOKEN
# ══════════════════════════════════════════════════════════════════════

class BridgeToken:
    """
    In-memory fungible token.

    Mirrors ERC-20 semantics:
        - balance_of(address) → int
        - transfer(sender, recipient, amount)
        - approve(owner, spender, amount)
        - transfer_from(spender, owner, recipient, amount)
        - total_supply → int

    Failed preconditions raise TokenError subclasses; successful transfers
    return True.
    """

    def __init__(
        self,
        name: str,
        symbol: str,
        decimals: int = 18,
        total_supply: int = 0,
        deployer: str = "",
    ):
        if not name:
            raise TokenError("Token name cannot be empty")
        if not symbol:
            raise TokenError("Token symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise TokenError(f"Decimals must be 0-18, got {decimals}")
        if total_supply < 0:
            raise TokenError("Total supply cannot be negative")

        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self._total_supply = total_supply
        self.deployer = deployer
        self._frozen = False

        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}  # (owner, spender)
        self._events: List[Any] = []
        self._lock = threading.RLock()

        if total_supply > 0 and deployer:
            self._balances[deployer] = total_supply

        logger.info(f"Token deployed: {symbol} ({name}), supply={total_supply}")

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    # ── State guards ──────────────────────────────────────────────────

    def _require_not_frozen(self):
        if self._frozen:
            raise TokenFrozenError(f"Token {self.symbol} is frozen")

    @staticmethod
    def _require_positive(amount: int, what: str):
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise TokenError(f"{what} amount must be a positive integer")

    # ── Core operations ───────────────────────────────────────────────

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        """Debit/credit hook; subclasses model non-standard asset semantics here."""
        self._balances[sender] = self.balance_of(sender) - amount
        self._balances[recipient] = self.balance_of(recipient) + amount

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Transfer ``amount`` from sender to recipient."""
        self._require_positive(amount, "Transfer")
        with self._lock:
            self._require_not_frozen()
            bal = self.balance_of(sender)
            if bal < amount:
                raise InsufficientBalanceError(
                    f"{sender} balance {bal} < transfer amount {amount}"
                )
            self._move(sender, recipient, amount)
            self._events.append(TransferEvent(self.symbol, sender, recipient, amount))
        logger.debug(f"Transfer: {sender} → {recipient} {amount} {self.symbol}")
        return True

    def approve(self, owner: str, spender: str, amount: int) -> ApprovalEvent:
        """Set spender allowance."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise TokenError("Allowance amount must be a non-negative integer")
        with self._lock:
            self._require_not_frozen()
            self._allowances[(owner, spender)] = amount
            event = ApprovalEvent(self.symbol, owner, spender, amount)
            self._events.append(event)
        logger.debug(f"Approve: {owner} → {spender} allowance={amount} {self.symbol}")
        return event

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        """Transfer on behalf of *owner* using spender's allowance."""
        self._require_positive(amount, "Transfer")
        with self._lock:
            self._require_not_frozen()
            bal = self.balance_of(owner)
            if bal < amount:
                raise InsufficientBalanceError(
                    f"{owner} balance {bal} < transfer amount {amount}"
                )
            allow = self.allowance(owner, spender)
            if allow < amount:
                raise InsufficientAllowanceError(
                    f"Allowance {allow} < transfer amount {amount}"
                )
            self._allowances[(owner, spender)] = allow - amount
            self._move(owner, recipient, amount)
            self._events.append(TransferEvent(self.symbol, owner, recipient, amount))
        logger.debug(
            f"transferFrom: spender={spender} {owner} → {recipient} {amount} {self.symbol}"
        )
        return True

    # ── Supply management ─────────────────────────────────────────────

    def mint(self, recipient: str, amount: int) -> None:
        """Create new supply (deployment, faucets, liquidity provisioning)."""
        self._require_positive(amount, "Mint")
        with self._lock:
            self._require_not_frozen()
            self._total_supply += amount
            self._balances[recipient] = self.balance_of(recipient) + amount
        logger.info(f"Mint: {amount} {self.symbol} → {recipient}")

    # ── Freeze / unfreeze ─────────────────────────────────────────────

    def freeze(self):
        self._frozen = True
        logger.warning(f"Token {self.symbol} FROZEN")

    def unfreeze(self):
        self._frozen = False
        logger.info(f"Token {self.symbol} unfrozen")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "totalSupply": self._total_supply,
            "deployer": self.deployer,
            "frozen": self._frozen,
            "holders": len([b for b in self._balances.values() if b > 0]),
        }

    def __repr__(self) -> str:
        return f"<BridgeToken {self.symbol} supply={self._total_supply}>"


# ══════════════════════════════════════════════════════════════════════
#  ASSET REGISTRY
# ══════════════════════════════════════════════════════════════════════

class AssetRegistry:
    """
    Resolves asset handles to ledgers.

    Any object satisfying ``AssetLedger`` may be registered, not only
    ``BridgeToken``.
    """

    def __init__(self, max_assets: int = 10_000):
        self._ledgers: Dict[str, AssetLedger] = {}
        self._max_assets = max_assets

    def register(self, handle: str, ledger: AssetLedger) -> AssetLedger:
        """
        Register a ledger under ``handle``.

        Raises TokenError if the handle already exists or the registry is full.
        """
        if handle in self._ledgers:
            raise TokenError(f"Asset {handle} already registered")
        if len(self._ledgers) >= self._max_assets:
            raise TokenError("Asset registry is full")
        if not isinstance(ledger, AssetLedger):
            raise TokenError(f"{ledger!r} does not implement the asset ledger interface")

        self._ledgers[handle] = ledger
        logger.info(f"Asset registered: {handle}")
        return ledger

    def deploy(self, token: BridgeToken) -> BridgeToken:
        """Register a BridgeToken under its own symbol."""
        self.register(token.symbol, token)
        return token

    def get(self, handle: str) -> Optional[AssetLedger]:
        return self._ledgers.get(handle)

    def exists(self, handle: str) -> bool:
        return handle in self._ledgers

    def list_assets(self) -> List[str]:
        return list(self._ledgers.keys())

    def remove(self, handle: str) -> bool:
        if handle in self._ledgers:
            del self._ledgers[handle]
            logger.warning(f"Asset removed from registry: {handle}")
            return True
        return False

    @property
    def count(self) -> int:
        return len(self._ledgers)

    def __repr__(self) -> str:
        return f"<AssetRegistry assets={len(self._ledgers)}>"
