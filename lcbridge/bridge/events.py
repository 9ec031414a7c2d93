"""
lcbridge Bridge Events

Audit surface consumed by off-chain indexers. Every state transition emits
exactly one event carrying the record's identifying fields and the actor
that caused it.
"""

import threading
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Optional, Type

from ..crypto.hashing import to_hex
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BridgeEvent:
    """Base class; subclasses are frozen dataclasses."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"event": self.name}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = to_hex(value) if isinstance(value, bytes) else value
        return out


# ── Lock / mint / burn / unlock ───────────────────────────────────────

@dataclass(frozen=True)
class Locked(BridgeEvent):
    actor: str
    lock_id: bytes
    amount: int
    asset: str
    target_chain: int
    recipient: str
    timestamp: int


@dataclass(frozen=True)
class Minted(BridgeEvent):
    actor: str
    proof_hash: bytes
    source_chain: int
    lock_id: bytes
    recipient: str
    asset: str
    amount: int
    fee: int
    timestamp: int


@dataclass(frozen=True)
class Burned(BridgeEvent):
    actor: str
    burn_id: bytes
    amount: int
    asset: str
    target_chain: int
    recipient: str
    timestamp: int


@dataclass(frozen=True)
class Unlocked(BridgeEvent):
    actor: str
    proof_hash: bytes
    source_chain: int
    lock_id: bytes
    recipient: str
    asset: str
    amount: int
    fee: int
    timestamp: int


@dataclass(frozen=True)
class LockRefunded(BridgeEvent):
    actor: str
    lock_id: bytes
    sender: str
    asset: str
    amount: int
    timestamp: int


# ── HTLC ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class HTLCCreated(BridgeEvent):
    actor: str
    htlc_id: bytes
    recipient: str
    amount: int
    asset: str
    hash_lock: bytes
    time_lock: int
    timestamp: int


@dataclass(frozen=True)
class HTLCClaimed(BridgeEvent):
    actor: str
    htlc_id: bytes
    recipient: str
    amount: int
    asset: str
    preimage: bytes
    timestamp: int


@dataclass(frozen=True)
class HTLCRefunded(BridgeEvent):
    actor: str
    htlc_id: bytes
    sender: str
    amount: int
    asset: str
    timestamp: int


# ── Control plane ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class ChainAdded(BridgeEvent):
    actor: str
    chain_id: int
    timestamp: int


@dataclass(frozen=True)
class ChainRemoved(BridgeEvent):
    actor: str
    chain_id: int
    timestamp: int


@dataclass(frozen=True)
class Paused(BridgeEvent):
    actor: str
    timestamp: int


@dataclass(frozen=True)
class Unpaused(BridgeEvent):
    actor: str
    timestamp: int


@dataclass(frozen=True)
class FeeUpdated(BridgeEvent):
    actor: str
    old_bps: int
    new_bps: int
    timestamp: int


@dataclass(frozen=True)
class FeesWithdrawn(BridgeEvent):
    actor: str
    asset: str
    amount: int
    to: str
    timestamp: int


# ══════════════════════════════════════════════════════════════════════
#  EVENT LOG
# ══════════════════════════════════════════════════════════════════════

class EventLog:
    """
    Ordered, append-only event history with subscriber fan-out.

    Subscribers run synchronously in emission order. A subscriber that
    raises is logged and skipped; the state transition that emitted the
    event has already committed.
    """

    def __init__(self):
        self._events: List[BridgeEvent] = []
        self._subscribers: List[Callable[[BridgeEvent], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[BridgeEvent], None]) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[BridgeEvent], None]) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def emit(self, event: BridgeEvent) -> BridgeEvent:
        with self._lock:
            self._events.append(event)
            subscribers = list(self._subscribers)
        logger.info(f"{event.name} by {event.actor!r}")
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(f"Event subscriber failed on {event.name}")
        return event

    def all(self, event_type: Optional[Type[BridgeEvent]] = None) -> List[BridgeEvent]:
        with self._lock:
            events = list(self._events)
        if event_type is None:
            return events
        return [e for e in events if isinstance(e, event_type)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
