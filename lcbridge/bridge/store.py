"""
lcbridge Record Store

Owned arena of bridge records keyed by identifier, plus the aggregate
counters (custody, fee pool, HTLC escrow) and the engine nonce.

The engine receives its store at construction. Hosts that need durability
implement ``BridgeStore`` over their own substrate; ``InMemoryBridgeStore``
is the reference implementation used by tests and single-process hosts.

Reads return copies, so a caller never observes a record mid-update.
"""

import threading
from dataclasses import replace
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple, Union, runtime_checkable

from .types import BurnRecord, HTLCRecord, LockRecord

CUSTODY = "custody"
FEES = "fees"
HTLC_ESCROW = "htlc_escrow"

_BALANCE_KINDS = (CUSTODY, FEES, HTLC_ESCROW)

_Settled = Union[LockRecord, HTLCRecord]


@runtime_checkable
class BridgeStore(Protocol):
    """Persistence backend for bridge records and counters."""

    def next_nonce(self) -> int:
        """Return the current nonce and advance it atomically."""
        ...

    def put_lock(self, record: LockRecord) -> None: ...
    def get_lock(self, lock_id: bytes) -> Optional[LockRecord]: ...
    def iter_locks(self) -> Iterator[LockRecord]: ...

    def put_burn(self, record: BurnRecord) -> None: ...
    def get_burn(self, burn_id: bytes) -> Optional[BurnRecord]: ...

    def put_htlc(self, record: HTLCRecord) -> None: ...
    def get_htlc(self, htlc_id: bytes) -> Optional[HTLCRecord]: ...
    def iter_htlcs(self) -> Iterator[HTLCRecord]: ...

    def adjust_balance(self, kind: str, asset: str, delta: int) -> int:
        """Apply ``delta``; raise ValueError (unchanged) if it would go negative."""
        ...

    def get_balance(self, kind: str, asset: str) -> int: ...

    def save_settings(self, settings: Dict[str, Any]) -> None: ...
    def load_settings(self) -> Optional[Dict[str, Any]]: ...


def _check_settlement_transition(existing: _Settled, new: _Settled) -> None:
    """A stored record may only move towards settlement, never back."""
    for name in existing._immutable_fields:
        if getattr(existing, name) != getattr(new, name):
            raise ValueError(f"{type(new).__name__}.{name} is immutable")
    for flag in ("claimed", "refunded"):
        if getattr(existing, flag) and not getattr(new, flag):
            raise ValueError(f"{type(new).__name__}.{flag} cannot be reverted")


class InMemoryBridgeStore:
    """
    In-memory store. Thread-safe; NOT durable across restarts.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._nonce = 0
        self._locks: Dict[bytes, LockRecord] = {}
        self._burns: Dict[bytes, BurnRecord] = {}
        self._htlcs: Dict[bytes, HTLCRecord] = {}
        self._balances: Dict[Tuple[str, str], int] = {}
        self._settings: Optional[Dict[str, Any]] = None

    # ── Nonce ─────────────────────────────────────────────────────────

    def next_nonce(self) -> int:
        with self._lock:
            nonce = self._nonce
            self._nonce += 1
            return nonce

    # ── Locks ─────────────────────────────────────────────────────────

    def put_lock(self, record: LockRecord) -> None:
        with self._lock:
            existing = self._locks.get(record.lock_id)
            if existing is not None:
                _check_settlement_transition(existing, record)
            self._locks[record.lock_id] = replace(record)

    def get_lock(self, lock_id: bytes) -> Optional[LockRecord]:
        with self._lock:
            record = self._locks.get(lock_id)
            return replace(record) if record is not None else None

    def iter_locks(self) -> Iterator[LockRecord]:
        with self._lock:
            records = [replace(r) for r in self._locks.values()]
        return iter(records)

    # ── Burns ─────────────────────────────────────────────────────────

    def put_burn(self, record: BurnRecord) -> None:
        with self._lock:
            if record.burn_id in self._burns:
                raise ValueError("burn records are write-once")
            self._burns[record.burn_id] = record

    def get_burn(self, burn_id: bytes) -> Optional[BurnRecord]:
        with self._lock:
            return self._burns.get(burn_id)

    # ── HTLCs ─────────────────────────────────────────────────────────

    def put_htlc(self, record: HTLCRecord) -> None:
        with self._lock:
            existing = self._htlcs.get(record.htlc_id)
            if existing is not None:
                _check_settlement_transition(existing, record)
            self._htlcs[record.htlc_id] = replace(record)

    def get_htlc(self, htlc_id: bytes) -> Optional[HTLCRecord]:
        with self._lock:
            record = self._htlcs.get(htlc_id)
            return replace(record) if record is not None else None

    def iter_htlcs(self) -> Iterator[HTLCRecord]:
        with self._lock:
            records = [replace(r) for r in self._htlcs.values()]
        return iter(records)

    # ── Aggregate counters ────────────────────────────────────────────

    def adjust_balance(self, kind: str, asset: str, delta: int) -> int:
        if kind not in _BALANCE_KINDS:
            raise KeyError(f"unknown balance kind: {kind}")
        with self._lock:
            current = self._balances.get((kind, asset), 0)
            updated = current + delta
            if updated < 0:
                raise ValueError(
                    f"{kind} balance of {asset} would go negative ({current} {delta:+d})"
                )
            self._balances[(kind, asset)] = updated
            return updated

    def get_balance(self, kind: str, asset: str) -> int:
        with self._lock:
            return self._balances.get((kind, asset), 0)

    # ── Settings ──────────────────────────────────────────────────────

    def save_settings(self, settings: Dict[str, Any]) -> None:
        with self._lock:
            self._settings = dict(settings)

    def load_settings(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            return dict(self._settings) if self._settings else None

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {
                "locks": len(self._locks),
                "burns": len(self._burns),
                "htlcs": len(self._htlcs),
            }

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of every record, for diagnostics and archival."""
        with self._lock:
            return {
                "nonce": self._nonce,
                "locks": [r.to_dict() for r in self._locks.values()],
                "burns": [r.to_dict() for r in self._burns.values()],
                "htlcs": [r.to_dict() for r in self._htlcs.values()],
                "balances": {f"{k}:{a}": v for (k, a), v in self._balances.items()},
            }


def pending_lock_total(store: BridgeStore, asset: str) -> int:
    """Sum of lock amounts for ``asset`` that are neither claimed nor refunded."""
    return sum(r.amount for r in store.iter_locks() if r.asset == asset and not r.is_settled)


def pending_locks(store: BridgeStore, target_chain: Optional[int] = None) -> List[LockRecord]:
    return [
        r for r in store.iter_locks()
        if not r.is_settled and (target_chain is None or r.target_chain == target_chain)
    ]
