"""
lcbridge Replay Guard

Tracks every identifier whose effect must happen at most once:

  - proof hashes consumed by mint / unlock
  - foreign lock keys ``(source_chain, lock_id)`` consumed by mint
  - source transactions ``(source_chain, tx_hash)`` consumed by mint / unlock
  - in-flight settlements of local locks and HTLCs
  - hash locks whose preimage has been revealed
  - authorization hashes (payment-ledger collaborator)

``try_consume_*`` is an atomic check-and-set, so two callers racing on the
same identifier cannot both observe it as fresh. ``release_*`` exists only
to roll back a consumption whose enclosing operation aborted before any
value moved.

Consumed history is retained forever; pruning would reopen the replay
window for every pruned identifier.
"""

import threading
from typing import Any, Dict, Hashable, Set

from ..crypto.hashing import to_hex
from ..logger import get_logger

logger = get_logger(__name__)


PROOFS = "proof"
LOCKS = "lock"
SOURCE_TXS = "source_tx"
SETTLEMENTS = "settlement"
HASH_LOCKS = "hash_lock"
AUTHORIZATIONS = "authorization"

_NAMESPACES = (PROOFS, LOCKS, SOURCE_TXS, SETTLEMENTS, HASH_LOCKS, AUTHORIZATIONS)


class ReplayGuard:
    """Thread-safe consumed-identifier sets, one per namespace."""

    def __init__(self):
        self._lock = threading.Lock()
        self._consumed: Dict[str, Set[Hashable]] = {ns: set() for ns in _NAMESPACES}

    # ── Generic primitives ────────────────────────────────────────────

    def try_consume(self, namespace: str, key: Hashable) -> bool:
        """Mark ``key`` consumed. Returns False if it already was."""
        with self._lock:
            consumed = self._consumed[namespace]
            if key in consumed:
                return False
            consumed.add(key)
            return True

    def release(self, namespace: str, key: Hashable) -> None:
        """Undo a consumption whose operation aborted with no value moved."""
        with self._lock:
            self._consumed[namespace].discard(key)
        logger.debug(f"Replay guard released {namespace} key")

    def is_consumed(self, namespace: str, key: Hashable) -> bool:
        with self._lock:
            return key in self._consumed[namespace]

    # ── Named wrappers ────────────────────────────────────────────────

    def try_consume_proof(self, proof_hash: bytes) -> bool:
        return self.try_consume(PROOFS, proof_hash)

    def is_proof_used(self, proof_hash: bytes) -> bool:
        return self.is_consumed(PROOFS, proof_hash)

    def try_consume_lock(self, source_chain: int, lock_id: bytes) -> bool:
        return self.try_consume(LOCKS, (source_chain, lock_id))

    def is_lock_consumed(self, source_chain: int, lock_id: bytes) -> bool:
        return self.is_consumed(LOCKS, (source_chain, lock_id))

    def try_consume_source_tx(self, source_chain: int, tx_hash: bytes) -> bool:
        return self.try_consume(SOURCE_TXS, (source_chain, tx_hash))

    def is_source_tx_consumed(self, source_chain: int, tx_hash: bytes) -> bool:
        return self.is_consumed(SOURCE_TXS, (source_chain, tx_hash))

    def try_begin_settlement(self, kind: str, record_id: bytes) -> bool:
        return self.try_consume(SETTLEMENTS, (kind, record_id))

    def mark_hash_lock_revealed(self, hash_lock: bytes) -> None:
        self.try_consume(HASH_LOCKS, hash_lock)

    def is_hash_lock_revealed(self, hash_lock: bytes) -> bool:
        return self.is_consumed(HASH_LOCKS, hash_lock)

    def consume_authorization(self, auth_hash: bytes) -> bool:
        """
        Consume an authorization hash on behalf of the payment ledger.

        Returns:
            True the first time, False on every replay
        """
        fresh = self.try_consume(AUTHORIZATIONS, auth_hash)
        if not fresh:
            logger.warning(f"Authorization replay rejected: {to_hex(auth_hash)}")
        return fresh

    def is_authorization_used(self, auth_hash: bytes) -> bool:
        return self.is_consumed(AUTHORIZATIONS, auth_hash)

    # ── Introspection ─────────────────────────────────────────────────

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return {ns: len(keys) for ns, keys in self._consumed.items()}

    def snapshot(self) -> Dict[str, Any]:
        """Consumed identifiers, hex-encoded, for archival."""
        with self._lock:
            return {
                "proofs": sorted(to_hex(h) for h in self._consumed[PROOFS]),
                "locks": sorted(
                    [chain, to_hex(lock_id)] for chain, lock_id in self._consumed[LOCKS]
                ),
                "source_txs": sorted(
                    [chain, to_hex(tx_hash)] for chain, tx_hash in self._consumed[SOURCE_TXS]
                ),
                "hash_locks": sorted(to_hex(h) for h in self._consumed[HASH_LOCKS]),
                "authorizations": sorted(to_hex(h) for h in self._consumed[AUTHORIZATIONS]),
            }
