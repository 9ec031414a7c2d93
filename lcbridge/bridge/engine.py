"""
lcbridge Bridge Engine

Orchestrates the two-phase transfer protocol:

  lock        → mint      value escrowed here, released on the target chain
  burn        → unlock    intent recorded on one chain, custody released here
  create_htlc → claim | refund

Release paths (mint, unlock, claim, refund) are exactly-once: the replay
guard consumption for a key is written before any value moves, and is rolled
back only if the asset ledger refuses the transfer. Every state transition on
a record runs under that record's keyed lock, and every movement of an
asset in or out of custody runs under that asset's custody lock together
with the counter it changes.

Pause gates lock, mint, burn, unlock and create_htlc. Claim and refund of
existing HTLCs are never paused, so committed funds cannot be frozen.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional

from ..config.loader import BridgeConfig
from ..constants import (
    BPS_DENOMINATOR,
    DEFAULT_BRIDGE_FEE_BPS,
    DEFAULT_CUSTODY_ADDRESS,
    DEFAULT_HASHLOCK_ALGORITHM,
    DEFAULT_LOCAL_CHAIN_ID,
    HASH_SIZE,
    HASHLOCK_ALGORITHMS,
    MAX_BRIDGE_FEE_BPS,
)
from ..crypto.hashing import keccak256, sha256, to_hex
from ..exceptions import (
    BridgeException,
    ChainNotSupported,
    ConfigurationError,
    ExternalLedgerError,
    InvalidProofError,
    RecordNotFound,
    ReplayError,
    StateError,
    UnsupportedAsset,
    ValidationError,
)
from ..logger import get_logger, set_log_level
from ..tokens.ledger import AssetLedger, AssetRegistry
from .events import (
    Burned,
    EventLog,
    FeesWithdrawn,
    FeeUpdated,
    HTLCClaimed,
    HTLCCreated,
    HTLCRefunded,
    Locked,
    LockRefunded,
    Minted,
    Paused,
    Unlocked,
    Unpaused,
)
from .light_client import LightClient
from .locks import KeyedLocks
from .proofs import verify_merkle_proof
from .registry import AdminSet, Authorizer, ChainEntry, ChainRegistry, require_admin
from .replay import LOCKS, PROOFS, SETTLEMENTS, SOURCE_TXS, ReplayGuard
from .store import CUSTODY, FEES, HTLC_ESCROW, BridgeStore, InMemoryBridgeStore, pending_locks
from .types import (
    BridgeProof,
    BurnRecord,
    HTLCRecord,
    LockRecord,
    compute_burn_id,
    compute_htlc_id,
    compute_lock_id,
)

logger = get_logger(__name__)


def compute_fee(amount: int, fee_bps: int) -> int:
    """Bridge fee, rounded down."""
    return amount * fee_bps // BPS_DENOMINATOR


def hashlock_digest(preimage: bytes, algorithm: str = DEFAULT_HASHLOCK_ALGORITHM) -> bytes:
    """Digest an HTLC preimage must hash to."""
    if algorithm == "keccak256":
        return keccak256(preimage)
    if algorithm == "sha256":
        return sha256(preimage)
    raise ConfigurationError(f"Unknown hashlock algorithm: {algorithm}")


def _is_hash(value: Any) -> bool:
    return isinstance(value, bytes) and len(value) == HASH_SIZE


class BridgeEngine:
    """
    Trustless bridge core: lock/mint/burn/unlock and HTLC swaps.

    Args:
        assets: Asset handle → ledger resolution
        authorizer: Admin capability check
        local_chain_id: Chain id of the ledger this engine runs on; release
            proofs must target it
        custody_address: Ledger account holding escrowed value
        fee_bps: Initial bridge fee in basis points
        store: Record arena (defaults to InMemoryBridgeStore)
        replay_guard: Consumed-identifier sets
        registry: Chain registry (built from authorizer if omitted)
        events: Event log shared with the registry
        clock: Callable returning unix seconds
        block_number: Callable returning the local block height
        hashlock_algorithm: "keccak256" or "sha256"
    """

    def __init__(
        self,
        assets: AssetRegistry,
        authorizer: Authorizer,
        *,
        local_chain_id: int = DEFAULT_LOCAL_CHAIN_ID,
        custody_address: str = DEFAULT_CUSTODY_ADDRESS,
        fee_bps: int = DEFAULT_BRIDGE_FEE_BPS,
        store: Optional[BridgeStore] = None,
        replay_guard: Optional[ReplayGuard] = None,
        registry: Optional[ChainRegistry] = None,
        events: Optional[EventLog] = None,
        clock: Optional[Callable[[], int]] = None,
        block_number: Optional[Callable[[], int]] = None,
        hashlock_algorithm: str = DEFAULT_HASHLOCK_ALGORITHM,
    ):
        if not 0 <= fee_bps <= MAX_BRIDGE_FEE_BPS:
            raise ConfigurationError(f"fee_bps must be within 0..{MAX_BRIDGE_FEE_BPS}")
        if hashlock_algorithm not in HASHLOCK_ALGORITHMS:
            raise ConfigurationError(f"Unknown hashlock algorithm: {hashlock_algorithm}")

        self.assets = assets
        self.local_chain_id = local_chain_id
        self.custody_address = custody_address
        self.hashlock_algorithm = hashlock_algorithm

        self._authorizer = authorizer
        self._clock = clock or (lambda: int(time.time()))
        self._block_number = block_number or (lambda: 0)
        self._store: BridgeStore = store if store is not None else InMemoryBridgeStore()
        self._replay = replay_guard if replay_guard is not None else ReplayGuard()
        self._events = events if events is not None else EventLog()
        self._registry = registry if registry is not None else ChainRegistry(
            authorizer, events=self._events, clock=self._clock
        )
        self._keyed = KeyedLocks()
        # Guards record/counter pairs so aggregate reads are never torn
        self._writer = threading.RLock()

        self._paused = False
        self._fee_bps = fee_bps
        self._load_settings()

    @classmethod
    def from_config(
        cls,
        config: BridgeConfig,
        assets: AssetRegistry,
        **kwargs: Any,
    ) -> "BridgeEngine":
        """Build an engine from a validated BridgeConfig."""
        config.validate()
        set_log_level(config.logging.level)
        b = config.bridge
        kwargs.setdefault("authorizer", AdminSet(b.admins))
        return cls(
            assets,
            local_chain_id=b.local_chain_id,
            custody_address=b.custody_address,
            fee_bps=b.fee_bps,
            hashlock_algorithm=b.hashlock_algorithm,
            **kwargs,
        )

    # ── Properties ──────────────────────────────────────────────────

    @property
    def registry(self) -> ChainRegistry:
        return self._registry

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def replay_guard(self) -> ReplayGuard:
        return self._replay

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def bridge_fee_bps(self) -> int:
        return self._fee_bps

    # ── Internal guards ─────────────────────────────────────────────

    def _now(self) -> int:
        return int(self._clock())

    def _require_not_paused(self, operation: str) -> None:
        if self._paused:
            logger.warning(f"{operation} rejected: bridge is paused")
            raise StateError(f"Bridge is paused; {operation} unavailable")

    @staticmethod
    def _require_positive(amount: Any) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError(f"Amount must be an integer, got {type(amount).__name__}")
        if amount <= 0:
            raise ValidationError("Amount must be positive")

    @staticmethod
    def _require_identifier(value: Any, what: str) -> None:
        if not isinstance(value, str) or not value:
            raise ValidationError(f"{what} must be a non-empty string")

    def _ledger(self, asset: str) -> AssetLedger:
        ledger = self.assets.get(asset)
        if ledger is None:
            raise UnsupportedAsset(f"Asset {asset!r} is not registered")
        return ledger

    # ── Asset ledger calls ──────────────────────────────────────────

    def _call_ledger(self, asset: str, operation: str, fn: Callable[..., Any], *args: Any) -> None:
        """Run a ledger transfer; any refusal becomes ExternalLedgerError."""
        try:
            ok = fn(*args)
        except BridgeException:
            raise
        except Exception as exc:
            logger.error(f"Ledger {asset!r} {operation} failed: {exc}")
            raise ExternalLedgerError(f"{operation} on {asset!r} failed: {exc}") from exc
        if not ok:
            logger.error(f"Ledger {asset!r} {operation} returned false")
            raise ExternalLedgerError(f"{operation} on {asset!r} returned false")

    def _custody(self, asset: str):
        """Serialize custody balance reads and movements of ``asset``."""
        return self._keyed.hold(("custody", asset))

    def _pull(self, asset: str, owner: str, amount: int) -> None:
        """
        Escrow ``amount`` from ``owner`` into custody.

        Custody must grow by exactly ``amount``. Anything else (fee-on-transfer,
        rebasing) is rejected: the received delta is sent back and the
        operation fails with no engine state written.
        """
        ledger = self._ledger(asset)
        with self._custody(asset):
            before = ledger.balance_of(self.custody_address)
            self._call_ledger(
                asset, "transfer_from", ledger.transfer_from,
                self.custody_address, owner, self.custody_address, amount,
            )
            received = ledger.balance_of(self.custody_address) - before
            if received == amount:
                return

            logger.error(
                f"Escrow of {asset!r} rejected: expected amount={amount}, custody grew by {received}"
            )
            if received > 0:
                self._call_ledger(
                    asset, "transfer", ledger.transfer,
                    self.custody_address, owner, received,
                )
        raise ExternalLedgerError(
            f"Asset {asset!r} credited {received} instead of {amount}; "
            f"non-standard transfer semantics are not supported"
        )

    def _push(self, asset: str, recipient: str, amount: int) -> None:
        """Release ``amount`` from custody to ``recipient``."""
        if amount == 0:
            return
        ledger = self._ledger(asset)
        with self._custody(asset):
            self._call_ledger(
                asset, "transfer", ledger.transfer,
                self.custody_address, recipient, amount,
            )

    def _free_liquidity(self, asset: str) -> int:
        """Custody holdings of ``asset`` not owed to locks, fees or HTLCs."""
        held = self._ledger(asset).balance_of(self.custody_address)
        with self._writer:
            owed = sum(self._store.get_balance(kind, asset) for kind in (CUSTODY, FEES, HTLC_ESCROW))
        return held - owed

    def _require_liquidity(self, asset: str, amount: int) -> None:
        free = self._free_liquidity(asset)
        if free < amount:
            logger.error(f"Release of {asset!r} rejected: amount={amount} exceeds free liquidity {free}")
            raise ExternalLedgerError(
                f"Custody holds {free} free {asset!r}, release needs {amount}"
            )

    # ── Proof checks ────────────────────────────────────────────────

    def _check_release_proof(self, proof: BridgeProof) -> None:
        """Shape checks that need no external calls."""
        if not isinstance(proof, BridgeProof):
            raise ValidationError("proof must be a BridgeProof")
        if proof.target_chain != self.local_chain_id:
            raise ValidationError(
                f"Proof targets chain {proof.target_chain}, this bridge is chain {self.local_chain_id}"
            )
        self._require_positive(proof.amount)
        self._require_identifier(proof.recipient, "recipient")
        for name in ("lock_id", "block_hash", "tx_hash", "receipt_root"):
            if not _is_hash(getattr(proof, name)):
                raise ValidationError(f"proof.{name} must be {HASH_SIZE} bytes")
        self._ledger(proof.asset)

    def _verify_proof(self, proof: BridgeProof) -> None:
        """Light-client attestation, Merkle inclusion and receipt checks."""
        self._registry.require_supported(proof.source_chain)
        light_client = self._registry.light_client_for(proof.source_chain)
        if light_client is None:
            logger.warning(f"Proof rejected: chain={proof.source_chain} has no light client")
            raise ChainNotSupported(proof.source_chain)

        if not light_client.is_root_attested(proof.receipt_root, proof.block_number, proof.block_hash):
            logger.warning(
                f"Proof rejected: root {to_hex(proof.receipt_root)} not attested "
                f"for chain={proof.source_chain} block {proof.block_number}"
            )
            raise InvalidProofError("Receipt root is not attested by the light client")
        if not verify_merkle_proof(proof.tx_hash, proof.merkle_proof, proof.receipt_root):
            logger.warning(f"Proof rejected: Merkle path invalid for tx {to_hex(proof.tx_hash)}")
            raise InvalidProofError("Merkle proof does not verify against the receipt root")
        if not light_client.verify_receipt_proof(proof):
            logger.warning(f"Proof rejected: receipt proof invalid for tx {to_hex(proof.tx_hash)}")
            raise InvalidProofError("Receipt inclusion proof rejected by the light client")

    def _require_fresh_proof(self, proof: BridgeProof) -> None:
        if self._replay.is_proof_used(proof.proof_hash):
            logger.warning(f"Replay rejected: proof {to_hex(proof.proof_hash)}")
            raise ReplayError(f"Proof {to_hex(proof.proof_hash)} already used")
        if self._replay.is_source_tx_consumed(*proof.source_tx_key):
            logger.warning(
                f"Replay rejected: tx {to_hex(proof.tx_hash)} on chain={proof.source_chain} already released"
            )
            raise ReplayError(f"Transaction {to_hex(proof.tx_hash)} already released")

    def _consume_proof(self, proof: BridgeProof) -> None:
        """Consume the proof hash and its source transaction, or neither."""
        if not self._replay.try_consume_proof(proof.proof_hash):
            raise ReplayError(f"Proof {to_hex(proof.proof_hash)} already used")
        if not self._replay.try_consume_source_tx(*proof.source_tx_key):
            self._replay.release(PROOFS, proof.proof_hash)
            raise ReplayError(f"Transaction {to_hex(proof.tx_hash)} already released")

    def _release_proof(self, proof: BridgeProof) -> None:
        self._replay.release(PROOFS, proof.proof_hash)
        self._replay.release(SOURCE_TXS, proof.source_tx_key)

    # ══════════════════════════════════════════════════════════════════
    #  LOCK → MINT
    # ══════════════════════════════════════════════════════════════════

    def lock(self, caller: str, amount: int, target_chain: int, recipient: str, asset: str) -> bytes:
        """
        Escrow ``amount`` of ``asset`` for release on ``target_chain``.

        The caller must have approved the custody address on the asset ledger.

        Returns:
            The new lock_id
        """
        self._require_not_paused("lock")
        self._require_positive(amount)
        self._registry.require_supported(target_chain)
        self._require_identifier(recipient, "recipient")
        self._ledger(asset)

        with self._custody(asset):
            self._pull(asset, caller, amount)

            now = self._now()
            nonce = self._store.next_nonce()
            record = LockRecord(
                lock_id=compute_lock_id(caller, amount, target_chain, now, nonce),
                sender=caller,
                amount=amount,
                asset=asset,
                target_chain=target_chain,
                recipient=recipient,
                timestamp=now,
                block_number=self._block_number(),
                nonce=nonce,
            )
            with self._writer:
                self._store.put_lock(record)
                self._store.adjust_balance(CUSTODY, asset, amount)

        logger.info(
            f"Lock {to_hex(record.lock_id)}: amount={amount} {asset!r} → chain={target_chain}"
        )
        self._events.emit(Locked(
            actor=caller,
            lock_id=record.lock_id,
            amount=amount,
            asset=asset,
            target_chain=target_chain,
            recipient=recipient,
            timestamp=now,
        ))
        return record.lock_id

    def mint(self, caller: str, proof: BridgeProof) -> bool:
        """
        Release value for a lock proven on ``proof.source_chain``.

        Exactly once per proof hash, per (source_chain, lock_id) and per
        (source_chain, tx_hash). The payout comes from custody liquidity not
        owed to pending locks, fees or HTLCs.

        Returns:
            True on success (every failure raises)
        """
        self._require_not_paused("mint")
        self._check_release_proof(proof)
        proof_hash = proof.proof_hash

        with self._keyed.hold(("mint",) + proof.lock_key):
            self._require_fresh_proof(proof)
            if self._replay.is_lock_consumed(*proof.lock_key):
                logger.warning(f"Replay rejected: lock {to_hex(proof.lock_id)} already minted")
                raise ReplayError(f"Lock {to_hex(proof.lock_id)} already minted")

            self._verify_proof(proof)

            self._consume_proof(proof)
            if not self._replay.try_consume_lock(*proof.lock_key):
                self._release_proof(proof)
                raise ReplayError(f"Lock {to_hex(proof.lock_id)} already minted")

            fee = compute_fee(proof.amount, self._fee_bps)
            try:
                with self._custody(proof.asset):
                    self._require_liquidity(proof.asset, proof.amount)
                    self._push(proof.asset, proof.recipient, proof.amount - fee)
                    with self._writer:
                        self._store.adjust_balance(FEES, proof.asset, fee)
            except BridgeException:
                self._release_proof(proof)
                self._replay.release(LOCKS, proof.lock_key)
                raise

        logger.info(
            f"Mint for lock {to_hex(proof.lock_id)} from chain={proof.source_chain}: "
            f"amount={proof.amount - fee} fee={fee} {proof.asset!r}"
        )
        self._events.emit(Minted(
            actor=caller,
            proof_hash=proof_hash,
            source_chain=proof.source_chain,
            lock_id=proof.lock_id,
            recipient=proof.recipient,
            asset=proof.asset,
            amount=proof.amount - fee,
            fee=fee,
            timestamp=self._now(),
        ))
        return True

    # ══════════════════════════════════════════════════════════════════
    #  BURN → UNLOCK
    # ══════════════════════════════════════════════════════════════════

    def burn(self, caller: str, amount: int, target_chain: int, recipient: str, asset: str) -> bytes:
        """
        Record the intent to release ``amount`` on ``target_chain``.

        Moves no custody: destroying the wrapped supply is the asset
        ledger's job, done by the caller alongside this call.

        Returns:
            The new burn_id
        """
        self._require_not_paused("burn")
        self._require_positive(amount)
        self._registry.require_supported(target_chain)
        self._require_identifier(recipient, "recipient")
        self._ledger(asset)

        now = self._now()
        nonce = self._store.next_nonce()
        record = BurnRecord(
            burn_id=compute_burn_id(caller, amount, target_chain, recipient, now, nonce),
            sender=caller,
            amount=amount,
            asset=asset,
            target_chain=target_chain,
            recipient=recipient,
            timestamp=now,
            block_number=self._block_number(),
            nonce=nonce,
        )
        self._store.put_burn(record)

        logger.info(f"Burn {to_hex(record.burn_id)}: amount={amount} {asset!r} → chain={target_chain}")
        self._events.emit(Burned(
            actor=caller,
            burn_id=record.burn_id,
            amount=amount,
            asset=asset,
            target_chain=target_chain,
            recipient=recipient,
            timestamp=now,
        ))
        return record.burn_id

    def _begin_lock_settlement(self, record: LockRecord) -> None:
        """Reserve the lock and take its amount out of custody, atomically."""
        with self._writer:
            if not self._replay.try_begin_settlement("lock", record.lock_id):
                raise StateError(f"Lock {to_hex(record.lock_id)} is already being settled")
            try:
                self._store.adjust_balance(CUSTODY, record.asset, -record.amount)
            except ValueError as exc:
                self._replay.release(SETTLEMENTS, ("lock", record.lock_id))
                raise StateError(f"Custody of {record.asset!r} cannot cover the release") from exc

    def _abort_lock_settlement(self, record: LockRecord) -> None:
        with self._writer:
            self._store.adjust_balance(CUSTODY, record.asset, record.amount)
            self._replay.release(SETTLEMENTS, ("lock", record.lock_id))

    def _get_pending_lock(self, lock_id: bytes) -> LockRecord:
        record = self._store.get_lock(lock_id)
        if record is None:
            raise RecordNotFound(f"No lock {to_hex(lock_id)}")
        if record.is_settled:
            state = "claimed" if record.claimed else "refunded"
            logger.warning(f"Lock {to_hex(lock_id)} rejected: already {state}")
            raise StateError(f"Lock {to_hex(lock_id)} already {state}")
        return record

    def unlock(self, caller: str, proof: BridgeProof) -> bool:
        """
        Release custody of a local lock, proven burned on its target chain.

        ``proof.lock_id`` names the local lock; its asset and amount must
        match the proof and its target chain must be the proof's source.

        Returns:
            True on success (every failure raises)
        """
        self._require_not_paused("unlock")
        self._check_release_proof(proof)
        proof_hash = proof.proof_hash

        with self._keyed.hold(("lock", proof.lock_id)):
            self._require_fresh_proof(proof)
            record = self._get_pending_lock(proof.lock_id)
            if record.asset != proof.asset or record.amount != proof.amount:
                raise ValidationError(
                    f"Proof does not match lock {to_hex(record.lock_id)} asset/amount"
                )
            if record.target_chain != proof.source_chain:
                raise ValidationError(
                    f"Lock {to_hex(record.lock_id)} targeted chain {record.target_chain}, "
                    f"proof comes from chain {proof.source_chain}"
                )

            self._verify_proof(proof)

            self._consume_proof(proof)
            fee = compute_fee(record.amount, self._fee_bps)
            with self._custody(record.asset):
                try:
                    self._begin_lock_settlement(record)
                except StateError:
                    self._release_proof(proof)
                    raise

                try:
                    self._push(record.asset, proof.recipient, record.amount - fee)
                except BridgeException:
                    self._abort_lock_settlement(record)
                    self._release_proof(proof)
                    raise

                with self._writer:
                    record.claimed = True
                    self._store.put_lock(record)
                    self._store.adjust_balance(FEES, record.asset, fee)

        logger.info(
            f"Unlock of lock {to_hex(record.lock_id)}: amount={record.amount - fee} "
            f"fee={fee} {record.asset!r}"
        )
        self._events.emit(Unlocked(
            actor=caller,
            proof_hash=proof_hash,
            source_chain=proof.source_chain,
            lock_id=record.lock_id,
            recipient=proof.recipient,
            asset=record.asset,
            amount=record.amount - fee,
            fee=fee,
            timestamp=self._now(),
        ))
        return True

    def refund_lock(self, caller: str, lock_id: bytes) -> bool:
        """
        Return a pending lock to its sender after its target chain was removed.

        Admin-only. Not gated by pause.
        """
        require_admin(self._authorizer, caller, "refund_lock")

        with self._keyed.hold(("lock", lock_id)):
            record = self._get_pending_lock(lock_id)
            if self._registry.is_supported(record.target_chain):
                raise StateError(
                    f"Lock {to_hex(lock_id)} targets supported chain {record.target_chain}; "
                    f"it can only be released by proof"
                )

            with self._custody(record.asset):
                self._begin_lock_settlement(record)
                try:
                    self._push(record.asset, record.sender, record.amount)
                except BridgeException:
                    self._abort_lock_settlement(record)
                    raise

                with self._writer:
                    record.refunded = True
                    self._store.put_lock(record)

        logger.warning(f"Lock {to_hex(lock_id)} refunded: amount={record.amount} {record.asset!r}")
        self._events.emit(LockRefunded(
            actor=caller,
            lock_id=lock_id,
            sender=record.sender,
            asset=record.asset,
            amount=record.amount,
            timestamp=self._now(),
        ))
        return True

    # ══════════════════════════════════════════════════════════════════
    #  HTLC
    # ══════════════════════════════════════════════════════════════════

    def create_htlc(
        self,
        caller: str,
        recipient: str,
        amount: int,
        hash_lock: bytes,
        time_lock: int,
        asset: str,
    ) -> bytes:
        """
        Escrow ``amount`` claimable by ``recipient`` with the preimage of
        ``hash_lock`` before ``time_lock``, refundable to the caller after.

        Returns:
            The new htlc_id
        """
        self._require_not_paused("create_htlc")
        self._require_positive(amount)
        self._require_identifier(recipient, "recipient")
        if not _is_hash(hash_lock):
            raise ValidationError(f"hash_lock must be {HASH_SIZE} bytes")
        now = self._now()
        if isinstance(time_lock, bool) or not isinstance(time_lock, int) or time_lock <= now:
            raise ValidationError(f"time_lock must be an integer after {now}")
        if self._replay.is_hash_lock_revealed(hash_lock):
            logger.warning(f"HTLC rejected: preimage of {to_hex(hash_lock)} already revealed")
            raise ReplayError(f"Preimage of hash lock {to_hex(hash_lock)} is already public")
        self._ledger(asset)

        with self._custody(asset):
            self._pull(asset, caller, amount)

            nonce = self._store.next_nonce()
            record = HTLCRecord(
                htlc_id=compute_htlc_id(caller, recipient, hash_lock, now, nonce),
                sender=caller,
                recipient=recipient,
                amount=amount,
                asset=asset,
                hash_lock=hash_lock,
                time_lock=time_lock,
                created_at=now,
                nonce=nonce,
            )
            with self._writer:
                self._store.put_htlc(record)
                self._store.adjust_balance(HTLC_ESCROW, asset, amount)

        logger.info(f"HTLC {to_hex(record.htlc_id)} created: amount={amount} {asset!r} until {time_lock}")
        self._events.emit(HTLCCreated(
            actor=caller,
            htlc_id=record.htlc_id,
            recipient=recipient,
            amount=amount,
            asset=asset,
            hash_lock=hash_lock,
            time_lock=time_lock,
            timestamp=now,
        ))
        return record.htlc_id

    def _get_open_htlc(self, htlc_id: bytes) -> HTLCRecord:
        record = self._store.get_htlc(htlc_id)
        if record is None:
            raise RecordNotFound(f"No HTLC {to_hex(htlc_id)}")
        if record.is_settled:
            logger.warning(f"HTLC {to_hex(htlc_id)} rejected: already {record.status.name.lower()}")
            raise StateError(f"HTLC {to_hex(htlc_id)} already {record.status.name.lower()}")
        return record

    def _settle_htlc(self, record: HTLCRecord, payee: str) -> None:
        """Reserve the HTLC, release its escrow to ``payee``; roll back on failure."""
        with self._custody(record.asset):
            with self._writer:
                if not self._replay.try_begin_settlement("htlc", record.htlc_id):
                    raise StateError(f"HTLC {to_hex(record.htlc_id)} is already being settled")
                self._store.adjust_balance(HTLC_ESCROW, record.asset, -record.amount)
            try:
                self._push(record.asset, payee, record.amount)
            except BridgeException:
                with self._writer:
                    self._store.adjust_balance(HTLC_ESCROW, record.asset, record.amount)
                    self._replay.release(SETTLEMENTS, ("htlc", record.htlc_id))
                raise

    def claim_htlc(self, caller: str, htlc_id: bytes, preimage: bytes) -> bool:
        """
        Release an HTLC to its recipient by revealing the preimage.

        Valid strictly before ``time_lock``. Not gated by pause.
        """
        with self._keyed.hold(("htlc", htlc_id)):
            record = self._get_open_htlc(htlc_id)
            now = self._now()
            if now >= record.time_lock:
                logger.warning(f"HTLC {to_hex(htlc_id)} claim rejected: expired at {record.time_lock}")
                raise StateError(f"HTLC {to_hex(htlc_id)} expired; only refund is possible")
            if not isinstance(preimage, bytes):
                raise ValidationError("preimage must be bytes")
            if hashlock_digest(preimage, self.hashlock_algorithm) != record.hash_lock:
                logger.warning(f"HTLC {to_hex(htlc_id)} claim rejected: wrong preimage")
                raise ValidationError("Preimage does not match the hash lock")

            self._settle_htlc(record, record.recipient)

            with self._writer:
                record.claimed = True
                record.preimage = preimage
                self._store.put_htlc(record)
            self._replay.mark_hash_lock_revealed(record.hash_lock)

        logger.info(f"HTLC {to_hex(htlc_id)} claimed: amount={record.amount} {record.asset!r}")
        self._events.emit(HTLCClaimed(
            actor=caller,
            htlc_id=htlc_id,
            recipient=record.recipient,
            amount=record.amount,
            asset=record.asset,
            preimage=preimage,
            timestamp=now,
        ))
        return True

    def refund_htlc(self, caller: str, htlc_id: bytes) -> bool:
        """
        Return an expired HTLC to its sender.

        Valid at or after ``time_lock``. Not gated by pause.
        """
        with self._keyed.hold(("htlc", htlc_id)):
            record = self._get_open_htlc(htlc_id)
            now = self._now()
            if now < record.time_lock:
                logger.warning(f"HTLC {to_hex(htlc_id)} refund rejected: locked until {record.time_lock}")
                raise StateError(f"HTLC {to_hex(htlc_id)} is claimable until {record.time_lock}")

            self._settle_htlc(record, record.sender)

            with self._writer:
                record.refunded = True
                self._store.put_htlc(record)

        logger.info(f"HTLC {to_hex(htlc_id)} refunded: amount={record.amount} {record.asset!r}")
        self._events.emit(HTLCRefunded(
            actor=caller,
            htlc_id=htlc_id,
            sender=record.sender,
            amount=record.amount,
            asset=record.asset,
            timestamp=now,
        ))
        return True

    # ══════════════════════════════════════════════════════════════════
    #  ADMINISTRATIVE CONTROL PLANE
    # ══════════════════════════════════════════════════════════════════

    def pause(self, caller: str) -> None:
        require_admin(self._authorizer, caller, "pause")
        with self._writer:
            if self._paused:
                raise StateError("Bridge is already paused")
            self._paused = True
            self._persist_settings()
        logger.warning(f"Bridge PAUSED by {caller!r}")
        self._events.emit(Paused(actor=caller, timestamp=self._now()))

    def unpause(self, caller: str) -> None:
        require_admin(self._authorizer, caller, "unpause")
        with self._writer:
            if not self._paused:
                raise StateError("Bridge is not paused")
            self._paused = False
            self._persist_settings()
        logger.info(f"Bridge unpaused by {caller!r}")
        self._events.emit(Unpaused(actor=caller, timestamp=self._now()))

    def set_bridge_fee(self, caller: str, fee_bps: int) -> None:
        """Set the release fee; capped at MAX_BRIDGE_FEE_BPS."""
        require_admin(self._authorizer, caller, "set_bridge_fee")
        if isinstance(fee_bps, bool) or not isinstance(fee_bps, int):
            raise ValidationError("fee_bps must be an integer")
        if not 0 <= fee_bps <= MAX_BRIDGE_FEE_BPS:
            raise ValidationError(f"fee_bps must be within 0..{MAX_BRIDGE_FEE_BPS}")
        with self._writer:
            old = self._fee_bps
            self._fee_bps = fee_bps
            self._persist_settings()
        logger.info(f"Bridge fee changed {old} → {fee_bps} bps")
        self._events.emit(FeeUpdated(actor=caller, old_bps=old, new_bps=fee_bps, timestamp=self._now()))

    def add_supported_chain(self, caller: str, chain_id: int, light_client: Optional[LightClient]) -> ChainEntry:
        return self._registry.add_chain(caller, chain_id, light_client)

    def remove_supported_chain(self, caller: str, chain_id: int) -> bool:
        return self._registry.remove_chain(caller, chain_id)

    def withdraw_fees(self, caller: str, asset: str, to: str) -> int:
        """
        Sweep the fee pool of ``asset`` to ``to``.

        Returns:
            Amount withdrawn (0 if the pool was empty)
        """
        require_admin(self._authorizer, caller, "withdraw_fees")
        self._require_identifier(to, "to")
        self._ledger(asset)

        with self._keyed.hold(("fees", asset)), self._custody(asset):
            with self._writer:
                amount = self._store.get_balance(FEES, asset)
                if amount == 0:
                    return 0
                self._store.adjust_balance(FEES, asset, -amount)
            try:
                self._push(asset, to, amount)
            except BridgeException:
                with self._writer:
                    self._store.adjust_balance(FEES, asset, amount)
                raise

        logger.info(f"Fees withdrawn: amount={amount} {asset!r} → {to!r}")
        self._events.emit(FeesWithdrawn(actor=caller, asset=asset, amount=amount, to=to, timestamp=self._now()))
        return amount

    # ── Settings persistence ────────────────────────────────────────

    def _persist_settings(self) -> None:
        self._store.save_settings({"paused": self._paused, "fee_bps": self._fee_bps})

    def _load_settings(self) -> None:
        settings = self._store.load_settings()
        if not settings:
            return
        self._paused = bool(settings.get("paused", False))
        self._fee_bps = int(settings.get("fee_bps", self._fee_bps))
        logger.info(f"Restored bridge settings: paused={self._paused} fee={self._fee_bps} bps")

    # ══════════════════════════════════════════════════════════════════
    #  QUERIES
    # ══════════════════════════════════════════════════════════════════

    def get_lock_details(self, lock_id: bytes) -> Optional[LockRecord]:
        return self._store.get_lock(lock_id)

    def get_burn_details(self, burn_id: bytes) -> Optional[BurnRecord]:
        return self._store.get_burn(burn_id)

    def get_htlc_details(self, htlc_id: bytes) -> Optional[HTLCRecord]:
        return self._store.get_htlc(htlc_id)

    def get_bridge_balance(self, asset: str) -> int:
        """Aggregate custody backing pending locks of ``asset``."""
        return self._store.get_balance(CUSTODY, asset)

    def get_collected_fees(self, asset: str) -> int:
        return self._store.get_balance(FEES, asset)

    def get_htlc_escrow(self, asset: str) -> int:
        return self._store.get_balance(HTLC_ESCROW, asset)

    def is_proof_used(self, proof_hash: bytes) -> bool:
        return self._replay.is_proof_used(proof_hash)

    def custody_report(self, asset: str) -> Dict[str, int]:
        """
        Recorded custody next to the sum of pending lock amounts.

        Both figures are read under the writer lock, so they agree unless the
        store was modified behind the engine's back.
        """
        with self._writer:
            pending = sum(
                r.amount for r in self._store.iter_locks()
                if r.asset == asset
                and not r.is_settled
                and not self._replay.is_consumed(SETTLEMENTS, ("lock", r.lock_id))
            )
            return {"recorded": self._store.get_balance(CUSTODY, asset), "pending_locks": pending}

    def get_stats(self) -> Dict[str, Any]:
        locks = list(self._store.iter_locks())
        htlcs = list(self._store.iter_htlcs())
        return {
            "local_chain_id": self.local_chain_id,
            "paused": self._paused,
            "fee_bps": self._fee_bps,
            "supported_chains": self._registry.supported_chains(),
            "locks": {
                "total": len(locks),
                "pending": len(pending_locks(self._store)),
                "claimed": len([r for r in locks if r.claimed]),
                "refunded": len([r for r in locks if r.refunded]),
            },
            "htlcs": {
                "total": len(htlcs),
                "open": len([r for r in htlcs if not r.is_settled]),
            },
            "replay_guard": self._replay.counts(),
            "events": len(self._events),
        }

