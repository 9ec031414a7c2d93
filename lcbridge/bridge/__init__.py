"""
lcbridge Cross-Chain Bridge

Provides:
  - types: Records and proofs (LockRecord, BurnRecord, HTLCRecord, BridgeProof)
  - proofs: Sorted-pair Merkle inclusion proofs
  - replay: ReplayGuard for exactly-once release
  - light_client: LightClient interface, TrustedRootLightClient
  - registry: ChainRegistry, admin authorization
  - store: BridgeStore, InMemoryBridgeStore
  - events: Bridge events and the EventLog
  - engine: BridgeEngine (lock/mint/burn/unlock, HTLC)
"""

from .types import (
    CHAIN_NAMES,
    BridgeProof,
    BurnRecord,
    ChainId,
    HTLCRecord,
    HTLCStatus,
    LockRecord,
    chain_name,
    compute_burn_id,
    compute_htlc_id,
    compute_lock_id,
    compute_proof_hash,
    compute_transfer_commitment,
)

from .proofs import (
    build_merkle_proof,
    build_merkle_root,
    build_merkle_tree,
    compute_merkle_root,
    hash_pair,
    verify_merkle_proof,
)

from .replay import ReplayGuard

from .light_client import (
    AttestedHeader,
    LightClient,
    TrustedRootLightClient,
    verify_transfer_commitment,
)

from .registry import (
    AdminSet,
    Authorizer,
    ChainEntry,
    ChainRegistry,
    require_admin,
)

from .store import (
    CUSTODY,
    FEES,
    HTLC_ESCROW,
    BridgeStore,
    InMemoryBridgeStore,
    pending_lock_total,
    pending_locks,
)

from .events import (
    BridgeEvent,
    Burned,
    ChainAdded,
    ChainRemoved,
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

from .locks import KeyedLocks

from .engine import BridgeEngine, compute_fee, hashlock_digest

__all__ = [
    # Types
    "CHAIN_NAMES",
    "BridgeProof",
    "BurnRecord",
    "ChainId",
    "HTLCRecord",
    "HTLCStatus",
    "LockRecord",
    "chain_name",
    "compute_burn_id",
    "compute_htlc_id",
    "compute_lock_id",
    "compute_proof_hash",
    "compute_transfer_commitment",
    # Proofs
    "build_merkle_proof",
    "build_merkle_root",
    "build_merkle_tree",
    "compute_merkle_root",
    "hash_pair",
    "verify_merkle_proof",
    # Replay
    "ReplayGuard",
    # Light clients
    "AttestedHeader",
    "LightClient",
    "TrustedRootLightClient",
    "verify_transfer_commitment",
    # Registry
    "AdminSet",
    "Authorizer",
    "ChainEntry",
    "ChainRegistry",
    "require_admin",
    # Store
    "CUSTODY",
    "FEES",
    "HTLC_ESCROW",
    "BridgeStore",
    "InMemoryBridgeStore",
    "pending_lock_total",
    "pending_locks",
    # Events
    "BridgeEvent",
    "Burned",
    "ChainAdded",
    "ChainRemoved",
    "EventLog",
    "FeesWithdrawn",
    "FeeUpdated",
    "HTLCClaimed",
    "HTLCCreated",
    "HTLCRefunded",
    "Locked",
    "LockRefunded",
    "Minted",
    "Paused",
    "Unlocked",
    "Unpaused",
    # Concurrency
    "KeyedLocks",
    # Engine
    "BridgeEngine",
    "compute_fee",
    "hashlock_digest",
]
