"""
lcbridge Bridge Types

Core records of the transfer engine.

Defines:
  - ChainId enum for well-known chains (any non-negative int is accepted)
  - Pure identifier derivations (lock, burn, HTLC, proof hash, transfer commitment)
  - LockRecord for value escrowed awaiting its counterpart release
  - BurnRecord for reverse-direction intents
  - BridgeProof, the value object submitted to mint/unlock
  - HTLCRecord for hash-time-locked escrows
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List

from ..constants import (
    BURN_ID_DOMAIN,
    HTLC_ID_DOMAIN,
    LOCK_ID_DOMAIN,
    PROOF_HASH_DOMAIN,
    TRANSFER_COMMITMENT_DOMAIN,
)
from ..crypto.hashing import encode_str, encode_uint, keccak256, to_bytes32, to_hex


# ══════════════════════════════════════════════════════════════════════
#  CHAIN IDENTIFIERS
# ══════════════════════════════════════════════════════════════════════

class ChainId(IntEnum):
    """
    Identifiers for commonly bridged chains.

    The engine accepts any non-negative integer as a chain id; these are
    conveniences for hosts and configuration files.
    """
    LOCAL    = 0
    ETHEREUM = 1
    BITCOIN  = 2
    SOLANA   = 3
    COSMOS   = 4


CHAIN_NAMES: Dict[int, str] = {
    ChainId.LOCAL: "Local",
    ChainId.ETHEREUM: "Ethereum",
    ChainId.BITCOIN: "Bitcoin",
    ChainId.SOLANA: "Solana",
    ChainId.COSMOS: "Cosmos",
}


def chain_name(chain_id: int) -> str:
    return CHAIN_NAMES.get(chain_id, f"chain-{chain_id}")


# ══════════════════════════════════════════════════════════════════════
#  IDENTIFIER DERIVATION
# ══════════════════════════════════════════════════════════════════════

def compute_lock_id(
    sender: str,
    amount: int,
    target_chain: int,
    timestamp: int,
    nonce: int,
) -> bytes:
    """Derive a lock id from its inputs and an explicit monotonic nonce."""
    return keccak256(
        LOCK_ID_DOMAIN
        + encode_str(sender)
        + encode_uint(amount)
        + encode_uint(target_chain)
        + encode_uint(timestamp)
        + encode_uint(nonce)
    )


def compute_burn_id(
    sender: str,
    amount: int,
    target_chain: int,
    recipient: str,
    timestamp: int,
    nonce: int,
) -> bytes:
    return keccak256(
        BURN_ID_DOMAIN
        + encode_str(sender)
        + encode_uint(amount)
        + encode_uint(target_chain)
        + encode_str(recipient)
        + encode_uint(timestamp)
        + encode_uint(nonce)
    )


def compute_htlc_id(
    sender: str,
    recipient: str,
    hash_lock: bytes,
    timestamp: int,
    nonce: int,
) -> bytes:
    return keccak256(
        HTLC_ID_DOMAIN
        + encode_str(sender)
        + encode_str(recipient)
        + hash_lock
        + encode_uint(timestamp)
        + encode_uint(nonce)
    )


def compute_proof_hash(
    source_chain: int,
    lock_id: bytes,
    tx_hash: bytes,
    block_hash: bytes,
) -> bytes:
    """Replay-detection identifier of a proof. Never used for value computation."""
    return keccak256(
        PROOF_HASH_DOMAIN
        + encode_uint(source_chain)
        + lock_id
        + tx_hash
        + block_hash
    )


def compute_transfer_commitment(
    source_chain: int,
    target_chain: int,
    lock_id: bytes,
    amount: int,
    recipient: str,
    asset: str,
) -> bytes:
    """
    Hash binding a transfer's payload, as committed on the source chain.

    Sources that publish this value as the transaction leaf let a light
    client tie ``lock_id``, ``amount``, ``recipient`` and ``asset`` to the
    attested receipt root.
    """
    return keccak256(
        TRANSFER_COMMITMENT_DOMAIN
        + encode_uint(source_chain)
        + encode_uint(target_chain)
        + lock_id
        + encode_uint(amount)
        + encode_str(recipient)
        + encode_str(asset)
    )


def _require_amount(amount: Any) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"amount must be an integer, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError("amount must be non-negative")


def _require_chain(chain_id: Any, name: str) -> None:
    if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id < 0:
        raise ValueError(f"{name} must be a non-negative integer")


# ══════════════════════════════════════════════════════════════════════
#  SETTLEMENT GUARD
# ══════════════════════════════════════════════════════════════════════

class _SettledRecord:
    """
    Mixin enforcing write-once identity fields and one-way settlement flags.

    ``claimed`` and ``refunded`` may each go False → True once, never back,
    and never both.
    """

    _immutable_fields: tuple = ()

    def __setattr__(self, name: str, value: Any) -> None:
        initialized = self.__dict__.get("_initialized", False)
        if initialized and name in self._immutable_fields:
            raise AttributeError(f"{type(self).__name__}.{name} is immutable")
        if initialized and name in ("claimed", "refunded"):
            current = self.__dict__[name]
            if current and not value:
                raise AttributeError(f"{type(self).__name__}.{name} cannot be reverted")
            other = "refunded" if name == "claimed" else "claimed"
            if value and self.__dict__[other]:
                raise AttributeError(
                    f"{type(self).__name__} is already {other}; cannot set {name}"
                )
        super().__setattr__(name, value)

    @property
    def is_settled(self) -> bool:
        return self.claimed or self.refunded


# ══════════════════════════════════════════════════════════════════════
#  LOCK RECORD
# ══════════════════════════════════════════════════════════════════════

@dataclass
class LockRecord(_SettledRecord):
    """
    Value escrowed on this ledger awaiting release on the counterpart chain.

    Attributes:
        lock_id: Unique identifier (see compute_lock_id)
        sender: Account the value was escrowed from
        amount: Escrowed amount in the asset's smallest unit
        asset: Asset handle on this ledger
        target_chain: Chain on which the counterpart release happens
        recipient: Opaque recipient identifier on the target chain
        timestamp: Creation time (unix seconds)
        block_number: Local block height at creation
        nonce: Engine nonce used when deriving lock_id
        claimed: Custody released back out via a proven unlock
        refunded: Custody returned to the sender
    """
    lock_id: bytes
    sender: str
    amount: int
    asset: str
    target_chain: int
    recipient: str
    timestamp: int
    block_number: int = 0
    nonce: int = 0
    claimed: bool = False
    refunded: bool = False

    _immutable_fields = (
        "lock_id", "sender", "amount", "asset", "target_chain",
        "recipient", "timestamp", "block_number", "nonce",
    )

    def __post_init__(self):
        _require_amount(self.amount)
        _require_chain(self.target_chain, "target_chain")
        if self.claimed and self.refunded:
            raise ValueError("a lock cannot be both claimed and refunded")
        self._initialized = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lock_id": to_hex(self.lock_id),
            "sender": self.sender,
            "amount": self.amount,
            "asset": self.asset,
            "target_chain": self.target_chain,
            "recipient": self.recipient,
            "timestamp": self.timestamp,
            "block_number": self.block_number,
            "nonce": self.nonce,
            "claimed": self.claimed,
            "refunded": self.refunded,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'LockRecord':
        return cls(
            lock_id=to_bytes32(d["lock_id"]),
            sender=d["sender"],
            amount=int(d["amount"]),
            asset=d["asset"],
            target_chain=int(d["target_chain"]),
            recipient=d["recipient"],
            timestamp=int(d["timestamp"]),
            block_number=int(d.get("block_number", 0)),
            nonce=int(d.get("nonce", 0)),
            claimed=d.get("claimed", False),
            refunded=d.get("refunded", False),
        )


# ══════════════════════════════════════════════════════════════════════
#  BURN RECORD
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BurnRecord:
    """Intent to release value on ``target_chain``; moves no custody here."""
    burn_id: bytes
    sender: str
    amount: int
    asset: str
    target_chain: int
    recipient: str
    timestamp: int
    block_number: int = 0
    nonce: int = 0

    def __post_init__(self):
        _require_amount(self.amount)
        _require_chain(self.target_chain, "target_chain")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "burn_id": to_hex(self.burn_id),
            "sender": self.sender,
            "amount": self.amount,
            "asset": self.asset,
            "target_chain": self.target_chain,
            "recipient": self.recipient,
            "timestamp": self.timestamp,
            "block_number": self.block_number,
            "nonce": self.nonce,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'BurnRecord':
        return cls(
            burn_id=to_bytes32(d["burn_id"]),
            sender=d["sender"],
            amount=int(d["amount"]),
            asset=d["asset"],
            target_chain=int(d["target_chain"]),
            recipient=d["recipient"],
            timestamp=int(d["timestamp"]),
            block_number=int(d.get("block_number", 0)),
            nonce=int(d.get("nonce", 0)),
        )


# ══════════════════════════════════════════════════════════════════════
#  BRIDGE PROOF
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BridgeProof:
    """
    Evidence that a lock (or burn) happened on ``source_chain``.

    Attributes:
        source_chain: Chain where the lock/burn was recorded
        target_chain: Chain the release is requested on
        lock_id: Identifier of the lock/burn being proven
        amount: Amount recorded by the lock/burn
        recipient: Account receiving the release
        asset: Asset handle on the releasing ledger
        block_number: Source block containing the transaction
        block_hash: Hash of that block
        tx_hash: Transaction hash, the Merkle leaf
        merkle_proof: Sibling path from tx_hash to receipt_root
        receipt_root: Root the light client must attest
        receipt_proof: Opaque receipt-inclusion proof for the light client
    """
    source_chain: int
    target_chain: int
    lock_id: bytes
    amount: int
    recipient: str
    asset: str
    block_number: int
    block_hash: bytes
    tx_hash: bytes
    merkle_proof: List[bytes] = field(default_factory=list)
    receipt_root: bytes = b""
    receipt_proof: bytes = b""

    def __post_init__(self):
        _require_amount(self.amount)
        _require_chain(self.source_chain, "source_chain")
        _require_chain(self.target_chain, "target_chain")
        # Freeze the path so the proof_hash-bearing object stays immutable
        object.__setattr__(self, "merkle_proof", tuple(self.merkle_proof))

    @property
    def proof_hash(self) -> bytes:
        return compute_proof_hash(
            self.source_chain, self.lock_id, self.tx_hash, self.block_hash
        )

    @property
    def lock_key(self) -> tuple:
        return (self.source_chain, self.lock_id)

    @property
    def source_tx_key(self) -> tuple:
        return (self.source_chain, self.tx_hash)

    @property
    def transfer_commitment(self) -> bytes:
        return compute_transfer_commitment(
            self.source_chain, self.target_chain, self.lock_id,
            self.amount, self.recipient, self.asset,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_chain": self.source_chain,
            "target_chain": self.target_chain,
            "lock_id": to_hex(self.lock_id),
            "amount": self.amount,
            "recipient": self.recipient,
            "asset": self.asset,
            "block_number": self.block_number,
            "block_hash": to_hex(self.block_hash),
            "tx_hash": to_hex(self.tx_hash),
            "merkle_proof": [to_hex(s) for s in self.merkle_proof],
            "receipt_root": to_hex(self.receipt_root),
            "receipt_proof": to_hex(self.receipt_proof),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'BridgeProof':
        return cls(
            source_chain=int(d["source_chain"]),
            target_chain=int(d["target_chain"]),
            lock_id=to_bytes32(d["lock_id"]),
            amount=int(d["amount"]),
            recipient=d["recipient"],
            asset=d["asset"],
            block_number=int(d["block_number"]),
            block_hash=to_bytes32(d["block_hash"]),
            tx_hash=to_bytes32(d["tx_hash"]),
            merkle_proof=[to_bytes32(s) for s in d.get("merkle_proof", [])],
            receipt_root=to_bytes32(d["receipt_root"]),
            receipt_proof=bytes.fromhex(d.get("receipt_proof", "0x")[2:]),
        )


# ══════════════════════════════════════════════════════════════════════
#  HTLC RECORD
# ══════════════════════════════════════════════════════════════════════

class HTLCStatus(IntEnum):
    """Lifecycle of an HTLC. CLAIMED and REFUNDED are terminal."""
    CREATED  = 0
    CLAIMED  = 1
    REFUNDED = 2


@dataclass
class HTLCRecord(_SettledRecord):
    """
    Hash-time-locked escrow.

    Claimable by revealing the preimage of ``hash_lock`` strictly before
    ``time_lock``; refundable to the sender at or after it.
    """
    htlc_id: bytes
    sender: str
    recipient: str
    amount: int
    asset: str
    hash_lock: bytes
    time_lock: int
    created_at: int
    nonce: int = 0
    claimed: bool = False
    refunded: bool = False
    preimage: bytes = b""

    _immutable_fields = (
        "htlc_id", "sender", "recipient", "amount", "asset",
        "hash_lock", "time_lock", "created_at", "nonce",
    )

    def __post_init__(self):
        _require_amount(self.amount)
        if self.claimed and self.refunded:
            raise ValueError("an HTLC cannot be both claimed and refunded")
        self._initialized = True

    @property
    def status(self) -> HTLCStatus:
        if self.claimed:
            return HTLCStatus.CLAIMED
        if self.refunded:
            return HTLCStatus.REFUNDED
        return HTLCStatus.CREATED

    def is_claimable(self, now: int) -> bool:
        return not self.is_settled and now < self.time_lock

    def is_refundable(self, now: int) -> bool:
        return not self.is_settled and now >= self.time_lock

    def to_dict(self) -> Dict[str, Any]:
        return {
            "htlc_id": to_hex(self.htlc_id),
            "sender": self.sender,
            "recipient": self.recipient,
            "amount": self.amount,
            "asset": self.asset,
            "hash_lock": to_hex(self.hash_lock),
            "time_lock": self.time_lock,
            "created_at": self.created_at,
            "nonce": self.nonce,
            "claimed": self.claimed,
            "refunded": self.refunded,
            "preimage": to_hex(self.preimage),
            "status": self.status.name,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'HTLCRecord':
        preimage = d.get("preimage", "0x")
        return cls(
            htlc_id=to_bytes32(d["htlc_id"]),
            sender=d["sender"],
            recipient=d["recipient"],
            amount=int(d["amount"]),
            asset=d["asset"],
            hash_lock=to_bytes32(d["hash_lock"]),
            time_lock=int(d["time_lock"]),
            created_at=int(d["created_at"]),
            nonce=int(d.get("nonce", 0)),
            claimed=d.get("claimed", False),
            refunded=d.get("refunded", False),
            preimage=bytes.fromhex(preimage[2:] if preimage.startswith("0x") else preimage),
        )
