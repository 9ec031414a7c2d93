"""
Proof Verification & Bridge State Test Suite

Coverage:
  - Hashing helpers: keccak256, sha256, fixed-width encoders
  - Merkle proofs: sorted-pair trees, odd promotion, malformed input
  - Identifiers: lock / burn / HTLC ids, proof hashes
  - Records: settlement flags, immutability, serialization
  - ReplayGuard: namespaces, atomic consumption, release
  - TrustedRootLightClient, ChainRegistry, InMemoryBridgeStore, EventLog
"""

import threading

import pytest

from conftest import ADMIN, ALICE

from lcbridge.bridge import (
    CHAIN_NAMES,
    CUSTODY,
    FEES,
    AdminSet,
    BridgeProof,
    BurnRecord,
    ChainId,
    ChainRegistry,
    EventLog,
    HTLCRecord,
    HTLCStatus,
    InMemoryBridgeStore,
    KeyedLocks,
    LockRecord,
    Locked,
    Paused,
    ReplayGuard,
    TrustedRootLightClient,
    build_merkle_proof,
    build_merkle_root,
    build_merkle_tree,
    chain_name,
    compute_burn_id,
    compute_htlc_id,
    compute_lock_id,
    compute_merkle_root,
    compute_proof_hash,
    compute_transfer_commitment,
    hash_pair,
    pending_lock_total,
    pending_locks,
    verify_merkle_proof,
    verify_transfer_commitment,
)
from lcbridge.crypto import (
    encode_str,
    encode_uint,
    keccak256,
    keccak256_hex,
    sha256,
    to_bytes32,
    to_hex,
)
from lcbridge.exceptions import AuthorizationError, ChainNotSupported, ValidationError


def _leaves(n):
    return [keccak256(b"leaf-%d" % i) for i in range(n)]


def _lock(lock_id=None, amount=1_000, asset="WETH", target_chain=ChainId.ETHEREUM, **kw):
    return LockRecord(
        lock_id=lock_id or keccak256(b"lock"),
        sender=ALICE,
        amount=amount,
        asset=asset,
        target_chain=target_chain,
        recipient="0xr",
        timestamp=1_700_000_000,
        **kw,
    )


# ══════════════════════════════════════════════════════════════════════
#  SECTION 1: HASHING
# ══════════════════════════════════════════════════════════════════════

class TestHashing:

    def test_keccak256_empty(self):
        assert keccak256(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )

    def test_keccak256_accepts_hex(self):
        assert keccak256("0x00") == keccak256(b"\x00")
        assert keccak256_hex(b"") == "0x" + keccak256(b"").hex()

    def test_sha256_known_vector(self):
        assert sha256(b"abc").hex() == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_to_bytes32(self):
        h = keccak256(b"x")
        assert to_bytes32(to_hex(h)) == h
        assert to_bytes32(h) == h
        with pytest.raises(ValueError):
            to_bytes32(b"\x00" * 31)

    def test_encoders(self):
        assert encode_uint(1) == b"\x00" * 31 + b"\x01"
        assert encode_uint(258, 2) == b"\x01\x02"
        assert encode_str("ab") == b"\x00\x00\x00\x02ab"
        assert encode_str("a") + encode_str("bc") != encode_str("ab") + encode_str("c")


# ══════════════════════════════════════════════════════════════════════
#  SECTION 2: MERKLE PROOFS
# ══════════════════════════════════════════════════════════════════════

class TestMerkle:

    def test_hash_pair_is_order_independent(self):
        a, b = _leaves(2)
        assert hash_pair(a, b) == hash_pair(b, a)

    def test_hash_pair_orders_numerically(self):
        low = b"\x00" * 31 + b"\x01"
        high = b"\xff" + b"\x00" * 31
        assert hash_pair(high, low) == keccak256(low + high)

    def test_single_leaf_root_is_leaf(self):
        leaf = _leaves(1)[0]
        assert build_merkle_root([leaf]) == leaf
        assert build_merkle_proof([leaf], 0) == []
        assert verify_merkle_proof(leaf, [], leaf)

    @pytest.mark.parametrize("n", [2, 3, 4, 5, 7, 8, 13])
    def test_every_leaf_verifies(self, n):
        leaves = _leaves(n)
        root = build_merkle_root(leaves)
        for i, leaf in enumerate(leaves):
            path = build_merkle_proof(leaves, i)
            assert verify_merkle_proof(leaf, path, root)
            assert compute_merkle_root(leaf, path) == root

    def test_odd_leaf_is_promoted(self):
        leaves = _leaves(3)
        levels = build_merkle_tree(leaves)
        assert levels[1][1] == leaves[2]
        assert build_merkle_proof(leaves, 2) == [hash_pair(leaves[0], leaves[1])]

    def test_foreign_leaf_rejected(self):
        leaves = _leaves(4)
        root = build_merkle_root(leaves)
        path = build_merkle_proof(leaves, 1)
        assert not verify_merkle_proof(keccak256(b"intruder"), path, root)

    def test_tampered_path_rejected(self):
        leaves = _leaves(4)
        root = build_merkle_root(leaves)
        path = build_merkle_proof(leaves, 0)
        path[1] = keccak256(b"tampered")
        assert not verify_merkle_proof(leaves[0], path, root)

    def test_truncated_path_rejected(self):
        leaves = _leaves(8)
        root = build_merkle_root(leaves)
        path = build_merkle_proof(leaves, 3)
        assert not verify_merkle_proof(leaves[3], path[:-1], root)

    def test_malformed_input_is_false(self):
        leaves = _leaves(4)
        root = build_merkle_root(leaves)
        path = build_merkle_proof(leaves, 0)
        assert verify_merkle_proof(b"short", path, root) is False
        assert verify_merkle_proof(leaves[0], path, b"short") is False
        assert verify_merkle_proof(leaves[0], [b"bad"], root) is False
        assert verify_merkle_proof(leaves[0], [None], root) is False

    def test_build_rejects_bad_input(self):
        with pytest.raises(ValueError):
            build_merkle_tree([])
        with pytest.raises(ValueError):
            build_merkle_tree([b"short"])
        with pytest.raises(IndexError):
            build_merkle_proof(_leaves(2), 2)


# ══════════════════════════════════════════════════════════════════════
#  SECTION 3: IDENTIFIERS & RECORDS
# ══════════════════════════════════════════════════════════════════════

class TestIdentifiers:

    def test_chain_names(self):
        assert ChainId.LOCAL == 0
        assert CHAIN_NAMES[ChainId.ETHEREUM] == "Ethereum"
        assert chain_name(99) == "chain-99"

    def test_lock_id_depends_on_nonce(self):
        a = compute_lock_id(ALICE, 100, 1, 1_700_000_000, 0)
        b = compute_lock_id(ALICE, 100, 1, 1_700_000_000, 1)
        assert a != b
        assert a == compute_lock_id(ALICE, 100, 1, 1_700_000_000, 0)

    def test_id_domains_are_separated(self):
        lock_id = compute_lock_id(ALICE, 100, 1, 0, 0)
        burn_id = compute_burn_id(ALICE, 100, 1, "", 0, 0)
        assert lock_id != burn_id

    def test_htlc_id_depends_on_hash_lock(self):
        a = compute_htlc_id(ALICE, "bob", keccak256(b"a"), 0, 0)
        b = compute_htlc_id(ALICE, "bob", keccak256(b"b"), 0, 0)
        assert a != b

    def test_proof_hash_covers_block_hash(self):
        lock_id, tx = keccak256(b"l"), keccak256(b"t")
        assert compute_proof_hash(1, lock_id, tx, keccak256(b"b1")) != compute_proof_hash(
            1, lock_id, tx, keccak256(b"b2")
        )


class TestRecords:

    def test_lock_settles_once(self):
        record = _lock()
        record.claimed = True
        assert record.is_settled
        with pytest.raises(AttributeError):
            record.claimed = False
        with pytest.raises(AttributeError):
            record.refunded = True

    def test_lock_identity_is_immutable(self):
        record = _lock()
        with pytest.raises(AttributeError):
            record.amount = 1
        with pytest.raises(AttributeError):
            record.recipient = "0xattacker"

    def test_lock_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            _lock(amount=-1)

    def test_lock_cannot_start_double_settled(self):
        with pytest.raises(ValueError):
            _lock(claimed=True, refunded=True)

    def test_lock_serialization(self):
        record = _lock(block_number=12, nonce=3)
        restored = LockRecord.from_dict(record.to_dict())
        assert restored == record

    def test_burn_is_frozen(self):
        burn = BurnRecord(
            burn_id=keccak256(b"burn"), sender=ALICE, amount=5, asset="WETH",
            target_chain=1, recipient="0xr", timestamp=0, block_number=0, nonce=0,
        )
        with pytest.raises(AttributeError):
            burn.amount = 6

    def test_proof_serialization(self):
        leaves = _leaves(3)
        proof = BridgeProof(
            source_chain=1, target_chain=0, lock_id=keccak256(b"l"), amount=10,
            recipient="0xr", asset="WETH", block_number=5, block_hash=keccak256(b"b"),
            tx_hash=leaves[0], merkle_proof=build_merkle_proof(leaves, 0),
            receipt_root=build_merkle_root(leaves), receipt_proof=b"\x01\x02",
        )
        restored = BridgeProof.from_dict(proof.to_dict())
        assert restored == proof
        assert restored.proof_hash == proof.proof_hash
        assert isinstance(proof.merkle_proof, tuple)
        assert proof.lock_key == (1, proof.lock_id)

    def test_htlc_status_and_windows(self):
        record = HTLCRecord(
            htlc_id=keccak256(b"h"), sender=ALICE, recipient="bob", amount=1,
            asset="WETH", hash_lock=keccak256(b"s"), time_lock=100, created_at=0,
        )
        assert record.status == HTLCStatus.CREATED
        assert record.is_claimable(99) and not record.is_claimable(100)
        assert record.is_refundable(100) and not record.is_refundable(99)
        record.refunded = True
        assert record.status == HTLCStatus.REFUNDED
        assert not record.is_refundable(200)


# ══════════════════════════════════════════════════════════════════════
#  SECTION 4: REPLAY GUARD
# ══════════════════════════════════════════════════════════════════════

class TestReplayGuard:

    def test_consume_once(self):
        guard = ReplayGuard()
        h = keccak256(b"proof")
        assert guard.try_consume_proof(h) is True
        assert guard.try_consume_proof(h) is False
        assert guard.is_proof_used(h)

    def test_namespaces_are_independent(self):
        guard = ReplayGuard()
        h = keccak256(b"x")
        guard.try_consume_proof(h)
        assert not guard.is_hash_lock_revealed(h)
        assert not guard.is_authorization_used(h)

    def test_lock_keys_include_chain(self):
        guard = ReplayGuard()
        lock_id = keccak256(b"lock")
        assert guard.try_consume_lock(1, lock_id)
        assert guard.try_consume_lock(2, lock_id)
        assert not guard.try_consume_lock(1, lock_id)

    def test_release(self):
        guard = ReplayGuard()
        h = keccak256(b"proof")
        guard.try_consume_proof(h)
        guard.release("proof", h)
        assert not guard.is_proof_used(h)
        assert guard.try_consume_proof(h)

    def test_authorization_replay(self):
        guard = ReplayGuard()
        auth = keccak256(b"auth")
        assert guard.consume_authorization(auth) is True
        assert guard.consume_authorization(auth) is False
        assert guard.is_authorization_used(auth)

    def test_unknown_namespace(self):
        with pytest.raises(KeyError):
            ReplayGuard().try_consume("bogus", b"k")

    def test_concurrent_consumption_single_winner(self):
        guard = ReplayGuard()
        h = keccak256(b"contended")
        barrier = threading.Barrier(16)
        wins = []

        def worker():
            barrier.wait()
            wins.append(guard.try_consume_proof(h))

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert wins.count(True) == 1

    def test_counts_and_snapshot(self):
        guard = ReplayGuard()
        guard.try_consume_proof(keccak256(b"p"))
        guard.try_consume_lock(1, keccak256(b"l"))
        assert guard.counts()["proof"] == 1
        snap = guard.snapshot()
        assert snap["proofs"] == [to_hex(keccak256(b"p"))]
        assert snap["locks"] == [[1, to_hex(keccak256(b"l"))]]

    def test_source_transactions_are_per_chain(self):
        guard = ReplayGuard()
        tx = keccak256(b"tx")
        assert guard.try_consume_source_tx(1, tx) is True
        assert guard.try_consume_source_tx(1, tx) is False
        assert guard.try_consume_source_tx(3, tx) is True
        assert guard.is_source_tx_consumed(1, tx)
        assert guard.snapshot()["source_txs"] == [[1, to_hex(tx)], [3, to_hex(tx)]]


# ══════════════════════════════════════════════════════════════════════
#  SECTION 5: LIGHT CLIENT & REGISTRY
# ══════════════════════════════════════════════════════════════════════

class TestTrustedRootLightClient:

    def test_attested_root(self):
        client = TrustedRootLightClient(ChainId.ETHEREUM)
        root, block_hash = keccak256(b"root"), keccak256(b"block")
        assert client.attest_header(10, block_hash, root)
        assert client.is_root_attested(root, 10, block_hash)
        assert not client.is_root_attested(root, 11, block_hash)
        assert not client.is_root_attested(keccak256(b"other"), 10, block_hash)
        assert not client.is_root_attested(root, 10, keccak256(b"fork"))

    def test_conflicting_header_rejected(self):
        client = TrustedRootLightClient(ChainId.ETHEREUM)
        client.attest_header(10, keccak256(b"a"), keccak256(b"r"))
        assert client.attest_header(10, keccak256(b"a"), keccak256(b"r")) is True
        assert client.attest_header(10, keccak256(b"b"), keccak256(b"r")) is False
        assert client.get_header(10).block_hash == keccak256(b"a")

    def test_history(self):
        client = TrustedRootLightClient(ChainId.ETHEREUM)
        for n in (5, 3, 9):
            client.attest_header(n, keccak256(b"%d" % n), keccak256(b"r%d" % n))
        assert client.latest_block() == 9
        assert [h.block_number for h in client.get_history(2)] == [5, 9]
        assert client.to_dict()["headers"] == 3

    def _proof(self, **overrides):
        fields = dict(
            source_chain=1, target_chain=0, lock_id=keccak256(b"l"), amount=10,
            recipient="0xr", asset="WETH",
        )
        fields.update(overrides)
        tx_hash = fields.pop("tx_hash", None) or compute_transfer_commitment(**fields)
        return BridgeProof(
            block_number=5, block_hash=keccak256(b"b"), tx_hash=tx_hash, **fields,
        )

    def test_receipts_refused_without_verifier(self):
        client = TrustedRootLightClient(ChainId.ETHEREUM)
        assert client.verify_receipt_proof(self._proof()) is False

    def test_transfer_commitment_verifier(self):
        client = TrustedRootLightClient(ChainId.ETHEREUM, receipt_verifier=verify_transfer_commitment)
        assert client.verify_receipt_proof(self._proof()) is True
        assert client.verify_receipt_proof(self._proof(tx_hash=keccak256(b"other"))) is False

    def test_commitment_covers_every_payload_field(self):
        base = self._proof().transfer_commitment
        for overrides in (
            {"source_chain": 2}, {"target_chain": 4}, {"lock_id": keccak256(b"x")},
            {"amount": 11}, {"recipient": "0xs"}, {"asset": "WBTC"},
        ):
            fields = dict(
                source_chain=1, target_chain=0, lock_id=keccak256(b"l"), amount=10,
                recipient="0xr", asset="WETH",
            )
            fields.update(overrides)
            assert compute_transfer_commitment(**fields) != base


class TestChainRegistry:

    def test_add_and_remove(self):
        events = EventLog()
        registry = ChainRegistry(AdminSet([ADMIN]), events=events, clock=lambda: 42)
        registry.add_chain(ADMIN, ChainId.SOLANA, None)
        assert registry.is_supported(ChainId.SOLANA)
        assert registry.supported_chains() == [ChainId.SOLANA]

        assert registry.remove_chain(ADMIN, ChainId.SOLANA) is True
        assert registry.remove_chain(ADMIN, ChainId.SOLANA) is False
        assert not registry.is_supported(ChainId.SOLANA)
        assert registry.to_dict()[str(int(ChainId.SOLANA))]["supported"] is False
        assert [e.name for e in events.all()] == ["ChainAdded", "ChainRemoved"]

    def test_require_supported(self):
        registry = ChainRegistry(AdminSet([ADMIN]))
        with pytest.raises(ChainNotSupported):
            registry.require_supported(ChainId.COSMOS)

    def test_non_admin_rejected(self):
        registry = ChainRegistry(AdminSet([ADMIN]))
        with pytest.raises(AuthorizationError):
            registry.add_chain(ALICE, ChainId.SOLANA, None)
        registry.add_chain(ADMIN, ChainId.SOLANA, None)
        with pytest.raises(AuthorizationError):
            registry.remove_chain(ALICE, ChainId.SOLANA)

    def test_invalid_chain_id(self):
        registry = ChainRegistry(AdminSet([ADMIN]))
        with pytest.raises(ValidationError):
            registry.add_chain(ADMIN, -1, None)

    def test_readd_replaces_light_client(self):
        registry = ChainRegistry(AdminSet([ADMIN]))
        first = TrustedRootLightClient(ChainId.SOLANA)
        second = TrustedRootLightClient(ChainId.SOLANA)
        registry.add_chain(ADMIN, ChainId.SOLANA, first)
        registry.add_chain(ADMIN, ChainId.SOLANA, second)
        assert registry.light_client_for(ChainId.SOLANA) is second


# ══════════════════════════════════════════════════════════════════════
#  SECTION 6: STORE, LOCKS & EVENTS
# ══════════════════════════════════════════════════════════════════════

class TestInMemoryBridgeStore:

    def test_nonces_increase(self):
        store = InMemoryBridgeStore()
        assert [store.next_nonce() for _ in range(3)] == [0, 1, 2]

    def test_lock_roundtrip_returns_copies(self):
        store = InMemoryBridgeStore()
        record = _lock()
        store.put_lock(record)
        fetched = store.get_lock(record.lock_id)
        assert fetched == record
        assert fetched is not record

    def test_settlement_cannot_regress(self):
        store = InMemoryBridgeStore()
        record = _lock()
        record.claimed = True
        store.put_lock(record)
        with pytest.raises(ValueError):
            store.put_lock(_lock())

    def test_identity_cannot_change(self):
        store = InMemoryBridgeStore()
        store.put_lock(_lock(amount=1_000))
        with pytest.raises(ValueError):
            store.put_lock(_lock(amount=2_000))

    def test_burns_are_write_once(self):
        store = InMemoryBridgeStore()
        burn = BurnRecord(
            burn_id=keccak256(b"burn"), sender=ALICE, amount=5, asset="WETH",
            target_chain=1, recipient="0xr", timestamp=0, block_number=0, nonce=0,
        )
        store.put_burn(burn)
        with pytest.raises(ValueError):
            store.put_burn(burn)

    def test_balances_never_negative(self):
        store = InMemoryBridgeStore()
        assert store.adjust_balance(CUSTODY, "WETH", 100) == 100
        with pytest.raises(ValueError):
            store.adjust_balance(CUSTODY, "WETH", -101)
        assert store.get_balance(CUSTODY, "WETH") == 100
        assert store.get_balance(FEES, "WETH") == 0
        with pytest.raises(KeyError):
            store.adjust_balance("bogus", "WETH", 1)

    def test_pending_helpers(self):
        store = InMemoryBridgeStore()
        store.put_lock(_lock(lock_id=keccak256(b"a"), amount=100))
        store.put_lock(_lock(lock_id=keccak256(b"b"), amount=200, target_chain=ChainId.SOLANA))
        settled = _lock(lock_id=keccak256(b"c"), amount=400)
        settled.refunded = True
        store.put_lock(settled)

        assert pending_lock_total(store, "WETH") == 300
        assert len(pending_locks(store)) == 2
        assert [r.amount for r in pending_locks(store, ChainId.SOLANA)] == [200]
        assert store.counts()["locks"] == 3

    def test_to_dict_snapshot(self):
        store = InMemoryBridgeStore()
        record = _lock(amount=100)
        store.put_lock(record)
        store.adjust_balance(CUSTODY, "WETH", 100)
        store.next_nonce()

        d = store.to_dict()
        assert d["nonce"] == 1
        assert d["locks"] == [record.to_dict()]
        assert d["burns"] == [] and d["htlcs"] == []
        assert d["balances"] == {f"{CUSTODY}:WETH": 100}

    def test_settings(self):
        store = InMemoryBridgeStore()
        assert store.load_settings() is None
        store.save_settings({"paused": True, "fee_bps": 5})
        assert store.load_settings() == {"paused": True, "fee_bps": 5}


class TestKeyedLocks:

    def test_lock_released_after_use(self):
        locks = KeyedLocks()
        with locks.hold("a"):
            assert len(locks) == 1
            with locks.hold("a"):
                assert len(locks) == 1
        assert len(locks) == 0

    def test_same_key_serializes(self):
        locks = KeyedLocks()
        inside = []
        overlap = []

        def worker():
            with locks.hold("k"):
                inside.append(1)
                overlap.append(len(inside))
                inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert max(overlap) == 1


class TestEventLog:

    def test_emit_and_filter(self):
        log = EventLog()
        log.emit(Paused(actor=ADMIN, timestamp=1))
        log.emit(Locked(
            actor=ALICE, lock_id=keccak256(b"l"), amount=1, asset="WETH",
            target_chain=1, recipient="0xr", timestamp=2,
        ))
        assert len(log) == 2
        assert [e.name for e in log.all(Locked)] == ["Locked"]

    def test_to_dict_hex_encodes_bytes(self):
        event = Locked(
            actor=ALICE, lock_id=keccak256(b"l"), amount=1, asset="WETH",
            target_chain=1, recipient="0xr", timestamp=2,
        )
        d = event.to_dict()
        assert d["event"] == "Locked"
        assert d["lock_id"] == to_hex(keccak256(b"l"))

    def test_failing_subscriber_does_not_break_emit(self):
        log = EventLog()
        seen = []

        def broken(event):
            raise RuntimeError("indexer down")

        log.subscribe(broken)
        log.subscribe(seen.append)
        log.emit(Paused(actor=ADMIN, timestamp=1))
        assert len(seen) == 1

        log.unsubscribe(seen.append)
        log.emit(Paused(actor=ADMIN, timestamp=2))
        assert len(seen) == 1
