"""
Shared fixtures for the bridge test suite.

``BridgeHarness`` wires a BridgeEngine to an in-memory token, a fake clock
and a TrustedRootLightClient following Ethereum, and builds proofs whose
receipt roots it attests on demand. Proof leaves are transfer commitments,
checked by the light client's verify_transfer_commitment.
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from lcbridge.bridge import (
    AdminSet,
    BridgeEngine,
    BridgeProof,
    ChainId,
    InMemoryBridgeStore,
    TrustedRootLightClient,
    build_merkle_proof,
    build_merkle_root,
    compute_transfer_commitment,
    verify_transfer_commitment,
)
from lcbridge.crypto import keccak256
from lcbridge.tokens import AssetRegistry, BridgeToken

ADMIN = "0xAdmin"
ALICE = "0xAlice"
BOB = "0xBob"
CAROL = "0xCarol"

LOCAL = ChainId.LOCAL
REMOTE = ChainId.ETHEREUM

START_TIME = 1_700_000_000


class FakeClock:
    """Deterministic unix-seconds clock."""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


class BridgeHarness:

    def __init__(
        self,
        fee_bps: int = 10,
        token_cls=BridgeToken,
        store=None,
        hashlock_algorithm: str = "keccak256",
        receipt_verifier=verify_transfer_commitment,
    ):
        self.clock = FakeClock()
        self.store = store if store is not None else InMemoryBridgeStore()
        self.assets = AssetRegistry()
        self.token = self.assets.deploy(token_cls("Wrapped Ether", "WETH", decimals=18))
        self.light_client = TrustedRootLightClient(REMOTE, receipt_verifier=receipt_verifier)
        self.engine = BridgeEngine(
            self.assets,
            AdminSet([ADMIN]),
            local_chain_id=LOCAL,
            fee_bps=fee_bps,
            store=self.store,
            clock=self.clock,
            hashlock_algorithm=hashlock_algorithm,
        )
        self.engine.add_supported_chain(ADMIN, REMOTE, self.light_client)
        self.custody = self.engine.custody_address
        self._block = 18_000_000
        self._tx = 0

    # ── Funding ───────────────────────────────────────────────────────

    def fund(self, account: str, amount: int) -> None:
        """Mint ``amount`` to ``account`` and approve custody to pull it."""
        self.token.mint(account, amount)
        self.token.approve(account, self.custody, self.token.allowance(account, self.custody) + amount)

    def seed_liquidity(self, amount: int) -> None:
        """Pre-fund custody so mints can release value."""
        self.token.mint(self.custody, amount)

    def lock(self, sender: str = ALICE, amount: int = 1_000_000, target_chain: int = REMOTE,
             recipient: str = "0xRemoteRecipient") -> bytes:
        self.fund(sender, amount)
        return self.engine.lock(sender, amount, target_chain, recipient, "WETH")

    # ── Proofs ────────────────────────────────────────────────────────

    def make_proof(
        self,
        lock_id: bytes = None,
        amount: int = 1_000_000,
        recipient: str = BOB,
        source_chain: int = REMOTE,
        target_chain: int = LOCAL,
        asset: str = "WETH",
        attest: bool = True,
        light_client: TrustedRootLightClient = None,
        tx_hash: bytes = None,
    ) -> BridgeProof:
        """
        Build a proof whose tx hash is leaf 0 of a five-leaf receipt tree.

        The tx hash defaults to the transfer commitment of the payload. The
        header carrying the root is attested unless ``attest`` is False.
        """
        self._tx += 1
        if lock_id is None:
            lock_id = keccak256(b"remote-lock-%d" % self._tx)
        if tx_hash is None:
            tx_hash = compute_transfer_commitment(
                source_chain, target_chain, lock_id, amount, recipient, asset
            )
        leaves = [tx_hash] + [keccak256(b"receipt-%d-%d" % (self._tx, i)) for i in range(4)]
        root = build_merkle_root(leaves)
        block_number = self._block
        self._block += 1
        block_hash = keccak256(b"block-%d" % block_number)
        if attest:
            (light_client or self.light_client).attest_header(block_number, block_hash, root)
        return BridgeProof(
            source_chain=source_chain,
            target_chain=target_chain,
            lock_id=lock_id,
            amount=amount,
            recipient=recipient,
            asset=asset,
            block_number=block_number,
            block_hash=block_hash,
            tx_hash=tx_hash,
            merkle_proof=build_merkle_proof(leaves, 0),
            receipt_root=root,
        )

    def attest(self, proof: BridgeProof) -> bool:
        return self.light_client.attest_header(proof.block_number, proof.block_hash, proof.receipt_root)


@pytest.fixture
def harness():
    return BridgeHarness()


@pytest.fixture
def make_harness():
    return BridgeHarness
