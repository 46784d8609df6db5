"""Pytest configuration and fixtures."""

import hashlib
import os
import sys
import tempfile
import threading
import time
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from shadowpay.config import ShadowPaySettings
from shadowpay.core.circuit import MerkleProof
from shadowpay.core.commitment import CommitmentEngine
from shadowpay.core.prover import Groth16Proof, ProofResult
from shadowpay.crypto.elgamal import ElGamalCipher
from shadowpay.crypto.field import SCALAR_FIELD_MODULUS
from shadowpay.exceptions import ReplayError
from shadowpay.models.schemas import AuthorizeResponse, RegistrationResponse, SettleResponse
from shadowpay.storage.database import PaymentStore

TEST_MERKLE_DEPTH = 20
TEST_SEARCH_BOUND = 100_000


class Sha256FieldHash:
    """Deterministic stand-in for Poseidon: SHA-256 of the inputs, mod p."""

    def __init__(self):
        self.calls = 0

    def __call__(self, inputs):
        self.calls += 1
        digest = hashlib.sha256(len(inputs).to_bytes(1, "big"))
        for value in inputs:
            digest.update(int(value).to_bytes(32, "big"))
        return int.from_bytes(digest.digest(), "big") % SCALAR_FIELD_MODULUS


class FakeAuthority:
    """In-memory authority with the AuthorityClient call surface."""

    def __init__(self):
        self.registered = {}
        self.nullifiers = set()
        self.tokens = {}
        self.revoked = []
        self.settled = []
        self.register_calls = 0
        self.commitments = set()
        self.settle_success = True
        self.settle_error = None
        self.merkle_error = None
        self._lock = threading.Lock()

    def register(self, wallet_address, commitment):
        self.register_calls += 1
        self.commitments.add(commitment)
        newly = wallet_address not in self.registered
        self.registered[wallet_address] = commitment
        return RegistrationResponse(registered=newly, commitment=str(commitment), root="ab" * 32)

    def authorize(self, api_key, user_wallet, merchant_wallet, amount,
                  payment_commitment, payment_nullifier):
        with self._lock:
            if payment_nullifier in self.nullifiers:
                raise ReplayError("Nullifier already used", nullifier=payment_nullifier)
            self.nullifiers.add(payment_nullifier)
            token = f"access-{len(self.tokens) + 1}"
            self.tokens[token] = payment_commitment
        now = int(time.time())
        return AuthorizeResponse(
            commitment=str(payment_commitment),
            nullifier=str(payment_nullifier),
            access_token=token,
            expires_at=now + 3600,
            proof_deadline=now + 60,
        )

    def get_merkle_proof(self, sender_commitment):
        if self.merkle_error is not None:
            raise self.merkle_error
        return MerkleProof(
            root=sender_commitment ^ 1,
            siblings=[i + 1 for i in range(TEST_MERKLE_DEPTH)],
            path_indices=[i % 2 for i in range(TEST_MERKLE_DEPTH)],
        )

    def settle(self, commitment, proof, encrypted_amount):
        if self.settle_error is not None:
            raise self.settle_error
        if not self.settle_success:
            return SettleResponse(success=False, error="Proof rejected")
        self.settled.append((commitment, proof, encrypted_amount))
        return SettleResponse(
            success=True, signature=f"sig-{len(self.settled)}", settlement_time=1234
        )

    def is_access_valid(self, token):
        return token in self.tokens and token not in self.revoked


class FakeProver:
    """Proving oracle that records inputs and can be held on an event."""

    def __init__(self, gate=None, valid=True, error=None):
        self.gate = gate
        self.valid = valid
        self.error = error
        self.inputs = []

    def prove(self, inputs):
        if self.gate is not None:
            self.gate.wait(timeout=10)
        if self.error is not None:
            raise self.error
        self.inputs.append(inputs)
        return ProofResult(
            proof=Groth16Proof(
                pi_a=["1", "2", "1"],
                pi_b=[["1", "2"], ["3", "4"], ["1", "0"]],
                pi_c=["5", "6", "1"],
            ),
            public_signals=[str(inputs.shadowid_root), str(inputs.max_amount)],
        )

    def verify(self, result):
        return self.valid


@pytest.fixture
def field_hash():
    """Fixture providing the deterministic hash stub."""
    return Sha256FieldHash()


@pytest.fixture
def engine(field_hash):
    return CommitmentEngine(field_hash)


@pytest.fixture(scope="session")
def cipher():
    """Fixture providing a cipher with a small discrete-log bound."""
    return ElGamalCipher(max_search_amount=TEST_SEARCH_BOUND)


@pytest.fixture(scope="session")
def keypair(cipher):
    return cipher.generate_keypair()


@pytest.fixture
def settings():
    """Fixture providing merchant settings isolated from the environment."""
    return ShadowPaySettings(
        _env_file=None,
        merchant_key="test-api-key",
        merchant_wallet="Merchant1111111111111111111111111111111111",
        max_search_amount=TEST_SEARCH_BOUND,
        merkle_depth=TEST_MERKLE_DEPTH,
        max_workers=2,
    )


@pytest.fixture
def store():
    """Create a temporary payment store for testing."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    payment_store = PaymentStore(f"sqlite:///{path}", history_limit=5)
    payment_store.create_tables()
    yield payment_store
    payment_store.engine.dispose()
    os.unlink(path)


@pytest.fixture
def authority():
    return FakeAuthority()


@pytest.fixture
def prover():
    return FakeProver()


@pytest.fixture
def make_prover():
    """Fixture providing the FakeProver factory."""
    return FakeProver
