"""Property-based tests using Hypothesis for cryptographic invariants."""

import hashlib

from hypothesis import HealthCheck, given, settings, strategies as st

from shadowpay.core.commitment import CommitmentEngine
from shadowpay.crypto.elgamal import ElGamalCipher
from shadowpay.crypto.field import SCALAR_FIELD_MODULUS, encode_identifier
from shadowpay.crypto.nullifier import NullifierRegistry

field_elements = st.integers(min_value=0, max_value=SCALAR_FIELD_MODULUS - 1)
amounts = st.integers(min_value=1, max_value=2**63 - 1)
tokens = st.sampled_from(["SOL", "USDC", "USDT"])


def sha256_field_hash(inputs):
    digest = hashlib.sha256(bytes([len(inputs)]))
    for value in inputs:
        digest.update(value.to_bytes(32, "big"))
    return int.from_bytes(digest.digest(), "big") % SCALAR_FIELD_MODULUS


ENGINE = CommitmentEngine(sha256_field_hash)
CIPHER = ElGamalCipher(max_search_amount=50_000)
KEYPAIR = CIPHER.generate_keypair()


class TestCommitmentProperties:
    """Property-based tests for commitment invariants."""

    @given(field_elements, field_elements, amounts, tokens, field_elements)
    @settings(max_examples=100)
    def test_commitment_deterministic(self, sender, receiver, amount, token, salt):
        """Property: same opening produces the same commitment."""
        first = ENGINE.payment_commitment(sender, receiver, amount, token, salt)
        second = ENGINE.payment_commitment(sender, receiver, amount, token, salt)
        assert first == second
        assert 0 <= first < SCALAR_FIELD_MODULUS

    @given(field_elements, amounts, tokens)
    @settings(max_examples=50)
    def test_fresh_salts_unlinkable(self, sender, amount, token):
        """Property: two payments with identical fields differ by salt alone."""
        first = ENGINE.generate_commitment(sender, 1, amount, token)
        second = ENGINE.generate_commitment(sender, 1, amount, token)
        assert first.value != second.value

    @given(field_elements, field_elements, field_elements)
    @settings(max_examples=100)
    def test_nullifier_binds_commitment(self, secret, commitment_a, commitment_b):
        """Property: distinct commitments give distinct nullifiers."""
        if commitment_a == commitment_b:
            return
        assert ENGINE.nullifier(secret, commitment_a) != ENGINE.nullifier(secret, commitment_b)

    @given(st.text(min_size=1, max_size=80))
    @settings(max_examples=100)
    def test_identifier_encoding_in_field(self, identifier):
        """Property: every identifier encodes into [0, p)."""
        value = encode_identifier(identifier)
        assert 0 <= value < SCALAR_FIELD_MODULUS
        assert value == encode_identifier(identifier.encode("utf-8"))


class TestElGamalProperties:
    """Property-based tests for ElGamal."""

    @given(st.integers(min_value=0, max_value=50_000))
    @settings(max_examples=30, deadline=None, suppress_health_check=[HealthCheck.too_slow])
    def test_decrypt_inverts_encrypt(self, amount):
        """Property: decrypt(encrypt(m)) == m within the search bound."""
        ciphertext = CIPHER.encrypt(amount, KEYPAIR.public_key)
        assert CIPHER.decrypt(ciphertext, KEYPAIR.private_key) == amount


class TestNullifierProperties:
    """Property-based tests for the nullifier registry."""

    @given(st.lists(field_elements, min_size=1, max_size=30))
    @settings(max_examples=50)
    def test_registry_only_grows(self, nullifiers):
        """Property: the accepted set size equals the number of distinct nullifiers."""
        registry = NullifierRegistry()
        sizes = []
        for nullifier in nullifiers:
            if not registry.is_spent(nullifier):
                registry.register(nullifier, 0)
            sizes.append(registry.size)

        assert sizes == sorted(sizes)
        assert registry.size == len(set(nullifiers))
