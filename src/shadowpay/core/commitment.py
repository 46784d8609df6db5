"""Sender commitments, payment commitments and nullifiers.

All three derivations go through an injected hash primitive ``H``:

    sender_commitment  = H(encode(wallet), secret)
    payment_commitment = H(sender, receiver, amount, encode(token), salt)
    nullifier          = H(secret, payment_commitment)

The nullifier scheme is the two-input form only. Every numeric input must
already be a scalar field element; the engine raises instead of reducing.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from shadowpay.crypto.field import (
    SCALAR_FIELD_MODULUS,
    encode_identifier,
    require_field_element,
)
from shadowpay.exceptions import FieldElementError
from shadowpay.utils.hash import FieldHash


@dataclass(frozen=True)
class PaymentCommitment:
    """An opened payment commitment."""

    value: int
    sender_commitment: int
    receiver_commitment: int
    amount: int
    token: str
    salt: int
    created_at: datetime

    def to_dict(self) -> dict:
        """Convert to dictionary (decimal strings, snarkjs style)."""
        return {
            "value": str(self.value),
            "sender_commitment": str(self.sender_commitment),
            "receiver_commitment": str(self.receiver_commitment),
            "amount": self.amount,
            "token": self.token,
            "salt": str(self.salt),
            "created_at": self.created_at.isoformat(),
        }


class CommitmentEngine:
    """
    Commitment and nullifier derivation.

    Verification is exact equality with a freshly recomputed value; the
    collision resistance of ``H`` is the only property relied upon.
    """

    def __init__(self, hash_fn: FieldHash):
        self.hash_fn = hash_fn

    @staticmethod
    def generate_secret() -> int:
        """
        Generate a payer secret.

        Returns:
            int: Uniform random scalar field element (a 256-bit draw that
            already satisfies 0 <= v < p)
        """
        return secrets.randbelow(SCALAR_FIELD_MODULUS)

    @staticmethod
    def generate_salt() -> int:
        """Generate a fresh per-payment salt."""
        return secrets.randbelow(SCALAR_FIELD_MODULUS)

    def _hash(self, **fields: int) -> int:
        inputs = [require_field_element(value, name) for name, value in fields.items()]
        return self.hash_fn(inputs)

    def sender_commitment(self, wallet: Union[str, bytes], secret: int) -> int:
        """
        Compute the sender's identity commitment H(encode(wallet), secret).

        Raises:
            FieldElementError: If secret is not a field element
        """
        return self._hash(wallet=encode_identifier(wallet), secret=secret)

    def payment_commitment(
        self,
        sender_commitment: int,
        receiver_commitment: int,
        amount: int,
        token: str,
        salt: int,
    ) -> int:
        """
        Compute H(sender, receiver, amount, encode(token), salt).

        Raises:
            FieldElementError: If any numeric input is outside [0, p)
        """
        return self._hash(
            sender_commitment=sender_commitment,
            receiver_commitment=receiver_commitment,
            amount=amount,
            token=encode_identifier(token),
            salt=salt,
        )

    def nullifier(self, secret: int, payment_commitment: int) -> int:
        """Compute H(secret, payment_commitment)."""
        return self._hash(secret=secret, payment_commitment=payment_commitment)

    def generate_commitment(
        self,
        sender_commitment: int,
        receiver_commitment: int,
        amount: int,
        token: str,
        salt: Optional[int] = None,
    ) -> PaymentCommitment:
        """
        Create an opened payment commitment, drawing a salt if none is given.
        """
        if salt is None:
            salt = self.generate_salt()
        value = self.payment_commitment(
            sender_commitment, receiver_commitment, amount, token, salt
        )
        return PaymentCommitment(
            value=value,
            sender_commitment=sender_commitment,
            receiver_commitment=receiver_commitment,
            amount=amount,
            token=token,
            salt=salt,
            created_at=datetime.now(),
        )

    def verify_commitment(
        self,
        commitment: int,
        sender_commitment: int,
        receiver_commitment: int,
        amount: int,
        token: str,
        salt: int,
    ) -> bool:
        """
        Verify that a commitment opens to the given fields.

        Returns:
            bool: True if commitment is valid, False otherwise
        """
        try:
            computed = self.payment_commitment(
                sender_commitment, receiver_commitment, amount, token, salt
            )
            return computed == commitment
        except FieldElementError:
            return False

    def verify_sender_commitment(
        self, commitment: int, wallet: Union[str, bytes], secret: int
    ) -> bool:
        """Verify a sender commitment against wallet and secret."""
        try:
            return self.sender_commitment(wallet, secret) == commitment
        except FieldElementError:
            return False

    def verify_nullifier(self, nullifier: int, secret: int, payment_commitment: int) -> bool:
        """Verify that a nullifier matches the given secret and commitment."""
        try:
            return self.nullifier(secret, payment_commitment) == nullifier
        except FieldElementError:
            return False
