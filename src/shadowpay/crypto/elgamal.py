"""Additively homomorphic ElGamal over the BN254 G1 group.

Amounts are encrypted "in the exponent":

    c1 = r*G
    c2 = amount*G + r*P

Decryption yields ``amount*G``; turning that back into an integer is a
discrete-log problem, solved here by a bounded baby-step/giant-step
search. ``MAX_SEARCH_AMOUNT`` is the policy bound: any amount above it is
undecryptable and raises ``AmountOutOfRangeError``. The search costs
O(sqrt(max_amount)) group operations per decryption after an
O(sqrt(max_amount)) table build per cipher instance.

Curve arithmetic is delegated to py_ecc's optimized (Jacobian) BN128
implementation.
"""

import math
import secrets
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from py_ecc.optimized_bn128 import (
    FQ,
    G1,
    Z1,
    add,
    b,
    curve_order,
    field_modulus,
    is_inf,
    is_on_curve,
    multiply,
    neg,
    normalize,
)

from shadowpay.exceptions import AmountOutOfRangeError, InvalidCurvePointError
from shadowpay.utils.encoding import hex_to_int, int_to_bytes32, int_to_hex


MAX_SEARCH_AMOUNT = 10_000_000

# G1 group order
GROUP_ORDER: int = curve_order

# G1 base field modulus
BASE_FIELD_MODULUS: int = field_modulus


@dataclass(frozen=True)
class CurvePoint:
    """
    Affine point on BN254 G1.

    The group identity is encoded as (0, 0), which is not on the curve.
    """

    x: int
    y: int

    @classmethod
    def identity(cls) -> "CurvePoint":
        return cls(0, 0)

    @property
    def is_identity(self) -> bool:
        return self.x == 0 and self.y == 0

    def validate(self) -> "CurvePoint":
        """
        Check coordinates and curve membership.

        Raises:
            InvalidCurvePointError: If the point is not on G1
        """
        for name, coordinate in (("x", self.x), ("y", self.y)):
            if isinstance(coordinate, bool) or not isinstance(coordinate, int):
                raise InvalidCurvePointError(f"Coordinate {name} must be an int")
            if not 0 <= coordinate < BASE_FIELD_MODULUS:
                raise InvalidCurvePointError(f"Coordinate {name} outside base field")
        if self.is_identity:
            return self
        if not is_on_curve(self.to_jacobian(), b):
            raise InvalidCurvePointError(f"Point ({self.x:x}, {self.y:x}) is not on BN254 G1")
        return self

    def to_jacobian(self) -> Tuple[FQ, FQ, FQ]:
        if self.is_identity:
            return Z1
        return (FQ(self.x), FQ(self.y), FQ.one())

    @classmethod
    def from_jacobian(cls, point) -> "CurvePoint":
        if is_inf(point):
            return cls.identity()
        x, y = normalize(point)
        return cls(int(x.n), int(y.n))

    def to_bytes(self) -> bytes:
        """Canonical 32-byte big-endian x coordinate."""
        return int_to_bytes32(self.x)

    def to_dict(self) -> dict:
        return {"x": int_to_hex(self.x), "y": int_to_hex(self.y)}

    @classmethod
    def from_dict(cls, data: dict) -> "CurvePoint":
        try:
            point = cls(hex_to_int(data["x"]), hex_to_int(data["y"]))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidCurvePointError(f"Malformed point: {e}") from e
        return point.validate()


@dataclass(frozen=True)
class ElGamalKeypair:
    """ElGamal keypair. The private scalar is never shown by repr()."""

    private_key: int = field(repr=False)
    public_key: CurvePoint

    def to_dict(self) -> dict:
        """Serialize the public half only."""
        return {"public_key": self.public_key.to_dict()}


@dataclass(frozen=True)
class EncryptedAmount:
    """ElGamal ciphertext (c1, c2)."""

    c1: CurvePoint
    c2: CurvePoint

    ENCODED_SIZE = 64

    def validate(self) -> "EncryptedAmount":
        self.c1.validate()
        self.c2.validate()
        return self

    def to_bytes(self) -> bytes:
        """
        Settlement wire form: c1.x || c2.x, 32 bytes each.
        """
        return self.c1.to_bytes() + self.c2.to_bytes()

    def to_dict(self) -> dict:
        return {"c1": self.c1.to_dict(), "c2": self.c2.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "EncryptedAmount":
        try:
            return cls(CurvePoint.from_dict(data["c1"]), CurvePoint.from_dict(data["c2"]))
        except (KeyError, TypeError) as e:
            raise InvalidCurvePointError(f"Malformed ciphertext: {e}") from e


def _affine_key(point) -> Tuple[int, int]:
    if is_inf(point):
        return (0, 0)
    x, y = normalize(point)
    return (int(x.n), int(y.n))


class DiscreteLogTable:
    """
    Baby-step/giant-step solver for m*G with 0 <= m <= max_amount.

    Baby steps j*G for j < step are stored by affine coordinates; a lookup
    walks giant strides of -step*G from the target point.
    """

    def __init__(self, max_amount: int = MAX_SEARCH_AMOUNT):
        if max_amount < 0:
            raise ValueError("max_amount must be non-negative")
        self.max_amount = max_amount
        self.step = math.isqrt(max_amount) + 1
        self._baby_steps: Dict[Tuple[int, int], int] = {}

        point = Z1
        for j in range(self.step):
            self._baby_steps.setdefault(_affine_key(point), j)
            point = add(point, G1)

        self._giant_stride = neg(multiply(G1, self.step))

    def solve(self, point) -> int:
        """
        Recover m from m*G.

        Raises:
            AmountOutOfRangeError: If m is not in [0, max_amount]
        """
        gamma = point
        for i in range(self.step + 1):
            j = self._baby_steps.get(_affine_key(gamma))
            if j is not None:
                amount = i * self.step + j
                if amount <= self.max_amount:
                    return amount
                break
            gamma = add(gamma, self._giant_stride)

        raise AmountOutOfRangeError(
            f"Could not recover amount: outside [0, {self.max_amount}] or wrong key",
            max_amount=self.max_amount,
        )


class ElGamalCipher:
    """
    ElGamal key generation, encryption and bounded decryption.

    Holds no key material. The only state is the discrete-log table,
    which depends on max_search_amount alone and is read-only after
    construction, so one cipher can be shared across threads.
    """

    def __init__(self, max_search_amount: int = MAX_SEARCH_AMOUNT):
        self.max_search_amount = max_search_amount
        self._table = DiscreteLogTable(max_search_amount)

    @staticmethod
    def _random_scalar() -> int:
        while True:
            scalar = int.from_bytes(secrets.token_bytes(32), byteorder="big") % GROUP_ORDER
            if scalar != 0:
                return scalar

    def generate_keypair(self) -> ElGamalKeypair:
        """
        Generate a keypair with sk uniform in [1, n-1] and pk = sk*G.
        """
        private_key = self._random_scalar()
        public_key = CurvePoint.from_jacobian(multiply(G1, private_key))
        return ElGamalKeypair(private_key=private_key, public_key=public_key)

    def encrypt_with_randomness(
        self, amount: int, public_key: CurvePoint, randomness: Optional[int] = None
    ) -> Tuple[EncryptedAmount, int]:
        """
        Encrypt amount and also return the ephemeral scalar r.

        r is needed as a private witness by the payment circuit. A fresh r
        is drawn unless one is supplied; callers must never reuse one
        under the same key.

        Raises:
            AmountOutOfRangeError: If amount is negative
            InvalidCurvePointError: If public_key is not a valid point
        """
        if amount < 0:
            raise AmountOutOfRangeError("Amount must be non-negative")
        public_key.validate()
        if public_key.is_identity:
            raise InvalidCurvePointError("Public key cannot be the identity")

        r = randomness if randomness is not None else self._random_scalar()
        r %= GROUP_ORDER

        c1 = multiply(G1, r)
        message = multiply(G1, amount % GROUP_ORDER)
        shared_secret = multiply(public_key.to_jacobian(), r)
        c2 = add(message, shared_secret)

        ciphertext = EncryptedAmount(
            c1=CurvePoint.from_jacobian(c1),
            c2=CurvePoint.from_jacobian(c2),
        )
        return ciphertext, r

    def encrypt(self, amount: int, public_key: CurvePoint) -> EncryptedAmount:
        """Encrypt amount under public_key with a fresh ephemeral key."""
        ciphertext, _ = self.encrypt_with_randomness(amount, public_key)
        return ciphertext

    def decrypt(self, ciphertext: EncryptedAmount, private_key: int) -> int:
        """
        Decrypt: M = c2 - sk*c1, then recover m from M = m*G.

        Raises:
            InvalidCurvePointError: If either ciphertext point is invalid
            AmountOutOfRangeError: If m > max_search_amount, or the key is
                wrong (the two cases are indistinguishable)
        """
        ciphertext.validate()

        shared_secret = multiply(ciphertext.c1.to_jacobian(), private_key % GROUP_ORDER)
        message = add(ciphertext.c2.to_jacobian(), neg(shared_secret))

        if is_inf(message):
            return 0
        return self._table.solve(message)
