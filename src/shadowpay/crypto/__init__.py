"""Field encoding, ElGamal encryption and nullifier tracking."""

from shadowpay.crypto.elgamal import CurvePoint, ElGamalCipher, ElGamalKeypair, EncryptedAmount
from shadowpay.crypto.field import SCALAR_FIELD_MODULUS, encode_identifier
from shadowpay.crypto.nullifier import NullifierRegistry, NullifierRecord

__all__ = [
    "CurvePoint",
    "ElGamalCipher",
    "ElGamalKeypair",
    "EncryptedAmount",
    "SCALAR_FIELD_MODULUS",
    "encode_identifier",
    "NullifierRegistry",
    "NullifierRecord",
]
