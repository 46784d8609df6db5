"""Mapping of opaque identifiers into the BN254 scalar field.

Wallet addresses, token symbols and similar identifiers become field
elements through a single canonical encoding: the first
``IDENTIFIER_WINDOW`` bytes read as a big-endian integer, reduced modulo
the scalar field prime. Every path that turns an identifier into a field
element (commitments, receiver commitment, circuit inputs) goes through
``encode_identifier`` so the same identifier always yields the same value.
"""

from typing import Union

from py_ecc.optimized_bn128 import curve_order

from shadowpay.exceptions import FieldElementError


# BN254 scalar field modulus (order of G1)
SCALAR_FIELD_MODULUS: int = curve_order

# One byte less than the field's byte length
IDENTIFIER_WINDOW = 31


def encode_identifier(identifier: Union[bytes, str]) -> int:
    """
    Encode an identifier as a scalar field element.

    Args:
        identifier: Raw bytes, or a string encoded as UTF-8

    Returns:
        int: Field element in [0, p)
    """
    if isinstance(identifier, str):
        identifier = identifier.encode("utf-8")
    value = int.from_bytes(identifier[:IDENTIFIER_WINDOW], byteorder="big")
    return value % SCALAR_FIELD_MODULUS


def is_field_element(value: object) -> bool:
    """Check that value is an int in [0, p)."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return 0 <= value < SCALAR_FIELD_MODULUS


def require_field_element(value: object, name: str = "value") -> int:
    """
    Return value unchanged if it is a field element.

    Raises:
        FieldElementError: If value is not an int in [0, p)
    """
    if not is_field_element(value):
        raise FieldElementError(
            f"{name} is not a scalar field element: {value!r}", field=name
        )
    return value  # type: ignore[return-value]
