"""Encoding and decoding utilities."""

from typing import Union


def strip_hex_prefix(hex_str: str) -> str:
    """Remove a leading '0x' if present."""
    return hex_str[2:] if hex_str.startswith(("0x", "0X")) else hex_str


def hex_to_int(hex_str: str) -> int:
    """
    Parse a hex string (with or without '0x') as an unsigned integer.

    Raises:
        ValueError: If the string is empty or not hexadecimal
    """
    cleaned = strip_hex_prefix(hex_str.strip())
    if not cleaned:
        raise ValueError("Cannot convert empty hex string")
    return int(cleaned, 16)


def int_to_hex(value: int, width: int = 64) -> str:
    """Format an unsigned integer as zero-padded hex without prefix."""
    if value < 0:
        raise ValueError("Cannot hex-encode a negative integer")
    return format(value, "x").zfill(width)


def int_to_bytes32(value: int) -> bytes:
    """
    Canonical 32-byte big-endian encoding.

    Raises:
        OverflowError: If value does not fit in 32 bytes
    """
    return value.to_bytes(32, byteorder="big")


def ensure_bytes(data: Union[bytes, str]) -> bytes:
    """
    Ensure data is in bytes format.

    Args:
        data: Bytes or string

    Returns:
        bytes: Data as bytes
    """
    if isinstance(data, bytes):
        return data
    elif isinstance(data, str):
        return data.encode('utf-8')
    else:
        raise TypeError(f"Expected bytes or str, got {type(data)}")
