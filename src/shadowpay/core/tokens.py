"""Supported tokens and minor-unit conversion."""

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, List, Union

from shadowpay.exceptions import InvalidPaymentError


@dataclass(frozen=True)
class TokenConfig:
    """Token metadata."""

    symbol: str
    mint: str
    decimals: int
    name: str


TOKENS: Dict[str, TokenConfig] = {
    "SOL": TokenConfig(
        symbol="SOL",
        mint="So11111111111111111111111111111111111111112",
        decimals=9,
        name="Solana",
    ),
    "USDC": TokenConfig(
        symbol="USDC",
        mint="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
        decimals=6,
        name="USD Coin",
    ),
    "USDT": TokenConfig(
        symbol="USDT",
        mint="Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",
        decimals=6,
        name="Tether USD",
    ),
}


def get_token_config(token: str) -> TokenConfig:
    """
    Look up a token by symbol (case-insensitive).

    Raises:
        InvalidPaymentError: If the token is not supported
    """
    config = TOKENS.get(token.upper())
    if config is None:
        raise InvalidPaymentError(
            f"Unsupported token: {token}. Supported: {', '.join(TOKENS)}"
        )
    return config


def parse_amount(amount: Union[str, int, Decimal], token: str) -> int:
    """
    Convert a human-readable amount to minor units, rounding down.

    Example: parse_amount("0.001", "SOL") == 1_000_000
    """
    config = get_token_config(token)
    scaled = Decimal(str(amount)) * (Decimal(10) ** config.decimals)
    return int(scaled.to_integral_value(rounding=ROUND_FLOOR))


def format_amount(minor_units: int, token: str) -> Decimal:
    """Convert minor units back to a human-readable Decimal."""
    config = get_token_config(token)
    return Decimal(minor_units) / (Decimal(10) ** config.decimals)


def supported_tokens() -> List[TokenConfig]:
    """All supported token configurations."""
    return list(TOKENS.values())
