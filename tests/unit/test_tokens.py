"""Tests for token configuration and amount conversion."""

from decimal import Decimal

import pytest

from shadowpay.core.tokens import format_amount, get_token_config, parse_amount, supported_tokens
from shadowpay.exceptions import InvalidPaymentError


class TestTokens:

    def test_lookup_case_insensitive(self):
        assert get_token_config("usdc").decimals == 6
        assert get_token_config("SOL").decimals == 9

    def test_unsupported(self):
        with pytest.raises(InvalidPaymentError):
            get_token_config("DOGE")

    def test_supported(self):
        assert {token.symbol for token in supported_tokens()} == {"SOL", "USDC", "USDT"}

    @pytest.mark.parametrize("amount,token,expected", [
        ("0.001", "SOL", 1_000_000),
        ("1", "USDC", 1_000_000),
        (Decimal("0.0000001"), "USDT", 0),
        (2, "SOL", 2_000_000_000),
        ("1.9999999", "USDC", 1_999_999),
    ])
    def test_parse_amount(self, amount, token, expected):
        assert parse_amount(amount, token) == expected

    def test_format_amount(self):
        assert format_amount(1_500_000, "USDC") == Decimal("1.5")
