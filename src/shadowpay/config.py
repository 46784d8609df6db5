"""Runtime settings, read from SHADOWPAY_* environment variables or .env."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shadowpay.core.circuit import DEFAULT_MERKLE_DEPTH
from shadowpay.crypto.elgamal import MAX_SEARCH_AMOUNT
from shadowpay.exceptions import ConfigurationError


DEFAULT_API_URL = "https://shadow.radr.fun"


class ShadowPaySettings(BaseSettings):
    """
    Central configuration for the payment client.

    Example:
        SHADOWPAY_MERCHANT_KEY=... SHADOWPAY_MERCHANT_WALLET=... python app.py
    """

    model_config = SettingsConfigDict(
        env_prefix="SHADOWPAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Authority
    api_url: str = DEFAULT_API_URL
    merchant_key: Optional[str] = None
    merchant_wallet: Optional[str] = None
    webhook_secret: Optional[str] = None
    request_timeout: float = Field(default=15.0, gt=0)

    # Cryptography
    max_search_amount: int = Field(default=MAX_SEARCH_AMOUNT, ge=0)
    merkle_depth: int = Field(default=DEFAULT_MERKLE_DEPTH, gt=0)

    # Proving
    circuit_wasm: Path = Path("circuits/shadowpay-elgamal.wasm")
    circuit_zkey: Path = Path("circuits/shadowpay-elgamal_final.zkey")
    verification_key: Optional[Path] = Path("circuits/shadowpay-elgamal_verification_key.json")
    snarkjs_bin: str = "snarkjs"
    proof_timeout: float = Field(default=120.0, gt=0)
    verify_proof_before_settle: bool = True

    # Orchestration
    max_workers: int = Field(default=4, gt=0)
    database_url: Optional[str] = None
    history_limit: int = Field(default=100, gt=0)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    def require_merchant(self) -> None:
        """
        Raises:
            ConfigurationError: If merchant key or wallet is missing
        """
        missing = [
            name for name in ("merchant_key", "merchant_wallet")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(
                f"Missing settings: {', '.join('SHADOWPAY_' + name.upper() for name in missing)}"
            )

    def require_webhook_secret(self) -> str:
        """
        Raises:
            ConfigurationError: If the webhook secret is missing
        """
        if not self.webhook_secret:
            raise ConfigurationError("Missing settings: SHADOWPAY_WEBHOOK_SECRET")
        return self.webhook_secret
