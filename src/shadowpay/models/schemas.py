"""Pydantic data models for the ShadowPay authority API."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from enum import Enum

from shadowpay.utils.encoding import hex_to_int


class SettlementStatus(str, Enum):
    """Settlement status reported by access verification."""
    AUTHORIZED = "authorized"
    SETTLING = "settling"
    SETTLED = "settled"


class WebhookEventType(str, Enum):
    """Webhook event types."""
    PAYMENT_SUCCESS = "payment.success"
    PAYMENT_FAILED = "payment.failed"
    PAYMENT_REFUNDED = "payment.refunded"


class RegistrationRequest(BaseModel):
    """Request model for ShadowID auto-registration."""
    wallet_address: str = Field(..., description="Payer wallet address")
    commitment: str = Field(..., description="Sender identity commitment (decimal)")


class RegistrationResponse(BaseModel):
    """Response model for ShadowID auto-registration."""
    registered: bool = Field(default=False, description="True if newly registered")
    commitment: str = Field(..., description="Commitment held in the ShadowID tree")
    root: Optional[str] = Field(default=None, description="Tree root after registration")


class AuthorizeRequest(BaseModel):
    """Request model for instant payment authorization."""
    user_wallet: str = Field(..., description="Payer wallet")
    merchant: str = Field(..., description="Merchant receiving wallet")
    amount: int = Field(..., gt=0, description="Amount in minor units")
    payment_commitment: str = Field(..., description="Payment commitment (decimal)")
    payment_nullifier: str = Field(..., description="Payment nullifier (decimal)")


class AuthorizeResponse(BaseModel):
    """Response model for instant payment authorization."""
    commitment: str
    nullifier: str
    access_token: str
    expires_at: int = Field(..., description="Access expiry (unix seconds)")
    proof_deadline: int = Field(..., description="Advisory proof deadline (unix seconds)")


class SettleRequest(BaseModel):
    """Request model for settlement submission."""
    commitment: str
    proof: str = Field(..., description="base64(JSON proof)")
    public_signals: List[str]
    encrypted_amount: List[int] = Field(..., min_length=64, max_length=64)

    @field_validator("encrypted_amount")
    @classmethod
    def check_bytes(cls, value: List[int]) -> List[int]:
        if any(not 0 <= item <= 255 for item in value):
            raise ValueError("encrypted_amount must be a list of byte values")
        return value


class SettleResponse(BaseModel):
    """Response model for settlement submission."""
    success: bool
    signature: Optional[str] = None
    settlement_time: int = 0
    error: Optional[str] = None


class MerkleProofResponse(BaseModel):
    """
    Merkle inclusion proof as served by the ShadowID service.

    Root and siblings arrive hex-encoded and are converted to integers.
    """
    model_config = ConfigDict(populate_by_name=True)

    root: int
    siblings: List[int]
    path_indices: List[int] = Field(..., alias="pathIndices")

    @field_validator("root", mode="before")
    @classmethod
    def parse_root(cls, value):
        return hex_to_int(value) if isinstance(value, str) else value

    @field_validator("siblings", mode="before")
    @classmethod
    def parse_siblings(cls, value):
        return [hex_to_int(item) if isinstance(item, str) else item for item in value]


class AccessVerificationResponse(BaseModel):
    """Response model for merchant-side access verification."""
    authorized: bool
    reason: str = ""
    settlement_status: SettlementStatus
    commitment: Optional[str] = None


class WebhookEventData(BaseModel):
    """Payload of a webhook event."""
    tx_hash: str
    amount: int
    token: str
    recipient: str
    nullifier: str
    timestamp: int


class WebhookEvent(BaseModel):
    """Webhook event delivered by the authority to the merchant."""
    type: WebhookEventType
    data: WebhookEventData
    timestamp: int
    signature: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error body returned by the authority."""
    error: Optional[str] = None
    message: Optional[str] = None
