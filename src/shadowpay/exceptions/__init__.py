"""Custom exceptions for the ShadowPay protocol."""

from typing import Any, Optional


class ShadowPayException(Exception):
    """Base exception for all ShadowPay errors."""
    pass


class ConfigurationError(ShadowPayException):
    """Raised when required settings are missing or invalid."""
    pass


# Cryptography Errors
class CryptoError(ShadowPayException):
    """Base exception for cryptographic errors."""
    pass


class InvalidCurvePointError(CryptoError):
    """Raised when a point is not a valid BN254 G1 point."""
    pass


class RangeError(CryptoError):
    """
    Base exception for range violations.

    Always fatal. Never retried internally.
    """
    pass


class AmountOutOfRangeError(RangeError):
    """
    Raised when an amount cannot be recovered from a ciphertext.

    Decrypting with the wrong private key raises this same error: the
    recovered point matches no candidate in the search range, which is
    indistinguishable from an amount above the search bound.
    """

    def __init__(self, message: str, max_amount: Optional[int] = None):
        super().__init__(message)
        self.max_amount = max_amount


class FieldElementError(RangeError):
    """Raised when a value is outside the scalar field [0, p)."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class CircuitInputOutOfFieldError(FieldElementError):
    """Raised when a circuit input is outside the scalar field."""
    pass


# Replay Errors
class ReplayError(ShadowPayException):
    """Raised when a nullifier has already been seen. Never retry with it."""

    def __init__(self, message: str, nullifier: Optional[int] = None):
        super().__init__(message)
        self.nullifier = nullifier


# Collaborator Errors
class CollaboratorError(ShadowPayException):
    """Base exception for failures talking to external services."""
    pass


class NetworkError(CollaboratorError):
    """Raised when a collaborator could not be reached."""
    pass


class AuthorityError(CollaboratorError):
    """Raised when the payment authority rejects a request."""

    def __init__(self, message: str, status_code: int = 0, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthenticationError(AuthorityError):
    """Raised when the merchant API key is rejected."""
    pass


# Proof Errors
class ProofError(ShadowPayException):
    """Base exception for proof-related errors."""
    pass


class ProofGenerationError(ProofError):
    """Raised when the proving oracle fails or rejects its inputs."""
    pass


class MerkleProofError(ProofError):
    """Raised when a Merkle inclusion proof is missing or malformed."""
    pass


# Verification Errors
class VerificationError(ShadowPayException):
    """Base exception for failed signature or proof checks."""
    pass


class InvalidSignatureError(VerificationError):
    """Raised when a webhook signature does not verify."""
    pass


class InvalidProofError(VerificationError):
    """Raised when a generated proof does not verify."""
    pass


# Payment Errors
class PaymentError(ShadowPayException):
    """Base exception for payment orchestration errors."""
    pass


class InvalidPaymentError(PaymentError):
    """Raised when payment options are invalid."""
    pass


class InvalidStateTransitionError(PaymentError):
    """Raised when a session is moved along an illegal transition."""
    pass
