"""Webhook signature verification.

The authority signs each webhook with HMAC-SHA256 over the raw request
body and sends the hex digest in the X-SHADOWPAY-SIGNATURE header.
"""

import json
from typing import Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from pydantic import ValidationError

from shadowpay.exceptions import InvalidSignatureError, VerificationError
from shadowpay.models.schemas import WebhookEvent
from shadowpay.utils.encoding import ensure_bytes

SIGNATURE_HEADER = "X-SHADOWPAY-SIGNATURE"


def compute_webhook_signature(body: Union[bytes, str], secret: str) -> str:
    """HMAC-SHA256 of the raw body, hex encoded."""
    mac = hmac.HMAC(secret.encode("utf-8"), hashes.SHA256())
    mac.update(ensure_bytes(body))
    return mac.finalize().hex()


def verify_webhook_signature(body: Union[bytes, str], signature: str, secret: str) -> bool:
    """
    Verify a webhook signature in constant time.

    Returns:
        bool: True if signature matches, False otherwise
    """
    try:
        expected = bytes.fromhex(signature)
    except (ValueError, TypeError):
        return False

    mac = hmac.HMAC(secret.encode("utf-8"), hashes.SHA256())
    mac.update(ensure_bytes(body))
    try:
        mac.verify(expected)
    except InvalidSignature:
        return False
    return True


def parse_webhook_event(body: Union[bytes, str], signature: str, secret: str) -> WebhookEvent:
    """
    Verify and parse a webhook.

    Raises:
        InvalidSignatureError: If the signature is missing or wrong
        VerificationError: If the body is not a valid webhook event
    """
    if not signature:
        raise InvalidSignatureError(f"{SIGNATURE_HEADER} header is required")
    if not verify_webhook_signature(body, signature, secret):
        raise InvalidSignatureError("Webhook signature verification failed")

    try:
        return WebhookEvent.model_validate(json.loads(ensure_bytes(body)))
    except (ValueError, ValidationError) as e:
        raise VerificationError(f"Invalid webhook event: {e}") from e
