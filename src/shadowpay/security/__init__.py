"""Webhook authentication."""

from shadowpay.security.webhooks import (
    SIGNATURE_HEADER,
    compute_webhook_signature,
    parse_webhook_event,
    verify_webhook_signature,
)

__all__ = [
    "SIGNATURE_HEADER",
    "compute_webhook_signature",
    "parse_webhook_event",
    "verify_webhook_signature",
]
