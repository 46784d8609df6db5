"""Storage layer for payment history and spent nullifiers."""

from shadowpay.storage.database import PaymentRecord, PaymentStore, SpentNullifier

__all__ = ["PaymentRecord", "PaymentStore", "SpentNullifier"]
