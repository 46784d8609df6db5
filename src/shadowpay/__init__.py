"""Main package initialization."""

__version__ = "0.1.0"
__author__ = "ShadowPay Team"
__description__ = "ShadowPay: private payments with instant authorization and deferred ZK settlement"

from .config import ShadowPaySettings
from .core.commitment import CommitmentEngine, PaymentCommitment
from .core.circuit import ProofInputAssembler, CircuitInputs
from .core.orchestrator import (
    PaymentOrchestrator,
    PayerIdentity,
    PaymentResult,
    PendingSettlement,
    SessionStatus,
)
from .crypto.elgamal import ElGamalCipher, ElGamalKeypair, EncryptedAmount
from .utils.hash import PoseidonHash

__all__ = [
    "ShadowPaySettings",
    "CommitmentEngine",
    "PaymentCommitment",
    "ProofInputAssembler",
    "CircuitInputs",
    "PaymentOrchestrator",
    "PayerIdentity",
    "PaymentResult",
    "PendingSettlement",
    "SessionStatus",
    "ElGamalCipher",
    "ElGamalKeypair",
    "EncryptedAmount",
    "PoseidonHash",
]
