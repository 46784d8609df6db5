"""Payment orchestration: instant authorization, deferred settlement.

A payment runs on two paths:

    Caller (synchronous)                 Background (executor thread)
    --------------------                 ----------------------------
    IDLE -> REGISTERING                  AUTHORIZED -> PROOF_GENERATING
         -> AUTHORIZING                     encrypt amount (ElGamal)
         -> AUTHORIZED                      fetch Merkle proof
    return access token +                   assemble circuit inputs
           PendingSettlement                prove, verify
                                            settle
                                         -> SETTLED | FAILED

``pay()`` returns as soon as the authority grants access; it never waits
on proof generation. The outcome of the background path is observable
only through the returned ``PendingSettlement`` and the optional
``on_settled`` / ``on_failed`` callbacks, each fired at most once.
Background failures never propagate into the caller's thread.

Settlement failure does not revoke the access token. Revocation is a
merchant decision taken through the authority, usually once
``proof_deadline`` has passed.
"""

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError

from shadowpay.api.client import AuthorityClient
from shadowpay.config import ShadowPaySettings
from shadowpay.core.circuit import ProofInputAssembler, ProofWitness
from shadowpay.core.commitment import CommitmentEngine
from shadowpay.core.prover import CircuitArtifacts, ProofResult, ProvingOracle, SnarkjsProver
from shadowpay.core.tokens import get_token_config
from shadowpay.crypto.elgamal import ElGamalCipher, ElGamalKeypair
from shadowpay.crypto.field import encode_identifier, is_field_element
from shadowpay.crypto.nullifier import NullifierRegistry
from shadowpay.exceptions import (
    AuthorityError,
    InvalidPaymentError,
    InvalidProofError,
    InvalidStateTransitionError,
    ProofError,
    ProofGenerationError,
    ShadowPayException,
    VerificationError,
)
from shadowpay.models.schemas import WebhookEvent
from shadowpay.security.webhooks import parse_webhook_event
from shadowpay.storage.database import PaymentStore
from shadowpay.utils.hash import FieldHash, PoseidonHash

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    """Payment session states."""
    IDLE = "idle"
    REGISTERING = "registering"
    AUTHORIZING = "authorizing"
    AUTHORIZED = "authorized"
    PROOF_GENERATING = "proof_generating"
    SETTLED = "settled"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SessionStatus.SETTLED, SessionStatus.FAILED})

_TRANSITIONS: Dict[SessionStatus, Set[SessionStatus]] = {
    SessionStatus.IDLE: {SessionStatus.REGISTERING, SessionStatus.AUTHORIZING},
    SessionStatus.REGISTERING: {SessionStatus.AUTHORIZING, SessionStatus.FAILED},
    SessionStatus.AUTHORIZING: {SessionStatus.AUTHORIZED, SessionStatus.FAILED},
    SessionStatus.AUTHORIZED: {SessionStatus.PROOF_GENERATING},
    SessionStatus.PROOF_GENERATING: {SessionStatus.SETTLED, SessionStatus.FAILED},
    SessionStatus.SETTLED: set(),
    SessionStatus.FAILED: set(),
}


@dataclass
class PayerIdentity:
    """
    A payer: wallet, identity secret and ElGamal keypair.

    The caller owns and persists this object. The orchestrator reads the
    wallet, the secret and the public key; the ElGamal private key is
    never read outside its owner.
    """

    wallet: str
    secret: int = field(repr=False)
    elgamal: ElGamalKeypair = field(repr=False)

    @classmethod
    def generate(cls, wallet: str, cipher: ElGamalCipher) -> "PayerIdentity":
        """Create a payer with a fresh secret and keypair."""
        return cls(
            wallet=wallet,
            secret=CommitmentEngine.generate_secret(),
            elgamal=cipher.generate_keypair(),
        )


@dataclass(frozen=True)
class SettlementReceipt:
    """Proof that a payment was settled."""

    session_id: str
    commitment: int
    signature: Optional[str]
    settlement_time: int


@dataclass
class PaymentSession:
    """The orchestrator's unit of work for one payment."""

    session_id: str
    amount: int
    token: str
    sender_commitment: Optional[int] = None
    payment_commitment: Optional[int] = None
    nullifier: Optional[int] = None
    status: SessionStatus = SessionStatus.IDLE
    access_token: Optional[str] = field(default=None, repr=False)
    expires_at: Optional[int] = None
    proof_deadline: Optional[int] = None
    receipt: Optional[SettlementReceipt] = None
    error: Optional[BaseException] = None
    created_at: datetime = field(default_factory=datetime.now)
    history: List[SessionStatus] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def transition(self, target: SessionStatus) -> None:
        """
        Move to target state.

        Raises:
            InvalidStateTransitionError: If the move is not allowed
        """
        with self._lock:
            if target not in _TRANSITIONS[self.status]:
                raise InvalidStateTransitionError(
                    f"Session {self.session_id}: {self.status.value} -> {target.value} not allowed"
                )
            self.history.append(self.status)
            self.status = target

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES


class PendingSettlement:
    """
    Handle on a settlement running in the background.

    Waiting is always optional. ``stop_waiting()`` detaches the caller's
    callbacks; it does not abort a settlement already submitted.
    """

    def __init__(self, session: PaymentSession):
        self.session = session
        self._future: Optional[Future] = None
        self._detached = threading.Event()

    def _attach(self, future: Future) -> None:
        self._future = future

    @property
    def proof_deadline(self) -> Optional[int]:
        return self.session.proof_deadline

    @property
    def detached(self) -> bool:
        return self._detached.is_set()

    def done(self) -> bool:
        """True once the session is SETTLED or FAILED."""
        return self._future is not None and self._future.done()

    def result(self, timeout: Optional[float] = None) -> SettlementReceipt:
        """
        Wait for the receipt.

        Raises:
            TimeoutError: If the settlement is still running after timeout
            ShadowPayException: The error that failed the settlement
        """
        try:
            return self._future.result(timeout=timeout)
        except FutureTimeoutError as e:
            raise TimeoutError(f"Settlement of {self.session.session_id} still pending") from e

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        """Wait for completion and return the failure, if any."""
        try:
            return self._future.exception(timeout=timeout)
        except FutureTimeoutError as e:
            raise TimeoutError(f"Settlement of {self.session.session_id} still pending") from e

    def add_done_callback(self, fn: Callable[["PendingSettlement"], None]) -> None:
        """Call fn(self) on completion unless the caller stopped waiting."""
        def _invoke(_future: Future) -> None:
            if self.detached:
                return
            try:
                fn(self)
            except Exception as e:
                logger.error(f"Settlement done-callback failed: {e}", exc_info=True)

        self._future.add_done_callback(_invoke)

    def stop_waiting(self) -> bool:
        """
        Stop waiting for this settlement.

        Returns:
            bool: True if the settlement was still running
        """
        self._detached.set()
        return not self.done()

    def is_overdue(self, now: Optional[float] = None) -> bool:
        """Past proof_deadline without settling. Advisory only."""
        if self.proof_deadline is None or self.session.status == SessionStatus.SETTLED:
            return False
        now = time.time() if now is None else now
        return now > self.proof_deadline


@dataclass
class PaymentResult:
    """What pay() returns: access is granted, settlement is pending."""

    session: PaymentSession
    access_token: str
    commitment: int
    nullifier: int
    expires_at: int
    proof_deadline: int
    settlement: PendingSettlement

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    @property
    def proof_pending(self) -> bool:
        return not self.settlement.done()


SettledCallback = Callable[[SettlementReceipt], None]
FailedCallback = Callable[[ShadowPayException], None]


class PaymentOrchestrator:
    """
    Sequences registration, authorization, proof generation and settlement.

    Example:
        >>> orchestrator = PaymentOrchestrator.from_settings(ShadowPaySettings())
        >>> payer = PayerIdentity.generate("AVS...", orchestrator.cipher)
        >>> result = orchestrator.pay(payer, amount=10_000, token="USDC")
        >>> grant_access(result.access_token)      # immediately
        >>> receipt = result.settlement.result()   # optional, blocks
    """

    def __init__(
        self,
        settings: ShadowPaySettings,
        authority: AuthorityClient,
        prover: ProvingOracle,
        hash_fn: FieldHash,
        cipher: Optional[ElGamalCipher] = None,
        assembler: Optional[ProofInputAssembler] = None,
        nullifiers: Optional[NullifierRegistry] = None,
        store: Optional[PaymentStore] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        settings.require_merchant()
        self.settings = settings
        self.authority = authority
        self.prover = prover
        self.engine = CommitmentEngine(hash_fn)
        self.cipher = cipher or ElGamalCipher(settings.max_search_amount)
        self.assembler = assembler or ProofInputAssembler(settings.merkle_depth)
        self.store = store
        self.nullifiers = nullifiers or NullifierRegistry(store)
        self.executor = executor or ThreadPoolExecutor(
            max_workers=settings.max_workers, thread_name_prefix="shadowpay-settle"
        )

        self.sessions: Dict[str, PaymentSession] = {}
        self._registered: Set[Tuple[str, int]] = set()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls, settings: ShadowPaySettings, hash_fn: Optional[FieldHash] = None
    ) -> "PaymentOrchestrator":
        """Build an orchestrator with the default collaborators."""
        authority = AuthorityClient(settings.api_url, timeout=settings.request_timeout)
        prover = SnarkjsProver(
            CircuitArtifacts(
                wasm=settings.circuit_wasm,
                zkey=settings.circuit_zkey,
                verification_key=settings.verification_key,
            ),
            snarkjs_bin=settings.snarkjs_bin,
            timeout=settings.proof_timeout,
        )
        store = None
        if settings.database_url:
            store = PaymentStore(settings.database_url, history_limit=settings.history_limit)
            store.create_tables()
        return cls(
            settings=settings,
            authority=authority,
            prover=prover,
            hash_fn=hash_fn or PoseidonHash(),
            store=store,
        )

    @property
    def receiver_commitment(self) -> int:
        return encode_identifier(self.settings.merchant_wallet)

    def _validate(self, amount: int, token: str) -> str:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidPaymentError("Invalid amount: must be a positive integer of minor units")
        if not is_field_element(amount * 2):
            raise InvalidPaymentError("Invalid amount: exceeds the circuit range")
        if amount > self.settings.max_search_amount:
            logger.warning(
                f"Amount {amount} exceeds the decryptable range "
                f"({self.settings.max_search_amount}); receiver cannot decrypt it"
            )
        return get_token_config(token).symbol

    def _ensure_registered(self, payer: PayerIdentity, sender_commitment: int) -> None:
        with self._lock:
            if (payer.wallet, sender_commitment) in self._registered:
                return

        logger.info("Ensuring ShadowID registration...")
        response = self.authority.register(payer.wallet, sender_commitment)
        if response.commitment != str(sender_commitment):
            raise VerificationError("ShadowID registered a different sender commitment")
        if response.registered:
            logger.info(f"Wallet registered in ShadowID tree, root {(response.root or '')[:16]}...")

        with self._lock:
            self._registered.add((payer.wallet, sender_commitment))

    def pay(
        self,
        payer: PayerIdentity,
        amount: int,
        token: str = "SOL",
        on_settled: Optional[SettledCallback] = None,
        on_failed: Optional[FailedCallback] = None,
    ) -> PaymentResult:
        """
        Authorize a payment and start settlement in the background.

        Args:
            payer: Paying identity
            amount: Amount in minor units (lamports, micro-USDC, ...)
            token: Token symbol
            on_settled: Called once with the receipt on settlement
            on_failed: Called once with the error if settlement fails

        Returns:
            PaymentResult: Access token and a PendingSettlement

        Raises:
            InvalidPaymentError: If amount or token is invalid
            ReplayError: If the nullifier was already used
            CollaboratorError: If registration or authorization fails
        """
        token = self._validate(amount, token)
        session = PaymentSession(session_id=uuid.uuid4().hex, amount=amount, token=token)
        with self._lock:
            self.sessions[session.session_id] = session

        auth = None
        try:
            session.sender_commitment = self.engine.sender_commitment(payer.wallet, payer.secret)

            session.transition(SessionStatus.REGISTERING)
            self._ensure_registered(payer, session.sender_commitment)

            salt = self.engine.generate_salt()
            session.payment_commitment = self.engine.payment_commitment(
                session.sender_commitment,
                self.receiver_commitment,
                amount,
                token,
                salt,
            )
            session.nullifier = self.engine.nullifier(payer.secret, session.payment_commitment)
            logger.debug(
                f"Payment commitment {str(session.payment_commitment)[:16]}..., "
                f"nullifier {str(session.nullifier)[:16]}..."
            )
            self.nullifiers.check(session.nullifier)

            session.transition(SessionStatus.AUTHORIZING)
            logger.info(f"Authorizing payment {session.session_id}: {amount} {token}")
            auth = self.authority.authorize(
                api_key=self.settings.merchant_key,
                user_wallet=payer.wallet,
                merchant_wallet=self.settings.merchant_wallet,
                amount=amount,
                payment_commitment=session.payment_commitment,
                payment_nullifier=session.nullifier,
            )
            self.nullifiers.register(
                session.nullifier, session.payment_commitment, session.session_id
            )

            session.access_token = auth.access_token
            session.expires_at = auth.expires_at
            session.proof_deadline = auth.proof_deadline
            session.transition(SessionStatus.AUTHORIZED)
        except Exception as e:
            session.error = e
            if session.status in (SessionStatus.REGISTERING, SessionStatus.AUTHORIZING):
                session.transition(SessionStatus.FAILED)
            self._forget(session)
            logger.error(f"Payment {session.session_id} failed: {e}")
            if auth is not None:
                logger.warning(
                    f"Access token for payment {session.session_id} was issued "
                    f"but no settlement will follow"
                )
            raise

        logger.info(f"Payment {session.session_id} authorized, generating proof in background")

        known = dict(
            sender_secret=payer.secret,
            salt=salt,
            public_key=payer.elgamal.public_key,
        )
        pending = PendingSettlement(session)
        future = self.executor.submit(
            self._settle, session, known, pending, on_settled, on_failed
        )
        pending._attach(future)

        return PaymentResult(
            session=session,
            access_token=auth.access_token,
            commitment=session.payment_commitment,
            nullifier=session.nullifier,
            expires_at=auth.expires_at,
            proof_deadline=auth.proof_deadline,
            settlement=pending,
        )

    def _prove(self, witness: ProofWitness, session: PaymentSession) -> ProofResult:
        merkle_proof = self.authority.get_merkle_proof(session.sender_commitment)
        inputs = self.assembler.assemble(witness, merkle_proof)

        try:
            result = self.prover.prove(inputs)
        except ProofError:
            raise
        except Exception as e:
            raise ProofGenerationError(f"Failed to generate ZK proof: {e}") from e

        if self.settings.verify_proof_before_settle and not self.prover.verify(result):
            raise InvalidProofError("Generated proof failed verification")
        return result

    def _settle(
        self,
        session: PaymentSession,
        known: dict,
        pending: PendingSettlement,
        on_settled: Optional[SettledCallback],
        on_failed: Optional[FailedCallback],
    ) -> SettlementReceipt:
        try:
            session.transition(SessionStatus.PROOF_GENERATING)

            ciphertext, randomness = self.cipher.encrypt_with_randomness(
                session.amount, known["public_key"]
            )
            witness = ProofWitness(
                sender_commitment=session.sender_commitment,
                sender_secret=known["sender_secret"],
                receiver_commitment=self.receiver_commitment,
                amount=session.amount,
                token=session.token,
                salt=known["salt"],
                ciphertext=ciphertext,
                elgamal_randomness=randomness,
                receiver_public_key=known["public_key"],
            )
            proof = self._prove(witness, session)

            response = self.authority.settle(session.payment_commitment, proof, ciphertext)
            if not response.success:
                raise AuthorityError(response.error or "Settlement failed")

            receipt = SettlementReceipt(
                session_id=session.session_id,
                commitment=session.payment_commitment,
                signature=response.signature,
                settlement_time=response.settlement_time,
            )
            session.receipt = receipt
            session.transition(SessionStatus.SETTLED)
        except Exception as e:
            error = e if isinstance(e, ShadowPayException) else ProofGenerationError(str(e))
            session.error = error
            session.transition(SessionStatus.FAILED)
            logger.error(f"Background settlement of {session.session_id} failed: {e}", exc_info=True)
            self._notify(pending, on_failed, error)
            self._forget(session)
            if error is e:
                raise
            raise error from e

        logger.info(f"Payment {session.session_id} settled: {receipt.signature}")
        self._record(session, receipt)
        self._notify(pending, on_settled, receipt)
        self._forget(session)
        return receipt

    def _record(self, session: PaymentSession, receipt: SettlementReceipt) -> None:
        if self.store is None:
            return
        try:
            self.store.add_payment(
                session_id=session.session_id,
                commitment=session.payment_commitment,
                nullifier=session.nullifier,
                amount=session.amount,
                token=session.token,
                recipient=self.settings.merchant_wallet,
                signature=receipt.signature,
                settlement_time=receipt.settlement_time,
            )
        except SQLAlchemyError as e:
            logger.warning(f"Failed to store payment history: {e}")

    @staticmethod
    def _notify(pending: PendingSettlement, callback: Optional[Callable], value) -> None:
        if callback is None or pending.detached:
            return
        try:
            callback(value)
        except Exception as e:
            logger.error(f"Settlement callback raised: {e}", exc_info=True)

    def _forget(self, session: PaymentSession) -> None:
        with self._lock:
            self.sessions.pop(session.session_id, None)

    def get_session(self, session_id: str) -> Optional[PaymentSession]:
        """An in-flight session, or None once it is terminal."""
        with self._lock:
            return self.sessions.get(session_id)

    def get_payment_history(self, limit: Optional[int] = None) -> list:
        """Settled payments, most recent first. Empty without a store."""
        if self.store is None:
            return []
        return self.store.get_payment_history(limit)

    def parse_webhook(self, body, signature: str) -> WebhookEvent:
        """
        Verify a settlement webhook with the configured secret.

        Raises:
            ConfigurationError: If no webhook secret is configured
            InvalidSignatureError: If the signature is missing or wrong
        """
        return parse_webhook_event(body, signature, self.settings.require_webhook_secret())

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting payments and optionally wait for settlements."""
        self.executor.shutdown(wait=wait)

    def __enter__(self) -> "PaymentOrchestrator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown(wait=True)
