"""HTTP client for the ShadowPay payment authority.

Covers the calls the payment flow makes: ShadowID registration, instant
authorization, Merkle proof retrieval, settlement, and merchant-side
access verification. Transport failures raise ``NetworkError``; error
responses raise ``AuthorityError`` (or a more specific subclass).
"""

import logging
from typing import Any, Optional

import requests
from pydantic import BaseModel, ValidationError

from shadowpay.config import DEFAULT_API_URL
from shadowpay.core.circuit import MerkleProof
from shadowpay.core.prover import ProofResult
from shadowpay.crypto.elgamal import EncryptedAmount
from shadowpay.exceptions import (
    AuthenticationError,
    AuthorityError,
    MerkleProofError,
    NetworkError,
    ReplayError,
)
from shadowpay.models.schemas import (
    AccessVerificationResponse,
    AuthorizeRequest,
    AuthorizeResponse,
    ErrorResponse,
    MerkleProofResponse,
    RegistrationRequest,
    RegistrationResponse,
    SettleRequest,
    SettleResponse,
)
from shadowpay.utils.encoding import int_to_hex

logger = logging.getLogger(__name__)


class AuthorityClient:
    """
    Client for the ShadowPay authority API.

    Example:
        >>> client = AuthorityClient("https://shadow.radr.fun")
        >>> status = client.verify_access(access_token)
        >>> status.authorized
        True
    """

    REGISTER_PATH = "/shadowpay/api/shadowid/auto-register"
    AUTHORIZE_PATH = "/shadowpay/v1/payment/authorize"
    SETTLE_PATH = "/shadowpay/v1/payment/settle"
    VERIFY_ACCESS_PATH = "/shadowpay/v1/payment/verify-access"
    MERKLE_PROOF_PATH = "/shadowpay/shadowid/v1/merkle/proof/{commitment}"

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise NetworkError(f"Network error during {operation}: {e}") from e

        if not response.ok:
            details = self._error_body(response)
            message = self._error_message(details, response)
            if response.status_code == 401:
                raise AuthenticationError(
                    "Invalid API key - please check your merchant API key",
                    401,
                    details,
                )
            if response.status_code == 409:
                raise ReplayError(f"{operation.capitalize()} rejected: {message}")
            raise AuthorityError(
                f"{operation.capitalize()} failed: {message}",
                response.status_code,
                details,
            )
        return response

    @staticmethod
    def _error_body(response: requests.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _error_message(details: dict, response: requests.Response) -> str:
        try:
            error = ErrorResponse.model_validate(details)
        except ValidationError:
            error = ErrorResponse()
        return error.error or error.message or response.reason or "Unknown error"

    @staticmethod
    def _parse(response: requests.Response, model: type, operation: str) -> BaseModel:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise AuthorityError(
                f"Malformed {operation} response: {e}", response.status_code
            ) from e

    def register(self, wallet_address: str, commitment: int) -> RegistrationResponse:
        """
        Ensure a sender commitment is in the ShadowID tree.

        Idempotent: the authority reports registered=False if the
        commitment was already present.
        """
        body = RegistrationRequest(wallet_address=wallet_address, commitment=str(commitment))
        response = self._request(
            "POST", self.REGISTER_PATH, "registration", json=body.model_dump()
        )
        return self._parse(response, RegistrationResponse, "registration")

    def authorize(
        self,
        api_key: str,
        user_wallet: str,
        merchant_wallet: str,
        amount: int,
        payment_commitment: int,
        payment_nullifier: int,
    ) -> AuthorizeResponse:
        """
        Authorize a payment and obtain an access token.

        Not safely retryable with a new nullifier: a lost response may
        leave an orphaned credential behind.

        Raises:
            AuthenticationError: If the API key is rejected
            ReplayError: If the authority has seen the nullifier
            NetworkError: If the authority is unreachable
        """
        body = AuthorizeRequest(
            user_wallet=user_wallet,
            merchant=merchant_wallet,
            amount=amount,
            payment_commitment=str(payment_commitment),
            payment_nullifier=str(payment_nullifier),
        )
        response = self._request(
            "POST",
            self.AUTHORIZE_PATH,
            "authorization",
            json=body.model_dump(),
            headers={"X-API-Key": api_key},
        )
        return self._parse(response, AuthorizeResponse, "authorization")

    def get_merkle_proof(self, sender_commitment: int) -> MerkleProof:
        """
        Fetch the inclusion proof of a sender commitment.

        The commitment is sent as hex without prefix; the hex root and
        siblings in the response are converted to integers.

        Raises:
            MerkleProofError: If the commitment is not registered
        """
        path = self.MERKLE_PROOF_PATH.format(commitment=int_to_hex(sender_commitment))
        try:
            response = self._request("GET", path, "merkle proof retrieval")
        except AuthorityError as e:
            if e.status_code == 404:
                raise MerkleProofError(
                    "Commitment not found in merkle tree - register with ShadowID first"
                ) from e
            raise

        try:
            data = MerkleProofResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise MerkleProofError(f"Malformed merkle proof: {e}") from e

        return MerkleProof(
            root=data.root,
            siblings=list(data.siblings),
            path_indices=list(data.path_indices),
        )

    def settle(
        self, commitment: int, proof: ProofResult, encrypted_amount: EncryptedAmount
    ) -> SettleResponse:
        """Submit a proof for settlement."""
        body = SettleRequest(
            commitment=str(commitment),
            proof=proof.proof_base64(),
            public_signals=list(proof.public_signals),
            encrypted_amount=list(encrypted_amount.to_bytes()),
        )
        response = self._request("POST", self.SETTLE_PATH, "settlement", json=body.model_dump())
        return self._parse(response, SettleResponse, "settlement")

    def verify_access(self, access_token: str) -> AccessVerificationResponse:
        """Check an access token (merchant backend)."""
        response = self._request(
            "GET",
            self.VERIFY_ACCESS_PATH,
            "access verification",
            headers={"X-Access-Token": access_token},
        )
        return self._parse(response, AccessVerificationResponse, "access verification")

    def close(self) -> None:
        self.session.close()
