"""Validated transcription of payment data into circuit inputs.

The assembler performs no cryptography. It copies commitment, ciphertext
and Merkle data into the fixed schema of the payment circuit, checking
every scalar against the field bound just before it is placed. A value
outside [0, p) raises ``CircuitInputOutOfFieldError`` naming the field;
nothing is ever reduced silently.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Union

from shadowpay.crypto.elgamal import CurvePoint, EncryptedAmount
from shadowpay.crypto.field import encode_identifier, is_field_element
from shadowpay.exceptions import CircuitInputOutOfFieldError, MerkleProofError


DEFAULT_MERKLE_DEPTH = 20


class CircuitVersion(str, Enum):
    """Known payment circuit versions."""
    ELGAMAL_V3 = "shadowpay-elgamal-v3"


@dataclass(frozen=True)
class MerkleProof:
    """Inclusion proof of a sender commitment in the ShadowID tree."""

    root: int
    siblings: List[int]
    path_indices: List[int]


@dataclass(frozen=True)
class ProofWitness:
    """Everything the payer knows about one payment."""

    sender_commitment: int
    sender_secret: int = field(repr=False)
    receiver_commitment: int
    amount: int
    token: str
    salt: int = field(repr=False)
    ciphertext: EncryptedAmount
    elgamal_randomness: int = field(repr=False)
    receiver_public_key: CurvePoint


@dataclass(frozen=True)
class CircuitInputs:
    """Input vector of the payment circuit, all values field elements."""

    sender_commitment: int
    sender_secret: int = field(repr=False)
    receiver_commitment: int
    amount: int
    token_mint: int
    salt: int = field(repr=False)
    merkle_path: List[int]
    path_indices: List[int]
    encrypted_amount_c1: int
    encrypted_amount_c2: int
    elgamal_randomness: int = field(repr=False)
    shadowid_root: int
    max_amount: int
    receiver_elgamal_pubkey: int
    circuit_version: CircuitVersion = CircuitVersion.ELGAMAL_V3

    def to_dict(self) -> Dict[str, Union[str, List[str]]]:
        """snarkjs input object: decimal strings, arrays for the path."""
        return {
            "sender_commitment": str(self.sender_commitment),
            "sender_secret": str(self.sender_secret),
            "receiver_commitment": str(self.receiver_commitment),
            "amount": str(self.amount),
            "token_mint": str(self.token_mint),
            "salt": str(self.salt),
            "merkle_path": [str(sibling) for sibling in self.merkle_path],
            "path_indices": [str(index) for index in self.path_indices],
            "encrypted_amount_c1": str(self.encrypted_amount_c1),
            "encrypted_amount_c2": str(self.encrypted_amount_c2),
            "elgamal_randomness": str(self.elgamal_randomness),
            "shadowid_root": str(self.shadowid_root),
            "max_amount": str(self.max_amount),
            "receiver_elgamal_pubkey": str(self.receiver_elgamal_pubkey),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class ProofInputAssembler:
    """
    Builds ``CircuitInputs`` from a witness and a Merkle proof.

    Args:
        merkle_depth: Depth of the ShadowID tree the circuit was compiled for
    """

    def __init__(self, merkle_depth: int = DEFAULT_MERKLE_DEPTH):
        self.merkle_depth = merkle_depth

    @staticmethod
    def _field(value: int, name: str) -> int:
        if not is_field_element(value):
            raise CircuitInputOutOfFieldError(
                f'Circuit input "{name}" is outside the scalar field', field=name
            )
        return value

    def _check_merkle_shape(self, merkle_proof: MerkleProof) -> None:
        if len(merkle_proof.siblings) != self.merkle_depth:
            raise MerkleProofError(
                f"Expected {self.merkle_depth} siblings, got {len(merkle_proof.siblings)}"
            )
        if len(merkle_proof.path_indices) != self.merkle_depth:
            raise MerkleProofError(
                f"Expected {self.merkle_depth} path indices, got {len(merkle_proof.path_indices)}"
            )
        if any(index not in (0, 1) for index in merkle_proof.path_indices):
            raise MerkleProofError("Path indices must be 0 or 1")

    def assemble(self, witness: ProofWitness, merkle_proof: MerkleProof) -> CircuitInputs:
        """
        Transcribe witness and Merkle proof into circuit inputs.

        Raises:
            CircuitInputOutOfFieldError: If any value is outside [0, p)
            MerkleProofError: If the Merkle proof has the wrong shape
        """
        self._check_merkle_shape(merkle_proof)

        merkle_path = [
            self._field(sibling, f"merkle_path[{i}]")
            for i, sibling in enumerate(merkle_proof.siblings)
        ]

        return CircuitInputs(
            sender_commitment=self._field(witness.sender_commitment, "sender_commitment"),
            sender_secret=self._field(witness.sender_secret, "sender_secret"),
            receiver_commitment=self._field(witness.receiver_commitment, "receiver_commitment"),
            amount=self._field(witness.amount, "amount"),
            token_mint=self._field(encode_identifier(witness.token), "token_mint"),
            salt=self._field(witness.salt, "salt"),
            merkle_path=merkle_path,
            path_indices=list(merkle_proof.path_indices),
            encrypted_amount_c1=self._field(witness.ciphertext.c1.x, "encrypted_amount_c1"),
            encrypted_amount_c2=self._field(witness.ciphertext.c2.x, "encrypted_amount_c2"),
            elgamal_randomness=self._field(witness.elgamal_randomness, "elgamal_randomness"),
            shadowid_root=self._field(merkle_proof.root, "shadowid_root"),
            max_amount=self._field(witness.amount * 2, "max_amount"),
            receiver_elgamal_pubkey=self._field(
                witness.receiver_public_key.x, "receiver_elgamal_pubkey"
            ),
        )
