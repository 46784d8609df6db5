"""Hash primitive handles.

The protocol treats Poseidon as a trusted, opaque primitive
``H: Field* -> Field``. Components never reach for a module-level
instance: a handle is constructed explicitly and passed in, so tests can
substitute a deterministic stub and concurrent sessions never race on
lazy initialization.
"""

import contextlib
import io
import json
import logging
import threading
from pathlib import Path
from typing import Dict, Protocol, Sequence

import poseidon

from shadowpay.crypto.field import SCALAR_FIELD_MODULUS

logger = logging.getLogger(__name__)

# circomlib round constants and MDS matrices, keyed by input arity (t = arity + 1)
CONSTANTS_FILE = Path(__file__).with_name("poseidon_constants.json")


class FieldHash(Protocol):
    """Hash of one or more field elements into a field element."""

    def __call__(self, inputs: Sequence[int]) -> int:
        ...


def load_parameters(path: Path = CONSTANTS_FILE) -> Dict[int, dict]:
    """Load per-arity Poseidon parameters."""
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    return {int(arity): params for arity, params in raw.items()}


class PoseidonHash:
    """
    circomlib-compatible Poseidon over the BN254 scalar field.

    The state is ``[0, *inputs]`` and the digest is ``state[0]`` after the
    permutation, matching circomlib's ``Poseidon(nInputs)`` template. One
    permutation per supported arity is built when the handle is created,
    so hashing never pays the field setup cost. Share a single handle
    between all engines in a process.
    """

    SECURITY_LEVEL = 128
    ALPHA = 5
    MAX_INPUTS = 5

    def __init__(self, prime: int = SCALAR_FIELD_MODULUS):
        if prime != SCALAR_FIELD_MODULUS:
            raise ValueError("Poseidon parameters are only available for the BN254 scalar field")
        self.prime = prime
        self._lock = threading.Lock()
        self._permutations: Dict[int, "poseidon.Poseidon"] = {}

        parameters = load_parameters()
        for arity in range(1, self.MAX_INPUTS + 1):
            self._permutations[arity] = self._build(arity, parameters[arity])
        logger.debug(f"Poseidon permutations ready for arities 1..{self.MAX_INPUTS}")

    def _build(self, arity: int, params: dict) -> "poseidon.Poseidon":
        # the library reports progress on stdout
        with contextlib.redirect_stdout(io.StringIO()):
            return poseidon.Poseidon(
                self.prime,
                self.SECURITY_LEVEL,
                self.ALPHA,
                arity,
                arity + 1,
                full_round=params["full_rounds"],
                partial_round=params["partial_rounds"],
                mds_matrix=params["mds_matrix"],
                rc_list=params["round_constants"],
            )

    def __call__(self, inputs: Sequence[int]) -> int:
        if not 1 <= len(inputs) <= self.MAX_INPUTS:
            raise ValueError(f"Poseidon takes 1..{self.MAX_INPUTS} inputs, got {len(inputs)}")
        permutation = self._permutations[len(inputs)]
        state = [0] + [int(value) for value in inputs]
        # permutations keep their state on the instance
        with self._lock:
            permutation.run_hash(state)
            digest = permutation.state[0]
        return int(digest)
