"""Boundary to the Groth16 proving oracle.

The protocol consumes proving and verification as opaque operations:

    prove(inputs, artifacts)               -> (proof, public_signals)
    verify(proof, public_signals, vkey)    -> bool

``SnarkjsProver`` fulfils this contract by running the snarkjs CLI in a
scratch directory. Tests and alternative backends implement
``ProvingOracle`` directly.
"""

import base64
import json
import logging
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from shadowpay.core.circuit import CircuitInputs, CircuitVersion
from shadowpay.exceptions import ProofGenerationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Groth16Proof:
    """Groth16 proof points as emitted by snarkjs."""

    pi_a: List[str]
    pi_b: List[List[str]]
    pi_c: List[str]
    protocol: str = "groth16"
    curve: str = "bn128"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pi_a": self.pi_a,
            "pi_b": self.pi_b,
            "pi_c": self.pi_c,
            "protocol": self.protocol,
            "curve": self.curve,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Groth16Proof":
        try:
            return cls(
                pi_a=[str(v) for v in data["pi_a"]],
                pi_b=[[str(v) for v in row] for row in data["pi_b"]],
                pi_c=[str(v) for v in data["pi_c"]],
                protocol=data.get("protocol", "groth16"),
                curve=data.get("curve", "bn128"),
            )
        except (KeyError, TypeError) as e:
            raise ProofGenerationError(f"Malformed Groth16 proof: {e}") from e


@dataclass(frozen=True)
class ProofResult:
    """A proof together with its public signals and circuit version."""

    proof: Groth16Proof
    public_signals: List[str]
    circuit_version: CircuitVersion = CircuitVersion.ELGAMAL_V3

    def proof_base64(self) -> str:
        """base64 of the JSON proof, the settlement wire form."""
        return base64.b64encode(json.dumps(self.proof.to_dict()).encode("utf-8")).decode("ascii")


class ProvingOracle(Protocol):
    """Trusted proving and verification backend for a fixed circuit."""

    def prove(self, inputs: CircuitInputs) -> ProofResult:
        ...

    def verify(self, result: ProofResult) -> bool:
        ...


@dataclass
class CircuitArtifacts:
    """Compiled circuit files."""

    wasm: Path
    zkey: Path
    verification_key: Optional[Path] = None
    version: CircuitVersion = CircuitVersion.ELGAMAL_V3


class SnarkjsProver:
    """
    Groth16 via the snarkjs command line.

    Args:
        artifacts: Circuit wasm, zkey and verification key paths
        snarkjs_bin: snarkjs executable
        timeout: Seconds allowed per snarkjs invocation
    """

    def __init__(self, artifacts: CircuitArtifacts, snarkjs_bin: str = "snarkjs", timeout: float = 120.0):
        self.artifacts = artifacts
        self.snarkjs_bin = snarkjs_bin
        self.timeout = timeout

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        command = [self.snarkjs_bin, *args]
        try:
            return subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise ProofGenerationError(f"Failed to run snarkjs: {e}") from e

    def prove(self, inputs: CircuitInputs) -> ProofResult:
        """
        Generate a Groth16 proof for the given inputs.

        Raises:
            ProofGenerationError: If snarkjs fails or emits malformed output
        """
        if inputs.circuit_version != self.artifacts.version:
            raise ProofGenerationError(
                f"Inputs are for {inputs.circuit_version.value}, "
                f"artifacts are for {self.artifacts.version.value}"
            )

        with tempfile.TemporaryDirectory(prefix="shadowpay-") as workdir:
            work = Path(workdir)
            input_path = work / "input.json"
            proof_path = work / "proof.json"
            public_path = work / "public.json"
            input_path.write_text(inputs.to_json())

            completed = self._run(
                "groth16", "fullprove",
                str(input_path),
                str(self.artifacts.wasm),
                str(self.artifacts.zkey),
                str(proof_path),
                str(public_path),
            )
            if completed.returncode != 0:
                raise ProofGenerationError(
                    f"snarkjs fullprove failed: {completed.stderr.strip() or completed.stdout.strip()}"
                )

            try:
                proof = json.loads(proof_path.read_text())
                public_signals = json.loads(public_path.read_text())
            except (OSError, ValueError) as e:
                raise ProofGenerationError(f"snarkjs produced unreadable output: {e}") from e

        return ProofResult(
            proof=Groth16Proof.from_dict(proof),
            public_signals=[str(signal) for signal in public_signals],
            circuit_version=self.artifacts.version,
        )

    def verify(self, result: ProofResult) -> bool:
        """
        Verify a proof against the verification key.

        Raises:
            ProofGenerationError: If no verification key is configured
        """
        if self.artifacts.verification_key is None:
            raise ProofGenerationError("No verification key configured")

        with tempfile.TemporaryDirectory(prefix="shadowpay-") as workdir:
            work = Path(workdir)
            proof_path = work / "proof.json"
            public_path = work / "public.json"
            proof_path.write_text(json.dumps(result.proof.to_dict()))
            public_path.write_text(json.dumps(result.public_signals))

            completed = self._run(
                "groth16", "verify",
                str(self.artifacts.verification_key),
                str(public_path),
                str(proof_path),
            )

        if completed.returncode != 0:
            logger.warning(f"snarkjs verify rejected proof: {completed.stdout.strip()}")
            return False
        return "OK" in completed.stdout
