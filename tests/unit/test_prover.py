"""Tests for the Groth16 proving boundary."""

import base64
import json
import subprocess
from pathlib import Path

import pytest

from shadowpay.core.circuit import CircuitInputs
from shadowpay.core.prover import CircuitArtifacts, Groth16Proof, ProofResult, SnarkjsProver
from shadowpay.exceptions import ProofGenerationError

PROOF_JSON = {
    "pi_a": ["1", "2", "1"],
    "pi_b": [["3", "4"], ["5", "6"], ["1", "0"]],
    "pi_c": ["7", "8", "1"],
    "protocol": "groth16",
    "curve": "bn128",
}


@pytest.fixture
def inputs():
    return CircuitInputs(
        sender_commitment=1,
        sender_secret=2,
        receiver_commitment=3,
        amount=4,
        token_mint=5,
        salt=6,
        merkle_path=[0, 0],
        path_indices=[0, 1],
        encrypted_amount_c1=7,
        encrypted_amount_c2=8,
        elgamal_randomness=9,
        shadowid_root=10,
        max_amount=8,
        receiver_elgamal_pubkey=11,
    )


@pytest.fixture
def prover(tmp_path):
    artifacts = CircuitArtifacts(
        wasm=tmp_path / "circuit.wasm",
        zkey=tmp_path / "circuit.zkey",
        verification_key=tmp_path / "vkey.json",
    )
    return SnarkjsProver(artifacts, snarkjs_bin="snarkjs", timeout=5)


def completed(command, returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(command, returncode, stdout=stdout, stderr=stderr)


class TestGroth16Proof:
    """Tests for proof serialization."""

    def test_dict_roundtrip(self):
        proof = Groth16Proof.from_dict(PROOF_JSON)
        assert proof.to_dict() == PROOF_JSON

    def test_malformed(self):
        with pytest.raises(ProofGenerationError):
            Groth16Proof.from_dict({"pi_a": ["1"]})

    def test_proof_base64(self):
        """Settlement form is base64 of the JSON proof."""
        result = ProofResult(proof=Groth16Proof.from_dict(PROOF_JSON), public_signals=["1"])
        decoded = json.loads(base64.b64decode(result.proof_base64()))
        assert decoded == PROOF_JSON


class TestSnarkjsProver:
    """Tests for the snarkjs CLI wrapper."""

    def test_prove(self, prover, inputs, monkeypatch):
        captured = {}

        def fake_run(command, **kwargs):
            captured["command"] = command
            captured["input"] = json.loads(Path(command[3]).read_text())
            Path(command[6]).write_text(json.dumps(PROOF_JSON))
            Path(command[7]).write_text(json.dumps(["10", "8"]))
            return completed(command)

        monkeypatch.setattr(subprocess, "run", fake_run)
        result = prover.prove(inputs)

        assert captured["command"][:3] == ["snarkjs", "groth16", "fullprove"]
        assert captured["input"]["shadowid_root"] == "10"
        assert result.public_signals == ["10", "8"]
        assert result.proof.pi_a == ["1", "2", "1"]

    def test_prove_failure(self, prover, inputs, monkeypatch):
        monkeypatch.setattr(
            subprocess, "run",
            lambda command, **kwargs: completed(command, returncode=1, stderr="constraint failed"),
        )
        with pytest.raises(ProofGenerationError, match="constraint failed"):
            prover.prove(inputs)

    def test_prove_missing_output(self, prover, inputs, monkeypatch):
        monkeypatch.setattr(subprocess, "run", lambda command, **kwargs: completed(command))
        with pytest.raises(ProofGenerationError):
            prover.prove(inputs)

    def test_snarkjs_not_installed(self, prover, inputs, monkeypatch):
        def missing(command, **kwargs):
            raise FileNotFoundError("snarkjs")

        monkeypatch.setattr(subprocess, "run", missing)
        with pytest.raises(ProofGenerationError):
            prover.prove(inputs)

    def test_timeout(self, prover, inputs, monkeypatch):
        def slow(command, **kwargs):
            raise subprocess.TimeoutExpired(command, kwargs["timeout"])

        monkeypatch.setattr(subprocess, "run", slow)
        with pytest.raises(ProofGenerationError):
            prover.prove(inputs)

    def test_verify(self, prover, monkeypatch):
        monkeypatch.setattr(
            subprocess, "run",
            lambda command, **kwargs: completed(command, stdout="[INFO]  snarkJS: OK!"),
        )
        result = ProofResult(proof=Groth16Proof.from_dict(PROOF_JSON), public_signals=["1"])
        assert prover.verify(result)

    def test_verify_rejected(self, prover, monkeypatch):
        monkeypatch.setattr(
            subprocess, "run",
            lambda command, **kwargs: completed(command, returncode=1, stdout="Invalid proof"),
        )
        result = ProofResult(proof=Groth16Proof.from_dict(PROOF_JSON), public_signals=["1"])
        assert not prover.verify(result)

    def test_verify_without_key(self, tmp_path):
        prover = SnarkjsProver(CircuitArtifacts(wasm=tmp_path / "a", zkey=tmp_path / "b"))
        result = ProofResult(proof=Groth16Proof.from_dict(PROOF_JSON), public_signals=["1"])
        with pytest.raises(ProofGenerationError):
            prover.verify(result)
