"""Commitments, circuit inputs, proving and payment orchestration."""
