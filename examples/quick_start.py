#!/usr/bin/env python3
"""
Quick start guide for the ShadowPay client.

Requires SHADOWPAY_MERCHANT_KEY and SHADOWPAY_MERCHANT_WALLET (or a .env
file), snarkjs on PATH and the compiled circuit files under circuits/.
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from shadowpay.config import ShadowPaySettings
from shadowpay.core.orchestrator import PayerIdentity, PaymentOrchestrator
from shadowpay.core.tokens import format_amount, parse_amount
from shadowpay.exceptions import ShadowPayException
from shadowpay.logging_config import setup_logging


def main():
    """Pay 0.01 USDC and wait for settlement."""
    settings = ShadowPaySettings()
    setup_logging(settings.log_level, settings.log_file)

    print("=" * 70)
    print("SHADOWPAY QUICK START EXAMPLE")
    print("=" * 70)
    print()

    print("Step 1: Create the orchestrator")
    print("-" * 70)
    try:
        orchestrator = PaymentOrchestrator.from_settings(settings)
    except ShadowPayException as e:
        print(f"✗ {e}")
        return 1
    print(f"✓ Authority: {settings.api_url}")
    print()

    print("Step 2: Create a payer identity")
    print("-" * 70)
    wallet = sys.argv[1] if len(sys.argv) > 1 else "AVSDxjmA2xBaxzkzM8vPkzWDx7bUiAx9nkKTXUvfMZpf"
    payer = PayerIdentity.generate(wallet, orchestrator.cipher)
    print(f"✓ Wallet: {payer.wallet}")
    print(f"  ElGamal public key x: {payer.elgamal.public_key.to_dict()['x'][:16]}...")
    print()

    print("Step 3: Pay (access is granted before the proof exists)")
    print("-" * 70)
    amount = parse_amount("0.01", "USDC")
    with orchestrator:
        try:
            result = orchestrator.pay(payer, amount, "USDC")
        except ShadowPayException as e:
            print(f"✗ Authorization failed: {e}")
            return 1
        print(f"✓ Access token: {result.access_token[:24]}...")
        print(f"  Commitment: {str(result.commitment)[:24]}...")
        print(f"  Proof deadline: {result.proof_deadline}")
        print()

        print("Step 4: Wait for background settlement")
        print("-" * 70)
        error = result.settlement.exception(timeout=settings.proof_timeout + 30)
        if error is not None:
            print(f"✗ Settlement failed: {error}")
            print("  Access was not revoked; the merchant decides what to do.")
            return 1

        receipt = result.settlement.result()
        print(f"✓ Settled {format_amount(amount, 'USDC')} USDC")
        print(f"  Signature: {receipt.signature}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
