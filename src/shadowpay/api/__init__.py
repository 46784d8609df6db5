"""Client for the ShadowPay payment authority."""
