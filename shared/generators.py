"""
Random code generators: pure, side-effect-free functions.

All generators use the ``secrets`` module; one-time codes must not come from
the ``random`` PRNG.
"""

from __future__ import annotations

import secrets


def generate_otp_code(length: int = 6) -> str:
    """Generate a uniformly distributed numeric OTP.

    Draws a single integer from ``[0, 10**length)`` and zero-pads it, so every
    code of the requested width (including ones with leading zeros) is equally
    likely.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of exactly *length* decimal digits.
    """
    if length < 1:
        raise ValueError("OTP length must be positive")
    return str(secrets.randbelow(10**length)).zfill(length)
