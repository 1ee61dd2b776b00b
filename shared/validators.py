"""
Input validators: framework-agnostic, pure functions.
"""

from __future__ import annotations

import re
from typing import Any, Optional

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MIN_PASSWORD_LENGTH = 8


def normalize_email(email: str) -> str:
    """Trim and lower-case an email address for storage and lookup."""
    return email.strip().lower()


def validate_email(email: str) -> bool:
    """Return True if *email* looks like ``local@domain.tld``."""
    return bool(_EMAIL_RE.match(email))


def validate_password(password: str, min_length: int = MIN_PASSWORD_LENGTH) -> bool:
    """Return True if *password* is at least *min_length* characters."""
    return len(password) >= min_length


def validate_otp_format(otp: Any, length: int = 6) -> Optional[str]:
    """Return the trimmed code when *otp* is a string of exactly *length* digits.

    Returns:
        The normalised code, or ``None`` when the value is not acceptable.
    """
    if not isinstance(otp, str):
        return None
    code = otp.strip()
    if len(code) != length or not code.isascii() or not code.isdigit():
        return None
    return code
