"""
Cryptographic helpers: password hashing and OTP hashing.

Uses argon2 for passwords (via argon2-cffi) and SHA-256 for one-time codes.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Union

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_password_hasher = PasswordHasher()


def hash_password(plain_password: str) -> str:
    """Hash *plain_password* with argon2id.

    Returns:
        Argon2 hash string (includes algorithm parameters and salt).
    """
    return _password_hasher.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify *plain_password* against an argon2 *password_hash*.

    Returns:
        ``True`` if the password matches, ``False`` for a wrong password or a
        hash argon2 cannot parse.
    """
    try:
        return _password_hasher.verify(password_hash, plain_password)
    except (VerificationError, InvalidHashError):
        return False


def hash_otp(code: Union[str, int]) -> str:
    """Return the hex-encoded SHA-256 digest of *code*.

    OTPs are hashed before they are stored so the plaintext is never persisted.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(str(code).encode("utf-8")).hexdigest()


def otp_matches(candidate: Union[str, int], code_hash: str) -> bool:
    """Constant-time comparison of a candidate code against a stored hash."""
    return hmac.compare_digest(hash_otp(candidate), code_hash)
