"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection trips over bcrypt 4.x, and direct usage has no compatibility shim.

Cost factor is fixed at 12 rounds. The _DUMMY_HASH constant enables timing
equalization in validate_credentials() so response time does not reveal
whether a username exists.
"""

from __future__ import annotations

import bcrypt

from core.errors import ValidationError

BCRYPT_ROUNDS = 12
# bcrypt rejects (5.x) or silently truncates (4.x) anything longer.
MAX_PASSWORD_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    The limit is in UTF-8 bytes, not characters, so a short password made of
    multibyte characters can still be too long. Raises ValidationError then.
    """
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError("password too long", detail=f"at most {MAX_PASSWORD_BYTES} bytes in UTF-8")
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash counts as a mismatch rather than an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def looks_like_bcrypt(value: str) -> bool:
    """Cheap shape check for precomputed hashes handed to create_user_with_hash()."""
    return value.startswith(("$2a$", "$2b$", "$2y$")) and len(value) == 60


# Computed once at module load so the first login attempt is not measurably
# slower than later ones. Always verified against when the username is unknown.
_DUMMY_HASH: str = hash_password("hris_timing_dummy")


def burn_dummy_check(plain: str) -> None:
    """Spend one bcrypt comparison's worth of time and discard the result."""
    verify_password(plain, _DUMMY_HASH)
