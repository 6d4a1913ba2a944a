"""
auth/tokens.py -- Password hashing, secret hashing and id/code generation.

Security design decisions:
  Passwords: bcrypt, used directly. Only the demo identity has a password --
       real users are OTP-only. The _DUMMY_HASH constant enables timing
       equalization in the local provider's password login so response time
       does not reveal whether an email is registered [C1].

  OTP codes and session secrets: stored as HMAC-SHA256(SECRET_KEY, value).
       Session secrets carry 256 bits of entropy so a deterministic hash is
       enough and lets the provider look a session up in O(1). OTP codes are
       low-entropy, which is why challenges are single use, short-lived and
       capped at a handful of attempts.

  Ids: unique_id() mimics the provider's own id format (hex timestamp plus
       random suffix, 20 chars) so local and Appwrite ids look alike.

  SECRET_KEY: sourced from core.config.get_settings() [M6].

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time

import bcrypt

from core.config import get_settings

_settings = get_settings()

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash [C1]. Computed once at module load so the
# first login attempt is not measurably slower than later ones.
_DUMMY_HASH: str = hash_password("vaultpro_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run a bcrypt check against the dummy hash and discard the result [C1]."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Secret hashing
# ---------------------------------------------------------------------------


def hash_secret(raw: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, raw) as a hex string."""
    return hmac.new(
        _settings.secret_key.encode(),
        raw.encode(),
        hashlib.sha256,
    ).hexdigest()


def secrets_match(raw: str, expected_hash: str) -> bool:
    """Constant-time comparison of a raw secret against a stored hash."""
    return hmac.compare_digest(hash_secret(raw), expected_hash)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def generate_otp_code(length: int = 0) -> str:
    """Return a numeric OTP code, zero-padded to the configured length."""
    digits = length if length > 0 else _settings.otp_length
    return str(secrets.randbelow(10**digits)).zfill(digits)


def generate_session_secret() -> str:
    """256-bit random session secret, URL-safe so it can live in a cookie."""
    return secrets.token_urlsafe(32)


def unique_id() -> str:
    """Return a 20-char id: 13 hex chars of microsecond time + 7 random hex chars."""
    return f"{int(time.time() * 1_000_000):013x}"[-13:] + secrets.token_hex(4)[:7]
