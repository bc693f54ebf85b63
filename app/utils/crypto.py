"""
Crypto utilities — bcrypt password hashing & HMAC-SHA256 webhook signatures.

Password hashing:
  bcrypt ($2b$, 12 rounds) for every stored user password.

Webhook signatures:
  The payment provider signs ``"<timestamp>.<raw body>"`` with the shared
  webhook secret.  ``sign_payload`` produces the hex digest;
  ``signatures_match`` compares in constant time.
"""

import hashlib
import hmac

import bcrypt


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt (12 rounds)."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain-text password against its bcrypt hash."""
    if not password_hash or not plain_password:
        return False
    if not password_hash.startswith(("$2b$", "$2a$")):
        return False
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        password_hash.encode("utf-8"),
    )


# ── HMAC webhook signatures ──────────────────────────────────────────────────


def sign_payload(secret: str, timestamp: int | str, payload: bytes) -> str:
    """Return the hex HMAC-SHA256 of ``"<timestamp>.<payload>"`` under *secret*."""
    signed = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def signatures_match(expected: str, candidate: str) -> bool:
    """Constant-time comparison of two hex digests."""
    return hmac.compare_digest(expected.encode("utf-8"), candidate.encode("utf-8"))
