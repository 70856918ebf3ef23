"""
auth/tokens.py -- JWT issuance/verification and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Access tokens carry exactly {sub, email, role}
       plus exp and expire after 15 minutes. Refresh tokens have the same claim
       shape, a 7 day expiry, an extra random jti, and are signed with a
       separate key. The two kinds therefore never cross-validate: an access
       verifier rejects a refresh token and vice versa. Verification returns
       None on any failure -- the caller decides what that means.

  jti: two refresh tokens issued for the same account within the same second
       would otherwise be byte-identical, and refresh_sessions.token is unique.

  Passwords: bcrypt directly (no passlib wrapper). The cost factor is
       configurable; verify_password() is bcrypt.checkpw, which compares in
       constant time. AuthService keeps a dummy hash at the same cost so login
       runs one bcrypt check for unknown emails too.

Layer rule: no imports from api/ or core/. Keys and TTLs are passed in.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

import bcrypt
from jose import JWTError, jwt

_ALGORITHM = "HS256"

# bcrypt rejects or truncates longer input, depending on its version.
MAX_PASSWORD_BYTES = 72

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Callers check password_fits() first; bcrypt only accepts
    MAX_PASSWORD_BYTES of input.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def password_fits(plain: str) -> bool:
    """Return True if the UTF-8 encoding of plain is within bcrypt's input limit."""
    return len(plain.encode("utf-8")) <= MAX_PASSWORD_BYTES


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# ---------------------------------------------------------------------------
# JWT issuance / verification
# ---------------------------------------------------------------------------


class TokenIssuer:
    """Stateless signer for access and refresh assertions.

    A pure function of its configuration, the payload, and the clock. Holding
    the clock as an attribute lets tests pin issuance time.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Clock = utcnow,
    ) -> None:
        if access_secret == refresh_secret:
            raise ValueError("access and refresh tokens must be signed with different keys")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    def issue_access_token(self, account_id: str, email: str, role: str) -> str:
        """Sign a short-lived bearer assertion carrying {sub, email, role}."""
        payload = {
            "sub": account_id,
            "email": email,
            "role": role,
            "exp": self._clock() + self.access_ttl,
        }
        return jwt.encode(payload, self._access_secret, algorithm=_ALGORITHM)

    def issue_refresh_secret(self, account_id: str, email: str, role: str) -> str:
        """Sign a long-lived refresh assertion with the refresh key."""
        payload = {
            "sub": account_id,
            "email": email,
            "role": role,
            "jti": uuid.uuid4().hex,
            "exp": self._clock() + self.refresh_ttl,
        }
        return jwt.encode(payload, self._refresh_secret, algorithm=_ALGORITHM)

    def decode_access_token(self, token: str) -> dict | None:
        """Verify an access token. Returns the claims dict or None on any failure."""
        return self._decode(token, self._access_secret)

    def decode_refresh_secret(self, token: str) -> dict | None:
        """Verify a refresh token's signature and expiry. Returns claims or None."""
        return self._decode(token, self._refresh_secret)

    def _decode(self, token: str, secret: str) -> dict | None:
        try:
            # python-jose checks exp against the real wall clock, so exp is
            # verified here against the injected clock instead.
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM], options={"verify_exp": False})
        except JWTError:
            return None
        if not {"sub", "email", "role", "exp"} <= payload.keys():
            return None
        if self._clock().timestamp() >= payload["exp"]:
            return None
        return payload
