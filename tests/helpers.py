"""
tests/helpers.py -- Test doubles and builders shared by the test modules.

  - FrozenClock: a controllable UTC clock shared by the service and issuer
  - RecordingNotifier: fake mail collaborator that captures sent tokens
  - make_service(): composes an AuthService the way build_auth_service() does
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy.engine import Engine

from auth.grants import GrantRegistry
from auth.service import AuthService
from auth.sessions import SessionLedger
from auth.store import AccountStore
from auth.tokens import TokenIssuer

ACCESS_SECRET = "a" * 32 + "-access-signing-key-for-tests"
REFRESH_SECRET = "r" * 32 + "-refresh-signing-key-for-tests"

# Lowest cost bcrypt accepts; keeps the suite fast.
TEST_BCRYPT_ROUNDS = 4


class FrozenClock:
    """Callable clock that only moves when advance() is called."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


class RecordingNotifier:
    """Mail collaborator double. Set fail=True to report failure, explode=True to raise."""

    def __init__(self) -> None:
        self.verification: list[tuple[str, str]] = []
        self.reset: list[tuple[str, str]] = []
        self.fail = False
        self.explode = False

    def send_verification_email(self, email: str, token: str) -> bool:
        return self._record(self.verification, email, token)

    def send_password_reset_email(self, email: str, token: str) -> bool:
        return self._record(self.reset, email, token)

    def _record(self, box: list, email: str, token: str) -> bool:
        if self.explode:
            raise ConnectionError("SMTP server unreachable")
        box.append((email, token))
        return not self.fail

    def last_verification_token(self, email: str) -> str:
        return [t for e, t in self.verification if e == email][-1]

    def last_reset_token(self, email: str) -> str:
        return [t for e, t in self.reset if e == email][-1]


def make_service(engine: Engine, notifier: RecordingNotifier, clock=None) -> AuthService:
    """Compose an AuthService with test doubles. clock=None uses the real wall clock."""
    kwargs = {"clock": clock} if clock is not None else {}
    issuer = TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, **kwargs)
    return AuthService(
        AccountStore(engine),
        SessionLedger(engine),
        GrantRegistry(engine),
        issuer,
        notifier,
        bcrypt_rounds=TEST_BCRYPT_ROUNDS,
        **kwargs,
    )
