"""
auth/sessions.py -- Session ledger: durable record of issued refresh tokens.

Rows are append-mostly: open() inserts, redeem() stamps revoked_at, nothing
deletes. The revoked rows are the audit trail of every rotation.

Concurrency:
  redeem() is a single conditional UPDATE

      UPDATE refresh_sessions SET revoked_at = :now
      WHERE token = :token AND revoked_at IS NULL AND expires_at > :now

  and succeeds only if exactly one row changed. The database serializes the
  two writers of a race, so of two concurrent redeems on the same token one
  sees rowcount == 1 and the other rowcount == 0. No in-process lock needed.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.engine import Engine

from auth.errors import UnauthorizedError
from auth.models import RefreshSession, new_id
from auth.store import from_iso, refresh_sessions, to_iso

_INVALID_REFRESH = "Invalid or expired refresh token"


class SessionLedger:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def open(self, account_id: str, token: str, now: datetime, ttl_days: int = 7) -> RefreshSession:
        """Record a newly issued refresh token expiring ttl_days after now."""
        session = RefreshSession(
            id=new_id(),
            account_id=account_id,
            token=token,
            expires_at=now + timedelta(days=ttl_days),
            created_at=now,
        )
        with self.engine.begin() as conn:
            conn.execute(
                refresh_sessions.insert().values(
                    id=session.id,
                    account_id=session.account_id,
                    token=session.token,
                    expires_at=to_iso(session.expires_at),
                    created_at=to_iso(session.created_at),
                    revoked_at=None,
                )
            )
        return session

    def redeem(self, token: str, now: datetime) -> RefreshSession:
        """Revoke the session matching token and return it.

        Raises UnauthorizedError if no session matches, it is already revoked,
        or it has expired. A failed redeem writes nothing.
        """
        now_iso = to_iso(now)
        with self.engine.begin() as conn:
            result = conn.execute(
                refresh_sessions.update()
                .where(
                    (refresh_sessions.c.token == token)
                    & (refresh_sessions.c.revoked_at.is_(None))
                    & (refresh_sessions.c.expires_at > now_iso)
                )
                .values(revoked_at=now_iso)
            )
            if result.rowcount != 1:
                raise UnauthorizedError(_INVALID_REFRESH)
            row = conn.execute(select(refresh_sessions).where(refresh_sessions.c.token == token)).one()
        return _row_to_session(row)

    def find_by_token(self, token: str) -> RefreshSession | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(refresh_sessions).where(refresh_sessions.c.token == token)).fetchone()
        return _row_to_session(row) if row is not None else None

    def list_for_account(self, account_id: str) -> list[RefreshSession]:
        """Return every session ever opened for an account, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(refresh_sessions)
                .where(refresh_sessions.c.account_id == account_id)
                .order_by(refresh_sessions.c.created_at)
            ).fetchall()
        return [_row_to_session(r) for r in rows]


def _row_to_session(row) -> RefreshSession:
    return RefreshSession(
        id=row.id,
        account_id=row.account_id,
        token=row.token,
        expires_at=from_iso(row.expires_at),
        created_at=from_iso(row.created_at),
        revoked_at=from_iso(row.revoked_at),
    )
