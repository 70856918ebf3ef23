"""
auth/grants.py -- Registry of single-use, short-lived tokens.

Two namespaces with the same contract shape:

  Email verification -- embedded on the accounts row (verification_token +
      verification_expires_at). new_verification_grant() only mints the pair;
      AccountStore.create() writes it with the account row. No history is
      kept. Redeeming clears both columns and flips the account to active +
      verified in the same UPDATE.

  Password reset -- its own table. Each forgot-password request adds a row.
      Earlier outstanding grants for the same account stay valid until they
      expire or are used.

Tokens are random UUID4 hex strings (122 bits of entropy). Lookup is an exact
match on an indexed column, not a comparison loop.

Every redeem is a conditional UPDATE whose WHERE clause restates the
usability rule; rowcount == 1 means this caller won.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.engine import Engine

from auth.errors import BadRequestError
from auth.models import AccountStatus, PasswordResetGrant, new_id
from auth.store import accounts, from_iso, password_reset_tokens, to_iso

_INVALID_VERIFICATION = "Invalid or expired verification token"
_INVALID_RESET = "Invalid or expired reset token"


def _new_token() -> str:
    return uuid.uuid4().hex


class GrantRegistry:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Email verification (embedded on accounts)
    # ------------------------------------------------------------------

    @staticmethod
    def new_verification_grant(now: datetime, ttl_hours: int = 24) -> tuple[str, datetime]:
        """Return (token, expires_at) for a verification grant without writing anything.

        The caller stores both on the AccountDraft, so the account and its
        grant are created by the same INSERT.
        """
        return _new_token(), now + timedelta(hours=ttl_hours)

    def redeem_verification_grant(self, token: str, now: datetime) -> str:
        """Consume a verification grant and activate its account. Returns the account id.

        Only pending_verification accounts match, so a suspended account is
        never re-activated through a stale link.
        """
        now_iso = to_iso(now)
        with self.engine.begin() as conn:
            row = conn.execute(
                select(accounts.c.id).where(
                    (accounts.c.verification_token == token)
                    & (accounts.c.verification_expires_at > now_iso)
                    & (accounts.c.status == AccountStatus.pending_verification.value)
                )
            ).fetchone()
            if row is None:
                raise BadRequestError(_INVALID_VERIFICATION)
            result = conn.execute(
                accounts.update()
                .where((accounts.c.id == row.id) & (accounts.c.verification_token == token))
                .values(
                    verification_token=None,
                    verification_expires_at=None,
                    email_verified=True,
                    status=AccountStatus.active.value,
                    updated_at=now_iso,
                )
            )
            if result.rowcount != 1:
                raise BadRequestError(_INVALID_VERIFICATION)
        return row.id

    # ------------------------------------------------------------------
    # Password reset (own table)
    # ------------------------------------------------------------------

    def issue_reset_grant(self, account_id: str, now: datetime, ttl_hours: int = 1) -> str:
        token = _new_token()
        with self.engine.begin() as conn:
            conn.execute(
                password_reset_tokens.insert().values(
                    id=new_id(),
                    account_id=account_id,
                    token=token,
                    expires_at=to_iso(now + timedelta(hours=ttl_hours)),
                    created_at=to_iso(now),
                    used_at=None,
                )
            )
        return token

    def redeem_reset_grant(self, token: str, now: datetime) -> str:
        """Mark a reset grant used and return its account id.

        Raises BadRequestError if the token is unknown, already used, or expired.
        """
        now_iso = to_iso(now)
        with self.engine.begin() as conn:
            result = conn.execute(
                password_reset_tokens.update()
                .where(
                    (password_reset_tokens.c.token == token)
                    & (password_reset_tokens.c.used_at.is_(None))
                    & (password_reset_tokens.c.expires_at > now_iso)
                )
                .values(used_at=now_iso)
            )
            if result.rowcount != 1:
                raise BadRequestError(_INVALID_RESET)
            account_id = conn.execute(
                select(password_reset_tokens.c.account_id).where(password_reset_tokens.c.token == token)
            ).scalar_one()
        return account_id

    def list_reset_grants(self, account_id: str) -> list[PasswordResetGrant]:
        """Return every reset grant issued for an account, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(password_reset_tokens)
                .where(password_reset_tokens.c.account_id == account_id)
                .order_by(password_reset_tokens.c.created_at)
            ).fetchall()
        return [_row_to_reset_grant(r) for r in rows]


def _row_to_reset_grant(row) -> PasswordResetGrant:
    return PasswordResetGrant(
        id=row.id,
        account_id=row.account_id,
        token=row.token,
        expires_at=from_iso(row.expires_at),
        created_at=from_iso(row.created_at),
        used_at=from_iso(row.used_at),
    )
