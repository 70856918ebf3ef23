"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, no logic). Stores and the service do
the work; the usability rules for sessions and grants live in the conditional
UPDATEs of auth/sessions.py and auth/grants.py.

Identifiers are 32-char hex UUID4 strings generated by the owning store at
creation time, never by the caller. Timestamps are timezone-aware UTC.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


def new_id() -> str:
    """Return a random 128-bit identifier as 32 hex characters."""
    return uuid.uuid4().hex


class AccountRole(str, Enum):
    client = "client"
    workshop = "workshop"
    admin = "admin"


class AccountStatus(str, Enum):
    pending_verification = "pending_verification"
    active = "active"
    suspended = "suspended"


@dataclass
class AccountDraft:
    """Caller-supplied fields for a new account. The store assigns id and timestamps."""

    email: str
    password_hash: str
    role: AccountRole
    first_name: str | None = None
    last_name: str | None = None
    verification_token: str | None = None
    verification_expires_at: datetime | None = None


@dataclass
class Account:
    """A registered identity.

    password_hash is irreversible and never leaves the service layer -- the
    API maps accounts through api.models.AccountResponse before serializing.

    verification_token / verification_expires_at form the embedded email
    verification grant. Both are cleared together on successful verification.

    Invariant: email_verified implies status != pending_verification.
    """

    id: str
    email: str
    password_hash: str
    role: AccountRole
    status: AccountStatus = AccountStatus.pending_verification
    email_verified: bool = False
    first_name: str | None = None
    last_name: str | None = None
    verification_token: str | None = None
    verification_expires_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class RefreshSession:
    """One issued refresh token.

    Sessions are never deleted, only revoked (audit trail). A session is
    revoked exactly once: when it is redeemed for a new token pair.
    """

    id: str
    account_id: str
    token: str
    expires_at: datetime
    created_at: datetime
    revoked_at: datetime | None = None


@dataclass
class PasswordResetGrant:
    """A single-use, short-lived password reset token scoped to one account."""

    id: str
    account_id: str
    token: str
    expires_at: datetime
    created_at: datetime
    used_at: datetime | None = None


@dataclass
class TokenPair:
    """Access + refresh token strings handed back to the caller."""

    access_token: str
    refresh_token: str
