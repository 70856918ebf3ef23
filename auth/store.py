"""
auth/store.py -- SQLAlchemy Core schema and the account repository.

Pattern: Repository + Data Mapper. AccountStore is the credential store;
_row_to_account is the mapper. SessionLedger (auth/sessions.py) and
GrantRegistry (auth/grants.py) share the schema and engine defined here.
Service code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  password_hash is loaded into the Account dataclass but never serialized
  outward -- see api.models.AccountResponse.

Schema notes:
  - ids are 32-char hex UUID4 strings assigned here, never by the caller.
  - timestamps are stored as ISO 8601 UTC text (same convention as the rest
    of the stores) and parsed back into aware datetimes by the mappers.
    Fixed-width "+00:00" offsets keep lexical and chronological order equal,
    which the conditional UPDATEs in sessions.py and grants.py rely on.
  - refresh_sessions and password_reset_tokens reference accounts.id with
    ON DELETE CASCADE. SQLite needs PRAGMA foreign_keys=ON per connection
    for that to take effect.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    create_engine,
    event,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import ConflictError
from auth.models import Account, AccountDraft, AccountRole, AccountStatus, new_id

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

accounts = Table(
    "accounts",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("first_name", String(100)),
    Column("last_name", String(100)),
    Column("role", String(20), nullable=False),
    Column("status", String(32), nullable=False, server_default=AccountStatus.pending_verification.value),
    Column("email_verified", Boolean, nullable=False, server_default="0"),
    Column("verification_token", String(64)),
    Column("verification_expires_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_accounts_verification_token", "verification_token"),
    Index("ix_accounts_role", "role"),
    Index("ix_accounts_status", "status"),
)

refresh_sessions = Table(
    "refresh_sessions",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("account_id", String(32), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("token", String(1024), nullable=False, unique=True),
    Column("expires_at", String(32), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("revoked_at", String(32)),  # NULL until redeemed
)

password_reset_tokens = Table(
    "password_reset_tokens",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("account_id", String(32), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("token", String(64), nullable=False, index=True),
    Column("expires_at", String(32), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("used_at", String(32)),  # NULL until redeemed
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_auth_engine(db_url: str) -> Engine:
    """Create the engine shared by all three auth repositories and ensure the schema exists."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # FastAPI runs sync handlers in a thread pool, so the same pooled
        # connection may be used from several threads.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------


def to_iso(value: datetime | None) -> str | None:
    """Normalize an aware datetime to UTC ISO 8601 text."""
    if value is None:
        return None
    if value.tzinfo is None:
        raise ValueError("naive datetimes are not accepted; pass a timezone-aware UTC value")
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        engine = create_auth_engine("sqlite:///:memory:")
        store = AccountStore(engine)
        account = store.create(AccountDraft(email="a@x.com", password_hash=h, role=AccountRole.client))
        store.find_by_email("a@x.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def find_by_email(self, email: str) -> Account | None:
        """Look up an account by exact email (case-sensitive, as stored)."""
        with self.engine.connect() as conn:
            row = conn.execute(select(accounts).where(accounts.c.email == email)).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_by_id(self, account_id: str) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(accounts).where(accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def create(self, draft: AccountDraft, now: datetime | None = None) -> Account:
        """Insert a new pending_verification account and return it.

        Raises ConflictError if the email is already registered. The UNIQUE
        index on email is the final arbiter, so two concurrent registrations
        for the same address cannot both succeed.
        """
        now = now or datetime.now(timezone.utc)
        account = Account(
            id=new_id(),
            email=draft.email,
            password_hash=draft.password_hash,
            role=AccountRole(draft.role),
            status=AccountStatus.pending_verification,
            email_verified=False,
            first_name=draft.first_name,
            last_name=draft.last_name,
            verification_token=draft.verification_token,
            verification_expires_at=draft.verification_expires_at,
            created_at=now,
            updated_at=now,
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(accounts.insert().values(**_account_to_row(account)))
        except IntegrityError as exc:
            raise ConflictError("Email already registered") from exc
        return account

    def save(self, account: Account, now: datetime | None = None) -> Account:
        """Persist every mutable field of an existing account.

        id, email, role, and created_at are immutable and are not written.
        """
        account.updated_at = now or datetime.now(timezone.utc)
        row = _account_to_row(account)
        for immutable in ("id", "email", "role", "created_at"):
            row.pop(immutable)
        with self.engine.begin() as conn:
            conn.execute(accounts.update().where(accounts.c.id == account.id).values(**row))
        return account

    def update_password(self, account_id: str, password_hash: str, now: datetime) -> bool:
        """Replace only the password hash. Returns False if no such account.

        Status and verification columns are left to whoever last wrote them.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                accounts.update()
                .where(accounts.c.id == account_id)
                .values(password_hash=password_hash, updated_at=to_iso(now))
            )
        return result.rowcount == 1

    def update_status(self, email: str, status: AccountStatus, now: datetime | None = None) -> bool:
        """Set the status of a verified account. Returns False if no verified account matches.

        email_verified is restated in the WHERE clause so an account that is
        still pending_verification is never moved.
        """
        now = now or datetime.now(timezone.utc)
        with self.engine.begin() as conn:
            result = conn.execute(
                accounts.update()
                .where((accounts.c.email == email) & (accounts.c.email_verified == True))  # noqa: E712
                .values(status=status.value, updated_at=to_iso(now))
            )
        return result.rowcount == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _account_to_row(account: Account) -> dict:
    return {
        "id": account.id,
        "email": account.email,
        "password_hash": account.password_hash,
        "first_name": account.first_name,
        "last_name": account.last_name,
        "role": account.role.value,
        "status": account.status.value,
        "email_verified": account.email_verified,
        "verification_token": account.verification_token,
        "verification_expires_at": to_iso(account.verification_expires_at),
        "created_at": to_iso(account.created_at),
        "updated_at": to_iso(account.updated_at),
    }


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        first_name=row.first_name,
        last_name=row.last_name,
        role=AccountRole(row.role),
        status=AccountStatus(row.status),
        email_verified=bool(row.email_verified),
        verification_token=row.verification_token,
        verification_expires_at=from_iso(row.verification_expires_at),
        created_at=from_iso(row.created_at),
        updated_at=from_iso(row.updated_at),
    )
