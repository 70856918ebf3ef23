"""
auth/service.py -- AuthService: registration, verification, login, refresh,
forgot/reset password, and session validation.

The service is the only component that talks to more than one collaborator.
Everything is passed in at construction (store, ledger, grants, issuer,
notifier, clock); build_auth_service() wires the production set from a
Settings object.

State machine: account status moves pending_verification -> active exactly
once, on verify_email(). suspended is set by an operator (main.py set-status)
and only checked here.

Failure policy:
  Every failure is raised where it is detected, before any write that would
  need undoing. Mail delivery is the one swallowed failure: it is logged and
  the triggering operation still succeeds.

Login messages:
  Unknown email and wrong password share one message ("Invalid credentials")
  and both pay for one bcrypt check, so neither the text nor the timing tells
  them apart. Unverified and inactive accounts get distinct messages -- these
  are only reachable with the correct password.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from auth.errors import BadRequestError, NotFoundError, UnauthorizedError
from auth.grants import GrantRegistry
from auth.mailer import Mailer, Notifier, redact_email
from auth.models import Account, AccountDraft, AccountRole, AccountStatus, TokenPair
from auth.sessions import SessionLedger
from auth.store import AccountStore, create_auth_engine
from auth.tokens import MAX_PASSWORD_BYTES, Clock, TokenIssuer, hash_password, password_fits, utcnow, verify_password

logger = logging.getLogger("astralx.auth")

MSG_REGISTERED = "Registration successful. Please check your email to verify your account."
MSG_VERIFIED = "Email verified successfully. You can now log in."
MSG_FORGOT = "If your email is registered, you will receive a password reset link."
MSG_RESET = "Password reset successfully. You can now log in with your new password."

MSG_INVALID_CREDENTIALS = "Invalid credentials"
MSG_UNVERIFIED = "Please verify your email before logging in"
MSG_INACTIVE = "Account is not active"


@dataclass
class LoginResult:
    tokens: TokenPair
    account: Account


class AuthService:
    def __init__(
        self,
        store: AccountStore,
        ledger: SessionLedger,
        grants: GrantRegistry,
        issuer: TokenIssuer,
        notifier: Notifier,
        *,
        refresh_ttl_days: int = 7,
        verification_ttl_hours: int = 24,
        reset_ttl_hours: int = 1,
        bcrypt_rounds: int = 12,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.grants = grants
        self.issuer = issuer
        self.notifier = notifier
        self.refresh_ttl_days = refresh_ttl_days
        self.verification_ttl_hours = verification_ttl_hours
        self.reset_ttl_hours = reset_ttl_hours
        self.bcrypt_rounds = bcrypt_rounds
        self.clock = clock
        # Same cost as real hashes so unknown-email logins take as long as
        # wrong-password logins.
        self._dummy_hash = hash_password("astralx_timing_dummy", rounds=bcrypt_rounds)

    # ------------------------------------------------------------------
    # Registration and verification
    # ------------------------------------------------------------------

    def register(
        self,
        email: str,
        password: str,
        role: AccountRole | str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> dict:
        """Create a pending_verification account and mail its verification link.

        Raises ConflictError if the email is already registered and
        BadRequestError if the password is too long for bcrypt. The account and
        its verification grant are written by one INSERT.
        """
        logger.info("Registration attempt for %s", redact_email(email))
        self._require_hashable(password)
        now = self.clock()
        token, expires_at = self.grants.new_verification_grant(now, ttl_hours=self.verification_ttl_hours)
        account = self.store.create(
            AccountDraft(
                email=email,
                password_hash=hash_password(password, rounds=self.bcrypt_rounds),
                role=AccountRole(role),
                first_name=first_name,
                last_name=last_name,
                verification_token=token,
                verification_expires_at=expires_at,
            ),
            now=now,
        )
        self._notify("verification", self.notifier.send_verification_email, account.email, token)
        logger.info("Account registered: %s", account.id)
        return {"message": MSG_REGISTERED}

    def verify_email(self, token: str) -> dict:
        """Consume a verification token. Raises BadRequestError if missing or expired."""
        logger.info("Email verification attempt")
        account_id = self.grants.redeem_verification_grant(token, self.clock())
        logger.info("Email verified for account %s", account_id)
        return {"message": MSG_VERIFIED}

    # ------------------------------------------------------------------
    # Login and refresh
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> LoginResult:
        """Check credentials and issue an access + refresh pair.

        Raises UnauthorizedError for unknown email, wrong password, unverified
        email, or a non-active account. No token is issued on any failure.
        """
        logger.info("Login attempt for %s", redact_email(email))
        account = self.store.find_by_email(email)
        if account is None:
            verify_password(password, self._dummy_hash)
            raise UnauthorizedError(MSG_INVALID_CREDENTIALS)
        if not verify_password(password, account.password_hash):
            raise UnauthorizedError(MSG_INVALID_CREDENTIALS)
        if not account.email_verified:
            raise UnauthorizedError(MSG_UNVERIFIED)
        if account.status != AccountStatus.active:
            raise UnauthorizedError(MSG_INACTIVE)

        tokens = self._issue_pair(account)
        logger.info("Account logged in: %s", account.id)
        return LoginResult(tokens=tokens, account=account)

    def refresh_access_token(self, refresh_token: str) -> TokenPair:
        """Rotate a refresh token: revoke it and issue a new pair for the same account.

        Raises UnauthorizedError if the token is unknown, revoked, expired, or
        belongs to an account that is no longer active.
        """
        logger.info("Refresh token attempt")
        session = self.ledger.redeem(refresh_token, self.clock())
        account = self.store.find_by_id(session.account_id)
        if account is None or account.status != AccountStatus.active:
            raise UnauthorizedError("Invalid or expired refresh token")
        tokens = self._issue_pair(account)
        logger.info("Tokens refreshed for account %s", account.id)
        return tokens

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def forgot_password(self, email: str) -> dict:
        """Issue and mail a reset grant if the account exists.

        Returns the same message either way so callers cannot probe which
        emails are registered.
        """
        logger.info("Password reset requested for %s", redact_email(email))
        account = self.store.find_by_email(email)
        if account is not None:
            token = self.grants.issue_reset_grant(account.id, self.clock(), ttl_hours=self.reset_ttl_hours)
            self._notify("password reset", self.notifier.send_password_reset_email, account.email, token)
            logger.info("Password reset grant created for account %s", account.id)
        return {"message": MSG_FORGOT}

    def reset_password(self, token: str, new_password: str) -> dict:
        """Set a new password using a reset grant.

        Raises BadRequestError if the grant is not usable or the password is
        too long for bcrypt. Only the password hash is written, so a status
        change made meanwhile is kept.
        """
        logger.info("Password reset attempt")
        self._require_hashable(new_password)
        # Hash before redeeming so the grant is not burned by a slow or
        # failing hash.
        new_hash = hash_password(new_password, rounds=self.bcrypt_rounds)
        now = self.clock()
        account_id = self.grants.redeem_reset_grant(token, now)
        if not self.store.update_password(account_id, new_hash, now):
            raise NotFoundError("User not found or inactive")
        logger.info("Password reset for account %s", account_id)
        return {"message": MSG_RESET}

    # ------------------------------------------------------------------
    # Session validation
    # ------------------------------------------------------------------

    def validate_session(self, account_id: str) -> Account:
        """Return the account behind an authenticated request. Raises NotFoundError if missing or not active."""
        account = self.store.find_by_id(account_id)
        if account is None or account.status != AccountStatus.active:
            raise NotFoundError("User not found or inactive")
        return account

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_hashable(password: str) -> None:
        if not password_fits(password):
            raise BadRequestError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

    def _issue_pair(self, account: Account) -> TokenPair:
        role = account.role.value
        access_token = self.issuer.issue_access_token(account.id, account.email, role)
        refresh_token = self.issuer.issue_refresh_secret(account.id, account.email, role)
        self.ledger.open(account.id, refresh_token, self.clock(), ttl_days=self.refresh_ttl_days)
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    def _notify(self, kind: str, send, email: str, token: str) -> None:
        try:
            delivered = send(email, token)
        except Exception:
            logger.exception("Failed to send %s email to %s", kind, redact_email(email))
            return
        if not delivered:
            logger.error("Failed to send %s email to %s", kind, redact_email(email))


def build_auth_service(settings) -> AuthService:
    """Compose the production AuthService from a core.config.Settings instance."""
    engine = create_auth_engine(settings.database_url)
    issuer = TokenIssuer(
        access_secret=settings.jwt_secret,
        refresh_secret=settings.jwt_refresh_secret,
        access_ttl=timedelta(seconds=settings.access_token_ttl_seconds),
        refresh_ttl=timedelta(days=settings.refresh_token_ttl_days),
    )
    mailer = Mailer(
        host=settings.mail_host,
        port=settings.mail_port,
        user=settings.mail_user,
        password=settings.mail_password,
        use_ssl=settings.mail_secure,
        from_email=settings.mail_from,
        frontend_url=settings.frontend_url,
        verification_ttl_hours=settings.verification_ttl_hours,
        reset_ttl_hours=settings.reset_ttl_hours,
    )
    return AuthService(
        AccountStore(engine),
        SessionLedger(engine),
        GrantRegistry(engine),
        issuer,
        mailer,
        refresh_ttl_days=settings.refresh_token_ttl_days,
        verification_ttl_hours=settings.verification_ttl_hours,
        reset_ttl_hours=settings.reset_ttl_hours,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
