"""
API request and response models for the Astralx auth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire format is camelCase (accessToken, firstName, ...) to match the mobile
client; Python attribute names stay snake_case via alias_generator.
FastAPI serializes response models by alias.
"""

from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import Account, AccountRole, AccountStatus
from auth.tokens import MAX_PASSWORD_BYTES, password_fits

# Deliberately loose -- deliverability is proven by the verification email,
# not by a regex.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _check_password_bytes(value: str) -> str:
    if not password_fits(value):
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


# max_length counts characters; bcrypt's limit is in bytes, hence the validator.
_Password = Annotated[str, Field(min_length=8, max_length=MAX_PASSWORD_BYTES), AfterValidator(_check_password_bytes)]

# A refresh JWT embeds the email (up to 255 chars) plus sub, role, exp and jti.
MAX_REFRESH_TOKEN_LENGTH = 1024


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(_CamelModel):
    """Request body for POST /api/v1/auth/register."""

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: _Password
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    role: AccountRole


class LoginRequest(_CamelModel):
    email: str = Field(max_length=255)
    # No length rule on login: a policy change must not lock out old passwords.
    password: str = Field(max_length=255)


class RefreshRequest(_CamelModel):
    refresh_token: str = Field(min_length=1, max_length=MAX_REFRESH_TOKEN_LENGTH)


class ForgotPasswordRequest(_CamelModel):
    email: str = Field(max_length=255)


class ResetPasswordRequest(_CamelModel):
    token: str = Field(min_length=1, max_length=64)
    new_password: _Password


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(_CamelModel):
    """Plain acknowledgement for register / verify / forgot / reset."""

    message: str


class AccountResponse(_CamelModel):
    """Public account profile. Never includes the password hash or verification token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: AccountRole
    status: AccountStatus
    email_verified: bool

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            role=account.role,
            status=account.status,
            email_verified=account.email_verified,
        )


class TokenPairResponse(_CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginResponse(TokenPairResponse):
    user: AccountResponse


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
