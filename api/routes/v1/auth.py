"""
api/routes/v1/auth.py -- Account and session REST endpoints.

Routes:
  POST /api/v1/auth/register         -- create account, mail verification link; 201
  GET  /api/v1/auth/verify-email     -- consume ?token= verification grant
  POST /api/v1/auth/login            -- email/password -> access + refresh pair
  POST /api/v1/auth/refresh          -- rotate refresh token -> new pair
  POST /api/v1/auth/forgot-password  -- mail reset link (uniform response)
  POST /api/v1/auth/reset-password   -- consume reset grant, set new password
  GET  /api/v1/auth/profile          -- current account (Bearer access token)

Handlers are plain `def`, not `async def`: register, login, and
reset-password run bcrypt, and FastAPI executes sync handlers in its worker
thread pool so hashing never blocks the event loop.

Errors: the service raises auth.errors.AuthError subclasses; api/main.py
renders them into the standard error envelope. Nothing here catches them.

Security:
  Cache-Control: no-store on every response that carries tokens.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from api.models import (
    AccountResponse,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPairResponse,
)
from auth.dependencies import get_current_account
from auth.models import Account, TokenPair
from auth.service import AuthService

# Auth policy:
# - every route except GET /auth/profile is public -- they are how a caller
#   obtains credentials in the first place
# - GET /auth/profile: requires a Bearer access token (get_current_account)
router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _no_store(payload: dict, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=payload)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _pair_payload(service: AuthService, tokens: TokenPair) -> dict:
    return TokenPairResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=int(service.issuer.access_ttl.total_seconds()),
    ).model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Registration and verification
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=MessageResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> MessageResponse:
    """Create a pending account and send its verification email. 409 if the email is taken."""
    result = _service(request).register(
        email=body.email,
        password=body.password,
        role=body.role,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return MessageResponse(**result)


@router.get("/auth/verify-email", response_model=MessageResponse)
def verify_email(request: Request, token: str = Query(min_length=1, max_length=64)) -> MessageResponse:
    """Activate the account that owns the verification token. 400 if missing or expired."""
    return MessageResponse(**_service(request).verify_email(token))


# ---------------------------------------------------------------------------
# Login and refresh
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a token pair and the public profile.

    Unknown email and wrong password produce the same 401 body.
    """
    service = _service(request)
    result = service.login(body.email, body.password)
    payload = _pair_payload(service, result.tokens)
    payload["user"] = AccountResponse.from_account(result.account).model_dump(by_alias=True, mode="json")
    return _no_store(payload)


@router.post("/auth/refresh", response_model=TokenPairResponse)
def refresh(request: Request, body: RefreshRequest) -> JSONResponse:
    """Redeem a refresh token for a new pair. The presented token is revoked."""
    service = _service(request)
    tokens = service.refresh_access_token(body.refresh_token)
    return _no_store(_pair_payload(service, tokens))


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@router.post("/auth/forgot-password", response_model=MessageResponse)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    """Always 200 with the same message, whether or not the email is registered."""
    return MessageResponse(**_service(request).forgot_password(body.email))


@router.post("/auth/reset-password", response_model=MessageResponse)
def reset_password(request: Request, body: ResetPasswordRequest) -> MessageResponse:
    """Set a new password with a reset token. 400 if the token is unknown, used, or expired."""
    return MessageResponse(**_service(request).reset_password(body.token, body.new_password))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/profile", response_model=AccountResponse)
def profile(current_account: Account = Depends(get_current_account)) -> AccountResponse:
    """Return the public profile of the authenticated account."""
    return AccountResponse.from_account(current_account)
