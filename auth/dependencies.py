"""
auth/dependencies.py -- FastAPI Depends() helpers for authenticated requests.

Reads "Authorization: Bearer <access token>", verifies it with the access
key, then asks AuthService.validate_session() for the live account. A token
whose account was suspended after issuance is rejected even though its
signature is still valid. A refresh token presented here fails signature
verification (different key).

try_get_current_account() is the soft variant (returns None on failure).
get_current_account() wraps it and raises HTTP 401 if unauthenticated.

auth/dependencies.py may import from fastapi because it is part of the
FastAPI dependency injection system. The rest of auth/ does not.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import NotFoundError
from auth.models import Account
from auth.service import AuthService


def try_get_current_account(request: Request) -> Account | None:
    """Attempt to authenticate the request via its Bearer access token. Never raises."""
    service: AuthService = request.app.state.auth_service

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    claims = service.issuer.decode_access_token(auth_header[7:])
    if claims is None:
        return None
    try:
        return service.validate_session(claims["sub"])
    except NotFoundError:
        return None


def get_current_account(request: Request) -> Account:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(account: Account = Depends(get_current_account)): ...
    """
    account = try_get_current_account(request)
    if account is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return account
