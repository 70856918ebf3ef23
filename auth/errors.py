"""
auth/errors.py -- Typed failures raised by the auth service.

Each exception carries an HTTP status_code and a stable machine-readable code.
The service raises these at the point of detection; api/main.py turns them
into the standard {"error": {...}} envelope. The service itself never imports
fastapi.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all user-visible auth failures."""

    status_code: int = 400
    code: str = "bad_request"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConflictError(AuthError):
    """Duplicate email on registration."""

    status_code = 409
    code = "conflict"


class UnauthorizedError(AuthError):
    """Bad credentials, unverified/inactive account, or unusable refresh token."""

    status_code = 401
    code = "unauthorized"


class BadRequestError(AuthError):
    """Invalid, expired, or already-used single-use token."""

    status_code = 400
    code = "bad_request"


class NotFoundError(AuthError):
    """Unknown or inactive account id in an internal lookup."""

    status_code = 404
    code = "not_found"
