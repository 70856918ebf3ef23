#!/usr/bin/env python3
"""
Astralx auth -- operator command line.

Usage:
  python main.py serve [--host 127.0.0.1] [--port 8000] [--reload]
  python main.py init-db
  python main.py set-status user@example.com suspended
  python main.py set-status user@example.com active

Configuration comes from the environment / .env (see core/config.py).
JWT_SECRET and JWT_REFRESH_SECRET are required unless DEBUG=true.

set-status is the operator action behind the "suspended" account state. It
only toggles verified accounts between active and suspended; accounts still
pending verification are left alone so a verified flag never coexists with
pending_verification.
"""

import argparse
import sys
from typing import Optional

from auth.models import AccountStatus
from auth.store import AccountStore, create_auth_engine
from core.config import get_settings

_SETTABLE = (AccountStatus.active.value, AccountStatus.suspended.value)


def set_account_status(store: AccountStore, email: str, status: str) -> str:
    """Move a verified account between active and suspended.

    Returns a human-readable result line. Raises LookupError for an unknown
    email and ValueError for an unverified account or an unsupported status.
    """
    if status not in _SETTABLE:
        raise ValueError(f"Status must be one of: {', '.join(_SETTABLE)}")
    account = store.find_by_email(email)
    if account is None:
        raise LookupError(f"No account registered for {email}")
    if not account.email_verified:
        raise ValueError(f"{email} has not verified its email yet; status stays {account.status.value}")
    # Status-only write: a password reset landing meanwhile is kept.
    if not store.update_status(email, AccountStatus(status)):
        raise LookupError(f"No verified account registered for {email}")
    return f"{email}: {account.status.value} -> {status}"


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="astralx-auth",
        description="Operate the Astralx account and session service.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")

    sub.add_parser("init-db", help="Create the database schema if it does not exist")

    status = sub.add_parser("set-status", help="Suspend or reactivate a verified account")
    status.add_argument("email")
    status.add_argument("status", choices=_SETTABLE)

    args = parser.parse_args(argv)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
        return 0

    settings = get_settings()
    engine = create_auth_engine(settings.database_url)
    store = AccountStore(engine)
    try:
        if args.command == "init-db":
            print(f"Schema ready at {engine.url.render_as_string(hide_password=True)}")
            return 0

        try:
            print(set_account_status(store, args.email, args.status))
        except (LookupError, ValueError) as exc:
            print(f"  [!] {exc}", file=sys.stderr)
            return 1
        return 0
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
