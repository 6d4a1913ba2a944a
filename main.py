#!/usr/bin/env python3
"""
VaultPro Identity -- operator CLI.

Usage:
  python main.py serve [--host 127.0.0.1] [--port 8000] [--reload]
  python main.py provision-demo
  python main.py lookup ann@example.com

Environment variables (see core/config.py for the full list):
  SECRET_KEY         Required unless DEBUG=true. At least 32 characters.
  IDENTITY_BACKEND   "local" (default) or "appwrite".
  DATABASE_URL       SQLAlchemy URL for the local backend.
"""

import argparse
import sys

from auth.factory import build_lifecycle, close_lifecycle
from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _provision_demo(args: argparse.Namespace) -> int:
    """Run the demo login flow once. Creates the demo account if it does not exist yet."""
    lifecycle = build_lifecycle(get_settings())
    try:
        outcome = lifecycle.handle_demo_click()
    finally:
        close_lifecycle(lifecycle)

    if not outcome.ok:
        print(f"  [!] {outcome.error}")
        return 1
    state = "created" if outcome.created else "already present"
    print(f"  Demo account {lifecycle.demo_email}: {state} (session {outcome.session.session_id})")
    return 0


def _lookup(args: argparse.Namespace) -> int:
    """Print the account stored for an email and how many records share it."""
    lifecycle = build_lifecycle(get_settings())
    try:
        account = lifecycle.store.find_by_email(args.email)
        count = lifecycle.store.count_by_email(args.email)
    finally:
        close_lifecycle(lifecycle)

    if account is None:
        print(f"  No account for {args.email}.")
        return 1
    print(f"  email:      {account.email}")
    print(f"  full name:  {account.full_name}")
    print(f"  account id: {account.account_id}")
    print(f"  avatar:     {account.avatar_url}")
    print(f"  created:    {account.created_at or '-'}")
    if count > 1:
        # Two sign-ups for the same fresh email raced past the existence check.
        print(f"  [!] {count} records share this email.")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="vaultpro-identity",
        description="Operate the VaultPro identity and session service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  DEBUG=true python main.py serve --reload
  python main.py provision-demo
  python main.py lookup demo@demo.com
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_serve)

    demo = sub.add_parser("provision-demo", help="Create the demo account if missing and open a session")
    demo.set_defaults(func=_provision_demo)

    lookup = sub.add_parser("lookup", help="Show the account stored for an email")
    lookup.add_argument("email")
    lookup.set_defaults(func=_lookup)

    args = parser.parse_args()
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
