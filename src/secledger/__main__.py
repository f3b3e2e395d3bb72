"""secledger CLI — unified entry point.

Usage:
    python -m secledger server            # Start the API (FastAPI on port 10000)
    python -m secledger show <username>   # Print a security record (secrets redacted)
    python -m secledger stats             # Ledger summary
    python -m secledger code <username>   # Current TOTP code (development helper)
    python -m secledger init-db           # Create the PostgreSQL table
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import Counter

from secledger.config import settings


def _configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def cmd_server(args: argparse.Namespace) -> None:
    """Start the API server."""
    import uvicorn

    from secledger.api.app import app

    print(f"Starting secledger API on http://{args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, log_level=settings.log_level.lower())


def cmd_show(args: argparse.Namespace) -> None:
    """Print one user's record."""
    from secledger.store import get_store

    record = get_store().snapshot().get(args.username)
    if record is None:
        print(f"No security record for {args.username}")
        sys.exit(1)
    print(json.dumps(record.redacted(), indent=2))


def cmd_stats(args: argparse.Namespace) -> None:
    """Summarize the ledger."""
    from secledger.store import get_store

    store = get_store()
    records = store.snapshot()
    states = Counter(r.two_factor_state for r in records.values())
    pairs = {
        frozenset((user, r.buddy))
        for user, r in records.items()
        if r.buddy and records.get(r.buddy) and records[r.buddy].buddy == user
    }
    one_sided = sum(
        1 for user, r in records.items()
        if r.buddy and (records.get(r.buddy) is None or records[r.buddy].buddy != user)
    )

    print(f"\nBackend: {store.name}")
    print(f"{'Metric':<25} {'Count':>8}")
    print("-" * 35)
    print(f"  {'users':<23} {len(records):>8}")
    print(f"  {'devices':<23} {sum(len(r.devices) for r in records.values()):>8}")
    print(f"  {'face id enrolled':<23} {sum(1 for r in records.values() if r.face_id):>8}")
    print(f"  {'buddy pairs':<23} {len(pairs):>8}")
    print(f"  {'one-sided buddies':<23} {one_sided:>8}")
    print(f"  {'pending requests':<23} {sum(len(r.buddy_requests) for r in records.values()):>8}")
    for state, count in sorted(states.items()):
        print(f"  {'2fa ' + state:<23} {count:>8}")
    print()


def cmd_code(args: argparse.Namespace) -> None:
    """Print the current TOTP code for a user."""
    from secledger.auth.totp import get_code
    from secledger.store import get_store

    record = get_store().snapshot().get(args.username)
    if record is None or not record.two_factor_secret:
        print(f"No 2FA secret for {args.username}")
        sys.exit(1)
    print(get_code(record.two_factor_secret))


def cmd_init_db(args: argparse.Namespace) -> None:
    """Create the PostgreSQL schema."""
    import psycopg

    from secledger.db import init_schema

    try:
        init_schema()
    except psycopg.Error as e:
        print(f"Cannot initialize database: {e}")
        sys.exit(1)
    print("security_records table ready")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="secledger",
        description="secledger — per-user security ledger",
    )
    sub = parser.add_subparsers(dest="command", help="Command to run")

    # server
    p_server = sub.add_parser("server", help="Start the API (FastAPI)")
    p_server.add_argument("--port", type=int, default=settings.port)
    p_server.add_argument("--host", default=settings.host)

    # show
    p_show = sub.add_parser("show", help="Print a security record")
    p_show.add_argument("username")

    # stats
    sub.add_parser("stats", help="Ledger summary")

    # code
    p_code = sub.add_parser("code", help="Current TOTP code for a user")
    p_code.add_argument("username")

    # init-db
    sub.add_parser("init-db", help="Create the PostgreSQL table")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    _configure_logging()
    dispatch = {
        "server": cmd_server,
        "show": cmd_show,
        "stats": cmd_stats,
        "code": cmd_code,
        "init-db": cmd_init_db,
    }
    dispatch[args.command](args)


if __name__ == "__main__":
    main()
