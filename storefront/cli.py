"""Command-line maintenance tasks for storefront.

    storefront cancel-stale --days 7
    storefront init-db
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import timedelta

from storefront import __version__
from storefront import logging as log
from storefront._shop import open_shop
from storefront.config import Settings


async def _cancel_stale(settings: Settings, days: int) -> int:
    shop = await open_shop(settings)
    try:
        sweep = await shop.reconciler.cancel_stale(timedelta(days=days))
    finally:
        await shop.close()

    print(f"Cancelled {len(sweep.cancelled)} order(s)")
    for order_id in sweep.cancelled:
        print(f"  #{order_id}")
    if sweep.failed:
        print(f"Failed to cancel: {', '.join(map(str, sweep.failed))}", file=sys.stderr)
        return 1
    return 0


async def _init_db(settings: Settings) -> int:
    shop = await open_shop(settings)
    await shop.close()
    print(f"Schema ready at {settings.database_url}")
    return 0


def cmd_cancel_stale(args: argparse.Namespace) -> int:
    """Cancel pending orders older than --days and release their stock."""
    settings = Settings.from_env()
    days = args.days if args.days is not None else settings.stale_order_days
    if days < 1:
        print("Error: --days must be at least 1", file=sys.stderr)
        return 1
    return asyncio.run(_cancel_stale(settings, days))


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create tables."""
    return asyncio.run(_init_db(Settings.from_env()))


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storefront",
        description="Storefront order maintenance",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    stale = subparsers.add_parser("cancel-stale", help="Cancel stale pending orders")
    stale.add_argument(
        "--days",
        type=int,
        default=None,
        help="Age threshold in days (default: STOREFRONT_STALE_ORDER_DAYS or 7)",
    )
    stale.set_defaults(func=cmd_cancel_stale)

    init = subparsers.add_parser("init-db", help="Create the database schema")
    init.set_defaults(func=cmd_init_db)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    log.configure(settings.log_level, json=settings.log_json)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
