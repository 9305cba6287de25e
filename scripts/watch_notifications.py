"""Follow a user's notifications from the terminal using the client engine."""

from __future__ import annotations

import argparse
import asyncio
import logging

from app.client import (
    ClientSettings,
    NotificationApiClient,
    NotificationPushClient,
    NotificationReconciliationEngine,
    NotificationSnapshot,
)
from app.infrastructure.logging_config import configure_logging


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print notification state changes.")
    parser.add_argument("token", help="Bearer credential of the user to follow")
    parser.add_argument("--base-url", default=None, help="Override the API base URL")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args()


def _print_snapshot(snapshot: NotificationSnapshot) -> None:
    print(
        f"[{snapshot.connection_state.value}] {len(snapshot.items)} notification(s), "
        f"{snapshot.unread_count} unread"
    )
    for item in snapshot.items[:5]:
        marker = " " if item.is_read else "*"
        print(f"  {marker} {item.created_at:%Y-%m-%d %H:%M} {item.type.value}: {item.title}")


async def _watch(args: argparse.Namespace) -> None:
    settings = ClientSettings()
    if args.base_url:
        settings = settings.model_copy(update={"base_url": args.base_url})

    async with NotificationApiClient(args.token, settings=settings) as api:
        push = NotificationPushClient(args.token, settings=settings)
        engine = NotificationReconciliationEngine(api, push)
        engine.subscribe(_print_snapshot)
        await engine.start()
        try:
            await push.wait_closed()
        finally:
            await engine.stop()


def main() -> None:
    args = parse_args()
    configure_logging("DEBUG" if args.verbose else "INFO")
    try:
        asyncio.run(_watch(args))
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Stopped")


if __name__ == "__main__":
    main()
