"""Utility script to store a notification for a user from the command line.

The script runs outside the API process, so no live connection is reachable:
the notification is committed and clients pick it up on their next fetch.
"""

from __future__ import annotations

import argparse
import json

from app.application.use_cases.notifications import publish_notification
from app.domain.entities import NotificationType
from app.domain.exceptions import InvalidNotificationError, PersistenceFailure
from app.infrastructure.database import SessionLocal, initialize_database
from app.infrastructure.notifications import NotificationConnectionManager, NotificationPublisher


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for the notification."""

    parser = argparse.ArgumentParser(
        description="Publish a notification to a learning platform user.",
    )
    parser.add_argument("recipient_id", type=int, help="Identifier of the receiving user")
    parser.add_argument(
        "--type",
        dest="notification_type",
        default=NotificationType.SYSTEM.value,
        choices=[member.value for member in NotificationType],
        help="Notification type (default: system)",
    )
    parser.add_argument("--title", required=True, help="Short title shown to the user")
    parser.add_argument("--message", required=True, help="Body of the notification")
    parser.add_argument(
        "--metadata",
        default="{}",
        help="JSON object with extra data for the presentation layer",
    )
    return parser.parse_args()


def main() -> None:
    """Publish a notification using the provided command line arguments."""

    args = parse_args()
    try:
        metadata = json.loads(args.metadata)
    except ValueError as exc:
        raise SystemExit(f"--metadata is not valid JSON: {exc}") from exc
    if not isinstance(metadata, dict):
        raise SystemExit("--metadata must be a JSON object")

    initialize_database()

    session = SessionLocal()
    try:
        notification = publish_notification(
            session,
            NotificationPublisher(NotificationConnectionManager()),
            recipient_id=args.recipient_id,
            notification_type=args.notification_type,
            title=args.title,
            message=args.message,
            metadata=metadata,
        )
    except InvalidNotificationError as exc:
        raise SystemExit(f"Notification rejected: {exc}") from exc
    except PersistenceFailure as exc:
        raise SystemExit(f"Could not store the notification: {exc}") from exc
    else:
        print(
            "Notification stored:\n"
            f"  ID: {notification.id}\n"
            f"  Recipient: {notification.recipient_id}\n"
            f"  Type: {notification.type.value}"
        )
    finally:
        session.close()


if __name__ == "__main__":
    main()
