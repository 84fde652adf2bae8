"""
Notification dispatch.

The services build an EmailNotification after their commit and hand it to a
Notifier. ``notify`` never raises and is never awaited by the caller's
transaction: enqueueing or logging failures are swallowed here.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Protocol

from core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class EmailNotification:
    to: List[str]
    subject: str
    html: str
    kind: str = field(default="generic")


class Notifier(Protocol):
    def notify(self, notification: EmailNotification) -> None: ...


class CeleryNotifier:
    """Hands emails to the celery worker."""

    def notify(self, notification: EmailNotification) -> None:
        if not notification.to:
            logger.info(f"No recipients for {notification.kind} notification")
            return
        try:
            from workers.tasks.emails import send_email

            send_email.delay(
                to=notification.to,
                subject=notification.subject,
                html=notification.html,
            )
            logger.info(
                f"Queued {notification.kind} notification for "
                f"{len(notification.to)} recipient(s)"
            )
        except Exception as e:
            logger.warning(f"Failed to queue email: {e}")


class LoggingNotifier:
    """Logs notifications instead of sending them (local development)."""

    def notify(self, notification: EmailNotification) -> None:
        logger.info(
            f"[email:{notification.kind}] to={len(notification.to)} recipient(s) "
            f"subject={notification.subject!r}"
        )


def get_notifier() -> Notifier:
    """FastAPI dependency returning the configured notifier."""
    if settings.notifications_backend == "log":
        return LoggingNotifier()
    return CeleryNotifier()


async def dispatch(
    notifier: Notifier,
    build: Callable[[], Awaitable[EmailNotification | None]],
    kind: str,
) -> None:
    """
    Resolve recipients and hand the email to the notifier.

    Runs after the triggering commit. Any failure, including recipient
    lookups, is logged and dropped.
    """
    try:
        notification = await build()
        if notification is None:
            return
        notification.kind = kind
        notifier.notify(notification)
    except Exception as e:
        logger.warning(f"Failed to dispatch {kind} notification: {e}")


def unique_recipients(emails: List[str | None]) -> List[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen: set[str] = set()
    recipients: List[str] = []
    for email in emails:
        if email and email not in seen:
            seen.add(email)
            recipients.append(email)
    return recipients
