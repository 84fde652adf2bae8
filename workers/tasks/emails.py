"""Email sending tasks."""

import logging
from typing import List

from celery import Task

from workers.celery_app import celery_app
from core.integrations.email import get_email_service

logger = logging.getLogger(__name__)


@celery_app.task(name="workers.tasks.emails.send_email", bind=True)
def send_email(self: Task, to: List[str], subject: str, html: str) -> dict:
    """Send one HTML notification.

    Delivery is best-effort: a failed send is logged and reported in the
    result, never retried.

    Args:
        to: Recipient email addresses
        subject: Email subject
        html: HTML email body

    Returns:
        Dictionary with send status
    """
    sent = get_email_service().send_email(to, subject, html, html=True)
    if not sent:
        logger.warning(
            f"Notification '{subject}' not delivered (task {self.request.id})"
        )
    return {"status": "sent" if sent else "failed", "recipients": len(to)}
