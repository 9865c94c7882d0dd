"""
Background tasks for the scholarship application platform.
"""
import asyncio
import logging
from typing import Any, Dict

from celery_app import celery_app
from services.errors import NotificationError

logger = logging.getLogger(__name__)


# ==================== Notification Tasks ====================

@celery_app.task(name="tasks.send_notification_email")
def send_notification_email(to_email: str, kind: str, context: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deliver one applicant email (submitted, approved, rejected, waitlisted, welcome).

    Not retried: a failed delivery is logged and reported in the task result,
    the application state it describes is already committed.
    """
    from services.notification_svc import send_notification

    try:
        asyncio.run(send_notification(to_email, kind, context))
    except NotificationError as e:
        logger.error(f"❌ {e}")
        return {
            "status": "error",
            "kind": kind,
            "to": to_email,
            "error": str(e),
        }

    return {
        "status": "sent",
        "kind": kind,
        "to": to_email,
        "application_id": context.get("application_id"),
    }
