"""
Applicant notifications.

State changes emit events on the internal bus; the handlers here queue the
email on Celery and push a realtime message to the applicant's dashboard.
Delivery is best-effort: every failure is logged as a NotificationError and
never propagates back to the action that caused it.
"""
import os
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType
from jinja2 import Environment, FileSystemLoader, select_autoescape

from dtos.application_dtos import NotificationContext
from services.errors import NotificationError
from services.event_manager import event_bus, APPLICATION_SUBMITTED, APPLICATION_REVIEWED
from services.pubsub import pubsub, RedisPubSub

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates" / "email"
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

NOTIFICATION_KINDS = {
    # kind: (template, subject)
    "submitted": ("application_submitted.html", "Application Submitted Successfully - {scholarship_name}"),
    "approved": ("application_status.html", "Application Update - {scholarship_name} | Status: APPROVED"),
    "rejected": ("application_status.html", "Application Update - {scholarship_name} | Status: REJECTED"),
    "waitlisted": ("application_status.html", "Application Update - {scholarship_name} | Status: WAITLISTED"),
    "welcome": ("welcome.html", "Welcome to Our Scholarship Platform! 🎓"),
}

STATUS_HEADLINES = {
    "approved": "Congratulations! Your scholarship application has been APPROVED!",
    "rejected": "Your scholarship application status has been updated.",
    "waitlisted": "Your scholarship application has been WAITLISTED.",
}

env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


def _mail_config() -> ConnectionConfig:
    return ConnectionConfig(
        MAIL_USERNAME=os.getenv("MAIL_USERNAME", ""),
        MAIL_PASSWORD=os.getenv("MAIL_PASSWORD", ""),
        MAIL_FROM=os.getenv("MAIL_FROM", "no-reply@scholarships.app"),
        MAIL_FROM_NAME=os.getenv("MAIL_FROM_NAME", "Scholarship Team"),
        MAIL_PORT=int(os.getenv("MAIL_PORT", "587")),
        MAIL_SERVER=os.getenv("MAIL_SERVER", "localhost"),
        MAIL_STARTTLS=os.getenv("MAIL_STARTTLS", "true").lower() == "true",
        MAIL_SSL_TLS=os.getenv("MAIL_SSL_TLS", "false").lower() == "true",
        USE_CREDENTIALS=bool(os.getenv("MAIL_USERNAME")),
    )


def render_notification(kind: str, context: Dict[str, Any]) -> Dict[str, str]:
    """Build subject and HTML body for a notification kind."""
    if kind not in NOTIFICATION_KINDS:
        raise ValueError(f"Unknown notification kind '{kind}'")

    template_name, subject_tpl = NOTIFICATION_KINDS[kind]
    ctx = NotificationContext(**context).model_dump()
    ctx.update(
        kind=kind,
        headline=STATUS_HEADLINES.get(kind, ""),
        frontend_url=FRONTEND_URL,
    )
    subject = subject_tpl.format(scholarship_name=ctx.get("scholarship_name") or "Scholarship")
    html = env.get_template(template_name).render(**ctx)
    return {"subject": subject, "html": html}


async def send_notification(to_email: str, kind: str, context: Dict[str, Any]) -> None:
    """Render and deliver one email. Raises NotificationError on any failure."""
    try:
        rendered = render_notification(kind, context)
        message = MessageSchema(
            subject=rendered["subject"],
            recipients=[to_email],
            body=rendered["html"],
            subtype=MessageType.html,
        )
        await FastMail(_mail_config()).send_message(message)
    except Exception as e:
        raise NotificationError(f"Failed to send '{kind}' email to {to_email}: {e}") from e
    logger.info(f"📧 '{kind}' email sent to {to_email}")


def enqueue_notification(to_email: str, kind: str, context: Dict[str, Any]) -> None:
    """Queue the email on the Celery worker; fire-and-forget."""
    from services.tasks import send_notification_email

    send_notification_email.delay(to_email, kind, context)


def _dispatch(to_email: str, kind: str, context: Dict[str, Any]) -> None:
    if not to_email:
        logger.warning(f"No applicant email for application {context.get('application_id')}, skipping '{kind}' email")
        return
    try:
        enqueue_notification(to_email, kind, context)
        logger.info(f"Queued '{kind}' email for application {context.get('application_id')}")
    except Exception as e:
        logger.error(f"{NotificationError.__name__}: could not queue '{kind}' email to {to_email}: {e}")


def _context(application: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "applicant_name": application.get("applicant_name"),
        "applicant_email": application.get("applicant_email"),
        "scholarship_name": application.get("scholarship_name"),
        "application_id": application.get("id"),
        "status": application.get("status"),
        "review_notes": application.get("review_notes"),
        "award_amount": application.get("award_amount"),
        "review_date": application.get("review_date"),
        "completion_percentage": application.get("completion_percentage"),
    }


def _publish_status_change(application: Dict[str, Any]) -> Dict[str, Any]:
    message = {
        "type": "APPLICATION_STATUS_CHANGED",
        "application_id": application.get("id"),
        "scholarship_name": application.get("scholarship_name"),
        "status": application.get("status"),
        "createdAt": datetime.now(timezone.utc).isoformat(),
        "link": "/dashboard/applications",
    }
    pubsub.publish(RedisPubSub.channel_user_notifications(application.get("applicant_id")), message)
    return message


# ==================== Event Handlers ====================

async def handle_application_submitted(application: Dict[str, Any]):
    _dispatch(application.get("applicant_email"), "submitted", _context(application))
    _publish_status_change(application)
    pubsub.publish(RedisPubSub.channel_admin_reviews(), {
        "type": "APPLICATION_SUBMITTED",
        "application_id": application.get("id"),
        "scholarship_id": application.get("scholarship_id"),
    })


async def handle_application_reviewed(application: Dict[str, Any]):
    status = application.get("status")
    # under_review has no email template; the dashboard push is enough
    if status in NOTIFICATION_KINDS:
        _dispatch(application.get("applicant_email"), status, _context(application))
    _publish_status_change(application)


event_bus.subscribe(APPLICATION_SUBMITTED, handle_application_submitted)
event_bus.subscribe(APPLICATION_REVIEWED, handle_application_reviewed)
