import asyncio

import pytest

from services import notification_svc, tasks
from services.errors import NotificationError


CONTEXT = {
    "applicant_name": "Asha Rao",
    "applicant_email": "a@x.com",
    "scholarship_name": "Merit Scholarship",
    "application_id": "app-1",
    "status": "approved",
    "review_notes": "Excellent record",
    "award_amount": 50000,
    "review_date": "2026-03-01T09:30:00+00:00",
}


class FakeMail:
    sent = []

    def __init__(self, config):
        self.config = config

    async def send_message(self, message):
        FakeMail.sent.append(message)


class BrokenMail(FakeMail):
    async def send_message(self, message):
        raise ConnectionRefusedError("smtp down")


@pytest.fixture(autouse=True)
def fake_mail(monkeypatch):
    FakeMail.sent = []
    monkeypatch.setattr(notification_svc, "FastMail", FakeMail)
    return FakeMail


@pytest.mark.parametrize("kind", ["submitted", "approved", "rejected", "waitlisted", "welcome"])
def test_every_kind_renders(kind):
    rendered = notification_svc.render_notification(kind, CONTEXT)

    assert "Asha Rao" in rendered["html"]
    assert rendered["subject"]


def test_approved_email_mentions_award_and_notes():
    rendered = notification_svc.render_notification("approved", CONTEXT)

    assert "APPROVED" in rendered["subject"]
    assert "50,000.00" in rendered["html"]
    assert "Excellent record" in rendered["html"]


def test_rejected_email_hides_award():
    rendered = notification_svc.render_notification("rejected", {**CONTEXT, "status": "rejected"})
    assert "50,000.00" not in rendered["html"]


def test_unknown_kind():
    with pytest.raises(ValueError):
        notification_svc.render_notification("under_review", CONTEXT)


def test_send_notification_uses_fastmail(fake_mail):
    asyncio.run(notification_svc.send_notification("a@x.com", "submitted", CONTEXT))

    message = fake_mail.sent[0]
    assert "a@x.com" in str(message.recipients[0])
    assert message.subject == "Application Submitted Successfully - Merit Scholarship"


def test_send_failure_raises_notification_error(monkeypatch):
    monkeypatch.setattr(notification_svc, "FastMail", BrokenMail)

    with pytest.raises(NotificationError):
        asyncio.run(notification_svc.send_notification("a@x.com", "approved", CONTEXT))


def test_task_reports_failure_without_raising(monkeypatch):
    monkeypatch.setattr(notification_svc, "FastMail", BrokenMail)

    result = tasks.send_notification_email.run("a@x.com", "approved", CONTEXT)

    assert result["status"] == "error"
    assert "smtp down" in result["error"]


def test_task_sends(fake_mail):
    result = tasks.send_notification_email.run("a@x.com", "waitlisted", {**CONTEXT, "status": "waitlisted"})

    assert result == {"status": "sent", "kind": "waitlisted", "to": "a@x.com", "application_id": "app-1"}
    assert len(fake_mail.sent) == 1


def test_missing_email_skips_dispatch(notifications):
    asyncio.run(notification_svc.handle_application_reviewed({
        "id": "app-1",
        "applicant_id": "student-1",
        "applicant_email": None,
        "status": "approved",
    }))

    assert notifications.emails == []
    assert notifications.published[0][0] == "user.student-1.notifications"
