import asyncio
import threading

import pytest

from dtos.application_dtos import ApplicationCreate
from services import application_svc
from services.errors import ApplicationNotFound, InvalidTransition, ValidationError
from services.event_manager import event_bus, APPLICATION_REVIEWED


@pytest.fixture
def submitted(complete_draft):
    data = ApplicationCreate(scholarship_id="sch-1", scholarship_name="Merit Scholarship", **complete_draft.model_dump())
    app = application_svc.create_application("student-1", "a@x.com", "Asha Rao", data)
    return asyncio.run(application_svc.submit_application(app["id"], uid="student-1"))


def review(app_id, status, notes=None, award=None):
    return asyncio.run(application_svc.review_application(app_id, status, notes, award, reviewer_uid="admin-1"))


def test_approve_sets_review_fields(submitted, store):
    result = review(submitted["id"], "approved", "Strong academics", 50000)

    stored = store.get(submitted["id"])
    assert result["status"] == stored["status"] == "approved"
    assert stored["award_amount"] == 50000
    assert stored["review_notes"] == "Strong academics"
    assert stored["reviewed_by"] == "admin-1"
    assert stored["review_date"]
    assert [h["status"] for h in stored["status_history"]] == ["draft", "submitted", "approved"]


def test_second_review_fails_with_invalid_transition(submitted, store):
    review(submitted["id"], "approved")

    for target in ("approved", "rejected", "waitlisted", "under_review"):
        with pytest.raises(InvalidTransition) as exc:
            review(submitted["id"], target, "again")
        assert exc.value.current_status == "approved"

    assert store.get(submitted["id"])["status"] == "approved"


def test_rejection_requires_notes(submitted, store):
    with pytest.raises(ValidationError):
        review(submitted["id"], "rejected", "")
    with pytest.raises(ValidationError):
        review(submitted["id"], "rejected", "   ")
    assert store.get(submitted["id"])["status"] == "submitted"

    result = review(submitted["id"], "rejected", "Does not meet GPA criteria")
    assert result["status"] == "rejected"


def test_award_amount_only_kept_when_approved(submitted, store):
    review(submitted["id"], "waitlisted", None, 25000)
    assert store.get(submitted["id"])["award_amount"] is None


def test_under_review_then_decision(submitted):
    assert review(submitted["id"], "under_review")["status"] == "under_review"

    with pytest.raises(InvalidTransition):
        review(submitted["id"], "under_review")

    assert review(submitted["id"], "approved", award=1000)["status"] == "approved"


def test_draft_cannot_be_reviewed(complete_draft):
    data = ApplicationCreate(scholarship_id="sch-2", scholarship_name="Need Based", **complete_draft.model_dump())
    app = application_svc.create_application("student-1", "a@x.com", "Asha Rao", data)

    with pytest.raises(InvalidTransition):
        review(app["id"], "approved")


def test_invalid_targets_rejected(submitted):
    with pytest.raises(ValidationError):
        review(submitted["id"], "draft")
    with pytest.raises(ValidationError):
        review(submitted["id"], "submitted")
    with pytest.raises(ValidationError):
        review(submitted["id"], "archived")


def test_unknown_application():
    with pytest.raises(ApplicationNotFound):
        review("missing", "approved")


def test_concurrent_reviews_exactly_one_succeeds(submitted, store):
    outcomes = []
    barrier = threading.Barrier(8)

    def worker(target):
        barrier.wait()
        try:
            review(submitted["id"], target, "decision")
            outcomes.append("ok")
        except InvalidTransition:
            outcomes.append("conflict")

    threads = [
        threading.Thread(target=worker, args=(t,))
        for t in ["approved", "rejected", "waitlisted", "approved"] * 2
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("conflict") == 7
    assert len(store.get(submitted["id"])["status_history"]) == 3


def test_notification_queued_for_decision(submitted, notifications):
    review(submitted["id"], "approved", "Well done", 1000)

    assert notifications.kinds == ["submitted", "approved"]
    to_email, _, context = notifications.emails[-1]
    assert to_email == "a@x.com"
    assert context["award_amount"] == 1000
    channel, message = notifications.published[-1]
    assert channel == "user.student-1.notifications"
    assert message["status"] == "approved"


def test_under_review_pushes_realtime_only(submitted, notifications):
    review(submitted["id"], "under_review")

    assert notifications.kinds == ["submitted"]
    assert notifications.published[-1][1]["status"] == "under_review"


def test_notification_failure_does_not_undo_review(submitted, store, monkeypatch):
    from services import notification_svc

    def broken(*args, **kwargs):
        raise ConnectionError("broker down")

    monkeypatch.setattr(notification_svc, "enqueue_notification", broken)

    result = review(submitted["id"], "approved")

    assert result["status"] == "approved"
    assert store.get(submitted["id"])["status"] == "approved"


def test_failing_subscriber_does_not_reach_reviewer(submitted, store):
    async def exploding(payload):
        raise RuntimeError("handler bug")

    event_bus.subscribe(APPLICATION_REVIEWED, exploding)
    try:
        result = review(submitted["id"], "waitlisted")
    finally:
        event_bus.unsubscribe(APPLICATION_REVIEWED, exploding)

    assert result["status"] == "waitlisted"
