import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app import app
from routes import realtime
from services import auth_svc, document_slots, storage_svc
from services.auth_svc import AuthenticatedUser, verify_firebase_user, require_admin
from services.redis_manager import redis_manager

STUDENT = AuthenticatedUser("student-1", "a@x.com", "password", name="Asha Rao")
OTHER = AuthenticatedUser("student-2", "b@x.com", "password")
ADMIN = AuthenticatedUser("admin-1", "admin@example.com", "password", is_admin=True)


@pytest.fixture
def client():
    app.dependency_overrides[verify_firebase_user] = lambda: STUDENT
    app.dependency_overrides[require_admin] = lambda: ADMIN
    yield TestClient(app)
    app.dependency_overrides.clear()


def _payload(draft, scholarship_id="sch-1"):
    return {
        "scholarship_id": scholarship_id,
        "scholarship_name": "Merit Scholarship",
        **draft.model_dump(mode="json"),
    }


def _submitted(client, complete_draft):
    app_id = client.post("/api/v1/user/applications/student-1/add", json=_payload(complete_draft)).json()["id"]
    assert client.post(f"/api/v1/user/applications/student-1/{app_id}/submit").status_code == 200
    return app_id


def test_health_live(client):
    assert client.get("/health/live").json() == {"status": "ok"}


def test_health_ready_reports_degraded_redis(client, monkeypatch):
    monkeypatch.setattr(redis_manager, "ping", lambda: False)
    body = client.get("/health/ready").json()

    assert body["status"] == "degraded"
    assert body["store"]["ok"] is True


def test_create_and_fetch_draft(client):
    resp = client.post("/api/v1/user/applications/student-1/add", json={
        "scholarship_id": "sch-1",
        "scholarship_name": "Merit Scholarship",
    })
    assert resp.status_code == 200
    app_id = resp.json()["id"]

    fetched = client.get(f"/api/v1/user/applications/student-1/{app_id}").json()
    assert fetched["status"] == "draft"
    assert fetched["applicant_name"] == "Asha Rao"

    listing = client.get("/api/v1/user/applications/student-1").json()
    assert [a["id"] for a in listing] == [app_id]


def test_cannot_act_for_other_user(client):
    resp = client.post("/api/v1/user/applications/student-2/add", json={
        "scholarship_id": "sch-1",
        "scholarship_name": "Merit Scholarship",
    })
    assert resp.status_code == 403


def test_cannot_read_other_users_application(client):
    app_id = client.post("/api/v1/user/applications/student-1/add", json={
        "scholarship_id": "sch-1",
        "scholarship_name": "Merit Scholarship",
    }).json()["id"]

    app.dependency_overrides[verify_firebase_user] = lambda: OTHER
    assert client.get(f"/api/v1/user/applications/student-2/{app_id}").status_code == 403


def test_unknown_field_rejected(client):
    resp = client.post("/api/v1/user/applications/student-1/add", json={
        "scholarship_id": "sch-1",
        "scholarship_name": "Merit Scholarship",
        "personal_info": {"aadhaar_number": "1234"},
    })
    assert resp.status_code == 422


def test_update_then_completeness(client, complete_draft):
    app_id = client.post("/api/v1/user/applications/student-1/add", json={
        "scholarship_id": "sch-1",
        "scholarship_name": "Merit Scholarship",
    }).json()["id"]

    resp = client.put(
        f"/api/v1/user/applications/student-1/{app_id}",
        json={"personal_info": complete_draft.personal_info.model_dump(mode="json")},
    )
    assert resp.status_code == 200
    assert resp.json()["completion_percentage"] == 25

    report = client.get(f"/api/v1/user/applications/student-1/{app_id}/completeness").json()
    assert report["is_complete"] is False
    assert report["steps"][0]["complete"] is True
    assert "Course" in report["steps"][1]["missing"]


def test_submit_incomplete_returns_missing_fields(client):
    app_id = client.post("/api/v1/user/applications/student-1/add", json={
        "scholarship_id": "sch-1",
        "scholarship_name": "Merit Scholarship",
    }).json()["id"]

    resp = client.post(f"/api/v1/user/applications/student-1/{app_id}/submit")

    assert resp.status_code == 422
    assert "Identity Proof" in resp.json()["detail"]["missing"]


def test_edit_after_submit_conflicts(client, complete_draft):
    app_id = _submitted(client, complete_draft)

    resp = client.put(f"/api/v1/user/applications/student-1/{app_id}", json={"essays": {}})
    assert resp.status_code == 409


def test_admin_review_flow(client, complete_draft, notifications):
    app_id = _submitted(client, complete_draft)

    queue = client.get("/api/v1/admin/applications", params={"status": "submitted"}).json()
    assert queue["pagination"]["total_count"] == 1

    detail = client.get(f"/api/v1/admin/applications/{app_id}").json()
    assert detail["viewed_by_admin"] is True

    resp = client.post(f"/api/v1/admin/applications/{app_id}/review", json={
        "status": "approved",
        "review_notes": "Strong profile",
        "award_amount": 40000,
    })
    assert resp.status_code == 200
    assert resp.json()["award_amount"] == 40000
    assert notifications.kinds == ["submitted", "approved"]

    again = client.post(f"/api/v1/admin/applications/{app_id}/review", json={"status": "rejected", "review_notes": "x"})
    assert again.status_code == 409

    stats = client.get("/api/v1/admin/applications/stats").json()
    assert stats["by_status"]["approved"] == 1


def test_admin_rejection_without_notes(client, complete_draft):
    app_id = _submitted(client, complete_draft)

    resp = client.post(f"/api/v1/admin/applications/{app_id}/review", json={"status": "rejected"})

    assert resp.status_code == 422
    assert resp.json()["detail"]["missing"] == ["review_notes"]


def test_admin_review_unknown_application(client):
    resp = client.post("/api/v1/admin/applications/nope/review", json={"status": "approved"})
    assert resp.status_code == 404


def test_admin_routes_need_admin(client):
    app.dependency_overrides.pop(require_admin)
    assert client.get("/api/v1/admin/applications").status_code == 403


def test_upload_and_serve_document(client):
    resp = client.post(
        "/api/v1/uploads",
        files={"file": ("id.pdf", b"%PDF-1.4 test", "application/pdf")},
        data={"slot_key": "id_proof"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["url"].startswith("/uploads/student-1/id_proof/")
    assert client.get(body["url"]).content == b"%PDF-1.4 test"

    deleted = client.delete("/api/v1/uploads", params={"url": body["url"]}).json()
    assert deleted["deleted"] is True


def test_upload_rejects_wrong_type(client):
    resp = client.post(
        "/api/v1/uploads",
        files={"file": ("me.gif", b"GIF89a", "image/gif")},
        data={"slot_key": "photograph"},
    )
    assert resp.status_code == 422


def test_upload_storage_failure_is_bad_gateway(client, monkeypatch):
    from services.errors import UploadError

    class DownStorage:
        def store(self, content, filename, slot_key, owner_uid):
            raise UploadError("bucket unavailable", slot_key=slot_key)

    monkeypatch.setattr(storage_svc, "_storage", DownStorage())
    resp = client.post(
        "/api/v1/uploads",
        files={"file": ("id.pdf", b"%PDF", "application/pdf")},
        data={"slot_key": "id_proof"},
    )
    assert resp.status_code == 502


def test_other_user_cannot_delete_upload(client):
    url = client.post(
        "/api/v1/uploads",
        files={"file": ("id.pdf", b"%PDF-1.4 mine", "application/pdf")},
        data={"slot_key": "id_proof"},
    ).json()["url"]

    app.dependency_overrides[verify_firebase_user] = lambda: OTHER
    resp = client.delete("/api/v1/uploads", params={"url": url})

    assert resp.status_code == 403
    assert client.get(url).content == b"%PDF-1.4 mine"


def test_oversized_upload_rejected_before_storing(client, monkeypatch):
    stored = []

    class RecordingStorage:
        def store(self, content, filename, slot_key, owner_uid):
            stored.append(filename)
            return {"url": f"/uploads/{owner_uid}/{slot_key}/x.pdf", "filename": filename}

    monkeypatch.setattr(storage_svc, "_storage", RecordingStorage())
    monkeypatch.setattr(document_slots, "MAX_FILE_SIZE", 16)

    resp = client.post(
        "/api/v1/uploads",
        files={"file": ("id.pdf", b"%PDF" + b"x" * 100, "application/pdf")},
        data={"slot_key": "id_proof"},
    )

    assert resp.status_code == 422
    assert stored == []


def test_create_for_unknown_scholarship_is_not_found(client):
    resp = client.post("/api/v1/user/applications/student-1/add", json={"scholarship_id": "nope"})

    assert resp.status_code == 404
    assert client.get("/api/v1/user/applications/student-1").json() == []


def test_create_after_deadline_is_rejected(client, scholarships):
    scholarships.add("expired", {"Scholarship_Name": "Closed Grant", "End_Date": "2021-03-31"})

    resp = client.post("/api/v1/user/applications/student-1/add", json={"scholarship_id": "expired"})

    assert resp.status_code == 422
    assert resp.json()["detail"]["missing"] == ["deadline"]


def test_create_uses_stored_scholarship_name(client, scholarships):
    scholarships.add("sch-x", {"name": "Women in STEM Award", "status": "active"})

    resp = client.post("/api/v1/user/applications/student-1/add", json={
        "scholarship_id": "sch-x",
        "scholarship_name": "Free Money",
    })

    assert resp.status_code == 200
    assert resp.json()["scholarship_name"] == "Women in STEM Award"


# ==================== Realtime ====================

TOKENS = {
    "student-token": {"uid": "student-1", "email": "a@x.com"},
    "admin-token": {"uid": "admin-1", "email": "admin@example.com"},
}


@pytest.fixture
def ws_client(monkeypatch):
    def verify_id_token(token, check_revoked=False):
        if token not in TOKENS:
            raise ValueError("unknown token")
        return TOKENS[token]

    async def listen(channel):
        yield {"type": "application_status_changed", "channel": channel}
        await asyncio.Event().wait()

    monkeypatch.setattr(auth_svc.firebase_auth, "verify_id_token", verify_id_token)
    monkeypatch.setattr(realtime.pubsub, "listen", listen)
    return TestClient(app)


def test_websocket_relays_own_channel(ws_client):
    with ws_client.websocket_connect("/api/v1/realtime/ws/applications/student-1?token=student-token") as ws:
        assert ws.receive_json()["channel"] == "user.student-1.notifications"


@pytest.mark.parametrize("path", [
    "/api/v1/realtime/ws/applications/student-1",
    "/api/v1/realtime/ws/applications/student-1?token=forged",
    "/api/v1/realtime/ws/applications/student-2?token=student-token",
    "/api/v1/realtime/ws/admin/applications?token=student-token",
])
def test_websocket_rejects_unauthorized_subscriptions(ws_client, path):
    with pytest.raises(WebSocketDisconnect) as exc:
        with ws_client.websocket_connect(path) as ws:
            ws.receive_json()

    assert exc.value.code == 1008


def test_admin_websocket_accepts_admin_token(ws_client):
    with ws_client.websocket_connect("/api/v1/realtime/ws/admin/applications?token=admin-token") as ws:
        assert ws.receive_json()["channel"] == "admin.applications"
