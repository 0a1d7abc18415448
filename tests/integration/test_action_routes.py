"""Integration tests for POST /actions/{name}."""

import uuid
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from backend.app.db.inmemory import InMemoryStore
from backend.app.files import MAX_FILE_SIZES
from backend.app.identity import StaticIdentityProvider
from tests.support import School


def _bearer(identity: StaticIdentityProvider, user_id: uuid.UUID) -> dict[str, str]:
    user = identity.add_user(f"{user_id}@example.org", "secret1", user_id=user_id)
    return {"Authorization": f"Bearer {identity.issue_token(user)}"}


def test_unknown_action_is_404(client: TestClient) -> None:
    response = client.post("/actions/launch_rockets", json={})

    assert response.status_code == 404


def test_create_assignment_over_http(
    client: TestClient, identity: StaticIdentityProvider, store: InMemoryStore, school: School
) -> None:
    response = client.post(
        "/actions/create_assignment",
        json={"course_id": str(school.course_id), "title": "Lab report", "max_points": 25},
        headers=_bearer(identity, school.teacher_id),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["error"] is None
    assert body["data"]["title"] == "Lab report"
    assert body["data"]["tenant_id"] == str(school.tenant_id)
    assert len(store.assignments) == 1


def test_failed_action_is_still_200(
    client: TestClient, identity: StaticIdentityProvider, school: School
) -> None:
    response = client.post(
        "/actions/create_assignment",
        json={"course_id": str(school.course_id), "title": ""},
        headers=_bearer(identity, school.teacher_id),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Invalid input"
    assert "title" in body["field_errors"]


def test_anonymous_action_call(client: TestClient, school: School) -> None:
    response = client.post(
        "/actions/create_assignment",
        json={"course_id": str(school.course_id), "title": "Lab"},
    )

    assert response.json() == {
        "success": False,
        "data": None,
        "error": "Not authenticated",
        "field_errors": {},
    }


def test_api_tier_throttles_after_budget(
    client: TestClient, identity: StaticIdentityProvider, store: InMemoryStore, school: School
) -> None:
    headers = _bearer(identity, school.teacher_id)
    raw = {"course_id": str(school.course_id), "title": "Spam"}

    results = [
        client.post("/actions/create_assignment", json=raw, headers=headers).json()
        for _ in range(31)
    ]

    assert all(r["success"] for r in results[:30])
    assert results[30]["error"] == "Too many requests. Please try again later."
    assert len(store.assignments) == 30


def test_multipart_upload(
    client: TestClient, identity: StaticIdentityProvider, store: InMemoryStore, school: School
) -> None:
    response = client.post(
        "/actions/upload_file",
        data={"bucket": "course-materials"},
        files={"file": ("syllabus.pdf", b"%PDF-1.7 syllabus", "application/pdf")},
        headers=_bearer(identity, school.teacher_id),
    )

    body = response.json()
    assert body["success"] is True, body
    assert body["data"]["file_name"] == "syllabus.pdf"
    assert body["data"]["file_type"] == "application/pdf"
    assert body["data"]["private"] is False
    assert ("course-materials", body["data"]["path"]) in store.files


def test_oversized_upload_is_refused_unread(
    client: TestClient, identity: StaticIdentityProvider, store: InMemoryStore, school: School
) -> None:
    content = b"\0" * (MAX_FILE_SIZES["avatars"] + 1)

    with patch("starlette.datastructures.UploadFile.read", new_callable=AsyncMock) as read:
        response = client.post(
            "/actions/upload_file",
            data={"bucket": "avatars"},
            files={"file": ("me.png", content, "image/png")},
            headers=_bearer(identity, school.student_id),
        )

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is False
    assert body["error"] == "File size (5 MB) exceeds the 5MB limit"
    read.assert_not_awaited()
    assert store.files == {}


def test_login_action_sets_cookie(
    client: TestClient, identity: StaticIdentityProvider, school: School
) -> None:
    identity.add_user("ada@example.org", "secret1", user_id=school.admin_id)

    response = client.post(
        "/actions/login", json={"email": "ada@example.org", "password": "secret1"}
    )

    assert response.json()["data"]["redirect_to"] == "/admin/dashboard"
    assert "lms_session=" in response.headers["set-cookie"]


def test_session_cookie_authenticates_actions(
    client: TestClient, identity: StaticIdentityProvider, store: InMemoryStore, school: School
) -> None:
    identity.add_user("tina@example.org", "secret1", user_id=school.teacher_id)
    client.post("/auth/login", json={"email": "tina@example.org", "password": "secret1"})

    response = client.post(
        "/actions/create_assignment",
        json={"course_id": str(school.course_id), "title": "Via cookie"},
    )

    assert response.json()["success"] is True
    assert len(store.assignments) == 1
