"""Tests for tenant isolation across repositories, actions and reports."""

import uuid
from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient

from backend.app.db.inmemory import InMemoryStore
from backend.app.db.repositories import SubmissionRecord
from backend.app.identity import StaticIdentityProvider
from tests.support import FIXED_NOW, School


@dataclass
class North:
    tenant_id: uuid.UUID
    teacher_id: uuid.UUID
    admin_id: uuid.UUID
    course_id: uuid.UUID


@pytest.fixture
def north(store: InMemoryStore) -> North:
    tenant_id = store.add_tenant("north")
    teacher_id = store.add_profile("Nora North")
    admin_id = store.add_profile("Nils North")
    store.add_membership(teacher_id, tenant_id, "teacher")
    store.add_membership(admin_id, tenant_id, "admin")
    course = store.add_course(tenant_id, teacher_id, "Biology")
    return North(
        tenant_id=tenant_id, teacher_id=teacher_id, admin_id=admin_id, course_id=course.course_id
    )


def _bearer(identity: StaticIdentityProvider, user_id: uuid.UUID, slug: str) -> dict[str, str]:
    user = identity.add_user(f"{user_id}@example.org", "secret1", user_id=user_id)
    return {"Authorization": f"Bearer {identity.issue_token(user)}", "X-Tenant-Slug": slug}


@pytest.mark.asyncio
async def test_course_lookup_is_tenant_scoped(
    store: InMemoryStore, school: School, north: North
) -> None:
    repos = store.repositories()

    assert await repos.courses.get_course(school.course_id, school.tenant_id) is not None
    assert await repos.courses.get_course(school.course_id, north.tenant_id) is None
    assert await repos.courses.get_course(north.course_id, school.tenant_id) is None


@pytest.mark.asyncio
async def test_submission_lookup_is_tenant_scoped(
    store: InMemoryStore, school: School, north: North
) -> None:
    submission = SubmissionRecord(
        submission_id=uuid.uuid4(),
        tenant_id=school.tenant_id,
        assignment_id=uuid.uuid4(),
        student_id=school.student_id,
        content="answer",
        file_url=None,
        is_late=False,
        status="submitted",
        submitted_at=FIXED_NOW,
    )
    store.submissions[submission.submission_id] = submission
    repos = store.repositories()

    found = await repos.submissions.get_submission(submission.submission_id, north.tenant_id)
    assert found is None


def test_teacher_cannot_create_in_foreign_course(
    client: TestClient,
    identity: StaticIdentityProvider,
    store: InMemoryStore,
    school: School,
    north: North,
) -> None:
    response = client.post(
        "/actions/create_assignment",
        json={"course_id": str(school.course_id), "title": "Intrusion"},
        headers=_bearer(identity, north.teacher_id, "north"),
    )

    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Not authorized to create assignments for this course"
    assert store.assignments == {}


def test_request_addressed_to_tenant_without_membership(
    client: TestClient, identity: StaticIdentityProvider, school: School, north: North
) -> None:
    response = client.post(
        "/actions/create_assignment",
        json={"course_id": str(north.course_id), "title": "Wrong school"},
        headers=_bearer(identity, north.teacher_id, "demo"),
    )

    assert response.json()["error"] == "No tenant context"


def test_school_report_lists_only_own_tenant(
    client: TestClient, identity: StaticIdentityProvider, school: School, north: North
) -> None:
    demo = client.get(
        "/api/reports/admin/school/csv", headers=_bearer(identity, school.admin_id, "demo")
    ).text
    other = client.get(
        "/api/reports/admin/school/csv", headers=_bearer(identity, north.admin_id, "north")
    ).text

    assert "Algebra I" in demo
    assert "Biology" not in demo
    assert "Biology" in other
    assert "Algebra I" not in other


def test_class_report_of_foreign_course_is_not_found(
    client: TestClient, identity: StaticIdentityProvider, school: School, north: North
) -> None:
    response = client.get(
        f"/api/reports/teacher/{school.course_id}/csv",
        headers=_bearer(identity, north.admin_id, "north"),
    )

    assert response.status_code == 403
    assert response.json() == {"error": "Course not found"}
