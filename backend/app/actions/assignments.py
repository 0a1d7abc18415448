"""Assignment CRUD actions."""

import logging
import uuid
from dataclasses import asdict
from enum import Enum
from typing import Any

from backend.app.actions.base import ActionEnv, server_action
from backend.app.db.repositories import AssignmentRecord, CourseRecord
from backend.app.errors import ActionError, NotAuthorizedError
from backend.app.grading import mean_percentage
from backend.app.models.actions import (
    CourseInput,
    CreateAssignmentInput,
    DeleteAssignmentInput,
    UpdateAssignmentInput,
)
from backend.app.models.common import AssignmentStatus
from backend.app.reports.service import reports_tag
from backend.app.roles import STAFF_ROLES, Role

logger = logging.getLogger(__name__)


async def owned_course(
    env: ActionEnv, course_id: uuid.UUID, tenant_id: uuid.UUID, message: str
) -> CourseRecord:
    """Load a course the caller teaches.

    Raises:
        NotAuthorizedError: When the course is missing, in another tenant,
            or owned by someone else
    """
    ctx = env.require_ctx()
    course = await env.repos.courses.get_course(course_id, tenant_id)
    if course is None or course.created_by != ctx.user_id:
        raise NotAuthorizedError(message)
    return course


async def visible_course(
    env: ActionEnv, course_id: uuid.UUID, tenant_id: uuid.UUID
) -> CourseRecord:
    """Load a course the caller teaches or takes; staff may read any course.

    Raises:
        ActionError: When the course is not in the tenant
        NotAuthorizedError: For callers with no part in the course
    """
    ctx = env.require_ctx()
    course = await env.repos.courses.get_course(course_id, tenant_id)
    if course is None:
        raise ActionError("Course not found")
    if course.created_by == ctx.user_id or Role.parse(ctx.role) in STAFF_ROLES:
        return course
    if await env.repos.courses.is_enrolled(course_id, ctx.user_id):
        return course
    raise NotAuthorizedError("Not authorized to view this course")


def plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@server_action("create_assignment", CreateAssignmentInput)
async def create_assignment(env: ActionEnv, payload: CreateAssignmentInput) -> AssignmentRecord:
    ctx, tenant_id = env.require_tenant()
    await owned_course(
        env, payload.course_id, tenant_id, "Not authorized to create assignments for this course"
    )

    record = AssignmentRecord(
        assignment_id=uuid.uuid4(),
        tenant_id=tenant_id,
        course_id=payload.course_id,
        title=payload.title,
        description=payload.description or None,
        type=payload.type.value,
        due_date=payload.due_date,
        max_points=payload.max_points,
        submission_type=payload.submission_type.value,
        late_policy=payload.late_policy.value,
        status=payload.status.value,
        created_by=ctx.user_id,
        created_at=env.clock(),
    )
    created = await env.repos.assignments.create_assignment(record)
    env.cache.invalidate_tag(reports_tag(tenant_id))
    return created


@server_action("update_assignment", UpdateAssignmentInput)
async def update_assignment(env: ActionEnv, payload: UpdateAssignmentInput) -> AssignmentRecord:
    """Apply a partial update to an assignment in a course the caller teaches."""
    _, tenant_id = env.require_tenant()
    assignment = await env.repos.assignments.get_assignment(payload.assignment_id, tenant_id)
    if assignment is None:
        raise ActionError("Assignment not found")
    await owned_course(
        env, assignment.course_id, tenant_id, "Not authorized to update this assignment"
    )

    changes = {name: plain(value) for name, value in payload.changes().items()}
    if not changes:
        return assignment

    # Required columns
    for name in ("title", "type", "max_points", "submission_type", "late_policy", "status"):
        if name in changes and changes[name] is None:
            raise ActionError(f"{name} cannot be cleared")

    updated = await env.repos.assignments.update_assignment(
        payload.assignment_id, tenant_id, changes
    )
    env.cache.invalidate_tag(reports_tag(tenant_id))
    return updated


@server_action("delete_assignment", DeleteAssignmentInput)
async def delete_assignment(env: ActionEnv, payload: DeleteAssignmentInput) -> dict[str, Any]:
    _, tenant_id = env.require_tenant()
    assignment = await env.repos.assignments.get_assignment(payload.assignment_id, tenant_id)
    if assignment is None:
        raise ActionError("Assignment not found")
    await owned_course(
        env, assignment.course_id, tenant_id, "Not authorized to delete this assignment"
    )

    await env.repos.assignments.delete_assignment(payload.assignment_id, tenant_id)
    env.cache.invalidate_tag(reports_tag(tenant_id))
    logger.info(
        "Assignment deleted",
        extra={"structured": {"assignment_id": str(payload.assignment_id)}},
    )
    return {"assignment_id": payload.assignment_id}


@server_action("list_assignments", CourseInput)
async def list_assignments(env: ActionEnv, payload: CourseInput) -> list[dict[str, Any]]:
    """Assignments of a course by due date.

    Drafts and the submission and grading totals are only shown to the
    course's teacher and staff.
    """
    ctx, tenant_id = env.require_tenant()
    course = await visible_course(env, payload.course_id, tenant_id)
    is_teacher = course.created_by == ctx.user_id or Role.parse(ctx.role) in STAFF_ROLES

    assignments = await env.repos.assignments.list_assignments(course.course_id, tenant_id)
    grades = await env.repos.grades.list_grades(course.course_id, tenant_id) if is_teacher else []

    rows = []
    for assignment in assignments:
        if not is_teacher and assignment.status == AssignmentStatus.draft.value:
            continue
        row: dict[str, Any] = asdict(assignment)
        if is_teacher:
            submissions = await env.repos.submissions.list_submissions(
                assignment.assignment_id, tenant_id
            )
            graded = [g.percentage for g in grades if g.assignment_id == assignment.assignment_id]
            average = mean_percentage(graded)
            row["submission_count"] = len(submissions)
            row["graded_count"] = len(graded)
            row["average_score"] = round(average) if average is not None else None
        rows.append(row)
    return rows
