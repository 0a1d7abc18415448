"""Submission actions."""

import logging
import uuid
from dataclasses import asdict
from typing import Any

from backend.app.actions.assignments import owned_course
from backend.app.actions.base import ActionEnv, server_action
from backend.app.db.repositories import SubmissionRecord
from backend.app.errors import ActionError
from backend.app.models.actions import ListSubmissionsInput, SubmitAssignmentInput
from backend.app.models.common import AssignmentStatus, LatePolicy

logger = logging.getLogger(__name__)


@server_action("submit_assignment", SubmitAssignmentInput)
async def submit_assignment(env: ActionEnv, payload: SubmitAssignmentInput) -> SubmissionRecord:
    """Hand in work for an assignment in a course the student is enrolled in.

    Work after the due date is flagged late, or refused outright when the
    assignment does not accept late work. Submitting again replaces the
    student's earlier submission for the assignment.
    """
    ctx, tenant_id = env.require_tenant()
    assignment = await env.repos.assignments.get_assignment(payload.assignment_id, tenant_id)
    if assignment is None:
        raise ActionError("Assignment not found")
    if assignment.status != AssignmentStatus.assigned.value:
        raise ActionError("This assignment is not accepting submissions")
    if not await env.repos.courses.is_enrolled(assignment.course_id, ctx.user_id):
        raise ActionError("You are not enrolled in this course")

    now = env.clock()
    is_late = assignment.due_date is not None and now > assignment.due_date
    if is_late and assignment.late_policy == LatePolicy.no_late.value:
        raise ActionError("This assignment does not accept late submissions")

    record = SubmissionRecord(
        submission_id=uuid.uuid4(),
        tenant_id=tenant_id,
        assignment_id=assignment.assignment_id,
        student_id=ctx.user_id,
        content=payload.content.strip() if payload.content else None,
        file_url=payload.file_url,
        is_late=is_late,
        status="submitted",
        submitted_at=now,
    )
    saved = await env.repos.submissions.upsert_submission(record)
    if saved.submission_id != record.submission_id:
        logger.info(
            "Submission replaced",
            extra={"structured": {"submission_id": str(saved.submission_id)}},
        )
    return saved


@server_action("list_submissions", ListSubmissionsInput)
async def list_submissions(env: ActionEnv, payload: ListSubmissionsInput) -> list[dict[str, Any]]:
    """Submissions for an assignment, newest first, each with its grade if graded."""
    _, tenant_id = env.require_tenant()
    assignment = await env.repos.assignments.get_assignment(payload.assignment_id, tenant_id)
    if assignment is None:
        raise ActionError("Assignment not found")
    await owned_course(
        env, assignment.course_id, tenant_id, "Not authorized to view these submissions"
    )

    submissions = await env.repos.submissions.list_submissions(
        assignment.assignment_id, tenant_id
    )
    grades = {
        g.student_id: g
        for g in await env.repos.grades.list_grades(assignment.course_id, tenant_id)
        if g.assignment_id == assignment.assignment_id
    }
    rows = []
    for submission in submissions:
        grade = grades.get(submission.student_id)
        rows.append({**asdict(submission), "grade": asdict(grade) if grade else None})
    return rows
