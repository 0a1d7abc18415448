"""Grading and grade lookup actions."""

import uuid
from typing import Any

from backend.app.actions.assignments import owned_course
from backend.app.actions.base import ActionEnv, server_action
from backend.app.db.repositories import GradeRecord
from backend.app.errors import ActionError, NotAuthorizedError
from backend.app.grading import letter_grade, percentage
from backend.app.models.actions import CourseInput, GradeSubmissionInput, ListGradesInput
from backend.app.reports.service import reports_tag
from backend.app.roles import STAFF_ROLES, Role


@server_action("grade_submission", GradeSubmissionInput)
async def grade_submission(env: ActionEnv, payload: GradeSubmissionInput) -> GradeRecord:
    """Record (or replace) the grade for a submission's student and assignment."""
    ctx, tenant_id = env.require_tenant()
    submission = await env.repos.submissions.get_submission(payload.submission_id, tenant_id)
    if submission is None:
        raise ActionError("Submission not found")

    assignment = await env.repos.assignments.get_assignment(submission.assignment_id, tenant_id)
    if assignment is None:
        raise ActionError("Assignment not found")
    await owned_course(
        env, assignment.course_id, tenant_id, "Not authorized to grade this submission"
    )

    if payload.points_earned > assignment.max_points:
        raise ActionError(f"Score cannot exceed {assignment.max_points:g} points")

    pct = percentage(payload.points_earned, assignment.max_points)
    record = GradeRecord(
        grade_id=uuid.uuid4(),
        tenant_id=tenant_id,
        assignment_id=assignment.assignment_id,
        student_id=submission.student_id,
        submission_id=submission.submission_id,
        points_earned=payload.points_earned,
        percentage=pct,
        letter_grade=letter_grade(pct),
        feedback=payload.feedback or None,
        graded_by=ctx.user_id,
        graded_at=env.clock(),
    )
    saved = await env.repos.grades.upsert_grade(record)
    env.cache.invalidate_tag(reports_tag(tenant_id))
    return saved


@server_action("list_grades", ListGradesInput)
async def list_grades(env: ActionEnv, payload: ListGradesInput) -> list[GradeRecord]:
    """Grades on a course's assignments, most recently graded first.

    The course's teacher and staff may read every student's grades. A parent
    needs an active link to the requested student, and students only ever get
    their own.
    """
    ctx, tenant_id = env.require_tenant()
    course = await env.repos.courses.get_course(payload.course_id, tenant_id)
    if course is None:
        raise ActionError("Course not found")

    role = Role.parse(ctx.role)
    student_id = payload.student_id
    if course.created_by == ctx.user_id or role in STAFF_ROLES:
        pass
    elif role == Role.parent:
        if student_id is None or not await env.repos.reports.has_active_parent_link(
            ctx.user_id, student_id
        ):
            raise NotAuthorizedError("Not authorized to view these grades")
    elif student_id in (None, ctx.user_id) and await env.repos.courses.is_enrolled(
        course.course_id, ctx.user_id
    ):
        student_id = ctx.user_id
    else:
        raise NotAuthorizedError("Not authorized to view these grades")

    return await env.repos.grades.list_grades(course.course_id, tenant_id, student_id)


@server_action("gradebook", CourseInput)
async def gradebook(env: ActionEnv, payload: CourseInput) -> dict[str, Any]:
    """Grid of grades by student and open assignment for the course's teacher.

    ``overall`` is points earned over points possible across the assignments
    a student has been graded on; "--" when nothing is graded yet.
    """
    _, tenant_id = env.require_tenant()
    course = await owned_course(
        env, payload.course_id, tenant_id, "Not authorized to view this gradebook"
    )
    data = await env.repos.reports.class_report_data(course.course_id, tenant_id)
    if data is None:
        raise ActionError("Course not found")

    max_points = {a.assignment_id: a.max_points for a in data.assignments}
    cells: dict[str, dict[str, dict[str, Any]]] = {}
    totals: dict[uuid.UUID, tuple[float, float]] = {}
    for grade in data.grades:
        if grade.assignment_id not in max_points:
            continue
        cells.setdefault(str(grade.student_id), {})[str(grade.assignment_id)] = {
            "points_earned": grade.points_earned,
            "max_points": max_points[grade.assignment_id],
            "letter_grade": grade.letter_grade,
        }
        earned, possible = totals.get(grade.student_id, (0.0, 0.0))
        totals[grade.student_id] = (
            earned + grade.points_earned,
            possible + max_points[grade.assignment_id],
        )

    overall = {}
    for student in data.roster:
        earned, possible = totals.get(student.student_id, (0.0, 0.0))
        pct = percentage(earned, possible)
        overall[str(student.student_id)] = {
            "percentage": pct,
            "letter_grade": letter_grade(pct) if possible > 0 else "--",
        }

    return {
        "course": {"course_id": course.course_id, "name": course.name},
        "assignments": [
            {
                "assignment_id": a.assignment_id,
                "title": a.title,
                "type": a.type,
                "max_points": a.max_points,
                "due_date": a.due_date,
            }
            for a in data.assignments
        ],
        "students": [{"student_id": s.student_id, "name": s.name} for s in data.roster],
        "grades": cells,
        "overall": overall,
    }
