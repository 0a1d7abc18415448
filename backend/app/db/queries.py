"""Tenancy-safe query helpers."""

import uuid

from sqlalchemy import Select, select

from backend.app.db.models import Assignment, Course, Quiz, Submission


def select_course(course_id: uuid.UUID, tenant_id: uuid.UUID) -> Select[tuple[Course]]:
    """Select one course with tenant scoping enforced.

    Args:
        course_id: Course ID
        tenant_id: Tenant the caller is acting in

    Returns:
        Select filtered by course_id and tenant_id
    """
    return select(Course).where(Course.course_id == course_id, Course.tenant_id == tenant_id)


def select_assignment(
    assignment_id: uuid.UUID, tenant_id: uuid.UUID
) -> Select[tuple[Assignment]]:
    """Select one assignment with tenant scoping enforced."""
    return select(Assignment).where(
        Assignment.assignment_id == assignment_id, Assignment.tenant_id == tenant_id
    )


def select_submission(
    submission_id: uuid.UUID, tenant_id: uuid.UUID
) -> Select[tuple[Submission]]:
    """Select one submission with tenant scoping enforced."""
    return select(Submission).where(
        Submission.submission_id == submission_id, Submission.tenant_id == tenant_id
    )


def select_quiz(quiz_id: uuid.UUID, tenant_id: uuid.UUID) -> Select[tuple[Quiz]]:
    """Select one quiz with tenant scoping enforced."""
    return select(Quiz).where(Quiz.quiz_id == quiz_id, Quiz.tenant_id == tenant_id)
