"""Quiz authoring and attempt actions."""

import logging
import uuid
from typing import Any

from backend.app.actions.assignments import owned_course, plain
from backend.app.actions.base import ActionEnv, server_action
from backend.app.db.repositories import QuizAttemptRecord, QuizRecord
from backend.app.errors import ActionError
from backend.app.grading import percentage
from backend.app.models.actions import (
    CreateQuizInput,
    DeleteQuizInput,
    SubmitQuizAttemptInput,
    UpdateQuizInput,
)
from backend.app.models.common import QuizStatus

logger = logging.getLogger(__name__)


@server_action("create_quiz", CreateQuizInput)
async def create_quiz(env: ActionEnv, payload: CreateQuizInput) -> QuizRecord:
    ctx, tenant_id = env.require_tenant()
    await owned_course(
        env, payload.course_id, tenant_id, "Not authorized to create quizzes for this course"
    )

    record = QuizRecord(
        quiz_id=uuid.uuid4(),
        tenant_id=tenant_id,
        course_id=payload.course_id,
        title=payload.title,
        description=payload.description or None,
        questions=[q.model_dump() for q in payload.questions],
        time_limit_minutes=payload.time_limit_minutes,
        max_attempts=payload.max_attempts,
        passing_score=payload.passing_score,
        status=payload.status.value,
        created_by=ctx.user_id,
        created_at=env.clock(),
    )
    return await env.repos.quizzes.create_quiz(record)


async def _owned_quiz(env: ActionEnv, quiz_id: uuid.UUID, message: str) -> QuizRecord:
    _, tenant_id = env.require_tenant()
    quiz = await env.repos.quizzes.get_quiz(quiz_id, tenant_id)
    if quiz is None:
        raise ActionError("Quiz not found")
    await owned_course(env, quiz.course_id, tenant_id, message)
    return quiz


@server_action("update_quiz", UpdateQuizInput)
async def update_quiz(env: ActionEnv, payload: UpdateQuizInput) -> QuizRecord:
    """Change the settings of a quiz in a course the caller teaches."""
    quiz = await _owned_quiz(env, payload.quiz_id, "Not authorized to update this quiz")

    changes = {name: plain(value) for name, value in payload.changes().items()}
    if not changes:
        return quiz
    for name in ("title", "max_attempts", "passing_score", "status"):
        if name in changes and changes[name] is None:
            raise ActionError(f"{name} cannot be cleared")

    return await env.repos.quizzes.update_quiz(quiz.quiz_id, quiz.tenant_id, changes)


@server_action("delete_quiz", DeleteQuizInput)
async def delete_quiz(env: ActionEnv, payload: DeleteQuizInput) -> dict[str, Any]:
    quiz = await _owned_quiz(env, payload.quiz_id, "Not authorized to delete this quiz")

    await env.repos.quizzes.delete_quiz(quiz.quiz_id, quiz.tenant_id)
    logger.info("Quiz deleted", extra={"structured": {"quiz_id": str(quiz.quiz_id)}})
    return {"quiz_id": quiz.quiz_id}


def score_answers(
    questions: list[dict[str, Any]], answers: list[int | None]
) -> tuple[int, int]:
    """Count answers matching each question's ``correct_index``.

    Unanswered and missing answers score zero.

    Returns:
        (score, max_score)
    """
    score = 0
    for index, question in enumerate(questions):
        selected = answers[index] if index < len(answers) else None
        if selected is not None and selected == question.get("correct_index"):
            score += 1
    return score, len(questions)


@server_action("submit_quiz_attempt", SubmitQuizAttemptInput)
async def submit_quiz_attempt(env: ActionEnv, payload: SubmitQuizAttemptInput) -> dict[str, Any]:
    """Score a student's answers and record the attempt."""
    ctx, tenant_id = env.require_tenant()
    quiz = await env.repos.quizzes.get_quiz(payload.quiz_id, tenant_id)
    if quiz is None:
        raise ActionError("Quiz not found")
    if quiz.status != QuizStatus.published.value:
        raise ActionError("This quiz is not open for attempts")
    if not await env.repos.courses.is_enrolled(quiz.course_id, ctx.user_id):
        raise ActionError("You are not enrolled in this course")
    if len(payload.answers) > len(quiz.questions):
        raise ActionError("More answers than questions")

    attempts = await env.repos.quizzes.count_attempts(quiz.quiz_id, ctx.user_id)
    if attempts >= quiz.max_attempts:
        raise ActionError("Maximum attempts reached")

    score, max_score = score_answers(quiz.questions, payload.answers)
    pct = percentage(score, max_score)
    attempt = await env.repos.quizzes.record_attempt(
        QuizAttemptRecord(
            attempt_id=uuid.uuid4(),
            tenant_id=tenant_id,
            quiz_id=quiz.quiz_id,
            student_id=ctx.user_id,
            answers=list(payload.answers),
            score=score,
            max_score=max_score,
            percentage=pct,
            submitted_at=env.clock(),
        )
    )
    return {
        "attempt_id": attempt.attempt_id,
        "score": score,
        "max_score": max_score,
        "percentage": pct,
        "passed": pct >= quiz.passing_score,
    }
