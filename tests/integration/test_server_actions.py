"""Integration tests for the server action pipeline over the in-memory store."""

import uuid
from collections.abc import Callable
from datetime import timedelta
from typing import Any

import pytest

from backend.app.actions.base import ActionEnv, ActionResult, run_action
from backend.app.actions.registry import ACTIONS, get_action
from backend.app.db.inmemory import InMemoryRateLimiter, InMemoryStore
from backend.app.db.repositories import AssignmentRecord
from backend.app.identity import StaticIdentityProvider
from backend.app.ratelimit import RateLimiters
from tests.support import FIXED_NOW, School

EnvFactory = Callable[..., ActionEnv]


async def call(env: ActionEnv, name: str, raw: dict[str, Any]) -> ActionResult:
    action = get_action(name)
    assert action is not None
    return await run_action(action, env, raw)


def add_assignment(
    store: InMemoryStore, school: School, **fields: Any
) -> AssignmentRecord:
    values: dict[str, Any] = {
        "assignment_id": uuid.uuid4(),
        "tenant_id": school.tenant_id,
        "course_id": school.course_id,
        "title": "Essay",
        "description": None,
        "type": "homework",
        "due_date": FIXED_NOW + timedelta(days=1),
        "max_points": 50.0,
        "submission_type": "text",
        "late_policy": "accept_late",
        "status": "assigned",
        "created_by": school.teacher_id,
        "created_at": FIXED_NOW - timedelta(days=7),
    }
    values.update(fields)
    record = AssignmentRecord(**values)
    store.assignments[record.assignment_id] = record
    return record


def test_registry_names() -> None:
    assert set(ACTIONS) == {
        "login",
        "create_assignment",
        "update_assignment",
        "delete_assignment",
        "submit_assignment",
        "grade_submission",
        "list_assignments",
        "list_submissions",
        "list_grades",
        "gradebook",
        "create_quiz",
        "update_quiz",
        "delete_quiz",
        "submit_quiz_attempt",
        "upload_file",
        "delete_file",
    }


class TestPipeline:
    """Authentication, rate limiting and validation ahead of the handler."""

    @pytest.mark.asyncio
    async def test_unauthenticated_call_is_rejected(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        result = await call(
            make_env(), "create_assignment", {"course_id": str(school.course_id)}
        )

        assert result.success is False
        assert result.error == "Not authenticated"
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_rejected_rate_limit_never_writes(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        limiters = RateLimiters(
            auth=InMemoryRateLimiter(5),
            api=InMemoryRateLimiter(2),
            general=InMemoryRateLimiter(60),
            report=InMemoryRateLimiter(5),
        )
        env = make_env(school.teacher, limiters=limiters)
        raw = {"course_id": str(school.course_id), "title": "Homework"}

        first = await call(env, "create_assignment", raw)
        second = await call(env, "create_assignment", raw)
        assert first.success and second.success
        assert store.writes == 2

        rejected = [await call(env, "create_assignment", raw) for _ in range(5)]

        assert [r.success for r in rejected] == [False] * 5
        assert {r.error for r in rejected} == {"Too many requests. Please try again later."}
        assert store.writes == 2
        assert len(store.assignments) == 2

    @pytest.mark.asyncio
    async def test_rate_limit_checked_before_validation(
        self, make_env: EnvFactory, school: School
    ) -> None:
        limiters = RateLimiters(
            auth=InMemoryRateLimiter(5),
            api=InMemoryRateLimiter(1),
            general=InMemoryRateLimiter(60),
            report=InMemoryRateLimiter(5),
        )
        env = make_env(school.teacher, limiters=limiters)

        await call(env, "create_assignment", {})
        result = await call(env, "create_assignment", {})

        assert result.error == "Too many requests. Please try again later."
        assert result.field_errors == {}

    @pytest.mark.asyncio
    async def test_limits_are_per_user(
        self, make_env: EnvFactory, school: School
    ) -> None:
        limiters = RateLimiters(
            auth=InMemoryRateLimiter(5),
            api=InMemoryRateLimiter(1),
            general=InMemoryRateLimiter(60),
            report=InMemoryRateLimiter(5),
        )
        raw = {"course_id": str(school.course_id), "title": "Homework"}

        own = await call(make_env(school.teacher, limiters=limiters), "create_assignment", raw)
        assert own.success
        other = await call(make_env(school.student, limiters=limiters), "create_assignment", raw)

        # Rejected for ownership, not throttled
        assert other.error == "Not authorized to create assignments for this course"

    @pytest.mark.asyncio
    async def test_invalid_input_returns_field_errors(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        result = await call(
            make_env(school.teacher),
            "create_assignment",
            {"course_id": str(school.course_id), "title": "", "max_points": -1},
        )

        assert result.success is False
        assert result.error == "Invalid input"
        assert set(result.field_errors) == {"title", "max_points"}
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_downstream_error_message_passes_through(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        store.fail_writes_with = 'duplicate key value violates unique constraint "assignment_pkey"'

        result = await call(
            make_env(school.teacher),
            "create_assignment",
            {"course_id": str(school.course_id), "title": "Homework"},
        )

        assert result.success is False
        assert result.error == 'duplicate key value violates unique constraint "assignment_pkey"'


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_returns_role_dashboard(
        self, make_env: EnvFactory, identity: StaticIdentityProvider, school: School
    ) -> None:
        identity.add_user("tina@example.org", "secret1", user_id=school.teacher_id)
        env = make_env()

        result = await call(env, "login", {"email": "tina@example.org", "password": "secret1"})

        assert result.success is True
        assert result.data == {"user_id": school.teacher_id, "redirect_to": "/teacher/dashboard"}
        assert env.issued_token is not None

    @pytest.mark.asyncio
    async def test_login_bad_credentials(
        self, make_env: EnvFactory, identity: StaticIdentityProvider
    ) -> None:
        identity.add_user("tina@example.org", "secret1")

        result = await call(
            make_env(), "login", {"email": "tina@example.org", "password": "nope123"}
        )

        assert result.success is False
        assert result.error == "Invalid login credentials"

    @pytest.mark.asyncio
    async def test_login_is_throttled_per_address(
        self, make_env: EnvFactory, identity: StaticIdentityProvider
    ) -> None:
        env = make_env()
        raw = {"email": "who@example.org", "password": "whatever"}

        results = [await call(env, "login", raw) for _ in range(6)]

        assert [r.error for r in results[:5]] == ["Invalid login credentials"] * 5
        assert results[5].error == "Too many requests. Please try again later."


class TestAssignments:
    @pytest.mark.asyncio
    async def test_create_assignment(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        result = await call(
            make_env(school.teacher),
            "create_assignment",
            {
                "course_id": str(school.course_id),
                "title": "  Chapter 3 ",
                "type": "quiz",
                "max_points": 20,
            },
        )

        assert result.success is True
        created = store.assignments[result.data.assignment_id]
        assert created.title == "Chapter 3"
        assert created.type == "quiz"
        assert created.status == "assigned"
        assert created.created_by == school.teacher_id

    @pytest.mark.asyncio
    async def test_other_teacher_cannot_create(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        other = store.add_profile("Other Teacher")
        store.add_membership(other, school.tenant_id, "teacher")

        result = await call(
            make_env(school.ctx(other, "teacher")),
            "create_assignment",
            {"course_id": str(school.course_id), "title": "Homework"},
        )

        assert result.error == "Not authorized to create assignments for this course"
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_update_assignment_partial(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(store, school)

        result = await call(
            make_env(school.teacher),
            "update_assignment",
            {
                "assignment_id": str(assignment.assignment_id),
                "max_points": 80,
                "status": "closed",
            },
        )

        assert result.success is True
        updated = store.assignments[assignment.assignment_id]
        assert updated.max_points == 80
        assert updated.status == "closed"
        assert updated.title == "Essay"

    @pytest.mark.asyncio
    async def test_update_cannot_clear_title(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(store, school)

        result = await call(
            make_env(school.teacher),
            "update_assignment",
            {"assignment_id": str(assignment.assignment_id), "title": None},
        )

        assert result.error == "title cannot be cleared"

    @pytest.mark.asyncio
    async def test_delete_assignment(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(store, school)

        result = await call(
            make_env(school.teacher),
            "delete_assignment",
            {"assignment_id": str(assignment.assignment_id)},
        )

        assert result.success is True
        assert assignment.assignment_id not in store.assignments

    @pytest.mark.asyncio
    async def test_assignment_in_other_tenant_is_not_found(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        other_tenant = store.add_tenant("other")
        assignment = add_assignment(store, school, tenant_id=other_tenant)

        result = await call(
            make_env(school.teacher),
            "delete_assignment",
            {"assignment_id": str(assignment.assignment_id)},
        )

        assert result.error == "Assignment not found"
        assert assignment.assignment_id in store.assignments


class TestSubmissionsAndGrades:
    @pytest.mark.asyncio
    async def test_submit_on_time(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(store, school)

        result = await call(
            make_env(school.student),
            "submit_assignment",
            {"assignment_id": str(assignment.assignment_id), "content": " My essay "},
        )

        assert result.success is True
        assert result.data.is_late is False
        assert result.data.content == "My essay"

    @pytest.mark.asyncio
    async def test_resubmission_replaces_earlier_work(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(store, school)
        raw = {"assignment_id": str(assignment.assignment_id), "content": "first draft"}

        first = await call(make_env(school.student), "submit_assignment", raw)
        second = await call(
            make_env(school.student), "submit_assignment", {**raw, "content": "final"}
        )

        assert first.success and second.success
        assert len(store.submissions) == 1
        assert second.data.submission_id == first.data.submission_id
        assert store.submissions[first.data.submission_id].content == "final"

    @pytest.mark.asyncio
    async def test_resubmission_keeps_grade_attached(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(store, school)
        raw = {"assignment_id": str(assignment.assignment_id), "content": "essay"}
        first = await call(make_env(school.student), "submit_assignment", raw)
        await call(
            make_env(school.teacher),
            "grade_submission",
            {"submission_id": str(first.data.submission_id), "points_earned": 40},
        )

        await call(make_env(school.student), "submit_assignment", {**raw, "content": "v2"})
        listed = await call(
            make_env(school.teacher),
            "list_submissions",
            {"assignment_id": str(assignment.assignment_id)},
        )

        assert [row["content"] for row in listed.data] == ["v2"]
        assert listed.data[0]["grade"]["points_earned"] == 40

    @pytest.mark.asyncio
    async def test_late_submission_is_flagged(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(store, school, due_date=FIXED_NOW - timedelta(hours=1))

        result = await call(
            make_env(school.student),
            "submit_assignment",
            {"assignment_id": str(assignment.assignment_id), "file_url": "https://f/x.pdf"},
        )

        assert result.success is True
        assert result.data.is_late is True

    @pytest.mark.asyncio
    async def test_late_submission_refused_when_no_late(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(
            store, school, due_date=FIXED_NOW - timedelta(hours=1), late_policy="no_late"
        )

        result = await call(
            make_env(school.student),
            "submit_assignment",
            {"assignment_id": str(assignment.assignment_id), "content": "late"},
        )

        assert result.error == "This assignment does not accept late submissions"
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_submit_requires_enrollment(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(store, school)
        outsider = store.add_profile("Outsider")

        result = await call(
            make_env(school.ctx(outsider, "student")),
            "submit_assignment",
            {"assignment_id": str(assignment.assignment_id), "content": "hi"},
        )

        assert result.error == "You are not enrolled in this course"

    @pytest.mark.asyncio
    async def test_submit_to_draft_is_refused(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(store, school, status="draft")

        result = await call(
            make_env(school.student),
            "submit_assignment",
            {"assignment_id": str(assignment.assignment_id), "content": "hi"},
        )

        assert result.error == "This assignment is not accepting submissions"

    @pytest.mark.asyncio
    async def test_grade_submission_computes_letter(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(store, school)
        submitted = await call(
            make_env(school.student),
            "submit_assignment",
            {"assignment_id": str(assignment.assignment_id), "content": "essay"},
        )

        result = await call(
            make_env(school.teacher),
            "grade_submission",
            {"submission_id": str(submitted.data.submission_id), "points_earned": 46},
        )

        assert result.success is True
        assert result.data.percentage == 92.0
        assert result.data.letter_grade == "A-"
        assert store.grades[(assignment.assignment_id, school.student_id)].points_earned == 46

    @pytest.mark.asyncio
    async def test_regrade_replaces_grade(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(store, school)
        submitted = await call(
            make_env(school.student),
            "submit_assignment",
            {"assignment_id": str(assignment.assignment_id), "content": "essay"},
        )
        raw = {"submission_id": str(submitted.data.submission_id), "points_earned": 30}

        await call(make_env(school.teacher), "grade_submission", raw)
        await call(make_env(school.teacher), "grade_submission", {**raw, "points_earned": 40})

        assert len(store.grades) == 1
        assert store.grades[(assignment.assignment_id, school.student_id)].points_earned == 40

    @pytest.mark.asyncio
    async def test_grade_over_max_points(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(store, school)
        submitted = await call(
            make_env(school.student),
            "submit_assignment",
            {"assignment_id": str(assignment.assignment_id), "content": "essay"},
        )

        result = await call(
            make_env(school.teacher),
            "grade_submission",
            {"submission_id": str(submitted.data.submission_id), "points_earned": 51},
        )

        assert result.error == "Score cannot exceed 50 points"
        assert store.grades == {}


class TestCourseViews:
    """Tenant-scoped listings of assignments, submissions and grades."""

    async def _graded(
        self, make_env: EnvFactory, store: InMemoryStore, school: School, points: float
    ) -> AssignmentRecord:
        assignment = add_assignment(store, school)
        submitted = await call(
            make_env(school.student),
            "submit_assignment",
            {"assignment_id": str(assignment.assignment_id), "content": "essay"},
        )
        graded = await call(
            make_env(school.teacher),
            "grade_submission",
            {"submission_id": str(submitted.data.submission_id), "points_earned": points},
        )
        assert graded.success, graded.error
        return assignment

    @pytest.mark.asyncio
    async def test_list_assignments_for_teacher(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        graded = await self._graded(make_env, store, school, 45)
        later = add_assignment(store, school, title="Later", due_date=FIXED_NOW + timedelta(days=9))
        add_assignment(store, school, title="Undated", due_date=None, status="draft")

        result = await call(
            make_env(school.teacher), "list_assignments", {"course_id": str(school.course_id)}
        )

        assert result.success is True
        assert [row["title"] for row in result.data] == ["Essay", "Later", "Undated"]
        first = result.data[0]
        assert first["assignment_id"] == graded.assignment_id
        assert first["submission_count"] == 1
        assert first["graded_count"] == 1
        assert first["average_score"] == 90
        assert result.data[1]["assignment_id"] == later.assignment_id
        assert result.data[1]["average_score"] is None

    @pytest.mark.asyncio
    async def test_list_assignments_for_student_hides_drafts(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        add_assignment(store, school)
        add_assignment(store, school, title="Draft", status="draft")

        result = await call(
            make_env(school.student), "list_assignments", {"course_id": str(school.course_id)}
        )

        assert [row["title"] for row in result.data] == ["Essay"]
        assert "submission_count" not in result.data[0]

    @pytest.mark.asyncio
    async def test_list_assignments_requires_part_in_course(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        outsider = store.add_profile("Outsider")

        result = await call(
            make_env(school.ctx(outsider, "student")),
            "list_assignments",
            {"course_id": str(school.course_id)},
        )

        assert result.error == "Not authorized to view this course"

    @pytest.mark.asyncio
    async def test_list_assignments_of_foreign_course(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        other_tenant = store.add_tenant("other")
        course = store.add_course(other_tenant, school.teacher_id, "Elsewhere")

        result = await call(
            make_env(school.teacher), "list_assignments", {"course_id": str(course.course_id)}
        )

        assert result.error == "Course not found"

    @pytest.mark.asyncio
    async def test_list_submissions_requires_course_teacher(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = add_assignment(store, school)

        result = await call(
            make_env(school.student),
            "list_submissions",
            {"assignment_id": str(assignment.assignment_id)},
        )

        assert result.error == "Not authorized to view these submissions"

    @pytest.mark.asyncio
    async def test_list_grades_by_role(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        await self._graded(make_env, store, school, 45)
        course = {"course_id": str(school.course_id)}
        child = {**course, "student_id": str(school.student_id)}

        teacher = await call(make_env(school.teacher), "list_grades", course)
        student = await call(make_env(school.student), "list_grades", course)
        parent = await call(make_env(school.parent), "list_grades", child)
        parent_unscoped = await call(make_env(school.parent), "list_grades", course)

        assert [g.points_earned for g in teacher.data] == [45]
        assert [g.student_id for g in student.data] == [school.student_id]
        assert [g.points_earned for g in parent.data] == [45]
        assert parent_unscoped.error == "Not authorized to view these grades"

    @pytest.mark.asyncio
    async def test_student_cannot_read_classmate_grades(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        classmate = store.add_profile("Cal Classmate")
        store.enroll(school.course_id, classmate)

        result = await call(
            make_env(school.student),
            "list_grades",
            {"course_id": str(school.course_id), "student_id": str(classmate)},
        )

        assert result.error == "Not authorized to view these grades"

    @pytest.mark.asyncio
    async def test_gradebook_grid(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        assignment = await self._graded(make_env, store, school, 40)
        classmate = store.add_profile("Cal Classmate")
        store.enroll(school.course_id, classmate)

        result = await call(
            make_env(school.teacher), "gradebook", {"course_id": str(school.course_id)}
        )

        assert result.success is True
        book = result.data
        assert book["course"]["name"] == "Algebra I"
        assert [a["assignment_id"] for a in book["assignments"]] == [assignment.assignment_id]
        assert {s["name"] for s in book["students"]} == {"Sam Student", "Cal Classmate"}
        cell = book["grades"][str(school.student_id)][str(assignment.assignment_id)]
        assert cell == {"points_earned": 40, "max_points": 50.0, "letter_grade": "B-"}
        assert book["overall"][str(school.student_id)] == {
            "percentage": 80.0,
            "letter_grade": "B-",
        }
        assert book["overall"][str(classmate)] == {"percentage": 0.0, "letter_grade": "--"}

    @pytest.mark.asyncio
    async def test_gradebook_requires_course_teacher(
        self, make_env: EnvFactory, school: School
    ) -> None:
        result = await call(
            make_env(school.admin), "gradebook", {"course_id": str(school.course_id)}
        )

        assert result.error == "Not authorized to view this gradebook"


class TestQuizzes:
    QUESTIONS = [
        {"text": "2 + 2?", "options": ["3", "4"], "correct_index": 1},
        {
            "text": "Capital of France?",
            "options": ["Paris", "Rome", "Oslo"],
            "correct_index": 0,
        },
    ]

    async def _published_quiz(self, env: ActionEnv, school: School, **fields: Any) -> uuid.UUID:
        result = await call(
            env,
            "create_quiz",
            {
                "course_id": str(school.course_id),
                "title": "Warm-up",
                "status": "published",
                "questions": self.QUESTIONS,
                **fields,
            },
        )
        assert result.success, result.error
        return result.data.quiz_id  # type: ignore[no-any-return]

    @pytest.mark.asyncio
    async def test_attempt_is_scored(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        quiz_id = await self._published_quiz(make_env(school.teacher), school)

        result = await call(
            make_env(school.student),
            "submit_quiz_attempt",
            {"quiz_id": str(quiz_id), "answers": [1, 2]},
        )

        assert result.success is True
        assert result.data["score"] == 1
        assert result.data["max_score"] == 2
        assert result.data["percentage"] == 50.0
        assert result.data["passed"] is False
        assert len(store.attempts) == 1

    @pytest.mark.asyncio
    async def test_max_attempts(
        self, make_env: EnvFactory, school: School
    ) -> None:
        quiz_id = await self._published_quiz(make_env(school.teacher), school, max_attempts=1)
        raw = {"quiz_id": str(quiz_id), "answers": [1, 0]}

        first = await call(make_env(school.student), "submit_quiz_attempt", raw)
        second = await call(make_env(school.student), "submit_quiz_attempt", raw)

        assert first.data["passed"] is True
        assert second.error == "Maximum attempts reached"

    @pytest.mark.asyncio
    async def test_draft_quiz_is_closed(
        self, make_env: EnvFactory, school: School
    ) -> None:
        quiz_id = await self._published_quiz(make_env(school.teacher), school, status="draft")

        result = await call(
            make_env(school.student),
            "submit_quiz_attempt",
            {"quiz_id": str(quiz_id), "answers": []},
        )

        assert result.error == "This quiz is not open for attempts"

    @pytest.mark.asyncio
    async def test_too_many_answers(
        self, make_env: EnvFactory, school: School
    ) -> None:
        quiz_id = await self._published_quiz(make_env(school.teacher), school)

        result = await call(
            make_env(school.student),
            "submit_quiz_attempt",
            {"quiz_id": str(quiz_id), "answers": [0, 0, 0]},
        )

        assert result.error == "More answers than questions"

    @pytest.mark.asyncio
    async def test_update_quiz_settings(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        quiz_id = await self._published_quiz(make_env(school.teacher), school)

        result = await call(
            make_env(school.teacher),
            "update_quiz",
            {"quiz_id": str(quiz_id), "title": " Review ", "max_attempts": 3, "status": "archived"},
        )

        assert result.success is True
        quiz = store.quizzes[quiz_id]
        assert (quiz.title, quiz.max_attempts, quiz.status) == ("Review", 3, "archived")
        assert len(quiz.questions) == 2

    @pytest.mark.asyncio
    async def test_update_quiz_cannot_clear_title(
        self, make_env: EnvFactory, school: School
    ) -> None:
        quiz_id = await self._published_quiz(make_env(school.teacher), school)

        result = await call(
            make_env(school.teacher), "update_quiz", {"quiz_id": str(quiz_id), "title": None}
        )

        assert result.error == "title cannot be cleared"

    @pytest.mark.asyncio
    async def test_only_course_teacher_edits_quiz(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        quiz_id = await self._published_quiz(make_env(school.teacher), school)
        writes = store.writes
        target = {"quiz_id": str(quiz_id)}

        updated = await call(make_env(school.student), "update_quiz", {**target, "title": "x"})
        deleted = await call(make_env(school.admin), "delete_quiz", target)

        assert updated.error == "Not authorized to update this quiz"
        assert deleted.error == "Not authorized to delete this quiz"
        assert store.writes == writes

    @pytest.mark.asyncio
    async def test_delete_quiz_removes_attempts(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        quiz_id = await self._published_quiz(make_env(school.teacher), school)
        await call(
            make_env(school.student),
            "submit_quiz_attempt",
            {"quiz_id": str(quiz_id), "answers": [1, 0]},
        )

        result = await call(make_env(school.teacher), "delete_quiz", {"quiz_id": str(quiz_id)})
        missing = await call(make_env(school.teacher), "delete_quiz", {"quiz_id": str(quiz_id)})

        assert result.success is True
        assert store.quizzes == {}
        assert store.attempts == []
        assert missing.error == "Quiz not found"


class TestFiles:
    @pytest.mark.asyncio
    async def test_upload_and_delete_own_file(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        uploaded = await call(
            make_env(school.student),
            "upload_file",
            {
                "bucket": "submissions",
                "file_name": "My Essay.PDF",
                "content_type": "application/pdf",
                "content": b"%PDF-1.4",
            },
        )

        assert uploaded.success is True
        path = uploaded.data["path"]
        timestamp_ms = int(FIXED_NOW.timestamp() * 1000)
        assert path.startswith(f"{school.tenant_id}/{school.student_id}/{timestamp_ms}-")
        assert path.endswith("-My_Essay.pdf")
        assert uploaded.data["file_size"] == 8
        assert uploaded.data["private"] is True
        assert ("submissions", path) in store.files

        deleted = await call(
            make_env(school.student), "delete_file", {"bucket": "submissions", "path": path}
        )

        assert deleted.success is True
        assert store.files == {}

    @pytest.mark.asyncio
    async def test_upload_rejects_disallowed_type(
        self, make_env: EnvFactory, store: InMemoryStore, school: School
    ) -> None:
        result = await call(
            make_env(school.student),
            "upload_file",
            {
                "bucket": "avatars",
                "file_name": "run.exe",
                "content_type": "application/x-msdownload",
                "content": b"MZ",
            },
        )

        assert result.success is False
        assert result.error is not None and "is not allowed" in result.error
        assert store.files == {}

    @pytest.mark.asyncio
    async def test_student_cannot_delete_another_users_file(
        self, make_env: EnvFactory, school: School
    ) -> None:
        path = f"{school.tenant_id}/{school.teacher_id}/1-abc-notes.pdf"

        result = await call(
            make_env(school.student), "delete_file", {"bucket": "course-materials", "path": path}
        )

        assert result.error == "Not authorized to delete this file"

    @pytest.mark.asyncio
    async def test_missing_object_surfaces_storage_error(
        self, make_env: EnvFactory, school: School
    ) -> None:
        path = f"{school.tenant_id}/{school.admin_id}/1-abc-gone.pdf"

        result = await call(
            make_env(school.admin), "delete_file", {"bucket": "course-materials", "path": path}
        )

        assert result.error == "Delete failed: Object not found"
