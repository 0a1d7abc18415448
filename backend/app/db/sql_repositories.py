"""SQL implementations of repository interfaces."""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.models import (
    Assignment,
    Course,
    CourseEnrollment,
    Grade,
    Profile,
    Quiz,
    QuizAttempt,
    StoredFile,
    StudentParent,
    Submission,
    Tenant,
    TenantMembership,
)
from backend.app.db.queries import (
    select_assignment,
    select_course,
    select_quiz,
    select_submission,
)
from backend.app.db.repositories import (
    AssignmentRecord,
    ClassReportData,
    CourseRecord,
    GradeRecord,
    MembershipRecord,
    QuizAttemptRecord,
    QuizRecord,
    Repositories,
    RosterEntry,
    SchoolCourseRow,
    StoredFileRecord,
    StudentGradeRow,
    SubmissionRecord,
)
from backend.app.errors import DownstreamError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _database_errors(session: AsyncSession) -> AsyncIterator[None]:
    """Roll back and re-raise driver failures as DownstreamError."""
    try:
        yield
    except SQLAlchemyError as e:
        await session.rollback()
        message = str(e.orig) if getattr(e, "orig", None) is not None else str(e)
        raise DownstreamError(message) from e


def _membership_record(row: TenantMembership) -> MembershipRecord:
    return MembershipRecord(
        membership_id=row.membership_id,
        user_id=row.user_id,
        tenant_id=row.tenant_id,
        role=row.role,
        status=row.status,
        created_at=row.created_at,
    )


def _course_record(row: Course) -> CourseRecord:
    return CourseRecord(
        course_id=row.course_id,
        tenant_id=row.tenant_id,
        name=row.name,
        status=row.status,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _assignment_record(row: Assignment) -> AssignmentRecord:
    return AssignmentRecord(
        assignment_id=row.assignment_id,
        tenant_id=row.tenant_id,
        course_id=row.course_id,
        title=row.title,
        description=row.description,
        type=row.type,
        due_date=row.due_date,
        max_points=float(row.max_points),
        submission_type=row.submission_type,
        late_policy=row.late_policy,
        status=row.status,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _submission_record(row: Submission) -> SubmissionRecord:
    return SubmissionRecord(
        submission_id=row.submission_id,
        tenant_id=row.tenant_id,
        assignment_id=row.assignment_id,
        student_id=row.student_id,
        content=row.content,
        file_url=row.file_url,
        is_late=row.is_late,
        status=row.status,
        submitted_at=row.submitted_at,
    )


def _grade_record(row: Grade) -> GradeRecord:
    return GradeRecord(
        grade_id=row.grade_id,
        tenant_id=row.tenant_id,
        assignment_id=row.assignment_id,
        student_id=row.student_id,
        submission_id=row.submission_id,
        points_earned=float(row.points_earned),
        percentage=float(row.percentage),
        letter_grade=row.letter_grade,
        feedback=row.feedback,
        graded_by=row.graded_by,
        graded_at=row.graded_at,
    )


def _quiz_record(row: Quiz) -> QuizRecord:
    return QuizRecord(
        quiz_id=row.quiz_id,
        tenant_id=row.tenant_id,
        course_id=row.course_id,
        title=row.title,
        description=row.description,
        questions=list(row.questions),
        time_limit_minutes=row.time_limit_minutes,
        max_attempts=row.max_attempts,
        passing_score=float(row.passing_score),
        status=row.status,
        created_by=row.created_by,
        created_at=row.created_at,
    )


class SqlMembershipRepository:
    """SQL implementation of MembershipRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def first_active_membership(self, user_id: uuid.UUID) -> MembershipRecord | None:
        """Get the user's earliest active membership."""
        stmt = (
            select(TenantMembership)
            .where(TenantMembership.user_id == user_id, TenantMembership.status == "active")
            .order_by(TenantMembership.created_at, TenantMembership.membership_id)
            .limit(1)
        )
        async with _database_errors(self._session):
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _membership_record(row) if row else None

    async def membership_for_tenant_slug(
        self, user_id: uuid.UUID, tenant_slug: str
    ) -> MembershipRecord | None:
        """Get the user's active membership in the tenant with this slug."""
        stmt = (
            select(TenantMembership)
            .join(Tenant, Tenant.tenant_id == TenantMembership.tenant_id)
            .where(
                TenantMembership.user_id == user_id,
                TenantMembership.status == "active",
                Tenant.slug == tenant_slug,
            )
            .limit(1)
        )
        async with _database_errors(self._session):
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _membership_record(row) if row else None


class SqlCourseRepository:
    """SQL implementation of CourseRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_course(self, course_id: uuid.UUID, tenant_id: uuid.UUID) -> CourseRecord | None:
        """Get course by ID."""
        async with _database_errors(self._session):
            row = (
                await self._session.execute(select_course(course_id, tenant_id))
            ).scalar_one_or_none()
        return _course_record(row) if row else None

    async def is_enrolled(self, course_id: uuid.UUID, student_id: uuid.UUID) -> bool:
        """Check for an active enrollment."""
        stmt = select(CourseEnrollment.enrollment_id).where(
            CourseEnrollment.course_id == course_id,
            CourseEnrollment.student_id == student_id,
            CourseEnrollment.status == "active",
        )
        async with _database_errors(self._session):
            found = (await self._session.execute(stmt)).first()
        return found is not None


class SqlAssignmentRepository:
    """SQL implementation of AssignmentRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_assignment(
        self, assignment_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> AssignmentRecord | None:
        """Get assignment by ID."""
        async with _database_errors(self._session):
            row = (
                await self._session.execute(select_assignment(assignment_id, tenant_id))
            ).scalar_one_or_none()
        return _assignment_record(row) if row else None

    async def create_assignment(self, record: AssignmentRecord) -> AssignmentRecord:
        """Insert a new assignment."""
        row = Assignment(
            assignment_id=record.assignment_id,
            tenant_id=record.tenant_id,
            course_id=record.course_id,
            title=record.title,
            description=record.description,
            type=record.type,
            due_date=record.due_date,
            max_points=record.max_points,
            submission_type=record.submission_type,
            late_policy=record.late_policy,
            status=record.status,
            created_by=record.created_by,
            created_at=record.created_at,
        )
        async with _database_errors(self._session):
            self._session.add(row)
            await self._session.commit()
        return record

    async def update_assignment(
        self, assignment_id: uuid.UUID, tenant_id: uuid.UUID, changes: dict[str, Any]
    ) -> AssignmentRecord:
        """Apply changes to an assignment."""
        async with _database_errors(self._session):
            row = (
                await self._session.execute(select_assignment(assignment_id, tenant_id))
            ).scalar_one_or_none()
            if row is None:
                raise DownstreamError("Assignment not found")
            for name, value in changes.items():
                setattr(row, name, value)
            await self._session.commit()
        return _assignment_record(row)

    async def delete_assignment(self, assignment_id: uuid.UUID, tenant_id: uuid.UUID) -> None:
        """Delete an assignment."""
        stmt = delete(Assignment).where(
            Assignment.assignment_id == assignment_id, Assignment.tenant_id == tenant_id
        )
        async with _database_errors(self._session):
            await self._session.execute(stmt)
            await self._session.commit()

    async def list_assignments(
        self, course_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> list[AssignmentRecord]:
        """Assignments of a course by due date."""
        stmt = (
            select(Assignment)
            .where(Assignment.course_id == course_id, Assignment.tenant_id == tenant_id)
            .order_by(Assignment.due_date.asc().nulls_last(), Assignment.created_at)
        )
        async with _database_errors(self._session):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_assignment_record(row) for row in rows]


class SqlSubmissionRepository:
    """SQL implementation of SubmissionRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_submission(
        self, submission_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> SubmissionRecord | None:
        """Get submission by ID."""
        async with _database_errors(self._session):
            row = (
                await self._session.execute(select_submission(submission_id, tenant_id))
            ).scalar_one_or_none()
        return _submission_record(row) if row else None

    async def upsert_submission(self, record: SubmissionRecord) -> SubmissionRecord:
        """Insert or replace the submission for (assignment, student)."""
        values = {
            "submission_id": record.submission_id,
            "tenant_id": record.tenant_id,
            "assignment_id": record.assignment_id,
            "student_id": record.student_id,
            "content": record.content,
            "file_url": record.file_url,
            "is_late": record.is_late,
            "status": record.status,
            "submitted_at": record.submitted_at,
        }
        update_cols = {
            k: v
            for k, v in values.items()
            if k not in ("submission_id", "assignment_id", "student_id")
        }
        stmt = (
            insert(Submission)
            .values(**values)
            .on_conflict_do_update(
                constraint="uq_submission_assignment_student", set_=update_cols
            )
            .returning(Submission)
            .execution_options(populate_existing=True)
        )
        async with _database_errors(self._session):
            row = (await self._session.execute(stmt)).scalar_one()
            await self._session.commit()
        return _submission_record(row)

    async def list_submissions(
        self, assignment_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> list[SubmissionRecord]:
        """Submissions for an assignment, newest first."""
        stmt = (
            select(Submission)
            .where(Submission.assignment_id == assignment_id, Submission.tenant_id == tenant_id)
            .order_by(Submission.submitted_at.desc())
        )
        async with _database_errors(self._session):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_submission_record(row) for row in rows]


class SqlGradeRepository:
    """SQL implementation of GradeRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert_grade(self, record: GradeRecord) -> GradeRecord:
        """Insert or replace the grade for (assignment, student)."""
        values = {
            "grade_id": record.grade_id,
            "tenant_id": record.tenant_id,
            "assignment_id": record.assignment_id,
            "student_id": record.student_id,
            "submission_id": record.submission_id,
            "points_earned": record.points_earned,
            "percentage": record.percentage,
            "letter_grade": record.letter_grade,
            "feedback": record.feedback,
            "graded_by": record.graded_by,
            "graded_at": record.graded_at,
        }
        update_cols = {
            k: v for k, v in values.items() if k not in ("grade_id", "assignment_id", "student_id")
        }
        stmt = (
            insert(Grade)
            .values(**values)
            .on_conflict_do_update(constraint="uq_grade_assignment_student", set_=update_cols)
            .returning(Grade)
            .execution_options(populate_existing=True)
        )
        async with _database_errors(self._session):
            row = (await self._session.execute(stmt)).scalar_one()
            await self._session.commit()
        return _grade_record(row)

    async def list_grades(
        self,
        course_id: uuid.UUID,
        tenant_id: uuid.UUID,
        student_id: uuid.UUID | None = None,
    ) -> list[GradeRecord]:
        """Grades on a course's assignments, newest first."""
        stmt = (
            select(Grade)
            .join(Assignment, Assignment.assignment_id == Grade.assignment_id)
            .where(Assignment.course_id == course_id, Grade.tenant_id == tenant_id)
            .order_by(Grade.graded_at.desc())
        )
        if student_id is not None:
            stmt = stmt.where(Grade.student_id == student_id)
        async with _database_errors(self._session):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_grade_record(row) for row in rows]


class SqlQuizRepository:
    """SQL implementation of QuizRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_quiz(self, quiz_id: uuid.UUID, tenant_id: uuid.UUID) -> QuizRecord | None:
        """Get quiz by ID."""
        async with _database_errors(self._session):
            result = await self._session.execute(select_quiz(quiz_id, tenant_id))
            row = result.scalar_one_or_none()
        return _quiz_record(row) if row else None

    async def create_quiz(self, record: QuizRecord) -> QuizRecord:
        """Insert a quiz with its questions."""
        row = Quiz(
            quiz_id=record.quiz_id,
            tenant_id=record.tenant_id,
            course_id=record.course_id,
            title=record.title,
            description=record.description,
            questions=record.questions,
            time_limit_minutes=record.time_limit_minutes,
            max_attempts=record.max_attempts,
            passing_score=record.passing_score,
            status=record.status,
            created_by=record.created_by,
            created_at=record.created_at,
        )
        async with _database_errors(self._session):
            self._session.add(row)
            await self._session.commit()
        return record

    async def update_quiz(
        self, quiz_id: uuid.UUID, tenant_id: uuid.UUID, changes: dict[str, Any]
    ) -> QuizRecord:
        """Apply changes to a quiz."""
        async with _database_errors(self._session):
            row = (
                await self._session.execute(select_quiz(quiz_id, tenant_id))
            ).scalar_one_or_none()
            if row is None:
                raise DownstreamError("Quiz not found")
            for name, value in changes.items():
                setattr(row, name, value)
            await self._session.commit()
        return _quiz_record(row)

    async def delete_quiz(self, quiz_id: uuid.UUID, tenant_id: uuid.UUID) -> None:
        """Delete a quiz; attempts cascade."""
        stmt = delete(Quiz).where(Quiz.quiz_id == quiz_id, Quiz.tenant_id == tenant_id)
        async with _database_errors(self._session):
            await self._session.execute(stmt)
            await self._session.commit()

    async def count_attempts(self, quiz_id: uuid.UUID, student_id: uuid.UUID) -> int:
        """Count prior attempts."""
        stmt = select(func.count()).select_from(QuizAttempt).where(
            QuizAttempt.quiz_id == quiz_id, QuizAttempt.student_id == student_id
        )
        async with _database_errors(self._session):
            return int((await self._session.execute(stmt)).scalar_one())

    async def record_attempt(self, record: QuizAttemptRecord) -> QuizAttemptRecord:
        """Insert a quiz attempt."""
        row = QuizAttempt(
            attempt_id=record.attempt_id,
            tenant_id=record.tenant_id,
            quiz_id=record.quiz_id,
            student_id=record.student_id,
            answers=record.answers,
            score=record.score,
            max_score=record.max_score,
            percentage=record.percentage,
            submitted_at=record.submitted_at,
        )
        async with _database_errors(self._session):
            self._session.add(row)
            await self._session.commit()
        return record


class SqlFileStore:
    """FileStore backed by the stored_file table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upload(self, record: StoredFileRecord, content: bytes) -> StoredFileRecord:
        """Store file bytes."""
        row = StoredFile(
            file_id=record.file_id,
            tenant_id=record.tenant_id,
            bucket=record.bucket,
            path=record.path,
            owner_id=record.owner_id,
            file_name=record.file_name,
            content_type=record.content_type,
            size=record.size,
            content=content,
            created_at=record.created_at,
        )
        try:
            self._session.add(row)
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise DownstreamError("The resource already exists", source="storage") from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise DownstreamError(str(e), source="storage") from e
        return record

    async def remove(self, bucket: str, path: str) -> None:
        """Delete a stored object."""
        stmt = delete(StoredFile).where(StoredFile.bucket == bucket, StoredFile.path == path)
        try:
            result = await self._session.execute(stmt)
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise DownstreamError(str(e), source="storage") from e
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise DownstreamError("Object not found", source="storage")


class SqlReportRepository:
    """SQL implementation of ReportRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def school_course_rows(
        self, tenant_id: uuid.UUID, limit: int = 500
    ) -> list[SchoolCourseRow]:
        """Courses with teacher and enrollment counts, newest first."""
        students = (
            select(func.count(CourseEnrollment.enrollment_id))
            .where(CourseEnrollment.course_id == Course.course_id)
            .correlate(Course)
            .scalar_subquery()
        )
        stmt = (
            select(Course, Profile.full_name, students)
            .outerjoin(Profile, Profile.user_id == Course.created_by)
            .where(Course.tenant_id == tenant_id)
            .order_by(Course.created_at.desc())
            .limit(limit)
        )
        async with _database_errors(self._session):
            result = await self._session.execute(stmt)

        return [
            SchoolCourseRow(
                name=course.name,
                teacher=teacher or "Unknown",
                status=course.status,
                students=int(count or 0),
                created_at=course.created_at,
            )
            for course, teacher, count in result.all()
        ]

    async def class_report_data(
        self, course_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> ClassReportData | None:
        """Assignments, roster and grades of one course."""
        async with _database_errors(self._session):
            course = (
                await self._session.execute(select_course(course_id, tenant_id))
            ).scalar_one_or_none()
            if course is None:
                return None

            assignments = (
                await self._session.execute(
                    select(Assignment)
                    .where(Assignment.course_id == course_id, Assignment.status == "assigned")
                    .order_by(Assignment.due_date.asc().nulls_last())
                )
            ).scalars().all()

            roster = (
                await self._session.execute(
                    select(CourseEnrollment.student_id, Profile.full_name)
                    .outerjoin(Profile, Profile.user_id == CourseEnrollment.student_id)
                    .where(
                        CourseEnrollment.course_id == course_id,
                        CourseEnrollment.status == "active",
                    )
                )
            ).all()

            assignment_ids = [a.assignment_id for a in assignments]
            grades = []
            if assignment_ids:
                grades = (
                    await self._session.execute(
                        select(Grade).where(Grade.assignment_id.in_(assignment_ids))
                    )
                ).scalars().all()

        return ClassReportData(
            course=_course_record(course),
            assignments=[_assignment_record(a) for a in assignments],
            roster=[
                RosterEntry(student_id=student_id, name=name or "Unknown")
                for student_id, name in roster
            ],
            grades=[_grade_record(g) for g in grades],
        )

    async def has_active_parent_link(self, parent_id: uuid.UUID, student_id: uuid.UUID) -> bool:
        """Check for an active parent-student link."""
        stmt = select(StudentParent.link_id).where(
            StudentParent.parent_id == parent_id,
            StudentParent.student_id == student_id,
            StudentParent.status == "active",
        )
        async with _database_errors(self._session):
            return (await self._session.execute(stmt)).first() is not None

    async def student_grade_rows(
        self, student_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> list[StudentGradeRow]:
        """Graded assignments of a student, newest first."""
        stmt = (
            select(Grade, Assignment.title, Course.name)
            .join(Assignment, Assignment.assignment_id == Grade.assignment_id)
            .join(Course, Course.course_id == Assignment.course_id)
            .where(Grade.student_id == student_id, Grade.tenant_id == tenant_id)
            .order_by(Grade.graded_at.desc())
        )
        async with _database_errors(self._session):
            result = await self._session.execute(stmt)

        return [
            StudentGradeRow(
                assignment_title=title,
                course_name=course_name,
                points_earned=float(grade.points_earned),
                percentage=float(grade.percentage),
                letter_grade=grade.letter_grade,
                graded_at=grade.graded_at,
            )
            for grade, title, course_name in result.all()
        ]


def sql_repositories(session: AsyncSession) -> Repositories:
    """Build a repository bundle sharing one session."""
    return Repositories(
        memberships=SqlMembershipRepository(session),
        courses=SqlCourseRepository(session),
        assignments=SqlAssignmentRepository(session),
        submissions=SqlSubmissionRepository(session),
        grades=SqlGradeRepository(session),
        quizzes=SqlQuizRepository(session),
        files=SqlFileStore(session),
        reports=SqlReportRepository(session),
    )
