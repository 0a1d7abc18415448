"""Repository protocol interfaces for data access."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID


@dataclass
class MembershipRecord:
    """Tenant membership data record."""

    membership_id: UUID
    user_id: UUID
    tenant_id: UUID
    role: str
    status: str
    created_at: datetime


@dataclass
class CourseRecord:
    """Course data record."""

    course_id: UUID
    tenant_id: UUID
    name: str
    status: str
    created_by: UUID
    created_at: datetime


@dataclass
class AssignmentRecord:
    """Assignment data record."""

    assignment_id: UUID
    tenant_id: UUID
    course_id: UUID
    title: str
    description: str | None
    type: str
    due_date: datetime | None
    max_points: float
    submission_type: str
    late_policy: str
    status: str
    created_by: UUID
    created_at: datetime


@dataclass
class SubmissionRecord:
    """Student submission data record."""

    submission_id: UUID
    tenant_id: UUID
    assignment_id: UUID
    student_id: UUID
    content: str | None
    file_url: str | None
    is_late: bool
    status: str
    submitted_at: datetime


@dataclass
class GradeRecord:
    """Grade data record (one per student per assignment)."""

    grade_id: UUID
    tenant_id: UUID
    assignment_id: UUID
    student_id: UUID
    submission_id: UUID | None
    points_earned: float
    percentage: float
    letter_grade: str
    feedback: str | None
    graded_by: UUID
    graded_at: datetime


@dataclass
class QuizRecord:
    """Quiz data record; questions are stored inline."""

    quiz_id: UUID
    tenant_id: UUID
    course_id: UUID
    title: str
    description: str | None
    questions: list[dict[str, Any]]
    time_limit_minutes: int | None
    max_attempts: int
    passing_score: float
    status: str
    created_by: UUID
    created_at: datetime


@dataclass
class QuizAttemptRecord:
    """Quiz attempt data record."""

    attempt_id: UUID
    tenant_id: UUID
    quiz_id: UUID
    student_id: UUID
    answers: list[int | None]
    score: int
    max_score: int
    percentage: float
    submitted_at: datetime


@dataclass
class StoredFileRecord:
    """Uploaded file metadata."""

    file_id: UUID
    tenant_id: UUID | None
    bucket: str
    path: str
    owner_id: UUID
    file_name: str
    content_type: str
    size: int
    created_at: datetime


@dataclass
class SchoolCourseRow:
    """One course line of the school report."""

    name: str
    teacher: str
    status: str
    students: int
    created_at: datetime


@dataclass
class RosterEntry:
    """Enrolled student with display name."""

    student_id: UUID
    name: str


@dataclass
class ClassReportData:
    """Raw inputs for a class report."""

    course: CourseRecord
    assignments: list[AssignmentRecord]
    roster: list[RosterEntry]
    grades: list[GradeRecord] = field(default_factory=list)


@dataclass
class StudentGradeRow:
    """One graded assignment of a student, joined with its course."""

    assignment_title: str
    course_name: str
    points_earned: float | None
    percentage: float | None
    letter_grade: str | None
    graded_at: datetime | None


class MembershipRepository(Protocol):
    """Repository for tenant membership lookups."""

    async def first_active_membership(self, user_id: UUID) -> MembershipRecord | None:
        """Get the user's first active membership in any tenant.

        Args:
            user_id: User ID

        Returns:
            Earliest-created active membership or None
        """
        ...

    async def membership_for_tenant_slug(
        self, user_id: UUID, tenant_slug: str
    ) -> MembershipRecord | None:
        """Get the user's active membership in the tenant with ``tenant_slug``."""
        ...


class CourseRepository(Protocol):
    """Repository for course reads."""

    async def get_course(self, course_id: UUID, tenant_id: UUID) -> CourseRecord | None:
        """Get course by ID (enforces tenancy)."""
        ...

    async def is_enrolled(self, course_id: UUID, student_id: UUID) -> bool:
        """Check whether the student has an active enrollment in the course."""
        ...


class AssignmentRepository(Protocol):
    """Repository for assignment operations."""

    async def get_assignment(
        self, assignment_id: UUID, tenant_id: UUID
    ) -> AssignmentRecord | None:
        """Get assignment by ID (enforces tenancy)."""
        ...

    async def create_assignment(self, record: AssignmentRecord) -> AssignmentRecord:
        """Insert a new assignment."""
        ...

    async def update_assignment(
        self, assignment_id: UUID, tenant_id: UUID, changes: dict[str, Any]
    ) -> AssignmentRecord:
        """Apply ``changes`` to an assignment and return the updated record."""
        ...

    async def delete_assignment(self, assignment_id: UUID, tenant_id: UUID) -> None:
        """Delete an assignment."""
        ...

    async def list_assignments(
        self, course_id: UUID, tenant_id: UUID
    ) -> list[AssignmentRecord]:
        """Assignments of a course, earliest due date first, undated last."""
        ...


class SubmissionRepository(Protocol):
    """Repository for submissions."""

    async def get_submission(
        self, submission_id: UUID, tenant_id: UUID
    ) -> SubmissionRecord | None:
        """Get submission by ID (enforces tenancy)."""
        ...

    async def upsert_submission(self, record: SubmissionRecord) -> SubmissionRecord:
        """Insert the submission, or replace the student's earlier one.

        A student has at most one submission per assignment. On replace the
        existing ``submission_id`` is kept so grades stay attached.
        """
        ...

    async def list_submissions(
        self, assignment_id: UUID, tenant_id: UUID
    ) -> list[SubmissionRecord]:
        """Submissions for an assignment, most recent first."""
        ...


class GradeRepository(Protocol):
    """Repository for grades."""

    async def upsert_grade(self, record: GradeRecord) -> GradeRecord:
        """Insert or replace the grade for (assignment, student)."""
        ...

    async def list_grades(
        self, course_id: UUID, tenant_id: UUID, student_id: UUID | None = None
    ) -> list[GradeRecord]:
        """Grades on a course's assignments, most recently graded first.

        Args:
            course_id: Course whose assignments are included
            tenant_id: Tenant the caller is acting in
            student_id: Restrict to one student when given
        """
        ...


class QuizRepository(Protocol):
    """Repository for quizzes and attempts."""

    async def get_quiz(self, quiz_id: UUID, tenant_id: UUID) -> QuizRecord | None:
        """Get quiz by ID (enforces tenancy)."""
        ...

    async def create_quiz(self, record: QuizRecord) -> QuizRecord:
        """Insert a quiz together with its questions."""
        ...

    async def update_quiz(
        self, quiz_id: UUID, tenant_id: UUID, changes: dict[str, Any]
    ) -> QuizRecord:
        """Apply ``changes`` to a quiz and return the updated record."""
        ...

    async def delete_quiz(self, quiz_id: UUID, tenant_id: UUID) -> None:
        """Delete a quiz and its attempts."""
        ...

    async def count_attempts(self, quiz_id: UUID, student_id: UUID) -> int:
        """Number of attempts the student already made."""
        ...

    async def record_attempt(self, record: QuizAttemptRecord) -> QuizAttemptRecord:
        """Insert a quiz attempt."""
        ...


class FileStore(Protocol):
    """Hosted object storage."""

    async def upload(
        self, record: StoredFileRecord, content: bytes
    ) -> StoredFileRecord:
        """Store file bytes at ``record.path`` in ``record.bucket``."""
        ...

    async def remove(self, bucket: str, path: str) -> None:
        """Delete the object at ``path``."""
        ...


class ReportRepository(Protocol):
    """Read-only aggregation queries behind the report exports."""

    async def school_course_rows(
        self, tenant_id: UUID, limit: int = 500
    ) -> list[SchoolCourseRow]:
        """Courses of a tenant with teacher and enrollment count, newest first."""
        ...

    async def class_report_data(
        self, course_id: UUID, tenant_id: UUID
    ) -> ClassReportData | None:
        """Assignments, roster and grades of one course; None if not found."""
        ...

    async def has_active_parent_link(self, parent_id: UUID, student_id: UUID) -> bool:
        """Check for an active parent-student relationship."""
        ...

    async def student_grade_rows(
        self, student_id: UUID, tenant_id: UUID
    ) -> list[StudentGradeRow]:
        """Graded assignments of a student, most recent first."""
        ...


@dataclass
class Repositories:
    """Bundle of repositories sharing one unit of work."""

    memberships: MembershipRepository
    courses: CourseRepository
    assignments: AssignmentRepository
    submissions: SubmissionRepository
    grades: GradeRepository
    quizzes: QuizRepository
    files: FileStore
    reports: ReportRepository


@dataclass
class RetryAfter:
    """Rate limit retry-after information."""

    seconds: int


class RateLimiter(Protocol):
    """Rate limiter interface."""

    @property
    def limit(self) -> int:
        """Maximum requests per window."""
        ...

    async def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            RetryAfter if over quota, None if allowed
        """
        ...
