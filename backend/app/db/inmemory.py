"""In-memory implementations of repository interfaces."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any

from backend.app.db.repositories import (
    AssignmentRecord,
    ClassReportData,
    CourseRecord,
    GradeRecord,
    MembershipRecord,
    QuizAttemptRecord,
    QuizRecord,
    Repositories,
    RetryAfter,
    RosterEntry,
    SchoolCourseRow,
    StoredFileRecord,
    StudentGradeRow,
    SubmissionRecord,
)
from backend.app.errors import DownstreamError


@dataclass
class InMemoryStore:
    """Shared tables behind the in-memory repositories.

    ``writes`` counts every mutation so callers can assert that nothing was
    written.
    """

    tenants: dict[uuid.UUID, str] = field(default_factory=dict)
    profiles: dict[uuid.UUID, str] = field(default_factory=dict)
    memberships: list[MembershipRecord] = field(default_factory=list)
    courses: dict[uuid.UUID, CourseRecord] = field(default_factory=dict)
    enrollments: set[tuple[uuid.UUID, uuid.UUID]] = field(default_factory=set)
    parent_links: set[tuple[uuid.UUID, uuid.UUID]] = field(default_factory=set)
    assignments: dict[uuid.UUID, AssignmentRecord] = field(default_factory=dict)
    submissions: dict[uuid.UUID, SubmissionRecord] = field(default_factory=dict)
    grades: dict[tuple[uuid.UUID, uuid.UUID], GradeRecord] = field(default_factory=dict)
    quizzes: dict[uuid.UUID, QuizRecord] = field(default_factory=dict)
    attempts: list[QuizAttemptRecord] = field(default_factory=list)
    files: dict[tuple[str, str], tuple[StoredFileRecord, bytes]] = field(default_factory=dict)
    writes: int = 0
    fail_writes_with: str | None = None

    def _write(self) -> None:
        if self.fail_writes_with is not None:
            raise DownstreamError(self.fail_writes_with)
        self.writes += 1

    # Seeding helpers (not counted as writes)

    def add_tenant(self, slug: str, tenant_id: uuid.UUID | None = None) -> uuid.UUID:
        tenant_id = tenant_id or uuid.uuid4()
        self.tenants[tenant_id] = slug
        return tenant_id

    def add_profile(self, name: str, user_id: uuid.UUID | None = None) -> uuid.UUID:
        user_id = user_id or uuid.uuid4()
        self.profiles[user_id] = name
        return user_id

    def add_membership(
        self,
        user_id: uuid.UUID,
        tenant_id: uuid.UUID,
        role: str,
        status: str = "active",
        created_at: datetime | None = None,
    ) -> MembershipRecord:
        record = MembershipRecord(
            membership_id=uuid.uuid4(),
            user_id=user_id,
            tenant_id=tenant_id,
            role=role,
            status=status,
            created_at=created_at or datetime.now(timezone.utc),
        )
        self.memberships.append(record)
        return record

    def add_course(
        self,
        tenant_id: uuid.UUID,
        teacher_id: uuid.UUID,
        name: str,
        status: str = "active",
        created_at: datetime | None = None,
    ) -> CourseRecord:
        record = CourseRecord(
            course_id=uuid.uuid4(),
            tenant_id=tenant_id,
            name=name,
            status=status,
            created_by=teacher_id,
            created_at=created_at or datetime.now(timezone.utc),
        )
        self.courses[record.course_id] = record
        return record

    def enroll(self, course_id: uuid.UUID, student_id: uuid.UUID) -> None:
        self.enrollments.add((course_id, student_id))

    def link_parent(self, parent_id: uuid.UUID, student_id: uuid.UUID) -> None:
        self.parent_links.add((parent_id, student_id))

    def repositories(self) -> Repositories:
        """Build a repository bundle over this store."""
        return Repositories(
            memberships=InMemoryMembershipRepository(self),
            courses=InMemoryCourseRepository(self),
            assignments=InMemoryAssignmentRepository(self),
            submissions=InMemorySubmissionRepository(self),
            grades=InMemoryGradeRepository(self),
            quizzes=InMemoryQuizRepository(self),
            files=InMemoryFileStore(self),
            reports=InMemoryReportRepository(self),
        )


class InMemoryMembershipRepository:
    """In-memory implementation of MembershipRepository."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def _active(self, user_id: uuid.UUID) -> list[MembershipRecord]:
        rows = [
            m for m in self._store.memberships if m.user_id == user_id and m.status == "active"
        ]
        rows.sort(key=lambda m: (m.created_at, str(m.membership_id)))
        return rows

    async def first_active_membership(self, user_id: uuid.UUID) -> MembershipRecord | None:
        """Get the user's first active membership."""
        rows = self._active(user_id)
        return rows[0] if rows else None

    async def membership_for_tenant_slug(
        self, user_id: uuid.UUID, tenant_slug: str
    ) -> MembershipRecord | None:
        """Get the user's active membership in the tenant with this slug."""
        for membership in self._active(user_id):
            if self._store.tenants.get(membership.tenant_id) == tenant_slug:
                return membership
        return None


class InMemoryCourseRepository:
    """In-memory implementation of CourseRepository."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_course(self, course_id: uuid.UUID, tenant_id: uuid.UUID) -> CourseRecord | None:
        """Get course by ID."""
        course = self._store.courses.get(course_id)
        if course is None or course.tenant_id != tenant_id:
            return None
        return course

    async def is_enrolled(self, course_id: uuid.UUID, student_id: uuid.UUID) -> bool:
        """Check enrollment."""
        return (course_id, student_id) in self._store.enrollments


class InMemoryAssignmentRepository:
    """In-memory implementation of AssignmentRepository."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_assignment(
        self, assignment_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> AssignmentRecord | None:
        """Get assignment by ID."""
        record = self._store.assignments.get(assignment_id)
        if record is None or record.tenant_id != tenant_id:
            return None
        return record

    async def create_assignment(self, record: AssignmentRecord) -> AssignmentRecord:
        """Insert a new assignment."""
        self._store._write()
        self._store.assignments[record.assignment_id] = record
        return record

    async def update_assignment(
        self, assignment_id: uuid.UUID, tenant_id: uuid.UUID, changes: dict[str, Any]
    ) -> AssignmentRecord:
        """Apply changes to an assignment."""
        record = await self.get_assignment(assignment_id, tenant_id)
        if record is None:
            raise DownstreamError("Assignment not found")
        self._store._write()
        updated = replace(record, **changes)
        self._store.assignments[assignment_id] = updated
        return updated

    async def delete_assignment(self, assignment_id: uuid.UUID, tenant_id: uuid.UUID) -> None:
        """Delete an assignment."""
        if await self.get_assignment(assignment_id, tenant_id) is None:
            return
        self._store._write()
        del self._store.assignments[assignment_id]

    async def list_assignments(
        self, course_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> list[AssignmentRecord]:
        """Assignments of a course by due date."""
        rows = [
            a
            for a in self._store.assignments.values()
            if a.course_id == course_id and a.tenant_id == tenant_id
        ]
        rows.sort(key=lambda a: (a.due_date is None, a.due_date or datetime.min))
        return rows


class InMemorySubmissionRepository:
    """In-memory implementation of SubmissionRepository."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_submission(
        self, submission_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> SubmissionRecord | None:
        """Get submission by ID."""
        record = self._store.submissions.get(submission_id)
        if record is None or record.tenant_id != tenant_id:
            return None
        return record

    async def upsert_submission(self, record: SubmissionRecord) -> SubmissionRecord:
        """Insert or replace the submission for (assignment, student)."""
        self._store._write()
        for existing in self._store.submissions.values():
            if (
                existing.assignment_id == record.assignment_id
                and existing.student_id == record.student_id
            ):
                record = replace(record, submission_id=existing.submission_id)
                break
        self._store.submissions[record.submission_id] = record
        return record

    async def list_submissions(
        self, assignment_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> list[SubmissionRecord]:
        """Submissions for an assignment, newest first."""
        rows = [
            s
            for s in self._store.submissions.values()
            if s.assignment_id == assignment_id and s.tenant_id == tenant_id
        ]
        rows.sort(key=lambda s: s.submitted_at, reverse=True)
        return rows


class InMemoryGradeRepository:
    """In-memory implementation of GradeRepository."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def upsert_grade(self, record: GradeRecord) -> GradeRecord:
        """Insert or replace the grade for (assignment, student)."""
        self._store._write()
        key = (record.assignment_id, record.student_id)
        existing = self._store.grades.get(key)
        if existing is not None:
            record = replace(record, grade_id=existing.grade_id)
        self._store.grades[key] = record
        return record

    async def list_grades(
        self,
        course_id: uuid.UUID,
        tenant_id: uuid.UUID,
        student_id: uuid.UUID | None = None,
    ) -> list[GradeRecord]:
        """Grades on a course's assignments, newest first."""
        assignment_ids = {
            a.assignment_id for a in self._store.assignments.values() if a.course_id == course_id
        }
        rows = [
            g
            for g in self._store.grades.values()
            if g.assignment_id in assignment_ids
            and g.tenant_id == tenant_id
            and (student_id is None or g.student_id == student_id)
        ]
        rows.sort(key=lambda g: g.graded_at, reverse=True)
        return rows


class InMemoryQuizRepository:
    """In-memory implementation of QuizRepository."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get_quiz(self, quiz_id: uuid.UUID, tenant_id: uuid.UUID) -> QuizRecord | None:
        """Get quiz by ID."""
        record = self._store.quizzes.get(quiz_id)
        if record is None or record.tenant_id != tenant_id:
            return None
        return record

    async def create_quiz(self, record: QuizRecord) -> QuizRecord:
        """Insert a quiz."""
        self._store._write()
        self._store.quizzes[record.quiz_id] = record
        return record

    async def update_quiz(
        self, quiz_id: uuid.UUID, tenant_id: uuid.UUID, changes: dict[str, Any]
    ) -> QuizRecord:
        """Apply changes to a quiz."""
        record = await self.get_quiz(quiz_id, tenant_id)
        if record is None:
            raise DownstreamError("Quiz not found")
        self._store._write()
        updated = replace(record, **changes)
        self._store.quizzes[quiz_id] = updated
        return updated

    async def delete_quiz(self, quiz_id: uuid.UUID, tenant_id: uuid.UUID) -> None:
        """Delete a quiz and its attempts."""
        if await self.get_quiz(quiz_id, tenant_id) is None:
            return
        self._store._write()
        del self._store.quizzes[quiz_id]
        self._store.attempts = [a for a in self._store.attempts if a.quiz_id != quiz_id]

    async def count_attempts(self, quiz_id: uuid.UUID, student_id: uuid.UUID) -> int:
        """Count prior attempts."""
        return sum(
            1 for a in self._store.attempts if a.quiz_id == quiz_id and a.student_id == student_id
        )

    async def record_attempt(self, record: QuizAttemptRecord) -> QuizAttemptRecord:
        """Insert a quiz attempt."""
        self._store._write()
        self._store.attempts.append(record)
        return record


class InMemoryFileStore:
    """In-memory implementation of FileStore."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def upload(self, record: StoredFileRecord, content: bytes) -> StoredFileRecord:
        """Store file bytes."""
        key = (record.bucket, record.path)
        if key in self._store.files:
            raise DownstreamError("The resource already exists", source="storage")
        self._store._write()
        self._store.files[key] = (record, content)
        return record

    async def remove(self, bucket: str, path: str) -> None:
        """Delete a stored object."""
        if (bucket, path) not in self._store.files:
            raise DownstreamError("Object not found", source="storage")
        self._store._write()
        del self._store.files[(bucket, path)]


class InMemoryReportRepository:
    """In-memory implementation of ReportRepository."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def _name(self, user_id: uuid.UUID) -> str:
        return self._store.profiles.get(user_id, "Unknown")

    async def school_course_rows(
        self, tenant_id: uuid.UUID, limit: int = 500
    ) -> list[SchoolCourseRow]:
        """Courses with teacher and enrollment counts."""
        courses = [c for c in self._store.courses.values() if c.tenant_id == tenant_id]
        courses.sort(key=lambda c: c.created_at, reverse=True)

        return [
            SchoolCourseRow(
                name=c.name,
                teacher=self._name(c.created_by),
                status=c.status,
                students=sum(
                    1 for course_id, _ in self._store.enrollments if course_id == c.course_id
                ),
                created_at=c.created_at,
            )
            for c in courses[:limit]
        ]

    async def class_report_data(
        self, course_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> ClassReportData | None:
        """Assignments, roster and grades of one course."""
        course = self._store.courses.get(course_id)
        if course is None or course.tenant_id != tenant_id:
            return None

        assignments = [
            a
            for a in self._store.assignments.values()
            if a.course_id == course_id and a.status == "assigned"
        ]
        # Undated assignments sort last
        assignments.sort(key=lambda a: (a.due_date is None, a.due_date or datetime.min))
        assignment_ids = {a.assignment_id for a in assignments}

        roster = [
            RosterEntry(student_id=student_id, name=self._name(student_id))
            for c_id, student_id in sorted(self._store.enrollments, key=lambda e: str(e[1]))
            if c_id == course_id
        ]
        grades = [g for g in self._store.grades.values() if g.assignment_id in assignment_ids]

        return ClassReportData(course=course, assignments=assignments, roster=roster, grades=grades)

    async def has_active_parent_link(self, parent_id: uuid.UUID, student_id: uuid.UUID) -> bool:
        """Check for a parent-student link."""
        return (parent_id, student_id) in self._store.parent_links

    async def student_grade_rows(
        self, student_id: uuid.UUID, tenant_id: uuid.UUID
    ) -> list[StudentGradeRow]:
        """Graded assignments of a student, newest first."""
        rows: list[StudentGradeRow] = []
        for grade in self._store.grades.values():
            if grade.student_id != student_id or grade.tenant_id != tenant_id:
                continue
            assignment = self._store.assignments.get(grade.assignment_id)
            course = self._store.courses.get(assignment.course_id) if assignment else None
            rows.append(
                StudentGradeRow(
                    assignment_title=assignment.title if assignment else "Unknown",
                    course_name=course.name if course else "Unknown",
                    points_earned=grade.points_earned,
                    percentage=grade.percentage,
                    letter_grade=grade.letter_grade,
                    graded_at=grade.graded_at,
                )
            )
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        rows.sort(key=lambda r: r.graded_at or oldest, reverse=True)
        return rows


class InMemoryRateLimiter:
    """In-memory implementation of RateLimiter using fixed window.

    Once more than ``PRUNE_THRESHOLD`` keys are tracked, expired windows are
    dropped on the next check.
    """

    PRUNE_THRESHOLD = 10000

    def __init__(self, max_requests: int, window_seconds: int = 60) -> None:
        """Initialize rate limiter.

        Args:
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
        """
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._windows: dict[str, tuple[datetime, int]] = {}

    @property
    def limit(self) -> int:
        return self._max_requests

    async def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available."""
        if len(self._windows) > self.PRUNE_THRESHOLD:
            self._prune(now)

        window = self._windows.get(key)

        if window is None or now >= window[0] + timedelta(seconds=self._window_seconds):
            # First request or expired window
            self._windows[key] = (now, 1)
            return None

        window_start, count = window
        if count >= self._max_requests:
            seconds_remaining = int(
                (window_start + timedelta(seconds=self._window_seconds) - now).total_seconds()
            )
            return RetryAfter(seconds=max(1, seconds_remaining))

        self._windows[key] = (window_start, count + 1)
        return None

    def _prune(self, now: datetime) -> None:
        window = timedelta(seconds=self._window_seconds)
        expired = [k for k, (start, _) in self._windows.items() if now >= start + window]
        for key in expired:
            del self._windows[key]
