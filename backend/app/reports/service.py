"""School, class and parent progress reports rendered as CSV."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from backend.app.cache import MemoCache
from backend.app.csv_export import Column, to_csv
from backend.app.db.context import RequestContext
from backend.app.db.repositories import ClassReportData, ReportRepository
from backend.app.errors import NotAuthorizedError
from backend.app.grading import letter_grade, mean_percentage
from backend.app.roles import STAFF_ROLES, Role
from backend.app.utils.metrics import metrics

logger = logging.getLogger(__name__)

SCHOOL_REPORT_LIMIT = 500

SCHOOL_COLUMNS: tuple[Column, ...] = (
    Column("name", "Course"),
    Column("teacher", "Teacher"),
    Column("status", "Status"),
    Column("students", "Students"),
    Column("created_at", "Created"),
)

PROGRESS_COLUMNS: tuple[Column, ...] = (
    Column("assignment", "Assignment"),
    Column("course", "Course"),
    Column("score", "Score"),
    Column("percentage", "Percentage"),
    Column("letter", "Letter Grade"),
    Column("date", "Date"),
)


def reports_tag(tenant_id: uuid.UUID) -> str:
    """Cache tag shared by every report derived from one tenant's data."""
    return f"reports:{tenant_id}"


def _date(value: datetime | None) -> str:
    return value.date().isoformat() if value else ""


@dataclass(frozen=True)
class CsvReport:
    """Rendered export."""

    filename: str
    body: str


def class_report_columns(data: ClassReportData) -> list[Column]:
    """Student name, one column per assignment, then overall percentage and letter."""
    columns = [Column("student", "Student")]
    columns.extend(Column(f"assignment:{a.assignment_id}", a.title) for a in data.assignments)
    columns.append(Column("overall", "Overall %"))
    columns.append(Column("letter", "Letter Grade"))
    return columns


def class_report_rows(data: ClassReportData) -> list[dict[str, Any]]:
    """One row per enrolled student."""
    rows = []
    for student in data.roster:
        grades = [g for g in data.grades if g.student_id == student.student_id]
        row: dict[str, Any] = {"student": student.name}
        for grade in grades:
            row[f"assignment:{grade.assignment_id}"] = round(grade.percentage, 1)
        overall = mean_percentage(g.percentage for g in grades)
        row["overall"] = overall
        row["letter"] = letter_grade(overall) if overall is not None else None
        rows.append(row)
    return rows


class ReportService:
    """Role-checked report queries, memoized per tenant."""

    def __init__(
        self,
        reports: ReportRepository,
        cache: MemoCache,
        ttl_seconds: int | None = None,
    ) -> None:
        self._reports = reports
        self._cache = cache
        self._ttl = ttl_seconds

    @staticmethod
    def _scope(ctx: RequestContext) -> tuple[Role, uuid.UUID]:
        role = Role.parse(ctx.role)
        if role is None or ctx.tenant_id is None:
            raise NotAuthorizedError("Not authorized")
        return role, ctx.tenant_id

    async def school_report(self, ctx: RequestContext) -> CsvReport:
        """Every course in the tenant, newest first.

        Raises:
            NotAuthorizedError: Unless the caller is admin or super_admin
        """
        role, tenant_id = self._scope(ctx)
        if role not in STAFF_ROLES:
            raise NotAuthorizedError("Not authorized")

        rows = await self._cache.get_or_compute(
            f"reports:{tenant_id}:school",
            lambda: self._reports.school_course_rows(tenant_id, limit=SCHOOL_REPORT_LIMIT),
            ttl_seconds=self._ttl,
            tags=(reports_tag(tenant_id),),
        )
        body = to_csv(
            (
                {
                    "name": r.name,
                    "teacher": r.teacher,
                    "status": r.status,
                    "students": r.students,
                    "created_at": _date(r.created_at),
                }
                for r in rows
            ),
            SCHOOL_COLUMNS,
        )
        metrics.inc_export("school")
        return CsvReport(filename="school-report", body=body)

    async def class_report(self, ctx: RequestContext, course_id: uuid.UUID) -> CsvReport:
        """Per-student grades for one course.

        Raises:
            NotAuthorizedError: For non-staff callers other than the course's teacher,
                or when the course is not in the caller's tenant
        """
        role, tenant_id = self._scope(ctx)
        if role not in (Role.teacher, *STAFF_ROLES):
            raise NotAuthorizedError("Not authorized")

        data = await self._cache.get_or_compute(
            f"reports:{tenant_id}:class:{course_id}",
            lambda: self._reports.class_report_data(course_id, tenant_id),
            ttl_seconds=self._ttl,
            tags=(reports_tag(tenant_id),),
        )
        if data is None:
            raise NotAuthorizedError("Course not found")
        if role == Role.teacher and data.course.created_by != ctx.user_id:
            raise NotAuthorizedError("Not authorized for this course")

        body = to_csv(class_report_rows(data), class_report_columns(data))
        metrics.inc_export("class")
        return CsvReport(filename=f"class-report-{course_id}", body=body)

    async def progress_report(self, ctx: RequestContext, student_id: uuid.UUID) -> CsvReport:
        """Graded work of one student for a linked parent or staff.

        Raises:
            NotAuthorizedError: When a parent has no active link to the student,
                or the caller is neither parent nor staff
        """
        role, tenant_id = self._scope(ctx)
        if role == Role.parent:
            if not await self._reports.has_active_parent_link(ctx.user_id, student_id):
                raise NotAuthorizedError("Not authorized for this student")
        elif role not in STAFF_ROLES:
            raise NotAuthorizedError("Not authorized")

        rows = await self._cache.get_or_compute(
            f"reports:{tenant_id}:progress:{student_id}",
            lambda: self._reports.student_grade_rows(student_id, tenant_id),
            ttl_seconds=self._ttl,
            tags=(reports_tag(tenant_id),),
        )
        body = to_csv(
            (
                {
                    "assignment": r.assignment_title,
                    "course": r.course_name,
                    "score": r.points_earned,
                    "percentage": round(r.percentage, 1) if r.percentage is not None else None,
                    "letter": r.letter_grade,
                    "date": _date(r.graded_at),
                }
                for r in rows
            ),
            PROGRESS_COLUMNS,
        )
        metrics.inc_export("progress")
        return CsvReport(filename=f"progress-report-{student_id}", body=body)
