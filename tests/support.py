"""Test data shared by fixtures and test modules."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from backend.app.db.context import RequestContext

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@dataclass
class School:
    """Seeded demo tenant: one course taught by ``teacher`` with ``student`` enrolled."""

    tenant_id: uuid.UUID
    teacher_id: uuid.UUID
    student_id: uuid.UUID
    parent_id: uuid.UUID
    admin_id: uuid.UUID
    course_id: uuid.UUID

    def ctx(self, user_id: uuid.UUID, role: str | None) -> RequestContext:
        return RequestContext(user_id=user_id, tenant_id=self.tenant_id, role=role)

    @property
    def teacher(self) -> RequestContext:
        return self.ctx(self.teacher_id, "teacher")

    @property
    def student(self) -> RequestContext:
        return self.ctx(self.student_id, "student")

    @property
    def parent(self) -> RequestContext:
        return self.ctx(self.parent_id, "parent")

    @property
    def admin(self) -> RequestContext:
        return self.ctx(self.admin_id, "admin")
