"""Initial LMS schema

Revision ID: 001
Revises:
Create Date: 2026-10-17

Creates:
- tenant, profile, tenant_membership
- course, course_enrollment, student_parent
- assignment, submission, grade
- quiz, quiz_attempt
- stored_file
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _uuid(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), nullable=nullable)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
    )


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "tenant",
        _id("tenant_id"),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), server_default="active", nullable=False),
        _timestamp("created_at"),
    )

    op.create_table(
        "profile",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        _timestamp("created_at"),
    )

    op.create_table(
        "tenant_membership",
        _id("membership_id"),
        _uuid("user_id"),
        _uuid("tenant_id"),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), server_default="active", nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["user_id"], ["profile.user_id"]),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.tenant_id"]),
        sa.UniqueConstraint("user_id", "tenant_id", name="uq_membership_user_tenant"),
    )
    op.create_index("idx_membership_user_status", "tenant_membership", ["user_id", "status"])

    op.create_table(
        "course",
        _id("course_id"),
        _uuid("tenant_id"),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), server_default="active", nullable=False),
        _uuid("created_by"),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.tenant_id"]),
        sa.ForeignKeyConstraint(["created_by"], ["profile.user_id"]),
    )
    op.create_index("idx_course_tenant_created", "course", ["tenant_id", "created_at"])

    op.create_table(
        "course_enrollment",
        _id("enrollment_id"),
        _uuid("tenant_id"),
        _uuid("course_id"),
        _uuid("student_id"),
        sa.Column("status", sa.Text(), server_default="active", nullable=False),
        _timestamp("enrolled_at"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.tenant_id"]),
        sa.ForeignKeyConstraint(["course_id"], ["course.course_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["student_id"], ["profile.user_id"]),
        sa.UniqueConstraint("course_id", "student_id", name="uq_enrollment_course_student"),
    )

    op.create_table(
        "student_parent",
        _id("link_id"),
        _uuid("parent_id"),
        _uuid("student_id"),
        sa.Column("status", sa.Text(), server_default="active", nullable=False),
        sa.ForeignKeyConstraint(["parent_id"], ["profile.user_id"]),
        sa.ForeignKeyConstraint(["student_id"], ["profile.user_id"]),
        sa.UniqueConstraint("parent_id", "student_id", name="uq_parent_student"),
    )

    op.create_table(
        "assignment",
        _id("assignment_id"),
        _uuid("tenant_id"),
        _uuid("course_id"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.Text(), server_default="homework", nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("max_points", sa.Numeric(8, 2), server_default="100", nullable=False),
        sa.Column("submission_type", sa.Text(), server_default="text", nullable=False),
        sa.Column("late_policy", sa.Text(), server_default="accept_late", nullable=False),
        sa.Column("status", sa.Text(), server_default="draft", nullable=False),
        _uuid("created_by"),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.tenant_id"]),
        sa.ForeignKeyConstraint(["course_id"], ["course.course_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by"], ["profile.user_id"]),
    )
    op.create_index("idx_assignment_course", "assignment", ["course_id", "due_date"])

    op.create_table(
        "submission",
        _id("submission_id"),
        _uuid("tenant_id"),
        _uuid("assignment_id"),
        _uuid("student_id"),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("is_late", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("status", sa.Text(), server_default="submitted", nullable=False),
        _timestamp("submitted_at"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.tenant_id"]),
        sa.ForeignKeyConstraint(
            ["assignment_id"], ["assignment.assignment_id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["student_id"], ["profile.user_id"]),
        sa.UniqueConstraint(
            "assignment_id", "student_id", name="uq_submission_assignment_student"
        ),
    )

    op.create_table(
        "grade",
        _id("grade_id"),
        _uuid("tenant_id"),
        _uuid("assignment_id"),
        _uuid("student_id"),
        _uuid("submission_id", nullable=True),
        sa.Column("points_earned", sa.Numeric(8, 2), nullable=False),
        sa.Column("percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("letter_grade", sa.Text(), nullable=False),
        sa.Column("feedback", sa.Text(), nullable=True),
        _uuid("graded_by"),
        _timestamp("graded_at"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.tenant_id"]),
        sa.ForeignKeyConstraint(
            ["assignment_id"], ["assignment.assignment_id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["student_id"], ["profile.user_id"]),
        sa.ForeignKeyConstraint(["submission_id"], ["submission.submission_id"]),
        sa.ForeignKeyConstraint(["graded_by"], ["profile.user_id"]),
        sa.UniqueConstraint("assignment_id", "student_id", name="uq_grade_assignment_student"),
    )
    op.create_index("idx_grade_student", "grade", ["student_id", "graded_at"])

    op.create_table(
        "quiz",
        _id("quiz_id"),
        _uuid("tenant_id"),
        _uuid("course_id"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("questions", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("time_limit_minutes", sa.Integer(), nullable=True),
        sa.Column("max_attempts", sa.Integer(), server_default="1", nullable=False),
        sa.Column("passing_score", sa.Numeric(5, 2), server_default="70", nullable=False),
        sa.Column("status", sa.Text(), server_default="draft", nullable=False),
        _uuid("created_by"),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.tenant_id"]),
        sa.ForeignKeyConstraint(["course_id"], ["course.course_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by"], ["profile.user_id"]),
    )

    op.create_table(
        "quiz_attempt",
        _id("attempt_id"),
        _uuid("tenant_id"),
        _uuid("quiz_id"),
        _uuid("student_id"),
        sa.Column("answers", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("max_score", sa.Integer(), nullable=False),
        sa.Column("percentage", sa.Numeric(5, 2), nullable=False),
        _timestamp("submitted_at"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.tenant_id"]),
        sa.ForeignKeyConstraint(["quiz_id"], ["quiz.quiz_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["student_id"], ["profile.user_id"]),
    )
    op.create_index("idx_attempt_quiz_student", "quiz_attempt", ["quiz_id", "student_id"])

    op.create_table(
        "stored_file",
        _id("file_id"),
        _uuid("tenant_id", nullable=True),
        sa.Column("bucket", sa.Text(), nullable=False),
        sa.Column("path", sa.Text(), nullable=False),
        _uuid("owner_id"),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("content_type", sa.Text(), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("content", sa.LargeBinary(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.tenant_id"]),
        sa.ForeignKeyConstraint(["owner_id"], ["profile.user_id"]),
        sa.UniqueConstraint("bucket", "path", name="uq_file_bucket_path"),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("stored_file")
    op.drop_index("idx_attempt_quiz_student", table_name="quiz_attempt")
    op.drop_table("quiz_attempt")
    op.drop_table("quiz")
    op.drop_index("idx_grade_student", table_name="grade")
    op.drop_table("grade")
    op.drop_table("submission")
    op.drop_index("idx_assignment_course", table_name="assignment")
    op.drop_table("assignment")
    op.drop_table("student_parent")
    op.drop_table("course_enrollment")
    op.drop_index("idx_course_tenant_created", table_name="course")
    op.drop_table("course")
    op.drop_index("idx_membership_user_status", table_name="tenant_membership")
    op.drop_table("tenant_membership")
    op.drop_table("profile")
    op.drop_table("tenant")
