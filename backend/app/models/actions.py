"""Server action input models."""

import uuid
from datetime import datetime
from typing import Annotated

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from backend.app.models.common import (
    AssignmentStatus,
    AssignmentType,
    LatePolicy,
    QuizStatus,
    SubmissionType,
)


class LoginInput(BaseModel):
    """Email and password sign-in."""

    email: Annotated[str, Field(max_length=254, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")]
    password: Annotated[str, Field(min_length=6, max_length=128)]


class CreateAssignmentInput(BaseModel):
    """New assignment in a course the caller teaches."""

    model_config = ConfigDict(str_strip_whitespace=True)

    course_id: uuid.UUID
    title: Annotated[str, Field(min_length=1, max_length=255)]
    description: Annotated[str | None, Field(max_length=10000)] = None
    type: AssignmentType = AssignmentType.homework
    due_date: datetime | None = None
    max_points: Annotated[float, Field(ge=0, le=10000)] = 100
    submission_type: SubmissionType = SubmissionType.text
    late_policy: LatePolicy = LatePolicy.accept_late
    status: AssignmentStatus = AssignmentStatus.assigned


class UpdateAssignmentInput(BaseModel):
    """Partial update; only fields that are present are changed."""

    model_config = ConfigDict(str_strip_whitespace=True)

    assignment_id: uuid.UUID
    title: Annotated[str | None, Field(min_length=1, max_length=255)] = None
    description: Annotated[str | None, Field(max_length=10000)] = None
    type: AssignmentType | None = None
    due_date: datetime | None = None
    max_points: Annotated[float | None, Field(ge=0, le=10000)] = None
    submission_type: SubmissionType | None = None
    late_policy: LatePolicy | None = None
    status: AssignmentStatus | None = None

    def changes(self) -> dict[str, object]:
        """Fields the caller actually sent, minus the target ID."""
        return self.model_dump(exclude_unset=True, exclude={"assignment_id"})


class DeleteAssignmentInput(BaseModel):
    assignment_id: uuid.UUID


class SubmitAssignmentInput(BaseModel):
    """Student hand-in: text, a file URL, or both."""

    assignment_id: uuid.UUID
    content: Annotated[str | None, Field(max_length=50000)] = None
    file_url: Annotated[str | None, Field(max_length=2048)] = None

    @model_validator(mode="after")
    def validate_has_work(self) -> "SubmitAssignmentInput":
        """Ensure something was submitted."""
        if not (self.content and self.content.strip()) and not self.file_url:
            raise ValueError("Submission must include text content or a file")
        return self


class GradeSubmissionInput(BaseModel):
    """Teacher grade for one submission."""

    submission_id: uuid.UUID
    points_earned: Annotated[float, Field(ge=0)]
    feedback: Annotated[str | None, Field(max_length=10000)] = None


class QuizQuestionInput(BaseModel):
    """Multiple choice question; ``correct_index`` points into ``options``."""

    text: Annotated[str, Field(min_length=1, max_length=2000)]
    options: Annotated[
        list[Annotated[str, Field(min_length=1)]], Field(min_length=2, max_length=10)
    ]
    correct_index: Annotated[int, Field(ge=0)]

    @field_validator("correct_index")
    @classmethod
    def validate_correct_index(cls, v: int, info: ValidationInfo) -> int:
        """Ensure the correct answer is one of the options."""
        options = info.data.get("options")
        if options is not None and v >= len(options):
            raise ValueError("correct_index must refer to one of the options")
        return v


class CreateQuizInput(BaseModel):
    """New quiz with its questions."""

    model_config = ConfigDict(str_strip_whitespace=True)

    course_id: uuid.UUID
    title: Annotated[str, Field(min_length=1, max_length=255)]
    description: Annotated[str | None, Field(max_length=5000)] = None
    time_limit_minutes: Annotated[int | None, Field(ge=1, le=600)] = None
    max_attempts: Annotated[int, Field(ge=1, le=100)] = 1
    passing_score: Annotated[float, Field(ge=0, le=100)] = 70
    status: QuizStatus = QuizStatus.draft
    questions: Annotated[list[QuizQuestionInput], Field(min_length=1, max_length=200)]


class UpdateQuizInput(BaseModel):
    """Partial update of quiz settings; questions are left untouched."""

    model_config = ConfigDict(str_strip_whitespace=True)

    quiz_id: uuid.UUID
    title: Annotated[str | None, Field(min_length=1, max_length=255)] = None
    description: Annotated[str | None, Field(max_length=5000)] = None
    time_limit_minutes: Annotated[int | None, Field(ge=1, le=600)] = None
    max_attempts: Annotated[int | None, Field(ge=1, le=100)] = None
    passing_score: Annotated[float | None, Field(ge=0, le=100)] = None
    status: QuizStatus | None = None

    def changes(self) -> dict[str, object]:
        """Fields the caller actually sent, minus the target ID."""
        return self.model_dump(exclude_unset=True, exclude={"quiz_id"})


class DeleteQuizInput(BaseModel):
    quiz_id: uuid.UUID


class CourseInput(BaseModel):
    """Target course of a read action."""

    course_id: uuid.UUID


class ListSubmissionsInput(BaseModel):
    assignment_id: uuid.UUID


class ListGradesInput(BaseModel):
    """Grades of a course, optionally for one student."""

    course_id: uuid.UUID
    student_id: uuid.UUID | None = None


class SubmitQuizAttemptInput(BaseModel):
    """Student answers, one selected option index (or None) per question."""

    quiz_id: uuid.UUID
    answers: Annotated[list[int | None], Field(max_length=200)]


class UploadFileInput(BaseModel):
    """File bytes plus the client-reported name and MIME type."""

    bucket: str
    file_name: Annotated[str, Field(min_length=1, max_length=255)]
    content_type: str = ""
    content: bytes = Field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)


class DeleteFileInput(BaseModel):
    bucket: str
    path: Annotated[str, Field(min_length=1, max_length=1024)]
