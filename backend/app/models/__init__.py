"""Models package - re-exports for convenience."""

from backend.app.models.actions import (
    CreateAssignmentInput,
    CreateQuizInput,
    DeleteAssignmentInput,
    DeleteFileInput,
    GradeSubmissionInput,
    LoginInput,
    QuizQuestionInput,
    SubmitAssignmentInput,
    SubmitQuizAttemptInput,
    UpdateAssignmentInput,
    UploadFileInput,
)
from backend.app.models.common import (
    AssignmentStatus,
    AssignmentType,
    LatePolicy,
    QuizStatus,
    SubmissionType,
)

__all__ = [
    # Common
    "AssignmentType",
    "AssignmentStatus",
    "SubmissionType",
    "LatePolicy",
    "QuizStatus",
    # Actions
    "LoginInput",
    "CreateAssignmentInput",
    "UpdateAssignmentInput",
    "DeleteAssignmentInput",
    "SubmitAssignmentInput",
    "GradeSubmissionInput",
    "QuizQuestionInput",
    "CreateQuizInput",
    "SubmitQuizAttemptInput",
    "UploadFileInput",
    "DeleteFileInput",
]
