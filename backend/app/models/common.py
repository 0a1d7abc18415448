"""Common enums shared across action models."""

from enum import Enum


class AssignmentType(str, Enum):
    """Kind of assignment."""

    homework = "homework"
    quiz = "quiz"
    project = "project"
    exam = "exam"
    discussion = "discussion"
    presentation = "presentation"
    other = "other"


class SubmissionType(str, Enum):
    """How students hand work in."""

    text = "text"
    file = "file"
    link = "link"
    discussion = "discussion"
    multi = "multi"


class AssignmentStatus(str, Enum):
    """Assignment lifecycle; only ``assigned`` accepts submissions."""

    draft = "draft"
    assigned = "assigned"
    closed = "closed"


class LatePolicy(str, Enum):
    """Whether submissions after the due date are accepted."""

    accept_late = "accept_late"
    no_late = "no_late"


class QuizStatus(str, Enum):
    """Quiz lifecycle."""

    draft = "draft"
    published = "published"
    archived = "archived"
