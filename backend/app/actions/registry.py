"""Import every action module so its handlers register themselves."""

from backend.app.actions import (  # noqa: F401
    assignments,
    auth,
    files,
    grades,
    quizzes,
    submissions,
)
from backend.app.actions.base import ACTIONS, ServerAction


def get_action(name: str) -> ServerAction | None:
    """Look up a registered action by name."""
    return ACTIONS.get(name)
