"""Role route table and dashboard resolution."""

import logging
import uuid
from enum import Enum
from typing import Protocol

from backend.app.db.repositories import MembershipRecord

logger = logging.getLogger(__name__)

DEFAULT_DASHBOARD = "/student/dashboard"


class Role(str, Enum):
    """Tenant membership role."""

    student = "student"
    teacher = "teacher"
    parent = "parent"
    admin = "admin"
    super_admin = "super_admin"

    @classmethod
    def parse(cls, value: "str | Role | None") -> "Role | None":
        """Return the matching role, or None for anything unrecognised."""
        if value is None:
            return None
        if isinstance(value, Role):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


_DASHBOARDS: dict[Role, str] = {
    Role.student: "/student/dashboard",
    Role.teacher: "/teacher/dashboard",
    Role.parent: "/parent/dashboard",
    Role.admin: "/admin/dashboard",
    Role.super_admin: "/admin/dashboard",
}

# Which role-specific prefixes each role may visit
_ALLOWED_PREFIXES: dict[Role, tuple[str, ...]] = {
    Role.student: ("/student",),
    Role.teacher: ("/teacher",),
    Role.parent: ("/parent",),
    Role.admin: ("/admin",),
    Role.super_admin: ("/admin", "/teacher"),
}

ROLE_ROUTE_PREFIXES: tuple[str, ...] = ("/student", "/teacher", "/parent", "/admin")

STAFF_ROLES = frozenset({Role.admin, Role.super_admin})


def dashboard_for(role: Role) -> str:
    """Landing route for a role."""
    return _DASHBOARDS[role]


def is_path_allowed(role: Role, path: str) -> bool:
    """Check whether ``role`` may visit ``path``.

    Paths outside the role-specific prefixes are always allowed.
    """
    if not any(path.startswith(prefix) for prefix in ROLE_ROUTE_PREFIXES):
        return True
    return any(path.startswith(prefix) for prefix in _ALLOWED_PREFIXES[role])


class MembershipLookup(Protocol):
    """The one repository call the resolver needs."""

    async def first_active_membership(self, user_id: uuid.UUID) -> MembershipRecord | None:
        ...


async def resolve_role(
    user_id: uuid.UUID,
    hint: "str | Role | None",
    memberships: MembershipLookup,
) -> Role | None:
    """Role that decides where an authenticated user lands.

    First match wins: a recognised request-scoped hint, then the role on
    the user's first active membership. Unknown roles fall through silently.

    Args:
        user_id: Authenticated user
        hint: Role carried by the current request, if any
        memberships: Membership lookup used when the hint is missing or unknown

    Returns:
        Resolved role, or None when neither source names a known role
    """
    role = Role.parse(hint)
    if role is not None:
        return role

    membership = await memberships.first_active_membership(user_id)
    if membership is None:
        return None

    role = Role.parse(membership.role)
    if role is None:
        logger.warning(
            "Unknown membership role, using default dashboard",
            extra={"structured": {"user_id": str(user_id), "role": membership.role}},
        )
    return role


async def resolve_dashboard(
    user_id: uuid.UUID,
    hint: "str | Role | None",
    memberships: MembershipLookup,
) -> str:
    """Landing route for an authenticated user; the student dashboard by default."""
    role = await resolve_role(user_id, hint, memberships)
    return dashboard_for(role) if role is not None else DEFAULT_DASHBOARD


def redirect_target(role: Role, requested_path: str | None) -> str:
    """Where to send a user who asked for ``requested_path`` after sign-in.

    Falls back to the role dashboard when nothing was requested, the path is
    not site-relative, or it belongs to another role's portal.
    """
    if not requested_path or not requested_path.startswith("/") or requested_path.startswith("//"):
        return dashboard_for(role)
    if not is_path_allowed(role, requested_path):
        return dashboard_for(role)
    return requested_path
