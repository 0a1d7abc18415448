"""Request context for tenancy enforcement."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class RequestContext:
    """Identity and tenant scope of the current request.

    ``role`` is the request-scoped hint: the role on the caller's active
    membership in the tenant the request is addressed to. ``tenant_id`` and
    ``role`` are None when the caller has no membership there.
    """

    user_id: UUID
    tenant_id: UUID | None = None
    role: str | None = None
    email: str | None = None
    access_token: str | None = None

    @property
    def caller_key(self) -> str:
        """Identity used for rate-limit keys."""
        return f"{self.tenant_id or 'none'}:{self.user_id}"
