"""Rate-limited server action pipeline.

Every named action runs the same steps:
1. Authentication (unless the action is public)
2. Rate limit check keyed by ``{tenant}:{user}:{action}``
3. Input validation against the action's schema
4. The handler, which performs at most one write

A rejected rate-limit check returns before validation, so it can never
cause a write. Business-rule and downstream failures come back as
``ActionResult.error``; anything else propagates.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError

from backend.app.cache import MemoCache
from backend.app.db.context import RequestContext
from backend.app.db.repositories import Repositories
from backend.app.errors import ActionError, DownstreamError, RateLimitedError
from backend.app.identity import IdentityProvider
from backend.app.ratelimit import RateLimiters, RateLimitTier, make_rate_limit_key
from backend.app.utils.logging import action_logger
from backend.app.utils.metrics import metrics

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)

INVALID_INPUT = "Invalid input"
NOT_AUTHENTICATED = "Not authenticated"


class ActionResult(BaseModel):
    """Outcome returned to the caller of a server action."""

    success: bool
    data: Any = None
    error: str | None = None
    field_errors: dict[str, list[str]] = Field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, field_errors: dict[str, list[str]] | None = None) -> "ActionResult":
        return cls(success=False, error=error, field_errors=field_errors or {})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ActionEnv:
    """Everything a handler may touch during one invocation."""

    repos: Repositories
    identity: IdentityProvider
    cache: MemoCache
    limiters: RateLimiters
    ctx: RequestContext | None = None
    client_ip: str = "unknown"
    # Tenant the request is addressed to, for callers without a session yet
    tenant_slug: str | None = None
    clock: Callable[[], datetime] = field(default=_utcnow)
    # Session issued by the login action, picked up by the route to set the cookie
    issued_token: str | None = None

    @property
    def caller(self) -> str:
        """Rate-limit identity: the signed-in user, or the client address."""
        if self.ctx is not None:
            return self.ctx.caller_key
        return f"ip:{self.client_ip}"

    def require_ctx(self) -> RequestContext:
        if self.ctx is None:
            raise ActionError(NOT_AUTHENTICATED)
        return self.ctx

    def require_tenant(self) -> tuple[RequestContext, UUID]:
        """Signed-in context plus the tenant the request is addressed to."""
        ctx = self.require_ctx()
        if ctx.tenant_id is None:
            raise ActionError("No tenant context")
        return ctx, ctx.tenant_id


Handler = Callable[[ActionEnv, Any], Awaitable[Any]]


@dataclass(frozen=True)
class ServerAction:
    """Registered action: name, input schema, rate-limit tier and handler."""

    name: str
    schema: type[BaseModel]
    tier: RateLimitTier
    handler: Handler
    requires_auth: bool = True


ACTIONS: dict[str, ServerAction] = {}


def server_action(
    name: str,
    schema: type[S],
    tier: RateLimitTier = RateLimitTier.api,
    requires_auth: bool = True,
) -> Callable[[Callable[[ActionEnv, S], Awaitable[Any]]], Callable[[ActionEnv, S], Awaitable[Any]]]:
    """Register a handler under ``name``."""

    def decorator(
        fn: Callable[[ActionEnv, S], Awaitable[Any]],
    ) -> Callable[[ActionEnv, S], Awaitable[Any]]:
        if name in ACTIONS:
            raise ValueError(f"Duplicate server action: {name}")
        ACTIONS[name] = ServerAction(
            name=name, schema=schema, tier=tier, handler=fn, requires_auth=requires_auth
        )
        return fn

    return decorator


def field_errors_from(error: ValidationError) -> dict[str, list[str]]:
    """Group pydantic errors by dotted field path; model-level errors go under ``form``."""
    grouped: dict[str, list[str]] = {}
    for item in error.errors():
        path = ".".join(str(part) for part in item["loc"]) or "form"
        message = item["msg"].removeprefix("Value error, ")
        grouped.setdefault(path, []).append(message)
    return grouped


async def run_action(
    action: ServerAction, env: ActionEnv, raw: Mapping[str, Any]
) -> ActionResult:
    """Run one action through the rate-limit, validation and handler steps.

    Args:
        action: Registered action
        env: Invocation environment
        raw: Unvalidated input

    Returns:
        ActionResult; never raises for rate limits, validation, business
        rules or downstream failures
    """
    start = time.monotonic()

    def finish(outcome: str, result: ActionResult, **fields: Any) -> ActionResult:
        elapsed_ms = (time.monotonic() - start) * 1000
        metrics.record_outcome(action.name, outcome, elapsed_ms)
        action_logger.log_outcome(
            action.name, env.caller, outcome, elapsed_ms, error_reason=result.error, **fields
        )
        return result

    if action.requires_auth and env.ctx is None:
        return finish("unauthenticated", ActionResult.fail(NOT_AUTHENTICATED))

    key = make_rate_limit_key(env.caller, action.name)
    retry_after = await env.limiters.for_tier(action.tier).check_quota(key, env.clock())
    if retry_after is not None:
        metrics.inc_rate_limited(action.tier.value)
        error = RateLimitedError(retry_after.seconds)
        return finish(
            "rate_limited", ActionResult.fail(str(error)), retry_after=retry_after.seconds
        )

    try:
        payload = action.schema.model_validate(dict(raw))
    except ValidationError as e:
        return finish("invalid", ActionResult.fail(INVALID_INPUT, field_errors_from(e)))

    try:
        data = await action.handler(env, payload)
    except DownstreamError as e:
        metrics.inc_downstream_error(e.source)
        action_logger.log_downstream_error(e.source, str(e), action=action.name)
        return finish("downstream_error", ActionResult.fail(str(e)))
    except ActionError as e:
        return finish("rejected", ActionResult.fail(str(e)))

    return finish("success", ActionResult.ok(data))
