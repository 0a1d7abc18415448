"""Session resolution dependencies.

The access token comes from ``Authorization: Bearer <token>`` or the session
cookie, and is checked with the identity provider. The tenant the request
is addressed to decides the membership (and role) the context carries.
"""

from typing import Annotated

from fastapi import Depends, Header, Request

from backend.app.actions.base import ActionEnv
from backend.app.api.deps import (
    get_app_settings,
    get_identity,
    get_memo_cache,
    get_rate_limiters,
    get_repositories,
    request_tenant_slug,
)
from backend.app.cache import MemoCache
from backend.app.config import Settings
from backend.app.db.context import RequestContext
from backend.app.db.repositories import Repositories
from backend.app.errors import AuthenticationError
from backend.app.identity import IdentityProvider
from backend.app.middleware.ratelimit import client_address
from backend.app.ratelimit import RateLimiters


def session_token(request: Request, authorization: str | None, settings: Settings) -> str | None:
    """Bearer token if present, otherwise the session cookie."""
    if authorization:
        if not authorization.startswith("Bearer "):
            raise AuthenticationError("Invalid authorization header format")
        return authorization[7:] or None  # Strip "Bearer "
    return request.cookies.get(settings.session_cookie_name)


async def get_optional_context(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
    identity: Annotated[IdentityProvider, Depends(get_identity)],
    repos: Annotated[Repositories, Depends(get_repositories)],
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext | None:
    """Request context for a signed-in caller, or None without a valid session.

    Raises:
        AuthenticationError: For a malformed Authorization header
    """
    token = session_token(request, authorization, settings)
    if not token:
        return None

    user = await identity.get_user(token)
    if user is None:
        return None

    slug = request_tenant_slug(request, settings)
    membership = (
        await repos.memberships.membership_for_tenant_slug(user.user_id, slug) if slug else None
    )

    return RequestContext(
        user_id=user.user_id,
        tenant_id=membership.tenant_id if membership else None,
        role=membership.role if membership else None,
        email=user.email,
        access_token=token,
    )


async def get_action_env(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
    identity: Annotated[IdentityProvider, Depends(get_identity)],
    repos: Annotated[Repositories, Depends(get_repositories)],
    cache: Annotated[MemoCache, Depends(get_memo_cache)],
    limiters: Annotated[RateLimiters, Depends(get_rate_limiters)],
    ctx: Annotated[RequestContext | None, Depends(get_optional_context)],
) -> ActionEnv:
    """Invocation environment for a server action called over HTTP."""
    return ActionEnv(
        repos=repos,
        identity=identity,
        cache=cache,
        limiters=limiters,
        ctx=ctx,
        client_ip=client_address(request),
        tenant_slug=request_tenant_slug(request, settings),
    )
