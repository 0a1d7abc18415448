"""Sign-in action."""

from typing import Any

from backend.app.actions.base import ActionEnv, server_action
from backend.app.models.actions import LoginInput
from backend.app.ratelimit import RateLimitTier
from backend.app.roles import resolve_dashboard


@server_action("login", LoginInput, tier=RateLimitTier.auth, requires_auth=False)
async def login(env: ActionEnv, payload: LoginInput) -> dict[str, Any]:
    """Sign in with the identity provider and pick the landing dashboard.

    The issued session token is left on ``env`` for the route to set as a
    cookie; it is never part of the returned data.
    """
    session = await env.identity.sign_in(payload.email, payload.password)
    env.issued_token = session.access_token
    user_id = session.user.user_id

    hint = None
    if env.tenant_slug:
        membership = await env.repos.memberships.membership_for_tenant_slug(
            user_id, env.tenant_slug
        )
        hint = membership.role if membership else None

    return {
        "user_id": user_id,
        "redirect_to": await resolve_dashboard(user_id, hint, env.repos.memberships),
    }
