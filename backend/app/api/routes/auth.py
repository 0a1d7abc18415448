"""Sign-in, sign-out and dashboard redirect endpoints."""

import dataclasses
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Header, Query, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from backend.app.actions.base import ActionEnv, run_action
from backend.app.actions.registry import ACTIONS
from backend.app.api.auth import get_action_env, get_optional_context, session_token
from backend.app.api.deps import get_app_settings, get_identity, get_repositories
from backend.app.api.routes.actions import action_response
from backend.app.config import Settings
from backend.app.db.context import RequestContext
from backend.app.db.repositories import Repositories
from backend.app.errors import DownstreamError
from backend.app.identity import IdentityProvider
from backend.app.roles import Role, redirect_target, resolve_role
from backend.app.utils.logging import action_logger
from backend.app.utils.metrics import metrics

router = APIRouter(tags=["auth"])

LOGIN_ROUTE = "/login"


@router.post("/auth/login")
async def login(
    body: Annotated[dict[str, Any], Body()],
    env: Annotated[ActionEnv, Depends(get_action_env)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> JSONResponse:
    """Password sign-in; sets the session cookie on success.

    Returns:
        200 with ``{"user_id", "redirect_to"}`` in ``data``; 400 with the
        ActionResult error otherwise
    """
    # Sign-in is always keyed by client address, even over a stale session
    env = dataclasses.replace(env, ctx=None)
    result = await run_action(ACTIONS["login"], env, body)
    return action_response(result, env, settings, failure_status=status.HTTP_400_BAD_REQUEST)


@router.post("/auth/logout", response_model=None)
async def logout(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
    identity: Annotated[IdentityProvider, Depends(get_identity)],
    authorization: Annotated[str | None, Header()] = None,
) -> Response:
    """Revoke the session and send the browser to the login page.

    Returns:
        302 to /login with the session cookie cleared, or 400 ``{"error"}``
        when the identity provider refuses the sign-out
    """
    token = session_token(request, authorization, settings)
    if token:
        try:
            await identity.sign_out(token)
        except DownstreamError as e:
            metrics.inc_downstream_error(e.source)
            action_logger.log_downstream_error(e.source, str(e), route="logout")
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(e)})

    response = RedirectResponse(LOGIN_ROUTE, status_code=status.HTTP_302_FOUND)
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get("/dashboard", response_model=None)
async def dashboard(
    ctx: Annotated[RequestContext | None, Depends(get_optional_context)],
    repos: Annotated[Repositories, Depends(get_repositories)],
    redirect_to: Annotated[str | None, Query(alias="redirectTo")] = None,
) -> RedirectResponse:
    """Send a signed-in user to their role's dashboard (or an allowed ``redirectTo``)."""
    if ctx is None:
        return RedirectResponse(
            f"{LOGIN_ROUTE}?redirectTo=/dashboard", status_code=status.HTTP_302_FOUND
        )

    role = await resolve_role(ctx.user_id, ctx.role, repos.memberships)
    target = redirect_target(role or Role.student, redirect_to)
    return RedirectResponse(target, status_code=status.HTTP_302_FOUND)
