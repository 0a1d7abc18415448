"""Server action endpoints: POST /actions/{name}."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Form, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse

from backend.app.actions.base import ActionEnv, ActionResult, run_action
from backend.app.actions.registry import ACTIONS, get_action
from backend.app.api.auth import get_action_env
from backend.app.api.deps import get_app_settings
from backend.app.config import Settings
from backend.app.errors import ActionError
from backend.app.files import validate_file_size

router = APIRouter(prefix="/actions", tags=["actions"])


def action_response(
    result: ActionResult,
    env: ActionEnv,
    settings: Settings,
    failure_status: int = status.HTTP_200_OK,
) -> JSONResponse:
    """Serialize an action result, setting the session cookie after a sign-in."""
    response = JSONResponse(
        status_code=status.HTTP_200_OK if result.success else failure_status,
        content=result.model_dump(mode="json"),
    )
    if result.success and env.issued_token:
        response.set_cookie(
            settings.session_cookie_name,
            env.issued_token,
            max_age=settings.session_max_age_seconds,
            httponly=True,
            samesite="lax",
            secure=settings.site_url.startswith("https://"),
        )
    return response


# Registered before /{name} so multipart uploads never hit the JSON route
@router.post("/upload_file")
async def upload_file(
    file: UploadFile,
    bucket: Annotated[str, Form()],
    env: Annotated[ActionEnv, Depends(get_action_env)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> JSONResponse:
    """Multipart upload (``file`` plus ``bucket`` form field).

    Oversized files are refused from the size the parser recorded, before
    their bytes are read into memory.
    """
    if file.size is not None:
        try:
            validate_file_size(bucket, file.size)
        except ActionError as e:
            return action_response(ActionResult.fail(str(e)), env, settings)

    action = ACTIONS["upload_file"]
    raw = {
        "bucket": bucket,
        "file_name": file.filename or "",
        "content_type": file.content_type or "",
        "content": await file.read(),
    }
    return action_response(await run_action(action, env, raw), env, settings)


@router.post("/{name}")
async def invoke_action(
    name: str,
    body: Annotated[dict[str, Any], Body()],
    env: Annotated[ActionEnv, Depends(get_action_env)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> JSONResponse:
    """Run a registered action with a JSON body.

    Returns:
        ActionResult JSON; 200 whether or not the action succeeded

    Raises:
        HTTPException: 404 for an unknown action name
    """
    action = get_action(name)
    if action is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown action: {name}")
    return action_response(await run_action(action, env, body), env, settings)
