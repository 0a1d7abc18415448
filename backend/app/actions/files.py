"""File upload and delete actions."""

import uuid
from typing import Any

from backend.app.actions.base import ActionEnv, server_action
from backend.app.db.repositories import StoredFileRecord
from backend.app.errors import DownstreamError
from backend.app.files import (
    PRIVATE_BUCKETS,
    generate_file_path,
    validate_bucket,
    validate_delete_path,
    validate_upload,
)
from backend.app.models.actions import DeleteFileInput, UploadFileInput
from backend.app.roles import STAFF_ROLES, Role


@server_action("upload_file", UploadFileInput)
async def upload_file(env: ActionEnv, payload: UploadFileInput) -> dict[str, Any]:
    """Store an upload under a server-generated path in the caller's folder."""
    ctx = env.require_ctx()
    validate_upload(payload.bucket, payload.file_name, payload.content_type, payload.size)

    timestamp_ms = int(env.clock().timestamp() * 1000)
    path = generate_file_path(
        ctx.user_id, payload.file_name, ctx.tenant_id, timestamp_ms=timestamp_ms
    )
    record = StoredFileRecord(
        file_id=uuid.uuid4(),
        tenant_id=ctx.tenant_id,
        bucket=payload.bucket,
        path=path,
        owner_id=ctx.user_id,
        file_name=payload.file_name,
        content_type=payload.content_type or "application/octet-stream",
        size=payload.size,
        created_at=env.clock(),
    )
    try:
        await env.repos.files.upload(record, payload.content)
    except DownstreamError as e:
        raise DownstreamError(f"Upload failed: {e}", source=e.source) from e

    return {
        "bucket": record.bucket,
        "path": record.path,
        "file_name": record.file_name,
        "file_size": record.size,
        "file_type": record.content_type,
        "private": record.bucket in PRIVATE_BUCKETS,
    }


@server_action("delete_file", DeleteFileInput)
async def delete_file(env: ActionEnv, payload: DeleteFileInput) -> dict[str, Any]:
    """Delete a stored object inside the caller's tenant.

    Objects in another user's folder need an admin or super_admin role.
    """
    ctx, tenant_id = env.require_tenant()
    validate_bucket(payload.bucket)
    validate_delete_path(
        payload.path,
        ctx.user_id,
        tenant_id,
        is_staff=Role.parse(ctx.role) in STAFF_ROLES,
    )

    try:
        await env.repos.files.remove(payload.bucket, payload.path)
    except DownstreamError as e:
        raise DownstreamError(f"Delete failed: {e}", source=e.source) from e

    return {"bucket": payload.bucket, "path": payload.path}
