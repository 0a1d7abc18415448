"""Upload validation and storage path rules."""

import re
import secrets
import time
import uuid

from backend.app.errors import ActionError

ALLOWED_BUCKETS: tuple[str, ...] = ("course-materials", "submissions", "avatars")

# Buckets served through short-lived signed URLs instead of public ones
PRIVATE_BUCKETS = frozenset({"submissions"})

MAX_FILE_SIZES: dict[str, int] = {
    "course-materials": 100 * 1024 * 1024,
    "submissions": 50 * 1024 * 1024,
    "avatars": 5 * 1024 * 1024,
}
DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024

ALLOWED_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "text/plain",
        "image/jpeg",
        "image/png",
        "image/gif",
        "video/mp4",
        "audio/mpeg",
        "application/zip",
    }
)

ALLOWED_EXTENSIONS: tuple[str, ...] = (
    ".pdf", ".doc", ".docx", ".pptx", ".xlsx", ".txt",
    ".jpg", ".jpeg", ".png", ".gif",
    ".mp4", ".mp3",
    ".zip",
)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
_UNDERSCORE_RUNS = re.compile(r"_+")
_EXTENSION = re.compile(r"[A-Za-z0-9]{1,10}")


def format_file_size(size: int) -> str:
    """Human-readable byte count, e.g. ``1.5 MB``."""
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


def _extension(file_name: str) -> str:
    if "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[1].lower()


def validate_bucket(bucket: str) -> None:
    if bucket not in ALLOWED_BUCKETS:
        raise ActionError("Invalid storage bucket")


def validate_file_size(bucket: str, size: int) -> None:
    """Reject files over the bucket's size limit."""
    max_size = MAX_FILE_SIZES.get(bucket, DEFAULT_MAX_FILE_SIZE)
    if size > max_size:
        max_mb = round(max_size / (1024 * 1024))
        raise ActionError(f"File size ({format_file_size(size)}) exceeds the {max_mb}MB limit")


def validate_upload(bucket: str, file_name: str, content_type: str, size: int) -> None:
    """Reject uploads that break the bucket's size or type rules.

    A file passes the type check when either its MIME type or its extension
    is on the allow list.

    Raises:
        ActionError: With a user-facing reason
    """
    validate_bucket(bucket)
    validate_file_size(bucket, size)

    if size == 0:
        raise ActionError("File is empty")

    ext = _extension(file_name)
    allowed_ext = {e.lstrip(".") for e in ALLOWED_EXTENSIONS}
    if content_type not in ALLOWED_MIME_TYPES and ext not in allowed_ext:
        raise ActionError(
            f'File type "{content_type or ext}" is not allowed. '
            f"Supported types: {', '.join(ALLOWED_EXTENSIONS)}"
        )


def sanitize_file_name(file_name: str) -> str:
    """Replace unsafe characters in the stem, keep a lowercased extension."""
    stem, _, ext = file_name.rpartition(".")
    if stem and _EXTENSION.fullmatch(ext):
        suffix = f".{ext.lower()}"
    else:
        stem, suffix = file_name, ""
    cleaned = _UNDERSCORE_RUNS.sub("_", _UNSAFE_CHARS.sub("_", stem))[:100]
    return f"{cleaned}{suffix}"


def generate_file_path(
    user_id: uuid.UUID,
    file_name: str,
    tenant_id: uuid.UUID | None,
    *,
    timestamp_ms: int | None = None,
    token: str | None = None,
) -> str:
    """Server-generated storage path ``{tenant}/{user}/{ts}-{rand}-{name}``."""
    tenant = str(tenant_id) if tenant_id else "default"
    ts = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    rand = token if token is not None else secrets.token_hex(3)
    return f"{tenant}/{user_id}/{ts}-{rand}-{sanitize_file_name(file_name)}"


def validate_delete_path(
    path: str,
    user_id: uuid.UUID,
    tenant_id: uuid.UUID,
    *,
    is_staff: bool = False,
) -> None:
    """Only allow deleting well-formed paths inside the caller's tenant.

    Files in another user's folder may only be removed by staff.

    Raises:
        ActionError: If the path is malformed or owned by someone else
    """
    if ".." in path or path.startswith("/") or "\0" in path:
        raise ActionError("Invalid file path")

    parts = path.split("/")
    if len(parts) < 3:
        raise ActionError("Invalid file path")

    if parts[0] != str(tenant_id):
        raise ActionError("Not authorized to delete files from another tenant")

    if parts[1] != str(user_id) and not is_staff:
        raise ActionError("Not authorized to delete this file")
