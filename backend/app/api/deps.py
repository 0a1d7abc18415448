"""FastAPI dependencies for shared services.

Long-lived services live on ``app.state`` (set up by ``create_app``); the
repository bundle is built per request over one database session. Tests
swap any of them through ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.cache import MemoCache
from backend.app.config import Settings
from backend.app.db.engine import get_session
from backend.app.db.repositories import Repositories
from backend.app.db.sql_repositories import sql_repositories
from backend.app.identity import IdentityProvider
from backend.app.ratelimit import RateLimiters
from backend.app.tenancy import extract_tenant_slug


def get_repositories(session: Annotated[AsyncSession, Depends(get_session)]) -> Repositories:
    """Repository bundle over the request's async session."""
    return sql_repositories(session)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[no-any-return]


def get_identity(request: Request) -> IdentityProvider:
    return request.app.state.identity  # type: ignore[no-any-return]


def get_rate_limiters(request: Request) -> RateLimiters:
    return request.app.state.rate_limiters  # type: ignore[no-any-return]


def get_memo_cache(request: Request) -> MemoCache:
    return request.app.state.memo_cache  # type: ignore[no-any-return]


def request_tenant_slug(request: Request, settings: Settings) -> str | None:
    """Tenant slug the request is addressed to (see ``extract_tenant_slug``)."""
    return extract_tenant_slug(
        request.headers.get("host", ""),
        settings.root_domain,
        query_slug=request.query_params.get("tenant"),
        header_slug=request.headers.get("x-tenant-slug"),
    )
