"""FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from backend.app.api.routes.actions import router as actions_router
from backend.app.api.routes.auth import router as auth_router
from backend.app.api.routes.health import router as health_router
from backend.app.api.routes.metrics import router as metrics_router
from backend.app.api.routes.reports import router as reports_router
from backend.app.api.routes.robots import router as robots_router
from backend.app.cache import MemoCache
from backend.app.config import Settings, get_settings
from backend.app.errors import AuthenticationError, DownstreamError, NotAuthorizedError
from backend.app.identity import HttpIdentityProvider
from backend.app.middleware.ratelimit import RateLimitMiddleware, create_default_bucket_map
from backend.app.ratelimit import build_rate_limiters
from backend.app.utils.logging import action_logger
from backend.app.utils.metrics import metrics

VERSION = "0.1.0"


async def _authentication_error(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": str(exc)},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _not_authorized_error(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": str(exc)})


async def _downstream_error(request: Request, exc: Exception) -> JSONResponse:
    source = getattr(exc, "source", "database")
    metrics.inc_downstream_error(source)
    action_logger.log_downstream_error(source, str(exc), path=request.url.path)
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"error": str(exc)})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Configuration; read from the environment when omitted, which
            fails fast if a required variable is missing

    Returns:
        Configured FastAPI app with shared services on ``app.state``
    """
    settings = settings or get_settings()
    identity = HttpIdentityProvider.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await identity.aclose()

    app = FastAPI(title="LMS Portal API", version=VERSION, lifespan=lifespan)

    app.state.settings = settings
    app.state.identity = identity
    app.state.rate_limiters = build_rate_limiters(settings)
    app.state.memo_cache = MemoCache(settings.cache_ttl_seconds)

    app.middleware("http")(
        RateLimitMiddleware(app.state.rate_limiters.auth, create_default_bucket_map())
    )

    app.add_exception_handler(AuthenticationError, _authentication_error)
    app.add_exception_handler(NotAuthorizedError, _not_authorized_error)
    app.add_exception_handler(DownstreamError, _downstream_error)

    # Register routes
    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(robots_router)
    app.include_router(auth_router)
    app.include_router(actions_router)
    app.include_router(reports_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "LMS Portal API", "version": VERSION}

    return app


app = create_app()
