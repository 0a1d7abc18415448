"""Crawler policy derived from the role route table."""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from backend.app.api.deps import get_app_settings
from backend.app.config import Settings
from backend.app.roles import ROLE_ROUTE_PREFIXES

router = APIRouter(tags=["robots"])

# Role portals plus the API and messaging surfaces
DISALLOWED_PREFIXES: tuple[str, ...] = (
    *(f"{prefix}/" for prefix in ROLE_ROUTE_PREFIXES),
    "/api/",
    "/messaging/",
)


def render_robots(site_url: str) -> str:
    lines = ["User-agent: *", "Allow: /"]
    lines.extend(f"Disallow: {prefix}" for prefix in DISALLOWED_PREFIXES)
    lines.append("")
    lines.append(f"Sitemap: {site_url.rstrip('/')}/sitemap.xml")
    return "\n".join(lines) + "\n"


@router.get("/robots.txt", response_class=PlainTextResponse)
async def robots(settings: Annotated[Settings, Depends(get_app_settings)]) -> str:
    return render_robots(settings.site_url)
