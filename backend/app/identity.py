"""Hosted identity provider client.

Sign-in, sign-out and token introspection are delegated to a GoTrue-style
REST API at ``IDENTITY_URL``. Provider failures surface as
``DownstreamError(source="identity")`` carrying the provider's message.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from backend.app.config import Settings
from backend.app.errors import DownstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityUser:
    """Authenticated identity-provider user."""

    user_id: uuid.UUID
    email: str | None


@dataclass(frozen=True)
class SignInResult:
    """Session issued by the provider."""

    user: IdentityUser
    access_token: str
    expires_in: int


class IdentityProvider(Protocol):
    """Protocol for identity provider implementations."""

    async def sign_in(self, email: str, password: str) -> SignInResult:
        """Exchange credentials for a session.

        Raises:
            DownstreamError: With the provider's message on rejection
        """
        ...

    async def sign_out(self, access_token: str) -> None:
        """Revoke the session behind ``access_token``."""
        ...

    async def get_user(self, access_token: str) -> IdentityUser | None:
        """Resolve a token to its user; None when the token is not valid."""
        ...


def _error_message(response: httpx.Response) -> str:
    try:
        body: Any = response.json()
    except ValueError:
        return response.text or f"Identity provider returned {response.status_code}"
    if isinstance(body, dict):
        for field in ("error_description", "msg", "message", "error"):
            if isinstance(body.get(field), str):
                return body[field]  # type: ignore[no-any-return]
    return f"Identity provider returned {response.status_code}"


class HttpIdentityProvider:
    """GoTrue-compatible identity provider over httpx."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize client.

        Args:
            base_url: Provider root URL
            api_key: Public (anon) key sent as the ``apikey`` header
            timeout_seconds: Per-request timeout
            client: Optional httpx client (for testing with mocks)
        """
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpIdentityProvider":
        return cls(
            settings.identity_url,
            settings.database_public_key,
            timeout_seconds=settings.identity_timeout_seconds,
        )

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {"apikey": self._api_key}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, f"{self._base_url}{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.warning(
                "Identity provider unreachable",
                extra={"structured": {"path": path, "error": type(e).__name__}},
            )
            raise DownstreamError("Authentication service unavailable", source="identity") from e

    async def sign_in(self, email: str, password: str) -> SignInResult:
        """Password grant sign-in."""
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(),
        )
        if response.status_code >= 400:
            raise DownstreamError(_error_message(response), source="identity")

        data = response.json()
        user = data["user"]
        return SignInResult(
            user=IdentityUser(user_id=uuid.UUID(user["id"]), email=user.get("email")),
            access_token=data["access_token"],
            expires_in=int(data.get("expires_in", 3600)),
        )

    async def sign_out(self, access_token: str) -> None:
        """Revoke the session."""
        response = await self._request(
            "POST", "/auth/v1/logout", headers=self._headers(access_token)
        )
        if response.status_code >= 400:
            raise DownstreamError(_error_message(response), source="identity")

    async def get_user(self, access_token: str) -> IdentityUser | None:
        """Look up the token's user."""
        response = await self._request("GET", "/auth/v1/user", headers=self._headers(access_token))
        if response.status_code in (401, 403):
            return None
        if response.status_code >= 400:
            raise DownstreamError(_error_message(response), source="identity")

        data = response.json()
        return IdentityUser(user_id=uuid.UUID(data["id"]), email=data.get("email"))

    async def aclose(self) -> None:
        await self._client.aclose()


class StaticIdentityProvider:
    """Deterministic in-process provider for tests and local development.

    Users are registered with a password; tokens are opaque strings handed
    out at sign-in (or registered directly with ``issue_token``).
    """

    def __init__(self) -> None:
        self._passwords: dict[str, tuple[str, IdentityUser]] = {}
        self._tokens: dict[str, IdentityUser] = {}
        self.sign_out_error: str | None = None
        self.signed_out: list[str] = []

    def add_user(self, email: str, password: str, user_id: uuid.UUID | None = None) -> IdentityUser:
        user = IdentityUser(user_id=user_id or uuid.uuid4(), email=email)
        self._passwords[email.lower()] = (password, user)
        return user

    def issue_token(self, user: IdentityUser, token: str | None = None) -> str:
        token = token or f"token-{uuid.uuid4().hex}"
        self._tokens[token] = user
        return token

    async def sign_in(self, email: str, password: str) -> SignInResult:
        entry = self._passwords.get(email.lower())
        if entry is None or entry[0] != password:
            raise DownstreamError("Invalid login credentials", source="identity")
        user = entry[1]
        return SignInResult(user=user, access_token=self.issue_token(user), expires_in=3600)

    async def sign_out(self, access_token: str) -> None:
        if self.sign_out_error is not None:
            raise DownstreamError(self.sign_out_error, source="identity")
        self._tokens.pop(access_token, None)
        self.signed_out.append(access_token)

    async def get_user(self, access_token: str) -> IdentityUser | None:
        return self._tokens.get(access_token)
