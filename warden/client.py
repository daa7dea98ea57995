"""Synchronous HTTP client for the account service API.

Example::

    with WardenClient("http://localhost:8000/v1/auth") as client:
        client.login("alice", "secret1")
        client.refresh()
        client.logout()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

DEFAULT_TIMEOUT_SECONDS = 10.0


class WardenClientError(Exception):
    """Raised for non-2xx responses; ``status_code`` is 0 for transport failures."""

    def __init__(self, message: str, status_code: int, payload: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


@dataclass(slots=True)
class AuthContext:
    """Tokens and account details remembered between calls."""

    access_token: str | None = None
    refresh_token: str | None = None
    user: dict[str, Any] = field(default_factory=dict)


class WardenClient:
    """Thin wrapper over ``httpx.Client`` mirroring the ``/v1/auth`` endpoints.

    Parameters
    ----------
    base_url:
        Root of the auth API, e.g. ``http://localhost:8000/v1/auth``.
    http_client:
        Optional pre-built client (tests pass FastAPI's ``TestClient``).
    signup_access_token, signup_secret_token:
        Pre-shared signup guard headers, sent only on signup.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        http_client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        signup_access_token: str | None = None,
        signup_secret_token: str | None = None,
    ) -> None:
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)
        self._base_url = base_url.rstrip("/")
        self._signup_headers: dict[str, str] = {}
        if signup_access_token and signup_secret_token:
            self._signup_headers = {
                "X-Access-Token": signup_access_token,
                "X-Secret-Token": signup_secret_token,
            }
        self._context = AuthContext()

    def __enter__(self) -> "WardenClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    # auth context

    @property
    def auth_context(self) -> AuthContext:
        return AuthContext(
            access_token=self._context.access_token,
            refresh_token=self._context.refresh_token,
            user=dict(self._context.user),
        )

    def set_auth_context(
        self,
        *,
        access_token: str | None = None,
        refresh_token: str | None = None,
        user: dict[str, Any] | None = None,
    ) -> None:
        self._context = AuthContext(access_token=access_token, refresh_token=refresh_token, user=user or {})

    def clear_auth_context(self) -> None:
        self._context = AuthContext()

    def is_authenticated(self) -> bool:
        return bool(self._context.access_token)

    # endpoints

    def signup(self, username: str, password: str) -> dict[str, Any]:
        """Register an account and return ``{username, roles, blocked}``."""
        return self._post(
            "/signup",
            {"username": username, "password": password},
            headers=self._signup_headers,
        )

    def login(self, username: str, password: str) -> dict[str, Any]:
        """Log in and remember the returned tokens for later calls."""
        data = self._post("/login", {"username": username, "password": password})
        self.set_auth_context(
            access_token=data["accessToken"],
            refresh_token=data["refreshToken"],
            user=data["user"],
        )
        return data

    def refresh(self, refresh_token: str | None = None) -> dict[str, Any]:
        """Rotate the refresh token; the stored context follows the new pair."""
        token = refresh_token or self._context.refresh_token
        if not token:
            raise WardenClientError("refresh requires a refresh token", 400)
        data = self._post("/refresh", {"refreshToken": token})
        self._context.access_token = data["accessToken"]
        self._context.refresh_token = data["newRefreshToken"]
        return data

    def logout(self, refresh_token: str | None = None) -> dict[str, Any]:
        """Close the session and clear the stored context."""
        token = refresh_token or self._context.refresh_token
        if not token or not self._context.access_token:
            raise WardenClientError("logout requires both an access token and a refresh token", 400)
        data = self._post("/logout", {"refreshToken": token}, authenticated=True)
        self.clear_auth_context()
        return data

    def block_user(self, username: str) -> dict[str, Any]:
        return self._post("/admin/block", {"username": username}, authenticated=True)

    def unblock_user(self, username: str) -> dict[str, Any]:
        return self._post("/admin/unblock", {"username": username}, authenticated=True)

    def remove_user(self, username: str) -> dict[str, Any]:
        return self._post("/admin/remove", {"username": username}, authenticated=True)

    def _post(
        self,
        path: str,
        body: dict[str, Any],
        *,
        headers: dict[str, str] | None = None,
        authenticated: bool = False,
    ) -> dict[str, Any]:
        request_headers = dict(headers or {})
        if authenticated and self._context.access_token:
            request_headers["Authorization"] = f"Bearer {self._context.access_token}"
        try:
            response = self._http.post(f"{self._base_url}{path}", json=body, headers=request_headers)
        except httpx.HTTPError as exc:
            raise WardenClientError("network error: unable to reach server", 0) from exc
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.is_success:
            return data
        message = data.get("detail") if isinstance(data, dict) else None
        if not isinstance(message, str):
            message = f"request failed with status {response.status_code}"
        raise WardenClientError(message, response.status_code, data if isinstance(data, dict) else None)
