"""Async wrapper around the external user backend."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from nalevel.config.settings import Settings
from nalevel.users.models import User

logger = logging.getLogger(__name__)

CURRENT_USER_ENDPOINT = "/api/v1/user/me"


class UserServiceRequestError(RuntimeError):
    """Raised when the user backend responds with an error status code."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class BackendUserClient:
    """Reads and updates the signed-in user through the backend REST API."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.backend_base_url.rstrip("/"),
            timeout=settings.request_timeout,
            transport=transport,
        )
        # The backend identifies the user by session cookie, not by id.
        self._sessions: dict[str, str] = {}

    async def close(self) -> None:
        """Close the underlying HTTP client."""

        await self._client.aclose()

    def _session_headers(self, token: str) -> dict[str, str]:
        return {"Cookie": f"{self._settings.session_cookie_name}={token}"}

    async def _request_json(
        self,
        method: str,
        endpoint: str,
        *,
        token: str,
        json_body: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(
                method,
                endpoint,
                json=json_body,
                headers=self._session_headers(token),
            )
            response.raise_for_status()
            if not response.content:
                return {}
            return response.json()
        except httpx.TimeoutException as exc:  # pragma: no cover - network safeguard
            raise UserServiceRequestError("User backend did not respond in time.") from exc
        except httpx.HTTPStatusError as exc:
            raise UserServiceRequestError(
                f"User backend returned {exc.response.status_code}: {exc.response.text}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.TransportError as exc:
            raise UserServiceRequestError(f"User backend is unreachable: {exc}") from exc

    @staticmethod
    def _unwrap(payload: Mapping[str, Any]) -> Mapping[str, Any]:
        data = payload.get("data")
        if isinstance(data, Mapping):
            return data.get("user", data)
        return payload.get("user", payload)

    async def get_by_session(self, token: str) -> User | None:
        if not token:
            return None
        try:
            payload = await self._request_json("GET", CURRENT_USER_ENDPOINT, token=token)
        except UserServiceRequestError as exc:
            if exc.status_code in (401, 403, 404):
                return None
            raise
        user = User.from_dict(self._unwrap(payload))
        user.session_token = token
        self._sessions[user.id] = token
        return user

    async def get_user(self, user_id: str) -> User | None:
        token = self._sessions.get(user_id)
        if token is None:
            return None
        return await self.get_by_session(token)

    async def update_user(self, user: User) -> None:
        token = user.session_token or self._sessions.get(user.id)
        if not token:
            raise UserServiceRequestError(f"No session known for user {user.id}.", status_code=401)
        await self._request_json("PUT", CURRENT_USER_ENDPOINT, token=token, json_body=user.to_dict())

    async def ping(self) -> bool:
        """Return ``True`` if the backend health endpoint answers with 2xx."""

        response = await self._client.get(self._settings.backend_health_path)
        return response.is_success
