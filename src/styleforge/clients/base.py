"""Shared plumbing for the HTTP clients of external services."""

from __future__ import annotations

from typing import Any

import httpx

from styleforge.core.errors import ExternalServiceError


class ServiceClient:
    """Bearer-token authenticated client bound to one service base URL.

    The underlying :class:`httpx.AsyncClient` is owned by the caller (the API
    lifespan in production, a ``MockTransport`` client in tests) and shared
    between all service clients.
    """

    def __init__(self, http: httpx.AsyncClient, base_url: str, token: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._token = token

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self._token}"}
        headers.update(extra)
        return headers

    async def _post_json(self, path: str, payload: dict[str, Any] | None = None, **headers: str) -> Any:
        response = await self._http.post(self._url(path), json=payload, headers=self._headers(**headers))
        response.raise_for_status()
        return response.json()

    async def _get_json(self, path: str) -> Any:
        response = await self._http.get(self._url(path), headers=self._headers())
        response.raise_for_status()
        return response.json()


def require_dict(payload: Any, what: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ExternalServiceError(f"Unexpected {what} response")
    return payload
