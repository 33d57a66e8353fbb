"""Reference image storage on a Databricks volume via the Files API."""

from __future__ import annotations

import logging

import httpx

from styleforge.clients.base import ServiceClient
from styleforge.core.config import StyleforgeConfig

logger = logging.getLogger(__name__)


class BlobStore(ServiceClient):
    """Path-addressed GET/PUT of raw image bytes."""

    def __init__(self, config: StyleforgeConfig, http: httpx.AsyncClient) -> None:
        super().__init__(http, config.databricks_host, config.databricks_token)
        self._volume_root = config.volume_root.rstrip("/")

    def path_for(self, project_id: str, filename: str) -> str:
        return f"{self._volume_root}/{project_id}/{filename}"

    async def fetch(self, path: str) -> bytes | None:
        """Download a file, returning ``None`` when the store answers non-2xx.

        Transport-level failures still raise :class:`httpx.HTTPError`.
        """
        response = await self._http.get(self._url(f"/api/2.0/fs/files{path}"), headers=self._headers())
        if not response.is_success:
            logger.warning("Blob fetch %s returned HTTP %s", path, response.status_code)
            return None
        return response.content

    async def store(self, path: str, content: bytes) -> bool:
        response = await self._http.put(
            self._url(f"/api/2.0/fs/files{path}"),
            content=content,
            headers=self._headers(**{"Content-Type": "application/octet-stream"}),
        )
        if not response.is_success:
            logger.warning("Blob upload %s returned HTTP %s", path, response.status_code)
        return response.is_success
