"""Replicate HTTP API client: predictions, file uploads and trainings."""

from __future__ import annotations

from typing import Any

import httpx

from styleforge.clients.base import ServiceClient, require_dict
from styleforge.core.config import StyleforgeConfig
from styleforge.core.errors import ExternalServiceError


class ImageServiceClient(ServiceClient):
    def __init__(self, config: StyleforgeConfig, http: httpx.AsyncClient) -> None:
        super().__init__(http, config.replicate_api_base, config.replicate_api_token)

    async def create_prediction(self, version: str, inputs: dict[str, Any]) -> dict[str, Any]:
        """Create a prediction and block until it finishes (``Prefer: wait``)."""
        payload = await self._post_json(
            "/predictions",
            {"version": version, "input": inputs},
            Prefer="wait",
        )
        return require_dict(payload, "prediction")

    async def upload_file(self, content: bytes, filename: str, content_type: str) -> str:
        """Upload bytes to the Files API and return their retrievable URL."""
        response = await self._http.post(
            self._url("/files"),
            files={"content": (filename, content, content_type)},
            headers=self._headers(),
        )
        response.raise_for_status()
        payload = require_dict(response.json(), "file upload")
        url = (payload.get("urls") or {}).get("get")
        if not url:
            raise ExternalServiceError("File upload returned no URL")
        return url

    async def create_training(
        self,
        owner: str,
        name: str,
        version: str,
        destination: str,
        inputs: dict[str, Any],
    ) -> dict[str, Any]:
        payload = await self._post_json(
            f"/models/{owner}/{name}/versions/{version}/trainings",
            {"destination": destination, "input": inputs},
        )
        training = require_dict(payload, "training")
        if not training.get("id"):
            raise ExternalServiceError("Training submission returned no id")
        return training

    async def get_training(self, training_id: str) -> dict[str, Any]:
        return require_dict(await self._get_json(f"/trainings/{training_id}"), "training")

    async def cancel_training(self, training_id: str) -> None:
        await self._post_json(f"/trainings/{training_id}/cancel")
