"""Chat-completion client for Databricks model-serving endpoints."""

from __future__ import annotations

import base64
from typing import Any

import httpx

from styleforge.clients.base import ServiceClient
from styleforge.core.config import StyleforgeConfig


def _first_choice_content(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    content = (choices[0].get("message") or {}).get("content")
    if not isinstance(content, str):
        return None
    return content.strip() or None


class LanguageModelClient(ServiceClient):
    def __init__(self, config: StyleforgeConfig, http: httpx.AsyncClient) -> None:
        super().__init__(http, config.databricks_host, config.databricks_token)

    async def chat(self, endpoint: str, messages: list[dict[str, Any]], max_tokens: int) -> str | None:
        """Send a chat request and return the first choice's text.

        Returns:
            The stripped message content, or ``None`` if the model returned
            nothing usable.

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx response.
        """
        payload = await self._post_json(
            f"/serving-endpoints/{endpoint}/invocations",
            {"messages": messages, "max_tokens": max_tokens},
        )
        return _first_choice_content(payload)

    async def describe_image(
        self,
        endpoint: str,
        instruction: str,
        image: bytes,
        media_type: str,
        max_tokens: int,
    ) -> str | None:
        """Ask a vision-capable model about one inline image."""
        data_url = f"data:{media_type};base64,{base64.b64encode(image).decode('ascii')}"
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": instruction},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            }
        ]
        return await self.chat(endpoint, messages, max_tokens)
