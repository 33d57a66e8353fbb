"""Databricks Vector Search index client."""

from __future__ import annotations

import json
from typing import Any

import httpx

from styleforge.clients.base import ServiceClient
from styleforge.core.config import StyleforgeConfig


class VectorIndexClient(ServiceClient):
    def __init__(self, config: StyleforgeConfig, http: httpx.AsyncClient) -> None:
        super().__init__(http, config.databricks_host, config.databricks_token)
        self._index = config.vector_index

    async def query(
        self,
        query_text: str,
        columns: list[str],
        num_results: int,
        filters: dict[str, Any] | None = None,
    ) -> list[list[Any]]:
        """Run a similarity query and return rows in relevance order."""
        body: dict[str, Any] = {
            "query_text": query_text,
            "columns": columns,
            "num_results": num_results,
        }
        if filters:
            body["filters_json"] = json.dumps(filters)
        payload = await self._post_json(f"/api/2.0/vector-search/indexes/{self._index}/query", body)
        if not isinstance(payload, dict):
            return []
        return (payload.get("result") or {}).get("data_array") or []

    async def sync(self) -> None:
        await self._post_json(f"/api/2.0/vector-search/indexes/{self._index}/sync")
