"""Style exemplar retrieval from the vector index."""

from __future__ import annotations

import logging

from styleforge.clients.vector_index import VectorIndexClient
from styleforge.core.models import StyleExemplar

logger = logging.getLogger(__name__)

# Column order matters: rows come back as positional arrays.
_COLUMNS = ["id", "filename", "caption", "project_id"]


class StyleRetriever:
    """Finds the captioned reference images most similar to a prompt.

    Attributes:
        _index: Vector index client.
        _k: Maximum number of exemplars returned per query.
    """

    def __init__(self, index: VectorIndexClient, k: int = 3) -> None:
        self._index = index
        self._k = k

    async def retrieve(self, query: str, project_id: str | None = None) -> list[StyleExemplar]:
        """Return at most ``k`` exemplars, most relevant first.

        When *project_id* is given the search is restricted to that project's
        images.  An empty index result is a normal outcome and yields an
        empty list; transport errors propagate to the caller.
        """
        filters = {"project_id": project_id} if project_id else None
        rows = await self._index.query(query, _COLUMNS, self._k, filters)

        exemplars: list[StyleExemplar] = []
        for row in rows[: self._k]:
            if len(row) < 3:
                continue
            exemplars.append(StyleExemplar(filename=str(row[1]), caption=str(row[2] or "")))

        logger.debug("Retrieved %d style exemplars for project %s", len(exemplars), project_id)
        return exemplars
