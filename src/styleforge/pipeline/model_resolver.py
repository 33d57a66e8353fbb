"""Choice of the image model version used for a project's generations."""

from __future__ import annotations

import logging

from styleforge.clients.metadata_store import MetadataStore

logger = logging.getLogger(__name__)


class ModelVersionResolver:
    """Picks a project's fine-tuned model version, or the baseline.

    Only persisted project state is consulted; the training service is never
    contacted here.  A failed lookup falls back to the baseline version
    instead of failing the generation.
    """

    def __init__(self, store: MetadataStore, default_version: str) -> None:
        self._store = store
        self._default_version = default_version

    async def resolve(self, project_id: str | None) -> str:
        if not project_id:
            return self._default_version

        try:
            reference = await self._store.get_model_reference(project_id)
        except Exception:
            logger.warning(
                "Model reference lookup failed for %s, using baseline version",
                project_id,
                exc_info=True,
            )
            return self._default_version

        return reference or self._default_version
