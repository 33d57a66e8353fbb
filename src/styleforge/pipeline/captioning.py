"""Batch captioning of a project's pending reference images.

For every image still marked pending, the job downloads the bytes from the
blob store, asks a vision-capable language model for a short art-directed
description, and stores the result as the image's caption.

Progress Rules
--------------
- An image whose download is unsuccessful is skipped and stays pending, so a
  later run picks it up again.
- An image the model could not describe (error response or empty content)
  receives the fixed failure caption instead of staying pending.  It is not
  counted as captioned and is never selected again.
- Any other per-image exception is logged and the batch moves on.
- Images are processed one at a time.

After the loop the vector index is resynced unconditionally.  The resync is
best-effort: its failure is logged and does not fail the batch.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath

import httpx

from styleforge.clients.blob_store import BlobStore
from styleforge.clients.language_model import LanguageModelClient
from styleforge.clients.metadata_store import MetadataStore
from styleforge.clients.vector_index import VectorIndexClient
from styleforge.core.config import StyleforgeConfig
from styleforge.core.models import FAILED_CAPTION, ReferenceImage

logger = logging.getLogger(__name__)

CAPTION_INSTRUCTION = (
    "You are an art expert analyzing visual reference material. Describe this image "
    "in detail: the subject matter, artistic style, techniques, color palette, mood, "
    "composition, and any distinctive characteristics. Be specific. Write 2-3 sentences."
)


def media_type_for(filename: str) -> str:
    """Return the MIME type sent with an inline image (PNG or JPEG)."""
    if PurePosixPath(filename).suffix.lower() == ".png":
        return "image/png"
    return "image/jpeg"


class CaptionBatchJob:
    def __init__(
        self,
        store: MetadataStore,
        blobs: BlobStore,
        llm: LanguageModelClient,
        index: VectorIndexClient,
        config: StyleforgeConfig,
    ) -> None:
        self._store = store
        self._blobs = blobs
        self._llm = llm
        self._index = index
        self._endpoint = config.captioner_endpoint
        self._max_tokens = config.captioner_max_tokens

    async def run(self, project_id: str) -> int:
        """Caption every pending image of *project_id*.

        Returns:
            The number of images captioned by the model.  Images that received
            the failure caption are not counted.
        """
        pending = await self._store.list_pending_images(project_id)
        logger.info("Captioning %d pending images for project %s", len(pending), project_id)

        captioned = 0
        for image in pending:
            try:
                if await self._caption_one(image):
                    captioned += 1
            except Exception:
                logger.exception("Failed to caption %s", image.filename)

        await self._resync_index(project_id)
        return captioned

    async def _caption_one(self, image: ReferenceImage) -> bool:
        path = image.path or self._blobs.path_for(image.project_id, image.filename)
        content = await self._blobs.fetch(path)
        if content is None:
            logger.warning("Skipping %s: image could not be downloaded", image.filename)
            return False

        try:
            caption = await self._llm.describe_image(
                self._endpoint,
                CAPTION_INSTRUCTION,
                content,
                media_type_for(image.filename),
                self._max_tokens,
            )
        except httpx.HTTPStatusError as exc:
            logger.warning("Captioning model rejected %s: %s", image.filename, exc)
            caption = None

        if not caption:
            await self._store.set_caption(image.id, FAILED_CAPTION)
            return False

        await self._store.set_caption(image.id, caption)
        return True

    async def _resync_index(self, project_id: str) -> None:
        try:
            await self._index.sync()
        except Exception:
            logger.warning("Vector index resync failed after captioning %s", project_id, exc_info=True)
