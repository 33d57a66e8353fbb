"""Training dataset packaging.

A training package is a ZIP archive holding the raw bytes of every captioned
image of a project plus a ``metadata.jsonl`` manifest.  Each manifest line is
an independent JSON object::

    {"file_name": "cat.png", "text": "STYLFRG A cat in watercolor"}

An image whose download fails is left out of both the archive and the
manifest, so every manifest line names an archive entry and vice versa.
"""

from __future__ import annotations

import io
import json
import logging
import zipfile
from dataclasses import dataclass

import httpx

from styleforge.clients.blob_store import BlobStore
from styleforge.core.models import ReferenceImage

logger = logging.getLogger(__name__)

MANIFEST_NAME = "metadata.jsonl"


def latest_per_filename(images: list[ReferenceImage]) -> list[ReferenceImage]:
    """Keep one record per filename, the one with the highest id.

    Re-uploading a filename overwrites the single blob at that path but adds
    a second record, so only the newest record's caption describes the
    stored bytes.  Each filename keeps the position of its first record.
    """
    latest: dict[str, ReferenceImage] = {}
    for image in images:
        current = latest.get(image.filename)
        if current is None or image.id > current.id:
            latest[image.filename] = image
    if len(latest) < len(images):
        logger.warning("Ignoring %d superseded image records", len(images) - len(latest))
    return list(latest.values())


@dataclass(frozen=True)
class DatasetPackage:
    content: bytes
    filenames: list[str]

    @property
    def image_count(self) -> int:
        return len(self.filenames)


class DatasetPackager:
    def __init__(self, blobs: BlobStore, trigger_word: str) -> None:
        self._blobs = blobs
        self._trigger_word = trigger_word

    def manifest_line(self, filename: str, caption: str) -> str:
        return json.dumps({"file_name": filename, "text": f"{self._trigger_word} {caption}"})

    async def build(self, images: list[ReferenceImage]) -> DatasetPackage:
        """Download *images* and serialise them into a ZIP package.

        Args:
            images: Captioned images in the order they should be packaged.
                The caller has already refused to train on an empty list.

        Returns:
            The archive bytes and the names of the images it contains.
        """
        buffer = io.BytesIO()
        filenames: list[str] = []
        manifest: list[str] = []

        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for image in latest_per_filename(images):
                content = await self._download(image)
                if content is None:
                    continue
                archive.writestr(image.filename, content)
                filenames.append(image.filename)
                manifest.append(self.manifest_line(image.filename, image.caption or ""))

            archive.writestr(MANIFEST_NAME, "\n".join(manifest))

        logger.info("Packaged %d of %d images", len(filenames), len(images))
        return DatasetPackage(content=buffer.getvalue(), filenames=filenames)

    async def _download(self, image: ReferenceImage) -> bytes | None:
        path = image.path or self._blobs.path_for(image.project_id, image.filename)
        try:
            content = await self._blobs.fetch(path)
        except httpx.HTTPError as exc:
            logger.warning("Failed to download %s: %s", image.filename, exc)
            return None
        if content is None:
            logger.warning("Failed to download %s", image.filename)
        return content
