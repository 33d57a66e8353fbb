"""Project management and reference image upload."""

from __future__ import annotations

import io
import logging
import re
import time
from pathlib import PurePath

from PIL import Image, UnidentifiedImageError

from styleforge.clients.blob_store import BlobStore
from styleforge.clients.metadata_store import MetadataStore
from styleforge.core.errors import ProjectNotFoundError
from styleforge.core.models import Project, ReferenceImage

logger = logging.getLogger(__name__)

_filename_sanitize_re = re.compile(r"[^A-Za-z0-9._-]")


def safe_filename(name: str, max_len: int = 200) -> str:
    """Reduce an uploaded file name to a bare, path-safe component."""
    name = PurePath(name.replace("\\", "/")).name
    name = _filename_sanitize_re.sub("_", name)
    return name[:max_len] or "upload"


def is_image(content: bytes) -> bool:
    """Return ``True`` if Pillow recognises *content* as an image file."""
    try:
        with Image.open(io.BytesIO(content)) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return False
    return True


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


class ProjectService:
    def __init__(self, store: MetadataStore, blobs: BlobStore) -> None:
        self._store = store
        self._blobs = blobs

    async def list_projects(self) -> list[Project]:
        return await self._store.list_projects()

    async def create_project(self, name: str, description: str = "") -> str:
        project_id = f"proj-{_now_millis()}"
        await self._store.create_project(project_id, name, description)
        logger.info("Created project %s (%s)", project_id, name)
        return project_id

    async def get_project(self, project_id: str) -> tuple[Project, list[ReferenceImage]]:
        project = await self._store.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        images = await self._store.list_images(project_id)
        project.image_count = len(images)
        return project, images

    async def upload_images(self, project_id: str, files: list[tuple[str, bytes]]) -> int:
        """Store uploaded files and record each one as awaiting a caption.

        Files that are not images, and files the blob store refuses, are
        skipped.  Image ids are millisecond
        timestamps offset by the upload index, so one batch never collides.

        Returns:
            The number of files stored and recorded.
        """
        if await self._store.get_project(project_id) is None:
            raise ProjectNotFoundError(project_id)

        base_id = _now_millis()
        uploaded = 0
        for filename, content in files:
            filename = safe_filename(filename)
            if not is_image(content):
                logger.warning("Skipping %s: not a recognised image", filename)
                continue
            path = self._blobs.path_for(project_id, filename)
            if not await self._blobs.store(path, content):
                continue
            await self._store.insert_image(base_id + uploaded, project_id, filename, path)
            uploaded += 1

        logger.info("Uploaded %d of %d files to project %s", uploaded, len(files), project_id)
        return uploaded
