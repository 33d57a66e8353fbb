"""Metadata store access through the Databricks SQL statement-execution API.

Every statement is sent with named parameter markers (``:project_id``) and a
list of typed bind values, so user-supplied text (project names, captions
produced by a language model) never becomes part of the statement text.
Table names come from configuration and are the only interpolated parts.

The store exposes a small repository surface for the two tables:

- ``projects(project_id, name, description, training_status,
  trained_model_reference, trained_job_handle, trained_model_destination,
  created_at)``
- ``images(id, project_id, filename, path, caption, uploaded_at)``

Each call is one independent statement; nothing here opens a transaction.
The training transitions are written as conditional updates whose affected
row count tells the caller whether the expected prior state still held.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from styleforge.clients.base import ServiceClient, require_dict
from styleforge.core.config import StyleforgeConfig
from styleforge.core.errors import ExternalServiceError
from styleforge.core.models import (
    PENDING_CAPTION,
    Project,
    ReferenceImage,
    TrainingStatus,
)

logger = logging.getLogger(__name__)


def _bind(name: str, value: Any) -> dict[str, Any]:
    """Build one typed parameter entry for the statement API."""
    if value is None:
        return {"name": name, "type": "STRING"}
    if isinstance(value, bool):
        return {"name": name, "value": "true" if value else "false", "type": "BOOLEAN"}
    if isinstance(value, int):
        return {"name": name, "value": str(value), "type": "BIGINT"}
    if isinstance(value, float):
        return {"name": name, "value": repr(value), "type": "DOUBLE"}
    return {"name": name, "value": str(value), "type": "STRING"}


class MetadataStore(ServiceClient):
    """Repository over the projects and image-record tables."""

    def __init__(self, config: StyleforgeConfig, http: httpx.AsyncClient) -> None:
        super().__init__(http, config.databricks_host, config.databricks_token)
        self._warehouse_id = config.warehouse_id
        self._wait_timeout = config.statement_wait_timeout
        self._projects = config.projects_table
        self._images = config.images_table

    # -- Statement execution -------------------------------------------------

    async def execute(self, statement: str, **params: Any) -> list[list[Any]]:
        """Run one parameterized statement and return its result rows.

        Args:
            statement: SQL text using ``:name`` parameter markers.
            **params: Bind values keyed by marker name.

        Returns:
            The ``data_array`` rows (possibly empty).

        Raises:
            ExternalServiceError: If the statement did not succeed.
            httpx.HTTPError: On transport failure or a non-2xx response.
        """
        payload = {
            "statement": statement,
            "warehouse_id": self._warehouse_id,
            "wait_timeout": self._wait_timeout,
            "parameters": [_bind(name, value) for name, value in params.items()],
        }
        result = require_dict(await self._post_json("/api/2.0/sql/statements", payload), "SQL statement")

        status = result.get("status") or {}
        state = status.get("state")
        if state != "SUCCEEDED":
            message = (status.get("error") or {}).get("message") or f"statement state {state}"
            logger.error("Metadata statement failed: %s", message)
            raise ExternalServiceError(f"Metadata store error: {message}")

        return (result.get("result") or {}).get("data_array") or []

    async def _execute_update(self, statement: str, **params: Any) -> int:
        rows = await self.execute(statement, **params)
        try:
            return int(rows[0][0])
        except (IndexError, TypeError, ValueError):
            return 0

    # -- Projects ------------------------------------------------------------

    async def create_project(self, project_id: str, name: str, description: str) -> None:
        await self.execute(
            f"INSERT INTO {self._projects} "
            "(project_id, name, description, training_status, created_at) "
            "VALUES (:project_id, :name, :description, :status, current_timestamp())",
            project_id=project_id,
            name=name,
            description=description,
            status=TrainingStatus.NONE.value,
        )

    async def list_projects(self) -> list[Project]:
        rows = await self.execute(
            f"SELECT p.project_id, p.name, p.description, COUNT(m.id) AS image_count, "
            f"p.training_status, p.trained_model_reference "
            f"FROM {self._projects} p "
            f"LEFT JOIN {self._images} m ON p.project_id = m.project_id "
            "GROUP BY p.project_id, p.name, p.description, p.training_status, "
            "p.trained_model_reference "
            "ORDER BY p.name"
        )
        return [
            Project(
                project_id=row[0],
                name=row[1],
                description=row[2] or "",
                image_count=int(row[3] or 0),
                training_status=TrainingStatus.from_stored(row[4]),
                trained_model_reference=row[5] or None,
            )
            for row in rows
        ]

    async def get_project(self, project_id: str) -> Project | None:
        rows = await self.execute(
            "SELECT project_id, name, description, training_status, "
            "trained_model_reference, trained_job_handle, trained_model_destination "
            f"FROM {self._projects} WHERE project_id = :project_id",
            project_id=project_id,
        )
        if not rows:
            return None
        row = rows[0]
        return Project(
            project_id=row[0],
            name=row[1],
            description=row[2] or "",
            training_status=TrainingStatus.from_stored(row[3]),
            trained_model_reference=row[4] or None,
            trained_job_handle=row[5] or None,
            trained_model_destination=row[6] or None,
        )

    async def get_model_reference(self, project_id: str) -> str | None:
        rows = await self.execute(
            f"SELECT trained_model_reference FROM {self._projects} WHERE project_id = :project_id",
            project_id=project_id,
        )
        if not rows or not rows[0]:
            return None
        return rows[0][0] or None

    # -- Image records -------------------------------------------------------

    async def insert_image(self, image_id: int, project_id: str, filename: str, path: str) -> None:
        await self.execute(
            f"INSERT INTO {self._images} "
            "(id, project_id, filename, path, caption, uploaded_at) "
            "VALUES (:id, :project_id, :filename, :path, :caption, current_timestamp())",
            id=image_id,
            project_id=project_id,
            filename=filename,
            path=path,
            caption=PENDING_CAPTION,
        )

    async def list_images(self, project_id: str) -> list[ReferenceImage]:
        rows = await self.execute(
            f"SELECT id, filename, path, caption FROM {self._images} "
            "WHERE project_id = :project_id ORDER BY id",
            project_id=project_id,
        )
        return self._to_images(project_id, rows)

    async def list_pending_images(self, project_id: str) -> list[ReferenceImage]:
        rows = await self.execute(
            f"SELECT id, filename, path, caption FROM {self._images} "
            "WHERE project_id = :project_id AND caption = :pending ORDER BY id",
            project_id=project_id,
            pending=PENDING_CAPTION,
        )
        return self._to_images(project_id, rows)

    async def list_captioned_images(self, project_id: str) -> list[ReferenceImage]:
        """Return every image whose caption is no longer pending, ascending by id."""
        rows = await self.execute(
            f"SELECT id, filename, path, caption FROM {self._images} "
            "WHERE project_id = :project_id AND caption != :pending ORDER BY id",
            project_id=project_id,
            pending=PENDING_CAPTION,
        )
        return self._to_images(project_id, rows)

    async def set_caption(self, image_id: int, caption: str) -> None:
        await self.execute(
            f"UPDATE {self._images} SET caption = :caption WHERE id = :id",
            caption=caption,
            id=image_id,
        )

    @staticmethod
    def _to_images(project_id: str, rows: list[list[Any]]) -> list[ReferenceImage]:
        return [
            ReferenceImage.from_stored(
                id=int(row[0]),
                project_id=project_id,
                filename=row[1],
                path=row[2] or "",
                caption=row[3],
            )
            for row in rows
        ]

    # -- Training transitions ------------------------------------------------

    async def begin_training(
        self,
        project_id: str,
        expected: TrainingStatus,
        job_handle: str,
        destination: str,
    ) -> bool:
        """Move a project into ``training`` if its status is still *expected*.

        Returns:
            ``True`` when the row was updated, ``False`` when another request
            changed the status first.
        """
        affected = await self._execute_update(
            f"UPDATE {self._projects} "
            "SET training_status = :training, trained_job_handle = :job, "
            "trained_model_destination = :destination "
            "WHERE project_id = :project_id AND COALESCE(training_status, 'none') = :expected",
            training=TrainingStatus.TRAINING.value,
            job=job_handle,
            destination=destination,
            project_id=project_id,
            expected=expected.value,
        )
        return affected > 0

    async def complete_training(self, project_id: str, job_handle: str, version: str) -> bool:
        affected = await self._execute_update(
            f"UPDATE {self._projects} "
            "SET training_status = :completed, trained_model_reference = :version "
            "WHERE project_id = :project_id AND trained_job_handle = :job "
            "AND training_status = :training",
            completed=TrainingStatus.COMPLETED.value,
            version=version,
            project_id=project_id,
            job=job_handle,
            training=TrainingStatus.TRAINING.value,
        )
        return affected > 0

    async def fail_training(self, project_id: str, job_handle: str) -> bool:
        affected = await self._execute_update(
            f"UPDATE {self._projects} SET training_status = :failed "
            "WHERE project_id = :project_id AND trained_job_handle = :job "
            "AND training_status = :training",
            failed=TrainingStatus.FAILED.value,
            project_id=project_id,
            job=job_handle,
            training=TrainingStatus.TRAINING.value,
        )
        return affected > 0
