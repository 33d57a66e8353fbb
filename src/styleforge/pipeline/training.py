"""Custom model training: submission and status polling.

Submission
----------
:meth:`TrainingController.submit` packages a project's captioned images,
uploads the archive to the image service, starts a LoRA training job and
only then records the job on the project.  A failure at any step before the
final write leaves the project exactly as it was.

The final write is a compare-and-swap on ``training_status``: it succeeds
only if the status is still the one read at the start of the request.  When
two submissions race, the loser cancels the job it just created and reports
that training is already in progress.

Polling
-------
:meth:`TrainingController.poll` is called repeatedly by the client (for
example every 10 seconds); nothing here schedules itself.  Projects without
a job, or whose job already reached a terminal state, are answered from the
metadata store without contacting the image service.  While the job is
running the poll never writes.

External status mapping:

============================  ==================  ===================
Service status                Persisted status    Response
============================  ==================  ===================
``succeeded`` with version    ``completed``       status + version
``succeeded`` without version ``failed``          status + error
``failed`` / ``canceled``     ``failed``          status + error
anything else                 (unchanged)         ``training`` + logs
============================  ==================  ===================
"""

from __future__ import annotations

import logging
from typing import Any

from styleforge.clients.image_service import ImageServiceClient
from styleforge.clients.metadata_store import MetadataStore
from styleforge.core.config import StyleforgeConfig
from styleforge.core.errors import (
    ExternalServiceError,
    NoCaptionedImagesError,
    ProjectNotFoundError,
    TrainingInProgressError,
)
from styleforge.core.models import (
    Project,
    TrainingPollResult,
    TrainingStatus,
    TrainingSubmission,
)
from styleforge.pipeline.dataset import DatasetPackager

logger = logging.getLogger(__name__)

_FAILED_STATES = frozenset({"failed", "canceled"})


def tail_logs(logs: Any, lines: int) -> str:
    if not isinstance(logs, str) or lines <= 0:
        return ""
    return "\n".join(logs.split("\n")[-lines:])


class TrainingController:
    def __init__(
        self,
        store: MetadataStore,
        packager: DatasetPackager,
        service: ImageServiceClient,
        config: StyleforgeConfig,
    ) -> None:
        self._store = store
        self._packager = packager
        self._service = service
        self._config = config

    def training_inputs(self, archive_url: str) -> dict[str, Any]:
        return {
            "input_images": archive_url,
            "trigger_word": self._config.trigger_word,
            "steps": self._config.training_steps,
            "lora_rank": self._config.lora_rank,
            "learning_rate": self._config.learning_rate,
            "autocaption": self._config.autocaption,
        }

    async def _load_project(self, project_id: str) -> Project:
        project = await self._store.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    # -- Submission ----------------------------------------------------------

    async def submit(self, project_id: str) -> TrainingSubmission:
        """Start a training job for *project_id*.

        Raises:
            ProjectNotFoundError: The project does not exist.
            TrainingInProgressError: A job is already running, or a concurrent
                submission won the status update.
            NoCaptionedImagesError: The project has no captioned images.
            ExternalServiceError: No captioned image could be downloaded, or
                the image service answered with a malformed payload.
        """
        project = await self._load_project(project_id)
        prior_status = project.training_status
        if not prior_status.can_transition_to(TrainingStatus.TRAINING):
            raise TrainingInProgressError(project_id)

        images = await self._store.list_captioned_images(project_id)
        if not images:
            raise NoCaptionedImagesError(project_id)

        package = await self._packager.build(images)
        if package.image_count == 0:
            raise ExternalServiceError("None of the captioned images could be downloaded.")

        archive_url = await self._service.upload_file(
            package.content,
            f"{project_id}-dataset.zip",
            "application/zip",
        )

        destination = self._config.destination_model
        training = await self._service.create_training(
            self._config.trainer_owner,
            self._config.trainer_name,
            self._config.trainer_version,
            destination,
            self.training_inputs(archive_url),
        )
        training_id = str(training["id"])

        claimed = await self._store.begin_training(project_id, prior_status, training_id, destination)
        if not claimed:
            logger.warning(
                "Project %s changed state during submission; cancelling training %s",
                project_id,
                training_id,
            )
            await self._cancel_quietly(training_id)
            raise TrainingInProgressError(project_id)

        logger.info(
            "Project %s: %s -> training (job %s, %d images)",
            project_id,
            prior_status.value,
            training_id,
            package.image_count,
        )
        return TrainingSubmission(
            project_id=project_id,
            training_id=training_id,
            destination=destination,
            image_count=package.image_count,
        )

    async def _cancel_quietly(self, training_id: str) -> None:
        try:
            await self._service.cancel_training(training_id)
        except Exception:
            logger.warning("Could not cancel training %s", training_id, exc_info=True)

    # -- Polling -------------------------------------------------------------

    async def poll(self, project_id: str) -> TrainingPollResult:
        project = await self._load_project(project_id)
        status = project.training_status
        handle = project.trained_job_handle

        if not handle or status.is_terminal:
            return TrainingPollResult(status=status, version=project.trained_model_reference)

        training = await self._service.get_training(handle)
        remote_status = training.get("status")

        if remote_status == "succeeded":
            output = training.get("output")
            version = output.get("version") if isinstance(output, dict) else None
            if not version:
                await self._store.fail_training(project_id, handle)
                logger.error("Training %s succeeded without a model version", handle)
                return TrainingPollResult(
                    status=TrainingStatus.FAILED,
                    error="Training finished without producing a model version",
                )
            await self._store.complete_training(project_id, handle, version)
            logger.info("Project %s: training -> completed (version %s)", project_id, version)
            return TrainingPollResult(status=TrainingStatus.COMPLETED, version=version)

        if remote_status in _FAILED_STATES:
            await self._store.fail_training(project_id, handle)
            logger.info("Project %s: training -> failed (%s)", project_id, remote_status)
            return TrainingPollResult(
                status=TrainingStatus.FAILED,
                error=training.get("error") or "Training failed",
            )

        return TrainingPollResult(
            status=TrainingStatus.TRAINING,
            logs=tail_logs(training.get("logs"), self._config.training_log_tail),
        )
