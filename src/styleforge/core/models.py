"""Domain types shared by the StyleForge pipeline.

Projects and reference images are persisted by the external metadata store;
everything else here (style exemplars, composed prompts, poll results) is
transient and lives for a single request.

Caption State
-------------
The metadata store keeps captions as plain text.  Two literal values have
special meaning there: :data:`PENDING_CAPTION` marks an image that has not
been captioned yet and :data:`FAILED_CAPTION` marks one the vision model
could not describe.  Inside the application those values are turned into a
:class:`CaptionState` as soon as a row is read, so no pipeline code compares
caption strings.

Training State Machine
----------------------
::

    none ──► training ──► completed
                 │            │
                 ▼            │
              failed ─────────┴──► training   (retry / retrain)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

PENDING_CAPTION = "Pending captioning..."
FAILED_CAPTION = "Captioning failed"


class CaptionState(str, Enum):
    PENDING = "pending"
    CAPTIONED = "captioned"
    FAILED = "failed"

    @classmethod
    def from_stored(cls, caption: str | None) -> CaptionState:
        """Derive the caption state from the text stored in the metadata store."""
        if caption is None or caption == PENDING_CAPTION:
            return cls.PENDING
        if caption == FAILED_CAPTION:
            return cls.FAILED
        return cls.CAPTIONED


class TrainingStatus(str, Enum):
    NONE = "none"
    TRAINING = "training"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def from_stored(cls, value: str | None) -> TrainingStatus:
        # Rows created before training existed carry NULL.
        if not value:
            return cls.NONE
        return cls(value)

    @property
    def is_terminal(self) -> bool:
        return self in (TrainingStatus.COMPLETED, TrainingStatus.FAILED)

    def can_transition_to(self, target: TrainingStatus) -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[TrainingStatus, frozenset[TrainingStatus]] = {
    TrainingStatus.NONE: frozenset({TrainingStatus.TRAINING}),
    TrainingStatus.TRAINING: frozenset({TrainingStatus.COMPLETED, TrainingStatus.FAILED}),
    TrainingStatus.COMPLETED: frozenset({TrainingStatus.TRAINING}),
    TrainingStatus.FAILED: frozenset({TrainingStatus.TRAINING}),
}


@dataclass
class Project:
    project_id: str
    name: str
    description: str = ""
    training_status: TrainingStatus = TrainingStatus.NONE
    trained_model_reference: str | None = None
    trained_job_handle: str | None = None
    trained_model_destination: str | None = None
    image_count: int = 0

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "name": self.name,
            "description": self.description,
            "image_count": self.image_count,
            "training_status": self.training_status.value,
            "trained_model_reference": self.trained_model_reference,
        }


@dataclass
class ReferenceImage:
    id: int
    project_id: str
    filename: str
    path: str = ""
    caption: str | None = None
    caption_state: CaptionState = CaptionState.PENDING

    @classmethod
    def from_stored(
        cls,
        id: int,
        project_id: str,
        filename: str,
        path: str = "",
        caption: str | None = None,
    ) -> ReferenceImage:
        state = CaptionState.from_stored(caption)
        text = caption if state is not CaptionState.PENDING else None
        return cls(
            id=id,
            project_id=project_id,
            filename=filename,
            path=path,
            caption=text,
            caption_state=state,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "caption": self.caption,
            "caption_state": self.caption_state.value,
        }


@dataclass(frozen=True)
class StyleExemplar:
    filename: str
    caption: str

    def to_dict(self) -> dict[str, str]:
        return {"filename": self.filename, "caption": self.caption}


@dataclass(frozen=True)
class ComposedPrompt:
    """Output of the prompt composer for one generation request."""

    original_prompt: str
    enhanced_prompt: str
    generation_prompt: str
    exemplars: list[StyleExemplar] = field(default_factory=list)


@dataclass(frozen=True)
class GenerationResult:
    original_prompt: str
    enhanced_prompt: str
    style_references: list[StyleExemplar]
    image_url: str | None
    model_version: str


@dataclass(frozen=True)
class TrainingSubmission:
    project_id: str
    training_id: str
    destination: str
    image_count: int
    status: TrainingStatus = TrainingStatus.TRAINING


@dataclass(frozen=True)
class TrainingPollResult:
    status: TrainingStatus
    version: str | None = None
    logs: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        data: dict = {"status": self.status.value}
        if self.version is not None:
            data["version"] = self.version
        if self.logs is not None:
            data["logs"] = self.logs
        if self.error is not None:
            data["error"] = self.error
        return data
