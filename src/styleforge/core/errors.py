"""Exception hierarchy for StyleForge.

Every error that should reach an API caller derives from
:class:`StyleforgeError`.  Each class carries the HTTP status code the API
layer responds with and a human-readable message; no structured error codes
are defined beyond that.
"""

from __future__ import annotations


class StyleforgeError(Exception):
    """Base class for request-fatal errors surfaced to API callers."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ProjectNotFoundError(StyleforgeError):
    status_code = 404

    def __init__(self, project_id: str) -> None:
        super().__init__("Project not found")
        self.project_id = project_id


class TrainingInProgressError(StyleforgeError):
    """Raised when a project already has a training job running."""

    status_code = 409

    def __init__(self, project_id: str) -> None:
        super().__init__("Training is already in progress for this project.")
        self.project_id = project_id


class NoCaptionedImagesError(StyleforgeError):
    """Raised when a project has no captioned images to train on."""

    status_code = 400

    def __init__(self, project_id: str) -> None:
        super().__init__("No captioned images found. Upload and caption images first.")
        self.project_id = project_id


class ExternalServiceError(StyleforgeError):
    """An external service rejected a request or answered with a malformed payload."""

    status_code = 502


class OperationFailedError(StyleforgeError):
    """Generic failure reported by an API entry point's catch-all boundary."""

    status_code = 500
