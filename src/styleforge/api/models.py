"""Pydantic request models for the StyleForge API.

FastAPI uses these for request validation and OpenAPI documentation.
Responses are plain dictionaries that always carry a ``success`` flag.

Models
------
GenerateRequest
    Payload for ``POST /api/generate``.
CreateProjectRequest
    Payload for ``POST /api/projects``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/generate`` endpoint.

    Attributes:
        prompt: Free-text description of the image to create.
        project_id: Optional project whose reference images and trained
            model condition the generation.
    """

    prompt: str = Field(
        ...,
        min_length=1,
        description="Free-text description of the image to generate.",
    )
    project_id: str | None = Field(
        default=None,
        description="Project used for style retrieval and model selection.",
    )


class CreateProjectRequest(BaseModel):
    """Request body for the ``POST /api/projects`` endpoint."""

    name: str = Field(..., min_length=1, description="Display name of the project.")
    description: str = Field(default="", description="Optional project description.")
