"""StyleForge — FastAPI Application.

This module is the single entry point for the web service.  It defines the
FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
The application is stateless between requests:

- **Configuration** comes from :data:`~styleforge.core.config.config`
  (``STYLEFORGE_*`` environment variables).
- **External services** (metadata store, image volume, language models,
  vector index, image service) are reached through one shared
  ``httpx.AsyncClient`` created in the lifespan handler.
- **Pipeline components** are built once by
  :func:`~styleforge.services.build_services` and injected into routes
  with the :func:`get_services` dependency.

Error Handling
--------------
Every route runs inside :func:`failure_boundary`.  Domain errors with a
client status (unknown project, training already running, nothing captioned)
pass through with their own message; request validation failures answer
422 with the first invalid field; anything else is logged with its
traceback and replaced by a generic message for that route.  All failures
are rendered as ``{"success": false, "error": "..."}``.

Endpoints
---------
========  ======================================  ==========================
Method    Path                                    Purpose
========  ======================================  ==========================
GET       ``/api/config``                         Non-secret settings
GET       ``/api/projects``                       List projects
POST      ``/api/projects``                       Create a project
GET       ``/api/projects/{id}``                  Project detail and images
POST      ``/api/projects/{id}/upload``           Upload reference images
POST      ``/api/projects/{id}/caption``          Caption pending images
POST      ``/api/projects/{id}/train``            Start a training job
GET       ``/api/projects/{id}/training-status``  Poll the training job
POST      ``/api/generate``                       Style-conditioned image
========  ======================================  ==========================

Usage
-----
CLI (installed entry point)::

    styleforge

Direct invocation::

    python -m styleforge.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from styleforge import __version__
from styleforge.api.models import CreateProjectRequest, GenerateRequest
from styleforge.core.config import config
from styleforge.core.errors import OperationFailedError, StyleforgeError
from styleforge.services import Services, build_services

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Application lifecycle: shared HTTP client and pipeline wiring.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the shared HTTP client and pipeline services, close on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    async with httpx.AsyncClient(timeout=config.http_timeout) as http:
        app.state.services = build_services(config, http)
        logger.info("StyleForge services initialised.")
        yield
    logger.info("StyleForge HTTP client closed.")


app = FastAPI(
    title="StyleForge",
    description="Style-conditioned image generation and custom model training.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StyleforgeError)
async def styleforge_error_handler(request: Request, exc: StyleforgeError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


def validation_message(exc: RequestValidationError) -> str:
    """Summarise the first validation error as ``"<field>: <problem>"``."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    problem = first.get("msg", "invalid value")
    return f"{location}: {problem}" if location else problem


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"success": False, "error": validation_message(exc)},
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


@asynccontextmanager
async def failure_boundary(message: str) -> AsyncIterator[None]:
    """Convert unexpected failures of one route into a generic error.

    Args:
        message: Human-readable message returned to the caller.

    Raises:
        StyleforgeError: Client errors unchanged, everything else as
            :class:`OperationFailedError` carrying *message*.
    """
    try:
        yield
    except StyleforgeError as exc:
        if exc.status_code < 500:
            raise
        logger.exception(message)
        raise OperationFailedError(message) from exc
    except Exception as exc:
        logger.exception(message)
        raise OperationFailedError(message) from exc


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/api/config")
async def get_config() -> dict:
    """Return the non-secret settings the frontend displays."""
    return {
        "success": True,
        "version": __version__,
        "trigger_word": config.trigger_word,
        "default_model_version": config.default_model_version,
        "style_reference_count": config.style_reference_count,
    }


@app.get("/api/projects")
async def list_projects(services: Services = Depends(get_services)) -> dict:
    async with failure_boundary("Failed to load projects"):
        projects = await services.projects.list_projects()
    return {"success": True, "projects": [p.to_dict() for p in projects]}


@app.post("/api/projects")
async def create_project(
    req: CreateProjectRequest,
    services: Services = Depends(get_services),
) -> dict:
    async with failure_boundary("Failed to create project"):
        project_id = await services.projects.create_project(req.name, req.description)
    return {"success": True, "project_id": project_id}


@app.get("/api/projects/{project_id}")
async def get_project(project_id: str, services: Services = Depends(get_services)) -> dict:
    """Return a project with all of its reference images ordered by id.

    Raises:
        ProjectNotFoundError: 404 if the project does not exist.
    """
    async with failure_boundary("Failed to load project"):
        project, images = await services.projects.get_project(project_id)
    return {
        "success": True,
        "project": project.to_dict(),
        "images": [image.to_dict() for image in images],
    }


@app.post("/api/projects/{project_id}/upload")
async def upload_images(
    project_id: str,
    files: list[UploadFile] = File(...),
    services: Services = Depends(get_services),
) -> dict:
    """Store uploaded reference images with a pending caption.

    Captioning is not started here; clients call the caption endpoint once
    the upload returns.
    """
    async with failure_boundary("Upload failed"):
        payload = [(f.filename or "upload", await f.read()) for f in files]
        uploaded = await services.projects.upload_images(project_id, payload)
    return {"success": True, "uploaded": uploaded}


@app.post("/api/projects/{project_id}/caption")
async def caption_images(project_id: str, services: Services = Depends(get_services)) -> dict:
    """Caption every pending image of a project and resync the style index.

    Returns:
        Dictionary with ``success`` and ``captioned`` (images captioned by
        the model; fallback captions are not counted).
    """
    async with failure_boundary("Captioning failed"):
        captioned = await services.captioning.run(project_id)
    return {"success": True, "captioned": captioned}


@app.post("/api/projects/{project_id}/train")
async def start_training(project_id: str, services: Services = Depends(get_services)) -> dict:
    """Package captioned images and submit a custom model training job.

    Raises:
        TrainingInProgressError: 409 if a job is already running.
        NoCaptionedImagesError: 400 if no image has been captioned.
    """
    async with failure_boundary("Failed to start training"):
        submission = await services.training.submit(project_id)
    return {
        "success": True,
        "training_id": submission.training_id,
        "status": submission.status.value,
        "image_count": submission.image_count,
    }


@app.get("/api/projects/{project_id}/training-status")
async def training_status(project_id: str, services: Services = Depends(get_services)) -> dict:
    """Advance and report the project's training state.

    Clients call this repeatedly (e.g. every 10 seconds) until the status is
    ``completed`` or ``failed``.
    """
    async with failure_boundary("Failed to check training status"):
        result = await services.training.poll(project_id)
    return {"success": True, **result.to_dict()}


@app.post("/api/generate")
async def generate_image(req: GenerateRequest, services: Services = Depends(get_services)) -> dict:
    """Generate one image conditioned on a project's style.

    Returns:
        Dictionary with ``success``, ``originalPrompt``, ``enhancedPrompt``,
        ``styleReferences`` and ``imageUrl`` (``None`` when the image
        service produced no output).
    """
    async with failure_boundary("Generation failed"):
        result = await services.generation.generate(req.prompt, req.project_id)
    return {
        "success": True,
        "originalPrompt": result.original_prompt,
        "enhancedPrompt": result.enhanced_prompt,
        "styleReferences": [ref.to_dict() for ref in result.style_references],
        "imageUrl": result.image_url,
        "modelVersion": result.model_version,
    }


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Configure logging and launch the uvicorn ASGI server.

    Host, port and log level come from ``STYLEFORGE_SERVER_HOST``,
    ``STYLEFORGE_SERVER_PORT`` and ``STYLEFORGE_LOG_LEVEL``.  Registered as
    the ``styleforge`` console script in ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "styleforge.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
