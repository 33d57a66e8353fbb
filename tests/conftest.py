"""Shared pytest fixtures for StyleForge tests.

External services are replaced by :class:`FakeBackend`, an in-memory stand-in
for the Databricks SQL, Files, model-serving and Vector Search APIs and the
Replicate API.  It is mounted behind an ``httpx.MockTransport`` so the real
client classes run unchanged and every outbound request is recorded.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Generator
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from styleforge.api.main import app, get_services
from styleforge.core.config import StyleforgeConfig
from styleforge.core.models import PENDING_CAPTION
from styleforge.services import Services, build_services

DATABRICKS_HOST = "https://dbx.test"
REPLICATE_BASE = "https://replicate.test/v1"


def _sql_ok(rows: list[list[Any]]) -> dict:
    return {"status": {"state": "SUCCEEDED"}, "result": {"data_array": rows}}


class FakeBackend:
    """In-memory external services for one test.

    Attributes set by tests to steer behaviour:
        enhance_reply / enhance_status: Prompt-enhancer answer.
        caption_replies: Queue of ``(status_code, content)`` for the
            captioning model; defaults to a generic caption when empty.
        index_rows / index_status / sync_status: Vector search behaviour.
        prediction_output / prediction_status: Image service prediction.
        trainings: Training id -> payload returned by ``GET /trainings/{id}``.
        missing_blobs: Blob paths answered with 404.
        fail_statements: Substrings of SQL statements answered as FAILED.
        race_on_begin: Flip the project to ``training`` right before the
            compare-and-swap update runs.
    """

    def __init__(self, config: StyleforgeConfig) -> None:
        self.config = config
        self.projects: dict[str, dict[str, Any]] = {}
        self.images: dict[int, dict[str, Any]] = {}
        self.blobs: dict[str, bytes] = {}
        self._next_image_id = 1

        self.enhance_reply: str | None = "An enhanced, art-directed prompt"
        self.enhance_status = 200
        self.caption_replies: list[tuple[int, str | None]] = []
        self.index_rows: list[list[Any]] = []
        self.index_status = 200
        self.sync_status = 200
        self.prediction_output: Any = ["https://replicate.delivery/out.webp"]
        self.prediction_status = 200
        self.trainings: dict[str, dict[str, Any]] = {}
        self.missing_blobs: set[str] = set()
        self.fail_statements: list[str] = []
        self.race_on_begin = False

        self.requests: list[tuple[str, str]] = []
        self.statements: list[str] = []
        self.llm_calls: list[tuple[str, dict]] = []
        self.index_queries: list[dict] = []
        self.sync_calls = 0
        self.predictions: list[dict] = []
        self.uploaded_files: list[bytes] = []
        self.training_requests: list[dict] = []
        self.cancelled: list[str] = []

    # -- Seeding helpers -----------------------------------------------------

    def add_project(
        self,
        project_id: str,
        name: str = "Project",
        status: str | None = "none",
        reference: str | None = None,
        handle: str | None = None,
    ) -> None:
        self.projects[project_id] = {
            "project_id": project_id,
            "name": name,
            "description": "",
            "training_status": status,
            "trained_model_reference": reference,
            "trained_job_handle": handle,
            "trained_model_destination": None,
        }

    def add_image(
        self,
        project_id: str,
        filename: str,
        caption: str = PENDING_CAPTION,
        content: bytes | None = b"image-bytes",
    ) -> int:
        image_id = self._next_image_id
        self._next_image_id += 1
        path = f"{self.config.volume_root}/{project_id}/{filename}"
        self.images[image_id] = {
            "id": image_id,
            "project_id": project_id,
            "filename": filename,
            "path": path,
            "caption": caption,
        }
        if content is not None:
            self.blobs[path] = content
        return image_id

    def blob_path(self, project_id: str, filename: str) -> str:
        return f"{self.config.volume_root}/{project_id}/{filename}"

    def called(self, method: str, prefix: str) -> bool:
        return any(m == method and p.startswith(prefix) for m, p in self.requests)

    # -- Transport -----------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))

        if request.url.host == "dbx.test":
            if path == "/api/2.0/sql/statements":
                return self._sql(json.loads(request.content))
            if path.startswith("/api/2.0/fs/files"):
                return self._files(request, path[len("/api/2.0/fs/files") :])
            if path.startswith("/serving-endpoints/"):
                return self._llm(path.split("/")[2], json.loads(request.content))
            if path.endswith("/query"):
                self.index_queries.append(json.loads(request.content))
                return httpx.Response(self.index_status, json={"result": {"data_array": self.index_rows}})
            if path.endswith("/sync"):
                self.sync_calls += 1
                return httpx.Response(self.sync_status, json={})

        if request.url.host == "replicate.test":
            return self._replicate(request, path[len("/v1") :])

        return httpx.Response(404, json={"error": f"unrouted {request.method} {path}"})

    def _files(self, request: httpx.Request, path: str) -> httpx.Response:
        if request.method == "PUT":
            self.blobs[path] = request.content
            return httpx.Response(204)
        if path in self.missing_blobs or path not in self.blobs:
            return httpx.Response(404, json={"error_code": "NOT_FOUND"})
        return httpx.Response(200, content=self.blobs[path])

    def _llm(self, endpoint: str, payload: dict) -> httpx.Response:
        self.llm_calls.append((endpoint, payload))
        if endpoint == self.config.captioner_endpoint:
            status, content = self.caption_replies.pop(0) if self.caption_replies else (200, "A generated caption")
        else:
            status, content = self.enhance_status, self.enhance_reply
        if status != 200:
            return httpx.Response(status, json={"error": "model error"})
        return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

    def _replicate(self, request: httpx.Request, path: str) -> httpx.Response:
        if path == "/predictions":
            self.predictions.append(json.loads(request.content))
            if self.prediction_status != 200:
                return httpx.Response(self.prediction_status, json={"detail": "error"})
            return httpx.Response(
                200,
                json={"id": "pred-1", "status": "succeeded", "output": self.prediction_output},
            )
        if path == "/files":
            self.uploaded_files.append(request.content)
            return httpx.Response(201, json={"urls": {"get": "https://replicate.test/v1/files/f-1"}})
        if path.endswith("/trainings"):
            self.training_requests.append(json.loads(request.content))
            training_id = f"train-{len(self.training_requests)}"
            return httpx.Response(201, json={"id": training_id, "status": "starting"})
        if path.startswith("/trainings/") and path.endswith("/cancel"):
            self.cancelled.append(path.split("/")[2])
            return httpx.Response(200, json={})
        if path.startswith("/trainings/"):
            training_id = path.split("/")[2]
            return httpx.Response(200, json=self.trainings.get(training_id, {"status": "processing"}))
        return httpx.Response(404, json={"detail": "not found"})

    # -- SQL -----------------------------------------------------------------

    def _sql(self, payload: dict) -> httpx.Response:
        statement = " ".join(payload["statement"].split())
        params = {p["name"]: p.get("value") for p in payload.get("parameters", [])}
        self.statements.append(statement)

        for fragment in self.fail_statements:
            if fragment in statement:
                return httpx.Response(
                    200,
                    json={"status": {"state": "FAILED", "error": {"message": "warehouse error"}}},
                )
        return httpx.Response(200, json=_sql_ok(self._run(statement, params)))

    def _images_for(self, project_id: str) -> list[dict]:
        return sorted(
            (img for img in self.images.values() if img["project_id"] == project_id),
            key=lambda img: img["id"],
        )

    def _run(self, statement: str, params: dict[str, Any]) -> list[list[Any]]:
        projects_table = self.config.projects_table
        images_table = self.config.images_table

        if statement.startswith("SELECT p.project_id"):
            rows = []
            for p in sorted(self.projects.values(), key=lambda p: p["name"]):
                count = len(self._images_for(p["project_id"]))
                rows.append(
                    [
                        p["project_id"],
                        p["name"],
                        p["description"],
                        str(count),
                        p["training_status"],
                        p["trained_model_reference"],
                    ]
                )
            return rows

        if statement.startswith(f"INSERT INTO {projects_table}"):
            self.add_project(params["project_id"], params["name"], params["status"])
            self.projects[params["project_id"]]["description"] = params["description"]
            return [["1", "1"]]

        if statement.startswith(f"INSERT INTO {images_table}"):
            image_id = int(params["id"])
            self.images[image_id] = {
                "id": image_id,
                "project_id": params["project_id"],
                "filename": params["filename"],
                "path": params["path"],
                "caption": params["caption"],
            }
            return [["1", "1"]]

        if statement.startswith("SELECT project_id, name"):
            p = self.projects.get(params["project_id"])
            if p is None:
                return []
            return [
                [
                    p["project_id"],
                    p["name"],
                    p["description"],
                    p["training_status"],
                    p["trained_model_reference"],
                    p["trained_job_handle"],
                    p["trained_model_destination"],
                ]
            ]

        if statement.startswith("SELECT trained_model_reference"):
            p = self.projects.get(params["project_id"])
            return [[p["trained_model_reference"]]] if p else []

        if statement.startswith("SELECT id, filename, path, caption"):
            images = self._images_for(params["project_id"])
            if "caption = :pending" in statement:
                images = [i for i in images if i["caption"] == params["pending"]]
            elif "caption != :pending" in statement:
                images = [i for i in images if i["caption"] != params["pending"]]
            return [[str(i["id"]), i["filename"], i["path"], i["caption"]] for i in images]

        if statement.startswith(f"UPDATE {images_table}"):
            image = self.images.get(int(params["id"]))
            if image is None:
                return [["0"]]
            image["caption"] = params["caption"]
            return [["1"]]

        if statement.startswith(f"UPDATE {projects_table}"):
            return [[str(self._update_project(statement, params))]]

        raise AssertionError(f"unexpected statement: {statement}")

    def _update_project(self, statement: str, params: dict[str, Any]) -> int:
        p = self.projects.get(params["project_id"])
        if p is None:
            return 0

        if "COALESCE" in statement:
            if self.race_on_begin:
                p["training_status"] = "training"
            if (p["training_status"] or "none") != params["expected"]:
                return 0
            p["training_status"] = params["training"]
            p["trained_job_handle"] = params["job"]
            p["trained_model_destination"] = params["destination"]
            return 1

        if p["trained_job_handle"] != params["job"] or p["training_status"] != params["training"]:
            return 0
        if ":completed" in statement:
            p["training_status"] = params["completed"]
            p["trained_model_reference"] = params["version"]
        else:
            p["training_status"] = params["failed"]
        return 1


# ---------------------------------------------------------------------------
# Fixtures.
# ---------------------------------------------------------------------------


@pytest.fixture
def test_config() -> StyleforgeConfig:
    """Create a configuration pointing every service at the fake hosts."""
    return StyleforgeConfig(
        databricks_host=DATABRICKS_HOST,
        databricks_token="dapi-test",
        replicate_api_base=REPLICATE_BASE,
        replicate_api_token="r8-test",
        replicate_model_owner="team",
        _env_file=None,
    )


@pytest.fixture
def backend(test_config: StyleforgeConfig) -> FakeBackend:
    return FakeBackend(test_config)


@pytest.fixture
def http(backend: FakeBackend) -> Generator[httpx.AsyncClient, None, None]:
    """HTTP client whose transport routes every request to the fake backend."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(backend.handle))
    yield client
    asyncio.run(client.aclose())


@pytest.fixture
def services(test_config: StyleforgeConfig, http: httpx.AsyncClient) -> Services:
    return build_services(test_config, http)


@pytest.fixture
def test_client(services: Services) -> Generator[TestClient, None, None]:
    """FastAPI test client with the pipeline services swapped for fakes.

    The lifespan handler is not run; routes receive *services* through the
    dependency override instead.
    """
    app.dependency_overrides[get_services] = lambda: services
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
