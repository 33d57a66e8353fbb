"""Wiring of external clients and pipeline components.

:func:`build_services` is the single place where components receive their
configuration and the shared HTTP client.  The API lifespan calls it once
at startup; tests call it with a ``MockTransport``-backed client.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from styleforge.clients.blob_store import BlobStore
from styleforge.clients.image_service import ImageServiceClient
from styleforge.clients.language_model import LanguageModelClient
from styleforge.clients.metadata_store import MetadataStore
from styleforge.clients.vector_index import VectorIndexClient
from styleforge.core.config import StyleforgeConfig
from styleforge.pipeline.captioning import CaptionBatchJob
from styleforge.pipeline.dataset import DatasetPackager
from styleforge.pipeline.generation import GenerationService
from styleforge.pipeline.model_resolver import ModelVersionResolver
from styleforge.pipeline.projects import ProjectService
from styleforge.pipeline.prompt_composer import PromptComposer
from styleforge.pipeline.retrieval import StyleRetriever
from styleforge.pipeline.synthesis import ImageSynthesizer
from styleforge.pipeline.training import TrainingController


@dataclass
class Services:
    projects: ProjectService
    generation: GenerationService
    captioning: CaptionBatchJob
    training: TrainingController


def build_services(config: StyleforgeConfig, http: httpx.AsyncClient) -> Services:
    store = MetadataStore(config, http)
    blobs = BlobStore(config, http)
    llm = LanguageModelClient(config, http)
    index = VectorIndexClient(config, http)
    images = ImageServiceClient(config, http)

    composer = PromptComposer(llm, StyleRetriever(index, config.style_reference_count), config)
    generation = GenerationService(
        composer,
        ModelVersionResolver(store, config.default_model_version),
        ImageSynthesizer(images, config),
    )

    return Services(
        projects=ProjectService(store, blobs),
        generation=generation,
        captioning=CaptionBatchJob(store, blobs, llm, index, config),
        training=TrainingController(
            store,
            DatasetPackager(blobs, config.trigger_word),
            images,
            config,
        ),
    )
