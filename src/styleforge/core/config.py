"""Configuration management for StyleForge.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the STYLEFORGE_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (STYLEFORGE_* prefix)
2. .env file in the project root
3. Default values defined in StyleforgeConfig

Example .env file:
    STYLEFORGE_DATABRICKS_HOST=https://adb-1234.azuredatabricks.net
    STYLEFORGE_DATABRICKS_TOKEN=dapi...
    STYLEFORGE_REPLICATE_API_TOKEN=r8_...
    STYLEFORGE_REPLICATE_MODEL_OWNER=my-team

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time and
is used by the API entry point.  Pipeline components never read it directly:
each one receives a configuration object at construction, so tests can build
their own ``StyleforgeConfig(...)`` with fake endpoints.

Usage Example
-------------
    from styleforge.core.config import config

    print(config.trigger_word)
    print(config.default_model_version)

External Services
-----------------
- Databricks: SQL statement execution (metadata), Files API (reference image
  volume), model serving (language models) and Vector Search (style index).
- Replicate: image predictions, file uploads, and LoRA training jobs.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StyleforgeConfig(BaseSettings):
    """Main configuration for StyleForge.

    Attributes
    ----------
    Metadata / Blob Settings:
        databricks_host : str
            Base URL of the Databricks workspace
        databricks_token : str
            Bearer token for every Databricks API
        warehouse_id : str
            SQL warehouse that executes metadata statements
        projects_table, images_table : str
            Fully-qualified table names
        volume_root : str
            Volume path under which ``<project_id>/<filename>`` images live

    Language Model Settings:
        enhancer_endpoint, captioner_endpoint : str
            Model-serving endpoint names
        enhancer_max_tokens, captioner_max_tokens : int

    Retrieval Settings:
        vector_index : str
        style_reference_count : int
            Number of style exemplars (k) fetched per generation

    Image Service Settings:
        replicate_api_base, replicate_api_token : str
        default_model_version : str
            Baseline model version used when a project has no trained model
        output_format, output_quality, aspect_ratio

    Training Settings:
        trainer_owner, trainer_name, trainer_version : str
        replicate_model_owner, replicate_model_name : str
        trigger_word : str
        training_steps, lora_rank, learning_rate, autocaption

    Server Settings:
        server_host, server_port, log_level, http_timeout
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STYLEFORGE_",
        case_sensitive=False,
    )

    # Databricks workspace
    databricks_host: str = Field(
        default="http://localhost:8080",
        description="Base URL of the Databricks workspace",
    )
    databricks_token: str = Field(default="", description="Databricks bearer token")
    warehouse_id: str = Field(
        default="7cb6d88dbcea8491",
        description="SQL warehouse used for metadata statements",
    )
    statement_wait_timeout: str = Field(
        default="30s",
        description="Server-side wait timeout for each SQL statement",
    )
    projects_table: str = Field(default="styleforge.data.projects")
    images_table: str = Field(default="styleforge.data.illustration_metadata")
    volume_root: str = Field(
        default="/Volumes/styleforge/data/illustrations",
        description="Volume directory holding uploaded reference images",
    )

    # Language models
    enhancer_endpoint: str = Field(
        default="databricks-meta-llama-3-3-70b-instruct",
        description="Serving endpoint used to enhance user prompts",
    )
    enhancer_max_tokens: int = Field(default=200, ge=1)
    captioner_endpoint: str = Field(
        default="databricks-llama-4-maverick",
        description="Vision-capable serving endpoint used to caption images",
    )
    captioner_max_tokens: int = Field(default=300, ge=1)

    # Vector search
    vector_index: str = Field(default="styleforge.data.illustration_index")
    style_reference_count: int = Field(
        default=3,
        description="Number of style exemplars retrieved per prompt",
        ge=1,
        le=20,
    )

    # Replicate
    replicate_api_base: str = Field(default="https://api.replicate.com/v1")
    replicate_api_token: str = Field(default="", description="Replicate API token")
    default_model_version: str = Field(
        default="6cf56a65fbcb6780fbf892befe53af18edb2c9ad0213e8eaaf4b78ebd7cc25f8",
        description="Baseline model version when a project has no trained model",
    )
    output_format: Literal["webp", "jpg", "png"] = Field(default="webp")
    output_quality: int = Field(default=90, ge=1, le=100)
    aspect_ratio: str = Field(default="1:1")

    # Training
    trainer_owner: str = Field(default="ostris")
    trainer_name: str = Field(default="flux-dev-lora-trainer")
    trainer_version: str = Field(
        default="d995297071a44dcb72244e6c19462111649ec86a9646c32df56daa7f14801944",
    )
    replicate_model_owner: str = Field(
        default="styleforge",
        description="Replicate account that owns trained destination models",
    )
    replicate_model_name: str = Field(default="styleforge-custom")
    trigger_word: str = Field(
        default="STYLFRG",
        description="Token that activates the trained style in prompts",
    )
    training_steps: int = Field(default=1000, ge=1)
    lora_rank: int = Field(default=16, ge=1)
    learning_rate: float = Field(default=0.0004, gt=0)
    autocaption: bool = Field(default=False)
    training_log_tail: int = Field(
        default=5,
        description="Number of trailing log lines returned while training",
        ge=0,
    )

    # HTTP / server
    http_timeout: float = Field(
        default=120.0,
        description="Timeout in seconds for outbound HTTP calls",
        gt=0,
    )
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8000, ge=1024, le=65535)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @property
    def destination_model(self) -> str:
        """Replicate namespace (``owner/name``) that receives trained versions."""
        return f"{self.replicate_model_owner}/{self.replicate_model_name}"


# Global configuration instance, loaded from STYLEFORGE_* variables and .env.
config = StyleforgeConfig()
