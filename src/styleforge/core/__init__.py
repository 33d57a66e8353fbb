"""Core building blocks shared by the clients and the pipeline.

- **config.py**: Environment-based configuration using Pydantic Settings
  (``STYLEFORGE_`` prefix).
- **models.py**: Domain types, the caption tagged state and the training
  state machine.
- **errors.py**: Exception hierarchy surfaced to API callers.
"""

from styleforge.core.config import StyleforgeConfig, config
from styleforge.core.errors import StyleforgeError
from styleforge.core.models import CaptionState, TrainingStatus

__all__ = [
    "CaptionState",
    "StyleforgeConfig",
    "StyleforgeError",
    "TrainingStatus",
    "config",
]
