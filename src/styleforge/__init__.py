"""StyleForge - style-conditioned image generation and custom model training."""

__version__ = "0.1.0"

from styleforge.core.config import StyleforgeConfig, config

__all__ = [
    "StyleforgeConfig",
    "config",
]
