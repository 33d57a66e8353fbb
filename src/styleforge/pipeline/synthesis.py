"""Single-image synthesis through the hosted image service."""

from __future__ import annotations

import logging

from styleforge.clients.image_service import ImageServiceClient
from styleforge.core.config import StyleforgeConfig

logger = logging.getLogger(__name__)


class ImageSynthesizer:
    def __init__(self, service: ImageServiceClient, config: StyleforgeConfig) -> None:
        self._service = service
        self._aspect_ratio = config.aspect_ratio
        self._output_format = config.output_format
        self._output_quality = config.output_quality

    async def synthesize(self, prompt: str, model_version: str) -> str | None:
        """Generate one square image and return its URL.

        Returns:
            The first output URL, or ``None`` when the service produced no
            output.  HTTP errors are raised to the caller.
        """
        prediction = await self._service.create_prediction(
            model_version,
            {
                "prompt": prompt,
                "num_outputs": 1,
                "aspect_ratio": self._aspect_ratio,
                "output_format": self._output_format,
                "output_quality": self._output_quality,
            },
        )

        output = prediction.get("output")
        # Some models return a bare URL instead of a list.
        if isinstance(output, str):
            return output or None
        if isinstance(output, list) and output and isinstance(output[0], str):
            return output[0]

        logger.warning(
            "Prediction %s returned no output (status=%s)",
            prediction.get("id"),
            prediction.get("status"),
        )
        return None
