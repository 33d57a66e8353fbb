"""End-to-end style-conditioned generation.

``generate`` chains the three generation stages:

1. :class:`~styleforge.pipeline.prompt_composer.PromptComposer` enhances the
   prompt and fuses it with retrieved style captions.
2. :class:`~styleforge.pipeline.model_resolver.ModelVersionResolver` picks
   the project's trained model version or the baseline.
3. :class:`~styleforge.pipeline.synthesis.ImageSynthesizer` renders one image.

A missing image from the service is reported as a successful result with
``image_url=None``.  Any exception raised by a stage propagates; the API
layer turns it into a single generic failure with no partial result.
"""

from __future__ import annotations

import logging

from styleforge.core.models import GenerationResult
from styleforge.pipeline.model_resolver import ModelVersionResolver
from styleforge.pipeline.prompt_composer import PromptComposer
from styleforge.pipeline.synthesis import ImageSynthesizer

logger = logging.getLogger(__name__)


class GenerationService:
    def __init__(
        self,
        composer: PromptComposer,
        resolver: ModelVersionResolver,
        synthesizer: ImageSynthesizer,
    ) -> None:
        self._composer = composer
        self._resolver = resolver
        self._synthesizer = synthesizer

    async def generate(self, prompt: str, project_id: str | None = None) -> GenerationResult:
        composed = await self._composer.compose(prompt, project_id)
        version = await self._resolver.resolve(project_id)
        logger.info(
            "Generating for project %s with model version %s (%d style references)",
            project_id,
            version,
            len(composed.exemplars),
        )
        image_url = await self._synthesizer.synthesize(composed.generation_prompt, version)

        return GenerationResult(
            original_prompt=composed.original_prompt,
            enhanced_prompt=composed.enhanced_prompt,
            style_references=composed.exemplars,
            image_url=image_url,
            model_version=version,
        )
