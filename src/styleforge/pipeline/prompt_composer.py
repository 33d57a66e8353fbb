"""Retrieval-augmented prompt composition for style-conditioned generation.

A generation prompt is built from three parts: the project's trigger token,
an *enhanced* version of the user's prompt, and the captions of the most
similar reference images.  A fixed instruction closes the prompt so the image
model leans on the references' palette and technique.

Prompt Structure
----------------
::

    [Trigger Token] [Enhanced Prompt]. Artistic style reference: [Caption 1] [Caption 2] ...
    . Match this illustrative style closely: use similar ...

When the index returns no exemplars the caption segment is simply empty; the
trigger token and the closing instruction are always present.

Enhancement
-----------
The raw prompt is first sent to a language model acting as an art director,
which adds composition, lighting, palette, texture and mood detail.  This
step is best-effort: if the model call fails or returns nothing, the raw
prompt is used verbatim.  Retrieval is *not* best-effort: an index failure
propagates to the caller.

Usage
-----
::

    composer = PromptComposer(llm, retriever, config)
    composed = await composer.compose("a dog running", project_id="proj-1")
    composed.generation_prompt
"""

from __future__ import annotations

import logging

import httpx

from styleforge.clients.language_model import LanguageModelClient
from styleforge.core.config import StyleforgeConfig
from styleforge.core.models import ComposedPrompt, StyleExemplar
from styleforge.pipeline.retrieval import StyleRetriever

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Fixed prompt sections.
# ---------------------------------------------------------------------------

ENHANCER_SYSTEM_PROMPT = (
    "You are an art director helping a creative team. Take the user's prompt and "
    "enhance it with specific artistic details: composition, lighting, color palette, "
    "texture, and mood. Keep it under 100 words. Return ONLY the enhanced prompt, "
    "nothing else."
)

STYLE_INSTRUCTION = (
    "Match this illustrative style closely: use similar color palettes, brushwork, "
    "textures, and compositional approach."
)


def build_generation_prompt(
    trigger_word: str,
    enhanced_prompt: str,
    exemplars: list[StyleExemplar],
) -> str:
    """Fuse the enhanced prompt with the exemplar captions.

    Args:
        trigger_word: Style trigger token placed first in the prompt.
        enhanced_prompt: The (possibly unenhanced) scene description.
        exemplars: Retrieved style exemplars, most relevant first.  May be
            empty, in which case the caption segment is empty.

    Returns:
        The single prompt string submitted to the image service.
    """
    style_descriptions = " ".join(exemplar.caption for exemplar in exemplars)
    return (
        f"{trigger_word} {enhanced_prompt.strip()}. "
        f"Artistic style reference: {style_descriptions}. "
        f"{STYLE_INSTRUCTION}"
    )


class PromptComposer:
    """Enhances a raw prompt and conditions it on retrieved style exemplars."""

    def __init__(
        self,
        llm: LanguageModelClient,
        retriever: StyleRetriever,
        config: StyleforgeConfig,
    ) -> None:
        self._llm = llm
        self._retriever = retriever
        self._endpoint = config.enhancer_endpoint
        self._max_tokens = config.enhancer_max_tokens
        self._trigger_word = config.trigger_word

    async def enhance(self, prompt: str) -> str:
        """Return an art-directed version of *prompt*, or *prompt* itself on failure."""
        messages = [
            {"role": "system", "content": ENHANCER_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        try:
            enhanced = await self._llm.chat(self._endpoint, messages, self._max_tokens)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Prompt enhancement failed, using raw prompt: %s", exc)
            return prompt

        if not enhanced:
            logger.warning("Prompt enhancement returned no content, using raw prompt")
            return prompt
        return enhanced

    async def compose(self, prompt: str, project_id: str | None = None) -> ComposedPrompt:
        enhanced = await self.enhance(prompt)
        exemplars = await self._retriever.retrieve(prompt, project_id)
        return ComposedPrompt(
            original_prompt=prompt,
            enhanced_prompt=enhanced,
            generation_prompt=build_generation_prompt(self._trigger_word, enhanced, exemplars),
            exemplars=exemplars,
        )
