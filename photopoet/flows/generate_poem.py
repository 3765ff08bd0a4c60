"""
Generates a poem from a photo and its analysis.

- generate_poem - validates inputs, runs the poem prompt, validates the answer.
- serialize_analysis - the one place an analysis becomes prompt text.
"""

from __future__ import annotations
import asyncio
import json
import logging
from typing import Optional

from ..core.errors import GenerationError, InvalidInput, ValidationError
from ..core.settings import settings
from ..vlm.capability import AICapability, get_capability
from .prompts import POEM_PROMPT
from .schemas import AnalyzePhotoOutput, GeneratePoemInput, GeneratePoemOutput, parse_or_fail

logger = logging.getLogger(__name__)


def serialize_analysis(analysis: AnalyzePhotoOutput) -> str:
    return json.dumps(analysis.model_dump(), indent=2, ensure_ascii=False)


async def generate_poem(
    photo_url: str,
    photo_analysis: str,
    capability: Optional[AICapability] = None,
    timeout: Optional[float] = None,
) -> GeneratePoemOutput:
    """
    `photo_analysis` is opaque text (normally serialize_analysis() output); it is not re-parsed.

    :raises InvalidInput: either input is empty (no AI call is made)
    :raises GenerationError: backend failed or timed out
    :raises ValidationError: backend answer has no usable poem
    """
    data = parse_or_fail(
        GeneratePoemInput,
        {"photo_url": photo_url, "photo_analysis": photo_analysis},
        error_cls=InvalidInput,
    )
    prompt = POEM_PROMPT.render(data)
    if timeout is None:
        timeout = settings.ai_timeout_seconds

    try:
        capability = capability or get_capability()
        raw = await asyncio.wait_for(capability.generate(prompt, GeneratePoemOutput), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("%s timed out after %.1fs", prompt.name, timeout)
        raise GenerationError(f"Poem generation timed out after {timeout:g}s") from e
    except Exception as e:
        logger.warning("%s failed: %r", prompt.name, e)
        raise GenerationError(f"Poem generation failed: {e}") from e

    try:
        return parse_or_fail(GeneratePoemOutput, raw)
    except ValidationError as e:
        logger.warning("%s returned malformed data: %s", prompt.name, e)
        raise
