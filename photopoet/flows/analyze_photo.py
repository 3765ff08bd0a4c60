"""
Analyzes a photo to identify key elements like objects, scenes, and emotions.

- analyze_photo - validates the reference, runs the analysis prompt, validates the answer.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Optional

from ..core.errors import AnalysisError, InvalidInput, ValidationError
from ..core.settings import settings
from ..vlm.capability import AICapability, get_capability
from .prompts import ANALYZE_PHOTO_PROMPT
from .schemas import AnalyzePhotoInput, AnalyzePhotoOutput, parse_or_fail

logger = logging.getLogger(__name__)


async def analyze_photo(
    photo_url: str,
    capability: Optional[AICapability] = None,
    timeout: Optional[float] = None,
) -> AnalyzePhotoOutput:
    """
    :param photo_url: photo reference (data URI or http(s) URL)
    :param capability: backend to call; defaults to the configured one
    :param timeout: seconds before the call is abandoned; defaults to settings.ai_timeout_seconds
    :raises InvalidInput: reference is empty or not an image reference (no AI call is made)
    :raises AnalysisError: backend failed or timed out
    :raises ValidationError: backend answered with data that does not fit AnalyzePhotoOutput
    """
    data = parse_or_fail(AnalyzePhotoInput, {"photo_url": photo_url}, error_cls=InvalidInput)
    prompt = ANALYZE_PHOTO_PROMPT.render(data)
    if timeout is None:
        timeout = settings.ai_timeout_seconds

    try:
        capability = capability or get_capability()
        raw = await asyncio.wait_for(capability.generate(prompt, AnalyzePhotoOutput), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("%s timed out after %.1fs", prompt.name, timeout)
        raise AnalysisError(f"Photo analysis timed out after {timeout:g}s") from e
    except Exception as e:
        logger.warning("%s failed: %r", prompt.name, e)
        raise AnalysisError(f"Photo analysis failed: {e}") from e

    try:
        return parse_or_fail(AnalyzePhotoOutput, raw)
    except ValidationError as e:
        logger.warning("%s returned malformed data: %s", prompt.name, e)
        raise
