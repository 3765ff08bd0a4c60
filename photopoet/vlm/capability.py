"""
Purpose:
- Small interface for the generative-AI capability: a rendered prompt in, structured data out.
- Swap backends (OpenAI-compatible API, local Qwen2.5-VL, offline stub) without touching the flows.

Notes:
- Backends return raw data (dict or JSON text); the flows own schema validation.
- get_capability() caches one instance per process, like the captioner singleton it grew out of.
"""

from __future__ import annotations
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Type, Union

from pydantic import BaseModel

from ..core.errors import CapabilityError, ConfigurationError
from ..core.settings import settings

logger = logging.getLogger(__name__)

_CAPABILITY_SINGLETON = None  # cached instance

RawOutput = Union[Dict[str, Any], str]


@dataclass(frozen=True)
class RenderedPrompt:
    name: str
    text: str
    images: List[str] = field(default_factory=list)   # photo references attached to the prompt


class AICapability(Protocol):
    """Protocol for a backend able to answer a rendered prompt with schema-shaped data."""

    async def generate(self, prompt: RenderedPrompt, output_model: Type[BaseModel]) -> RawOutput:
        ...


def schema_instructions(output_model: Type[BaseModel]) -> str:
    """
    Trailing instruction telling the model to answer with JSON for `output_model`.
    """
    schema = json.dumps(output_model.model_json_schema(), indent=2)
    return (
        "Respond with a single JSON object and nothing else. "
        f"It must conform to this JSON Schema:\n{schema}"
    )


def parse_json_safely(text: str) -> Optional[Dict[str, Any]]:
    """Try to parse JSON; tolerate ```json ... ``` fences and chatter around the object."""
    t = (text or "").strip()
    t = re.sub(r"^\s*```[a-zA-Z]*\s*", "", t)
    t = re.sub(r"\s*```\s*$", "", t)
    try:
        data = json.loads(t)
    except ValueError:
        # fall back to the outermost {...} span
        start, end = t.find("{"), t.rfind("}")
        if start < 0 or end <= start:
            return None
        try:
            data = json.loads(t[start:end + 1])
        except ValueError:
            return None
    return data if isinstance(data, dict) else None


class StubCapability:
    """
    Offline placeholder backend. Returns fixed, schema-conforming data so the UI can be
    exercised without an API key or model weights.
    """

    async def generate(self, prompt: RenderedPrompt, output_model: Type[BaseModel]) -> RawOutput:
        names = set(output_model.model_fields)
        if "poem" in names:
            return {
                "poem": (
                    "A quiet frame, a borrowed light,\n"
                    "no model wired to read it right;\n"
                    "still, here it waits, both near and far,\n"
                    "a photo kept just as you are."
                )
            }
        if {"objects", "scenes", "emotions", "description"} <= names:
            return {
                "objects": ["photo"],
                "scenes": ["unknown"],
                "emotions": ["neutral"],
                "description": "Photo received; analysis model not wired yet.",
            }
        raise CapabilityError(f"stub backend has no canned answer for {output_model.__name__}")


def build_capability(backend: str) -> AICapability:
    backend = (backend or "").strip().lower()
    if backend == "openai":
        from .openai_backend import OpenAICapability
        return OpenAICapability.from_settings(settings)
    if backend == "qwen":
        from .qwen_backend import QwenCapability
        return QwenCapability.from_settings(settings)
    if backend == "stub":
        return StubCapability()
    raise ConfigurationError(f"Unknown AI backend: {backend!r} (expected openai, qwen or stub)")


def get_capability() -> AICapability:
    """
    Return the cached capability for settings.ai_backend.
    """
    global _CAPABILITY_SINGLETON
    if _CAPABILITY_SINGLETON is None:
        _CAPABILITY_SINGLETON = build_capability(settings.ai_backend)
        logger.info("AI capability ready: %s", type(_CAPABILITY_SINGLETON).__name__)
    return _CAPABILITY_SINGLETON


def set_capability(capability: Optional[AICapability]) -> None:
    """Override (or reset with None) the cached capability."""
    global _CAPABILITY_SINGLETON
    _CAPABILITY_SINGLETON = capability
