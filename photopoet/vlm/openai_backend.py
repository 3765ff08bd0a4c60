"""
Purpose:
- AI capability backed by an OpenAI-compatible chat completions API (vision capable).
- Photo references go out as image_url parts (data URIs and http(s) URLs both work).
- Requests JSON mode and appends the output schema to the prompt.
"""

from __future__ import annotations
import logging
from typing import Any, List, Optional, Type

from pydantic import BaseModel

from ..core.errors import CapabilityError
from .capability import RawOutput, RenderedPrompt, parse_json_safely, schema_instructions

logger = logging.getLogger(__name__)

SYSTEM_HINT = "You answer with strictly valid JSON that matches the schema you are given."


class OpenAICapability:
    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
        client: Any = None,
    ):
        """
        :param client: optional pre-built AsyncOpenAI-like client (dependency injection/testing)
        """
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client

    @classmethod
    def from_settings(cls, s) -> "OpenAICapability":
        return cls(
            model=s.openai_model,
            api_key=s.openai_api_key,
            base_url=s.openai_base_url,
            temperature=s.openai_temperature,
            max_tokens=s.openai_max_tokens,
        )

    def _get_client(self):
        if self._client is not None:
            return self._client
        if not self.api_key:
            raise CapabilityError("OPENAI_API_KEY not set.")
        # runtime import keeps the module importable for other backends
        from openai import AsyncOpenAI
        self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    def build_messages(self, prompt: RenderedPrompt, output_model: Type[BaseModel]) -> List[dict]:
        content: List[dict] = [
            {"type": "text", "text": f"{prompt.text}\n\n{schema_instructions(output_model)}"}
        ]
        for ref in prompt.images:
            content.append({"type": "image_url", "image_url": {"url": ref}})
        return [
            {"role": "system", "content": SYSTEM_HINT},
            {"role": "user", "content": content},
        ]

    async def generate(self, prompt: RenderedPrompt, output_model: Type[BaseModel]) -> RawOutput:
        client = self._get_client()
        try:
            resp = await client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(prompt, output_model),
                response_format={"type": "json_object"},
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            raise CapabilityError(f"{prompt.name}: chat completion failed: {e!r}") from e

        text = (resp.choices[0].message.content or "").strip() if resp.choices else ""
        if not text:
            raise CapabilityError(f"{prompt.name}: empty response from {self.model}")
        data = parse_json_safely(text)
        if data is None:
            logger.debug("%s: non-JSON reply: %.200s", prompt.name, text)
            # hand the raw text to the validator so it reports the failure
            return text
        return data
