"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Optional

import pytest
from PIL import Image

from photopoet.vlm.capability import set_capability


# 1x1 transparent PNG
PHOTO = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)
PHOTO_2 = "https://example.com/cat.jpg"

CAT_ANALYSIS = {
    "objects": ["cat"],
    "scenes": ["indoor"],
    "emotions": ["calm"],
    "description": "A cat resting.",
}

CAT_POEM = {"poem": "Soft paws folded,\nthe afternoon sleeps\nwhere the cat sleeps."}


@dataclass
class Gated:
    """A scripted answer that is held back until `event` is set."""

    payload: Any
    event: Optional[asyncio.Event] = None


class FakeCapability:
    """
    Scripted AI capability. Each call pops the next response:
    dict/str -> returned, Exception -> raised, Gated -> waits for its event first.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def generate(self, prompt, output_model):
        self.calls.append((prompt, output_model))
        if not self.responses:
            raise AssertionError("FakeCapability ran out of scripted responses")
        item = self.responses.pop(0)
        if isinstance(item, Gated):
            if item.event is not None:
                await item.event.wait()
            item = item.payload
        if isinstance(item, BaseException):
            raise item
        return item


def png_bytes(size=(8, 8), mode="RGB", fmt="PNG") -> bytes:
    buf = BytesIO()
    color = (200, 120, 40, 255)[: len(mode)] if mode in ("RGB", "RGBA") else 128
    Image.new(mode, size, color=color).save(buf, format=fmt)
    return buf.getvalue()


def run(coro):
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def _reset_capability():
    """Never let a test leak a cached backend into the next one."""
    set_capability(None)
    yield
    set_capability(None)
