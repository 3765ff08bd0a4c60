"""
Purpose:
- Named prompt templates for the two AI calls.
- Rendering turns a validated input model into text plus the photo to attach.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Type

from pydantic import BaseModel

from ..vlm.capability import RenderedPrompt
from .schemas import (
    AnalyzePhotoInput,
    AnalyzePhotoOutput,
    GeneratePoemInput,
    GeneratePoemOutput,
)


@dataclass(frozen=True)
class PromptDefinition:
    name: str
    template: str                      # str.format() over the input model's fields
    input_model: Type[BaseModel]
    output_model: Type[BaseModel]
    image_field: Optional[str] = None  # input field sent as an attached image, not inline text

    def render(self, data: BaseModel) -> RenderedPrompt:
        values = data.model_dump()
        images = []
        if self.image_field:
            images.append(values[self.image_field])
        return RenderedPrompt(name=self.name, text=self.template.format(**values).strip(), images=images)


ANALYZE_PHOTO_PROMPT = PromptDefinition(
    name="analyzePhotoPrompt",
    input_model=AnalyzePhotoInput,
    output_model=AnalyzePhotoOutput,
    image_field="photo_url",
    template="""
You are an AI expert in understanding photos.

Analyze the attached photo and identify the key objects, scenes, and emotions present in the photo.

Provide a detailed description of the photo, including the identified objects, scenes, and emotions.
""",
)

POEM_PROMPT = PromptDefinition(
    name="poemPrompt",
    input_model=GeneratePoemInput,
    output_model=GeneratePoemOutput,
    image_field="photo_url",
    template="""
You are a poet laureate. Given the following analysis of the attached photo, write a short poem that captures the essence and emotions of the image.

Photo Analysis: {photo_analysis}

Write a poem that evokes the emotions of the photo analysis. The poem should not exceed 20 lines.
""",
)
