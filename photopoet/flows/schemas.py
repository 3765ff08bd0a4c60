"""
Purpose:
- Pydantic models for every AI call's input and output.
- One parse-or-fail entry point used identically for flow inputs and AI responses.

Notes:
- Field descriptions are part of the contract: backends forward model_json_schema() to the model.
"""

from __future__ import annotations
import re
from typing import Annotated, Any, List, Type, TypeVar

from pydantic import BaseModel, Field, StringConstraints, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..core.errors import ValidationError

M = TypeVar("M", bound=BaseModel)

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

# data:image/png;base64,... or a plain http(s) URL
_PHOTO_REF_RE = re.compile(r"^(data:image/[a-z0-9.+-]+;base64,|https?://)", re.IGNORECASE)


def is_photo_reference(value: str) -> bool:
    return bool(value) and bool(_PHOTO_REF_RE.match(value.strip()))


class AnalyzePhotoInput(BaseModel):
    photo_url: NonEmptyStr = Field(..., description="The URL of the photo to analyze.")

    @field_validator("photo_url")
    @classmethod
    def _must_reference_image(cls, v: str) -> str:
        if not is_photo_reference(v):
            raise ValueError("must be an image data URI or an http(s) URL")
        return v


class AnalyzePhotoOutput(BaseModel):
    objects: List[str] = Field(..., description="Key objects identified in the photo.")
    scenes: List[str] = Field(..., description="Key scenes identified in the photo.")
    emotions: List[str] = Field(..., description="Emotions detected in the photo.")
    description: str = Field(..., description="A detailed description of the photo.")


class GeneratePoemInput(BaseModel):
    photo_url: NonEmptyStr = Field(..., description="The URL of the photo.")
    photo_analysis: NonEmptyStr = Field(
        ...,
        description="The AI analysis of the photo, including key objects, scenes, and emotions.",
    )


class GeneratePoemOutput(BaseModel):
    poem: NonEmptyStr = Field(..., description="A poem inspired by the photo analysis.")


def _field_path(loc: tuple) -> str:
    return ".".join(str(p) for p in loc) or "__root__"


def parse_or_fail(
    model: Type[M],
    candidate: Any,
    error_cls: Type[Exception] = ValidationError,
) -> M:
    """
    Narrow `candidate` to `model` or raise `error_cls` naming every offending field.

    Accepts a model instance, a mapping, or JSON text/bytes.
    """
    if isinstance(candidate, model):
        return candidate
    try:
        if isinstance(candidate, (str, bytes, bytearray)):
            return model.model_validate_json(candidate)
        if isinstance(candidate, BaseModel):
            candidate = candidate.model_dump()
        return model.model_validate(candidate)
    except PydanticValidationError as e:
        fields = [_field_path(err.get("loc", ())) for err in e.errors()]
        details = "; ".join(
            f"{_field_path(err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in e.errors()
        )
        message = f"{model.__name__} rejected: {details}"
        if error_cls is ValidationError:
            raise ValidationError(message, fields=fields) from e
        raise error_cls(message) from e
