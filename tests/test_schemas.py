"""Tests for schema validation and prompt rendering."""

from __future__ import annotations

import pytest

from photopoet.core.errors import InvalidInput, ValidationError
from photopoet.flows.prompts import ANALYZE_PHOTO_PROMPT, POEM_PROMPT
from photopoet.flows.schemas import (
    AnalyzePhotoInput,
    AnalyzePhotoOutput,
    GeneratePoemInput,
    GeneratePoemOutput,
    is_photo_reference,
    parse_or_fail,
)
from tests.conftest import CAT_ANALYSIS, PHOTO, PHOTO_2


class TestParseOrFail:

    def test_accepts_mapping(self):
        out = parse_or_fail(AnalyzePhotoOutput, CAT_ANALYSIS)
        assert out.objects == ["cat"]
        assert out.description == "A cat resting."

    def test_accepts_json_text(self):
        out = parse_or_fail(GeneratePoemOutput, '{"poem": "a line"}')
        assert out.poem == "a line"

    def test_returns_instance_unchanged(self):
        inst = AnalyzePhotoOutput(**CAT_ANALYSIS)
        assert parse_or_fail(AnalyzePhotoOutput, inst) is inst

    def test_extra_keys_are_ignored(self):
        out = parse_or_fail(AnalyzePhotoOutput, {**CAT_ANALYSIS, "confidence": 0.9})
        assert not hasattr(out, "confidence")

    def test_missing_fields_are_all_named(self):
        with pytest.raises(ValidationError) as exc:
            parse_or_fail(AnalyzePhotoOutput, {"objects": ["cat"]})
        assert set(exc.value.fields) == {"scenes", "emotions", "description"}

    def test_wrong_item_type_names_the_index(self):
        bad = {**CAT_ANALYSIS, "objects": ["cat", 3]}
        with pytest.raises(ValidationError) as exc:
            parse_or_fail(AnalyzePhotoOutput, bad)
        assert exc.value.fields == ["objects.1"]

    def test_invalid_json_fails(self):
        with pytest.raises(ValidationError):
            parse_or_fail(GeneratePoemOutput, "not json at all")

    def test_blank_poem_fails(self):
        with pytest.raises(ValidationError) as exc:
            parse_or_fail(GeneratePoemOutput, {"poem": "   "})
        assert exc.value.fields == ["poem"]

    def test_custom_error_class(self):
        with pytest.raises(InvalidInput):
            parse_or_fail(GeneratePoemInput, {"photo_url": PHOTO, "photo_analysis": ""}, error_cls=InvalidInput)


@pytest.mark.parametrize("ref,ok", [
    (PHOTO, True),
    (PHOTO_2, True),
    ("http://example.com/a.png", True),
    ("", False),
    ("data:text/plain;base64,aGk=", False),
    ("ftp://example.com/a.png", False),
    ("just some words", False),
])
def test_photo_reference_shapes(ref, ok):
    assert is_photo_reference(ref) is ok


def test_analyze_input_rejects_non_image():
    with pytest.raises(InvalidInput):
        parse_or_fail(AnalyzePhotoInput, {"photo_url": "hello"}, error_cls=InvalidInput)


def test_output_schema_carries_descriptions():
    props = AnalyzePhotoOutput.model_json_schema()["properties"]
    assert props["emotions"]["description"] == "Emotions detected in the photo."


class TestPromptRendering:

    def test_analysis_prompt_attaches_photo_instead_of_inlining(self):
        prompt = ANALYZE_PHOTO_PROMPT.render(AnalyzePhotoInput(photo_url=PHOTO))
        assert prompt.name == "analyzePhotoPrompt"
        assert prompt.images == [PHOTO]
        assert PHOTO not in prompt.text
        assert "objects, scenes, and emotions" in prompt.text

    def test_poem_prompt_embeds_analysis_text(self):
        analysis = '{\n  "objects": ["cat"]\n}'
        prompt = POEM_PROMPT.render(GeneratePoemInput(photo_url=PHOTO, photo_analysis=analysis))
        assert prompt.name == "poemPrompt"
        assert analysis in prompt.text
        assert "20 lines" in prompt.text
        assert prompt.images == [PHOTO]
