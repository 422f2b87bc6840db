"""Unit tests for genproxy.api.prompt_builder."""

import pytest

from genproxy.api.prompt_builder import (
    PROMPT_ERROR,
    apply_style,
    build_generation_prompt,
    clamp_image_count,
)
from genproxy.core.errors import ValidationError


class TestClampImageCount:
    """Out-of-range counts are clamped, never rejected."""

    @pytest.mark.parametrize(
        ("requested", "effective"),
        [(0, 1), (-3, 1), (1, 1), (3, 3), (4, 4), (10, 4)],
    )
    def test_clamp(self, requested, effective):
        assert clamp_image_count(requested) == effective

    def test_missing_defaults_to_one(self):
        assert clamp_image_count(None) == 1


class TestApplyStyle:
    def test_no_style(self):
        assert apply_style("a red fox", None) == "a red fox"

    def test_none_sentinel(self):
        assert apply_style("a red fox", "none") == "a red fox"

    def test_empty_style(self):
        assert apply_style("a red fox", "") == "a red fox"

    def test_anime_style(self):
        assert apply_style("a red fox", "anime") == (
            'Generate an image in the style of "anime". a red fox'
        )

    def test_custom_template(self):
        assert apply_style("a red fox", "noir", "{prompt} ({style})") == "a red fox (noir)"


class TestBuildGenerationPrompt:
    def test_prompt_is_trimmed(self):
        styled = build_generation_prompt("   a lighthouse at dusk  ")
        assert styled.text == "a lighthouse at dusk"
        assert styled.image_count == 1

    def test_style_and_count(self):
        styled = build_generation_prompt("a lighthouse", "anime", 10)
        assert styled.text == 'Generate an image in the style of "anime". a lighthouse'
        assert styled.image_count == 4

    def test_exactly_five_characters_allowed(self):
        assert build_generation_prompt("  abcde ").text == "abcde"

    @pytest.mark.parametrize("prompt", [None, "", "    ", "abcd", "  ab  "])
    def test_short_or_missing_prompt_rejected(self, prompt):
        with pytest.raises(ValidationError) as exc_info:
            build_generation_prompt(prompt)
        assert exc_info.value.message == PROMPT_ERROR
        assert exc_info.value.status_code == 400

    @pytest.mark.parametrize("prompt", [12345678, ["a long prompt"], {"text": "hello"}])
    def test_non_text_prompt_rejected(self, prompt):
        with pytest.raises(ValidationError):
            build_generation_prompt(prompt)
