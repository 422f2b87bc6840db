"""Prompt normalisation for the image generation endpoints.

A generation request carries a free-text prompt, an optional style name and
an optional image count.  This module turns them into the single prompt
string sent upstream plus the effective image count.

Rules
-----
- The prompt must be text and at least :data:`MIN_PROMPT_LENGTH` characters
  after trimming, otherwise :class:`~genproxy.core.errors.ValidationError`
  is raised (HTTP 400).
- The image count defaults to 1 and is clamped into
  [:data:`MIN_IMAGES`, :data:`MAX_IMAGES`].  Out-of-range values are never
  rejected.
- A style other than the ``"none"`` sentinel is combined with the prompt
  through the style template::

      Generate an image in the style of "{style}". {prompt}

  Without a style the trimmed prompt is used verbatim.

Usage
-----
::

    styled = build_generation_prompt("a quiet harbour at dawn", "watercolor", 7)
    styled.text         # 'Generate an image in the style of "watercolor". a quiet ...'
    styled.image_count  # 4
"""

from __future__ import annotations

from typing import Any, NamedTuple

from genproxy.core.config import DEFAULT_STYLE_TEMPLATE
from genproxy.core.errors import ValidationError

MIN_PROMPT_LENGTH = 5
MIN_IMAGES = 1
MAX_IMAGES = 4
NO_STYLE = "none"

PROMPT_ERROR = "Prompt is required and must be meaningful."


class StyledPrompt(NamedTuple):
    """Effective prompt text and image count for one request."""

    text: str
    image_count: int


def clamp_image_count(value: int | None) -> int:
    """Clamp a requested image count into the supported range.

    Args:
        value: Requested count, or ``None`` for the default.

    Returns:
        An integer between :data:`MIN_IMAGES` and :data:`MAX_IMAGES`.
    """
    if value is None:
        return MIN_IMAGES
    return min(max(value, MIN_IMAGES), MAX_IMAGES)


def apply_style(prompt: str, style: str | None, template: str = DEFAULT_STYLE_TEMPLATE) -> str:
    """Combine a style name and a prompt.

    Returns ``prompt`` unchanged when ``style`` is empty, absent or
    ``"none"``.
    """
    if style and style != NO_STYLE:
        return template.format(style=style, prompt=prompt)
    return prompt


def build_generation_prompt(
    prompt: Any,
    style: str | None = None,
    number_of_images: int | None = None,
    *,
    template: str = DEFAULT_STYLE_TEMPLATE,
) -> StyledPrompt:
    """Validate a generation request and compute its effective prompt.

    Args:
        prompt: Raw ``prompt`` value from the request body.
        style: Raw ``style`` value.
        number_of_images: Raw ``numberOfImages`` value.
        template: Style template with ``{style}`` and ``{prompt}`` fields.

    Returns:
        The styled prompt text and the clamped image count.

    Raises:
        ValidationError: If the prompt is missing, not a string, or too
            short after trimming.
    """
    if not isinstance(prompt, str) or len(prompt.strip()) < MIN_PROMPT_LENGTH:
        raise ValidationError(PROMPT_ERROR)

    trimmed = prompt.strip()
    return StyledPrompt(
        text=apply_style(trimmed, style, template),
        image_count=clamp_image_count(number_of_images),
    )
