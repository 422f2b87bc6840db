"""Pydantic request and response models for the Gen-Proxy API.

These models define the JSON schema for every endpoint.  FastAPI uses them
for request parsing, serialisation, and OpenAPI documentation generation.

Request fields keep the camelCase names the frontend sends
(``numberOfImages``); Python code uses the snake_case attribute names.

Prompt fields are typed loosely on purpose: a missing or non-text prompt is
rejected by :mod:`genproxy.api.prompt_builder` with the proxy's own error
shape rather than by schema validation.

Models
------
GenerateRequest
    Payload for every ``POST /generate-image*`` endpoint.
TextRequest
    Payload for ``POST /api/gemini/``.
GenerationResponse
    Shared success envelope of the generation endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GenerateRequest(BaseModel):
    """Request body for the image generation endpoints.

    Attributes:
        prompt: Free-text description of the image.  Must be text of at
            least five characters after trimming.
        style: Optional style name.  ``"none"`` or absent means no style.
        number_of_images: Requested image count; clamped into 1-4.
            Ignored by the single-image Gemini endpoint.
    """

    model_config = ConfigDict(populate_by_name=True)

    prompt: Any = Field(
        default=None,
        description="Image description (at least 5 characters after trimming).",
    )
    style: str | None = Field(
        default=None,
        description="Style name, or 'none' to use the prompt verbatim.",
    )
    number_of_images: int | None = Field(
        default=None,
        alias="numberOfImages",
        description="Number of images (clamped to 1-4, default 1).",
    )


class TextRequest(BaseModel):
    """Request body for ``POST /api/gemini/``.

    Attributes:
        prompt: Prompt text.  Coerced to a string and trimmed.
        temperature: Sampling temperature, default 0.7.  Checked by the text
            client so a bad value fails like any other text-proxy error.
    """

    prompt: Any = Field(default=None, description="Prompt text.")
    temperature: Any = Field(default=None, description="Sampling temperature.")


class ImagePayload(BaseModel):
    id: int
    data: str = Field(..., description="Base64 data URI of the image.")
    filename: str


class GenerationResponse(BaseModel):
    """Success envelope shared by all generation endpoints."""

    message: str
    prompt: str | None = None
    description: str | None = None
    images: list[ImagePayload]
    count: int
    model: str
    timestamp: datetime


class HealthResponse(BaseModel):
    message: str
    timestamp: datetime


class ModelInfo(BaseModel):
    name: str
    displayName: str | None = None
    description: str | None = None


class ModelListResponse(BaseModel):
    message: str
    models: list[ModelInfo]


class TextResponse(BaseModel):
    response: str


class ErrorResponse(BaseModel):
    """Error body returned by every failing endpoint."""

    error: str
    message: str | None = None
    category: str | None = None
    details: str | None = None
    model: str | None = None
