"""Generation dispatch for the Gemini and Imagen model families.

This module provides :class:`GenerationDispatcher`, the single point of
contact with the ``google-genai`` SDK.  Each HTTP route binds to exactly one
:class:`ModelFamily`; the dispatcher issues one upstream call for it, decodes
the result into a :class:`GenerationResult`, and maps failures onto the
error taxonomy in :mod:`genproxy.core.errors`.

Model Families
--------------
``inline``
    A Gemini model that answers ``generate_content`` with interleaved text
    and inline image parts.  One image per request; the first text part
    becomes the description.
``images``
    An Imagen model that answers ``generate_images`` with an array of
    generated images.  Up to four per request.
``text``
    The text model used by the degraded fallback route.  Returns a
    description only.

Key Responsibilities
--------------------
- **Lazy client creation** - the SDK client is only built on the first
  upstream call, so a proxy started without credentials still serves the
  health check.
- **Timeout** - the client is built with the configured upstream timeout.
- **Off-loop execution** - SDK calls are blocking and run through
  :func:`asyncio.to_thread`.
- **No retries** - a failed call is classified and reported; the client is
  responsible for retrying, typically against the secondary family.

Usage
-----
::

    from genproxy.core.config import config
    from genproxy.core.dispatcher import GenerationDispatcher

    dispatcher = GenerationDispatcher(config)
    family = dispatcher.families["imagen4"]
    result = await dispatcher.generate_images(family, "a lighthouse at dusk", 2)
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from google import genai
from google.genai import types

from genproxy.core.config import ProxyConfig
from genproxy.core.errors import GenericUpstreamError, NoImageProduced, classify_upstream_error

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME_TYPE = "image/png"

_MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}

FALLBACK_INSTRUCTION = (
    "Image generation is currently unavailable. Describe in vivid visual detail "
    "the image that would be produced for the following request:\n\n{prompt}"
)


@dataclass(frozen=True)
class ModelFamily:
    """An upstream model bound to one or more routes.

    Attributes:
        key: Short identifier used to look the family up.
        model_id: Upstream model identifier.
        label: Human-readable name used in messages.
        short_name: Prefix for generated filenames.
        kind: Which SDK call the family answers.
    """

    key: str
    model_id: str
    label: str
    short_name: str
    kind: Literal["inline", "images", "text"]


@dataclass
class GeneratedImage:
    """One decoded image, ready for the JSON envelope."""

    id: int
    data: str
    filename: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "data": self.data, "filename": self.filename}


@dataclass
class GenerationResult:
    """Outcome of a single successful upstream call."""

    model: str
    images: list[GeneratedImage] = field(default_factory=list)
    description: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def count(self) -> int:
        return len(self.images)


def families_from_config(config: ProxyConfig) -> dict[str, ModelFamily]:
    """Build the model families from the configured model identifiers."""
    families = [
        ModelFamily("imagen4", config.imagen4_model, "Imagen 4.0", "imagen", "images"),
        ModelFamily("imagen3", config.imagen3_model, "Imagen 3", "imagen3", "images"),
        ModelFamily("gemini", config.inline_image_model, "Gemini", "gemini", "inline"),
        ModelFamily("fallback", config.text_model, "Gemini text fallback", "gemini-text", "text"),
    ]
    return {f.key: f for f in families}


# ---------------------------------------------------------------------------
# Response decoding.
# ---------------------------------------------------------------------------


def _to_data_uri(payload: bytes | str, mime_type: str) -> str:
    """Wrap an image payload as a ``data:`` URI.

    The SDK hands back raw bytes; a payload that is already a string is
    taken to be base64 text.
    """
    if isinstance(payload, bytes):
        payload = base64.b64encode(payload).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


def _extension(mime_type: str) -> str:
    """File extension for an image MIME type (``image/gif`` -> ``gif``)."""
    if mime_type in _MIME_EXTENSIONS:
        return _MIME_EXTENSIONS[mime_type]
    subtype = mime_type.partition("/")[2].split(";")[0].split("+")[0].strip().lower()
    return subtype or "png"


def _filename(family: ModelFamily, index: int, mime_type: str) -> str:
    extension = _extension(mime_type)
    return f"{family.short_name}-{index}.{extension}"


def _response_parts(response: Any) -> list[Any]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    content = getattr(candidates[0], "content", None)
    return list(getattr(content, "parts", None) or [])


def decode_inline_response(response: Any, family: ModelFamily) -> GenerationResult:
    """Decode a combined text+image ``generate_content`` response.

    Parts are scanned in order.  The first text part becomes the
    description and the first inline-data part becomes the single image.

    Args:
        response: SDK ``GenerateContentResponse``.
        family: The inline family that produced it.

    Returns:
        Result holding exactly one image.

    Raises:
        NoImageProduced: If no part carries inline image data.
    """
    description: str | None = None
    image: GeneratedImage | None = None

    for part in _response_parts(response):
        text = getattr(part, "text", None)
        if text and description is None:
            description = text
            continue
        inline = getattr(part, "inline_data", None)
        if inline is not None and getattr(inline, "data", None) and image is None:
            mime_type = getattr(inline, "mime_type", None) or DEFAULT_IMAGE_MIME_TYPE
            image = GeneratedImage(
                id=1,
                data=_to_data_uri(inline.data, mime_type),
                filename=_filename(family, 1, mime_type),
            )

    if image is None:
        raise NoImageProduced(
            f"{family.label} returned no image for this prompt.",
            details=description,
            model=family.model_id,
        )

    return GenerationResult(model=family.model_id, images=[image], description=description)


def decode_generated_images(response: Any, family: ModelFamily) -> GenerationResult:
    """Decode an Imagen ``generate_images`` response.

    Images are numbered from 1 in the order returned.  Entries without image
    bytes (filtered by the upstream safety system) are skipped and do not
    consume an id.

    Args:
        response: SDK ``GenerateImagesResponse``.
        family: The image family that produced it.

    Returns:
        Result holding every returned image as a PNG data URI.

    Raises:
        NoImageProduced: If the response carries no usable image.
    """
    images: list[GeneratedImage] = []
    for generated in getattr(response, "generated_images", None) or []:
        image = getattr(generated, "image", None)
        payload = getattr(image, "image_bytes", None)
        if not payload:
            continue
        idx = len(images) + 1
        images.append(
            GeneratedImage(
                id=idx,
                data=_to_data_uri(payload, DEFAULT_IMAGE_MIME_TYPE),
                filename=_filename(family, idx, DEFAULT_IMAGE_MIME_TYPE),
            )
        )

    if not images:
        raise NoImageProduced(
            f"{family.label} returned no image for this prompt.",
            model=family.model_id,
        )

    return GenerationResult(model=family.model_id, images=images)


# ---------------------------------------------------------------------------
# Dispatcher.
# ---------------------------------------------------------------------------


class GenerationDispatcher:
    """Issues one upstream call per request for a given model family.

    Attributes:
        families (dict[str, ModelFamily]):
            Model families keyed by ``ModelFamily.key``.
    """

    def __init__(self, config: ProxyConfig, client: genai.Client | None = None) -> None:
        """Initialise the dispatcher.

        Args:
            config: Application configuration.  ``vertex_key`` and
                ``upstream_timeout`` are read when the client is built.
            client: Pre-built SDK client.  When omitted one is created on
                first use.
        """
        self._config = config
        self._client = client
        self._owns_client = client is None
        self.families = families_from_config(config)

    def _get_client(self) -> genai.Client:
        # Runs on the event loop thread with no await between check and set.
        if self._client is None:
            if not self._config.vertex_key:
                raise RuntimeError("Upstream API key is not configured (GENPROXY_VERTEX_KEY)")
            timeout_ms = int(self._config.upstream_timeout * 1000)
            self._client = genai.Client(
                api_key=self._config.vertex_key,
                http_options=types.HttpOptions(timeout=timeout_ms),
            )
            logger.info("Upstream client created (timeout %d ms).", timeout_ms)
        return self._client

    def close(self) -> None:
        """Release the SDK client if this dispatcher built it."""
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None
            logger.info("Upstream client closed.")

    async def generate_inline(self, family: ModelFamily, prompt: str) -> GenerationResult:
        """Generate one image with a combined text+image model."""
        logger.info("Generating 1 image with %s: %s", family.label, prompt)
        try:
            client = self._get_client()
            response = await asyncio.to_thread(
                client.models.generate_content,
                model=family.model_id,
                contents=prompt,
                config=types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"]),
            )
            return decode_inline_response(response, family)
        except Exception as exc:
            raise self._classify(exc, family) from exc

    async def generate_images(
        self, family: ModelFamily, prompt: str, count: int
    ) -> GenerationResult:
        """Generate ``count`` images with a dedicated image model."""
        logger.info("Generating %d image(s) with %s: %s", count, family.label, prompt)
        try:
            client = self._get_client()
            response = await asyncio.to_thread(
                client.models.generate_images,
                model=family.model_id,
                prompt=prompt,
                config=types.GenerateImagesConfig(number_of_images=count),
            )
            return decode_generated_images(response, family)
        except Exception as exc:
            raise self._classify(exc, family) from exc

    async def describe(self, prompt: str) -> GenerationResult:
        """Produce a textual stand-in when no image family is reachable."""
        family = self.families["fallback"]
        logger.info("Generating fallback description with %s: %s", family.label, prompt)
        try:
            client = self._get_client()
            response = await asyncio.to_thread(
                client.models.generate_content,
                model=family.model_id,
                contents=FALLBACK_INSTRUCTION.format(prompt=prompt),
                config=types.GenerateContentConfig(response_modalities=["TEXT"]),
            )
            description = getattr(response, "text", None)
            if not description:
                raise GenericUpstreamError(
                    f"{family.label} returned no description.", model=family.model_id
                )
            return GenerationResult(model=family.model_id, description=description)
        except Exception as exc:
            raise self._classify(exc, family) from exc

    async def list_models(self) -> list[dict[str, Any]]:
        """List upstream model identifiers.

        Failures propagate unclassified; the route reports them as a
        generic 500.
        """
        client = self._get_client()
        models = await asyncio.to_thread(lambda: list(client.models.list()))
        return [
            {
                "name": m.name,
                "displayName": getattr(m, "display_name", None),
                "description": getattr(m, "description", None),
            }
            for m in models
        ]

    @staticmethod
    def _classify(exc: Exception, family: ModelFamily):
        error = classify_upstream_error(exc, family)
        if error.status_code >= 500:
            logger.error("%s failed (%d): %s", family.label, error.status_code, exc)
        else:
            logger.warning("%s failed (%d): %s", family.label, error.status_code, exc)
        return error
