"""Plain text generation against the Gemini REST API.

The text proxy route does not go through the SDK.  It POSTs a single text
part to ``models/{model}:generateContent`` and returns the first text part
of the first candidate.  Every failure, from a missing prompt to a malformed
upstream payload, is raised as :class:`TextGenerationError` and collapses to
a single 500 at the route.
"""

from __future__ import annotations

import logging
import math
from typing import Any

import httpx

from genproxy.core.config import ProxyConfig

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TEMPERATURE = 0.7


class TextGenerationError(Exception):
    """Any failure while producing a text response."""


def _resolve_temperature(value: Any) -> float:
    if value is None:
        return DEFAULT_TEMPERATURE
    # bool is an int subclass
    if isinstance(value, bool):
        raise TextGenerationError(f"Invalid temperature: {value!r}")
    try:
        temperature = float(value)
    except (TypeError, ValueError) as exc:
        raise TextGenerationError(f"Invalid temperature: {value!r}") from exc
    if not math.isfinite(temperature):
        raise TextGenerationError(f"Invalid temperature: {value!r}")
    return temperature


class GeminiTextClient:
    """Async client for single-turn text generation.

    Attributes:
        model (str): Upstream text model identifier.
    """

    def __init__(
        self,
        config: ProxyConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialise the client.

        Args:
            config: Application configuration.  Supplies the API key, model,
                sampling settings and timeout.
            transport: Optional transport override (used by tests).
        """
        self._config = config
        self.model = config.text_model
        self._http = httpx.AsyncClient(
            base_url=GEMINI_API_BASE,
            timeout=config.upstream_timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def generate(self, prompt: Any, temperature: Any = None) -> str:
        """Generate a text response for ``prompt``.

        Args:
            prompt: Raw prompt value from the request body.  Coerced to
                ``str`` and trimmed.
            temperature: Sampling temperature; defaults to 0.7.  Numeric
                strings are accepted.

        Returns:
            The generated text.

        Raises:
            TextGenerationError: On a missing key or prompt, a non-numeric
                temperature, a transport failure or timeout, a non-2xx
                status, or a response without text.
        """
        api_key = self._config.text_api_key
        if not api_key:
            raise TextGenerationError("Gemini API key not found in configuration")
        if prompt is None:
            raise TextGenerationError("Prompt is missing")
        prompt_text = str(prompt).strip()
        if not prompt_text:
            raise TextGenerationError("Prompt must not be empty")
        temperature = _resolve_temperature(temperature)

        body = {
            "contents": [{"parts": [{"text": prompt_text}]}],
            "generationConfig": {
                "temperature": temperature,
                "topK": self._config.text_top_k,
                "topP": self._config.text_top_p,
                "maxOutputTokens": self._config.text_max_output_tokens,
            },
        }

        try:
            response = await self._http.post(
                f"/models/{self.model}:generateContent",
                params={"key": api_key},
                json=body,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise TextGenerationError(
                f"Gemini API returned {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise TextGenerationError(f"Gemini API request failed: {exc}") from exc

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not text:
            raise TextGenerationError("Invalid response from Gemini API")
        return text

    async def aclose(self) -> None:
        await self._http.aclose()
