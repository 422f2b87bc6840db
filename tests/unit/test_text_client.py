"""Tests for genproxy.core.text_client — REST text generation.

The upstream API is replaced by an ``httpx.MockTransport`` wrapping the
``FakeGeminiText`` handler from conftest.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from genproxy.core.text_client import GeminiTextClient, TextGenerationError


def _generate(config, handler, prompt, temperature=None) -> str:
    async def _run() -> str:
        client = GeminiTextClient(config, transport=httpx.MockTransport(handler))
        try:
            return await client.generate(prompt, temperature)
        finally:
            await client.aclose()

    return asyncio.run(_run())


class TestGenerateSuccess:
    def test_returns_first_text_part(self, test_config, fake_text_api):
        assert _generate(test_config, fake_text_api, "Say hello") == "Hello from Gemini"

    def test_request_shape(self, test_config, fake_text_api):
        _generate(test_config, fake_text_api, "  Say hello  ")

        request = fake_text_api.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v1beta/models/gemini-2.5-flash:generateContent"
        assert request.url.params["key"] == "test-gemini-key"
        body = json.loads(request.content)
        assert body["contents"] == [{"parts": [{"text": "Say hello"}]}]
        assert body["generationConfig"] == {
            "temperature": 0.7,
            "topK": 40,
            "topP": 0.95,
            "maxOutputTokens": 8192,
        }

    def test_custom_temperature(self, test_config, fake_text_api):
        _generate(test_config, fake_text_api, "Say hello", temperature=0.2)
        body = json.loads(fake_text_api.requests[0].content)
        assert body["generationConfig"]["temperature"] == 0.2

    @pytest.mark.parametrize(("temperature", "sent"), [("0.3", 0.3), (1, 1.0), (None, 0.7)])
    def test_temperature_coerced(self, test_config, fake_text_api, temperature, sent):
        _generate(test_config, fake_text_api, "Say hello", temperature=temperature)
        body = json.loads(fake_text_api.requests[0].content)
        assert body["generationConfig"]["temperature"] == sent

    def test_non_string_prompt_coerced(self, test_config, fake_text_api):
        _generate(test_config, fake_text_api, 42)
        body = json.loads(fake_text_api.requests[0].content)
        assert body["contents"][0]["parts"][0]["text"] == "42"


class TestGenerateFailure:
    @pytest.mark.parametrize("prompt", [None, "", "   "])
    def test_missing_prompt_makes_no_call(self, test_config, fake_text_api, prompt):
        with pytest.raises(TextGenerationError):
            _generate(test_config, fake_text_api, prompt)
        assert fake_text_api.requests == []

    def test_missing_key(self, test_config, fake_text_api):
        cfg = test_config.model_copy(update={"gemini_api_key": None, "vertex_key": None})
        with pytest.raises(TextGenerationError):
            _generate(cfg, fake_text_api, "Say hello")

    def test_timeout(self, test_config, fake_text_api):
        fake_text_api.error = httpx.ReadTimeout("timed out")
        with pytest.raises(TextGenerationError):
            _generate(test_config, fake_text_api, "Say hello")

    def test_error_status(self, test_config, fake_text_api):
        fake_text_api.status = 503
        fake_text_api.payload = {"error": {"message": "overloaded"}}
        with pytest.raises(TextGenerationError):
            _generate(test_config, fake_text_api, "Say hello")

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"candidates": []},
            {"candidates": [{"content": {"parts": []}}]},
            {"candidates": [{"content": {"parts": [{"text": ""}]}}]},
        ],
    )
    def test_malformed_payload(self, test_config, fake_text_api, payload):
        fake_text_api.payload = payload
        with pytest.raises(TextGenerationError):
            _generate(test_config, fake_text_api, "Say hello")

    @pytest.mark.parametrize("temperature", ["hot", [0.5], True, "nan"])
    def test_invalid_temperature_makes_no_call(self, test_config, fake_text_api, temperature):
        with pytest.raises(TextGenerationError):
            _generate(test_config, fake_text_api, "Say hello", temperature=temperature)
        assert fake_text_api.requests == []
