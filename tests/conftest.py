"""Shared pytest fixtures for Gen-Proxy tests."""

from types import SimpleNamespace
from typing import Callable, Generator
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from genproxy.api.main import create_app
from genproxy.core.config import ProxyConfig

TEST_SECRET = "test-secret"
ALLOWED_ORIGIN = "http://localhost:5173"


@pytest.fixture
def api_secret() -> str:
    """Shared secret configured in test_config."""
    return TEST_SECRET


@pytest.fixture
def allowed_origin() -> str:
    """The single browser origin configured in test_config."""
    return ALLOWED_ORIGIN


@pytest.fixture
def test_config() -> ProxyConfig:
    """Create a configuration with fixed secrets and no .env lookup.

    Returns:
        ProxyConfig instance for testing
    """
    return ProxyConfig(
        _env_file=None,
        internal_secret=TEST_SECRET,
        vertex_key="test-vertex-key",
        gemini_api_key="test-gemini-key",
        allowed_origins=[ALLOWED_ORIGIN],
        environment="production",
    )


@pytest.fixture
def dev_config(test_config: ProxyConfig) -> ProxyConfig:
    """Same as test_config but in development mode."""
    return test_config.model_copy(update={"environment": "development"})


# ---------------------------------------------------------------------------
# Fake upstream responses.
# ---------------------------------------------------------------------------


@pytest.fixture
def images_response() -> Callable[..., SimpleNamespace]:
    """Factory for Imagen ``generate_images`` responses.

    Returns:
        Function taking an image count and returning a response whose
        images carry the bytes ``b"png-<n>"``.
    """

    def _make(count: int) -> SimpleNamespace:
        return SimpleNamespace(
            generated_images=[
                SimpleNamespace(image=SimpleNamespace(image_bytes=f"png-{i}".encode()))
                for i in range(1, count + 1)
            ]
        )

    return _make


@pytest.fixture
def inline_response() -> Callable[..., SimpleNamespace]:
    """Factory for Gemini ``generate_content`` responses.

    Parts are given as strings (text parts) or ``(bytes, mime_type)`` tuples
    (inline image parts).
    """

    def _make(*parts) -> SimpleNamespace:
        built = []
        for part in parts:
            if isinstance(part, str):
                built.append(SimpleNamespace(text=part, inline_data=None))
            else:
                data, mime_type = part
                built.append(
                    SimpleNamespace(
                        text=None,
                        inline_data=SimpleNamespace(data=data, mime_type=mime_type),
                    )
                )
        return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=built))])

    return _make


@pytest.fixture
def genai_client(images_response, inline_response) -> MagicMock:
    """Mock ``google.genai.Client`` answering every call successfully.

    Returns:
        MagicMock whose ``models`` methods return realistic responses
    """
    client = MagicMock()
    client.models.generate_images.return_value = images_response(1)
    client.models.generate_content.return_value = inline_response(
        "A cat on a windowsill.", (b"gemini-png", "image/png")
    )
    client.models.list.return_value = [
        SimpleNamespace(
            name="models/imagen-3.0-generate-001",
            display_name="Imagen 3",
            description="Image generation",
        ),
        SimpleNamespace(
            name="models/gemini-2.5-flash",
            display_name="Gemini 2.5 Flash",
            description="Text generation",
        ),
    ]
    return client


class FakeGeminiText:
    """Callable handler for ``httpx.MockTransport`` imitating the REST API.

    Attributes:
        requests: Every request received, in order.
        status: HTTP status to answer with.
        payload: JSON body to answer with.
        error: Exception to raise instead of answering.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status = 200
        self.payload: dict = {
            "candidates": [{"content": {"parts": [{"text": "Hello from Gemini"}]}}]
        }
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status, json=self.payload)


@pytest.fixture
def fake_text_api() -> FakeGeminiText:
    return FakeGeminiText()


# ---------------------------------------------------------------------------
# Application clients.
# ---------------------------------------------------------------------------


def _build_client(
    settings: ProxyConfig, genai_client: MagicMock, fake_text_api: FakeGeminiText, headers: dict
) -> Generator[TestClient, None, None]:
    app = create_app(
        settings,
        genai_client=genai_client,
        text_transport=httpx.MockTransport(fake_text_api),
    )
    with TestClient(app, headers=headers) as client:
        yield client


@pytest.fixture
def test_client(test_config, genai_client, fake_text_api) -> Generator[TestClient, None, None]:
    """TestClient sending the correct shared secret on every request."""
    yield from _build_client(test_config, genai_client, fake_text_api, {"x-api-secret": TEST_SECRET})


@pytest.fixture
def dev_client(dev_config, genai_client, fake_text_api) -> Generator[TestClient, None, None]:
    """Authenticated TestClient for an app running in development mode."""
    yield from _build_client(dev_config, genai_client, fake_text_api, {"x-api-secret": TEST_SECRET})


@pytest.fixture
def anonymous_client(test_config, genai_client, fake_text_api) -> Generator[TestClient, None, None]:
    """TestClient that sends no shared secret."""
    yield from _build_client(test_config, genai_client, fake_text_api, {})
