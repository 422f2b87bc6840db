"""Gen-Proxy — FastAPI Application.

This module defines the application factory, all REST API routes, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The application is stateless between requests:

- **Configuration** is loaded once into a frozen
  :class:`~genproxy.core.config.ProxyConfig` and passed explicitly to the
  ingress gate, the dispatcher and the text client.
- **Ingress** is enforced by :class:`~genproxy.api.gate.ApiSecretMiddleware`
  before CORS handling and before any route runs.
- **Image generation** is performed by
  :class:`~genproxy.core.dispatcher.GenerationDispatcher`.  Each route binds
  to one model family and issues exactly one upstream call; there is no
  automatic retry or fallback inside a request.
- **Errors** are raised as :class:`~genproxy.core.errors.ProxyError` and
  rendered by a single exception handler.  Upstream detail is only included
  in development mode.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``/``                         Health check
GET       ``/models``                   List upstream models (debugging)
POST      ``/generate-image``           Imagen 4 (primary)
POST      ``/generate-image-imagen3``   Imagen 3 (secondary)
POST      ``/generate-image-imagen``    Imagen 3 (alias)
POST      ``/generate-image-gemini``    Gemini combined text+image model
POST      ``/generate-image-fallback``  Text description only
POST      ``/api/gemini/``              Text generation proxy
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    genproxy

Direct invocation::

    python -m genproxy.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from google import genai

from genproxy import __version__
from genproxy.api.gate import SECRET_HEADER, ApiSecretMiddleware
from genproxy.api.models import (
    ErrorResponse,
    GenerateRequest,
    GenerationResponse,
    HealthResponse,
    ModelListResponse,
    TextRequest,
    TextResponse,
)
from genproxy.api.prompt_builder import build_generation_prompt
from genproxy.core.config import ProxyConfig, config, normalise_origin
from genproxy.core.dispatcher import GenerationDispatcher, GenerationResult, ModelFamily
from genproxy.core.errors import ProxyError, ValidationError
from genproxy.core.text_client import GeminiTextClient

logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    402: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

router = APIRouter()


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Application lifecycle.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Creates the text client (its connection pool must belong to the
        running event loop) and logs the configuration summary and the
        endpoint list, warning about any missing credential.

    On shutdown:
        Closes the text client's connection pool and the SDK client.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    settings: ProxyConfig = app.state.config
    app.state.text_client = GeminiTextClient(settings, transport=app.state.text_transport)

    logger.info("Environment: %s", settings.environment)
    logger.info(
        "Image models: primary=%s secondary=%s inline=%s",
        settings.imagen4_model,
        settings.imagen3_model,
        settings.inline_image_model,
    )
    for route in app.routes:
        if isinstance(route, APIRoute) and route.include_in_schema:
            logger.info("Endpoint: %s %s", ",".join(sorted(route.methods)), route.path)
    if not settings.vertex_key:
        logger.warning("GENPROXY_VERTEX_KEY is not set; generation requests will fail")
    if not settings.internal_secret:
        logger.warning("GENPROXY_INTERNAL_SECRET is not set; every request will be rejected")
    if not settings.text_api_key:
        logger.warning("No API key for the text proxy; /api/gemini/ requests will fail")

    yield

    await app.state.text_client.aclose()
    app.state.dispatcher.close()


# ---------------------------------------------------------------------------
# Exception handlers.
# ---------------------------------------------------------------------------


async def _proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    settings: ProxyConfig = request.app.state.config
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload(include_details=settings.is_development),
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationError("Invalid request body", details=str(exc.errors()))
    return await _proxy_error_handler(request, error)


# ---------------------------------------------------------------------------
# Generation helpers.
# ---------------------------------------------------------------------------


def _envelope(
    result: GenerationResult, family: ModelFamily, prompt: str, message: str
) -> GenerationResponse:
    return GenerationResponse(
        message=message,
        prompt=prompt,
        description=result.description,
        images=[img.to_dict() for img in result.images],
        count=result.count,
        model=family.model_id,
        timestamp=result.timestamp,
    )


async def _generate(request: Request, req: GenerateRequest, family_key: str) -> GenerationResponse:
    """Validate, dispatch to one model family and wrap the result.

    Raises:
        ProxyError: On invalid input or any upstream failure.
    """
    settings: ProxyConfig = request.app.state.config
    dispatcher: GenerationDispatcher = request.app.state.dispatcher
    family = dispatcher.families[family_key]

    styled = build_generation_prompt(
        req.prompt,
        req.style,
        req.number_of_images,
        template=settings.style_template,
    )

    if family.kind == "inline":
        result = await dispatcher.generate_inline(family, styled.text)
    else:
        result = await dispatcher.generate_images(family, styled.text, styled.image_count)

    message = f"{result.count} image(s) generated successfully with {family.label}!"
    return _envelope(result, family, styled.text, message)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@router.get("/", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Report that the server is up."""
    return HealthResponse(message="Server is running!", timestamp=_now())


@router.get("/models", response_model=ModelListResponse, responses={500: {"model": ErrorResponse}})
async def list_models(request: Request):
    """List the upstream model identifiers visible to the configured key.

    Failures are reported as a plain 500 without classification.
    """
    dispatcher: GenerationDispatcher = request.app.state.dispatcher
    try:
        models = await dispatcher.list_models()
    except Exception:
        logger.exception("Error listing models")
        return JSONResponse(status_code=500, content={"error": "Failed to list models"})
    return {"message": "Available models", "models": models}


@router.post(
    "/generate-image",
    response_model=GenerationResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
)
async def generate_image(request: Request, req: GenerateRequest) -> GenerationResponse:
    """Generate 1-4 images with the primary Imagen 4 model."""
    return await _generate(request, req, "imagen4")


@router.post(
    "/generate-image-imagen3",
    response_model=GenerationResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
)
@router.post(
    "/generate-image-imagen",
    response_model=GenerationResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
)
async def generate_image_imagen3(request: Request, req: GenerateRequest) -> GenerationResponse:
    """Generate 1-4 images with Imagen 3, for when Imagen 4 is unavailable."""
    return await _generate(request, req, "imagen3")


@router.post(
    "/generate-image-gemini",
    response_model=GenerationResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
)
async def generate_image_gemini(request: Request, req: GenerateRequest) -> GenerationResponse:
    """Generate one image plus a description with the Gemini image model.

    ``numberOfImages`` is accepted for a uniform request shape but the
    model always returns a single image.
    """
    return await _generate(request, req, "gemini")


@router.post(
    "/generate-image-fallback",
    response_model=GenerationResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
)
async def generate_image_fallback(request: Request, req: GenerateRequest) -> GenerationResponse:
    """Return a textual description when no image model is reachable."""
    settings: ProxyConfig = request.app.state.config
    dispatcher: GenerationDispatcher = request.app.state.dispatcher
    styled = build_generation_prompt(
        req.prompt, req.style, req.number_of_images, template=settings.style_template
    )
    result = await dispatcher.describe(styled.text)
    message = "Image generation unavailable; returning a text description instead."
    return _envelope(result, dispatcher.families["fallback"], styled.text, message)


@router.post("/api/gemini/", response_model=TextResponse, responses={500: {"model": ErrorResponse}})
@router.post("/api/gemini", include_in_schema=False)
async def gemini_text(request: Request, req: TextRequest):
    """Proxy a single text prompt to the Gemini text model.

    Every failure collapses to the same 500 response.
    """
    text_client: GeminiTextClient = request.app.state.text_client
    try:
        response = await text_client.generate(req.prompt, req.temperature)
    except Exception:
        logger.exception("Error generating Gemini response")
        return JSONResponse(status_code=500, content={"error": "Failed to generate response"})
    return {"response": response}


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    settings: ProxyConfig | None = None,
    *,
    genai_client: genai.Client | None = None,
    text_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration to use.  Defaults to the global
            :data:`~genproxy.core.config.config`.
        genai_client: Pre-built SDK client for the dispatcher.  Built
            lazily from ``settings.vertex_key`` when omitted.
        text_transport: Transport override for the text client.

    Returns:
        The configured application.
    """
    settings = settings or config

    app = FastAPI(
        title="Gen-Proxy",
        description="Authenticated proxy for Gemini and Imagen generation APIs.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = settings
    app.state.dispatcher = GenerationDispatcher(settings, client=genai_client)
    app.state.text_transport = text_transport

    app.add_exception_handler(ProxyError, _proxy_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # Middleware added last runs first: the gate wraps CORS.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[normalise_origin(o) for o in settings.allowed_origins],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", SECRET_HEADER],
    )
    app.add_middleware(ApiSecretMiddleware, config=settings)

    app.include_router(router)
    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~genproxy.core.config.config`
    (``GENPROXY_SERVER_HOST``, ``GENPROXY_SERVER_PORT``,
    ``GENPROXY_LOG_LEVEL``).  Defaults to ``0.0.0.0:3000``.

    This function is registered as the ``genproxy`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "genproxy.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
