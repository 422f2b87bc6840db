"""Gen-Proxy — FastAPI REST API layer.

This package contains the FastAPI application, Pydantic request/response
models, the ingress gate and the prompt normalisation logic.

Modules
-------
main
    Application factory, route handlers and the ``main()`` CLI entry point.
models
    Pydantic models for API request and response validation.
prompt_builder
    Prompt validation, style templating and image-count clamping.
gate
    Shared-secret and origin checks applied to every request.
"""
