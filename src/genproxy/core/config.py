"""Configuration management for Gen-Proxy.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the GENPROXY_ prefix,
allowing the proxy to be deployed without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (GENPROXY_* prefix)
2. .env file in the working directory
3. Default values defined in ProxyConfig

Example .env file:
    GENPROXY_INTERNAL_SECRET=change-me
    GENPROXY_VERTEX_KEY=AIza...
    GENPROXY_ALLOWED_ORIGINS=["http://localhost:5173","https://example.com"]
    GENPROXY_ENVIRONMENT=development

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
:func:`genproxy.api.main.create_app` receives it explicitly and hands it to
the ingress gate, the generation dispatcher and the text client, so no
handler reads the process environment on its own.

Usage Example
-------------
    from genproxy.core.config import config

    print(config.imagen4_model)
    print(config.is_development)

    # Configuration is frozen after initialization
    # To change values, set environment variables and restart

Secrets
-------
None of the credentials have defaults.  A proxy started without
``internal_secret`` rejects every request with 403, and one started without
``vertex_key`` answers generation requests with 401.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STYLE_TEMPLATE = 'Generate an image in the style of "{style}". {prompt}'


def normalise_origin(origin: str) -> str:
    return origin.rstrip("/")


class ProxyConfig(BaseSettings):
    """Main configuration for Gen-Proxy.

    Values are loaded from environment variables with the GENPROXY_ prefix,
    with fallback to the defaults defined here.  Instances are frozen: the
    configuration is read once at process start and then only passed around.

    Attributes
    ----------
    Secrets:
        internal_secret : str | None
            Shared secret expected in the ``x-api-secret`` request header
        vertex_key : str | None
            API key for the Imagen and Gemini image model families
        gemini_api_key : str | None
            API key for the text proxy (falls back to ``vertex_key``)

    Ingress:
        allowed_origins : list[str]
            Browser origins accepted by the gate and the CORS layer
        environment : Literal["development", "production"]
            Only "development" exposes raw upstream error text to clients

    Upstream:
        upstream_timeout : float
            Seconds to wait for one upstream call
        imagen4_model, imagen3_model, inline_image_model, text_model : str
            Model identifiers bound to the generation routes
        style_template : str
            Template combining ``{style}`` and ``{prompt}``
        text_top_k, text_top_p, text_max_output_tokens
            Sampling settings sent with every text-generation request

    Server:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Port for uvicorn
        log_level : str
            Root logging level configured by ``main()``
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GENPROXY_",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    # Secrets
    internal_secret: str | None = Field(
        default=None,
        description="Shared secret required in the x-api-secret header",
    )
    vertex_key: str | None = Field(
        default=None,
        description="API key for the image generation model families",
    )
    gemini_api_key: str | None = Field(
        default=None,
        description="API key for the text proxy (falls back to vertex_key)",
    )

    # Ingress
    allowed_origins: list[str] = Field(
        default=[
            "http://localhost:5173",
            "http://localhost:5174",
            "http://localhost:5175",
            "http://localhost:5176",
        ],
        description="Browser origins allowed to call the proxy",
    )
    environment: Literal["development", "production"] = Field(
        default="production",
        description="Deployment mode (development exposes upstream error detail)",
    )

    # Upstream
    upstream_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for a single upstream call",
        gt=0,
    )
    imagen4_model: str = Field(default="imagen-4.0-generate-preview-06-06")
    imagen3_model: str = Field(default="imagen-3.0-generate-001")
    inline_image_model: str = Field(default="gemini-2.0-flash-preview-image-generation")
    text_model: str = Field(default="gemini-2.5-flash")
    style_template: str = Field(
        default=DEFAULT_STYLE_TEMPLATE,
        description="Template used when a style is supplied ({style} and {prompt})",
    )
    text_top_k: int = Field(default=40, ge=1)
    text_top_p: float = Field(default=0.95, gt=0, le=1)
    text_max_output_tokens: int = Field(default=8192, ge=1)

    # Server
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=3000,
        description="Server port",
        ge=1,
        le=65535,
    )
    log_level: str = Field(default="INFO")

    @field_validator("allowed_origins")
    @classmethod
    def _strip_trailing_slash(cls, value: list[str]) -> list[str]:
        """Browsers send origins without a trailing slash."""
        return [normalise_origin(o) for o in value]

    @property
    def is_development(self) -> bool:
        """Whether raw upstream error text may be returned to clients."""
        return self.environment == "development"

    @property
    def text_api_key(self) -> str | None:
        """Credential used by the text proxy."""
        return self.gemini_api_key or self.vertex_key


# Global configuration instance
# Loads values from environment variables (GENPROXY_* prefix) and .env file.
config = ProxyConfig()
