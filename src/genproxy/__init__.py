"""Gen-Proxy - authenticated proxy for Gemini and Imagen generation APIs."""

__version__ = "0.3.0"

from genproxy.core.config import ProxyConfig, config

__all__ = [
    "ProxyConfig",
    "config",
]
