"""Core functionality for Gen-Proxy.

This package holds everything that talks to, or reasons about, the upstream
generative AI service:

- **config.py**: Environment-based configuration using Pydantic Settings,
  prefixed with GENPROXY_ and frozen after load
- **errors.py**: Error taxonomy and substring-based upstream classification
- **dispatcher.py**: Model families, response decoding and the
  ``google-genai`` calls for image generation
- **text_client.py**: REST text generation over ``httpx``

The HTTP layer in :mod:`genproxy.api` only validates input, calls into this
package and renders the results.
"""

from genproxy.core.config import ProxyConfig, config
from genproxy.core.dispatcher import GenerationDispatcher, GenerationResult, ModelFamily
from genproxy.core.errors import ProxyError, classify_upstream_error
from genproxy.core.text_client import GeminiTextClient, TextGenerationError

__all__ = [
    "GeminiTextClient",
    "GenerationDispatcher",
    "GenerationResult",
    "ModelFamily",
    "ProxyConfig",
    "ProxyError",
    "TextGenerationError",
    "classify_upstream_error",
    "config",
]
