"""Ingress gate: shared-secret and origin checks.

:class:`ApiSecretMiddleware` is installed as the outermost middleware, so it
runs before CORS handling, body parsing and every route.  A request passes
only if

1. its ``Origin`` header is absent (curl, server-to-server, mobile apps) or
   listed in ``allowed_origins``, and
2. its ``x-api-secret`` header equals the configured ``internal_secret``.

CORS preflights (``OPTIONS`` with ``Access-Control-Request-Method``) from an
allowed origin skip the secret check, since browsers never attach custom
headers to a preflight.  They are answered by the CORS middleware and never
reach a route.
"""

from __future__ import annotations

import hmac
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from genproxy.core.config import ProxyConfig, normalise_origin
from genproxy.core.errors import AuthorizationError

logger = logging.getLogger(__name__)

SECRET_HEADER = "x-api-secret"


class ApiSecretMiddleware(BaseHTTPMiddleware):
    """Reject requests without the shared secret or from unknown origins."""

    def __init__(self, app, config: ProxyConfig):
        super().__init__(app)
        self._secret = config.internal_secret
        self._allowed_origins = {normalise_origin(o) for o in config.allowed_origins}

    def _secret_matches(self, supplied: str | None) -> bool:
        if not supplied or not self._secret:
            return False
        return hmac.compare_digest(supplied.encode(), self._secret.encode())

    @staticmethod
    def _reject(error: AuthorizationError) -> JSONResponse:
        return JSONResponse(
            status_code=error.status_code,
            content={"error": "Not allowed", "message": error.message},
        )

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")
        if origin is not None and normalise_origin(origin) not in self._allowed_origins:
            logger.warning("Rejected %s %s from origin %s", request.method, request.url.path, origin)
            return self._reject(AuthorizationError("Origin not allowed"))

        if request.method == "OPTIONS" and "access-control-request-method" in request.headers:
            return await call_next(request)

        if not self._secret_matches(request.headers.get(SECRET_HEADER)):
            logger.warning("Rejected %s %s: bad or missing secret", request.method, request.url.path)
            return self._reject(AuthorizationError(f"Missing or invalid {SECRET_HEADER} header"))

        return await call_next(request)
