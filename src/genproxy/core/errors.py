"""Error taxonomy and upstream failure classification.

Every failure the proxy reports to a client is a :class:`ProxyError`.  Local
failures (bad secret, malformed body, missing image) are raised directly as
the matching subclass.  Failures that originate upstream arrive as arbitrary
exceptions and are mapped onto the taxonomy by
:func:`classify_upstream_error`.

Classification
--------------
The upstream SDK does not expose a stable error code for the conditions the
frontend cares about, so the mapping inspects the exception text for
case-sensitive substrings.  :data:`ERROR_RULES` is evaluated top to bottom
and the first match wins:

================================  ======  ================================
Substring                         Status  Error
================================  ======  ================================
``API key`` / ``authentication``  401     :class:`UpstreamAuthError`
``billing``                       402     :class:`BillingError`
``quota``                         429     :class:`QuotaError`
``model``                         400     :class:`ModelUnavailableError`
``404``                           404     :class:`ModelUnavailableError`
(none)                            500     :class:`GenericUpstreamError`
================================  ======  ================================

The order is part of the public behaviour.  Upstream wording is not
contractually stable, and a "not found" message that also names the model
resolves to 400 rather than 404.  Clients depend on this precedence, so it
is kept as is.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NamedTuple

if TYPE_CHECKING:
    from genproxy.core.dispatcher import ModelFamily


class ProxyError(Exception):
    """Base class for every error rendered as a JSON response.

    Attributes:
        status_code: HTTP status returned to the client.
        category: Stable machine-readable category name.
        message: User-facing error text (the ``error`` field).
        details: Raw upstream text, only exposed in development mode.
        model: Upstream model identifier in use when the error occurred.
    """

    status_code: int = 500
    category: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        details: str | None = None,
        model: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.model = model
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self, include_details: bool = False) -> dict[str, Any]:
        """Render the JSON body for this error.

        Args:
            include_details: Whether to include the raw upstream text.

        Returns:
            Dictionary with ``error`` and ``category`` keys, plus
            ``details`` and ``model`` when available.
        """
        payload: dict[str, Any] = {"error": self.message, "category": self.category}
        if include_details and self.details:
            payload["details"] = self.details
        if self.model:
            payload["model"] = self.model
        return payload


class AuthorizationError(ProxyError):
    """Missing or wrong shared secret, or a disallowed origin."""

    status_code = 403
    category = "forbidden"


class ValidationError(ProxyError):
    """Malformed request input."""

    status_code = 400
    category = "invalid_request"


class UpstreamAuthError(ProxyError):
    status_code = 401
    category = "invalid_credentials"


class BillingError(ProxyError):
    status_code = 402
    category = "billing_not_enabled"


class QuotaError(ProxyError):
    status_code = 429
    category = "quota_exceeded"


class ModelUnavailableError(ProxyError):
    """The model is disabled for the project (400) or absent in the region (404)."""

    status_code = 400
    category = "model_unavailable"


class NoImageProduced(ProxyError):
    """The upstream call succeeded but carried no image payload."""

    status_code = 500
    category = "no_image_produced"


class GenericUpstreamError(ProxyError):
    status_code = 500
    category = "upstream_failure"


class ErrorRule(NamedTuple):
    """One row of the classification table."""

    substrings: tuple[str, ...]
    status_code: int
    error_class: type[ProxyError]
    message: str


ERROR_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(
        ("API key", "authentication"),
        401,
        UpstreamAuthError,
        "Invalid upstream API key or authentication failed",
    ),
    ErrorRule(
        ("billing",),
        402,
        BillingError,
        "{label} requires a paid Google Cloud account with billing enabled.",
    ),
    ErrorRule(("quota",), 429, QuotaError, "API quota exceeded"),
    ErrorRule(
        ("model",),
        400,
        ModelUnavailableError,
        "{label} model not available. Check if it's enabled in your project.",
    ),
    ErrorRule(
        ("404",),
        404,
        ModelUnavailableError,
        "{label} model not found. It might not be available in your region.",
    ),
)

GENERIC_MESSAGE = "Failed to generate image with {label}."


def classify_upstream_error(exc: BaseException, family: ModelFamily) -> ProxyError:
    """Map an upstream failure onto the error taxonomy.

    Exceptions that are already :class:`ProxyError` instances are returned
    unchanged with the family's model filled in.

    Args:
        exc: The exception raised while talking to the upstream service.
        family: Model family that was in use.

    Returns:
        A :class:`ProxyError` subclass instance ready to be raised.
    """
    if isinstance(exc, ProxyError):
        if exc.model is None:
            exc.model = family.model_id
        return exc

    text = str(exc) or type(exc).__name__
    for rule in ERROR_RULES:
        if any(s in text for s in rule.substrings):
            return rule.error_class(
                rule.message.format(label=family.label),
                details=text,
                model=family.model_id,
                status_code=rule.status_code,
            )

    return GenericUpstreamError(
        GENERIC_MESSAGE.format(label=family.label),
        details=text,
        model=family.model_id,
    )
