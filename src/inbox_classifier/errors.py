"""Error taxonomy and provider error translation.

Objective:
    Give every failure that can cross the pipeline boundary a uniform shape
    (message, HTTP-style status, provider name), and translate the many
    exception types raised by SDKs and ``requests`` into that shape.

Taxonomy:
    - :class:`PipelineError`
        - :class:`ValidationError` (400)
        - :class:`ProviderError` (500, unknown kind)
            - :class:`CredentialError` (401 / 403)
            - :class:`RateLimitError` (429)
            - :class:`ProviderUnavailableError` (500)
            - :class:`TransportError` (503)

Translation:
    SDK exceptions are inspected by duck typing (status attributes, error
    codes, message substrings) rather than by importing every SDK's exception
    classes. This keeps the mapping identical for OpenAI, Groq, Gemini and the
    Gmail REST client.
"""

from enum import Enum
from typing import Optional

import requests


class ProviderErrorKind(str, Enum):
    """Why a provider or mailbox call failed."""

    AUTH = "auth"
    QUOTA = "quota"
    UNAVAILABLE = "unavailable"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class PipelineError(Exception):
    """Base class for errors surfaced at the pipeline boundary.

    Attributes:
        message: Human-readable message safe to show to end users.
        status_code: HTTP-style status for callers exposing the pipeline.
        provider: Display name of the provider involved, if any.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        provider: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        if status_code is not None:
            self.status_code = status_code


class ValidationError(PipelineError):
    """Malformed input at the pipeline boundary. Never retried."""

    status_code = 400


class ProviderError(PipelineError):
    """A provider (LLM or mailbox) call failed.

    Attributes:
        kind: Failure kind.
        underlying_code: Status or error code reported by the provider.
    """

    kind: ProviderErrorKind = ProviderErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        provider: Optional[str] = None,
        underlying_code: Optional[object] = None,
        kind: Optional[ProviderErrorKind] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, provider=provider)
        self.underlying_code = underlying_code
        if kind is not None:
            self.kind = kind


class CredentialError(ProviderError):
    """The provider rejected the credential (invalid, expired, missing scope)."""

    status_code = 401
    kind = ProviderErrorKind.AUTH


class RateLimitError(ProviderError):
    """Provider quota or throttling. The caller may retry later."""

    status_code = 429
    kind = ProviderErrorKind.QUOTA


class ProviderUnavailableError(ProviderError):
    """Upstream 5xx or declared service outage."""

    status_code = 500
    kind = ProviderErrorKind.UNAVAILABLE


class TransportError(ProviderError):
    """Network-level failure (timeout, connection refused)."""

    status_code = 503
    kind = ProviderErrorKind.NETWORK


_AUTH_CODES = {"invalid_api_key", "unauthenticated", "permission_denied"}
_QUOTA_CODES = {"rate_limit_exceeded", "insufficient_quota", "resource_exhausted"}
_NETWORK_CODES = {"ECONNREFUSED", "ETIMEDOUT", "ECONNRESET", "ENOTFOUND"}

_AUTH_PHRASES = (
    "incorrect api key",
    "invalid api key",
    "api key not valid",
    "authentication",
    "unauthorized",
)
_QUOTA_PHRASES = ("rate limit", "quota", "too many requests", "resource exhausted")
_UNAVAILABLE_PHRASES = ("server error", "service unavailable", "overloaded")
_NETWORK_PHRASES = ("network", "timeout", "timed out", "connection")


def extract_status(exc: BaseException) -> Optional[int]:
    """Find an HTTP status on an exception raised by an SDK or ``requests``.

    Looks at ``status_code``, ``status``, ``code`` and
    ``response.status_code`` in that order.

    Args:
        exc: Exception to inspect.

    Returns:
        Optional[int]: Status code if one is found.
    """
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def extract_error_code(exc: BaseException) -> Optional[str]:
    """Find a symbolic error code (``invalid_api_key``, ``ETIMEDOUT``...)."""
    for attr in ("code", "status", "type", "errno"):
        value = getattr(exc, attr, None)
        if isinstance(value, str) and value:
            return value
    return None


def _classify_kind(exc: BaseException) -> tuple[ProviderErrorKind, Optional[object]]:
    """Map an arbitrary exception to a :class:`ProviderErrorKind`.

    Returns:
        tuple[ProviderErrorKind, Optional[object]]: Kind and underlying code.
    """
    if isinstance(exc, ProviderError):
        return exc.kind, exc.underlying_code

    status = extract_status(exc)
    code = extract_error_code(exc)
    message = str(exc).lower()
    underlying: Optional[object] = status if status is not None else code

    if status in (401, 403) or (code or "").lower() in _AUTH_CODES:
        return ProviderErrorKind.AUTH, underlying
    if status == 429 or (code or "").lower() in _QUOTA_CODES:
        return ProviderErrorKind.QUOTA, underlying
    if status is not None and status >= 500:
        return ProviderErrorKind.UNAVAILABLE, underlying
    if isinstance(exc, requests.Timeout) or code in _NETWORK_CODES:
        return ProviderErrorKind.NETWORK, underlying
    if isinstance(exc, (requests.ConnectionError, ConnectionError, TimeoutError)):
        return ProviderErrorKind.NETWORK, underlying

    if any(phrase in message for phrase in _AUTH_PHRASES):
        return ProviderErrorKind.AUTH, underlying
    if any(phrase in message for phrase in _QUOTA_PHRASES):
        return ProviderErrorKind.QUOTA, underlying
    if any(phrase in message for phrase in _UNAVAILABLE_PHRASES):
        return ProviderErrorKind.UNAVAILABLE, underlying
    if any(phrase in message for phrase in _NETWORK_PHRASES):
        return ProviderErrorKind.NETWORK, underlying

    return ProviderErrorKind.UNKNOWN, underlying


def translate_provider_exception(exc: BaseException, provider: str) -> ProviderError:
    """Translate an LLM provider exception into the error taxonomy.

    Args:
        exc: Exception raised by the provider SDK.
        provider: Provider display name (e.g. ``"OpenAI"``).

    Returns:
        ProviderError: Translated error; the caller raises it ``from exc``.
    """
    if isinstance(exc, ProviderError):
        return exc

    kind, underlying = _classify_kind(exc)

    if kind is ProviderErrorKind.AUTH:
        return CredentialError(
            f"Invalid {provider} API key. Please check your API key and try again.",
            provider=provider,
            underlying_code=underlying,
        )
    if kind is ProviderErrorKind.QUOTA:
        return RateLimitError(
            f"{provider} API rate limit exceeded. Please try again later or check your quota.",
            provider=provider,
            underlying_code=underlying,
        )
    if kind is ProviderErrorKind.UNAVAILABLE:
        return ProviderUnavailableError(
            f"{provider} service is currently unavailable. Please try again later.",
            provider=provider,
            underlying_code=underlying,
        )
    if kind is ProviderErrorKind.NETWORK:
        return TransportError(
            "Network error occurred. Please check your connection and try again.",
            provider=provider,
            underlying_code=underlying,
        )
    return ProviderError(
        "Failed to classify emails. Please try again.",
        provider=provider,
        underlying_code=underlying,
    )


def translate_mailbox_exception(exc: BaseException, provider: str = "Gmail") -> ProviderError:
    """Translate a mailbox (Gmail) exception into the error taxonomy.

    403 is kept distinct from 401 so callers can tell a missing scope from an
    expired token.

    Args:
        exc: Exception raised while fetching.
        provider: Mailbox provider display name.

    Returns:
        ProviderError: Translated error.
    """
    if isinstance(exc, ProviderError):
        return exc

    kind, underlying = _classify_kind(exc)
    status = extract_status(exc)

    if kind is ProviderErrorKind.AUTH and status == 403:
        return CredentialError(
            f"Permission denied. Please grant {provider} access permissions.",
            status_code=403,
            provider=provider,
            underlying_code=underlying,
        )
    if kind is ProviderErrorKind.AUTH:
        return CredentialError(
            "Authentication failed. Please sign in again.",
            provider=provider,
            underlying_code=underlying,
        )
    if kind is ProviderErrorKind.QUOTA:
        return RateLimitError(
            "Rate limit exceeded. Please try again later.",
            provider=provider,
            underlying_code=underlying,
        )
    if kind is ProviderErrorKind.UNAVAILABLE:
        return ProviderUnavailableError(
            f"{provider} service error. Please try again later.",
            provider=provider,
            underlying_code=underlying,
        )
    if kind is ProviderErrorKind.NETWORK:
        return TransportError(
            "Network error. Please check your connection.",
            provider=provider,
            underlying_code=underlying,
        )
    return ProviderError(
        str(exc) or "Failed to fetch emails",
        provider=provider,
        underlying_code=underlying,
    )
