"""
Tests for error translation.
"""

from unittest.mock import MagicMock

import pytest
import requests

from inbox_classifier.errors import (
    CredentialError,
    ProviderError,
    ProviderErrorKind,
    ProviderUnavailableError,
    RateLimitError,
    TransportError,
    ValidationError,
    extract_error_code,
    extract_status,
    translate_mailbox_exception,
    translate_provider_exception,
)


class FakeSDKError(Exception):
    """Exception shaped like the ones raised by provider SDKs."""

    def __init__(self, message="", status_code=None, code=None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


def _http_error(status: int) -> requests.HTTPError:
    response = MagicMock()
    response.status_code = status
    return requests.HTTPError(f"{status} error", response=response)


def test_status_codes_of_error_classes() -> None:
    assert ValidationError("bad").status_code == 400
    assert CredentialError("x").status_code == 401
    assert RateLimitError("x").status_code == 429
    assert ProviderUnavailableError("x").status_code == 500
    assert TransportError("x").status_code == 503
    assert ProviderError("x").status_code == 500
    assert ProviderError("x").kind is ProviderErrorKind.UNKNOWN


def test_extract_status_and_code() -> None:
    assert extract_status(FakeSDKError(status_code=429)) == 429
    assert extract_status(_http_error(502)) == 502
    assert extract_status(ValueError("nope")) is None
    assert extract_error_code(FakeSDKError(code="invalid_api_key")) == "invalid_api_key"


@pytest.mark.parametrize(
    "exc, expected",
    [
        (FakeSDKError("Unauthorized", status_code=401), CredentialError),
        (FakeSDKError("Forbidden", status_code=403), CredentialError),
        (FakeSDKError("x", code="invalid_api_key"), CredentialError),
        (FakeSDKError("Too many", status_code=429), RateLimitError),
        (FakeSDKError("x", code="insufficient_quota"), RateLimitError),
        (FakeSDKError("boom", status_code=503), ProviderUnavailableError),
        (FakeSDKError("x", code="ECONNREFUSED"), TransportError),
        (requests.ConnectionError("refused"), TransportError),
        (requests.Timeout("slow"), TransportError),
        (TimeoutError(), TransportError),
        (RuntimeError("API key not valid. Please pass a valid API key."), CredentialError),
        (RuntimeError("Rate limit reached for requests"), RateLimitError),
        (RuntimeError("The service is overloaded"), ProviderUnavailableError),
        (RuntimeError("Connection error."), TransportError),
    ],
)
def test_translate_provider_exception_kinds(exc, expected) -> None:
    error = translate_provider_exception(exc, "OpenAI")

    assert type(error) is expected
    assert error.provider == "OpenAI"


def test_translated_messages_name_the_provider() -> None:
    error = translate_provider_exception(FakeSDKError(status_code=401), "Gemini")

    assert error.message == "Invalid Gemini API key. Please check your API key and try again."
    assert error.underlying_code == 401


def test_unknown_exception_is_generic_provider_error() -> None:
    error = translate_provider_exception(ValueError("weird"), "Groq")

    assert type(error) is ProviderError
    assert error.status_code == 500
    assert error.message == "Failed to classify emails. Please try again."


def test_provider_errors_pass_through() -> None:
    original = RateLimitError("slow down", provider="OpenAI")

    assert translate_provider_exception(original, "OpenAI") is original


def test_mailbox_403_is_permission_error() -> None:
    error = translate_mailbox_exception(_http_error(403))

    assert isinstance(error, CredentialError)
    assert error.status_code == 403
    assert "Permission denied" in error.message


@pytest.mark.parametrize(
    "status, expected, status_code",
    [
        (401, CredentialError, 401),
        (429, RateLimitError, 429),
        (500, ProviderUnavailableError, 500),
    ],
)
def test_mailbox_http_errors(status, expected, status_code) -> None:
    error = translate_mailbox_exception(_http_error(status))

    assert type(error) is expected
    assert error.status_code == status_code


def test_mailbox_network_error() -> None:
    error = translate_mailbox_exception(requests.ConnectionError("down"))

    assert isinstance(error, TransportError)
    assert error.status_code == 503
    assert error.message == "Network error. Please check your connection."
