"""Error types and classifications."""

from __future__ import annotations

from enum import StrEnum

import msgspec


class ErrorCategory(StrEnum):
    """Error categories for handling decisions."""

    AUTHENTICATION = "authentication"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    PROVIDER = "provider"
    PARSE = "parse"
    UNKNOWN = "unknown"


class ClassifiedError(msgspec.Struct, frozen=True):
    """Structured description of a failure, suitable for logging."""

    message: str
    category: ErrorCategory
    details: dict | None = None


class ClaudemeterError(Exception):
    """Base class for exceptions raised by claudemeter."""


class ConfigError(ClaudemeterError):
    """Raised when a configuration file cannot be read or validated."""


class HTTPErrorMapping(msgspec.Struct, frozen=True):
    """How to handle an HTTP status code."""

    category: ErrorCategory
    may_be_challenge: bool = False  # Body must be inspected for an anti-bot page


HTTP_ERROR_MAPPINGS: dict[int, HTTPErrorMapping] = {
    # Either a real credential rejection or an anti-bot interstitial
    401: HTTPErrorMapping(
        category=ErrorCategory.AUTHENTICATION,
        may_be_challenge=True,
    ),
    403: HTTPErrorMapping(
        category=ErrorCategory.AUTHENTICATION,
        may_be_challenge=True,
    ),
    429: HTTPErrorMapping(category=ErrorCategory.RATE_LIMITED),
    500: HTTPErrorMapping(category=ErrorCategory.PROVIDER),
    502: HTTPErrorMapping(category=ErrorCategory.PROVIDER),
    503: HTTPErrorMapping(category=ErrorCategory.PROVIDER),
    504: HTTPErrorMapping(category=ErrorCategory.PROVIDER),
}


def classify_http_error(status_code: int) -> HTTPErrorMapping:
    """Classify a non-200 HTTP status code.

    Anything other than 401/403 is retried: the usage endpoint has no other
    status that signals a permanent problem with the credentials.
    """
    if status_code in HTTP_ERROR_MAPPINGS:
        return HTTP_ERROR_MAPPINGS[status_code]

    if 500 <= status_code < 600:
        return HTTPErrorMapping(category=ErrorCategory.PROVIDER)
    return HTTPErrorMapping(category=ErrorCategory.UNKNOWN)
