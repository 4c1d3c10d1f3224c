"""Error handling for claudemeter."""

from claudemeter.errors.challenge import (
    DEFAULT_CHALLENGE_MARKERS,
    find_challenge_marker,
    is_challenge_response,
)
from claudemeter.errors.classify import classify_exception, classify_network_error
from claudemeter.errors.types import (
    HTTP_ERROR_MAPPINGS,
    ClaudemeterError,
    ClassifiedError,
    ConfigError,
    ErrorCategory,
    HTTPErrorMapping,
    classify_http_error,
)

__all__ = [
    # Core types
    "ErrorCategory",
    "ClassifiedError",
    "ClaudemeterError",
    "ConfigError",
    "HTTPErrorMapping",
    "HTTP_ERROR_MAPPINGS",
    # Classification functions
    "classify_http_error",
    "classify_exception",
    "classify_network_error",
    # Anti-bot detection
    "DEFAULT_CHALLENGE_MARKERS",
    "find_challenge_marker",
    "is_challenge_response",
]
