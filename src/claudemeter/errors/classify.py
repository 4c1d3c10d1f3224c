"""Exception classification for structured error handling."""

from __future__ import annotations

import asyncio
import json

import httpx
import msgspec

from claudemeter.errors.types import ClassifiedError
from claudemeter.errors.types import ErrorCategory


def classify_network_error(error: httpx.HTTPError) -> ClassifiedError:
    """Classify transport-level httpx errors."""
    if isinstance(error, httpx.ConnectTimeout):
        return ClassifiedError(
            message="Connection timed out",
            category=ErrorCategory.NETWORK,
        )

    if isinstance(error, httpx.TimeoutException):
        return ClassifiedError(
            message="Request timed out",
            category=ErrorCategory.NETWORK,
        )

    if isinstance(error, httpx.ConnectError):
        message = str(error)
        lowered = message.lower()
        if "connection refused" in lowered:
            text = "Connection refused by server"
        elif "dns" in lowered or "name or service" in lowered or "nodename" in lowered:
            text = "Could not resolve server address"
        else:
            text = "Failed to connect to server"
        return ClassifiedError(
            message=text,
            category=ErrorCategory.NETWORK,
            details={"error": message} if message else None,
        )

    return ClassifiedError(
        message=f"Network error: {error}" if str(error) else "Network error",
        category=ErrorCategory.NETWORK,
        details={"type": type(error).__name__},
    )


def classify_exception(e: BaseException) -> ClassifiedError:
    """Classify any exception into a structured error."""

    if isinstance(e, httpx.HTTPError):
        return classify_network_error(e)

    # ValidationError subclasses DecodeError, so it is checked first
    if isinstance(e, msgspec.ValidationError):
        return ClassifiedError(
            message=f"Invalid response format: {e}",
            category=ErrorCategory.PARSE,
        )

    if isinstance(e, (json.JSONDecodeError, msgspec.DecodeError)):
        return ClassifiedError(
            message="Failed to parse response",
            category=ErrorCategory.PARSE,
            details={"error": str(e)},
        )

    if isinstance(e, (KeyError, ValueError, TypeError)):
        return ClassifiedError(
            message=f"Invalid response format: {e}",
            category=ErrorCategory.PARSE,
        )

    if isinstance(e, asyncio.TimeoutError):
        return ClassifiedError(
            message="Operation timed out",
            category=ErrorCategory.NETWORK,
        )

    return ClassifiedError(
        message=str(e) or type(e).__name__,
        category=ErrorCategory.UNKNOWN,
        details={"type": type(e).__name__},
    )
