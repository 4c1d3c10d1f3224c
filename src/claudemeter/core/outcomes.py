"""Typed results of a single usage fetch."""

from __future__ import annotations

import msgspec

from claudemeter.models import UsageSnapshot

BODY_PREVIEW_LENGTH = 200


class Success(msgspec.Struct, frozen=True, tag="success"):
    """The endpoint returned a well-formed usage body."""

    snapshot: UsageSnapshot


class TransientFailure(msgspec.Struct, frozen=True, tag="transient"):
    """Network error, unexpected status, or an anti-bot challenge."""

    reason: str
    anti_bot: bool = False  # True when a challenge page was detected
    status_code: int | None = None


class AuthFailure(msgspec.Struct, frozen=True, tag="auth"):
    """The session was rejected by the API itself (not by an anti-bot layer)."""

    status_code: int
    detail: str | None = None


class MalformedResponse(msgspec.Struct, frozen=True, tag="malformed"):
    """A 200 response whose body is not a usage document."""

    detail: str
    body_preview: str = ""


FetchOutcome = Success | TransientFailure | AuthFailure | MalformedResponse


def body_preview(body: str | None) -> str:
    """Return the leading part of a response body for diagnostics."""
    if not body:
        return ""
    return body[:BODY_PREVIEW_LENGTH]


def is_retryable(outcome: FetchOutcome, retry_malformed: bool = True) -> bool:
    """Check whether an outcome should trigger another fetch."""
    if isinstance(outcome, TransientFailure):
        return True
    if isinstance(outcome, MalformedResponse):
        return retry_malformed
    return False


def describe_outcome(outcome: FetchOutcome) -> str:
    """Return a one-line description suitable for the activity log."""
    match outcome:
        case Success(snapshot=snapshot):
            return f"success ({len(snapshot.limits)} limits)"
        case TransientFailure(reason=reason, anti_bot=True):
            return f"blocked by anti-bot challenge: {reason}"
        case TransientFailure(reason=reason):
            return f"transient failure: {reason}"
        case AuthFailure(status_code=status_code):
            return f"session rejected (HTTP {status_code})"
        case MalformedResponse(detail=detail, body_preview=preview):
            if preview:
                return f"malformed response: {detail} | body: {preview}"
            return f"malformed response: {detail}"
    return repr(outcome)
