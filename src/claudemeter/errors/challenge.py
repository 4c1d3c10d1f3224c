"""Detection of anti-bot interstitial pages.

Cloudflare answers blocked clients with an HTML challenge page, often with
a 401 or 403 status that would otherwise look like an expired session. The
markers below are matched case-sensitively against the response body.
"""

from __future__ import annotations

from collections.abc import Iterable

DEFAULT_CHALLENGE_MARKERS: tuple[str, ...] = (
    "Just a moment",
    "challenge-platform",
    "_cf_chl_opt",
    "cf-browser-verification",
)


def find_challenge_marker(
    body: str | None,
    markers: Iterable[str] = DEFAULT_CHALLENGE_MARKERS,
) -> str | None:
    """Return the first challenge marker found in body, or None."""
    if not body:
        return None
    for marker in markers:
        if marker and marker in body:
            return marker
    return None


def is_challenge_response(
    body: str | None,
    markers: Iterable[str] = DEFAULT_CHALLENGE_MARKERS,
) -> bool:
    """Check whether a response body is an anti-bot challenge page."""
    return find_challenge_marker(body, markers) is not None
