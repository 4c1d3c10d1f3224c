"""Single-shot fetch of the claude.ai usage endpoint."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx
import msgspec

from claudemeter.config.settings import Config
from claudemeter.config.settings import DEFAULT_BASE_URL
from claudemeter.core.clock import Clock
from claudemeter.core.clock import SystemClock
from claudemeter.core.http import DEFAULT_USER_AGENT
from claudemeter.core.http import get_http_client
from claudemeter.core.outcomes import AuthFailure
from claudemeter.core.outcomes import FetchOutcome
from claudemeter.core.outcomes import MalformedResponse
from claudemeter.core.outcomes import Success
from claudemeter.core.outcomes import TransientFailure
from claudemeter.core.outcomes import body_preview
from claudemeter.errors.challenge import DEFAULT_CHALLENGE_MARKERS
from claudemeter.errors.challenge import find_challenge_marker
from claudemeter.errors.classify import classify_exception
from claudemeter.errors.types import classify_http_error
from claudemeter.models import Credentials
from claudemeter.models import LimitKind
from claudemeter.models import UsageLimit
from claudemeter.models import UsageSnapshot

logger = logging.getLogger(__name__)

USAGE_PATH_TEMPLATE = "/api/organizations/{org_id}/usage"

# Keys whose shape is validated strictly. Other keys are kept when they look
# like a limit and ignored otherwise, since the API adds fields over time.
STRICT_LIMIT_KEYS = frozenset(
    {
        LimitKind.FIVE_HOUR,
        LimitKind.SEVEN_DAY,
        LimitKind.SEVEN_DAY_SONNET,
        LimitKind.SEVEN_DAY_OPUS,
    }
)


class _WireLimit(msgspec.Struct):
    utilization: float
    resets_at: str | None = None


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp (fractional seconds allowed) as UTC.

    Raises:
        ValueError: If the value is not a valid timestamp.
    """
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _parse_limit(key: str, value: Any) -> UsageLimit:
    wire = msgspec.convert(value, type=_WireLimit)
    resets_at = None
    if wire.resets_at:
        resets_at = parse_timestamp(wire.resets_at)
    return UsageLimit(key=key, utilization=wire.utilization, resets_at=resets_at)


def parse_usage_response(body: str | bytes, fetched_at: datetime) -> UsageSnapshot:
    """Parse the usage endpoint's JSON body into a snapshot.

    Expected format:
    {
        "five_hour": {"utilization": 12.0, "resets_at": "2025-01-15T17:00:00.123+00:00"},
        "seven_day": {"utilization": 40.5, "resets_at": null},
        "seven_day_opus": null,
        ...
    }

    Raises:
        msgspec.DecodeError: If the body is not JSON.
        msgspec.ValidationError: If a known limit has the wrong shape.
        ValueError: If the body is not an object or a timestamp is invalid.
    """
    data = msgspec.json.decode(body)
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")

    limits = []
    for key, value in data.items():
        if value is None:
            continue
        if key in STRICT_LIMIT_KEYS:
            try:
                limits.append(_parse_limit(key, value))
            except msgspec.ValidationError as e:
                raise msgspec.ValidationError(f"{key}: {e}") from e
            except ValueError as e:
                raise ValueError(f"{key}: {e}") from e
            continue
        try:
            limits.append(_parse_limit(key, value))
        except (msgspec.ValidationError, ValueError):
            logger.debug("Ignoring non-limit field %r in usage response", key)

    return UsageSnapshot(fetched_at=fetched_at, limits=tuple(limits))


def _extract_error_detail(body: str | None) -> str | None:
    """Pull a message out of a JSON error body, if there is one."""
    if not body:
        return None
    try:
        data = msgspec.json.decode(body)
    except msgspec.DecodeError:
        return body_preview(body).strip() or None
    if isinstance(data, dict):
        error = data.get("error", data.get("message", data.get("detail")))
        if isinstance(error, str):
            return error
        if isinstance(error, dict):
            for nested_key in ("message", "type", "description"):
                if isinstance(error.get(nested_key), str):
                    return error[nested_key]
    return None


class UsageFetcher:
    """Perform one authenticated request and classify the result.

    The fetcher never retries and never touches polling state; it only turns
    an HTTP exchange into a FetchOutcome.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str | None = None,
        challenge_markers: Iterable[str] = DEFAULT_CHALLENGE_MARKERS,
        timeout: float | None = None,
        clock: Clock | None = None,
    ):
        self._client = client
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.challenge_markers = tuple(challenge_markers)
        self.timeout = timeout
        self._clock = clock or SystemClock()

    @classmethod
    def from_config(
        cls,
        config: Config,
        client: httpx.AsyncClient | None = None,
        clock: Clock | None = None,
    ) -> UsageFetcher:
        return cls(
            client,
            base_url=config.polling.base_url,
            user_agent=config.polling.user_agent,
            challenge_markers=config.anti_bot.markers,
            timeout=config.polling.timeout,
            clock=clock,
        )

    def usage_url(self, organization_id: str) -> str:
        path = USAGE_PATH_TEMPLATE.format(org_id=quote(organization_id, safe=""))
        return f"{self.base_url}{path}"

    def build_headers(self, credentials: Credentials) -> dict[str, str]:
        return {
            "Cookie": f"sessionKey={credentials.session_token}",
            "Accept": "application/json",
            "Cache-Control": "no-cache",
            "User-Agent": self.user_agent,
        }

    async def fetch(self, credentials: Credentials) -> FetchOutcome:
        """Fetch usage once and classify the outcome."""
        url = self.usage_url(credentials.organization_id)
        headers = self.build_headers(credentials)
        kwargs = {"headers": headers}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout

        try:
            if self._client is not None:
                response = await self._client.get(url, **kwargs)
            else:
                async with get_http_client() as client:
                    response = await client.get(url, **kwargs)
        except httpx.HTTPError as e:
            classified = classify_exception(e)
            logger.debug(
                "Usage request failed (%s): %s",
                classified.category,
                classified.details or classified.message,
            )
            return TransientFailure(reason=classified.message)

        return self.classify_response(response.status_code, response.text)

    def classify_response(self, status_code: int, body: str | None) -> FetchOutcome:
        """Map a status code and body to a FetchOutcome."""
        mapping = classify_http_error(status_code) if status_code != 200 else None

        if mapping is not None and mapping.may_be_challenge:
            marker = find_challenge_marker(body, self.challenge_markers)
            if marker is not None:
                return TransientFailure(
                    reason=f"Anti-bot challenge (HTTP {status_code}, matched {marker!r})",
                    anti_bot=True,
                    status_code=status_code,
                )
            return AuthFailure(
                status_code=status_code,
                detail=_extract_error_detail(body),
            )

        if mapping is not None:
            return TransientFailure(
                reason=f"HTTP {status_code} from usage endpoint ({mapping.category})",
                status_code=status_code,
            )

        if not body:
            return MalformedResponse(detail="Empty response body")

        try:
            snapshot = parse_usage_response(body, fetched_at=self._clock.now())
        except (msgspec.DecodeError, ValueError) as e:
            marker = find_challenge_marker(body, self.challenge_markers)
            if marker is not None:
                return TransientFailure(
                    reason=f"Anti-bot challenge (HTTP 200, matched {marker!r})",
                    anti_bot=True,
                    status_code=status_code,
                )
            return MalformedResponse(
                detail=classify_exception(e).message,
                body_preview=body_preview(body),
            )

        return Success(snapshot=snapshot)
