"""Data models for claudemeter.

Defines the immutable structures that flow from the fetcher through the
status engine to the renderer.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from datetime import timedelta
from enum import StrEnum

import msgspec


class LimitKind(StrEnum):
    """Rate limits reported by the usage endpoint, keyed by wire name."""

    FIVE_HOUR = "five_hour"
    SEVEN_DAY = "seven_day"
    SEVEN_DAY_SONNET = "seven_day_sonnet"
    SEVEN_DAY_OPUS = "seven_day_opus"
    SEVEN_DAY_OAUTH_APPS = "seven_day_oauth_apps"
    EXTRA_USAGE = "extra_usage"

    @property
    def window(self) -> timedelta | None:
        """Return the duration of the limit's window, if it has a fixed one."""
        return window_for_key(self.value)

    @property
    def label(self) -> str:
        """Return the long display name."""
        match self:
            case LimitKind.FIVE_HOUR:
                return "5-hour Limit"
            case LimitKind.SEVEN_DAY:
                return "7-day Limit (All Models)"
            case LimitKind.SEVEN_DAY_SONNET:
                return "7-day Limit (Sonnet)"
            case LimitKind.SEVEN_DAY_OPUS:
                return "7-day Limit (Opus)"
            case LimitKind.SEVEN_DAY_OAUTH_APPS:
                return "7-day Limit (OAuth Apps)"
            case LimitKind.EXTRA_USAGE:
                return "Extra Usage"

    @property
    def short_label(self) -> str:
        """Return the compact label used in summaries."""
        match self:
            case LimitKind.FIVE_HOUR:
                return "5h"
            case LimitKind.SEVEN_DAY:
                return "7d"
            case LimitKind.SEVEN_DAY_SONNET:
                return "sonnet"
            case LimitKind.SEVEN_DAY_OPUS:
                return "opus"
            case LimitKind.SEVEN_DAY_OAUTH_APPS:
                return "apps"
            case LimitKind.EXTRA_USAGE:
                return "extra"

    @classmethod
    def parse(cls, value: str) -> LimitKind:
        """Resolve a wire key, enum name or camelCase alias to a LimitKind.

        Raises:
            ValueError: If the value names no known limit.
        """
        normalized = value.strip()
        aliases = {
            "fiveHour": cls.FIVE_HOUR,
            "sevenDay": cls.SEVEN_DAY,
            "sevenDayAll": cls.SEVEN_DAY,
            "sevenDaySonnet": cls.SEVEN_DAY_SONNET,
            "sevenDayOpus": cls.SEVEN_DAY_OPUS,
            "5h": cls.FIVE_HOUR,
            "7d": cls.SEVEN_DAY,
            "sonnet": cls.SEVEN_DAY_SONNET,
            "opus": cls.SEVEN_DAY_OPUS,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized.lower())
        except ValueError:
            pass
        try:
            return cls[normalized.upper()]
        except KeyError:
            raise ValueError(f"Unknown limit: {value!r}") from None


FIVE_HOURS = timedelta(hours=5)
SEVEN_DAYS = timedelta(days=7)


def window_for_key(key: str) -> timedelta | None:
    """Return the window duration implied by a limit key, or None if unknown."""
    if key.startswith("five_hour"):
        return FIVE_HOURS
    if key.startswith("seven_day"):
        return SEVEN_DAYS
    return None


def short_label_for_key(key: str) -> str:
    """Return a compact label for any limit key, known or not."""
    try:
        return LimitKind(key).short_label
    except ValueError:
        return key


class Credentials(msgspec.Struct, frozen=True):
    """Session cookie and organization used to query the usage endpoint."""

    session_token: str
    organization_id: str

    def __repr__(self) -> str:
        return f"Credentials(session_token='***', organization_id={self.organization_id!r})"

    @classmethod
    def from_values(
        cls,
        session_token: str | None,
        organization_id: str | None,
    ) -> Credentials | None:
        """Build credentials, returning None when either value is blank."""
        token = (session_token or "").strip()
        org_id = (organization_id or "").strip()
        if not token or not org_id:
            return None
        return cls(session_token=token, organization_id=org_id)


class UsageLimit(msgspec.Struct, frozen=True):
    """A single rate-limit window as reported upstream."""

    key: str  # Wire key (e.g., "five_hour")
    utilization: float  # Percentage of the window consumed, may exceed 100
    resets_at: datetime | None = None  # When the window resets (UTC)

    @property
    def window(self) -> timedelta | None:
        return window_for_key(self.key)

    @property
    def short_label(self) -> str:
        return short_label_for_key(self.key)


class UsageSnapshot(msgspec.Struct, frozen=True):
    """All limits returned by one successful fetch.

    Behaves like a read-only mapping from limit key to UsageLimit. A new
    snapshot always replaces the previous one wholesale.
    """

    fetched_at: datetime
    limits: tuple[UsageLimit, ...] = ()

    def get(self, key: str | LimitKind) -> UsageLimit | None:
        """Return the limit for a key, or None when the API omitted it."""
        wanted = str(key)
        for limit in self.limits:
            if limit.key == wanted:
                return limit
        return None

    def keys(self) -> tuple[str, ...]:
        return tuple(limit.key for limit in self.limits)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __iter__(self) -> Iterator[UsageLimit]:
        return iter(self.limits)


class PaceStatus(StrEnum):
    """How actual consumption compares with time-proportional consumption."""

    ON_TRACK = "on_track"
    BORDERLINE = "borderline"
    EXCEEDING = "exceeding"


class NoDataReason(StrEnum):
    """Why no usage view can be shown."""

    NEEDS_SETUP = "needs_setup"
    SESSION_EXPIRED = "session_expired"
    LOADING = "loading"
    METRIC_UNAVAILABLE = "metric_unavailable"

    @property
    def message(self) -> str:
        match self:
            case NoDataReason.NEEDS_SETUP:
                return "Session key and organization ID are required"
            case NoDataReason.SESSION_EXPIRED:
                return "Session expired, provide a new session key"
            case NoDataReason.LOADING:
                return "Loading usage data"
            case NoDataReason.METRIC_UNAVAILABLE:
                return "The selected limit is not reported for this account"


class LimitReading(msgspec.Struct, frozen=True):
    """A compact utilization reading for a limit other than the selected one."""

    key: str
    label: str
    utilization: float


class ViewData(msgspec.Struct, frozen=True, tag="view"):
    """Everything a renderer needs to display the selected metric."""

    metric: LimitKind
    metric_name: str
    short_label: str
    utilization: float
    status: PaceStatus
    reset_in: str  # Humanized time until reset
    headline: str
    fetched_at: datetime
    expected_usage: float | None = None
    resets_at: datetime | None = None
    other_limits: tuple[LimitReading, ...] = ()
    other_limits_note: str | None = None
    all_limits_exhausted: bool = False


class NoData(msgspec.Struct, frozen=True, tag="no_data"):
    """Explicit marker that no usage view is available, and why."""

    reason: NoDataReason
    message: str = ""

    @classmethod
    def of(cls, reason: NoDataReason) -> NoData:
        return cls(reason=reason, message=reason.message)


StateUpdate = ViewData | NoData
