"""Pace classification and display derivation.

Turns a UsageSnapshot into the fields a renderer shows: whether usage is
ahead of or behind the clock, how much of the window "should" be used by
now, when it resets, and whether other limits still leave room to work.
All functions are pure and take ``now`` explicitly (defaulting to the
current UTC time) so results are reproducible.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC
from datetime import datetime
from datetime import timedelta

from claudemeter.config.settings import StatusConfig
from claudemeter.models import LimitKind
from claudemeter.models import LimitReading
from claudemeter.models import PaceStatus
from claudemeter.models import UsageLimit
from claudemeter.models import UsageSnapshot
from claudemeter.models import ViewData

_DEFAULT_STATUS_CONFIG = StatusConfig()


@dataclass(frozen=True)
class PaceResult:
    """Pace classification for one limit."""

    status: PaceStatus
    expected_usage: float | None = None  # None when the static fallback was used


@dataclass(frozen=True)
class LimitsSummary:
    """Which other limits still have room when the selected one is full."""

    active: bool = False  # selected limit reached the headroom entry threshold
    headroom: tuple[UsageLimit, ...] = ()
    all_limits_exhausted: bool = False

    @property
    def note(self) -> str | None:
        """Return e.g. "7d: 34%  opus: 12%", or None without headroom."""
        if not self.headroom:
            return None
        return "  ".join(
            f"{limit.short_label}: {int(limit.utilization)}%" for limit in self.headroom
        )


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _now(now: datetime | None) -> datetime:
    return _utc(now) if now is not None else datetime.now(UTC)


def static_status(
    utilization: float,
    config: StatusConfig = _DEFAULT_STATUS_CONFIG,
) -> PaceStatus:
    """Classify by fixed thresholds when no usable reset time is known."""
    if utilization >= config.exceeding_threshold:
        return PaceStatus.EXCEEDING
    if utilization >= config.borderline_threshold:
        return PaceStatus.BORDERLINE
    return PaceStatus.ON_TRACK


def classify_against_expected(
    utilization: float,
    expected: float,
    margin: float = _DEFAULT_STATUS_CONFIG.pace_margin,
) -> PaceStatus:
    """Compare utilization with expected usage; both boundaries are borderline."""
    if utilization < expected - margin:
        return PaceStatus.ON_TRACK
    if utilization <= expected + margin:
        return PaceStatus.BORDERLINE
    return PaceStatus.EXCEEDING


def expected_usage(
    resets_at: datetime | None,
    window: timedelta | None,
    now: datetime | None = None,
) -> float | None:
    """Percentage of the window that has elapsed.

    Returns None when the reset time is unknown or when ``now`` does not fall
    inside ``(resets_at - window, resets_at]``, i.e. the reset timestamp is
    stale or inconsistent with the window.
    """
    if resets_at is None or window is None or window <= timedelta(0):
        return None

    remaining = _utc(resets_at) - _now(now)
    if remaining < timedelta(0) or remaining >= window:
        return None

    elapsed = window - remaining
    return elapsed.total_seconds() * 100.0 / window.total_seconds()


def classify_pace(
    utilization: float,
    resets_at: datetime | None,
    window: timedelta | None,
    now: datetime | None = None,
    config: StatusConfig = _DEFAULT_STATUS_CONFIG,
) -> PaceResult:
    """Classify consumption pace for one limit.

    Falls back to static thresholds whenever the expected usage cannot be
    computed.
    """
    expected = expected_usage(resets_at, window, now)
    if expected is None:
        return PaceResult(status=static_status(utilization, config))

    status = classify_against_expected(utilization, expected, config.pace_margin)
    return PaceResult(status=status, expected_usage=expected)


def summarize_limits(
    snapshot: UsageSnapshot,
    selected: LimitKind | str,
    config: StatusConfig = _DEFAULT_STATUS_CONFIG,
) -> LimitsSummary:
    """Find other windowed limits with room left once the selected one is full.

    Only limits with a fixed window take part; spend-style entries such as
    extra usage do not block work and are ignored.
    """
    selected_key = str(selected)
    current = snapshot.get(selected_key)
    if current is None or current.utilization < config.headroom_entry:
        return LimitsSummary()

    headroom = tuple(
        limit
        for limit in snapshot
        if limit.key != selected_key
        and limit.window is not None
        and limit.utilization < config.headroom_cutoff
    )
    return LimitsSummary(
        active=True,
        headroom=headroom,
        all_limits_exhausted=not headroom,
    )


def humanize_reset(
    resets_at: datetime | str | None,
    now: datetime | None = None,
) -> str:
    """Render time until reset as a coarse duration.

    Examples: "3 days", "1 day", "2h 5m", "4h", "12m", "less than a minute".
    Past, missing, or unparseable timestamps render as "imminent".
    """
    if isinstance(resets_at, str):
        try:
            resets_at = datetime.fromisoformat(resets_at.strip())
        except ValueError:
            return "imminent"
    if resets_at is None:
        return "imminent"

    seconds = (_utc(resets_at) - _now(now)).total_seconds()
    if seconds <= 0:
        return "imminent"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)

    if hours >= 24:
        days = hours // 24
        return f"{days} day" if days == 1 else f"{days} days"
    if hours > 0:
        return f"{hours}h {minutes}m" if minutes else f"{hours}h"
    if minutes > 0:
        return f"{minutes}m"
    return "less than a minute"


def headline(
    utilization: float,
    status: PaceStatus,
    all_limits_exhausted: bool = False,
) -> str:
    """Short sentence summarizing the selected limit."""
    if utilization >= 100:
        if all_limits_exhausted:
            return "All limits reached, wait for reset"
        return "This window is recovering"

    match status:
        case PaceStatus.ON_TRACK:
            if utilization < 30:
                return "Plenty of room"
            return "On track"
        case PaceStatus.BORDERLINE:
            return "On pace, be mindful"
        case PaceStatus.EXCEEDING:
            if utilization >= 90:
                return "Almost out, slow down"
            return "Above pace, slow down"


def format_utilization(value: float) -> str:
    """Format a percentage without decimals."""
    return f"{value:.0f}"


def describe_limit(limit: UsageLimit, now: datetime | None = None) -> str:
    """Return "expected%, time-to-reset" for a limit, e.g. "60%, 2h"."""
    if limit.resets_at is None:
        return "?%, unknown reset"
    expected = expected_usage(limit.resets_at, limit.window, now)
    expected_str = format_utilization(expected) if expected is not None else "?"
    return f"{expected_str}%, {humanize_reset(limit.resets_at, now)}"


def summarize_snapshot(snapshot: UsageSnapshot) -> str:
    """Diagnostic one-liner such as "5h:12.0% | 7d:40.5%"."""
    parts = [f"{limit.short_label}:{limit.utilization:.1f}%" for limit in snapshot]
    return " | ".join(parts) if parts else "no limits"


def build_view(
    snapshot: UsageSnapshot,
    metric: LimitKind,
    now: datetime | None = None,
    config: StatusConfig = _DEFAULT_STATUS_CONFIG,
) -> ViewData | None:
    """Derive display data for the selected metric.

    Returns None when the snapshot does not contain the selected limit.
    """
    limit = snapshot.get(metric)
    if limit is None:
        return None

    now = _now(now)
    pace = classify_pace(limit.utilization, limit.resets_at, metric.window, now, config)
    summary = summarize_limits(snapshot, metric, config)

    if limit.resets_at is not None:
        reset_in = humanize_reset(limit.resets_at, now)
    else:
        reset_in = "unknown"

    return ViewData(
        metric=metric,
        metric_name=metric.label,
        short_label=metric.short_label,
        utilization=limit.utilization,
        status=pace.status,
        reset_in=reset_in,
        headline=headline(limit.utilization, pace.status, summary.all_limits_exhausted),
        fetched_at=snapshot.fetched_at,
        expected_usage=pace.expected_usage,
        resets_at=limit.resets_at,
        other_limits=tuple(
            LimitReading(
                key=other.key,
                label=other.short_label,
                utilization=other.utilization,
            )
            for other in summary.headroom
        ),
        other_limits_note=summary.note,
        all_limits_exhausted=summary.all_limits_exhausted,
    )
