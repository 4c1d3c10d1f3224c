"""Tests for claudemeter.models data structures."""
from __future__ import annotations

from datetime import timedelta

import msgspec
import pytest

from claudemeter.models import Credentials
from claudemeter.models import LimitKind
from claudemeter.models import NoData
from claudemeter.models import NoDataReason
from claudemeter.models import PaceStatus
from claudemeter.models import StateUpdate
from claudemeter.models import UsageLimit
from claudemeter.models import UsageSnapshot
from claudemeter.models import ViewData
from claudemeter.models import short_label_for_key
from claudemeter.models import window_for_key


class TestLimitKind:
    """Tests for LimitKind enum."""

    def test_values_are_wire_keys(self):
        """Enum values match the keys of the usage response."""
        assert LimitKind.FIVE_HOUR == "five_hour"
        assert LimitKind.SEVEN_DAY == "seven_day"
        assert LimitKind.SEVEN_DAY_SONNET == "seven_day_sonnet"
        assert LimitKind.SEVEN_DAY_OPUS == "seven_day_opus"

    def test_windows(self):
        """Five-hour and seven-day limits have fixed windows."""
        assert LimitKind.FIVE_HOUR.window == timedelta(hours=5)
        assert LimitKind.SEVEN_DAY.window == timedelta(days=7)
        assert LimitKind.SEVEN_DAY_OPUS.window == timedelta(days=7)
        assert LimitKind.EXTRA_USAGE.window is None

    def test_labels(self):
        """Every kind has a long and a short label."""
        assert LimitKind.FIVE_HOUR.label == "5-hour Limit"
        assert LimitKind.SEVEN_DAY.short_label == "7d"
        assert LimitKind.SEVEN_DAY_SONNET.short_label == "sonnet"
        for kind in LimitKind:
            assert kind.label
            assert kind.short_label

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("five_hour", LimitKind.FIVE_HOUR),
            ("FIVE_HOUR", LimitKind.FIVE_HOUR),
            ("fiveHour", LimitKind.FIVE_HOUR),
            ("sevenDay", LimitKind.SEVEN_DAY),
            ("sevenDaySonnet", LimitKind.SEVEN_DAY_SONNET),
            ("opus", LimitKind.SEVEN_DAY_OPUS),
            (" 5h ", LimitKind.FIVE_HOUR),
        ],
    )
    def test_parse_accepts_aliases(self, value, expected):
        """parse understands wire keys, names and camelCase aliases."""
        assert LimitKind.parse(value) is expected

    def test_parse_rejects_unknown(self):
        """parse raises ValueError for unknown limits."""
        with pytest.raises(ValueError, match="Unknown limit"):
            LimitKind.parse("monthly")


class TestKeyHelpers:
    """Tests for window_for_key and short_label_for_key."""

    def test_window_for_unknown_key_uses_prefix(self):
        """Unknown seven_day_* keys still get a seven-day window."""
        assert window_for_key("seven_day_haiku") == timedelta(days=7)
        assert window_for_key("iguana_necktie") is None

    def test_short_label_for_unknown_key(self):
        """Unknown keys are labeled by their key."""
        assert short_label_for_key("five_hour") == "5h"
        assert short_label_for_key("seven_day_haiku") == "seven_day_haiku"


class TestCredentials:
    """Tests for Credentials."""

    def test_from_values_strips(self):
        """Values are stripped."""
        creds = Credentials.from_values("  sk-ant  ", "org-1\n")
        assert creds == Credentials(session_token="sk-ant", organization_id="org-1")

    @pytest.mark.parametrize(
        ("token", "org_id"),
        [("", "org"), ("sk", ""), (None, "org"), ("sk", None), ("   ", "org")],
    )
    def test_from_values_requires_both(self, token, org_id):
        """Missing or blank values produce no credentials."""
        assert Credentials.from_values(token, org_id) is None

    def test_repr_hides_token(self):
        """The session token never appears in repr."""
        creds = Credentials(session_token="sk-secret", organization_id="org-1")
        assert "sk-secret" not in repr(creds)
        assert "org-1" in repr(creds)


class TestUsageLimit:
    """Tests for UsageLimit."""

    def test_window_and_label(self, utc_now):
        """Known keys carry their window length and short label."""
        limit = UsageLimit(key="five_hour", utilization=40.0, resets_at=utc_now)
        assert limit.window == timedelta(hours=5)
        assert limit.short_label == "5h"

    def test_unknown_key_has_no_window(self):
        """Unknown keys have no fixed window and keep their own label."""
        limit = UsageLimit(key="iguana_necktie", utilization=1.0)
        assert limit.window is None
        assert limit.short_label == "iguana_necktie"


class TestUsageSnapshot:
    """Tests for UsageSnapshot."""

    def test_get_by_key_or_kind(self, sample_snapshot):
        """Limits can be looked up by wire key or LimitKind."""
        assert sample_snapshot.get("five_hour").utilization == 12.0
        assert sample_snapshot.get(LimitKind.SEVEN_DAY).utilization == 40.5

    def test_missing_limit(self, sample_snapshot):
        """Absent limits return None and are not contained."""
        assert sample_snapshot.get(LimitKind.EXTRA_USAGE) is None
        assert "extra_usage" not in sample_snapshot
        assert "five_hour" in sample_snapshot

    def test_empty_snapshot_is_truthy(self, utc_now):
        """An empty snapshot is still a snapshot."""
        snapshot = UsageSnapshot(fetched_at=utc_now)
        assert snapshot
        assert snapshot.keys() == ()


class TestStateUpdate:
    """Tests for the ViewData | NoData union."""

    def test_no_data_of_uses_reason_message(self):
        """NoData.of fills in the reason's message."""
        update = NoData.of(NoDataReason.SESSION_EXPIRED)
        assert update.reason is NoDataReason.SESSION_EXPIRED
        assert update.message == NoDataReason.SESSION_EXPIRED.message

    def test_json_round_trip_keeps_tag(self, utc_now):
        """Updates encode with a type tag and decode to the right struct."""
        view = ViewData(
            metric=LimitKind.FIVE_HOUR,
            metric_name=LimitKind.FIVE_HOUR.label,
            short_label="5h",
            utilization=50.0,
            status=PaceStatus.ON_TRACK,
            reset_in="2h",
            headline="On track",
            fetched_at=utc_now,
        )
        encoded = msgspec.json.encode(view)
        assert b'"type":"view"' in encoded

        decoded = msgspec.json.decode(
            msgspec.json.encode(NoData.of(NoDataReason.LOADING)), type=StateUpdate
        )
        assert isinstance(decoded, NoData)
        assert decoded.reason is NoDataReason.LOADING
