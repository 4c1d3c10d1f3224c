"""Tests for core/fetch.py (single usage request and response classification)."""

from __future__ import annotations

import json
import logging
from datetime import UTC
from datetime import datetime
from datetime import timedelta
from datetime import timezone

import httpx
import msgspec
import pytest

from claudemeter.config.settings import AntiBotConfig
from claudemeter.config.settings import Config
from claudemeter.config.settings import PollingConfig
from claudemeter.core.fetch import UsageFetcher
from claudemeter.core.fetch import parse_timestamp
from claudemeter.core.fetch import parse_usage_response
from claudemeter.core.outcomes import BODY_PREVIEW_LENGTH
from claudemeter.core.outcomes import AuthFailure
from claudemeter.core.outcomes import MalformedResponse
from claudemeter.core.outcomes import Success
from claudemeter.core.outcomes import TransientFailure

CHALLENGE_PAGE = "<html><head><title>Just a moment...</title></head><body></body></html>"


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_fractional_seconds(self):
        """Fractional seconds and offsets are accepted."""
        parsed = parse_timestamp("2025-01-15T14:00:00.123456+00:00")
        assert parsed == datetime(2025, 1, 15, 14, 0, 0, 123456, tzinfo=UTC)

    def test_zulu_and_offsets_normalized(self):
        """Z suffixes and other offsets are converted to UTC."""
        assert parse_timestamp("2025-01-15T14:00:00Z").tzinfo == UTC
        parsed = parse_timestamp("2025-01-15T16:00:00+02:00")
        assert parsed == datetime(2025, 1, 15, 14, 0, tzinfo=UTC)

    def test_naive_assumed_utc(self):
        """Timestamps without an offset are treated as UTC."""
        assert parse_timestamp("2025-01-15T14:00:00").tzinfo == UTC

    def test_invalid(self):
        """Garbage raises ValueError."""
        with pytest.raises(ValueError):
            parse_timestamp("next tuesday")


class TestParseUsageResponse:
    """Tests for parse_usage_response."""

    def test_full_body(self, sample_usage_body, utc_now):
        """All non-null limits are parsed."""
        snapshot = parse_usage_response(json.dumps(sample_usage_body), utc_now)

        assert snapshot.fetched_at == utc_now
        assert set(snapshot.keys()) == {
            "five_hour",
            "seven_day",
            "seven_day_opus",
            "seven_day_sonnet",
        }
        five_hour = snapshot.get("five_hour")
        assert five_hour.utilization == 12.0
        assert five_hour.resets_at == datetime(2025, 1, 15, 14, 0, 0, 123456, tzinfo=UTC)
        assert snapshot.get("seven_day_opus").resets_at is None

    def test_null_limits_are_absent(self, sample_usage_body, utc_now):
        """Null values mean the limit does not apply to the account."""
        snapshot = parse_usage_response(json.dumps(sample_usage_body), utc_now)
        assert "seven_day_oauth_apps" not in snapshot
        assert "iguana_necktie" not in snapshot

    def test_unknown_limit_shaped_keys_are_kept(self, utc_now):
        """New limit keys are carried through."""
        body = json.dumps({"seven_day_haiku": {"utilization": 3, "resets_at": None}})
        snapshot = parse_usage_response(body, utc_now)
        assert snapshot.get("seven_day_haiku").utilization == 3.0

    def test_unknown_odd_keys_are_ignored(self, utc_now):
        """Fields that are not limits do not break parsing."""
        body = json.dumps(
            {
                "five_hour": {"utilization": 1, "resets_at": None},
                "iguana_necktie": {"enabled": True},
                "extra_usage": "n/a",
            }
        )
        snapshot = parse_usage_response(body, utc_now)
        assert snapshot.keys() == ("five_hour",)

    def test_empty_object(self, utc_now):
        """An empty object parses to an empty snapshot."""
        assert parse_usage_response("{}", utc_now).keys() == ()

    def test_core_limit_with_wrong_shape(self, utc_now):
        """A malformed core limit is an error."""
        body = json.dumps({"five_hour": {"utilization": "high"}})
        with pytest.raises(msgspec.ValidationError, match="five_hour"):
            parse_usage_response(body, utc_now)

    def test_core_limit_with_bad_timestamp(self, utc_now):
        """An unparseable reset time on a core limit is an error."""
        body = json.dumps({"seven_day": {"utilization": 1, "resets_at": "soon"}})
        with pytest.raises(ValueError, match="seven_day"):
            parse_usage_response(body, utc_now)

    def test_not_json(self, utc_now):
        """HTML bodies raise DecodeError."""
        with pytest.raises(msgspec.DecodeError):
            parse_usage_response("<html></html>", utc_now)

    def test_not_an_object(self, utc_now):
        """Top-level arrays are rejected."""
        with pytest.raises(ValueError, match="JSON object"):
            parse_usage_response("[]", utc_now)


class TestUsageFetcherRequest:
    """Tests for the request UsageFetcher sends."""

    @pytest.mark.asyncio
    async def test_request_shape(
        self, credentials, sample_usage_body, mock_transport_client, clock
    ):
        """URL, cookie and headers match what the endpoint expects."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=sample_usage_body)

        async with mock_transport_client(handler) as client:
            fetcher = UsageFetcher(client, clock=clock)
            outcome = await fetcher.fetch(credentials)

        assert isinstance(outcome, Success)
        assert outcome.snapshot.fetched_at == clock.now()

        request = seen[0]
        assert request.method == "GET"
        assert str(request.url) == "https://claude.ai/api/organizations/org-123/usage"
        assert request.headers["Cookie"] == "sessionKey=sk-ant-sid01-test"
        assert request.headers["Accept"] == "application/json"
        assert request.headers["Cache-Control"] == "no-cache"
        assert "claudemeter" in request.headers["User-Agent"]

    def test_organization_id_is_quoted(self):
        """Organization IDs cannot alter the path."""
        fetcher = UsageFetcher(base_url="https://example.test/")
        assert (
            fetcher.usage_url("a/b c")
            == "https://example.test/api/organizations/a%2Fb%20c/usage"
        )

    def test_from_config(self):
        """Polling settings flow into the fetcher."""
        config = Config(
            polling=PollingConfig(
                base_url="http://localhost:9000", user_agent="test-agent", timeout=3.0
            ),
            anti_bot=AntiBotConfig(markers=("blocked",)),
        )
        fetcher = UsageFetcher.from_config(config)
        assert fetcher.base_url == "http://localhost:9000"
        assert fetcher.user_agent == "test-agent"
        assert fetcher.timeout == 3.0
        assert fetcher.challenge_markers == ("blocked",)

    @pytest.mark.asyncio
    async def test_network_error_is_transient(self, credentials, mock_transport_client, caplog):
        """Transport errors become TransientFailure and are logged with their details."""
        caplog.set_level(logging.DEBUG, logger="claudemeter.core.fetch")

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

        async with mock_transport_client(handler) as client:
            outcome = await UsageFetcher(client).fetch(credentials)

        assert isinstance(outcome, TransientFailure)
        assert not outcome.anti_bot
        assert outcome.reason == "Connection refused by server"
        assert "Usage request failed (network)" in caplog.text
        assert "Connection refused" in caplog.text

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, credentials, mock_transport_client):
        """Timeouts become TransientFailure."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with mock_transport_client(handler) as client:
            outcome = await UsageFetcher(client).fetch(credentials)

        assert outcome == TransientFailure(reason="Request timed out")


class TestClassifyResponse:
    """Tests for UsageFetcher.classify_response."""

    @pytest.fixture
    def fetcher(self, clock) -> UsageFetcher:
        return UsageFetcher(clock=clock)

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_failure(self, fetcher, status):
        """401/403 without a challenge page mean the session is invalid."""
        body = '{"type":"error","error":{"type":"permission_error","message":"Invalid authorization"}}'
        outcome = fetcher.classify_response(status, body)
        assert outcome == AuthFailure(status_code=status, detail="Invalid authorization")

    @pytest.mark.parametrize("status", [401, 403])
    def test_challenge_on_auth_status(self, fetcher, status):
        """401/403 with a challenge page are anti-bot, not auth failures."""
        outcome = fetcher.classify_response(status, CHALLENGE_PAGE)
        assert isinstance(outcome, TransientFailure)
        assert outcome.anti_bot
        assert outcome.status_code == status

    def test_auth_failure_with_empty_body(self, fetcher):
        """Empty 403 bodies are auth failures without detail."""
        assert fetcher.classify_response(403, "") == AuthFailure(status_code=403)

    @pytest.mark.parametrize("status", [429, 500, 503, 404])
    def test_other_statuses_transient(self, fetcher, status):
        """Every other non-200 status is transient."""
        outcome = fetcher.classify_response(status, "oops")
        assert isinstance(outcome, TransientFailure)
        assert not outcome.anti_bot
        assert outcome.status_code == status

    def test_challenge_on_200(self, fetcher):
        """A 200 challenge page is anti-bot, not malformed."""
        outcome = fetcher.classify_response(200, CHALLENGE_PAGE)
        assert isinstance(outcome, TransientFailure)
        assert outcome.anti_bot

    def test_empty_200(self, fetcher):
        """An empty 200 body is malformed."""
        outcome = fetcher.classify_response(200, "")
        assert outcome == MalformedResponse(detail="Empty response body")

    def test_html_200_is_malformed_with_preview(self, fetcher):
        """Non-JSON 200 bodies are malformed and keep a bounded preview."""
        body = "<html>" + "x" * 500 + "</html>"
        outcome = fetcher.classify_response(200, body)
        assert isinstance(outcome, MalformedResponse)
        assert outcome.body_preview == body[:BODY_PREVIEW_LENGTH]
        assert len(outcome.body_preview) == 200

    def test_schema_mismatch_is_malformed(self, fetcher):
        """Wrongly shaped core limits are malformed."""
        outcome = fetcher.classify_response(200, '{"five_hour": {"utilization": []}}')
        assert isinstance(outcome, MalformedResponse)
        assert "five_hour" in outcome.detail

    def test_success_uses_clock(self, fetcher, clock, sample_usage_body):
        """fetched_at comes from the injected clock."""
        clock.advance(90)
        outcome = fetcher.classify_response(200, json.dumps(sample_usage_body))
        assert isinstance(outcome, Success)
        assert outcome.snapshot.fetched_at == datetime(
            2025, 1, 15, 12, 1, 30, tzinfo=timezone.utc
        )
        assert outcome.snapshot.fetched_at - clock.now() == timedelta(0)
