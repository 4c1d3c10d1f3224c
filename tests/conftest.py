"""Pytest configuration and shared fixtures for claudemeter tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator

import httpx
import pytest

from claudemeter.config import settings as settings_module
from claudemeter.config.settings import Config, RetryConfig
from claudemeter.core.outcomes import FetchOutcome, Success, TransientFailure
from claudemeter.models import Credentials, UsageLimit, UsageSnapshot


class FakeClock:
    """Clock whose time only moves when told to.

    ``sleep`` records the requested delay, advances the time by it and yields
    to the event loop once, so timers run instantly in tests.
    """

    def __init__(self, start: datetime):
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)

    def set(self, value: datetime) -> None:
        self.current = value


class ScriptedFetcher:
    """Fetcher that replays a list of outcomes, repeating the last one."""

    def __init__(self, *outcomes: FetchOutcome):
        self.outcomes = list(outcomes)
        self.calls: list[Credentials] = []

    async def fetch(self, credentials: Credentials) -> FetchOutcome:
        self.calls.append(credentials)
        index = min(len(self.calls), len(self.outcomes)) - 1
        return self.outcomes[index]


@pytest.fixture(autouse=True)
def isolated_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Path, None, None]:
    """Keep tests away from the real config dir and credentials."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    monkeypatch.setenv("CLAUDEMETER_CONFIG_DIR", str(config_dir))
    for name in (
        "CLAUDE_SESSION_KEY",
        "CLAUDE_ORGANIZATION_ID",
        "CLAUDEMETER_POLL_INTERVAL",
        "CLAUDEMETER_METRIC",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(settings_module, "_config", None)
    yield config_dir


@pytest.fixture
def utc_now() -> datetime:
    """Fixed UTC datetime for consistent testing."""
    return datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(utc_now: datetime) -> FakeClock:
    return FakeClock(utc_now)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(session_token="sk-ant-sid01-test", organization_id="org-123")


@pytest.fixture
def fast_config() -> Config:
    """Default config with deterministic jitter."""
    return Config(retry=RetryConfig(jitter_min=1.0, jitter_max=1.0))


@pytest.fixture
def make_snapshot(utc_now: datetime) -> Callable[..., UsageSnapshot]:
    """Factory building a snapshot from ``key=utilization`` pairs.

    Five-hour limits reset in 2 hours and seven-day limits in 3 days.
    """

    def factory(**utilizations: float) -> UsageSnapshot:
        limits = []
        for key, utilization in utilizations.items():
            if key.startswith("five_hour"):
                resets_at = utc_now + timedelta(hours=2)
            elif key.startswith("seven_day"):
                resets_at = utc_now + timedelta(days=3)
            else:
                resets_at = None
            limits.append(
                UsageLimit(key=key, utilization=utilization, resets_at=resets_at)
            )
        return UsageSnapshot(fetched_at=utc_now, limits=tuple(limits))

    return factory


@pytest.fixture
def sample_snapshot(make_snapshot) -> UsageSnapshot:
    """Snapshot with the four core limits."""
    return make_snapshot(
        five_hour=12.0,
        seven_day=40.5,
        seven_day_sonnet=20.0,
        seven_day_opus=5.0,
    )


@pytest.fixture
def success(sample_snapshot: UsageSnapshot) -> Success:
    return Success(snapshot=sample_snapshot)


@pytest.fixture
def anti_bot_failure() -> TransientFailure:
    return TransientFailure(
        reason="Anti-bot challenge (HTTP 403)", anti_bot=True, status_code=403
    )


@pytest.fixture
def sample_usage_body() -> dict:
    """Sample claude.ai usage response."""
    return {
        "five_hour": {
            "utilization": 12.0,
            "resets_at": "2025-01-15T14:00:00.123456+00:00",
        },
        "seven_day": {"utilization": 40.5, "resets_at": "2025-01-18T12:00:00Z"},
        "seven_day_oauth_apps": None,
        "seven_day_opus": {"utilization": 5.0, "resets_at": None},
        "seven_day_sonnet": {"utilization": 20.0, "resets_at": None},
        "iguana_necktie": None,
        "extra_usage": None,
    }


@pytest.fixture
def mock_transport_client() -> Callable[..., httpx.AsyncClient]:
    """Factory for an AsyncClient backed by httpx.MockTransport."""
    def factory(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def scripted_fetcher() -> Callable[..., ScriptedFetcher]:
    """Factory for a fetcher that replays the given outcomes."""
    return ScriptedFetcher
