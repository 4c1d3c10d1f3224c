"""Cooldown gate that suspends polling after repeated anti-bot blocks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta

from claudemeter.config.settings import CooldownConfig
from claudemeter.core.outcomes import FetchOutcome
from claudemeter.core.outcomes import TransientFailure
from claudemeter.core.state import PollingState

# Gate constants
MAX_CONSECUTIVE_BLOCKS = 3
COOLDOWN_DURATION = timedelta(minutes=5)


def is_anti_bot(outcome: FetchOutcome) -> bool:
    return isinstance(outcome, TransientFailure) and outcome.anti_bot


@dataclass
class CooldownGate:
    """Decides when polling must pause.

    After ``threshold`` consecutive exhausted attempts that ended in an
    anti-bot challenge, polling is suspended for ``duration``. The counters
    live in PollingState so the orchestrator remains their only writer.
    The anti-bot counter survives an expired cooldown, so one more blocked
    attempt right after a cooldown starts the next one.
    """

    threshold: int = MAX_CONSECUTIVE_BLOCKS
    duration: timedelta = COOLDOWN_DURATION

    @classmethod
    def from_config(cls, config: CooldownConfig) -> CooldownGate:
        return cls(
            threshold=config.threshold,
            duration=timedelta(seconds=config.duration_seconds),
        )

    def record_exhausted(
        self,
        state: PollingState,
        outcome: FetchOutcome,
        now: datetime,
    ) -> bool:
        """Record an attempt that ran out of retries.

        Returns:
            True if this failure started a cooldown.
        """
        state.consecutive_transient_failures += 1

        if not is_anti_bot(outcome):
            state.consecutive_anti_bot_failures = 0
            return False

        state.consecutive_anti_bot_failures += 1
        if state.consecutive_anti_bot_failures >= self.threshold:
            state.cooldown_until = now + self.duration
            return True
        return False

    def record_success(self, state: PollingState) -> None:
        """Record a success and reset all failure tracking."""
        state.consecutive_transient_failures = 0
        state.consecutive_anti_bot_failures = 0
        state.cooldown_until = None

    def is_active(self, state: PollingState, now: datetime) -> bool:
        """Check if polling is currently suspended."""
        if state.cooldown_until is None:
            return False

        if now >= state.cooldown_until:
            # Cooldown has expired
            state.cooldown_until = None
            return False

        return True

    def remaining(self, state: PollingState, now: datetime) -> timedelta | None:
        """Get time remaining until polling resumes."""
        if state.cooldown_until is None:
            return None

        remaining = state.cooldown_until - now
        if remaining.total_seconds() <= 0:
            return None
        return remaining

