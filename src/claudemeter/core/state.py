"""Polling state owned by the orchestrator."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from claudemeter.models import UsageSnapshot


class PollingPhase(StrEnum):
    """Externally visible phase of the polling loop."""

    IDLE = "idle"
    POLLING = "polling"
    SESSION_EXPIRED = "session_expired"
    COOLDOWN = "cooldown"


@dataclass
class PollingState:
    """Mutable polling bookkeeping.

    Only the orchestrator writes to this object; everyone else gets a copy.
    """

    last_snapshot: UsageSnapshot | None = None
    consecutive_transient_failures: int = 0
    consecutive_anti_bot_failures: int = 0
    session_expired: bool = False
    cooldown_until: datetime | None = None
    last_attempt_at: datetime | None = None
    last_success_at: datetime | None = None
    generation: int = 0  # bumped on every credential change

    def reset_for_new_credentials(self) -> None:
        """Clear expiry, counters and cooldown, and start a new generation."""
        self.consecutive_transient_failures = 0
        self.consecutive_anti_bot_failures = 0
        self.session_expired = False
        self.cooldown_until = None
        self.generation += 1

    def copy(self) -> PollingState:
        return dataclasses.replace(self)
