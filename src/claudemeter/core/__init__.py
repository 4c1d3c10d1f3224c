"""Core polling, retry and status logic for claudemeter."""

from claudemeter.core.activity import ActivityLog, LogEntry
from claudemeter.core.clock import (
    Clock,
    DelayedCall,
    RepeatingTask,
    Scheduler,
    SystemClock,
)
from claudemeter.core.context import PollingContext
from claudemeter.core.fetch import UsageFetcher, parse_usage_response
from claudemeter.core.gate import (
    COOLDOWN_DURATION,
    MAX_CONSECUTIVE_BLOCKS,
    CooldownGate,
)
from claudemeter.core.http import cleanup, get_http_client, get_timeout_config
from claudemeter.core.orchestrator import PollingOrchestrator
from claudemeter.core.outcomes import (
    AuthFailure,
    FetchOutcome,
    MalformedResponse,
    Success,
    TransientFailure,
    describe_outcome,
    is_retryable,
)
from claudemeter.core.retry import RetryController, calculate_retry_delay
from claudemeter.core.state import PollingPhase, PollingState
from claudemeter.core.status import (
    build_view,
    classify_pace,
    expected_usage,
    humanize_reset,
    summarize_limits,
)

__all__ = [
    # clock
    "Clock",
    "SystemClock",
    "DelayedCall",
    "RepeatingTask",
    "Scheduler",
    # http
    "get_http_client",
    "cleanup",
    "get_timeout_config",
    # outcomes
    "FetchOutcome",
    "Success",
    "TransientFailure",
    "AuthFailure",
    "MalformedResponse",
    "is_retryable",
    "describe_outcome",
    # fetch
    "UsageFetcher",
    "parse_usage_response",
    # retry
    "RetryController",
    "calculate_retry_delay",
    # gate
    "CooldownGate",
    "MAX_CONSECUTIVE_BLOCKS",
    "COOLDOWN_DURATION",
    # status
    "expected_usage",
    "classify_pace",
    "summarize_limits",
    "humanize_reset",
    "build_view",
    # orchestrator
    "ActivityLog",
    "LogEntry",
    "PollingContext",
    "PollingPhase",
    "PollingState",
    "PollingOrchestrator",
]
