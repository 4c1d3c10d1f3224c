"""Retry logic with exponential backoff for claudemeter."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from typing import Protocol

from claudemeter.config.settings import RetryConfig
from claudemeter.core.clock import Clock
from claudemeter.core.clock import SystemClock
from claudemeter.core.outcomes import FetchOutcome
from claudemeter.core.outcomes import TransientFailure
from claudemeter.core.outcomes import is_retryable
from claudemeter.errors.classify import classify_exception
from claudemeter.models import Credentials

logger = logging.getLogger(__name__)

# Smallest step used to keep successive delays strictly increasing below
# max_delay
MIN_DELAY_STEP = 0.001

RetryCallback = Callable[[int, float, FetchOutcome], None]


class Fetcher(Protocol):
    async def fetch(self, credentials: Credentials) -> FetchOutcome: ...


def calculate_retry_delay(
    attempt: int,
    config: RetryConfig,
    rng: random.Random | None = None,
) -> float:
    """Calculate delay before next retry using exponential backoff.

    Args:
        attempt: Which retry this delay precedes (0-indexed)
        config: Retry configuration
        rng: Random source for the jitter factor

    Returns:
        Delay in seconds
    """
    delay = config.base_delay * (config.exponential_base**attempt)

    # Spread retries of many clients apart
    source = rng or random
    delay *= source.uniform(config.jitter_min, config.jitter_max)

    return min(delay, config.max_delay)


class RetryController:
    """Wrap a fetcher with bounded, jittered exponential backoff.

    Only TransientFailure (and MalformedResponse, when configured) outcomes
    are retried. Every path returns a FetchOutcome; the controller never
    raises except for task cancellation.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        config: RetryConfig | None = None,
        clock: Clock | None = None,
        *,
        on_retry: RetryCallback | None = None,
        rng: random.Random | None = None,
    ):
        self.fetcher = fetcher
        self.config = config or RetryConfig()
        self._clock = clock or SystemClock()
        self._rng = rng or random.Random()
        self.on_retry = on_retry

    async def _fetch_once(self, credentials: Credentials) -> FetchOutcome:
        try:
            return await self.fetcher.fetch(credentials)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Fetcher raised unexpectedly")
            return TransientFailure(reason=classify_exception(e).message)

    async def attempt(self, credentials: Credentials) -> FetchOutcome:
        """Fetch until a terminal outcome or the attempt ceiling is reached.

        Returns:
            The terminal outcome, or the last retryable failure once
            max_attempts fetches have been made.
        """
        config = self.config
        previous_delay = 0.0
        outcome: FetchOutcome | None = None

        for attempt in range(config.max_attempts):
            outcome = await self._fetch_once(credentials)

            if not is_retryable(outcome, config.retry_malformed):
                return outcome

            # Don't wait after the last attempt
            if attempt >= config.max_attempts - 1:
                break

            delay = calculate_retry_delay(attempt, config, self._rng)
            if delay <= previous_delay:
                # max_delay wins over the nudge once the cap is reached
                delay = min(previous_delay + MIN_DELAY_STEP, config.max_delay)
            previous_delay = delay

            if self.on_retry is not None:
                try:
                    self.on_retry(attempt + 1, delay, outcome)
                except Exception:
                    logger.exception("Retry callback failed")

            await self._clock.sleep(delay)

        logger.debug("Retries exhausted after %d attempts", config.max_attempts)
        return outcome
