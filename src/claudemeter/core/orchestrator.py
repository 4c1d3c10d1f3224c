"""Steady-state polling loop for claudemeter.

The orchestrator ties the scheduler, retry controller, cooldown gate and
status engine together. It is the single writer of PollingState and the
only component that talks to the renderer.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable

from claudemeter.core.activity import ActivityLog
from claudemeter.core.activity import LogEntry
from claudemeter.core.activity import LogListener
from claudemeter.core.clock import Clock
from claudemeter.core.clock import DelayedCall
from claudemeter.core.clock import RepeatingTask
from claudemeter.core.clock import Scheduler
from claudemeter.core.context import PollingContext
from claudemeter.core.fetch import UsageFetcher
from claudemeter.core.gate import CooldownGate
from claudemeter.core.http import cleanup
from claudemeter.core.outcomes import AuthFailure
from claudemeter.core.outcomes import FetchOutcome
from claudemeter.core.outcomes import Success
from claudemeter.core.outcomes import describe_outcome
from claudemeter.core.retry import Fetcher
from claudemeter.core.retry import RetryController
from claudemeter.core.state import PollingPhase
from claudemeter.core.state import PollingState
from claudemeter.core.status import build_view
from claudemeter.core.status import summarize_snapshot
from claudemeter.models import Credentials
from claudemeter.models import LimitKind
from claudemeter.models import NoData
from claudemeter.models import NoDataReason
from claudemeter.models import StateUpdate

logger = logging.getLogger(__name__)

StateListener = Callable[[StateUpdate], None]

# Margin added to the cooldown resume timer so it never fires early
RESUME_GRACE_SECONDS = 0.05


class PollingOrchestrator:
    """Drive periodic usage polling and publish derived state.

    Inbound operations (``provide_credentials``, ``request_refresh``,
    ``select_metric``) belong on the event loop that runs the orchestrator.
    At most one attempt is in flight: scheduled ticks that arrive while an
    attempt is pending are skipped, while explicit refreshes and credential
    changes queue a single follow-up attempt. A credential change also
    abandons the pending attempt, including its retry backoff.
    Called outside a running event loop, refreshes and credential changes
    update state and leave the fetch to the next tick.
    """

    def __init__(
        self,
        context: PollingContext,
        *,
        fetcher: Fetcher | None = None,
        controller: RetryController | None = None,
        scheduler: Scheduler | None = None,
        clock: Clock | None = None,
        on_state_changed: StateListener | None = None,
        on_log_event: LogListener | None = None,
        rng: random.Random | None = None,
    ):
        self.context = context
        config = context.config

        if scheduler is None:
            scheduler = Scheduler(clock)
        self._scheduler = scheduler
        self._clock = clock or scheduler.clock

        # Only a fetcher built here uses the shared client we may close
        self._owns_client = controller is None and fetcher is None
        if controller is None:
            if fetcher is None:
                fetcher = UsageFetcher.from_config(config, clock=self._clock)
            controller = RetryController(fetcher, config.retry, self._clock, rng=rng)
        if controller.on_retry is None:
            controller.on_retry = self._log_retry
        self._controller = controller

        self._gate = CooldownGate.from_config(config.cooldown)
        self._state = PollingState()
        self._phase = PollingPhase.IDLE

        self.activity = ActivityLog(config.log.max_entries, self._clock, on_log_event)
        self.on_state_changed = on_state_changed

        self._poll_task: RepeatingTask | None = None
        self._resume_call: DelayedCall | None = None
        self._inflight: asyncio.Task[bool] | None = None
        self._attempt: asyncio.Task[FetchOutcome] | None = None
        self._rerun = False
        self._last_update: StateUpdate | None = None

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def phase(self) -> PollingPhase:
        return self._phase

    @property
    def state(self) -> PollingState:
        """Return a copy of the polling state."""
        return self._state.copy()

    @property
    def running(self) -> bool:
        return self._poll_task is not None and self._poll_task.running

    @property
    def gate(self) -> CooldownGate:
        return self._gate

    def current_view(self) -> StateUpdate | None:
        """Return the last update pushed to the renderer."""
        return self._last_update

    def log_entries(self, limit: int | None = None) -> list[LogEntry]:
        return self.activity.entries(limit)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin polling every ``polling.interval`` seconds, starting now."""
        if self.running:
            return

        self._phase = self._gated_phase() or PollingPhase.POLLING
        self.activity.add("Polling started")
        if self.context.has_credentials() and self._state.last_snapshot is None:
            self._emit(NoData.of(NoDataReason.LOADING))

        self._poll_task = self._scheduler.every(
            self.context.config.polling.interval,
            self.tick,
            name="claudemeter-poll",
        )
        if self._phase is PollingPhase.COOLDOWN:
            self._schedule_resume()

    async def stop(self) -> None:
        """Stop polling and cancel any pending timers and attempts."""
        if self._poll_task is not None:
            await self._poll_task.stop()
            self._poll_task = None
        self._cancel_resume()

        inflight = self._inflight
        if inflight is not None and not inflight.done():
            inflight.cancel()
            try:
                await inflight
            except asyncio.CancelledError:
                pass
        self._inflight = None
        self._rerun = False
        if self._owns_client:
            await cleanup()

        if self._phase is not PollingPhase.IDLE:
            self.activity.add("Polling stopped")
        self._phase = PollingPhase.IDLE

    # ------------------------------------------------------------------
    # Inbound operations
    # ------------------------------------------------------------------

    async def tick(self) -> bool:
        """Handle one timer tick.

        Returns:
            True if the tick resulted in a fetch, False if it was skipped
            (attempt already running, session expired, cooldown, or no
            credentials).
        """
        if self._attempt_pending():
            logger.debug("Previous attempt still running, skipping tick")
            return False
        if self._phase is PollingPhase.IDLE:
            self._phase = PollingPhase.POLLING
        task = self._launch()
        if task is None:
            return False
        return await task

    def request_refresh(self) -> asyncio.Task[bool] | None:
        """Poll now, outside the timer cadence.

        The same session-expired and cooldown gating applies as for ticks.
        Returns the task running the attempt so callers may await it, or
        None when no event loop is running.
        """
        task = self._launch()
        if task is not None and self._phase is PollingPhase.IDLE:
            self._phase = PollingPhase.POLLING
        return task

    def provide_credentials(
        self,
        session_token: str | None,
        organization_id: str | None,
    ) -> asyncio.Task[bool] | None:
        """Replace the credentials, clear expiry and cooldown, and poll now.

        Any attempt still running with the old credentials is abandoned.
        An idle orchestrator stays IDLE.
        """
        credentials = Credentials.from_values(session_token, organization_id)
        self.context.set_credentials(credentials)

        self._state.reset_for_new_credentials()
        self._cancel_resume()
        self._abandon_attempt()
        if self._phase is not PollingPhase.IDLE:
            self._phase = PollingPhase.POLLING

        if credentials is None:
            self.activity.add("Credentials cleared")
        else:
            self.activity.add("Credentials updated")
        return self._launch()

    def select_metric(self, key: LimitKind | str) -> StateUpdate | None:
        """Change the summarized limit and re-publish the view.

        Unknown keys are logged and leave the selection unchanged.
        """
        try:
            metric = key if isinstance(key, LimitKind) else LimitKind.parse(key)
        except ValueError:
            self.activity.add(f"Ignoring unknown metric {key!r}", logging.WARNING)
            return self._last_update

        self.context.select_metric(metric)
        update = self._derive_update()
        self._emit(update)
        return update

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    def _attempt_pending(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def _abandon_attempt(self) -> None:
        # The attempt loop notices and moves on to the queued rerun
        if self._attempt is not None and not self._attempt.done():
            self._attempt.cancel()

    def _launch(self) -> asyncio.Task[bool] | None:
        if self._attempt_pending():
            self._rerun = True
            return self._inflight
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, deferring fetch to the next tick")
            return None
        self._inflight = loop.create_task(
            self._run_attempts(), name="claudemeter-attempt"
        )
        return self._inflight

    async def _run_attempts(self) -> bool:
        performed = False
        while True:
            self._rerun = False
            try:
                performed = await self._poll_once() or performed
            except asyncio.CancelledError:
                raise
            except Exception:
                # Nothing below is expected to raise; keep polling if it does
                logger.exception("Unexpected error during poll")
            if not self._rerun:
                return performed

    def _gated_phase(self) -> PollingPhase | None:
        if self._state.session_expired:
            return PollingPhase.SESSION_EXPIRED
        if self._gate.is_active(self._state, self._clock.now()):
            return PollingPhase.COOLDOWN
        return None

    async def _poll_once(self) -> bool:
        gated = self._gated_phase()
        if gated is not None:
            self._phase = gated
            logger.debug("Polling paused (%s), skipping", gated)
            return False

        if self._phase is PollingPhase.COOLDOWN:
            self.activity.add("Cooldown over, resuming polling")
            self._phase = PollingPhase.POLLING

        credentials = self.context.credentials()
        if credentials is None:
            update = NoData.of(NoDataReason.NEEDS_SETUP)
            if self._last_update != update:
                self.activity.add("No session key or organization ID configured")
            self._emit(update)
            return False

        generation = self._state.generation
        self._state.last_attempt_at = self._clock.now()
        self._attempt = asyncio.get_running_loop().create_task(
            self._controller.attempt(credentials), name="claudemeter-fetch"
        )
        try:
            outcome = await self._attempt
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if (current is not None and current.cancelling()) or (
                generation == self._state.generation
            ):
                raise
            self.activity.add(
                "Abandoned attempt with replaced credentials", logging.DEBUG
            )
            return True
        finally:
            self._attempt = None

        if generation != self._state.generation:
            self.activity.add(
                "Discarding result fetched with replaced credentials", logging.DEBUG
            )
            return True

        self._apply(outcome)
        return True

    def _apply(self, outcome: FetchOutcome) -> None:
        state = self._state
        now = self._clock.now()

        match outcome:
            case Success(snapshot=snapshot):
                self._gate.record_success(state)
                self._cancel_resume()
                state.session_expired = False
                state.last_snapshot = snapshot
                state.last_success_at = now
                self.activity.add(f"Fetch OK: {summarize_snapshot(snapshot)}")

            case AuthFailure(status_code=status_code):
                state.session_expired = True
                self._phase = PollingPhase.SESSION_EXPIRED
                self.activity.add(
                    f"Session expired (HTTP {status_code})", logging.WARNING
                )

            case _:
                started = self._gate.record_exhausted(state, outcome, now)
                self.activity.add(
                    f"Fetch failed (consecutive: {state.consecutive_transient_failures}): "
                    f"{describe_outcome(outcome)}",
                    logging.WARNING,
                )
                if started:
                    self._phase = PollingPhase.COOLDOWN
                    self.activity.add(
                        f"Blocked {state.consecutive_anti_bot_failures} times in a row, "
                        f"pausing polling until {state.cooldown_until:%H:%M:%S} UTC",
                        logging.WARNING,
                    )
                    self._schedule_resume()

        self._emit(self._derive_update())

    # ------------------------------------------------------------------
    # Cooldown resume timer
    # ------------------------------------------------------------------

    def _schedule_resume(self) -> None:
        if not self.running:
            return
        remaining = self._gate.remaining(self._state, self._clock.now())
        if remaining is None:
            return
        self._cancel_resume()
        self._resume_call = self._scheduler.call_later(
            remaining.total_seconds() + RESUME_GRACE_SECONDS,
            self._resume_after_cooldown,
            name="claudemeter-resume",
        )

    def _resume_after_cooldown(self) -> None:
        self._resume_call = None
        self._launch()

    def _cancel_resume(self) -> None:
        if self._resume_call is not None:
            self._resume_call.cancel()
            self._resume_call = None

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def _derive_update(self) -> StateUpdate:
        if self.context.credentials() is None:
            return NoData.of(NoDataReason.NEEDS_SETUP)
        if self._state.session_expired:
            return NoData.of(NoDataReason.SESSION_EXPIRED)

        snapshot = self._state.last_snapshot
        if snapshot is None:
            return NoData.of(NoDataReason.LOADING)

        view = build_view(
            snapshot,
            self.context.selected_metric,
            self._clock.now(),
            self.context.config.status,
        )
        if view is None:
            return NoData.of(NoDataReason.METRIC_UNAVAILABLE)
        return view

    def _emit(self, update: StateUpdate) -> None:
        self._last_update = update
        if self.on_state_changed is None:
            return
        try:
            self.on_state_changed(update)
        except Exception:
            logger.exception("State listener failed")

    def _log_retry(self, attempt: int, delay: float, outcome: FetchOutcome) -> None:
        retries = self._controller.config.max_attempts - 1
        self.activity.add(
            f"Retrying in {delay:.1f}s (retry {attempt}/{retries}): "
            f"{describe_outcome(outcome)}"
        )
