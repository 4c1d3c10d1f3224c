"""Clock and cancellable timers for the polling loop.

Everything runs on the current asyncio event loop. Timers are tasks that
sleep through the injected clock, so cancelling them never blocks and tests
can substitute a clock that advances instantly.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from datetime import UTC
from datetime import datetime
from typing import Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None] | None]


class Clock(Protocol):
    """Source of the current time and of non-blocking waits."""

    def now(self) -> datetime: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Wall-clock time in UTC and asyncio sleeps."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


async def _invoke(callback: Callback) -> None:
    result = callback()
    if inspect.isawaitable(result):
        await result


class DelayedCall:
    """Run a callback once after a delay unless cancelled first."""

    def __init__(
        self,
        delay: float,
        callback: Callback,
        clock: Clock | None = None,
        name: str | None = None,
    ):
        self.delay = max(0.0, delay)
        self.name = name or getattr(callback, "__name__", "delayed-call")
        self._callback = callback
        self._clock = clock or SystemClock()
        self._task: asyncio.Task | None = None
        self._fired = False

    def start(self) -> DelayedCall:
        """Schedule the call on the running loop. Calling twice is a no-op."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name=self.name
            )
        return self

    async def _run(self) -> None:
        await self._clock.sleep(self.delay)
        self._fired = True
        try:
            await _invoke(self._callback)
        except Exception:
            logger.exception("Delayed call %s failed", self.name)

    @property
    def active(self) -> bool:
        """True while the call is waiting to fire."""
        return self._task is not None and not self._task.done() and not self._fired

    @property
    def fired(self) -> bool:
        return self._fired

    def cancel(self) -> bool:
        """Cancel the pending call.

        Returns True if a pending call was cancelled. Once the callback has
        started it is left to finish, so cancelling from inside the callback
        is safe.
        """
        if not self.active:
            return False
        self._task.cancel()
        return True


class RepeatingTask:
    """Run a callback every ``interval`` seconds until cancelled.

    The next wait starts only after the callback returns, so invocations
    never overlap.
    """

    def __init__(
        self,
        interval: float,
        callback: Callback,
        clock: Clock | None = None,
        *,
        run_immediately: bool = True,
        name: str | None = None,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.name = name or getattr(callback, "__name__", "repeating-task")
        self.run_immediately = run_immediately
        self._callback = callback
        self._clock = clock or SystemClock()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> RepeatingTask:
        """Start the loop. Calling start on a running task is a no-op."""
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name=self.name
            )
        return self

    async def _run(self) -> None:
        if not self.run_immediately:
            await self._clock.sleep(self.interval)
        while True:
            try:
                await _invoke(self._callback)
            except Exception:
                logger.exception("Scheduled callback %s failed", self.name)
            await self._clock.sleep(self.interval)

    def cancel(self) -> bool:
        """Stop the loop. Returns True if it was running."""
        if not self.running:
            return False
        self._task.cancel()
        return True

    async def stop(self) -> None:
        """Cancel the loop and wait for it to unwind."""
        task = self._task
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None


class Scheduler:
    """Creates and tracks timers that share one clock."""

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()
        self._handles: list[DelayedCall | RepeatingTask] = []

    def _track(self, handle: DelayedCall | RepeatingTask) -> None:
        self._handles = [
            h
            for h in self._handles
            if (h.active if isinstance(h, DelayedCall) else h.running)
        ]
        self._handles.append(handle)

    def call_later(
        self,
        delay: float,
        callback: Callback,
        name: str | None = None,
    ) -> DelayedCall:
        """Schedule callback to run once after delay seconds."""
        call = DelayedCall(delay, callback, self.clock, name=name).start()
        self._track(call)
        return call

    def every(
        self,
        interval: float,
        callback: Callback,
        *,
        run_immediately: bool = True,
        name: str | None = None,
    ) -> RepeatingTask:
        """Schedule callback to run every interval seconds."""
        task = RepeatingTask(
            interval,
            callback,
            self.clock,
            run_immediately=run_immediately,
            name=name,
        ).start()
        self._track(task)
        return task

    def cancel_all(self) -> None:
        """Cancel every timer created by this scheduler."""
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()
