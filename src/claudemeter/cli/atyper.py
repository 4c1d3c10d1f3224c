"""Typer application class that accepts ``async def`` commands."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from functools import wraps
from typing import Any

import typer
from typer.core import TyperCommand
from typer.core import TyperGroup

# Conventional exit status after Ctrl-C
INTERRUPTED_EXIT_CODE = 130


def run_coroutine_command(f: Callable) -> Callable:
    """Wrap an async command so Click can call it synchronously.

    Outside an event loop the coroutine is driven by ``asyncio.run``. Inside
    a running loop (as in async tests) the coroutine is returned for the
    caller to await.
    """
    if not inspect.iscoroutinefunction(f):
        return f

    @wraps(f)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        coro = f(*args, **kwargs)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(coro)
        return coro

    return sync_wrapper


class InterruptibleCommand(TyperCommand):
    """Command that turns Ctrl-C into a clean exit."""

    def invoke(self, ctx: Any) -> Any:
        try:
            return super().invoke(ctx)
        except KeyboardInterrupt:
            raise typer.Exit(INTERRUPTED_EXIT_CODE) from None


class ATyper(typer.Typer):
    """Typer subclass whose ``command`` decorator accepts coroutines."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("cls", TyperGroup)
        super().__init__(*args, **kwargs)

    def command(  # type: ignore[override]
        self,
        name: str | None = None,
        *,
        cls: type[TyperCommand] | None = None,
        **kwargs: Any,
    ) -> Callable[[Callable], Callable]:
        """Register a command, sync or async."""

        def decorator(f: Callable) -> Callable:
            return typer.Typer.command(
                self, name, cls=cls or InterruptibleCommand, **kwargs
            )(run_coroutine_command(f))

        return decorator
