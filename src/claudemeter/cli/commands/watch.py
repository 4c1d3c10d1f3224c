"""Continuous polling command."""

from __future__ import annotations

import asyncio
import logging

import msgspec
import typer
from rich.console import Console

from claudemeter.cli.app import app
from claudemeter.cli.display import display_update
from claudemeter.cli.runtime import build_context
from claudemeter.cli.runtime import create_orchestrator
from claudemeter.cli.runtime import load_cli_config
from claudemeter.cli.runtime import parse_metric_option
from claudemeter.config.settings import Config
from claudemeter.models import StateUpdate


class UpdatePrinter:
    """State listener that prints changes and counts them."""

    def __init__(self, console: Console, limit: int = 0, verbose: bool = False):
        self.console = console
        self.limit = limit
        self.verbose = verbose
        self.count = 0
        self.done = asyncio.Event()
        self._last: StateUpdate | None = None

    def __call__(self, update: StateUpdate) -> None:
        self.count += 1
        if update != self._last:
            display_update(self.console, update, verbose=self.verbose)
            self._last = update
        if self.limit and self.count >= self.limit:
            self.done.set()


def with_interval(config: Config, interval: float | None) -> Config:
    if interval is None:
        return config
    polling = msgspec.structs.replace(config.polling, interval=interval)
    return msgspec.structs.replace(config, polling=polling)


@app.command("watch")
async def watch_command(
    ctx: typer.Context,
    metric: str | None = typer.Option(
        None,
        "--metric",
        "-m",
        help="Limit to summarize",
    ),
    interval: float | None = typer.Option(
        None,
        "--interval",
        "-i",
        min=1.0,
        help="Seconds between polls (default from config, 30)",
    ),
    count: int = typer.Option(
        0,
        "--count",
        "-n",
        min=0,
        help="Exit after this many updates (0: run until interrupted)",
    ),
    session_key: str | None = typer.Option(
        None,
        "--session-key",
        help="claude.ai sessionKey cookie (default: $CLAUDE_SESSION_KEY)",
    ),
    org_id: str | None = typer.Option(
        None,
        "--org-id",
        help="Organization ID (default: $CLAUDE_ORGANIZATION_ID)",
    ),
) -> None:
    """Poll usage until interrupted, printing every change."""
    console = Console()
    verbose = ctx.meta.get("verbose", False)

    kind = parse_metric_option(metric)
    config = with_interval(load_cli_config(), interval)
    context = build_context(config, kind, session_key, org_id)

    if not verbose:
        # Activity messages are the watch output
        logging.getLogger("claudemeter.activity").setLevel(logging.INFO)

    printer = UpdatePrinter(console, limit=count, verbose=verbose)
    orchestrator = create_orchestrator(context, on_state_changed=printer)

    orchestrator.start()
    try:
        await printer.done.wait()
    finally:
        await orchestrator.stop()
