"""One-shot usage status command."""

from __future__ import annotations

import time

import msgspec
import typer
from rich.console import Console

from claudemeter.cli.app import ExitCode
from claudemeter.cli.app import app
from claudemeter.cli.app import exit_code_for
from claudemeter.cli.display import display_update
from claudemeter.cli.display import output_json
from claudemeter.cli.runtime import build_context
from claudemeter.cli.runtime import create_orchestrator
from claudemeter.cli.runtime import load_cli_config
from claudemeter.cli.runtime import parse_metric_option
from claudemeter.core.orchestrator import PollingOrchestrator
from claudemeter.core.state import PollingPhase
from claudemeter.models import NoData
from claudemeter.models import NoDataReason
from claudemeter.models import StateUpdate
from claudemeter.models import ViewData


class StatusReport(msgspec.Struct, frozen=True):
    """JSON document printed by ``status --json``."""

    state: StateUpdate
    phase: PollingPhase
    last_message: str | None = None


@app.command("status")
async def status_command(
    ctx: typer.Context,
    metric: str | None = typer.Option(
        None,
        "--metric",
        "-m",
        help="Limit to summarize (five_hour, seven_day, seven_day_sonnet, seven_day_opus, ...)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output in JSON format",
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
    """Fetch usage once and show the selected limit."""
    console = Console()
    verbose = ctx.meta.get("verbose", False)

    kind = parse_metric_option(metric)
    config = load_cli_config()
    context = build_context(config, kind, session_key, org_id)
    orchestrator = create_orchestrator(context)

    try:
        start_time = time.monotonic()
        update = await fetch_status(orchestrator)
        duration_ms = (time.monotonic() - start_time) * 1000
        phase = orchestrator.phase
    finally:
        await orchestrator.stop()

    last_message = last_failure_message(orchestrator, update)

    if json_output:
        output_json(
            StatusReport(
                state=update,
                phase=phase,
                last_message=last_message,
            )
        )
    else:
        display_update(console, update, detail=last_message, verbose=verbose)
        if verbose:
            console.print(f"[dim]Fetched in {duration_ms:.0f}ms[/dim]")

    code = exit_code_for(update)
    if code is not ExitCode.SUCCESS:
        raise typer.Exit(code)


async def fetch_status(orchestrator: PollingOrchestrator) -> StateUpdate:
    """Run a single refresh and return the resulting state."""
    await orchestrator.request_refresh()
    update = orchestrator.current_view()
    if update is None:
        return NoData.of(NoDataReason.NEEDS_SETUP)
    return update


def last_failure_message(
    orchestrator: PollingOrchestrator, update: StateUpdate
) -> str | None:
    """Return the newest activity message when the fetch produced no view."""
    if isinstance(update, ViewData):
        return None
    entries = orchestrator.log_entries(limit=1)
    return entries[0].message if entries else None
