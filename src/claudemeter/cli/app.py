"""Main CLI application for claudemeter."""

from __future__ import annotations

import logging
from enum import IntEnum

import typer
from rich.console import Console
from rich.logging import RichHandler

from claudemeter.cli.atyper import ATyper
from claudemeter.models import NoData
from claudemeter.models import NoDataReason
from claudemeter.models import StateUpdate
from claudemeter.models import ViewData

app = ATyper(
    name="claudemeter",
    help="Watch claude.ai usage limits and your pace against them",
    add_completion=False,
    invoke_without_command=True,
)


class ExitCode(IntEnum):
    """Exit codes for claudemeter."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    SESSION_EXPIRED = 2
    NO_DATA = 3
    NEEDS_SETUP = 4


def exit_code_for(update: StateUpdate | None) -> ExitCode:
    """Map the final state of a command to its exit code."""
    match update:
        case ViewData():
            return ExitCode.SUCCESS
        case NoData(reason=NoDataReason.SESSION_EXPIRED):
            return ExitCode.SESSION_EXPIRED
        case NoData(reason=NoDataReason.NEEDS_SETUP) | None:
            return ExitCode.NEEDS_SETUP
        case _:
            return ExitCode.NO_DATA


def configure_logging(verbose: bool = False) -> None:
    """Send log records to stderr through rich."""
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=verbose,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging"
    ),
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
) -> None:
    """Claudemeter - Watch claude.ai usage limits."""
    if version:
        from claudemeter import __version__

        typer.echo(f"claudemeter {__version__}")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()

    configure_logging(verbose)
    ctx.meta["verbose"] = verbose


def run_app() -> None:
    """Run the CLI app."""
    app()


# Command modules register themselves via @app.command() decorators
# and must be imported after app is defined
from claudemeter.cli.commands import status  # noqa: E402, F401
from claudemeter.cli.commands import watch  # noqa: E402, F401
