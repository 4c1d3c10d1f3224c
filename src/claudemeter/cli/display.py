"""Rich rendering of usage state for the claudemeter CLI."""

from __future__ import annotations

import sys
from datetime import datetime

import msgspec
from rich.console import Console
from rich.console import ConsoleOptions
from rich.console import RenderResult
from rich.text import Text

from claudemeter.core.status import format_utilization
from claudemeter.models import NoData
from claudemeter.models import NoDataReason
from claudemeter.models import PaceStatus
from claudemeter.models import StateUpdate
from claudemeter.models import ViewData


def status_color(status: PaceStatus) -> str:
    """Get color for a pace status."""
    return {
        PaceStatus.ON_TRACK: "green",
        PaceStatus.BORDERLINE: "yellow",
        PaceStatus.EXCEEDING: "red",
    }.get(status, "default")


def render_usage_bar(
    utilization: float,
    width: int = 20,
    color: str | None = None,
) -> Text:
    """Render a usage progress bar.

    Args:
        utilization: Usage percentage, clamped to 0-100 for drawing
        width: Bar width in characters
        color: Optional color for the filled part

    Returns:
        Rich Text with the progress bar
    """
    clamped = min(max(utilization, 0.0), 100.0)
    filled = int(clamped * width // 100)

    text = Text()
    text.append("█" * filled, style=color or "default")
    text.append("░" * (width - filled), style="dim")
    return text


class ViewDisplay:
    """Rich renderable for the selected limit.

    Layout:
        7-day Limit (All Models)
        ████████░░░░░░░░░░░░ 42%  expected 60%  resets in 2 days
        On track
        Still available: opus: 12%
    """

    def __init__(self, view: ViewData, verbose: bool = False):
        self.view = view
        self.verbose = verbose

    def __rich_console__(
        self, console: Console, options: ConsoleOptions
    ) -> RenderResult:
        view = self.view
        color = status_color(view.status)

        yield Text(view.metric_name, style="bold")

        line = Text()
        line.append_text(render_usage_bar(view.utilization, color=color))
        line.append(f" {format_utilization(view.utilization)}%", style=f"bold {color}")
        if view.expected_usage is not None:
            line.append(
                f"  expected {format_utilization(view.expected_usage)}%", style="dim"
            )
        line.append(f"  resets in {view.reset_in}", style="dim")
        yield line

        yield Text(view.headline, style=color)

        if view.other_limits_note:
            note = Text("Still available: ", style="dim")
            note.append(view.other_limits_note, style="green")
            yield note

        if self.verbose:
            yield Text(f"Fetched at {format_timestamp(view.fetched_at)}", style="dim")


def format_timestamp(value: datetime) -> str:
    """Format a timestamp in local time for display."""
    return value.astimezone().strftime("%H:%M:%S")


def no_data_style(reason: NoDataReason) -> str:
    match reason:
        case NoDataReason.SESSION_EXPIRED:
            return "red"
        case NoDataReason.NEEDS_SETUP:
            return "yellow"
        case _:
            return "dim"


def format_no_data(update: NoData, detail: str | None = None) -> Text:
    """Format a no-data state, with an optional detail line."""
    text = Text(update.message or update.reason.message, style=no_data_style(update.reason))
    if update.reason is NoDataReason.NEEDS_SETUP:
        text.append(
            "\nPass --session-key and --org-id, or set CLAUDE_SESSION_KEY "
            "and CLAUDE_ORGANIZATION_ID.",
            style="dim",
        )
    if detail:
        text.append(f"\n{detail}", style="dim")
    return text


def display_update(
    console: Console,
    update: StateUpdate,
    detail: str | None = None,
    verbose: bool = False,
) -> None:
    """Print a state update."""
    match update:
        case ViewData():
            console.print(ViewDisplay(update, verbose=verbose))
        case NoData():
            console.print(format_no_data(update, detail))


def output_json(data: object, indent: int = 2) -> None:
    """Write any msgspec-serializable object to stdout as pretty JSON."""
    encoded = msgspec.json.format(msgspec.json.encode(data), indent=indent)
    sys.stdout.write(encoded.decode())
    sys.stdout.write("\n")
