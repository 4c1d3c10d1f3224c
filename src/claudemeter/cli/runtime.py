"""Shared wiring between CLI commands and the polling core."""

from __future__ import annotations

import typer

from claudemeter.config.settings import Config
from claudemeter.config.settings import get_config
from claudemeter.core.context import PollingContext
from claudemeter.core.orchestrator import PollingOrchestrator
from claudemeter.errors.types import ConfigError
from claudemeter.models import LimitKind


def parse_metric_option(value: str | None) -> LimitKind | None:
    """Validate a --metric value.

    Raises:
        typer.BadParameter: If the value names no known limit.
    """
    if value is None:
        return None
    try:
        return LimitKind.parse(value)
    except ValueError as e:
        choices = ", ".join(kind.value for kind in LimitKind)
        raise typer.BadParameter(f"{e}. Choose from: {choices}") from e


def load_cli_config() -> Config:
    """Load the configuration, exiting with a message if it is invalid."""
    try:
        return get_config()
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1) from e


def build_context(
    config: Config,
    metric: LimitKind | None = None,
    session_key: str | None = None,
    org_id: str | None = None,
) -> PollingContext:
    return PollingContext.from_environment(
        config,
        session_token=session_key,
        organization_id=org_id,
        metric=metric,
    )


def create_orchestrator(context: PollingContext, **kwargs) -> PollingOrchestrator:
    """Create the orchestrator used by a command."""
    return PollingOrchestrator(context, **kwargs)
