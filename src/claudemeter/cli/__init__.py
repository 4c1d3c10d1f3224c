"""CLI framework for claudemeter."""
from __future__ import annotations

from claudemeter.cli.app import ExitCode
from claudemeter.cli.app import app
from claudemeter.cli.app import run_app

__all__ = ["app", "run_app", "ExitCode"]
