"""claudemeter: Watch claude.ai usage limits and how fast you are burning them."""

from __future__ import annotations

__version__ = "0.1.0"

from claudemeter.models import Credentials
from claudemeter.models import LimitKind
from claudemeter.models import NoData
from claudemeter.models import NoDataReason
from claudemeter.models import PaceStatus
from claudemeter.models import StateUpdate
from claudemeter.models import UsageLimit
from claudemeter.models import UsageSnapshot
from claudemeter.models import ViewData

__all__ = [
    "__version__",
    "LimitKind",
    "Credentials",
    "UsageLimit",
    "UsageSnapshot",
    "PaceStatus",
    "ViewData",
    "NoData",
    "NoDataReason",
    "StateUpdate",
]


def main() -> None:
    """Entry point for the claudemeter CLI."""
    from claudemeter.cli.app import run_app

    run_app()
