"""Explicit context handed to the orchestrator at construction."""

from __future__ import annotations

from collections.abc import Mapping

from claudemeter.config.credentials import resolve_credentials
from claudemeter.config.settings import Config
from claudemeter.models import Credentials
from claudemeter.models import LimitKind


class PollingContext:
    """Inputs owned by the embedding application.

    Holds the current credentials, the selected display metric and the
    configuration. The orchestrator reads them through these accessors
    instead of consulting global preferences.
    """

    def __init__(
        self,
        credentials: Credentials | None = None,
        metric: LimitKind | None = None,
        config: Config | None = None,
    ):
        self.config = config or Config()
        self._credentials = credentials
        self._metric = metric or self.config.display.default_metric

    @classmethod
    def from_environment(
        cls,
        config: Config | None = None,
        session_token: str | None = None,
        organization_id: str | None = None,
        metric: LimitKind | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> PollingContext:
        """Build a context, filling missing credentials from the environment."""
        credentials = resolve_credentials(session_token, organization_id, environ)
        return cls(credentials=credentials, metric=metric, config=config)

    def credentials(self) -> Credentials | None:
        return self._credentials

    def has_credentials(self) -> bool:
        return self._credentials is not None

    def set_credentials(self, credentials: Credentials | None) -> None:
        self._credentials = credentials

    @property
    def selected_metric(self) -> LimitKind:
        return self._metric

    def select_metric(self, metric: LimitKind) -> None:
        self._metric = metric
