"""Credential resolution for claudemeter.

Credentials are owned by whoever embeds the core; this module only merges
explicitly supplied values with the environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from claudemeter.models import Credentials

SESSION_KEY_ENV = "CLAUDE_SESSION_KEY"
ORGANIZATION_ID_ENV = "CLAUDE_ORGANIZATION_ID"


def resolve_credentials(
    session_token: str | None = None,
    organization_id: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Credentials | None:
    """Combine explicit values with environment fallbacks.

    Each field falls back to its environment variable independently when
    the explicit value is missing or blank. Returns None if either field is
    still empty afterwards.
    """
    env = os.environ if environ is None else environ

    if not (session_token or "").strip():
        session_token = env.get(SESSION_KEY_ENV)
    if not (organization_id or "").strip():
        organization_id = env.get(ORGANIZATION_ID_ENV)

    return Credentials.from_values(session_token, organization_id)
