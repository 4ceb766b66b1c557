"""
tomorrow_people.config — YAML Configuration Loader
===================================================

Reads ``config.yaml`` for community identity and the few tuning knobs the
services need (status refresh cadence, typing indicator lifetime, search
limits).  Secrets and the database URL stay in the environment (``.env``).

Usage::

    from tomorrow_people.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.community_name)    # "Tomorrow People"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TomorrowConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str
    community_tagline: str

    # API
    api_port: int

    # Events
    status_refresh_minutes: int = 15
    event_completed_after_hours: int = 4

    # Messaging
    typing_ttl_seconds: int = 10
    message_search_limit: int = 50


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> TomorrowConfig:
    """Read *path* and return a :class:`TomorrowConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return TomorrowConfig(
        community_name=raw["community_name"],
        community_tagline=raw["community_tagline"],
        api_port=int(raw["api_port"]),
        status_refresh_minutes=int(raw.get("status_refresh_minutes", 15)),
        event_completed_after_hours=int(raw.get("event_completed_after_hours", 4)),
        typing_ttl_seconds=int(raw.get("typing_ttl_seconds", 10)),
        message_search_limit=int(raw.get("message_search_limit", 50)),
    )
