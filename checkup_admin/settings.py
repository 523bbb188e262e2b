"""Dashboard configuration read from Streamlit secrets and the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

DEFAULT_API_BASE_URL = "http://localhost:3001/api"
DEFAULT_DRAFTS_DIR = ".drafts"
DEFAULT_AUTOSAVE_INTERVAL = 30.0
DEFAULT_LOG_LEVEL = "INFO"
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the dashboard."""

    api_base_url: str = DEFAULT_API_BASE_URL
    drafts_dir: Path = Path(DEFAULT_DRAFTS_DIR)
    autosave_interval: float = DEFAULT_AUTOSAVE_INTERVAL
    log_level: str = DEFAULT_LOG_LEVEL


def _lookup(section: Mapping, environ: Mapping, name: str) -> Optional[Any]:
    value = section.get(name)
    if value in (None, ""):
        value = environ.get(f"CHECKUP_ADMIN_{name.upper()}")
    return value if value not in (None, "") else None


def load_settings(
    secrets: Optional[Mapping] = None,
    environ: Optional[Mapping] = None,
) -> Settings:
    """Build :class:`Settings` from the ``[api]`` secrets section.

    Each value falls back to a ``CHECKUP_ADMIN_<NAME>`` environment variable
    and then to the default.
    """

    secrets = secrets if secrets is not None else {}
    environ = environ if environ is not None else os.environ
    section = secrets.get("api", {})
    if not isinstance(section, Mapping):
        section = {}

    base_url = _lookup(section, environ, "base_url") or DEFAULT_API_BASE_URL
    drafts_dir = _lookup(section, environ, "drafts_dir") or DEFAULT_DRAFTS_DIR
    interval = _lookup(section, environ, "autosave_interval")
    try:
        autosave_interval = float(interval) if interval is not None else DEFAULT_AUTOSAVE_INTERVAL
    except (TypeError, ValueError) as exc:
        raise ValueError(f"autosave_interval must be a number, got {interval!r}") from exc
    if autosave_interval <= 0:
        raise ValueError("autosave_interval must be positive")

    log_level = str(_lookup(section, environ, "log_level") or DEFAULT_LOG_LEVEL).upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"Log level must be one of {sorted(LOG_LEVELS)}")

    return Settings(
        api_base_url=str(base_url).rstrip("/"),
        drafts_dir=Path(str(drafts_dir)),
        autosave_interval=autosave_interval,
        log_level=log_level,
    )
