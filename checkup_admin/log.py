"""Logging helpers shared by the dashboard modules."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name`` (typically ``__name__``)."""

    return logging.getLogger(name)


def setup_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to the package logger.

    Streamlit re-executes page scripts on every interaction, so the handler is
    only installed once.
    """

    logger = logging.getLogger("checkup_admin")
    logger.setLevel(level.upper())
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
