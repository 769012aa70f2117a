"""Logging setup shared by the wiring factories."""

from __future__ import annotations

import logging

from triageguard.core.config import AppSettings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

audit_logger = logging.getLogger("triageguard.audit")


def configure_logging(settings: AppSettings) -> None:
    """Apply the configured level to the ``triageguard`` logger tree."""
    root = logging.getLogger("triageguard")
    root.setLevel(settings.log_level.upper())
    if not logging.getLogger().handlers and not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
