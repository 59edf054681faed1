"""Process-wide logging configuration."""

from __future__ import annotations

import logging

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(*, level: str) -> None:
    """Configure root logging with a single format and the requested level."""
    normalized = level.strip().upper() if level.strip() else "INFO"
    logging.basicConfig(level=getattr(logging, normalized, logging.INFO), format=_LOG_FORMAT)
