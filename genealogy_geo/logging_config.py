"""
Logging setup for the CLI, the batch runner and the API.
JSON logs in production, human-readable on stderr in development so CLI
output on stdout stays clean.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import json_log_formatter

from genealogy_geo.config import get_settings


def setup_logging(level_name: Optional[str] = None) -> None:
    """Configure logging based on environment. `level_name` overrides LOG_LEVEL."""
    settings = get_settings()
    level = getattr(logging, (level_name or settings.log_level).upper(), logging.INFO)

    if settings.env == "production":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(json_log_formatter.JSONFormatter())

        root = logging.getLogger()
        root.setLevel(level)
        root.handlers = [handler]
    else:
        _setup_basic_logging(level)

    _quiet_third_party()


def _setup_basic_logging(level: int) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def _quiet_third_party() -> None:
    # Per-request access lines drown out batch progress
    for name in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)
