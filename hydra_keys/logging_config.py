"""Logging setup for the hydra-keys CLI."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "WARNING", verbose: bool = False) -> None:
    """Configure root logging to stderr. --verbose forces DEBUG."""
    resolved = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    # httpx logs every request at INFO, including URLs with project ids
    logging.getLogger("httpx").setLevel(max(resolved, logging.WARNING))
