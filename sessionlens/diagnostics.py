"""Lightweight debug logging utilities for SessionLens."""

from __future__ import annotations

import logging
import os
import sys
import traceback
from typing import Optional


_DEBUG_VALUES = {"1", "true", "yes", "on"}
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def debug_enabled() -> bool:
    """Return True when SESSIONLENS_DEBUG is set to a truthy value."""
    return os.environ.get("SESSIONLENS_DEBUG", "").strip().lower() in _DEBUG_VALUES


def log_debug(component: str, message: str, exc: Optional[BaseException] = None) -> None:
    """Emit a debug log line to stderr when SESSIONLENS_DEBUG is enabled."""
    if not debug_enabled():
        return
    sys.stderr.write(f"[SESSIONLENS][{component}] {message}\n")
    if exc is not None:
        sys.stderr.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    sys.stderr.flush()


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging for command-line use."""
    level = logging.DEBUG if (verbose or debug_enabled()) else logging.WARNING
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr)
    logging.getLogger("sessionlens").setLevel(level)
