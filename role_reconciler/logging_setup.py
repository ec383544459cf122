"""
Logging for the reconciliation audit trail.

All modules log under the ``role_reconciler`` namespace through
``get_logger("<module>")``.  Handlers are attached once, by whichever
engine is created first; later engines only adjust the level.

The level may be given as an ``int`` or a level name, and the
``ROLE_RECONCILER_LOG_LEVEL`` environment variable overrides both.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, Union

NAMESPACE = "role_reconciler"
LEVEL_ENV_VAR = "ROLE_RECONCILER_LOG_LEVEL"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-34s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Marks handlers we installed so repeated calls do not stack them
_OWNED_ATTR = "_role_reconciler_handler"


def _resolve_level(level: Union[int, str]) -> int:
    override = os.getenv(LEVEL_ENV_VAR)
    if override:
        level = override
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        return resolved
    return level


def _make_handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    setattr(handler, _OWNED_ATTR, True)
    return handler


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Attach console (and optional file) handlers to the namespace logger.

    Parameters
    ----------
    level:
        Minimum severity to emit, as a number or a name like ``"DEBUG"``.
    log_file:
        Also write to this file.  Only honoured on the first call.

    Returns
    -------
    logging.Logger
        The ``role_reconciler`` logger.
    """
    resolved = _resolve_level(level)
    root = logging.getLogger(NAMESPACE)
    root.setLevel(resolved)
    root.propagate = False

    owned = [h for h in root.handlers if getattr(h, _OWNED_ATTR, False)]
    if owned:
        for handler in owned:
            handler.setLevel(resolved)
        return root

    root.addHandler(_make_handler(logging.StreamHandler(sys.stdout), resolved))
    if log_file:
        root.addHandler(
            _make_handler(logging.FileHandler(log_file, encoding="utf-8"), resolved)
        )
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{NAMESPACE}.{name}")
