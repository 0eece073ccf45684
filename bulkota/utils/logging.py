from __future__ import annotations

import logging
import os
from typing import Optional

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%H:%M:%S"
LEVEL_ENV = "BULKOTA_LOG_LEVEL"
DEBUG_ENV = "BULKOTA_DEBUG"


def _env_level() -> Optional[int]:
    """Level forced by the environment, if any."""
    name = (os.getenv(LEVEL_ENV) or "").strip().upper()
    level = logging.getLevelName(name) if name else None
    if isinstance(level, int):
        return level
    if (os.getenv(DEBUG_ENV) or "").strip().lower() in {"1", "true", "yes", "on"}:
        return logging.DEBUG
    return None


def configure_root(default_level: int = logging.INFO) -> int:
    """
    Install the compact root handler once and set the root level.

    ``BULKOTA_LOG_LEVEL`` (a level name) wins over ``BULKOTA_DEBUG``, which
    wins over ``default_level``.
    """
    effective = _env_level() or default_level
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=effective, format=_FORMAT, datefmt=_DATEFMT)
    root.setLevel(effective)
    return effective


def apply_verbosity(debug_enabled: bool) -> int:
    """Apply the CLI ``--verbose`` flag unless the environment sets a level."""
    level = _env_level()
    if level is None:
        level = logging.DEBUG if debug_enabled else logging.INFO
    logging.getLogger().setLevel(level)
    return level


def level_name(level: int) -> str:
    return logging.getLevelName(level)
