"""
Logging helpers.

Modules log through ``logging.getLogger(__name__)``; processes that embed
Veritasor call ``configure_logging`` once at start-up.
"""

from __future__ import annotations

import logging
from typing import Optional

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a stream handler to the ``veritasor`` logger at the given level.

    When ``level`` is omitted the runtime settings decide.
    """
    if level is None:
        from veritasor.core.settings import get_settings

        level = get_settings().runtime.log_level

    logger = logging.getLogger("veritasor")
    logger.setLevel(level.upper())
    if not any(getattr(h, "_veritasor", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._veritasor = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
