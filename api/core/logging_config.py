"""
Process-wide logging setup.

Feature modules only call `logging.getLogger(__name__)`; the handler and level
are configured once here from `LOG_LEVEL`.
"""

from __future__ import annotations

import logging

from .settings import env_str

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging() -> None:
    level_name = env_str("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    # httpx logs every request at INFO; keep it quieter than our own events.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
