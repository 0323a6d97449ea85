"""Logging bootstrap for processes embedding the memory subsystem."""

import logging

from chatmem.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once, using LOG_LEVEL unless *level* is given."""
    name = (level or settings.log_level).upper()
    logging.basicConfig(
        format=LOG_FORMAT,
        level=getattr(logging, name, logging.INFO),
    )
    logging.getLogger("chatmem").debug("Logging configured at %s", name)
