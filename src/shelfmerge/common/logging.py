"""Logging setup for the command-line entry point."""

from __future__ import annotations

import logging

# Libraries that log every statement or migration step at INFO.
_CHATTY_LOGGERS = ("alembic.runtime.migration", "sqlalchemy.engine")


def configure_logging(*, level: int | str = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once.

    ``level`` accepts either a numeric level or a level name such as
    ``"debug"``. Pass ``force=True`` to reconfigure an already configured root
    logger.
    """

    resolved = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
