import logging
from logging import Logger


"""
Logger setup for RelSync.
Every module logs through a child of this logger (relsync.writer,
relsync.reconcile, ...), so one call to setup() configures all of them.

author: Cole McGregor
date: 2025-12-02
version: 0.1.0
"""

# LOGGER_NAME is used to identify the logger.
LOGGER_NAME = "relsync"

# the package logger; modules use logger.getChild("<module>")
logger: Logger = logging.getLogger(LOGGER_NAME)


def setup(level: str = "INFO") -> None:
    """
    Setup the logger.
    """
    if logger.handlers:
        return  # already configured
    logger.setLevel(level.upper())

    fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
    h = logging.StreamHandler()
    h.setFormatter(logging.Formatter(fmt))
    logger.addHandler(h)

    # children (relsync.*) propagate up to this handler only
    logger.propagate = False
