"""Logging setup for applications using dirclient.

The library itself only emits records on the `dirclient` logger tree
(DEBUG for connection lifecycle, searches and binds). setup_logging()
attaches a console handler and, optionally, a daily rotating file.
"""
from __future__ import annotations

import logging
import os
from logging.handlers import TimedRotatingFileHandler

_LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_LOGGER_NAME = "dirclient"

# Handlers installed by the last setup_logging() call, removed on reconfiguration.
_file_handler: logging.Handler | None = None
_console_handler: logging.Handler | None = None


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    retention_days: int = 30,
) -> logging.Logger:
    """Configure the `dirclient` logger.

    - Console handler always.
    - File handler with midnight rotation when log_file is given.
    - Unknown level names fall back to INFO.
    """
    global _file_handler, _console_handler

    level_str = (level or "INFO").strip().upper()
    if level_str not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        level_str = "INFO"
    log_level = getattr(logging, level_str, logging.INFO)

    retention_days = max(1, min(365, int(retention_days or 30)))

    logger = logging.getLogger(_LOGGER_NAME)

    for h in (_file_handler, _console_handler):
        if h is not None and h in logger.handlers:
            logger.removeHandler(h)
            h.close()
    _file_handler = None

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)

    if log_file:
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)
        fh = TimedRotatingFileHandler(
            log_file,
            when="midnight",
            interval=1,
            backupCount=retention_days,
            encoding="utf-8",
            utc=True,
        )
        fh.suffix = "%Y-%m-%d"
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        logger.addHandler(fh)
        _file_handler = fh

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(formatter)
    logger.addHandler(ch)
    _console_handler = ch

    logger.setLevel(log_level)

    # ldap3 is chatty below WARNING
    logging.getLogger("ldap3").setLevel(max(log_level, logging.WARNING))

    logger.debug("logging configured: level=%s file=%s", level_str, log_file or "-")
    return logger
