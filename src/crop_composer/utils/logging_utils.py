"""
Logging utilities for the command line front end.

The library modules only create named loggers; handlers are installed here
by the entry points that own the process.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    logger_name: Optional[str] = "crop_composer",
) -> logging.Logger:
    """
    Attach a console handler (and optionally a file handler) to a logger.

    Calling this twice does not duplicate handlers: previously attached
    handlers created by this function are replaced.

    Args:
        level: Minimum level to emit.
        log_file: Optional path of a log file to append to.
        logger_name: Name of logger to configure. None = root logger.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_crop_composer_handler", False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console._crop_composer_handler = True  # type: ignore[attr-defined]
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler._crop_composer_handler = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    return logger
