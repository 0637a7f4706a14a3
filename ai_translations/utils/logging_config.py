"""Logging setup for translation runs."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

PACKAGE_LOGGER = "ai_translations"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%H:%M:%S"
# Vendor SDKs and their HTTP stacks log every request at INFO.
SDK_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "urllib3")


def resolve_level(level: Union[str, int], debug: bool = False) -> int:
    """Numeric level for ``level``; ``debug`` forces DEBUG, unknown names mean INFO."""
    if debug:
        return logging.DEBUG
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[str] = None,
    debug: bool = False,
    quiet_loggers: Iterable[str] = SDK_LOGGERS,
) -> logging.Logger:
    """
    Configure logging for a translation run.

    Parameters
    ----------
    level:
        Logging level name or number (e.g., "INFO", "DEBUG").
    log_file:
        Optional path that receives a copy of the console output. Parent
        directories are created.
    debug:
        Usually ``TranslationSettings.debug``; forces DEBUG for this package.
    quiet_loggers:
        Third-party loggers held at WARNING or above whatever ``level`` is.

    Returns
    -------
    The ``ai_translations`` package logger.
    """

    logging_level = resolve_level(level, debug)
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    logging.basicConfig(
        level=logging_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(max(logging_level, logging.WARNING))

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(logging_level)
    return package_logger
