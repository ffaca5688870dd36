"""Logging setup for the store builder and its CLIs.

Every logger handed out by ``get_logger`` lives under one of the package
namespaces, so ``setup_logging`` can raise or lower verbosity for this
project without touching pandas, pyarrow or other libraries, which stay at
the root logger's level.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
LOGGER_NAMESPACE = "storebuilder"
PACKAGE_NAMESPACES = ("storebuilder", "storecore")

_HANDLER_NAME = "storebuilder.console"


def _parse_level(level: str) -> int:
    name = level.strip().upper()
    if name not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level} (expected one of {', '.join(LOG_LEVELS)})")
    return getattr(logging, name)


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Install the console handler once and apply level to the package loggers."""
    numeric_level = _parse_level(level)

    root_logger = logging.getLogger()
    handler = next((item for item in root_logger.handlers if item.get_name() == _HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)

    for namespace in PACKAGE_NAMESPACES:
        logging.getLogger(namespace).setLevel(numeric_level)
    logging.captureWarnings(True)

    return logging.getLogger(LOGGER_NAMESPACE)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger, nested under the store builder namespace when it is not already."""
    if not name.strip():
        raise ValueError("Logger name cannot be empty.")
    if name.split(".", 1)[0] not in PACKAGE_NAMESPACES:
        name = f"{LOGGER_NAMESPACE}.{name}"
    return logging.getLogger(name)
