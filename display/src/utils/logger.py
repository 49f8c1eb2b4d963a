"""Logging setup for the drawing display.

``get_logger(name)`` is what modules call. The root logger is configured on
first use from LOG_LEVEL / LOG_FILE; ``configure_logging`` lets the app apply
the ``app.log_level`` / ``app.log_file`` settings once the config is loaded.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Chatty third-party loggers kept at WARNING unless LOG_LEVEL is DEBUG
QUIET_LOGGERS = ('urllib3', 'asyncio', 'uvicorn.access')

_configured = False
_file_handler: Optional[logging.Handler] = None


def _resolve_level(name: Optional[str]) -> int:
    return getattr(logging, (name or 'INFO').upper(), logging.INFO)


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """(Re)apply level and optional file output to the root logger."""
    global _configured, _file_handler

    root = logging.getLogger()
    resolved = _resolve_level(level or os.getenv('LOG_LEVEL'))
    root.setLevel(resolved)

    formatter = logging.Formatter(LOG_FORMAT)
    if not _configured:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)

    for handler in root.handlers:
        handler.setLevel(resolved)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(resolved if resolved <= logging.DEBUG else logging.WARNING)

    path = log_file or os.getenv('LOG_FILE', '')
    if path and _file_handler is None:
        try:
            log_path = Path(path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            _file_handler = logging.FileHandler(log_path, encoding='utf-8')
            _file_handler.setLevel(resolved)
            _file_handler.setFormatter(formatter)
            root.addHandler(_file_handler)
        except OSError:
            root.exception('Failed to create file log handler; continuing with console only')

    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger for ``name``, configuring the root logger on first call."""
    if not _configured:
        configure_logging()
    return logging.getLogger(name)
