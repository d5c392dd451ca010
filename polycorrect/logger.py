"""Centralized logging configuration for PolyCorrect.

All modules log through ``get_logger(__name__)`` so the console/file handlers
configured once in ``main`` apply everywhere, including the event loop thread
that runs provider requests.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

ROOT_LOGGER_NAME = "PolyCorrect"
LOG_FORMAT = '%(asctime)s - %(name)s - [%(threadName)s] %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class PolyCorrectLogger:
    """Centralized logger for the application."""

    _loggers: Dict[str, logging.Logger] = {}
    _default_level = logging.INFO
    _log_file: Optional[Path] = None
    _initialized = False

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_file: Optional[Path] = None,
        console: bool = True,
        max_bytes: int = 5 * 1024 * 1024,
        backup_count: int = 3
    ) -> None:
        """Configure global logging settings.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional path to a log file (enables rotating file logging)
            console: Whether to log to stdout
            max_bytes: Maximum size of the log file before rotation
            backup_count: Number of rotated files to keep
        """
        cls._default_level = level
        cls._log_file = log_file
        cls._initialized = True

        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        root_logger.setLevel(level)
        root_logger.handlers.clear()
        root_logger.propagate = False

        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

        if console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding='utf-8'
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        if not root_logger.handlers:
            root_logger.addHandler(logging.NullHandler())

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get or create the logger for a module.

        Module loggers are children of the ``PolyCorrect`` root and inherit
        its level until ``set_level`` is called.
        """
        if name not in cls._loggers:
            short_name = name[len("polycorrect."):] if name.startswith("polycorrect.") else name
            cls._loggers[name] = logging.getLogger(f"{ROOT_LOGGER_NAME}.{short_name}")
        return cls._loggers[name]

    @classmethod
    def set_level(cls, level: int) -> None:
        cls._default_level = level
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)
        for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers:
            handler.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module.

    Usage:
        from polycorrect.logger import get_logger
        logger = get_logger(__name__)
        logger.info("Something happened")
    """
    return PolyCorrectLogger.get_logger(name)
