"""
stegvault logger
Logging setup shared by every module in the package.
"""

from __future__ import annotations

import logging
import sys
from functools import wraps
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable

from .config import LOGGING_SETTINGS


def setup_logger(name, level=None):
    """
    Create and configure a logger.

    Args:
        name: logger name (normally ``__name__``)
        level: log level name; taken from config when omitted

    Returns:
        logging.Logger: the configured logger
    """
    logger = logging.getLogger(name)

    # guard against duplicate handlers
    if logger.handlers:
        return logger

    if level is None:
        level = LOGGING_SETTINGS.get("level", "INFO")
    level = getattr(logging, str(level).upper(), logging.INFO)
    logger.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_dir = LOGGING_SETTINGS.get("log_dir")
    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOGGING_SETTINGS.get("log_file", "stegvault.log"),
            maxBytes=LOGGING_SETTINGS.get("max_bytes", 2_000_000),
            backupCount=LOGGING_SETTINGS.get("backup_count", 3),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def log_operation(arg, operation=None, status="SUCCESS", details=None):
    """Decorator/utility for recording the outcome of an operation.

    Two forms are supported:

    * as a decorator: ``@log_operation("Encrypt container")``
    * as a direct call: ``log_operation(logger, "Embed", status="FAILED")``
    """

    if operation is None and isinstance(arg, str):
        operation_name = arg

        def decorator(func: Callable):
            @wraps(func)
            def wrapper(*args, **kwargs):
                logger = logging.getLogger(func.__module__)
                logger.info(f"[{operation_name}] Started")
                try:
                    result = func(*args, **kwargs)
                except Exception as exc:
                    logger.error(f"[{operation_name}] FAILED: {exc}", exc_info=True)
                    raise
                logger.info(f"[{operation_name}] Completed")
                return result

            return wrapper

        return decorator

    if operation is not None:
        logger = arg
        msg = f"[{operation}] Status: {status}"
        if details:
            msg += f" | Details: {details}"

        if status and status.upper() == "FAILED":
            logger.error(msg)
        else:
            logger.info(msg)
        return None

    raise TypeError(
        "log_operation must be used as a decorator with an operation name "
        "or called with a logger and an operation name"
    )
