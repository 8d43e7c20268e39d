"""
Structured logging configuration for the patch reviewer.
Provides machine-readable logging in production and human-readable logging in development,
with contextual information attached to each record.
"""

import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from functools import wraps
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar, cast


# Type variable for decorator
F = TypeVar('F', bound=Callable[..., Any])


# Name of the package logger every module logger propagates to
ROOT_LOGGER_NAME = "patch_reviewer"

# Default log format
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Default log level from environment or INFO
DEFAULT_LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# App environment (development or production)
APP_ENV = os.environ.get("APP_ENV", "development").lower()

# Log directory; file logging is off unless set
LOG_DIR = os.environ.get("LOG_DIR")

# Longest argument text the with_context decorator puts into a record
MAX_CONTEXT_ARG_LENGTH = 200

# Maximum log file size (10 MB default)
MAX_LOG_SIZE = int(os.environ.get("MAX_LOG_SIZE", 10 * 1024 * 1024))

# Maximum number of backup log files
BACKUP_COUNT = int(os.environ.get("BACKUP_LOG_COUNT", 5))

# Sensitive keys that should be redacted in logs
SENSITIVE_KEYS = [
    "api_key", "token", "password", "secret", "authorization",
    "access_token", "auth", "credentials"
]


def redact_sensitive_info(obj: Any) -> Any:
    """Redact sensitive information from logs."""
    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            if any(sensitive_key in str(key).lower() for sensitive_key in SENSITIVE_KEYS):
                result[key] = "[REDACTED]"
            else:
                result[key] = redact_sensitive_info(value)
        return result
    elif isinstance(obj, list):
        return [redact_sensitive_info(item) for item in obj]
    return obj


class JsonFormatter(logging.Formatter):
    """
    Formatter that outputs JSON formatted logs for machine consumption.
    Each log message is a single line JSON object with structured context.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as a JSON string."""
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        context = getattr(record, "context", None)
        if context:
            log_obj["context"] = redact_sensitive_info(context)

        if record.exc_info:
            log_obj["traceback"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Formatter that outputs human-readable logs for development.
    Includes context in a readable format.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record in a human-readable format."""
        log_str = super().format(record)

        context = getattr(record, "context", None)
        if context:
            context = redact_sensitive_info(context)
            context_str = "\n".join(f"    {k}: {v}" for k, v in context.items())
            log_str += f"\n  Context:\n{context_str}"

        return log_str


class ContextAdapter(logging.LoggerAdapter):
    """
    Logger adapter that allows passing context with each log call.
    The context ends up on the record as ``record.context``.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Move the ``context`` keyword into the record's extra fields."""
        context = kwargs.pop("context", None)
        if context is None:
            context = {}
        elif not isinstance(context, dict):
            context = {"value": context}

        if self.extra:
            context = {**self.extra, **context}

        extra = dict(kwargs.get("extra") or {})
        extra["context"] = context
        kwargs["extra"] = extra

        return msg, kwargs


def _short_str(value: Any) -> str:
    text = str(value)
    if len(text) > MAX_CONTEXT_ARG_LENGTH:
        return f"{text[:MAX_CONTEXT_ARG_LENGTH]}... ({len(text)} chars)"
    return text


def with_context(func: F) -> F:
    """
    Decorator that adds function arguments as context to log messages
    and logs entry/exit from the function.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)

        context = {
            "function": func.__name__,
            "args": [_short_str(arg) for arg in args],
            "kwargs": {k: _short_str(v) for k, v in kwargs.items() if not any(
                sensitive in k.lower() for sensitive in SENSITIVE_KEYS)}
        }

        logger.debug(f"Entering {func.__name__}", context=context)

        try:
            start_time = time.time()
            result = func(*args, **kwargs)
            execution_time = time.time() - start_time

            exit_context = {**context, "execution_time_ms": int(execution_time * 1000)}
            logger.debug(f"Exiting {func.__name__}", context=exit_context)

            return result
        except Exception as e:
            error_context = {**context, "error": str(e), "error_type": type(e).__name__}
            logger.debug(f"Error in {func.__name__}", context=error_context)
            raise

    return cast(F, wrapper)


def setup_logging(module_name: str = ROOT_LOGGER_NAME,
                  log_level: str = DEFAULT_LOG_LEVEL) -> logging.Logger:
    """
    Set up logging with appropriate formatters and handlers.

    Args:
        module_name: The name of the logger to configure
        log_level: The log level to use

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(module_name)

    level = getattr(logging, log_level.upper(), logging.INFO)
    logger.setLevel(level)

    # Remove existing handlers so repeated setup does not duplicate output
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if APP_ENV == "production":
        formatter = JsonFormatter()
    else:
        formatter = HumanReadableFormatter(DEFAULT_LOG_FORMAT)

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if LOG_DIR:
        try:
            log_dir = Path(LOG_DIR)
            log_dir.mkdir(exist_ok=True, parents=True)

            log_file = log_dir / f"{module_name}.log"
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=MAX_LOG_SIZE,
                backupCount=BACKUP_COUNT
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            # Don't fail initialization if log file can't be created
            logger.warning(f"Could not set up log file: {e}")

    return logger


def get_logger(name: Optional[str] = None) -> ContextAdapter:
    """
    Get a logger instance with context support.

    Handlers are installed once by ``setup_logging``; module loggers
    propagate to the package logger.

    Args:
        name: Logger name (defaults to caller's module name)

    Returns:
        Context-aware logger
    """
    if name is None:
        frame = sys._getframe(1)
        name = frame.f_globals.get('__name__', ROOT_LOGGER_NAME)

    return ContextAdapter(logging.getLogger(name), {})
