"""Structured key=value logging for the KB Builder service."""

import logging
import sys
from typing import Any

from pydantic import ValidationError

# Pipeline context promoted from ``extra=`` into every formatted line
CONTEXT_FIELDS = ("session_id", "step", "provider", "attempt", "image_count", "document_id")


def _render(value: Any) -> str:
    text = str(value)
    return f'"{text}"' if " " in text else text


class StructuredFormatter(logging.Formatter):
    """Renders a record as ``key=value`` pairs, pipeline context first."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
        }
        fields.update(
            (name, getattr(record, name)) for name in CONTEXT_FIELDS if hasattr(record, name)
        )
        fields.update(getattr(record, "extra_data", None) or {})

        line = " ".join(f"{k}={_render(v)}" for k, v in fields.items())
        line = f"{line} message={record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _level_for_environment() -> int:
    try:
        from kb_builder.core.config import get_settings

        return logging.DEBUG if get_settings().KB_ENV == "dev" else logging.INFO
    except (ImportError, ValidationError):
        # Settings incomplete (e.g. during tooling); stay at INFO
        return logging.INFO


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger writing structured lines to stdout.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.setLevel(_level_for_environment())
    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **context: Any) -> None:
    """
    Log ``msg`` with pipeline context.

    Known fields (session_id, step, provider, ...) become record attributes;
    anything else is appended as free-form extra data.
    """
    extra: dict[str, Any] = {name: context.pop(name) for name in CONTEXT_FIELDS if name in context}
    extra["extra_data"] = context
    logger.log(level, msg, extra=extra)
