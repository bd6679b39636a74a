"""
Structured logging for the schedule board.

Each record is a single JSON object. Context values stored under personal-name
keys (parents and children on a booking) are masked on the way out, so callers
can pass booking context as-is. log_operation times board and API operations
and lifts the session, trainer and date-range arguments of the call into the
record context.
"""

import inspect
import json
import logging
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, Optional

# Context keys whose values are personal names
NAME_KEYS = frozenset({"parent_name", "child_name", "children", "children_summary", "trainer_name"})

# Call arguments copied into the context of a timed operation
OPERATION_ARGUMENTS = ("session_id", "trainer_id", "date_from", "date_to", "period")


def mask_name(name: Optional[str]) -> str:
    """
    Mask a personal name, keeping the first letter of each word.

    Example:
        >>> mask_name("Jane Doe")
        "J*** D**"
        >>> mask_name("")
        "unknown"
    """
    if not name or not name.strip():
        return "unknown"
    return " ".join(part[0] + "*" * (len(part) - 1) for part in name.split())


def mask_context(context: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a log context with every name-bearing value masked."""
    masked: Dict[str, Any] = {}
    for key, value in context.items():
        if key not in NAME_KEYS or value is None:
            masked[key] = value
        elif isinstance(value, (list, tuple)):
            masked[key] = [mask_name(str(item)) for item in value]
        else:
            masked[key] = mask_name(str(value))
    return masked


class StructuredLogger:
    """JSON logger; one line per record, written through a stdlib logger of the same name."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter("%(message)s"))
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.DEBUG)

    def _format_log(
        self,
        level: str,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
        error: Optional[str] = None,
    ) -> str:
        """
        Render one record.

        Always carries timestamp, level, logger and message; operation,
        context, duration_ms and error only when given. Values json cannot
        encode (dates, enums) are stringified.
        """
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level,
            "logger": self.logger.name,
            "message": message,
        }
        if operation:
            entry["operation"] = operation
        if context:
            entry["context"] = mask_context(context)
        if duration_ms is not None:
            entry["duration_ms"] = round(duration_ms, 2)
        if error:
            entry["error"] = error
        return json.dumps(entry, ensure_ascii=False, default=str)

    def _log(
        self,
        level: int,
        message: str,
        operation: Optional[str],
        context: Optional[Dict[str, Any]],
        duration_ms: Optional[float],
        error: Optional[str],
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(
            level,
            self._format_log(
                logging.getLevelName(level), message, operation, context, duration_ms, error
            ),
        )

    def debug(self, message, operation=None, context=None, error=None):
        self._log(logging.DEBUG, message, operation, context, None, error)

    def info(self, message, operation=None, context=None, duration_ms=None):
        self._log(logging.INFO, message, operation, context, duration_ms, None)

    def warning(self, message, operation=None, context=None, error=None):
        self._log(logging.WARNING, message, operation, context, None, error)

    def error(self, message, operation=None, context=None, error=None, duration_ms=None):
        self._log(logging.ERROR, message, operation, context, duration_ms, error)


def _call_context(signature: inspect.Signature, func_name: str, args, kwargs) -> Dict[str, Any]:
    context: Dict[str, Any] = {"function": func_name}
    try:
        arguments = signature.bind_partial(*args, **kwargs).arguments
    except TypeError:
        return context
    for name in OPERATION_ARGUMENTS:
        if arguments.get(name) is not None:
            context[name] = arguments[name]
    return context


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def log_operation(operation_name: str):
    """
    Decorator that logs the start, completion and failure of a call, with its duration.

    Failures are logged and re-raised.

    Usage:
        @log_operation("fetch_sessions")
        def list_sessions(self, date_from, date_to):
            ...
    """

    def decorator(func):
        signature = inspect.signature(func)

        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = StructuredLogger(func.__module__)
            context = _call_context(signature, func.__name__, args, kwargs)
            logger.debug(f"Starting {operation_name}", operation=operation_name, context=context)

            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Failed {operation_name}",
                    operation=operation_name,
                    context=context,
                    error=str(e),
                    duration_ms=_elapsed_ms(started),
                )
                raise
            logger.info(
                f"Completed {operation_name}",
                operation=operation_name,
                context=context,
                duration_ms=_elapsed_ms(started),
            )
            return result

        return wrapper

    return decorator


def get_logger(name: str) -> StructuredLogger:
    """Structured logger for a module; pass __name__."""
    return StructuredLogger(name)
