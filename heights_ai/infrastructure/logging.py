"""
Logging - root logger configuration and query tracing

JSON lines (StructuredFormatter) for production and log files, coloured
single lines (ConsoleFormatter) for a terminal. Records may carry the
fields in TRACE_FIELDS through ``extra=``.
"""

import json
import logging
import sys
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, Optional


TRACE_FIELDS = ("request_id", "provider", "intent", "symbol", "duration_ms")

# third-party loggers that are noisy at INFO
_QUIET_LOGGERS = ("LiteLLM", "httpx", "yfinance")


def _trace_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = {}
    for name in TRACE_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            fields[name] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update(_trace_fields(record))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["data"] = extra_data
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Coloured, human readable lines"""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        fields = _trace_fields(record)

        prefix = f"{color}{stamp} {record.levelname:<7}{self.RESET}"
        if "request_id" in fields:
            prefix += f" [{fields['request_id']}]"
        line = f"{prefix} {record.name}: {record.getMessage()}"

        if "duration_ms" in fields:
            line += f" ({fields['duration_ms']:.2f}ms)"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure the root logger

    Existing root handlers are replaced, so calling this twice is safe.

    Args:
        level: level name, unknown names fall back to INFO
        json_format: JSON lines on stdout instead of coloured text
        log_file: also write JSON lines to this path

    Returns:
        logging.Logger: the root logger
    """
    root = logging.getLogger()
    resolved = logging.getLevelName(level.upper())
    root.setLevel(resolved if isinstance(resolved, int) else logging.INFO)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(StructuredFormatter() if json_format else ConsoleFormatter())
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(StructuredFormatter())
        root.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Traces one operation

    Logs a start line on entry and a finish (or failure) line with the
    elapsed time on exit. Exceptions are logged and re-raised.
    """

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        request_id: Optional[str] = None,
        **extra
    ):
        self.logger = logger
        self.operation = operation
        self.request_id = request_id
        self.extra = extra
        self._started: Optional[float] = None

    def _fields(self, **more) -> Dict[str, Any]:
        return {"request_id": self.request_id, "extra_data": self.extra, **more}

    @property
    def elapsed_ms(self) -> float:
        if self._started is None:
            return 0.0
        return (time.perf_counter() - self._started) * 1000

    def __enter__(self):
        self._started = time.perf_counter()
        self.logger.info(f"Started {self.operation}", extra=self._fields())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        fields = self._fields(duration_ms=self.elapsed_ms)
        if exc_type is None:
            self.logger.info(f"Finished {self.operation}", extra=fields)
        else:
            self.logger.error(f"Failed {self.operation}: {exc_val}", extra=fields, exc_info=True)
        return False


def log_async_performance(logger: Optional[logging.Logger] = None):
    """Times a coroutine function; DEBUG on success, ERROR on failure"""
    def decorator(func):
        log = logger or get_logger(func.__module__)

        @wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                elapsed = (time.perf_counter() - started) * 1000
                log.error(f"{func.__qualname__} failed: {e}", extra={"duration_ms": elapsed})
                raise
            elapsed = (time.perf_counter() - started) * 1000
            log.debug(f"{func.__qualname__} done", extra={"duration_ms": elapsed})
            return result
        return wrapper
    return decorator
