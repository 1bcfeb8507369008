"""
Logging setup for resolution runs.

Run context (run id, tenant, entity type) travels on each log record as
``record.context``; both formatters render it, JSON as a nested object
and text as a trailing ``key=value`` block.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, TextIO, Union

TEXT_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return dict(getattr(record, "context", None) or {})


class TextFormatter(logging.Formatter):
    """Plain text lines with the run context appended."""

    def __init__(self):
        super().__init__(TEXT_FORMAT, datefmt=DATE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items() if value != "")
        return f"{line} [{pairs}]" if pairs else line


class JsonFormatter(logging.Formatter):
    """One JSON object per line for log shippers.

    Keyword arguments become static top-level fields of every line,
    e.g. ``JsonFormatter(service="goldmatch")``.
    """

    def __init__(self, **static_fields):
        super().__init__()
        self.static_fields = static_fields

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = dict(self.static_fields)
        data.update({
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        })
        context = _context(record)
        if context:
            data["context"] = context
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


def setup_logging(
    name: str = "goldmatch",
    level: Union[str, int] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    json_format: bool = False,
    static_fields: Optional[Dict[str, Any]] = None,
    stream: Optional[TextIO] = None,
    propagate: bool = False
) -> logging.Logger:
    """Configure a logger for command line or service use.

    Calling it again replaces the handlers installed before, so the
    level and format can be changed at runtime.

    Args:
        name: Logger name; ``goldmatch`` covers the whole package
        level: Logging level name or number
        log_file: Optional file receiving the same lines
        json_format: Emit JSON lines instead of text
        static_fields: Fields added to every JSON line
        stream: Console stream, stderr by default so stdout stays free
            for command output
        propagate: Whether records also reach ancestor loggers

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    logger.propagate = propagate

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = JsonFormatter(**(static_fields or {})) if json_format else TextFormatter()

    console = logging.StreamHandler(stream or sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter that attaches its context to every record it emits."""

    def __init__(self, logger: logging.Logger, context: Dict[str, Any]):
        super().__init__(logger, dict(context))

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.setdefault("extra", {})
        extra["context"] = {**self.extra, **extra.get("context", {})}
        return msg, kwargs


class ContextLogger:
    """Context manager scoping log context to a block.

    Example:
        >>> with ContextLogger(logger, run_id="abc") as log:
        ...     log.info("resolving")
    """

    def __init__(self, logger: Union[logging.Logger, LoggerAdapter], **context):
        self.logger = logger
        self.context = context
        self.saved: Optional[Dict[str, Any]] = None

    def __enter__(self) -> LoggerAdapter:
        if isinstance(self.logger, LoggerAdapter):
            self.saved = dict(self.logger.extra)
            self.logger.extra = {**self.saved, **self.context}
            return self.logger
        return LoggerAdapter(self.logger, self.context)

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.saved is not None:
            self.logger.extra = self.saved
        return False
