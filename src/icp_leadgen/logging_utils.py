# logging_utils.py
"""Structured logging for the lead generation worker.

JSON lines in deployed environments, a compact colored line in development.
Job-scoped fields (job id, segment) are attached with ``LogContext`` and show
up on every record logged through a ``ContextAdapter``.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "icp_leadgen"

# Shown inline by the human formatter, in this order
JOB_FIELDS = ("job_id", "segment", "step")

_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "taskName"}

_log_context: ContextVar[Dict[str, Any]] = ContextVar("icp_leadgen_log_context", default={})


def _record_extra(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields passed through ``extra=``, made JSON-safe."""
    extra: Dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RESERVED or key.startswith("_"):
            continue
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            value = str(value)
        extra[key] = value
    return extra


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; job fields are lifted to the top level."""

    def __init__(self, service_name: str = "icp-leadgen", include_extra: bool = True):
        """Initialize the structured formatter.

        Args:
            service_name: Name of the service to include in logs
            include_extra: Whether to include extra fields from log record
        """
        super().__init__()
        self.service_name = service_name
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        extra = _record_extra(record) if self.include_extra else {}
        for name in JOB_FIELDS:
            if name in extra:
                entry[name] = extra.pop(name)
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Single-line formatter for local runs."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:<7}"
        if self.use_colors:
            level = f"{self.LEVEL_COLORS.get(record.levelno, '')}{level}{self.RESET}"

        tags = " ".join(
            f"{name}={getattr(record, name)}" for name in JOB_FIELDS if getattr(record, name, None)
        )
        line = f"{when} {level} {record.name.replace(ROOT_LOGGER_NAME + '.', '')}: {record.getMessage()}"
        if tags:
            line = f"{line} [{tags}]"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: Optional[str] = None,
    structured: Optional[bool] = None,
    service_name: str = "icp-leadgen",
) -> logging.Logger:
    """Configure the root logger and return the package logger.

    Args:
        level: Log level name. Defaults to the LOG_LEVEL env var or INFO.
        structured: Whether to emit JSON. Defaults to True unless APP_ENV is 'dev'.
        service_name: Service name to include in structured logs.

    Returns:
        Logger instance for icp_leadgen

    Example:
        >>> logger = setup_logging(level="DEBUG", structured=False)
        >>> logger.info("Worker starting", extra={"job_id": "lg_1"})
    """
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    if structured is None:
        structured = os.environ.get("APP_ENV", "dev") != "dev"

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        StructuredFormatter(service_name=service_name) if structured else HumanReadableFormatter()
    )

    root_logger = logging.getLogger()
    for old in root_logger.handlers[:]:
        root_logger.removeHandler(old)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # Apollo and MinIO clients are chatty below WARNING
    quiet_level = log_level if log_level <= logging.DEBUG else logging.WARNING
    for name in ("httpx", "httpcore", "botocore", "boto3", "urllib3", "s3transfer"):
        logging.getLogger(name).setLevel(quiet_level)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.debug("Logging initialized", extra={"log_level": level_name, "structured": structured})
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger under the icp_leadgen namespace."""
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


class LogContext:
    """Attach fields to every record logged through a ContextAdapter.

    Context is held in a ContextVar, so concurrent worker tasks each keep
    their own job id.

    Example:
        >>> with LogContext(job_id="lg_1"):
        ...     logger.info("Searching")  # includes job_id
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._token = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set({**_log_context.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _log_context.reset(self._token)

    @staticmethod
    def get_context() -> Dict[str, Any]:
        return dict(_log_context.get())


class ContextAdapter(logging.LoggerAdapter):
    """Logger adapter that merges the active LogContext into ``extra``."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**LogContext.get_context(), **(kwargs.get("extra") or {})}
        return msg, kwargs
