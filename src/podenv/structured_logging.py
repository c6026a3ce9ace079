"""
Structured logging configuration for podenv.

Emits machine-readable JSON events for manifest loads, writes, merges and
lookups. Events go to stderr so that manifests and JSON written to stdout
stay clean.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_RESERVED_ATTRS = frozenset(
    [
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
    ]
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": getattr(record, "component", record.name),
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class ManifestLogger:
    """Structured event logger."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"podenv.{name}")
        self._setup_logger()
        self.context: Dict[str, Any] = {}

    def _setup_logger(self) -> None:
        """Setup logger with structured formatting."""
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.WARNING)
            self.logger.propagate = False

    def set_context(self, **context) -> None:
        """Attach fields to every subsequent event."""
        self.context = {key: value for key, value in context.items() if value is not None}

    def clear_context(self) -> None:
        self.context.clear()

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.context, **kwargs}
        getattr(self.logger, level)("", extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        """Log info level event."""
        self._log("info", event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        """Log warning level event."""
        self._log("warning", event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        """Log error level event."""
        self._log("error", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        """Log debug level event."""
        self._log("debug", event_type, **kwargs)


_manifest_logger = ManifestLogger("manifest")
_registry_logger = ManifestLogger("registry")


def get_manifest_logger() -> ManifestLogger:
    """Get manifest load/write logger."""
    return _manifest_logger


def get_registry_logger() -> ManifestLogger:
    """Get registry merge/lookup logger."""
    return _registry_logger


def log_manifest_loaded(source: Optional[str], record_count: int) -> None:
    get_manifest_logger().info(
        "manifest_loaded", source=source or "<text>", record_count=record_count
    )


def log_manifest_written(destination: Optional[str], record_count: int) -> None:
    get_manifest_logger().info(
        "manifest_written",
        destination=destination or "<stdout>",
        record_count=record_count,
    )


def log_merge(fragment_count: int, record_count: int) -> None:
    get_registry_logger().info(
        "registries_merged", fragment_count=fragment_count, record_count=record_count
    )


def log_lookup(name: str, found: bool) -> None:
    """Log a presence/version query."""
    if found:
        get_registry_logger().debug("dependency_lookup", dependency=name, found=True)
    else:
        get_registry_logger().info("dependency_lookup", dependency=name, found=False)


def configure_logging(log_level: str = "WARNING") -> None:
    """Set the level of every podenv logger."""
    level = getattr(logging, log_level.upper(), logging.WARNING)

    logging.getLogger("podenv").setLevel(level)
    for logger in [_manifest_logger, _registry_logger]:
        logger.logger.setLevel(level)
