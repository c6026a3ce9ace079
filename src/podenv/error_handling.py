"""
Error handling for podenv.

Defines the exception hierarchy raised by the registry and the manifest
codec, plus a centralized handler that logs structured error context and
dispatches callbacks before the exception reaches the caller.
"""

import logging
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple


class ManifestError(Exception):
    """Base class for all manifest and registry errors."""


class ParseError(ManifestError, ValueError):
    """A manifest declaration is malformed or incomplete."""

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        source: Optional[str] = None,
    ):
        self.line_number = line_number
        self.source = source
        location = ""
        if source is not None and line_number is not None:
            location = f"{source}:{line_number}: "
        elif line_number is not None:
            location = f"line {line_number}: "
        elif source is not None:
            location = f"{source}: "
        super().__init__(f"{location}{message}")


class DuplicateNameError(ParseError):
    """The same dependency name is declared more than once."""

    def __init__(
        self,
        name: str,
        message: Optional[str] = None,
        line_number: Optional[int] = None,
        source: Optional[str] = None,
    ):
        self.name = name
        super().__init__(
            message or f"Duplicate dependency name: {name}",
            line_number=line_number,
            source=source,
        )


class NotFoundError(ManifestError, KeyError):
    """A version was requested for a dependency that is not in the registry."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Dependency not found: {name}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class ConflictError(ManifestError):
    """Two registries declare the same name with different versions."""

    def __init__(
        self,
        name: str,
        left: Tuple[int, int, int],
        right: Tuple[int, int, int],
    ):
        self.name = name
        self.left = left
        self.right = right
        super().__init__(
            f"Conflicting versions for {name}: "
            f"{'.'.join(map(str, left))} vs {'.'.join(map(str, right))}"
        )


class ErrorLevel(Enum):
    """Severity of a reported problem; values are logging level names."""

    WARNING = "WARNING"
    ERROR = "ERROR"


class ErrorCategory(Enum):
    """Which stage of manifest handling a problem came from."""

    PARSING = "PARSING"
    VALIDATION = "VALIDATION"
    LOOKUP = "LOOKUP"
    MERGE = "MERGE"
    CONFIGURATION = "CONFIGURATION"
    FILESYSTEM = "FILESYSTEM"


DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class ErrorContext:
    """What went wrong, where, and what the user can do about it."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None
    traceback_info: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)


class ContextLogger:
    """Logger that renders an ErrorContext as a single line on stderr."""

    def __init__(
        self,
        name: str,
        level: int = logging.WARNING,
        log_format: str = DEFAULT_LOG_FORMAT,
    ):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        if not self.logger.handlers:
            self.logger.addHandler(logging.StreamHandler(sys.stderr))
        for handler in self.logger.handlers:
            handler.setFormatter(logging.Formatter(log_format))

    def log_error_context(self, context: ErrorContext):
        log_data = {
            "category": context.category.value,
            "module": context.module,
            "function": context.function,
            "details": context.details,
        }

        if context.exception:
            log_data["exception"] = type(context.exception).__name__

        if context.suggestions:
            log_data["suggestions"] = context.suggestions

        self.logger.log(getattr(logging, context.level.value), f"{context.message} | {log_data}")


# Error callback type
ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """
    Reports manifest problems before the matching exception is raised.

    Every report is logged through a ContextLogger, counted per
    "<CATEGORY>_<LEVEL>" key and passed to the registered callbacks.
    Callbacks registered for a category run before the global ones.
    """

    def __init__(
        self,
        logger_name: str = "podenv",
        log_level: int = logging.WARNING,
        enable_callbacks: bool = True,
        log_format: str = DEFAULT_LOG_FORMAT,
    ):
        self.logger = ContextLogger(logger_name, log_level, log_format)
        self.enable_callbacks = enable_callbacks
        self.error_callbacks: Dict[ErrorCategory, List[ErrorCallback]] = {}
        self.global_callbacks: List[ErrorCallback] = []
        self.error_stats: Dict[str, int] = {}

    def register_callback(
        self, callback: ErrorCallback, category: Optional[ErrorCategory] = None
    ):
        """Call callback for every report in category, or every report if None."""
        if not self.enable_callbacks:
            return

        if category is None:
            self.global_callbacks.append(callback)
        else:
            self.error_callbacks.setdefault(category, []).append(callback)

    def unregister_callback(self, callback: ErrorCallback):
        """Remove a callback from every category it was registered for."""
        if callback in self.global_callbacks:
            self.global_callbacks.remove(callback)
        for callbacks in self.error_callbacks.values():
            if callback in callbacks:
                callbacks.remove(callback)

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> ErrorContext:
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
            traceback_info=traceback.format_exc() if exception else None,
            suggestions=suggestions or [],
        )

        stat_key = f"{category.value}_{level.value}"
        self.error_stats[stat_key] = self.error_stats.get(stat_key, 0) + 1

        self.logger.log_error_context(context)

        if self.enable_callbacks:
            for callback in self.error_callbacks.get(category, []) + self.global_callbacks:
                try:
                    callback(context)
                except Exception as cb_error:
                    # A failing callback must not replace the manifest error
                    self.logger.logger.error(f"Error in callback: {cb_error}")

        return context

    def warning(
        self,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        **kwargs,
    ) -> ErrorContext:
        return self.handle_error(
            ErrorLevel.WARNING, category, message, module, function, **kwargs
        )

    def error(
        self,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        **kwargs,
    ) -> ErrorContext:
        return self.handle_error(
            ErrorLevel.ERROR, category, message, module, function, **kwargs
        )

    def get_error_stats(self) -> Dict[str, int]:
        return self.error_stats.copy()

    def reset_stats(self):
        self.error_stats.clear()


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Return the process-wide handler, creating one with defaults if needed."""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def setup_error_handling(
    log_level: int = logging.WARNING,
    enable_callbacks: bool = True,
    logger_name: str = "podenv",
    log_format: str = DEFAULT_LOG_FORMAT,
) -> ErrorHandler:
    """Replace the process-wide handler; the CLI calls this with the logging config."""
    global _global_error_handler
    _global_error_handler = ErrorHandler(logger_name, log_level, enable_callbacks, log_format)
    return _global_error_handler


def log_parsing_error(
    message: str,
    module: str,
    function: str,
    line_number: Optional[int] = None,
    file_path: Optional[str] = None,
    exception: Optional[Exception] = None,
):
    """Report a malformed manifest or lock file line; only the file's basename is logged."""
    details: Dict[str, Any] = {}
    if line_number is not None:
        details["line_number"] = line_number
    if file_path is not None:
        details["file_path"] = Path(file_path).name

    get_error_handler().error(
        ErrorCategory.PARSING,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=[
            "Regenerate the manifest from the lock file",
            "Check that every block defines MAJOR, MINOR and PATCH",
        ],
    )


def log_merge_conflict(
    name: str,
    left: Tuple[int, int, int],
    right: Tuple[int, int, int],
    exception: Optional[Exception] = None,
):
    """Report two manifest fragments disagreeing on a version."""
    get_error_handler().error(
        ErrorCategory.MERGE,
        f"Conflicting versions for {name}",
        "registry",
        "merge",
        details={
            "name": name,
            "left": ".".join(map(str, left)),
            "right": ".".join(map(str, right)),
        },
        exception=exception,
        suggestions=["Resolve both fragments against the same lock file"],
    )


def log_lookup_miss(name: str, exception: Optional[Exception] = None):
    """Report a version lookup for an absent dependency."""
    get_error_handler().warning(
        ErrorCategory.LOOKUP,
        f"Dependency not found: {name}",
        "registry",
        "version_of",
        details={"name": name},
        exception=exception,
        suggestions=["Call is_available() before version_of()"],
    )
