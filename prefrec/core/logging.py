"""
Structured logging configuration using structlog.

Provides consistent, structured logging across the application with:
- JSON output in production
- Pretty console output in development
- Context binding for request tracing
- File output to the configured log directory (one file per run)
- Preference keys and categories rendered as their storage strings
"""

import logging
import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

import structlog
from structlog.typing import Processor

from prefrec.core.config import settings


def _cull_old_logs(logs_dir: Path, keep: int) -> None:
    """Delete old log files, keeping only the N most recent.

    Args:
        logs_dir: Directory containing log files
        keep: Number of recent log files to retain
    """
    log_files = sorted(
        logs_dir.glob("prefrec_*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    for old_file in log_files[keep:]:
        try:
            os.remove(old_file)
        except OSError:
            pass  # Ignore permission errors, etc.


def _render_value(value: Any) -> Any:
    if hasattr(value, "to_storage_key"):
        return value.to_storage_key()
    if isinstance(value, Enum):
        return value.value
    return value


def render_preference_values(
    logger: Any, method_name: str, event_dict: structlog.typing.EventDict
) -> structlog.typing.EventDict:
    """Render PreferenceKey values as 'CATEGORY~~id' and enums as their value.

    Lets callers log keys and categories directly without converting them,
    and keeps JSON output serializable.
    """
    for name, value in event_dict.items():
        event_dict[name] = _render_value(value)
    return event_dict


def configure_logging(
    log_sessions_to_keep: Optional[int] = None, log_dir: Optional[Path] = None
) -> None:
    """Configure structlog for the application.

    Call this once at application startup, before any logging.

    Creates a new timestamped log file per run and culls old logs,
    keeping only the most recent N runs.

    Args:
        log_sessions_to_keep: Number of recent run logs to retain
            (default: settings.log_sessions_to_keep)
        log_dir: Directory for log files (default: settings.log_dir)

    Outputs:
        - Console (colored in dev, JSON in production)
        - File: <log_dir>/prefrec_YYYYMMDD_HHMMSS.log
    """
    keep = log_sessions_to_keep or settings.log_sessions_to_keep
    logs_dir = Path(log_dir or settings.log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    # keep-1 to make room for the new file
    _cull_old_logs(logs_dir, keep=max(keep - 1, 0))

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"prefrec_{timestamp}.log"

    shared_processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
        render_preference_values,
    ]

    if settings.debug:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    # Clear existing handlers so reconfiguration in tests does not duplicate output
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    root_logger.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file, mode="w")
    file_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(file_handler)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Bound structlog logger

    Usage:
        from prefrec.core.logging import get_logger

        log = get_logger(__name__)
        log.info("something_happened", key="value")
    """
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """
    Bind context variables that will be included in all subsequent logs.

    Useful for request-scoped context like user_id:

        bind_context(user_id=user.id, request_id=request_id)
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables from the logging context."""
    structlog.contextvars.clear_contextvars()


def bind_request_context(
    user_id: Optional[str] = None,
    category: Optional[Any] = None,
    preference_id: Optional[str] = None,
) -> None:
    """
    Bind the user and preference a request acts on.

    Only the values given are bound, so route dependencies can each add
    what their path carries:

        bind_request_context(user_id=user_id, category=category)
    """
    context = {
        "user_id": user_id,
        "category": _render_value(category),
        "preference_id": preference_id,
    }
    bind_context(**{name: value for name, value in context.items() if value is not None})
