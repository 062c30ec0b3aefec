"""Structured logging setup and rule event observers."""

import logging
import sys
from typing import Any, Callable, Optional, Protocol

import structlog

from .config import EngineConfig


logger = structlog.get_logger()

# callback(event_kind, matched_pattern, message)
LogCallback = Callable[[str, str, Any], Any]


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    config: Optional[EngineConfig] = None,
) -> None:
    """
    Configure structlog on top of the stdlib logging module.

    Args:
        level: Minimum log level name
        json_format: Render JSON lines instead of the console format
        config: Engine settings; when given, its log_level and log_format
            take precedence over the other arguments
    """
    if config is not None:
        level = config.log_level
        json_format = config.log_format == "json"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class RuleObserver(Protocol):
    """Receives match and cancellation events from a registry."""

    def __call__(self, event_kind: str, matched_pattern: str, message: Any) -> Any:
        ...


class NullObserver:
    """Default observer: ignores every event."""

    def __call__(self, event_kind: str, matched_pattern: str, message: Any) -> None:
        return None


class StructlogObserver:
    """Forwards observer events to structlog."""

    def __init__(self, bound_logger: Optional[Any] = None):
        self._logger = bound_logger or structlog.get_logger("chatrules.events")

    def __call__(self, event_kind: str, matched_pattern: str, message: Any) -> None:
        self._logger.info(
            "rule_event",
            kind=event_kind,
            pattern=matched_pattern,
            content=getattr(message, "content", None),
        )
