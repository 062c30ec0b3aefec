"""Core components: errors, configuration, logging."""

from .config import ConfigLoader, EngineConfig, RuleDefinition
from .errors import (
    ChatRulesError,
    ConfigurationError,
    DispatchError,
    DeletionError,
)
from .logging import configure_logging, NullObserver, StructlogObserver

__all__ = [
    "ConfigLoader",
    "EngineConfig",
    "RuleDefinition",
    "ChatRulesError",
    "ConfigurationError",
    "DispatchError",
    "DeletionError",
    "configure_logging",
    "NullObserver",
    "StructlogObserver",
]
