"""Error definitions for the rule engine."""

from typing import Optional, Any
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels for classification."""
    LOW = "low"           # Expected in normal operation (message already gone)
    MEDIUM = "medium"     # One action lost, pipeline unaffected
    HIGH = "high"         # Rule cannot be registered


class ErrorCategory(Enum):
    """Error categories for routing and handling."""
    VALIDATION = "validation"     # Malformed rule or config value
    EXTERNAL = "external"         # Chat service or user callback failure
    PERMANENT = "permanent"       # Config file unusable


class ChatRulesError(Exception):
    """Base exception for all rule engine errors."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.EXTERNAL,
        context: Optional[dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.category = category
        self.context = context or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for logging."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context,
            "retryable": self.retryable,
        }


class ConfigurationError(ChatRulesError):
    """Malformed rule or configuration, raised at registration time."""

    def __init__(
        self,
        message: str,
        config_path: Optional[str] = None,
        rule: Optional[str] = None,
        **kwargs
    ):
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        super().__init__(message, **kwargs)
        if config_path is not None:
            self.context["config_path"] = config_path
        if rule is not None:
            self.context["rule"] = rule


class DispatchError(ChatRulesError):
    """Sending a reply or running a user callback failed."""

    def __init__(self, message: str, action: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.context["action"] = action


class DeletionError(ChatRulesError):
    """Deleting the triggering message failed."""

    def __init__(self, message: str, delay_ms: Optional[float] = None, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.LOW)
        super().__init__(message, **kwargs)
        self.context["delay_ms"] = delay_ms
