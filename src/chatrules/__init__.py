"""
Declarative chat message rules.

Register rules that match incoming chat messages against text patterns
and run a reply or callback when they match:
- Substring, exact substring, whole word, any-of, prefix, suffix and command matching
- Chance-gated actions
- Delayed deletion of the triggering message
"""

from .core.errors import ChatRulesError, ConfigurationError, DispatchError, DeletionError
from .rules.models import MatchKind, ActionKind, Rule
from .rules.builder import RuleBuilder
from .rules.registry import MessageRegistry, MessageReport, RuleOutcome

__version__ = "0.1.0"

__all__ = [
    "ChatRulesError",
    "ConfigurationError",
    "DispatchError",
    "DeletionError",
    "MatchKind",
    "ActionKind",
    "Rule",
    "RuleBuilder",
    "MessageRegistry",
    "MessageReport",
    "RuleOutcome",
]
