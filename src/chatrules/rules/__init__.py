"""Rule matching and dispatch."""

from .registry import MessageRegistry
from .matcher import MessageMatcher
from .actions import ActionDispatcher
from .chance import ChanceGate
from .scheduler import DeletionScheduler

__all__ = ["MessageRegistry", "MessageMatcher", "ActionDispatcher", "ChanceGate", "DeletionScheduler"]
