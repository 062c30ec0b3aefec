"""Rule and action data types."""

from enum import Enum
from typing import Any, Callable, ClassVar, Optional, Union
from dataclasses import dataclass, field

from ..core.errors import ConfigurationError


class MatchKind(Enum):
    """String comparison strategy of a rule."""
    CONTAINS = "contains"
    CONTAINS_EXACT = "contains_exact"
    CONTAINS_WORD = "contains_word"
    CONTAINS_ANY_OF = "contains_any_of"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    COMMAND = "command"

    @property
    def takes_prefix(self) -> bool:
        """Kinds compared as a leading whole word, which accept aliases."""
        return self in (MatchKind.STARTS_WITH, MatchKind.COMMAND)

    @property
    def event_name(self) -> str:
        """Event kind reported to observers when a rule of this kind matches."""
        return _EVENT_NAMES[self]


_EVENT_NAMES = {
    MatchKind.CONTAINS: "MESSAGE_CONTAINS",
    MatchKind.CONTAINS_EXACT: "MESSAGE_CONTAINS_EXACT",
    MatchKind.CONTAINS_WORD: "MESSAGE_CONTAINS_WORD",
    MatchKind.CONTAINS_ANY_OF: "MESSAGE_CONTAINS_ONE",
    MatchKind.STARTS_WITH: "MESSAGE_STARTS_WITH",
    MatchKind.ENDS_WITH: "MESSAGE_ENDS_WITH",
    MatchKind.COMMAND: "COMMAND",
}


class ActionKind(Enum):
    """Effect performed when a rule fires."""
    REPLY = "reply"
    REPLY_SOMETIMES = "reply_sometimes"
    REPLY_ONE_OF = "reply_one_of"
    INVOKE_SIMPLE_CALLBACK = "invoke_simple_callback"
    INVOKE_COMMAND_CALLBACK = "invoke_command_callback"


# callback(message)
SimpleCallback = Callable[[Any], Any]

# callback(args, raw_args, message)
CommandCallback = Callable[[list[str], str, Any], Any]


def validate_chance(percent: Any, name: str = "chance") -> int:
    """Check a percentage is an integer in [1, 100]."""
    if isinstance(percent, bool) or not isinstance(percent, int):
        raise ConfigurationError(f"{name} must be an integer, got {percent!r}")
    if not 1 <= percent <= 100:
        raise ConfigurationError(f"{name} must be between 1 and 100, got {percent}")
    return percent


@dataclass(frozen=True)
class Reply:
    """Send a fixed text back to the message origin."""
    kind: ClassVar[ActionKind] = ActionKind.REPLY
    text: str

    def __post_init__(self):
        if not isinstance(self.text, str) or not self.text:
            raise ConfigurationError("Reply text must be a non-empty string")


@dataclass(frozen=True)
class ReplySometimes:
    """Reply, but only when a second, action-level draw succeeds."""
    kind: ClassVar[ActionKind] = ActionKind.REPLY_SOMETIMES
    text: str
    chance_percent: int = 50

    def __post_init__(self):
        if not isinstance(self.text, str) or not self.text:
            raise ConfigurationError("Reply text must be a non-empty string")
        validate_chance(self.chance_percent, "reply_sometimes chance")


@dataclass(frozen=True)
class ReplyOneOf:
    """Reply with one text picked uniformly from the choices."""
    kind: ClassVar[ActionKind] = ActionKind.REPLY_ONE_OF
    choices: tuple[str, ...]

    def __post_init__(self):
        if isinstance(self.choices, str):
            raise ConfigurationError("reply_one_of expects a list of texts, not a string")
        object.__setattr__(self, "choices", tuple(self.choices))
        if not self.choices:
            raise ConfigurationError("reply_one_of needs at least one choice")
        if not all(isinstance(c, str) and c for c in self.choices):
            raise ConfigurationError("reply_one_of choices must be non-empty strings")


@dataclass(frozen=True)
class InvokeSimpleCallback:
    """Call the user callback with the message."""
    kind: ClassVar[ActionKind] = ActionKind.INVOKE_SIMPLE_CALLBACK
    callback: SimpleCallback

    def __post_init__(self):
        if not callable(self.callback):
            raise ConfigurationError("on_match callback must be callable")


@dataclass(frozen=True)
class InvokeCommandCallback:
    """Parse arguments after the matched prefix and call the user callback."""
    kind: ClassVar[ActionKind] = ActionKind.INVOKE_COMMAND_CALLBACK
    callback: CommandCallback
    min_args: int = 0
    allowed_channel_ids: Optional[frozenset] = None
    usage_error: Optional[str] = None

    def __post_init__(self):
        if not callable(self.callback):
            raise ConfigurationError("on_command callback must be callable")
        if isinstance(self.min_args, bool) or not isinstance(self.min_args, int) or self.min_args < 0:
            raise ConfigurationError(f"min_args must be a non-negative integer, got {self.min_args!r}")
        if self.allowed_channel_ids is not None:
            if isinstance(self.allowed_channel_ids, str):
                raise ConfigurationError("allowed_channel_ids expects a collection of ids")
            # Ids are compared as strings so 123 and "123" are the same channel
            object.__setattr__(
                self,
                "allowed_channel_ids",
                frozenset(str(c) for c in self.allowed_channel_ids),
            )
        if self.usage_error is not None and not isinstance(self.usage_error, str):
            raise ConfigurationError("usage_error must be a string")

    def allows_channel(self, channel_id: Any) -> bool:
        if self.allowed_channel_ids is None:
            return True
        if channel_id is None:
            return False
        return str(channel_id) in self.allowed_channel_ids


Action = Union[Reply, ReplySometimes, ReplyOneOf, InvokeSimpleCallback, InvokeCommandCallback]


@dataclass(frozen=True)
class Rule:
    """
    One registered matching configuration plus its action.

    Rules are immutable. Aliases of prefix kinds are normalized when the rule
    is built: extra aliases first, the primary pattern last, duplicates dropped.
    `match_patterns` is the list the matcher actually compares against.
    """
    match_kind: MatchKind
    pattern: Union[str, tuple[str, ...]]
    aliases: tuple[str, ...] = ()
    action: Optional[Action] = None
    chance_percent: Optional[int] = None
    delete_after_ms: Optional[float] = None
    match_patterns: tuple[str, ...] = field(init=False, repr=False)

    def __post_init__(self):
        if not isinstance(self.match_kind, MatchKind):
            raise ConfigurationError(f"Unknown match kind: {self.match_kind!r}")

        if self.match_kind is MatchKind.CONTAINS_ANY_OF:
            if isinstance(self.pattern, str):
                raise ConfigurationError("any_of rules take a list of patterns", rule=self.pattern)
            if isinstance(self.pattern, (set, frozenset)):
                raise ConfigurationError(
                    "any_of patterns must be an ordered list, not a set", rule=repr(self.pattern)
                )
            try:
                patterns = tuple(self.pattern)
            except TypeError:
                raise ConfigurationError(
                    "any_of rules take a list of patterns", rule=repr(self.pattern)
                ) from None
            if not patterns or not all(isinstance(p, str) and p for p in patterns):
                raise ConfigurationError("any_of patterns must be a non-empty list of non-empty strings")
            object.__setattr__(self, "pattern", patterns)
        elif not isinstance(self.pattern, str) or not self.pattern:
            raise ConfigurationError("Rule pattern must be a non-empty string", rule=repr(self.pattern))

        if self.aliases:
            if not self.match_kind.takes_prefix:
                raise ConfigurationError(
                    f"Aliases are only supported for starts_with and command rules, not {self.match_kind.value}",
                    rule=self.label,
                )
            if not all(isinstance(a, str) and a for a in self.aliases):
                raise ConfigurationError("Aliases must be non-empty strings", rule=self.label)

        if self.chance_percent is not None:
            validate_chance(self.chance_percent)

        if self.delete_after_ms is not None:
            if isinstance(self.delete_after_ms, bool) or not isinstance(self.delete_after_ms, (int, float)):
                raise ConfigurationError("delete_after must be a number of milliseconds", rule=self.label)
            if self.delete_after_ms < 0:
                raise ConfigurationError("delete_after must not be negative", rule=self.label)

        if (
            isinstance(self.action, InvokeCommandCallback)
            and not self.match_kind.takes_prefix
        ):
            raise ConfigurationError(
                "Command callbacks need a prefix to strip; use on_command or on_starts_with",
                rule=self.label,
            )

        object.__setattr__(self, "match_patterns", self._normalize_patterns())

    def _normalize_patterns(self) -> tuple[str, ...]:
        if isinstance(self.pattern, tuple):
            return self.pattern
        if not self.match_kind.takes_prefix:
            return (self.pattern,)
        ordered = []
        for candidate in (*self.aliases, self.pattern):
            if candidate not in ordered:
                ordered.append(candidate)
        return tuple(ordered)

    @property
    def label(self) -> str:
        """Pattern as shown in logs and observer events."""
        if isinstance(self.pattern, tuple):
            return ",".join(self.pattern)
        return self.pattern

    @property
    def action_kind(self) -> Optional[ActionKind]:
        return self.action.kind if self.action is not None else None
