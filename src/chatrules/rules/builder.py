"""Chainable rule configuration."""

from dataclasses import replace
from typing import Any, Iterable, Optional, Union

from .models import (
    Action,
    CommandCallback,
    InvokeCommandCallback,
    InvokeSimpleCallback,
    MatchKind,
    Reply,
    ReplyOneOf,
    ReplySometimes,
    Rule,
    SimpleCallback,
)


class RuleBuilder:
    """
    Fluent configuration for one registered rule.

    Every setter validates its input straight away and swaps in a new
    immutable Rule, so a bad value raises ConfigurationError at the call
    site rather than when a message arrives. Setting a second action
    replaces the first.

    Example:
        registry.on_command("!ban").on_command(ban_user, min_args=1, usage_error="Usage: !ban <user>")
        registry.on_word("cat").reply_one_of(["meow", "purr"]).chance(25)
    """

    def __init__(self, match_kind: MatchKind, pattern: Union[str, Iterable[str]]):
        if isinstance(pattern, list):
            pattern = tuple(pattern)
        self._rule = Rule(match_kind=match_kind, pattern=pattern)

    @property
    def rule(self) -> Rule:
        """Current immutable snapshot of this rule."""
        return self._rule

    def _update(self, **changes: Any) -> "RuleBuilder":
        self._rule = replace(self._rule, **changes)
        return self

    def _set_action(self, action: Action) -> "RuleBuilder":
        return self._update(action=action)

    # ==================== Actions ====================

    def reply(self, text: str) -> "RuleBuilder":
        """Reply with a fixed text."""
        return self._set_action(Reply(text))

    def reply_sometimes(self, text: str, chance: int = 50) -> "RuleBuilder":
        """Reply with a fixed text `chance` percent of the time."""
        return self._set_action(ReplySometimes(text, chance))

    def reply_one_of(self, choices: Iterable[str]) -> "RuleBuilder":
        """Reply with one randomly picked text."""
        return self._set_action(ReplyOneOf(choices))

    def on_match(self, callback: SimpleCallback) -> "RuleBuilder":
        """Call `callback(message)`."""
        return self._set_action(InvokeSimpleCallback(callback))

    def on_command(
        self,
        callback: CommandCallback,
        min_args: int = 0,
        allowed_channel_ids: Optional[Iterable[Any]] = None,
        usage_error: Optional[str] = None,
    ) -> "RuleBuilder":
        """
        Call `callback(args, raw_args, message)` with the text after the prefix.

        The callback is skipped when the message comes from a channel outside
        `allowed_channel_ids` or carries fewer than `min_args` arguments; in
        that case `usage_error`, if given, is sent as a reply instead.
        """
        action = InvokeCommandCallback(
            callback=callback,
            min_args=min_args,
            allowed_channel_ids=allowed_channel_ids,
            usage_error=usage_error,
        )
        return self._set_action(action)

    # ==================== Modifiers ====================

    def chance(self, percent: int) -> "RuleBuilder":
        """Fire only `percent` percent of the times the rule matches."""
        return self._update(chance_percent=percent)

    def delete_after(self, ms: float) -> "RuleBuilder":
        """Delete the triggering message `ms` milliseconds after the action ran."""
        return self._update(delete_after_ms=ms)

    def aliases(self, *names: str) -> "RuleBuilder":
        """Alternative prefixes for starts_with and command rules."""
        if len(names) == 1 and not isinstance(names[0], str):
            names = tuple(names[0])
        return self._update(aliases=tuple(names))

    def __repr__(self) -> str:
        return f"RuleBuilder({self._rule!r})"
