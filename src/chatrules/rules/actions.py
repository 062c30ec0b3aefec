"""Action dispatch for matched rules."""

import inspect
from typing import Any, Awaitable, Callable, Optional
from dataclasses import dataclass, field
import structlog

from ..core.errors import DispatchError
from .chance import ChanceGate
from .models import (
    ActionKind,
    InvokeCommandCallback,
    InvokeSimpleCallback,
    Reply,
    ReplyOneOf,
    ReplySometimes,
    Rule,
)


logger = structlog.get_logger()


@dataclass
class ActionResult:
    """Result of an action dispatch."""
    success: bool
    output: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


# handler(rule, message, matched_pattern) -> ActionResult
ActionHandler = Callable[[Rule, Any, Optional[str]], Awaitable[ActionResult]]


async def _settle(result: Any) -> Any:
    """Await the result of a user callback or chat call if it is awaitable."""
    if inspect.isawaitable(result):
        return await result
    return result


def channel_id_of(message: Any) -> Any:
    """Channel id of a message: `channel_id`, else `channel.id`, else None."""
    channel_id = getattr(message, "channel_id", None)
    if channel_id is not None:
        return channel_id
    channel = getattr(message, "channel", None)
    return getattr(channel, "id", None)


def _prefix_length(text: str, prefix: str) -> int:
    """Length of the leading part of `text` that matched `prefix`."""
    if text.startswith(prefix):
        return len(prefix)
    # Case-insensitive match: lowercasing may change string length
    folded = prefix.lower()
    for end in range(1, len(text) + 1):
        if text[:end].lower() == folded:
            return end
    return len(prefix)


def parse_command_args(content: str, prefix: Optional[str]) -> tuple[list[str], str]:
    """
    Split the text after a command prefix into arguments.

    Returns (args, raw_args): args are the whitespace-separated words,
    raw_args is the remainder with surrounding whitespace stripped.
    """
    text = content.lstrip()
    if prefix:
        text = text[_prefix_length(text, prefix):]
    raw_args = text.strip()
    return raw_args.split(), raw_args


class ActionDispatcher:
    """
    Performs the configured effect of a matched rule.

    Actions are routed by kind:
    - Replies (fixed text, sometimes, one of several)
    - User callbacks (plain, or command-style with parsed arguments)

    Failures raised by the chat service or by user callbacks are wrapped
    in DispatchError, logged, and returned as a failed ActionResult.
    Nothing raised by an action escapes `execute`.
    """

    def __init__(self, gate: Optional[ChanceGate] = None):
        self.gate = gate or ChanceGate()
        self._handlers: dict[ActionKind, ActionHandler] = {}
        self._register_builtin_actions()

    def get_handler(self, action_kind: ActionKind) -> Optional[ActionHandler]:
        return self._handlers.get(action_kind)

    def list_actions(self) -> list[ActionKind]:
        return list(self._handlers.keys())

    async def execute(
        self,
        rule: Rule,
        message: Any,
        matched_pattern: Optional[str] = None,
    ) -> ActionResult:
        """
        Execute the action of a rule for a message.

        Args:
            rule: Matched, chance-passed rule
            message: Triggering message
            matched_pattern: Pattern (or alias) that matched, used to strip
                the command prefix

        Returns:
            ActionResult with success status and output
        """
        handler = self._handlers.get(rule.action_kind)
        if handler is None:
            # No action configured, or one this dispatcher does not know
            logger.debug("action_noop", pattern=rule.label, action=rule.action_kind)
            return ActionResult(success=True, output={"action": "noop"})

        try:
            return await handler(rule, message, matched_pattern)
        except Exception as e:
            error = DispatchError(str(e) or e.__class__.__name__, action=rule.action_kind.value)
            logger.warning(
                "dispatch_failed",
                pattern=rule.label,
                error_type=e.__class__.__name__,
                **error.to_dict(),
            )
            return ActionResult(success=False, error=error.message)

    def _register_builtin_actions(self) -> None:
        self._handlers[ActionKind.REPLY] = self._action_reply
        self._handlers[ActionKind.REPLY_SOMETIMES] = self._action_reply_sometimes
        self._handlers[ActionKind.REPLY_ONE_OF] = self._action_reply_one_of
        self._handlers[ActionKind.INVOKE_SIMPLE_CALLBACK] = self._action_simple_callback
        self._handlers[ActionKind.INVOKE_COMMAND_CALLBACK] = self._action_command_callback

    async def _send(self, message: Any, text: str) -> ActionResult:
        await _settle(message.reply(text))
        return ActionResult(success=True, output={"replied": text})

    async def _action_reply(self, rule: Rule, message: Any, matched: Optional[str]) -> ActionResult:
        action: Reply = rule.action
        return await self._send(message, action.text)

    async def _action_reply_sometimes(self, rule: Rule, message: Any, matched: Optional[str]) -> ActionResult:
        """Independent of the rule-level chance: both draws must pass."""
        action: ReplySometimes = rule.action
        if not self.gate.roll(action.chance_percent):
            logger.debug("reply_skipped", pattern=rule.label, chance=action.chance_percent)
            return ActionResult(success=True, output={"replied": None, "skipped": True})
        return await self._send(message, action.text)

    async def _action_reply_one_of(self, rule: Rule, message: Any, matched: Optional[str]) -> ActionResult:
        action: ReplyOneOf = rule.action
        return await self._send(message, self.gate.choice(action.choices))

    async def _action_simple_callback(self, rule: Rule, message: Any, matched: Optional[str]) -> ActionResult:
        action: InvokeSimpleCallback = rule.action
        await _settle(action.callback(message))
        return ActionResult(success=True, output={"invoked": True})

    async def _action_command_callback(self, rule: Rule, message: Any, matched: Optional[str]) -> ActionResult:
        action: InvokeCommandCallback = rule.action
        args, raw_args = parse_command_args(message.content, matched)

        if not action.allows_channel(channel_id_of(message)):
            reason = "channel_not_allowed"
        elif len(args) < action.min_args:
            reason = "not_enough_args"
        else:
            await _settle(action.callback(args, raw_args, message))
            return ActionResult(success=True, output={"invoked": True, "args": args})

        logger.debug("command_rejected", pattern=rule.label, reason=reason, args=len(args))
        if action.usage_error:
            await self._send(message, action.usage_error)
        return ActionResult(
            success=True,
            output={"invoked": False, "rejected": reason, "usage_error_sent": bool(action.usage_error)},
        )
