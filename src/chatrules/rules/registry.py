"""Rule registry - evaluates every rule against a message and dispatches matches."""

import asyncio
from typing import Any, Iterable, Mapping, Optional
from dataclasses import dataclass, field
import structlog

from ..core.config import EngineConfig, RuleDefinition
from ..core.errors import ConfigurationError
from ..core.logging import LogCallback, NullObserver, RuleObserver
from .actions import ActionDispatcher, ActionResult
from .builder import RuleBuilder
from .chance import ChanceGate
from .matcher import MessageMatcher
from .models import MatchKind, Rule
from .scheduler import DeletionScheduler


logger = structlog.get_logger()

CANCELLED = "CANCELLED"
CANCELLED_TEXT = "Action failed the 'sometimes' chance."


@dataclass
class RuleOutcome:
    """What happened to one rule for one message."""
    index: int
    rule: Rule
    matched: bool
    matched_pattern: Optional[str] = None
    chance_passed: Optional[bool] = None
    task: Optional[asyncio.Task] = None
    error: Optional[str] = None

    @property
    def dispatched(self) -> bool:
        return self.task is not None

    async def result(self) -> Optional[ActionResult]:
        """Wait for the dispatch of this rule, if one was started."""
        if self.task is None:
            return None
        return await self.task


@dataclass
class MessageReport:
    """Outcome of handling one message, one entry per registered rule."""
    outcomes: list[RuleOutcome] = field(default_factory=list)

    @property
    def matched(self) -> list[RuleOutcome]:
        return [o for o in self.outcomes if o.matched]

    @property
    def dispatched(self) -> list[RuleOutcome]:
        return [o for o in self.outcomes if o.dispatched]

    @property
    def cancelled(self) -> list[RuleOutcome]:
        return [o for o in self.outcomes if o.matched and o.chance_passed is False]

    async def wait(self) -> list[ActionResult]:
        """Wait for every dispatch started for this message."""
        return [await o.result() for o in self.dispatched]


class MessageRegistry:
    """
    Ordered collection of rules and the per-message pipeline.

    Flow for every incoming message:
    1. Evaluate every rule in registration order (no short-circuit)
    2. For each match, log it and draw the rule's chance
    3. Start the rule's action as a task (fire-and-forget)
    4. Once the action succeeded, schedule deletion of the message if asked

    One message can fire many rules. Dispatch tasks are started in
    registration order; their completion order is up to the chat service.
    No exception raised by a rule or an action leaves `handle_message`.

    Example:
        registry = MessageRegistry()
        registry.on_word("hello").reply("Hi!")
        registry.on_command("!roll").on_command(roll_dice, min_args=1)

        async def on_message(message):
            await registry.handle_message(message)
    """

    def __init__(
        self,
        context: Optional["MessageRegistry"] = None,
        config: Optional[EngineConfig] = None,
        gate: Optional[ChanceGate] = None,
    ):
        self.config = config or EngineConfig()
        self.gate = gate or ChanceGate()
        self.dispatcher = ActionDispatcher(self.gate)
        self.scheduler = DeletionScheduler()

        self._builders: list[RuleBuilder] = []
        self._case_sensitive = self.config.case_sensitive
        self._observer: RuleObserver = NullObserver()

        self._dispatching: set[asyncio.Task] = set()
        self._stats: dict[str, int] = {
            "messages": 0,
            "matches": 0,
            "cancelled": 0,
            "dispatched": 0,
            "dispatch_failures": 0,
        }

        if context is not None:
            # Same list object: rules registered through either registry
            # are seen by both.
            self._builders = context._builders
            self._case_sensitive = context._case_sensitive
            self._observer = context._observer

    def derive(self) -> "MessageRegistry":
        """
        New registry sharing this one's rule list.

        Case sensitivity and the observer are copied; changing them later on
        either registry does not affect the other. Registering a rule on
        either one adds it to both.
        """
        return MessageRegistry(context=self, config=self.config, gate=self.gate)

    # ==================== Configuration ====================

    @property
    def case_sensitive(self) -> bool:
        return self._case_sensitive

    def set_case_sensitive(self, is_case_sensitive: bool) -> None:
        self._case_sensitive = bool(is_case_sensitive)

    def enable_logging(self, log_fn: LogCallback) -> None:
        """Send match and cancellation events to `log_fn(event_kind, pattern, message)`."""
        if not callable(log_fn):
            raise ConfigurationError("Log callback must be callable")
        self._observer = log_fn

    def set_observer(self, observer: Optional[RuleObserver]) -> None:
        """Replace the event observer; None restores the no-op default."""
        self._observer = observer if observer is not None else NullObserver()

    # ==================== Registration ====================

    def _register(self, match_kind: MatchKind, pattern: Any) -> RuleBuilder:
        builder = RuleBuilder(match_kind, pattern)
        self._builders.append(builder)
        logger.debug("rule_registered", kind=match_kind.value, pattern=builder.rule.label)
        return builder

    def on_substring(self, text: str) -> RuleBuilder:
        return self._register(MatchKind.CONTAINS, text)

    def on_exact_substring(self, text: str) -> RuleBuilder:
        return self._register(MatchKind.CONTAINS_EXACT, text)

    def on_word(self, text: str) -> RuleBuilder:
        return self._register(MatchKind.CONTAINS_WORD, text)

    def on_any_of(self, texts: Iterable[str]) -> RuleBuilder:
        return self._register(MatchKind.CONTAINS_ANY_OF, texts)

    def on_starts_with(self, text: str) -> RuleBuilder:
        return self._register(MatchKind.STARTS_WITH, text)

    def on_ends_with(self, text: str) -> RuleBuilder:
        return self._register(MatchKind.ENDS_WITH, text)

    def on_command(self, text: str) -> RuleBuilder:
        return self._register(MatchKind.COMMAND, text)

    def register_definitions(
        self,
        definitions: Iterable[RuleDefinition],
        callbacks: Optional[Mapping[str, Any]] = None,
    ) -> list[RuleBuilder]:
        """
        Register rules declared in config files.

        Callback names are looked up in `callbacks`. Disabled definitions
        are skipped. Every definition is checked before any is registered,
        so a bad file leaves the registry unchanged.
        """
        callbacks = callbacks or {}
        staged = []

        for definition in definitions:
            if not definition.enabled:
                continue
            try:
                staged.append(self._build_definition(definition, callbacks))
            except ConfigurationError as e:
                e.context.setdefault("rule", definition.id)
                raise

        self._builders.extend(staged)
        logger.info("rules_loaded", total=len(staged), registered=len(self._builders))
        return staged

    def _build_definition(self, definition: RuleDefinition, callbacks: Mapping[str, Any]) -> RuleBuilder:
        builder = RuleBuilder(MatchKind(definition.match), definition.pattern)

        if definition.aliases:
            builder.aliases(*definition.aliases)
        if definition.chance is not None:
            builder.chance(definition.chance)
        if definition.delete_after_ms is not None:
            builder.delete_after(definition.delete_after_ms)

        action = definition.action_name
        if action == "reply":
            builder.reply(definition.reply)
        elif action == "reply_sometimes":
            options = definition.reply_sometimes
            chance = options.chance if options.chance is not None else self.config.default_reply_sometimes_chance
            builder.reply_sometimes(options.text, chance)
        elif action == "reply_one_of":
            builder.reply_one_of(definition.reply_one_of)
        elif action == "callback":
            builder.on_match(self._lookup_callback(definition.callback, callbacks, definition.id))
        elif action == "command":
            options = definition.command
            builder.on_command(
                self._lookup_callback(options.callback, callbacks, definition.id),
                min_args=options.min_args,
                allowed_channel_ids=options.allowed_channel_ids,
                usage_error=options.usage_error,
            )

        return builder

    @staticmethod
    def _lookup_callback(name: str, callbacks: Mapping[str, Any], rule_id: str) -> Any:
        if name not in callbacks:
            raise ConfigurationError(f"Unknown callback '{name}'", rule=rule_id)
        return callbacks[name]

    @property
    def rules(self) -> tuple[Rule, ...]:
        """Current rules, in registration order."""
        return tuple(b.rule for b in self._builders)

    def __len__(self) -> int:
        return len(self._builders)

    # ==================== Message Handling ====================

    async def handle_message(self, message: Any) -> MessageReport:
        """
        Run every rule against one message.

        Returns once all rules were evaluated and all dispatches were
        started; it does not wait for replies to be sent.
        """
        report = MessageReport()
        self._stats["messages"] += 1

        content = getattr(message, "content", None)
        matcher = MessageMatcher(self._case_sensitive)

        # Snapshot so rules registered by a callback apply from the next message
        for index, rule in enumerate(self.rules):
            outcome = RuleOutcome(index=index, rule=rule, matched=False)
            report.outcomes.append(outcome)

            try:
                self._evaluate_rule(matcher, outcome, content, message)
            except Exception as e:
                outcome.error = str(e)
                logger.exception("rule_evaluation_error", index=index, pattern=rule.label)

        return report

    def _evaluate_rule(
        self,
        matcher: MessageMatcher,
        outcome: RuleOutcome,
        content: Any,
        message: Any,
    ) -> None:
        rule = outcome.rule
        matched_pattern = matcher.match(rule, content)

        logger.debug(
            "rule_checked",
            index=outcome.index,
            kind=rule.match_kind.value,
            pattern=rule.label,
            matched=matched_pattern is not None,
        )
        if matched_pattern is None:
            return

        outcome.matched = True
        outcome.matched_pattern = matched_pattern
        self._stats["matches"] += 1
        self._notify(rule.match_kind.event_name, rule.label, message)

        outcome.chance_passed = self.gate.passes(rule)
        if not outcome.chance_passed:
            self._stats["cancelled"] += 1
            logger.debug("rule_cancelled", pattern=rule.label, chance=rule.chance_percent)
            self._notify(CANCELLED, CANCELLED_TEXT, message)
            return

        outcome.task = self._start_dispatch(rule, message, matched_pattern)

    def _start_dispatch(self, rule: Rule, message: Any, matched_pattern: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self._dispatch(rule, message, matched_pattern)
        )
        self._dispatching.add(task)
        task.add_done_callback(self._dispatching.discard)
        self._stats["dispatched"] += 1
        return task

    async def _dispatch(self, rule: Rule, message: Any, matched_pattern: str) -> ActionResult:
        result = await self.dispatcher.execute(rule, message, matched_pattern)

        if not result.success:
            self._stats["dispatch_failures"] += 1
            return result

        logger.debug("rule_dispatched", pattern=rule.label, action=rule.action_kind, output=result.output)
        if rule.delete_after_ms is not None:
            self.scheduler.schedule(message, rule.delete_after_ms)
        return result

    def _notify(self, event_kind: str, pattern: str, message: Any) -> None:
        try:
            self._observer(event_kind, pattern, message)
        except Exception:
            logger.exception("observer_error", kind=event_kind, pattern=pattern)

    # ==================== Utility Methods ====================

    async def drain(self) -> None:
        """Wait for in-flight dispatches and the deletions they scheduled."""
        while self._dispatching:
            await asyncio.gather(*list(self._dispatching), return_exceptions=True)
        await self.scheduler.drain()

    def get_stats(self) -> dict[str, Any]:
        """Counters for this registry."""
        return {
            **self._stats,
            "rules": len(self._builders),
            "deletions_scheduled": self.scheduler.scheduled,
            "deletion_failures": self.scheduler.failed,
            "in_flight": len(self._dispatching) + self.scheduler.pending,
        }
