"""Tests for core components: errors and configuration."""

import json

import pytest
import structlog

from chatrules.core.config import ConfigLoader, EngineConfig, RuleDefinition
from chatrules.core.errors import (
    ConfigurationError,
    DeletionError,
    DispatchError,
    ErrorCategory,
    ErrorSeverity,
)
from chatrules.core.logging import NullObserver, StructlogObserver, configure_logging
from chatrules.rules.registry import MessageRegistry


RULES_YAML = """
rules:
  - id: greet
    match: starts_with
    pattern: hi
    aliases: [hey, yo]
    reply: Hello!
  - id: pets
    match: contains_any_of
    pattern: [cat, dog]
    reply_one_of: [aww, cute]
    chance: 100
  - id: maybe
    match: contains_word
    pattern: maybe
    reply_sometimes:
      text: perhaps
  - id: ban
    match: command
    pattern: "!ban"
    command:
      callback: ban_user
      min_args: 1
      allowed_channel_ids: [10, "20"]
      usage_error: "Usage: !ban <user>"
  - id: spam
    match: contains
    pattern: buy now
    callback: log_spam
    delete_after_ms: 0
  - id: disabled
    match: contains
    pattern: anything
    reply: never
    enabled: false
"""


class TestErrors:
    """Test error taxonomy and serialization."""

    def test_configuration_error_defaults(self):
        error = ConfigurationError("bad chance", config_path="rules.yaml", rule="greet")

        assert error.severity == ErrorSeverity.HIGH
        assert error.category == ErrorCategory.VALIDATION
        assert error.retryable is False
        assert error.context == {"config_path": "rules.yaml", "rule": "greet"}

    def test_dispatch_error_serialization(self):
        error = DispatchError("send failed", action="reply")
        data = error.to_dict()

        assert data["type"] == "DispatchError"
        assert data["message"] == "send failed"
        assert data["category"] == "external"
        assert data["context"]["action"] == "reply"

    def test_deletion_error_is_low_severity(self):
        error = DeletionError("gone", delay_ms=500)
        assert error.severity == ErrorSeverity.LOW
        assert error.context["delay_ms"] == 500
        assert str(error) == "gone"


class TestEngineConfig:
    """Test settings loading."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in ("CHATRULES_CASE_SENSITIVE", "CHATRULES_LOG_LEVEL", "CHATRULES_LOG_FORMAT"):
            monkeypatch.delenv(name, raising=False)

    def test_defaults(self):
        config = EngineConfig()
        assert config.case_sensitive is False
        assert config.log_level == "INFO"
        assert config.log_format == "console"
        assert config.default_reply_sometimes_chance == 50

    def test_missing_file_gives_defaults(self, tmp_path):
        loader = ConfigLoader(str(tmp_path), load_env=False)
        assert loader.load_engine_config() == EngineConfig()

    def test_file_and_env_override(self, tmp_path, monkeypatch):
        (tmp_path / "chatrules.yaml").write_text("case_sensitive: false\nlog_level: DEBUG\n")
        monkeypatch.setenv("CHATRULES_CASE_SENSITIVE", "true")
        monkeypatch.setenv("CHATRULES_LOG_FORMAT", "json")

        config = ConfigLoader(str(tmp_path), load_env=False).load_engine_config()

        assert config.case_sensitive is True
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "chatrules.yaml"
        path.write_text("default_reply_sometimes_chance: 0\n")

        with pytest.raises(ConfigurationError) as exc:
            ConfigLoader(str(tmp_path), load_env=False).load_engine_config()
        assert exc.value.context["config_path"] == str(path)

    def test_configure_logging_json(self):
        configure_logging("DEBUG", json_format=True)
        configure_logging("INFO")

    def test_configure_logging_from_config(self):
        try:
            configure_logging(config=EngineConfig(log_level="DEBUG", log_format="json"))
            renderer = structlog.get_config()["processors"][-1]
            assert isinstance(renderer, structlog.processors.JSONRenderer)

            configure_logging(config=EngineConfig())
            renderer = structlog.get_config()["processors"][-1]
            assert isinstance(renderer, structlog.dev.ConsoleRenderer)
        finally:
            structlog.reset_defaults()


class TestRuleFiles:
    """Test declarative rule files."""

    @pytest.fixture
    def rules_dir(self, tmp_path):
        directory = tmp_path / "rules"
        directory.mkdir()
        (directory / "10-basic.yaml").write_text(RULES_YAML)
        return directory

    def test_load_rules(self, rules_dir):
        rules = ConfigLoader(str(rules_dir.parent), load_env=False).load_rules()

        assert [r.id for r in rules] == ["greet", "pets", "maybe", "ban", "spam", "disabled"]
        assert rules[0].action_name == "reply"
        assert rules[3].command.min_args == 1
        assert rules[5].enabled is False

    def test_json_files_load_in_path_order(self, rules_dir):
        (rules_dir / "00-first.json").write_text(json.dumps({
            "rules": [{"id": "early", "match": "ends_with", "pattern": "?", "reply": "hmm"}]
        }))

        rules = ConfigLoader(str(rules_dir.parent), load_env=False).load_rules()
        assert rules[0].id == "early"

    def test_missing_directory(self, tmp_path):
        assert ConfigLoader(str(tmp_path), load_env=False).load_rules() == []

    def test_schema_violation(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("rules:\n  - id: x\n    match: regex\n    pattern: a\n    reply: b\n")

        with pytest.raises(ConfigurationError) as exc:
            ConfigLoader(str(tmp_path), load_env=False).load_rules_file(path)
        assert "rules/0/match" in exc.value.message

    def test_exactly_one_action(self):
        with pytest.raises(ValueError):
            RuleDefinition(id="none", match="contains", pattern="x")
        with pytest.raises(ValueError):
            RuleDefinition(id="two", match="contains", pattern="x", reply="a", callback="b")

    def test_action_errors_name_the_rule(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("rules:\n  - id: empty\n    match: contains\n    pattern: x\n")

        with pytest.raises(ConfigurationError) as exc:
            ConfigLoader(str(tmp_path), load_env=False).load_rules_file(path)
        assert exc.value.context["rule"] == "empty"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("rules: [unclosed\n")

        with pytest.raises(ConfigurationError):
            ConfigLoader(str(tmp_path), load_env=False).load_rules_file(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError):
            ConfigLoader(str(tmp_path), load_env=False).load_rules_file(path)


class TestRegisterDefinitions:
    """Test registering file-declared rules on a registry."""

    @pytest.fixture
    def definitions(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text(RULES_YAML)
        return ConfigLoader(str(tmp_path), load_env=False).load_rules_file(path)

    def test_register(self, definitions):
        registry = MessageRegistry()
        staged = registry.register_definitions(
            definitions,
            callbacks={"ban_user": lambda args, raw, msg: None, "log_spam": lambda msg: None},
        )

        assert len(staged) == 5
        greet, pets, maybe, ban, spam = registry.rules
        assert greet.match_patterns == ("hey", "yo", "hi")
        assert pets.chance_percent == 100
        assert maybe.action.chance_percent == 50
        assert ban.action.allowed_channel_ids == frozenset({"10", "20"})
        assert spam.delete_after_ms == 0

    def test_unknown_callback_registers_nothing(self, definitions):
        registry = MessageRegistry()

        with pytest.raises(ConfigurationError) as exc:
            registry.register_definitions(definitions, callbacks={"ban_user": print})

        assert exc.value.context["rule"] == "spam"
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_registered_rules_handle_messages(self, definitions, make_message):
        banned = []
        registry = MessageRegistry()
        registry.register_definitions(
            definitions,
            callbacks={
                "ban_user": lambda args, raw, msg: banned.append(args[0]),
                "log_spam": lambda msg: None,
            },
        )

        greeting = make_message("yo everyone")
        command = make_message("!ban mallory", channel_id=20)
        spam = make_message("BUY NOW cheap")
        for message in (greeting, command, spam):
            await registry.handle_message(message)
        await registry.drain()

        assert greeting.replies == ["Hello!"]
        assert banned == ["mallory"]
        assert spam.deleted is True


class TestObservers:
    """Test the built-in observers."""

    def test_null_observer(self):
        assert NullObserver()("CONTAINS", "x", object()) is None

    def test_structlog_observer_forwards(self):
        events = []

        class Recorder:
            def info(self, event, **kw):
                events.append((event, kw))

        class Msg:
            content = "hello"

        StructlogObserver(Recorder())("CONTAINS", "hell", Msg())
        assert events == [("rule_event", {"kind": "CONTAINS", "pattern": "hell", "content": "hello"})]
