"""Configuration loading and validation."""

import os
import json
from pathlib import Path
from typing import Any, Literal, Optional, Union

import yaml
import jsonschema
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import ConfigurationError


MATCH_NAMES = (
    "contains",
    "contains_exact",
    "contains_word",
    "contains_any_of",
    "starts_with",
    "ends_with",
    "command",
)

ACTION_FIELDS = ("reply", "reply_sometimes", "reply_one_of", "callback", "command")


# Structural check of a rules file, run before pydantic parsing so
# errors point at the offending document shape.
RULES_FILE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "rules": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "match", "pattern"],
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "match": {"enum": list(MATCH_NAMES)},
                    "pattern": {
                        "oneOf": [
                            {"type": "string", "minLength": 1},
                            {"type": "array", "items": {"type": "string"}, "minItems": 1},
                        ]
                    },
                    "aliases": {"type": "array", "items": {"type": "string"}},
                    "chance": {"type": "integer", "minimum": 1, "maximum": 100},
                    "delete_after_ms": {"type": "number", "minimum": 0},
                    "enabled": {"type": "boolean"},
                },
            },
        },
    },
    "required": ["rules"],
}


class EngineConfig(BaseModel):
    """Registry-wide settings."""
    case_sensitive: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")
    default_reply_sometimes_chance: int = Field(default=50, ge=1, le=100)


class ReplySometimesDefinition(BaseModel):
    text: str = Field(min_length=1)
    chance: Optional[int] = Field(default=None, ge=1, le=100)


class CommandDefinition(BaseModel):
    callback: str = Field(min_length=1)
    min_args: int = Field(default=0, ge=0)
    allowed_channel_ids: Optional[list[Union[int, str]]] = None
    usage_error: Optional[str] = None


class RuleDefinition(BaseModel):
    """A rule declared in a config file."""
    id: str
    match: Literal[
        "contains",
        "contains_exact",
        "contains_word",
        "contains_any_of",
        "starts_with",
        "ends_with",
        "command",
    ]
    pattern: Union[str, list[str]]
    aliases: list[str] = Field(default_factory=list)
    chance: Optional[int] = Field(default=None, ge=1, le=100)
    delete_after_ms: Optional[float] = Field(default=None, ge=0)
    enabled: bool = True

    # Exactly one action
    reply: Optional[str] = None
    reply_sometimes: Optional[ReplySometimesDefinition] = None
    reply_one_of: Optional[list[str]] = None
    callback: Optional[str] = None
    command: Optional[CommandDefinition] = None

    @model_validator(mode="after")
    def _one_action(self) -> "RuleDefinition":
        given = [name for name in ACTION_FIELDS if getattr(self, name) is not None]
        if len(given) != 1:
            raise ValueError(
                f"rule '{self.id}' needs exactly one action of {ACTION_FIELDS}, got {given or 'none'}"
            )
        return self

    @property
    def action_name(self) -> str:
        return next(name for name in ACTION_FIELDS if getattr(self, name) is not None)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class ConfigLoader:
    """Loads and validates YAML/JSON configurations."""

    ENV_PREFIX = "CHATRULES_"

    def __init__(self, config_dir: str = "./config", load_env: bool = True):
        self.config_dir = Path(config_dir)
        if load_env:
            load_dotenv()

    def load_engine_config(self, path: Optional[str] = None) -> EngineConfig:
        """
        Load registry settings.

        A missing file gives the defaults. Environment variables
        CHATRULES_CASE_SENSITIVE, CHATRULES_LOG_LEVEL and CHATRULES_LOG_FORMAT
        override the file.
        """
        if path is None:
            path = self.config_dir / "chatrules.yaml"
        else:
            path = Path(path)

        data = self._load_file(path) if path.exists() else {}

        overrides = {
            "case_sensitive": os.getenv(f"{self.ENV_PREFIX}CASE_SENSITIVE"),
            "log_level": os.getenv(f"{self.ENV_PREFIX}LOG_LEVEL"),
            "log_format": os.getenv(f"{self.ENV_PREFIX}LOG_FORMAT"),
        }
        for key, value in overrides.items():
            if value is None:
                continue
            data[key] = _env_flag(value) if key == "case_sensitive" else value

        try:
            return EngineConfig(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid engine config: {e}", config_path=str(path))

    def load_rules(self, directory: Optional[str] = None) -> list[RuleDefinition]:
        """
        Load every rule file in a directory.

        Files are read in sorted path order and rules keep their order
        within a file, so registration order is stable across runs.
        """
        if directory is None:
            directory = self.config_dir / "rules"
        else:
            directory = Path(directory)

        rules = []
        if not directory.exists():
            return rules

        files = sorted(
            p for p in directory.glob("**/*")
            if p.suffix in (".yaml", ".yml", ".json")
        )
        for file_path in files:
            rules.extend(self.load_rules_file(file_path))

        return rules

    def load_rules_file(self, path: Union[str, Path]) -> list[RuleDefinition]:
        """Load rules from a single file."""
        path = Path(path)
        data = self._load_file(path)

        try:
            jsonschema.validate(data, RULES_FILE_SCHEMA)
        except jsonschema.ValidationError as e:
            location = "/".join(str(p) for p in e.absolute_path) or "<root>"
            raise ConfigurationError(
                f"Invalid rules file at {location}: {e.message}",
                config_path=str(path),
            )

        rules = []
        for rule_data in data["rules"]:
            try:
                rules.append(RuleDefinition(**rule_data))
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid rule: {e}",
                    config_path=str(path),
                    rule=rule_data.get("id"),
                )

        return rules

    def _load_file(self, path: Path) -> dict[str, Any]:
        """Load YAML or JSON file."""
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}", config_path=str(path))

        try:
            content = path.read_text()

            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(content) or {}
            elif path.suffix == ".json":
                data = json.loads(content)
            else:
                raise ConfigurationError(
                    f"Unsupported config format: {path.suffix}",
                    config_path=str(path)
                )
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}", config_path=str(path))
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON: {e}", config_path=str(path))

        if not isinstance(data, dict):
            raise ConfigurationError("Config file must contain a mapping", config_path=str(path))
        return data
