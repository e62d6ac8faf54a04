"""
Configuration loading for CmdWatcher.

Two documents are read at startup:
  - the watch rules (JSON, or YAML), one record per watched folder;
  - optional application settings (TOML) for logging, file reading and the
    main loop.
"""

import copy
import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional

import toml
import yaml

from cmdwatcher.errors import ConfigError, RuleValidationError

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = os.path.join("configs", "config.json")
DEFAULT_SETTINGS_PATH = "./settings.toml"
ENV_CONFIG_VAR = "CMDWATCHER_CONFIG"
ENV_CONFIG_DIR_VAR = "CMDWATCHER_CONFIG_DIR"

RULE_FILE_EXTENSIONS = (".json", ".yaml", ".yml")

DEFAULT_SETTINGS = {
    "logging": {
        "level": "INFO",
        "log_dir": "logs",
        "log_file": "cmdwatcher.log",
        "console": True,
    },
    "reader": {
        "retry_count": 3,
        "retry_delay_ms": 1000,
    },
    "watcher": {
        "poll_interval_ms": 100,
        "rules": None,
    },
}


class EventType(str, Enum):
    """Kinds of filesystem notifications a rule can react to."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    RENAMED_OLD = "renamed_old"
    RENAMED_NEW = "renamed_new"
    UNKNOWN = "unknown"


# Record key for each event type's enable flag.
EVENT_FLAG_KEYS = {
    EventType.ADDED: "created",
    EventType.REMOVED: "deleted",
    EventType.MODIFIED: "modified",
    EventType.RENAMED_OLD: "renamed_old",
    EventType.RENAMED_NEW: "renamed_new",
}


@dataclass(frozen=True)
class WatchRule:
    """One folder's watch configuration. Read-only once built."""

    folder: str
    file_extension: str
    events: Mapping[EventType, bool] = field(default_factory=dict)
    command: str = ""
    show_contents: bool = False

    def __post_init__(self):
        # Freeze the flag mapping so handlers cannot alias mutable config.
        object.__setattr__(self, "events", MappingProxyType(dict(self.events)))

    def __hash__(self):
        return hash((
            self.folder,
            self.file_extension,
            frozenset(self.events.items()),
            self.command,
            self.show_contents,
        ))

    def is_enabled(self, event_type: EventType) -> bool:
        return bool(self.events.get(event_type, False))

    def enabled_events(self) -> List[EventType]:
        return [et for et in EVENT_FLAG_KEYS if self.is_enabled(et)]


def _require(record, key, expected_type, type_name):
    if key not in record:
        raise RuleValidationError(f"missing required field '{key}'", field=key, kind="missing")
    value = record[key]
    if not isinstance(value, expected_type):
        raise RuleValidationError(
            f"field '{key}' must be a {type_name}, got {type(value).__name__}",
            field=key,
            kind="type",
        )
    return value


def _optional(record, key, expected_type, type_name, default):
    value = record.get(key)
    if value is None:
        return default
    if not isinstance(value, expected_type):
        raise RuleValidationError(
            f"field '{key}' must be a {type_name}, got {type(value).__name__}",
            field=key,
            kind="type",
        )
    return value


def parse_watch_rule(record: Any) -> WatchRule:
    """
    Validate one watch rule record and build a WatchRule.

    Args:
        record: Mapping with the keys folder, file_extension, created, deleted,
            modified, renamed_old, renamed_new and optionally os_command and
            show_contents.

    Returns:
        WatchRule: The validated rule, with an absolute folder path.

    Raises:
        RuleValidationError: If a field is missing or has the wrong type.
    """
    if not isinstance(record, Mapping):
        raise RuleValidationError(
            f"rule must be a mapping, got {type(record).__name__}", kind="type"
        )

    folder = _require(record, "folder", str, "string")
    if not folder:
        raise RuleValidationError("field 'folder' must not be empty", field="folder", kind="missing")
    file_extension = _require(record, "file_extension", str, "string")
    # bool is checked explicitly; integers are not accepted as flags.
    events = {
        event_type: _require(record, key, bool, "boolean")
        for event_type, key in EVENT_FLAG_KEYS.items()
    }
    command = _optional(record, "os_command", str, "string", "")
    show_contents = _optional(record, "show_contents", bool, "boolean", False)

    return WatchRule(
        folder=os.path.abspath(folder),
        file_extension=file_extension,
        events=events,
        command=command,
        show_contents=show_contents,
    )


def parse_watch_rules(records: Iterable[Any], source: Optional[str] = None) -> List[WatchRule]:
    """
    Build WatchRules from an ordered sequence of records.

    Invalid records are skipped with a warning; the remaining records still load.
    """
    rules = []
    for index, record in enumerate(records):
        try:
            rules.append(parse_watch_rule(record))
        except RuleValidationError as e:
            e.index = index
            where = f" in {source}" if source else ""
            logger.warning(f"Skipping watch rule #{index}{where}: {e}")
    return rules


def _read_document(path):
    _, ext = os.path.splitext(path)
    with open(path, "r") as f:
        if ext.lower() in (".yaml", ".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def load_watch_rules(path: str) -> List[WatchRule]:
    """
    Load watch rules from a JSON or YAML file.

    The document is either a list of rule records or a mapping holding that
    list under the "watches" key.

    Raises:
        ConfigError: If the file is missing, unparseable or has the wrong shape.
    """
    if not os.path.exists(path):
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        data = _read_document(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not parse configuration file {path}: {e}") from e

    if isinstance(data, Mapping) and "watches" in data:
        data = data["watches"]
    if not isinstance(data, list):
        raise ConfigError(
            f"Configuration file {path} must contain a list of watch rules"
        )

    rules = parse_watch_rules(data, source=path)
    logger.info(f"Loaded {len(rules)} of {len(data)} watch rules from {path}")
    return rules


def load_watch_rules_configs(path: str) -> List[WatchRule]:
    """
    Load watch rules from a file, or from every rule file in a directory.

    Files in a directory are read in filename order and their rules are
    concatenated.
    """
    if not os.path.isdir(path):
        return load_watch_rules(path)

    rules = []
    for filename in sorted(os.listdir(path)):
        if filename.lower().endswith(RULE_FILE_EXTENSIONS):
            rules.extend(load_watch_rules(os.path.join(path, filename)))
    return rules


def resolve_rules_path(cli_rules_path=None, settings=None):
    """
    Pick the watch rules path.

    Precedence:
      1. cli_rules_path if provided.
      2. Environment variable CMDWATCHER_CONFIG.
      3. watcher.rules from the settings.
      4. Default to configs/config.json.
    """
    if cli_rules_path:
        return cli_rules_path
    if os.environ.get(ENV_CONFIG_VAR):
        return os.environ[ENV_CONFIG_VAR]
    if settings and settings.get("watcher", {}).get("rules"):
        return settings["watcher"]["rules"]
    return DEFAULT_RULES_PATH


def _merge(base, override):
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(cli_settings_path=None):
    """
    Load application settings from a TOML file merged over the defaults.

    Precedence:
      1. cli_settings_path if provided (must exist).
      2. Environment variable CMDWATCHER_CONFIG_DIR (looking for settings.toml).
      3. ./settings.toml if present.
      4. Built-in defaults.

    Returns:
        dict: The settings, with "__settings_path__" set to the file used or None.
    """
    settings_path = None
    if cli_settings_path:
        settings_path = cli_settings_path
        if not os.path.exists(settings_path):
            raise ConfigError(f"Settings file not found: {settings_path}")
    elif os.environ.get(ENV_CONFIG_DIR_VAR):
        candidate = os.path.join(os.environ[ENV_CONFIG_DIR_VAR], "settings.toml")
        if os.path.exists(candidate):
            settings_path = candidate
    elif os.path.exists(DEFAULT_SETTINGS_PATH):
        settings_path = DEFAULT_SETTINGS_PATH

    data = {}
    if settings_path:
        try:
            with open(settings_path, "r") as f:
                data = toml.load(f)
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigError(f"Could not parse settings file {settings_path}: {e}") from e

    settings = _merge(DEFAULT_SETTINGS, data)
    settings["__settings_path__"] = settings_path
    return settings
