"""
Config system - Layered typed configuration with validation.

Lifecycle options are loaded from YAML files, a .env file, environment
variables and explicit overrides, merged in that order.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, fields
from pathlib import Path
import glob
import json
import logging
import os

import yaml
from dotenv import dotenv_values


logger = logging.getLogger("orderly.config")

LATE_CONSTRUCTION_POLICIES = ("start", "reject", "record")


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass(frozen=True)
class LifecycleConfig:
    """
    Options of the lifecycle core.

    Attributes:
        late_construction: What happens to components constructed after the
            start walk: "start" runs their start hooks immediately, "reject"
            raises LateConstructionError, "record" only records them
        hook_conventions: Treat on_startup/on_shutdown methods as hooks
        diagnostics: Attach the logging diagnostics listener
        log_level: Level used by the logging diagnostics listener
    """

    late_construction: str = "start"
    hook_conventions: bool = True
    diagnostics: bool = False
    log_level: str = "DEBUG"

    def __post_init__(self):
        if self.late_construction not in LATE_CONSTRUCTION_POLICIES:
            raise ConfigError(
                f"Invalid late_construction {self.late_construction!r}; "
                f"expected one of {', '.join(LATE_CONSTRUCTION_POLICIES)}"
            )
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ConfigError(f"Invalid log_level {self.log_level!r}")

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(str(self.log_level).upper())

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LifecycleConfig":
        """
        Build from a mapping, rejecting unknown keys.

        Raises:
            ConfigError: On unknown keys or wrongly typed values
        """
        data = dict(data or {})
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigError(
                f"Unknown lifecycle config keys: {', '.join(unknown)}"
            )

        for name in ("hook_conventions", "diagnostics"):
            if name in data and not isinstance(data[name], bool):
                raise ConfigError(
                    f"Config field '{name}' must be a boolean, got {data[name]!r}"
                )
        for name in ("late_construction", "log_level"):
            if name in data and not isinstance(data[name], str):
                raise ConfigError(
                    f"Config field '{name}' must be a string, got {data[name]!r}"
                )

        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources with precedence:
    overrides > environment variables > .env file > config files > defaults
    """

    def __init__(self, env_prefix: str = "ORDERLY_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[list[str]] = None,
        env_prefix: str = "ORDERLY_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from multiple sources.

        Merge order (later overrides earlier):
        1. Config files (YAML or JSON, glob patterns supported)
        2. .env file (only keys with the prefix)
        3. Environment variables (prefix, ``__`` separates nesting)
        4. Manual overrides

        Args:
            paths: List of config file paths
            env_prefix: Prefix for environment variables
            env_file: Path to .env file
            overrides: Manual overrides (highest precedence)

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)

        for pattern in paths or ():
            loader._load_from_files(pattern)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_from_files(self, pattern: str):
        """Load config from files matching pattern."""
        matches = sorted(glob.glob(pattern)) or [pattern]
        for match in matches:
            path = Path(match)
            if not path.exists():
                logger.debug(f"Config file {path} not found, skipping")
                continue
            if path.suffix == ".json":
                self._load_json_file(path)
            elif path.suffix in (".yaml", ".yml"):
                self._load_yaml_file(path)
            else:
                raise ConfigError(f"Unsupported config file type: {path}")

    def _load_json_file(self, path: Path):
        """Load config from JSON file."""
        with open(path) as f:
            data = json.load(f)
        if data:
            self._merge_dict(self.config_data, data)

    def _load_yaml_file(self, path: Path):
        """Load config from YAML file."""
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if data:
            if not isinstance(data, dict):
                raise ConfigError(f"Config file {path} must contain a mapping")
            self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str):
        """Load config from .env file."""
        env_path = Path(path)
        if not env_path.exists():
            return

        for key, value in dotenv_values(env_path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self):
        """Load config from environment variables."""
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert ORDERLY_LIFECYCLE__LATE_CONSTRUCTION to nested dict."""
        key = key[len(self.env_prefix):]

        # Split by double underscore for nested keys
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get config value by dotted path.

        Example:
            loader.get("lifecycle.late_construction")
        """
        current: Any = self.config_data
        for part in path.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def get_lifecycle_config(self) -> LifecycleConfig:
        """Build the validated lifecycle config from the ``lifecycle`` section."""
        section = self.get("lifecycle", {})
        if not isinstance(section, dict):
            raise ConfigError("Config section 'lifecycle' must be a mapping")
        return LifecycleConfig.from_dict(section)

    def to_dict(self) -> dict:
        return self.config_data
