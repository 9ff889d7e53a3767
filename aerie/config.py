"""
Config system - Layered typed configuration with validation.

Merge precedence (later overrides earlier):
defaults < config files (YAML/JSON) < environment variables < overrides
"""

from typing import Any, Dict, Optional, Type, get_type_hints, get_origin, get_args
from dataclasses import dataclass, field, fields, is_dataclass, MISSING
from pathlib import Path
import os
import re
import json
import types
import logging

import yaml

from .faults import ConfigFault


logger = logging.getLogger("aerie.config")


class ConfigError(ConfigFault):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, **metadata):
        super().__init__(code="CONFIG_INVALID", message=message, metadata=metadata)


# ============================================================================
# Config dataclasses
# ============================================================================

@dataclass
class OpenApiConfig:
    """Serving of the generated OpenAPI document."""
    enabled: bool = False
    use_authentication: bool = False


@dataclass
class LoggerConfig:
    """
    Framework logging.

    Attributes:
        level: Standard logging level name, or "off"
        format: "string" for plain lines, "json" for one JSON object per line
        log_timestamp: Prefix/include an ISO timestamp
    """
    level: str = "info"
    format: str = "string"
    log_timestamp: bool = False


@dataclass
class AppConfig:
    """Top-level application configuration."""
    name: Optional[str] = None
    version: Optional[str] = None
    base: Optional[str] = None
    open_api: OpenApiConfig = field(default_factory=OpenApiConfig)
    server_logger: LoggerConfig = field(default_factory=LoggerConfig)


# ============================================================================
# Loader
# ============================================================================

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Keys may be written in snake_case or camelCase (``openApi``,
    ``useAuthentication``); they are normalized to snake_case.

    Environment variables use the prefix and ``__`` for nesting:
    ``AERIE_OPEN_API__ENABLED=true``.
    """

    def __init__(self, env_prefix: str = "AERIE_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[list] = None,
        env_prefix: str = "AERIE_",
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from files, environment and overrides.

        Args:
            paths: Config file paths (glob patterns supported)
            env_prefix: Prefix for environment variables
            overrides: Manual overrides (highest precedence)
        """
        loader = cls(env_prefix=env_prefix)

        for pattern in paths or ():
            loader._load_from_files(str(pattern))

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_from_files(self, pattern: str):
        """Load config from JSON or YAML files."""
        from glob import glob

        matches = glob(pattern)
        if not matches and not any(ch in pattern for ch in "*?["):
            raise ConfigError(f"Config file not found: {pattern}", path=pattern)

        for path_str in sorted(matches):
            path = Path(path_str)
            if path.suffix == ".json":
                self._load_json_file(path)
            elif path.suffix in (".yaml", ".yml"):
                self._load_yaml_file(path)
            else:
                raise ConfigError(f"Unsupported config file type: {path.suffix}", path=path_str)

    def _load_json_file(self, path: Path):
        with open(path) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Invalid JSON in {path}: {e}", path=str(path))
        self._merge_dict(self.config_data, data)

    def _load_yaml_file(self, path: Path):
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}", path=str(path))
        if data:
            if not isinstance(data, dict):
                raise ConfigError(f"Config file {path} must contain a mapping", path=str(path))
            self._merge_dict(self.config_data, data)

    def _load_from_env(self):
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert AERIE_OPEN_API__ENABLED to {"open_api": {"enabled": ...}}."""
        key = key[len(self.env_prefix):]
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
        """Deep merge source into target, normalizing key case."""
        for key, value in source.items():
            key = _snake(str(key))
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            elif isinstance(value, dict):
                target[key] = {}
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def to_app_config(self) -> AppConfig:
        return self._instantiate_dataclass(AppConfig, self.config_data)

    def _instantiate_dataclass(self, config_class: Type, data: dict):
        """Instantiate dataclass config with validation."""
        if not isinstance(data, dict):
            raise ConfigError(
                f"Config section for {config_class.__name__} must be a mapping, "
                f"got {type(data).__name__}"
            )

        hints = get_type_hints(config_class)
        known = {f.name for f in fields(config_class)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(
                "Ignoring unknown config field(s) for %s: %s", config_class.__name__, ", ".join(unknown)
            )

        kwargs = {}
        for field_info in fields(config_class):
            field_name = field_info.name
            field_type = hints[field_name]

            if field_name in data:
                value = data[field_name]

                if is_dataclass(field_type):
                    kwargs[field_name] = self._instantiate_dataclass(field_type, value)
                    continue

                if isinstance(value, (int, float)) and not isinstance(value, bool) \
                        and self._accepts_str(field_type):
                    value = str(value)

                if not self._check_type(value, field_type):
                    raise ConfigError(
                        f"Config field '{field_name}' expected {field_type}, "
                        f"got {type(value).__name__}"
                    )

                kwargs[field_name] = value
            elif field_info.default is not MISSING:
                kwargs[field_name] = field_info.default
            elif field_info.default_factory is not MISSING:
                kwargs[field_name] = field_info.default_factory()
            else:
                raise ConfigError(f"Required config field '{field_name}' not provided")

        return config_class(**kwargs)

    def _accepts_str(self, expected_type: Type) -> bool:
        if expected_type is str:
            return True
        return str in get_args(expected_type)

    def _check_type(self, value: Any, expected_type: Type) -> bool:
        """Basic type checking."""
        origin = get_origin(expected_type)
        if origin is types.UnionType or str(origin) == "typing.Union":
            if value is None:
                return True
            return any(self._check_type(value, arg) for arg in get_args(expected_type) if arg is not type(None))

        if origin:
            return isinstance(value, origin)

        if expected_type is bool:
            return isinstance(value, bool)

        try:
            return isinstance(value, expected_type)
        except TypeError:
            return True

    def to_dict(self) -> dict:
        return dict(self.config_data)


def load_config(
    path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    env_prefix: str = "AERIE_",
) -> AppConfig:
    """Build an AppConfig from an optional file, the environment and overrides."""
    loader = ConfigLoader.load(
        paths=[path] if path else None,
        env_prefix=env_prefix,
        overrides=overrides,
    )
    return loader.to_app_config()
