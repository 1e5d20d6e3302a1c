"""Configuration loader for localdbctl.

Configuration values are read from multiple sources, later sources winning:

1. Built-in defaults.
2. ``~/.localdbctl/config.yml`` (or an override path).
3. Environment variables prefixed with ``LOCALDBCTL_``.
4. Explicit overrides supplied programmatically (reserved for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export LOCALDBCTL_DATABASE__PORT=9200
    export LOCALDBCTL_DATABASE__LISTEN="[localhost, 10.0.0.5]"

Values are coerced via PyYAML's ``safe_load`` so that lists and numbers are
parsed naturally. The resulting configuration is exposed as immutable
``dataclasses``.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import cast

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered in tests
    raise RuntimeError(
        "PyYAML is required to load localdbctl configuration. Install with "
        "`pip install localdbctl` or ensure PyYAML>=6.0 is available."
    ) from exc


ENV_PREFIX = "LOCALDBCTL_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}
RUNNING_INFO_FILENAME = "localdb.json"


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class DatabaseConfig:
    """Defaults used when starting or locating the database server."""

    name: str = "localdb"
    port: int = 9193
    listen: tuple[str, ...] = ("localhost",)

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"name": self.name, "port": self.port, "listen": list(self.listen)}


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for localdbctl."""

    config_file: Path
    state_dir: Path
    running_info_file: Path
    log_level: str
    database: DatabaseConfig

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "state_dir": str(self.state_dir),
            "running_info_file": str(self.running_info_file),
            "log_level": self.log_level,
            "database": self.database.to_dict(),
        }


DEFAULTS: dict[str, object] = {
    "config_file": "~/.localdbctl/config.yml",
    "state_dir": "~/.localdbctl/internal",
    "running_info_file": None,  # derived from state_dir when absent
    "log_level": "warning",
    "database": {
        "name": "localdb",
        "port": 9193,
        "listen": ("localhost",),
    },
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
ALLOWED_DATABASE_KEYS = {"name", "port", "listen"}
ALLOWED_LOG_LEVELS = {"debug", "info", "warning", "error"}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override).expanduser()
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR]).expanduser()
    return Path(default_path).expanduser()


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    log_level = raw.get("log_level")
    if log_level is not None and str(log_level).lower() not in ALLOWED_LOG_LEVELS:
        allowed = ", ".join(sorted(ALLOWED_LOG_LEVELS))
        raise ConfigError(f"Unsupported log_level '{log_level}'. Allowed: {allowed}.")

    database = raw.get("database")
    if database is not None:
        database_map = _as_dict(database, "database")
        unknown = set(database_map.keys()) - ALLOWED_DATABASE_KEYS
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown database configuration keys: {joined}.")


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    config_file = _to_path(raw.get("config_file"))
    state_dir = _to_path(raw.get("state_dir"))

    running_info_value = raw.get("running_info_file")
    running_info_file = (
        _to_path(running_info_value)
        if running_info_value
        else state_dir / RUNNING_INFO_FILENAME
    )

    database_mapping = _as_dict(raw.get("database"), "database")
    defaults = DatabaseConfig()
    name = str(database_mapping.get("name", defaults.name)).strip()
    if not name:
        raise ConfigError("database.name must be a non-empty string.")
    port = _expect_int(database_mapping.get("port"), "database.port", default=defaults.port)
    if not 1 <= port <= 65535:
        raise ConfigError(f"database.port must be between 1 and 65535. Got {port}.")
    listen = _expect_listen(database_mapping.get("listen"), default=defaults.listen)

    return AppConfig(
        config_file=config_file,
        state_dir=state_dir,
        running_info_file=running_info_file,
        log_level=str(raw.get("log_level", "warning")).lower(),
        database=DatabaseConfig(name=name, port=port, listen=listen),
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        else:
            result[key] = value
    return result


def _expect_listen(value: object | None, *, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    if isinstance(value, str):
        items = [segment.strip() for segment in value.split(",")]
    elif isinstance(value, (list, tuple)):
        items = []
        for index, entry in enumerate(value):
            if not isinstance(entry, str):
                raise ConfigError(
                    f"database.listen[{index}] must be a string. Got {type(entry).__name__}."
                )
            items.append(entry.strip())
    else:
        raise ConfigError(
            f"Expected database.listen to be a list or string. Got {type(value).__name__}."
        )
    addresses = tuple(item for item in items if item)
    if not addresses:
        raise ConfigError("database.listen must name at least one address.")
    return addresses


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # e.g. a bare ``*``, which YAML reads as an alias
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_int(value: object | None, label: str, *, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "ConfigError",
    "DatabaseConfig",
    "load_config",
]
