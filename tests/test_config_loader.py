"""Configuration loader tests."""
from __future__ import annotations

from pathlib import Path

import pytest

from localdbctl.config import DEFAULTS, AppConfig, ConfigError, load_config


def test_load_config_defaults_when_file_missing(tmp_path: Path) -> None:
    """Defaults apply when no config file is present."""
    config = load_config(tmp_path / "missing.yml", env={})

    assert isinstance(config, AppConfig)
    assert config.state_dir == Path("~/.localdbctl/internal").expanduser()
    assert config.running_info_file == config.state_dir / "localdb.json"
    assert config.log_level == "warning"
    assert config.database.name == "localdb"
    assert config.database.port == 9193
    assert config.database.listen == ("localhost",)


def test_load_config_reads_yaml_file(tmp_path: Path) -> None:
    """Values are loaded from the YAML config file."""
    cfg = tmp_path / "localdbctl.yml"
    cfg.write_text(
        "state_dir: {state}\n"
        "log_level: DEBUG\n"
        "database:\n"
        "  port: 9200\n"
        "  listen:\n"
        "    - '*'\n"
        "    - 10.0.0.5\n".format(state=tmp_path / "state")
    )

    config = load_config(config_file=cfg, env={})

    assert config.config_file == cfg
    assert config.state_dir == tmp_path / "state"
    assert config.running_info_file == tmp_path / "state" / "localdb.json"
    assert config.log_level == "debug"
    assert config.database.port == 9200
    assert config.database.listen == ("*", "10.0.0.5")
    assert config.database.name == "localdb"


def test_env_overrides_take_precedence(tmp_path: Path) -> None:
    """Environment variables override defaults and file settings."""
    cfg = tmp_path / "localdbctl.yml"
    cfg.write_text("database:\n  port: 9200\n")
    env = {
        "LOCALDBCTL_CONFIG_FILE": str(cfg),
        "LOCALDBCTL_DATABASE__PORT": "9300",
        "LOCALDBCTL_DATABASE__LISTEN": "[localhost, 192.0.2.10]",
        "LOCALDBCTL_RUNNING_INFO_FILE": str(tmp_path / "run" / "db.json"),
        "UNRELATED": "ignored",
    }

    config = load_config(env=env)

    assert config.config_file == cfg
    assert config.database.port == 9300
    assert config.database.listen == ("localhost", "192.0.2.10")
    assert config.running_info_file == tmp_path / "run" / "db.json"


def test_env_wildcard_listen_string(tmp_path: Path) -> None:
    """A bare wildcard or comma-separated string is accepted for listen."""
    config = load_config(tmp_path / "none.yml", env={"LOCALDBCTL_DATABASE__LISTEN": "*"})
    assert config.database.listen == ("*",)

    config = load_config(
        tmp_path / "none.yml",
        env={"LOCALDBCTL_DATABASE__LISTEN": "localhost, 10.0.0.7"},
    )
    assert config.database.listen == ("localhost", "10.0.0.7")


def test_overrides_win_over_env(tmp_path: Path) -> None:
    """Programmatic overrides are applied last."""
    config = load_config(
        tmp_path / "none.yml",
        env={"LOCALDBCTL_LOG_LEVEL": "info"},
        overrides={"log_level": "error", "database": {"name": "analytics"}},
    )

    assert config.log_level == "error"
    assert config.database.name == "analytics"
    assert config.database.port == 9193


def test_to_dict_is_serialisable(tmp_path: Path) -> None:
    """The config renders to plain Python values."""
    config = load_config(tmp_path / "none.yml", env={"LOCALDBCTL_STATE_DIR": str(tmp_path)})

    data = config.to_dict()

    assert data["running_info_file"] == str(tmp_path / "localdb.json")
    assert data["database"] == {"name": "localdb", "port": 9193, "listen": ["localhost"]}


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("unknown: 1\n", "Unknown configuration keys"),
        ("database:\n  host: x\n", "Unknown database configuration keys"),
        ("log_level: loud\n", "Unsupported log_level"),
        ("database:\n  port: 70000\n", "between 1 and 65535"),
        ("database:\n  port: true\n", "boolean"),
        ("database:\n  listen: []\n", "at least one address"),
        ("database:\n  listen: [1, 2]\n", "must be a string"),
        ("database:\n  listen: {a: b}\n", "list or string"),
        ("- just\n- a list\n", "mapping at the top level"),
    ],
)
def test_invalid_config_raises(tmp_path: Path, content: str, message: str) -> None:
    """Invalid configuration values raise ConfigError."""
    cfg = tmp_path / "bad.yml"
    cfg.write_text(content)

    with pytest.raises(ConfigError, match=message):
        load_config(config_file=cfg, env={})


def test_env_conflict_with_scalar_raises(tmp_path: Path) -> None:
    """Nested env overrides cannot descend into scalar values."""
    env = {
        "LOCALDBCTL_LOG_LEVEL": "info",
        "LOCALDBCTL_LOG_LEVEL__NESTED": "x",
    }

    with pytest.raises(ConfigError):
        load_config(tmp_path / "none.yml", env=env)


def test_loading_leaves_defaults_untouched(tmp_path: Path) -> None:
    """Merged sources never write through to the built-in defaults."""
    cfg = tmp_path / "localdbctl.yml"
    cfg.write_text("database:\n  port: 9300\n  listen: [10.0.0.9]\n")

    load_config(config_file=cfg, env={"LOCALDBCTL_DATABASE__NAME": "other"})

    assert DEFAULTS["database"] == {"name": "localdb", "port": 9193, "listen": ("localhost",)}
    assert load_config(tmp_path / "missing.yml", env={}).database.port == 9193
