"""
Configuration for sessionizer.

Defaults are defined here. Users can override by creating
~/.config/sessionizer/config.toml (or the platform equivalent):

    [tmux]
    hide_attached_sessions = true

    [[sessions]]
    paths = ["~/src/*", "~/work/*"]
    command = "nvim ."
    env = { EDITOR = "nvim" }
    split = { direction = "horizontal", size = "30%", command = "git status" }

    [[sessions.windows]]
    path = "~/logs"
    command = "tail -f app.log"
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import platformdirs

from sessionizer.output import warn

APP_NAME = "sessionizer"
CONFIG_FILENAME = "config.toml"
DEFAULT_GLOB = "~/*"


class ConfigError(Exception):
    """Raised when an explicitly requested config file can't be used."""

    pass


def expand_home(path: str) -> str:
    """Expand a leading ``~/`` to the user's home directory."""
    if path == "~":
        return str(Path.home())
    if path.startswith("~" + os.sep):
        return os.path.join(str(Path.home()), path[2:])
    return path


@dataclass(frozen=True)
class PaneSplit:
    """Second pane to create next to the first one in a new session."""

    direction: str = ""
    size: str = ""
    command: str = ""
    path: str = ""
    env: Dict[str, str] = field(default_factory=dict)

    @property
    def configured(self) -> bool:
        return bool(self.direction and self.size)


@dataclass(frozen=True)
class WindowConfig:
    """Extra window appended to a new session."""

    path: str = ""
    env: Dict[str, str] = field(default_factory=dict)
    command: str = ""


@dataclass(frozen=True)
class SessionSource:
    """One configured origin of candidate sessions."""

    paths: Tuple[str, ...]
    env: Dict[str, str] = field(default_factory=dict)
    command: str = ""
    split: PaneSplit = field(default_factory=PaneSplit)
    windows: Tuple[WindowConfig, ...] = ()


@dataclass(frozen=True)
class Config:
    sources: Tuple[SessionSource, ...]
    hide_attached_sessions: bool = False
    config_path: Optional[Path] = None


def default_config_path() -> Path:
    return Path(platformdirs.user_config_dir(APP_NAME)) / CONFIG_FILENAME


def default_config() -> Config:
    """Config used when no usable config file exists: every directory in $HOME."""
    return Config(sources=(SessionSource(paths=(DEFAULT_GLOB,)),))


def _expect(value: Any, kind: type, where: str) -> Any:
    if not isinstance(value, kind):
        raise ConfigError(
            f"{where}: expected {kind.__name__}, got {type(value).__name__}"
        )
    return value


def _parse_env(data: Any, where: str) -> Dict[str, str]:
    env = _expect(data, dict, where)
    result: Dict[str, str] = {}
    for key, val in env.items():
        # TOML ints/bools are fine as env values, tmux only sees strings
        if isinstance(val, (dict, list)):
            raise ConfigError(f"{where}.{key}: expected a scalar value")
        if isinstance(val, bool):
            val = "1" if val else "0"
        result[str(key)] = expand_home(str(val))
    return result


def _parse_string(data: Dict[str, Any], key: str, where: str) -> str:
    return _expect(data.get(key, ""), str, f"{where}.{key}")


def _parse_split(data: Any, where: str) -> PaneSplit:
    data = _expect(data, dict, where)
    path = _parse_string(data, "path", where)
    return PaneSplit(
        direction=_parse_string(data, "direction", where),
        size=str(data.get("size", "")),
        command=_parse_string(data, "command", where),
        path=expand_home(path) if path else "",
        env=_parse_env(data.get("env", {}), f"{where}.env"),
    )


def _parse_window(data: Any, where: str) -> WindowConfig:
    data = _expect(data, dict, where)
    path = _parse_string(data, "path", where)
    return WindowConfig(
        path=expand_home(path) if path else "",
        env=_parse_env(data.get("env", {}), f"{where}.env"),
        command=_parse_string(data, "command", where),
    )


def _parse_source(data: Any, where: str) -> SessionSource:
    data = _expect(data, dict, where)

    patterns: List[str] = []
    single = _parse_string(data, "path", where)
    if single:
        patterns.append(single)
    for i, pattern in enumerate(_expect(data.get("paths", []), list, f"{where}.paths")):
        patterns.append(_expect(pattern, str, f"{where}.paths[{i}]"))

    windows = [
        _parse_window(window, f"{where}.windows[{i}]")
        for i, window in enumerate(
            _expect(data.get("windows", []), list, f"{where}.windows")
        )
    ]

    return SessionSource(
        paths=tuple(patterns),
        env=_parse_env(data.get("env", {}), f"{where}.env"),
        command=_parse_string(data, "command", where),
        split=_parse_split(data.get("split", {}), f"{where}.split"),
        windows=tuple(windows),
    )


def parse_config(data: Dict[str, Any], config_path: Optional[Path] = None) -> Config:
    """
    Build a Config from decoded TOML.

    Args:
        data: Decoded TOML document
        config_path: File the data came from (informational only)

    Returns:
        Config value

    Raises:
        ConfigError: If a known key has the wrong shape
    """
    sessions = _expect(data.get("sessions", []), list, "sessions")
    sources = tuple(
        _parse_source(source, f"sessions[{i}]") for i, source in enumerate(sessions)
    )

    tmux = _expect(data.get("tmux", {}), dict, "tmux")
    hide_attached = _expect(
        tmux.get("hide_attached_sessions", False), bool, "tmux.hide_attached_sessions"
    )

    if not sources:
        sources = default_config().sources

    return Config(
        sources=sources,
        hide_attached_sessions=hide_attached,
        config_path=config_path,
    )


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as e:
        raise ConfigError(f"Unable to read config file {path}: {e}") from e


def load_config(path: Optional[Path] = None) -> Config:
    """
    Load configuration from a TOML file.

    An explicitly requested file must exist and parse. The default file is
    optional: if it is missing or broken, the built-in defaults are used.

    Args:
        path: Config file given on the command line, or None for the default

    Returns:
        Config value

    Raises:
        ConfigError: If an explicitly requested file can't be loaded
    """
    if path is not None:
        return parse_config(_read_toml(path), config_path=path)

    default_path = default_config_path()
    if not default_path.exists():
        return default_config()

    try:
        return parse_config(_read_toml(default_path), config_path=default_path)
    except ConfigError as e:
        warn(f"{e}; falling back to defaults")
        return default_config()
