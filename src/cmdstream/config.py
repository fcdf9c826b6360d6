from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Any, Mapping

import yaml

from .constants import (
    DEFAULT_BAUDRATE,
    DEFAULT_GRACE_MS,
    DEFAULT_PORT,
    DEFAULT_READ_TIMEOUT_S,
    DEFAULT_SETTLE_MS,
    DEFAULT_TCP_PORT,
    DEFAULT_WINDOW,
)

CONNECTION_TYPES = ("serial", "tcp")


class ConfigError(ValueError):
    pass


def _check_type(name: str, value: Any, expected: type) -> None:
    if value is None:
        raise ConfigError(f"{name} must have a value")
    # bool is an int subclass; only a float setting takes an int
    if expected is float and type(value) is int:
        return
    if type(value) is not expected:
        raise ConfigError(f"{name} must be {expected.__name__}, got {type(value).__name__} {value!r}")


@dataclass(slots=True)
class Settings:
    connection_type: str = "serial"
    port: str = DEFAULT_PORT
    baudrate: int = DEFAULT_BAUDRATE
    host: str = "127.0.0.1"
    tcp_port: int = DEFAULT_TCP_PORT
    window: int = DEFAULT_WINDOW
    settle_ms: int = DEFAULT_SETTLE_MS
    grace_ms: int = DEFAULT_GRACE_MS
    read_timeout_s: float = DEFAULT_READ_TIMEOUT_S
    log: bool = False
    progress: bool = False
    debug: bool = False
    realtime: bool = False

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "Settings":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigError(f"unknown setting(s): {', '.join(unknown)}")
        defaults = cls()
        for name, value in values.items():
            _check_type(name, value, type(getattr(defaults, name)))
        settings = cls(**values)
        settings.validate()
        return settings

    def merged(self, overrides: Mapping[str, Any]) -> "Settings":
        """Copy with every non-None override applied."""
        values = dataclasses.asdict(self)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return Settings.from_mapping(values)

    def validate(self) -> None:
        if self.connection_type not in CONNECTION_TYPES:
            raise ConfigError(f"connection_type must be one of {CONNECTION_TYPES}, got {self.connection_type!r}")
        if self.connection_type == "serial":
            if not self.port:
                raise ConfigError("port must be set for a serial connection")
            if self.baudrate <= 0:
                raise ConfigError(f"baudrate must be positive, got {self.baudrate}")
        elif not self.host or self.tcp_port <= 0:
            raise ConfigError("host and tcp_port must be set for a tcp connection")
        if self.window < 1:
            raise ConfigError(f"window must be >= 1, got {self.window}")
        if self.settle_ms < 0 or self.grace_ms < 0:
            raise ConfigError("settle_ms and grace_ms must not be negative")
        if self.read_timeout_s <= 0:
            raise ConfigError(f"read_timeout_s must be positive, got {self.read_timeout_s}")


DEFAULT_SETTINGS: dict[str, Any] = dataclasses.asdict(Settings())


def load_settings(path: str | os.PathLike[str] | None = None) -> Settings:
    """Reads a YAML settings file over the defaults; no path means defaults."""
    values = dict(DEFAULT_SETTINGS)
    if path is None:
        return Settings.from_mapping(values)
    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"cannot read settings file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path} must contain a mapping of settings")
    values.update(loaded)
    return Settings.from_mapping(values)


def dump_settings(settings: Settings) -> str:
    return yaml.safe_dump(dataclasses.asdict(settings), sort_keys=False)
