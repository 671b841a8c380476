"""Configuration: the applications to choose from and the URIs they claim."""

from __future__ import annotations

import functools
import logging
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

APPLICATION_NAME = "choosme"
CONFIG_FILE_NAME = "config.toml"
CSS_FILE_NAME = "style.css"

log = logging.getLogger(__name__)


class ConfigError(ValueError):
    """The configuration file is not valid."""


def config_dir() -> Path:
    """Directory holding the configuration, following the XDG base directory rules."""
    base = os.environ.get("XDG_CONFIG_HOME", "")
    if base and Path(base).is_absolute():
        root = Path(base)
    else:
        root = Path.home() / ".config"
    return root / APPLICATION_NAME


def config_path() -> Path:
    """Path of the TOML configuration file."""
    return config_dir() / CONFIG_FILE_NAME


def css_path() -> Path:
    """Path of the optional style sheet for the chooser window."""
    return config_dir() / CSS_FILE_NAME


def read_css_file(path: str | os.PathLike[str] | None = None) -> str:
    """Read the style sheet; raises OSError when it cannot be read."""
    if path is None:
        path = css_path()
        path.parent.mkdir(parents=True, exist_ok=True)
    path = Path(path)
    log.info("css path: %s", path)
    return path.read_text(encoding="utf-8")


@functools.lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error:
        return None


@dataclass
class DesktopFileConfig:
    """One application entry of the configuration."""

    path: str
    alias: str | None = None
    prefixes: list[str] | None = None
    regexps: list[str] | None = None
    id: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            self.id = self.path

    def match_uri(self, uri: str) -> bool:
        """Whether one of the prefixes or regular expressions claims the URI."""
        if self.prefixes is None and self.regexps is None:
            return False
        # prefixes first, they are cheaper than regular expressions
        if any(uri.startswith(prefix) for prefix in self.prefixes or ()):
            return True
        for pattern in self.regexps or ():
            compiled = _compile(pattern)
            if compiled is not None and compiled.search(uri):
                return True
        return False


def _optional_string(table: dict, key: str, index: int) -> str | None:
    value = table.get(key)
    if value is not None and not isinstance(value, str):
        raise ConfigError(f"application #{index}: '{key}' must be a string")
    return value


def _optional_string_list(table: dict, key: str, index: int) -> list[str] | None:
    value = table.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"application #{index}: '{key}' must be a list of strings")
    return list(value)


def _entry_from_table(table: object, index: int) -> DesktopFileConfig:
    if not isinstance(table, dict):
        raise ConfigError(f"application #{index} must be a table")
    path = table.get("path")
    if not isinstance(path, str):
        raise ConfigError(f"application #{index}: missing string field 'path'")
    return DesktopFileConfig(
        path=path,
        alias=_optional_string(table, "alias", index),
        prefixes=_optional_string_list(table, "prefixes", index),
        regexps=_optional_string_list(table, "regexps", index),
    )


@dataclass
class Config:
    """The whole configuration: an ordered list of applications."""

    desktop_files: list[DesktopFileConfig] = field(default_factory=list)

    @classmethod
    def from_toml(cls, text: str) -> Config:
        """Build a configuration from TOML text with an array of [[application]] tables."""
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML: {exc}") from exc
        if "application" not in data:
            raise ConfigError("missing field 'application'")
        tables = data["application"]
        if not isinstance(tables, list):
            raise ConfigError("'application' must be an array of tables")
        return cls([_entry_from_table(table, index) for index, table in enumerate(tables)])

    @classmethod
    def read(cls, path: str | os.PathLike[str] | None = None) -> Config:
        """Read the configuration file, by default from the XDG config directory."""
        if path is None:
            path = config_path()
            path.parent.mkdir(parents=True, exist_ok=True)
        path = Path(path)
        log.info("config path: %s", path)
        return cls.from_toml(path.read_text(encoding="utf-8"))

    def find_matching_desktop_file(self, uri: str) -> DesktopFileConfig | None:
        """First application whose rules claim the URI."""
        return next((entry for entry in self.desktop_files if entry.match_uri(uri)), None)