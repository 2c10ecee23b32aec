"""Configuration loading.

Settings come from an optional YAML file, then environment variables, then
command-line flags. The loaded ``Settings`` object is passed explicitly to the
scanner and repository manager.
"""

import os
import re
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ScanSettings(BaseModel):
    root: str = "~"
    exclude_patterns: list[str] = Field(default_factory=list)
    skip_hidden: bool = False
    workers: int = Field(default=1, ge=1)
    days_to_show: int | None = Field(default=None, ge=0)

    @field_validator("exclude_patterns")
    @classmethod
    def _compile_patterns(cls, patterns: list[str]) -> list[str]:
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid exclude pattern {pattern!r}: {e}") from e
        return patterns


class CloneSettings(BaseModel):
    depth: int = Field(default=0, ge=0)  # 0 = full history
    timeout: int = Field(default=300, gt=0)


class UploadSettings(BaseModel):
    private: bool = True
    timeout: int = Field(default=300, gt=0)


class GitHubSettings(BaseModel):
    token: str = ""
    use_ssh: bool = False


class GitLabSettings(BaseModel):
    url: str = "https://gitlab.com"
    token: str = ""
    use_ssh: bool = False


class LoggingSettings(BaseModel):
    level: str = "WARNING"

    @field_validator("level")
    @classmethod
    def _known_level(cls, level: str) -> str:
        level = level.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level {level!r}")
        return level


class Settings(BaseModel):
    """All pplaces settings."""

    scan: ScanSettings = Field(default_factory=ScanSettings)
    clone: CloneSettings = Field(default_factory=CloneSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    gitlab: GitLabSettings = Field(default_factory=GitLabSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def scan_root(self) -> Path:
        return Path(self.scan.root).expanduser()


def default_config_path(environ: Mapping[str, str] | None = None) -> Path:
    """``$XDG_CONFIG_HOME/pplaces/config.yaml``, defaulting to ``~/.config``."""
    environ = os.environ if environ is None else environ
    base = environ.get("XDG_CONFIG_HOME") or "~/.config"
    return Path(base).expanduser() / "pplaces" / "config.yaml"


def _read_yaml(config_path: Path) -> dict:
    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    return data


def _apply_environment(data: dict, environ: Mapping[str, str]) -> None:
    overrides = {
        "PPLACES_ROOT": ("scan", "root"),
        "GITHUB_TOKEN": ("github", "token"),
        "GITLAB_TOKEN": ("gitlab", "token"),
        "GITLAB_URL": ("gitlab", "url"),
    }
    for variable, (section, key) in overrides.items():
        value = environ.get(variable)
        if value:
            section_data = data.get(section)
            if not isinstance(section_data, dict):
                section_data = {}
                data[section] = section_data
            section_data[key] = value


def load_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from YAML and the environment.

    An explicit ``config_path`` must exist; the default location is optional.
    """
    environ = os.environ if environ is None else environ

    if config_path is not None:
        path = Path(config_path).expanduser()
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        data = _read_yaml(path)
    else:
        path = default_config_path(environ)
        data = _read_yaml(path) if path.exists() else {}

    _apply_environment(data, environ)

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}:\n{e}") from e
