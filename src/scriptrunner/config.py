# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Configuration loading for scriptrunner.

Config lives in a YAML file. Search order:
1. Explicit path (``--config``)
2. $SCRIPTRUNNER_CONFIG
3. ~/.scriptrunner/config.yaml (optional; defaults apply when absent)

Secret values may be written as ``env:VAR`` and are resolved at use time,
so the file itself never needs to carry a token.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from scriptrunner.errors import ConfigError


DEFAULT_CONFIG_PATH = Path("~/.scriptrunner/config.yaml")
DEFAULT_HOME = Path("~/.scriptrunner")

PROVIDERS = ("github", "azure_devops")

FLAG_VALUES = {
    "true": True, "yes": True, "on": True, "1": True,
    "false": False, "no": False, "off": False, "0": False,
}


def resolve_secret(value: Optional[str]) -> Optional[str]:
    """Resolve ``env:VAR`` indirection; literal values are returned as-is."""
    if not value or not value.strip():
        return None
    if value.lower().startswith("env:"):
        return os.environ.get(value[4:]) or None
    return value


@dataclass(frozen=True)
class ProviderConfig:
    """Remote repository settings for one provider shape."""
    repo_url: str = ""
    branch: str = "main"
    pat: str = ""  # literal token or env:VAR
    proxy: str = ""

    def resolve_pat(self) -> Optional[str]:
        return resolve_secret(self.pat)


@dataclass(frozen=True)
class RepoConfig:
    provider: str = "github"
    git_path: str = ""
    github: ProviderConfig = field(default_factory=ProviderConfig)
    azure_devops: ProviderConfig = field(default_factory=ProviderConfig)

    @property
    def active(self) -> ProviderConfig:
        return self.azure_devops if self.provider == "azure_devops" else self.github


@dataclass(frozen=True)
class ExecutionConfig:
    max_concurrent_executions: int = 2
    output_truncation_threshold: int = 10000
    powershell_path: str = ""
    fallback_to_windows_powershell: bool = True
    keep_temp_scripts: bool = False


@dataclass(frozen=True)
class Config:
    script_repo: RepoConfig = field(default_factory=RepoConfig)
    sql_connections: Dict[str, str] = field(default_factory=dict)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    history_url: str = ""
    temp_root: str = ""

    @property
    def home(self) -> Path:
        return DEFAULT_HOME.expanduser()

    @property
    def resolved_history_url(self) -> str:
        if self.history_url:
            return self.history_url
        return f"sqlite:///{self.home / 'history.db'}"

    @property
    def resolved_temp_root(self) -> Path:
        if self.temp_root:
            return Path(self.temp_root).expanduser()
        return self.home / "temp"


def _flag(section: Dict[str, Any], key: str, default: bool) -> bool:
    """Read a boolean setting, accepting quoted spellings such as ``"false"``."""
    value = section.get(key, default)
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    text = str(value).strip().lower()
    if text not in FLAG_VALUES:
        raise ConfigError(f"execution.{key} must be true or false, got {value!r}")
    return FLAG_VALUES[text]


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"config section '{key}' must be a mapping")
    return value


def _provider(data: Dict[str, Any]) -> ProviderConfig:
    return ProviderConfig(
        repo_url=str(data.get("repo_url", "")),
        branch=str(data.get("branch", "main")),
        pat=str(data.get("pat", "")),
        proxy=str(data.get("proxy", "")),
    )


def parse_config(data: Optional[Dict[str, Any]]) -> Config:
    """Build a Config from a parsed YAML mapping.

    Raises:
        ConfigError: If a section has the wrong shape or a value is invalid.
    """
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError("config file must contain a YAML mapping")

    repo = _section(data, "script_repo")
    provider = str(repo.get("provider", "github")).lower()
    if provider not in PROVIDERS:
        raise ConfigError(f"unknown script_repo provider '{provider}', expected one of {PROVIDERS}")

    execution = _section(data, "execution")
    try:
        max_concurrent = int(execution.get("max_concurrent_executions", 2))
        threshold = int(execution.get("output_truncation_threshold", 10000))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid execution setting: {e}") from e
    if max_concurrent < 1:
        raise ConfigError("execution.max_concurrent_executions must be at least 1")

    connections = _section(data, "sql_connections")

    return Config(
        script_repo=RepoConfig(
            provider=provider,
            git_path=str(repo.get("git_path", "") or ""),
            github=_provider(_section(repo, "github")),
            azure_devops=_provider(_section(repo, "azure_devops")),
        ),
        sql_connections={str(k): str(v) for k, v in connections.items()},
        execution=ExecutionConfig(
            max_concurrent_executions=max_concurrent,
            output_truncation_threshold=threshold,
            powershell_path=str(execution.get("powershell_path", "") or ""),
            fallback_to_windows_powershell=_flag(execution, "fallback_to_windows_powershell", True),
            keep_temp_scripts=_flag(execution, "keep_temp_scripts", False),
        ),
        history_url=str(_section(data, "history").get("database_url", "") or ""),
        temp_root=str(_section(data, "storage").get("temp_root", "") or ""),
    )


def config_path(explicit: Optional[str] = None) -> Path:
    """Return the config file path that would be used."""
    if explicit:
        return Path(explicit).expanduser()
    env_path = os.environ.get("SCRIPTRUNNER_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from YAML.

    Args:
        path: Optional explicit config file path.

    Returns:
        Parsed Config. Defaults when the default file does not exist.

    Raises:
        FileNotFoundError: If an explicitly requested file does not exist.
        ConfigError: If the file is not valid YAML or has the wrong shape.
    """
    resolved = config_path(path)
    if not resolved.exists():
        if path or os.environ.get("SCRIPTRUNNER_CONFIG"):
            raise FileNotFoundError(f"Config file not found: {resolved}")
        return Config()

    try:
        with open(resolved) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {resolved}: {e}") from e

    return parse_config(data)
