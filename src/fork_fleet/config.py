"""Configuration loading for fork-fleet.

Configuration lives in a TOML file::

    default_merge_strategy = "ff"
    sync_concurrency = 8
    scan_paths = ["~/src"]
    max_scan_depth = 4
    git_timeout = 600

    [[hosts]]
    label = "gh"
    kind = "github"
    username = "octocat"
    token_env = "GITHUB_TOKEN"
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .engine import DEFAULT_CONCURRENCY
from .errors import ConfigError
from .git_ops import DEFAULT_GIT_TIMEOUT
from .models import MergeStrategy
from .providers import HostKind

CONFIG_ENV_VAR = "FORK_FLEET_CONFIG"
DEFAULT_MAX_SCAN_DEPTH = 4

DEFAULT_CONFIG_TEMPLATE = """\
# fork-fleet configuration

# Strategy used when `sync --strategy` is not given: ff, merge, rebase, force_push
default_merge_strategy = "ff"

# Maximum number of forks synced at the same time
sync_concurrency = 8

# Directories searched for local clones, and how deep to look
scan_paths = ["~/src"]
max_scan_depth = 4

# Seconds before a single git command is abandoned
git_timeout = 600

# Where clones and sync history are kept
# data_dir = "~/.local/share/fork-fleet"
# clone_base_dir = "~/forks"

# Hosting accounts. The API token is read from the named environment variable.
# [[hosts]]
# label = "gh"
# kind = "github"
# username = "octocat"
# token_env = "GITHUB_TOKEN"
"""


def default_data_dir() -> Path:
    xdg = os.environ.get("XDG_DATA_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".local" / "share"
    return base / "fork-fleet"


@dataclass
class HostConfig:
    """A registered git hosting account."""

    label: str
    kind: HostKind
    username: str = ""
    api_url: str | None = None
    token_env: str = ""

    def token(self) -> str:
        """Read the API token from the configured environment variable."""
        if not self.token_env:
            return ""
        return os.environ.get(self.token_env, "")

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "kind": self.kind.value,
            "username": self.username,
            "api_url": self.api_url or self.kind.default_api_url,
            "token_env": self.token_env,
        }


@dataclass
class FleetConfig:
    """Top-level fork-fleet configuration."""

    default_merge_strategy: MergeStrategy = MergeStrategy.FAST_FORWARD
    sync_concurrency: int = DEFAULT_CONCURRENCY
    scan_paths: list[Path] = field(default_factory=list)
    max_scan_depth: int = DEFAULT_MAX_SCAN_DEPTH
    git_timeout: float = DEFAULT_GIT_TIMEOUT
    data_dir: Path = field(default_factory=default_data_dir)
    clone_base_dir: Path | None = None
    hosts: list[HostConfig] = field(default_factory=list)

    @property
    def repos_dir(self) -> Path:
        """Directory forks without a known local path are cloned into."""
        return self.clone_base_dir or self.data_dir / "repos"

    @property
    def history_path(self) -> Path:
        return self.data_dir / "history.jsonl"

    def to_dict(self) -> dict:
        return {
            "default_merge_strategy": self.default_merge_strategy.value,
            "sync_concurrency": self.sync_concurrency,
            "scan_paths": [str(p) for p in self.scan_paths],
            "max_scan_depth": self.max_scan_depth,
            "git_timeout": self.git_timeout,
            "data_dir": str(self.data_dir),
            "repos_dir": str(self.repos_dir),
            "history_path": str(self.history_path),
            "hosts": [h.to_dict() for h in self.hosts],
        }

    def get_host(self, label: str) -> HostConfig:
        for host in self.hosts:
            if host.label == label:
                return host
        raise ConfigError(f"host not found: {label}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FleetConfig:
        """Build a config from parsed TOML, validating every value."""
        config = cls()
        try:
            if "default_merge_strategy" in data:
                config.default_merge_strategy = MergeStrategy.parse(
                    str(data["default_merge_strategy"])
                )
            if "sync_concurrency" in data:
                config.sync_concurrency = int(data["sync_concurrency"])
            if "scan_paths" in data:
                config.scan_paths = [_expand(p) for p in data["scan_paths"]]
            if "max_scan_depth" in data:
                config.max_scan_depth = int(data["max_scan_depth"])
            if "git_timeout" in data:
                config.git_timeout = float(data["git_timeout"])
            if "data_dir" in data:
                config.data_dir = _expand(data["data_dir"])
            if "clone_base_dir" in data:
                config.clone_base_dir = _expand(data["clone_base_dir"])
            config.hosts = [_parse_host(h) for h in data.get("hosts", [])]
        except (TypeError, ValueError, KeyError) as e:
            raise ConfigError(f"invalid configuration: {e}") from e

        if config.sync_concurrency < 1:
            raise ConfigError("sync_concurrency must be at least 1")
        if config.max_scan_depth < 0:
            raise ConfigError("max_scan_depth must not be negative")
        if config.git_timeout <= 0:
            raise ConfigError("git_timeout must be positive")

        labels = [h.label for h in config.hosts]
        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        if duplicates:
            raise ConfigError(f"duplicate host labels: {', '.join(duplicates)}")

        return config


def _expand(value: Any) -> Path:
    return Path(os.path.expandvars(str(value))).expanduser()


def _parse_host(data: dict[str, Any]) -> HostConfig:
    label = data["label"]
    return HostConfig(
        label=str(label),
        kind=HostKind.parse(str(data.get("kind", "github"))),
        username=str(data.get("username", "")),
        api_url=data.get("api_url"),
        token_env=str(data.get("token_env", "")),
    )


def default_config_path() -> Path:
    xdg_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg_home).expanduser() if xdg_home else Path.home() / ".config"
    return base / "fork-fleet" / "config.toml"


def resolve_config_file() -> Path | None:
    """Auto-resolve the config file from environment and standard locations.

    Priority order:
    1. $FORK_FLEET_CONFIG environment variable
    2. ~/.config/fork-fleet/config.toml (XDG-compliant)
    3. ~/.fork-fleet.toml (legacy fallback)
    """
    env_config = os.environ.get(CONFIG_ENV_VAR)
    if env_config:
        env_path = Path(env_config).expanduser()
        if env_path.is_file():
            return env_path

    xdg_path = default_config_path()
    if xdg_path.is_file():
        return xdg_path

    legacy_path = Path.home() / ".fork-fleet.toml"
    if legacy_path.is_file():
        return legacy_path

    return None


def load_config(path: Path | None = None) -> FleetConfig:
    """Load configuration from ``path``, or the resolved file, or defaults."""
    if path is None:
        path = resolve_config_file()
        if path is None:
            return FleetConfig()

    path = Path(path).expanduser()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        raise ConfigError(f"config file not found: {path}") from None
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"invalid TOML in {path}: {e}") from e

    return FleetConfig.from_dict(data)


def init_config(path: Path | None = None, force: bool = False) -> Path:
    """Write the default config file and return its path.

    Without an explicit ``path`` the file goes to ``$FORK_FLEET_CONFIG`` when
    set, otherwise to the XDG location. An existing file is only replaced
    with ``force``.
    """
    if path is None:
        env_config = os.environ.get(CONFIG_ENV_VAR)
        path = Path(env_config) if env_config else default_config_path()
    path = Path(path).expanduser()

    if path.exists() and not force:
        raise ConfigError(f"config file already exists: {path} (use --force to overwrite)")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    return path
