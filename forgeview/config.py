"""Configuration loading and forge detection."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV = "FORGEVIEW_CONFIG"

EXAMPLE_CONFIG = """\
# forgeview configuration
#
# forgeview picks a forge by matching the host of the current directory's
# `origin` remote against the `host` of each entry below. Outside a git
# repository it falls back to `general.default_forge`, then the first entry.

general:
  # Name of the forge to use when no remote matches.
  default_forge: github

forges:
  - name: github
    type: github            # github | gitlab | gitea
    host: github.com
    token_env: GITHUB_TOKEN # environment variable holding the token
    token_command: gh auth token

  # - name: work-gitlab
  #   type: gitlab
  #   host: gitlab.example.com
  #   token_env: GITLAB_TOKEN

  # - name: home-gitea
  #   type: gitea
  #   host: gitea.example.com
  #   token_command: pass show gitea/token

# Tokens that are not found through token_env or token_command are read from
# ~/.config/forgeview/tokens/<name>. GitHub entries then try `gh auth token`
# and finally a browser login with a one-time code (OAuth device flow).
"""


class ForgeType(Enum):
    GITHUB = "github"
    GITLAB = "gitlab"
    GITEA = "gitea"


@dataclass
class ForgeConfig:
    name: str
    type: ForgeType
    host: str
    token_env: Optional[str] = None
    token_command: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ForgeConfig":
        try:
            forge_type = ForgeType(str(data["type"]).lower())
        except KeyError as e:
            raise ConfigError(f"forge entry is missing {e}") from e
        except ValueError as e:
            raise ConfigError(f"unknown forge type: {data['type']!r}") from e
        if not data.get("name") or not data.get("host"):
            raise ConfigError("forge entries need a name and a host")
        return cls(
            name=str(data["name"]),
            type=forge_type,
            host=str(data["host"]),
            token_env=data.get("token_env"),
            token_command=data.get("token_command"),
        )


def default_forges() -> List[ForgeConfig]:
    return [
        ForgeConfig(
            name="github",
            type=ForgeType.GITHUB,
            host="github.com",
            token_env="GITHUB_TOKEN",
            token_command="gh auth token",
        )
    ]


@dataclass
class Config:
    forges: List[ForgeConfig] = field(default_factory=default_forges)
    default_forge: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        general = data.get("general") or {}
        entries = data.get("forges") or []
        if not isinstance(general, dict) or not isinstance(entries, list):
            raise ConfigError("expected 'general' to be a mapping and 'forges' to be a list")
        forges = [ForgeConfig.from_dict(entry) for entry in entries if isinstance(entry, dict)]
        return cls(
            forges=forges or default_forges(),
            default_forge=general.get("default_forge"),
        )

    def find(self, name: str) -> Optional[ForgeConfig]:
        return next((f for f in self.forges if f.name == name), None)


def config_dir() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME")
    return (Path(base) if base else Path.home() / ".config") / "forgeview"


def config_path() -> Path:
    override = os.environ.get(CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return config_dir() / "config.yaml"


def load_config(path: Optional[Path] = None) -> Config:
    """Load configuration from YAML.

    A missing, unreadable, empty or invalid file yields the built-in GitHub
    default; the problem is logged rather than raised.
    """
    path = path or config_path()
    if not path.exists():
        logger.info(f"Config file not found: {path}, using defaults")
        return Config()

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not read config {path}: {e}, using defaults")
        return Config()

    if not isinstance(data, dict):
        return Config()
    try:
        return Config.from_dict(data)
    except ConfigError as e:
        logger.warning(f"Invalid config {path}: {e}, using defaults")
        return Config()


def extract_host(url: str) -> Optional[str]:
    """Hostname of a git remote URL (scp-style, http(s) or ssh://)."""
    if url.startswith("git@"):
        host = url[len("git@"):].split(":", 1)[0]
    elif url.startswith(("https://", "http://")):
        host = url.split("://", 1)[1].split("/", 1)[0]
    elif url.startswith("ssh://"):
        authority = url.split("://", 1)[1].split("/", 1)[0]
        host = authority.rsplit("@", 1)[-1].split(":", 1)[0]
    else:
        return None
    return host or None


def origin_url(cwd: Optional[str] = None) -> Optional[str]:
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            timeout=5,
            cwd=cwd,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"git remote lookup failed: {e}")
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def select_forge(config: Config, remote_url: Optional[str] = None) -> ForgeConfig:
    """Pick the forge for this launch: origin host, then default_forge, then the first entry."""
    host = extract_host(remote_url) if remote_url else None
    if host:
        for forge in config.forges:
            if forge.host == host:
                logger.info(f"Using forge {forge.name} (matched remote host {host})")
                return forge

    if config.default_forge:
        forge = config.find(config.default_forge)
        if forge is not None:
            return forge
        logger.warning(f"default_forge {config.default_forge!r} is not configured")

    if not config.forges:
        raise ConfigError("No forge configured")
    return config.forges[0]


def detect_forge(config: Config) -> ForgeConfig:
    return select_forge(config, origin_url())


def write_example_config(path: Path, force: bool = False) -> Path:
    if path.exists() and not force:
        raise ConfigError(f"config file already exists at {path} (use --force to overwrite)")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(EXAMPLE_CONFIG)
    except OSError as e:
        raise ConfigError(f"could not write config file: {e}") from e
    return path
