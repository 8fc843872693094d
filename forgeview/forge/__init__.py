"""Forge backends and the factory that picks one at startup."""

from typing import Optional

import httpx

from ..config import ForgeConfig, ForgeType
from .base import Forge, HttpForge
from .gitea import GiteaForge
from .github import GitHubForge
from .gitlab import GitLabForge

__all__ = ["Forge", "HttpForge", "GitHubForge", "GitLabForge", "GiteaForge", "create_forge"]


def create_forge(
    forge_config: ForgeConfig,
    token: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Forge:
    if forge_config.type == ForgeType.GITHUB:
        return GitHubForge(token, host=forge_config.host, transport=transport)
    if forge_config.type == ForgeType.GITLAB:
        return GitLabForge(token, host=forge_config.host, transport=transport)
    return GiteaForge(token, host=forge_config.host, transport=transport)
