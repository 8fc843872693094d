"""forgeview - a terminal client for GitHub, GitLab and Gitea."""

__version__ = "0.1.0"
