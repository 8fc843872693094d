"""Unit tests for configuration loading and forge selection."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml

from forgeview.config import (
    EXAMPLE_CONFIG,
    Config,
    ForgeConfig,
    ForgeType,
    config_path,
    extract_host,
    load_config,
    origin_url,
    select_forge,
    write_example_config,
)
from forgeview.errors import ConfigError


def gitlab(name="work", host="gitlab.example.com"):
    return ForgeConfig(name=name, type=ForgeType.GITLAB, host=host, token_env="GITLAB_TOKEN")


class TestExtractHost:

    @pytest.mark.parametrize("url,host", [
        ("git@github.com:acme/widgets.git", "github.com"),
        ("https://gitlab.example.com/group/sub/proj.git", "gitlab.example.com"),
        ("http://gitea.local/acme/widgets", "gitea.local"),
        ("ssh://git@gitea.local:2222/acme/widgets.git", "gitea.local"),
        ("ssh://gitea.local/acme/widgets.git", "gitea.local"),
    ])
    def test_supported_forms(self, url, host):
        assert extract_host(url) == host

    @pytest.mark.parametrize("url", ["/srv/git/widgets.git", "file:///tmp/repo", "git@:acme/x", ""])
    def test_unsupported_forms(self, url):
        assert extract_host(url) is None


class TestLoadConfig:

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")
        assert [f.name for f in config.forges] == ["github"]
        assert config.forges[0].token_command == "gh auth token"

    def test_valid_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "general:\n"
            "  default_forge: work\n"
            "forges:\n"
            "  - name: work\n"
            "    type: GitLab\n"
            "    host: gitlab.example.com\n"
            "    token_env: GITLAB_TOKEN\n"
        )
        config = load_config(path)
        assert config.default_forge == "work"
        assert config.forges == [gitlab()]

    @pytest.mark.parametrize("text", [
        "",
        "- just\n- a list\n",
        "forges: [\n",
        "forges:\n  - name: x\n    type: bitbucket\n    host: b.org\n",
        "forges:\n  - name: x\n    type: gitea\n",
        "forges: {}\n",
    ])
    def test_unusable_files_fall_back(self, tmp_path, text):
        path = tmp_path / "config.yaml"
        path.write_text(text)
        config = load_config(path)
        assert config == Config()

    def test_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "elsewhere.yaml"
        monkeypatch.setenv("FORGEVIEW_CONFIG", str(path))
        assert config_path() == path

    def test_xdg_location(self, tmp_path, monkeypatch):
        monkeypatch.delenv("FORGEVIEW_CONFIG", raising=False)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert config_path() == tmp_path / "forgeview" / "config.yaml"

    def test_example_config_parses(self):
        config = Config.from_dict(yaml.safe_load(EXAMPLE_CONFIG))
        assert config.default_forge == "github"
        assert config.forges[0].type == ForgeType.GITHUB


class TestSelectForge:

    def setup_method(self):
        self.config = Config(
            forges=[gitlab(), ForgeConfig("home", ForgeType.GITEA, "gitea.local")],
            default_forge="home",
        )

    def test_remote_host_wins(self):
        forge = select_forge(self.config, "git@gitlab.example.com:group/proj.git")
        assert forge.name == "work"

    def test_default_forge_when_no_match(self):
        assert select_forge(self.config, "https://github.com/acme/widgets").name == "home"
        assert select_forge(self.config, None).name == "home"

    def test_first_entry_when_default_unknown(self):
        self.config.default_forge = "nope"
        assert select_forge(self.config, None).name == "work"

    def test_no_forges(self):
        with pytest.raises(ConfigError):
            select_forge(Config(forges=[]), None)


class TestOriginUrl:

    def test_success(self):
        result = MagicMock(returncode=0, stdout="git@github.com:acme/widgets.git\n")
        with patch("forgeview.config.subprocess.run", return_value=result) as run:
            assert origin_url() == "git@github.com:acme/widgets.git"
        assert run.call_args[0][0] == ["git", "remote", "get-url", "origin"]

    def test_not_a_repository(self):
        result = MagicMock(returncode=128, stdout="")
        with patch("forgeview.config.subprocess.run", return_value=result):
            assert origin_url() is None

    def test_git_missing(self):
        with patch("forgeview.config.subprocess.run", side_effect=FileNotFoundError("git")):
            assert origin_url() is None


class TestWriteExampleConfig:

    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "a" / "b" / "config.yaml"
        assert write_example_config(path) == path
        assert path.read_text() == EXAMPLE_CONFIG

    def test_refuses_to_overwrite(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("mine")
        with pytest.raises(ConfigError):
            write_example_config(path)
        assert path.read_text() == "mine"

    def test_force_overwrites(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("mine")
        write_example_config(path, force=True)
        assert path.read_text() == EXAMPLE_CONFIG
