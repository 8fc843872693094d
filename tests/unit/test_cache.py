"""Unit tests for the response cache."""

from pathlib import Path
from unittest.mock import patch

from forgeview.cache import NullCache, ResponseCache, default_cache_root, repo_key


def test_round_trip(tmp_path):
    cache = ResponseCache(tmp_path / "github")
    cache.write("repos", [{"owner": "acme", "name": "widgets"}])
    assert cache.read("repos") == [{"owner": "acme", "name": "widgets"}]
    assert (tmp_path / "github" / "repos.json").exists()


def test_missing_entry_is_none(tmp_path):
    assert ResponseCache(tmp_path).read("nothing") is None


def test_corrupt_entry_is_a_miss(tmp_path):
    (tmp_path / "repos.json").write_text("{not json")
    assert ResponseCache(tmp_path).read("repos") is None


def test_write_failure_is_ignored(tmp_path):
    blocker = tmp_path / "blocked"
    blocker.write_text("a file where a directory should be")
    cache = ResponseCache(blocker / "github")
    cache.write("repos", [])
    assert cache.read("repos") is None


def test_unserializable_value_is_ignored(tmp_path):
    cache = ResponseCache(tmp_path)
    cache.write("bad", {"value": object()})
    assert cache.read("bad") is None


def test_for_forge_uses_per_forge_directory(tmp_path):
    cache = ResponseCache.for_forge("work-gitlab", root=tmp_path)
    assert cache.directory == tmp_path / "work-gitlab"


def test_default_root_honours_xdg(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
    assert default_cache_root() == tmp_path / "forgeview"
    monkeypatch.delenv("XDG_CACHE_HOME")
    with patch("forgeview.cache.Path.home", return_value=Path("/home/u")):
        assert default_cache_root() == Path("/home/u/.cache/forgeview")


def test_repo_key_flattens_groups():
    assert repo_key("group/sub", "proj") == "group_sub_proj"


def test_null_cache():
    cache = NullCache()
    cache.write("x", 1)
    assert cache.read("x") is None
