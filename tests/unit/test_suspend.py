"""Unit tests for pager/editor suspension."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from forgeview.actions import CommentPosted, EditorContext, Error, ReviewSubmitted, SuspendForEditor, SuspendForPager
from forgeview.errors import LocalIoError
from forgeview.loader import BackgroundRunner
from forgeview.models import ReviewEvent
from forgeview.suspend import Suspender, detect_pager, ensure_paging_always, open_editor, open_pager


class TestPagerCommand:

    @pytest.mark.parametrize("command,expected", [
        ("delta", "delta --paging=always"),
        ("/usr/local/bin/delta --side-by-side", "/usr/local/bin/delta --side-by-side --paging=always"),
        ("delta --paging=never", "delta --paging=never"),
        ("less -R", "less -R"),
        ("deltaforce", "deltaforce"),
    ])
    def test_ensure_paging_always(self, command, expected):
        assert ensure_paging_always(command) == expected

    def test_detect_pager_order(self, monkeypatch):
        monkeypatch.setenv("GIT_PAGER", "delta")
        monkeypatch.setenv("PAGER", "more")
        assert detect_pager() == "delta"

        monkeypatch.delenv("GIT_PAGER")
        with patch("forgeview.suspend._git_config_pager", return_value="diff-so-fancy | less"):
            assert detect_pager() == "diff-so-fancy | less"
        with patch("forgeview.suspend._git_config_pager", return_value=None):
            assert detect_pager() == "more"
            monkeypatch.delenv("PAGER")
            assert detect_pager() == "less"

    def test_open_pager_pipes_text_through_shell(self):
        with patch("forgeview.suspend.subprocess.run") as run:
            open_pager("diff text", "delta")
        assert run.call_args[0][0] == ["sh", "-c", "delta --paging=always"]
        assert run.call_args[1]["input"] == b"diff text"

    def test_open_pager_failure(self):
        with patch("forgeview.suspend.subprocess.run", side_effect=OSError("no sh")):
            with pytest.raises(LocalIoError):
                open_pager("x", "less")


class TestOpenEditor:

    def test_returns_saved_text_and_removes_file(self):
        seen = {}

        def fake_editor(args, check):
            path = Path(args[-1])
            seen["path"] = path
            seen["args"] = args
            path.write_text("Looks good\n")
            return MagicMock(returncode=0)

        with patch("forgeview.suspend.subprocess.run", side_effect=fake_editor):
            assert open_editor("code --wait") == "Looks good\n"

        assert seen["args"][:2] == ["code", "--wait"]
        assert seen["path"].suffix == ".md"
        assert not seen["path"].exists()

    def test_nonzero_exit_discards_text(self, monkeypatch):
        monkeypatch.setenv("EDITOR", "nano")
        with patch("forgeview.suspend.subprocess.run", return_value=MagicMock(returncode=1)) as run:
            assert open_editor() is None
        assert run.call_args[0][0][0] == "nano"

    def test_missing_editor(self):
        with patch("forgeview.suspend.subprocess.run", side_effect=FileNotFoundError("nope")):
            with pytest.raises(LocalIoError):
                open_editor("nope")


class FakeTerminal:
    def __init__(self, log):
        self.log = log

    def suspend(self):
        self.log.append("suspend")

    def resume(self):
        self.log.append("resume")


class FakeListener:
    def __init__(self, log, name):
        self.log = log
        self.name = name

    async def stop(self):
        self.log.append(f"stop {self.name}")

    def start(self):
        self.log.append(f"start {self.name}")
        return self


@pytest.fixture
def log():
    return []


@pytest.fixture
def suspender(log, forge, outbox):
    return Suspender(
        FakeTerminal(log),
        lambda: FakeListener(log, "new"),
        forge,
        BackgroundRunner(outbox.send),
        outbox.send,
        pager="less",
        editor="vi",
    )


class TestSuspender:

    @pytest.mark.asyncio
    async def test_pager_ordering(self, suspender, log):
        def pager(text, command):
            log.append(f"pager {text}")

        with patch("forgeview.suspend.open_pager", side_effect=pager):
            listener = await suspender.run(SuspendForPager("diff"), FakeListener(log, "old"))

        assert log == ["stop old", "suspend", "pager diff", "resume", "start new"]
        assert listener.name == "new"

    @pytest.mark.asyncio
    async def test_editor_text_becomes_comment(self, suspender, forge, outbox):
        context = EditorContext("acme", "widgets", 11, on_issue=True)
        with patch("forgeview.suspend.open_editor", return_value="  Thanks!\n"):
            await suspender.run(SuspendForEditor(context), FakeListener([], "old"))
        await suspender.runner.join()

        assert forge.called("comment") == [("comment", "acme", "widgets", 11, "Thanks!", True)]
        assert outbox.of_type(CommentPosted)

    @pytest.mark.asyncio
    async def test_editor_text_becomes_review(self, suspender, forge, outbox):
        context = EditorContext("acme", "widgets", 5, event=ReviewEvent.REQUEST_CHANGES)
        with patch("forgeview.suspend.open_editor", return_value="Please fix"):
            await suspender.run(SuspendForEditor(context), FakeListener([], "old"))
        await suspender.runner.join()

        assert forge.called("submit_review") == [
            ("submit_review", "acme", "widgets", 5, ReviewEvent.REQUEST_CHANGES, "Please fix"),
        ]
        assert outbox.of_type(ReviewSubmitted)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", [None, "", "   \n"])
    async def test_empty_text_submits_nothing(self, suspender, forge, outbox, text):
        with patch("forgeview.suspend.open_editor", return_value=text):
            await suspender.run(SuspendForEditor(EditorContext("acme", "widgets", 5)), FakeListener([], "old"))
        await suspender.runner.join()

        assert forge.calls == []
        assert outbox == []

    @pytest.mark.asyncio
    async def test_child_failure_reports_and_restores(self, suspender, log, outbox):
        with patch("forgeview.suspend.open_pager", side_effect=LocalIoError("could not run pager")):
            listener = await suspender.run(SuspendForPager("diff"), FakeListener(log, "old"))

        assert outbox == [Error("IO error: could not run pager")]
        assert log == ["stop old", "suspend", "resume", "start new"]
        assert listener.name == "new"
