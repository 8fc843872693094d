"""Handing the terminal to a pager or editor and taking it back."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Optional

from .actions import Action, EditorContext, Error, SuspendForEditor, SuspendForPager
from .effects import submit_editor_text
from .errors import LocalIoError

logger = logging.getLogger(__name__)

DEFAULT_PAGER = "less"
DEFAULT_EDITOR = "vi"


def _git_config_pager() -> Optional[str]:
    try:
        result = subprocess.run(
            ["git", "config", "core.pager"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def detect_pager() -> str:
    """$GIT_PAGER, then git's core.pager, then $PAGER, then less."""
    return (
        os.environ.get("GIT_PAGER")
        or _git_config_pager()
        or os.environ.get("PAGER")
        or DEFAULT_PAGER
    )


def ensure_paging_always(command: str) -> str:
    """Make delta page short diffs too, so they don't vanish on return."""
    has_delta = any(tok == "delta" or tok.endswith("/delta") for tok in command.split())
    if has_delta and "--paging" not in command:
        return f"{command} --paging=always"
    return command


def open_pager(text: str, command: str):
    """Pipe ``text`` into the pager and wait for it to exit."""
    command = ensure_paging_always(command)
    logger.debug(f"Opening pager: {command}")
    try:
        subprocess.run(["sh", "-c", command], input=text.encode(), check=False)
    except OSError as e:
        raise LocalIoError(f"could not run pager {command!r}: {e}") from e


def open_editor(command: Optional[str] = None) -> Optional[str]:
    """Run the editor on an empty markdown file.

    Returns the saved text, or None when the editor exits non-zero.
    """
    command = command or os.environ.get("EDITOR") or DEFAULT_EDITOR
    fd, name = tempfile.mkstemp(prefix="forgeview-", suffix=".md")
    os.close(fd)
    path = Path(name)
    try:
        try:
            result = subprocess.run([*shlex.split(command), str(path)], check=False)
        except OSError as e:
            raise LocalIoError(f"could not run editor {command!r}: {e}") from e
        if result.returncode != 0:
            logger.info(f"Editor exited {result.returncode}, discarding text")
            return None
        try:
            return path.read_text()
        except OSError as e:
            raise LocalIoError(f"could not read editor output: {e}") from e
    finally:
        path.unlink(missing_ok=True)


class Suspender:
    """Runs a pager or editor with the input listener fully stopped.

    ``run`` stops the listener and waits for it, releases the terminal, runs
    the child, restores the terminal (dropping input typed meanwhile) and
    returns a freshly started listener.
    """

    def __init__(
        self,
        terminal,
        listener_factory: Callable[[], object],
        forge,
        runner,
        send: Callable[[Action], None],
        pager: Optional[str] = None,
        editor: Optional[str] = None,
    ):
        self.terminal = terminal
        self.listener_factory = listener_factory
        self.forge = forge
        self.runner = runner
        self.send = send
        self.pager = pager
        self.editor = editor

    async def run(self, action: Action, listener):
        await listener.stop()
        self.terminal.suspend()
        try:
            if isinstance(action, SuspendForPager):
                await self._page(action.text)
            elif isinstance(action, SuspendForEditor):
                await self._edit(action.context)
        except LocalIoError as e:
            logger.warning(f"Suspended process failed: {e}")
            self.send(Error(str(e)))
        finally:
            self.terminal.resume()
        return self.listener_factory().start()

    async def _page(self, text: str):
        pager = self.pager or await asyncio.to_thread(detect_pager)
        await asyncio.to_thread(open_pager, text, pager)

    async def _edit(self, context: EditorContext):
        text = await asyncio.to_thread(open_editor, self.editor)
        body = (text or "").strip()
        if not body:
            logger.info("Editor text empty, nothing to submit")
            return
        self.runner.spawn(
            submit_editor_text(self.forge, self.send, context, body),
            f"Submitting text for #{context.number}",
        )
