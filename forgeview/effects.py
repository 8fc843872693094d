"""Background units for mutations and local side effects.

Each unit reports success as a result action; failures propagate to the
runner, which turns them into Error actions.
"""

import asyncio
import logging
import subprocess
import webbrowser

from .actions import (
    CommentPosted,
    EditorContext,
    Flash,
    IssueClosed,
    PrClosed,
    PrMerged,
    ReviewSubmitted,
    SuspendForPager,
)
from .errors import LocalIoError
from .loader import Send
from .models import MergeMethod

logger = logging.getLogger(__name__)

_CLIPBOARD_COMMANDS = [
    ["pbcopy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
]


async def merge_pr(forge, send: Send, owner: str, repo: str, number: int, method: MergeMethod):
    await forge.merge_pr(owner, repo, number, method)
    logger.info(f"Merged {owner}/{repo}#{number} ({method.value})")
    send(PrMerged())


async def close_pr(forge, send: Send, owner: str, repo: str, number: int):
    await forge.close_pr(owner, repo, number)
    logger.info(f"Closed PR {owner}/{repo}#{number}")
    send(PrClosed())


async def close_issue(forge, send: Send, owner: str, repo: str, number: int):
    await forge.close_issue(owner, repo, number)
    logger.info(f"Closed issue {owner}/{repo}#{number}")
    send(IssueClosed())


async def submit_editor_text(forge, send: Send, context: EditorContext, body: str):
    """Post the text captured from the editor as a comment or a review."""
    if context.event is None:
        await forge.comment(context.owner, context.repo, context.number, body, on_issue=context.on_issue)
        send(CommentPosted())
    else:
        await forge.submit_review(context.owner, context.repo, context.number, context.event, body)
        send(ReviewSubmitted())


async def show_pr_diff(forge, send: Send, owner: str, repo: str, number: int):
    diff = await forge.get_pr_diff(owner, repo, number)
    send(SuspendForPager(diff))


def copy_to_clipboard(text: str) -> bool:
    """Copy text to the system clipboard, trying pbcopy, xclip then xsel."""
    for command in _CLIPBOARD_COMMANDS:
        try:
            subprocess.run(
                command,
                input=text,
                text=True,
                check=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            return True
        except (subprocess.CalledProcessError, FileNotFoundError):
            continue
    return False


async def open_in_browser(send: Send, url: str):
    opened = await asyncio.to_thread(webbrowser.open, url)
    if not opened:
        raise LocalIoError(f"Could not open browser for {url}")
    logger.info(f"Opened {url} in browser")
    send(Flash("Opened in browser."))


async def yank_url(send: Send, url: str):
    copied = await asyncio.to_thread(copy_to_clipboard, url)
    if not copied:
        raise LocalIoError("No clipboard tool found (tried pbcopy, xclip, xsel)")
    send(Flash("URL copied!"))
