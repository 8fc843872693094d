"""Line layout of the detail documents.

Search, scroll bounds and rendering all index into the same line list,
so the commit and pull request documents are built only here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from .models import CommitDetail, PullRequest

NO_DESCRIPTION = "No description provided."

# Header, blank, stats, blank, "Message:"
COMMIT_HEADER_LINES = 5

_FILE_STATUS_CHARS = {
    "added": "A",
    "removed": "D",
    "modified": "M",
    "renamed": "R",
}


def split_lines(text: Optional[str]) -> List[str]:
    """Split on newlines only, dropping a trailing ``\\r`` from each line.

    Form feeds and other Unicode line breaks stay inside their line, and a
    final newline does not start an extra empty line.
    """
    if not text:
        return []
    pieces = text.split("\n")
    if pieces[-1] == "":
        pieces.pop()
    return [piece[:-1] if piece.endswith("\r") else piece for piece in pieces]


@dataclass(frozen=True)
class DocLine:
    """One rendered line of a detail document.

    ``text`` is what search scans; ``indent`` spaces precede it on screen.
    ``style`` is a render hint: header, stats, label, message, file, add,
    del, hunk, context, body or blank.
    """

    text: str
    style: str = "body"
    indent: int = 0
    searchable: bool = False


def short_sha(sha: str) -> str:
    return sha[:7]


def format_age(when: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    seconds = int((now - when).total_seconds())
    if seconds >= 86400:
        return f"{seconds // 86400}d ago"
    if seconds >= 3600:
        return f"{seconds // 3600}h ago"
    if seconds >= 60:
        return f"{seconds // 60}m ago"
    return "just now"


def _patch_style(line: str) -> str:
    if line.startswith("+") and not line.startswith("+++"):
        return "add"
    if line.startswith("-") and not line.startswith("---"):
        return "del"
    if line.startswith("@@"):
        return "hunk"
    return "context"


def commit_lines(commit: CommitDetail, now: Optional[datetime] = None) -> List[DocLine]:
    lines = [
        DocLine(f"Commit {short_sha(commit.sha)}  @{commit.author}  {format_age(commit.date, now)}", "header"),
        DocLine("", "blank"),
        DocLine(
            f"+{commit.stats.additions}  -{commit.stats.deletions}  {len(commit.files)} files changed",
            "stats",
        ),
        DocLine("", "blank"),
        DocLine("Message:", "label"),
    ]

    for text in split_lines(commit.message):
        lines.append(DocLine(text, "message", indent=2, searchable=True))
    lines.append(DocLine("", "blank"))

    for f in commit.files:
        status = _FILE_STATUS_CHARS.get(f.status, "?")
        lines.append(DocLine(f"─── {status} {f.filename}  +{f.additions} -{f.deletions} ───", "file"))
        if f.patch:
            for raw in split_lines(f.patch):
                text = raw.replace("\t", "    ")
                lines.append(DocLine(text, _patch_style(text), searchable=True))
        lines.append(DocLine("", "blank"))

    return lines


def pr_body_lines(pr: PullRequest) -> List[DocLine]:
    if not pr.body:
        return [DocLine(NO_DESCRIPTION, "blank")]
    return [DocLine(text.replace("\t", "    "), "body", searchable=True) for text in split_lines(pr.body)]


def pr_header_lines(pr: PullRequest) -> List[str]:
    return [
        f"#{pr.number} {pr.title}",
        f"{pr.state.label} | @{pr.author} wants to merge {pr.head_branch} into {pr.base_branch}",
        (
            f"+{pr.stats.additions} -{pr.stats.deletions} | {pr.stats.changed_files} files changed"
            f" | {pr.stats.commits} commits | {pr.stats.comments} comments"
        ),
        f"Created: {pr.created_at:%Y-%m-%d %H:%M} | Updated: {pr.updated_at:%Y-%m-%d %H:%M}",
    ]


def commit_diff_text(commit: CommitDetail) -> str:
    """Unified diff of a commit for the pager, built from per-file patches."""
    parts = []
    for f in commit.files:
        if f.patch:
            parts.append(f"diff --git a/{f.filename} b/{f.filename}\n{f.patch}\n")
    return "".join(parts)
