"""Curses drawing of the session. Reads state only, never mutates it."""

from __future__ import annotations

import curses
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .actions import ListKind, RepoTab
from .layout import DocLine, format_age, pr_header_lines, short_sha
from .models import (
    ActionRun,
    ActionStatus,
    Commit,
    Issue,
    MyPr,
    PrSummary,
    Repository,
    ReviewRequest,
)
from .session import HomeSection, InputMode, Screen, Session

_COLUMN_SEP = "  "

# Title, tab bar, status line, key hints
_RESERVED_SCREEN_ROWS = 4


def _truncate(text: str, width: int, align: str = "left") -> str:
    if width <= 0:
        return ""
    value = text or ""
    if len(value) > width:
        if width <= 3:
            value = value[:width]
        else:
            value = value[: width - 3] + "..."
    if align == "right":
        return value.rjust(width)
    return value.ljust(width)


def row_columns(item: Any, now: Optional[datetime] = None) -> List[str]:
    """Table cells for one list item."""
    if isinstance(item, ReviewRequest):
        return [f"{item.repo_owner}/{item.repo_name}#{item.pr_number}", item.pr_title, f"@{item.author}", format_age(item.updated_at, now)]
    if isinstance(item, MyPr):
        return [f"{item.repo_owner}/{item.repo_name}#{item.number}", item.title, item.checks_status.symbol, format_age(item.updated_at, now)]
    if isinstance(item, Repository):
        return [f"{item.owner}/{item.name}", item.description or "", f"*{item.stars}", format_age(item.updated_at, now)]
    if isinstance(item, PrSummary):
        return [f"#{item.number}", item.title, f"@{item.author}", format_age(item.updated_at, now)]
    if isinstance(item, Issue):
        title = item.title
        if item.labels:
            title += " [" + ", ".join(item.labels) + "]"
        return [f"#{item.number}", title, f"@{item.author}", f"{item.comments} comments"]
    if isinstance(item, Commit):
        return [short_sha(item.sha), item.message, f"@{item.author}", format_age(item.date, now)]
    if isinstance(item, ActionRun):
        if item.status == ActionStatus.COMPLETED and item.conclusion is not None:
            status = item.conclusion.symbol
        else:
            status = item.status.label
        return [status, item.name, item.branch, f"{item.event} {format_age(item.created_at, now)}"]
    return [str(item)]


def format_row(columns: List[str], width: int) -> str:
    """Lay cells out as first/last fixed-ish columns with the title stretching."""
    if len(columns) == 1:
        return _truncate(columns[0], width)
    first = min(max(len(columns[0]), 8), max(width // 3, 1))
    tail = [min(len(c), 20) for c in columns[2:]]
    fixed = first + sum(tail) + len(_COLUMN_SEP) * (len(columns) - 1)
    middle = max(width - fixed, 0)
    parts = [_truncate(columns[0], first), _truncate(columns[1], middle)]
    parts += [_truncate(c, w) for c, w in zip(columns[2:], tail)]
    return _COLUMN_SEP.join(parts)


def screen_title(session: Session) -> str:
    repo = "/".join(session.current_repo) if session.current_repo else ""
    if session.screen == Screen.HOME:
        return f"{session.forge.name}  Home"
    if session.screen == Screen.REPO_LIST:
        return f"{session.forge.name}  Repositories"
    if session.screen == Screen.REPO_VIEW:
        return f"{session.forge.name}  {repo}"
    if session.screen == Screen.PR_DETAIL and session.current_pr is not None:
        return f"{repo}  PR #{session.current_pr.number}"
    if session.screen == Screen.COMMIT_DETAIL and session.current_commit is not None:
        return f"{repo}  commit {short_sha(session.current_commit.sha)}"
    return session.forge.name


def tab_bar(session: Session) -> str:
    if session.screen == Screen.HOME:
        labels = [
            (HomeSection.REVIEW_REQUESTS, f"Review Requests ({len(session.review_requests)})"),
            (HomeSection.MY_PRS, f"My PRs ({len(session.my_prs)})"),
        ]
        return "  ".join(f"[{label}]" if key == session.home_section else f" {label} " for key, label in labels)
    if session.screen == Screen.REPO_VIEW:
        return "  ".join(f"[{tab.title}]" if tab == session.repo_tab else f" {tab.title} " for tab in RepoTab)
    return ""


def key_hints(session: Session) -> str:
    if session.input_mode == InputMode.SEARCH:
        return "Enter: confirm  Esc: cancel"
    if session.input_mode == InputMode.CONFIRM:
        return "y: yes  n/Esc: no"
    if session.input_mode == InputMode.SELECT_POPUP:
        return "j/k: move  Enter: select  Esc: cancel"
    if session.screen == Screen.HOME:
        return "j/k: move  Tab: section  Enter: open  r: repos  o: browser  y: yank  /: search  q: quit"
    if session.screen == Screen.REPO_LIST:
        return "j/k: move  Enter: open  r: refresh  o: browser  y: yank  /: search  q: back"
    if session.screen == Screen.REPO_VIEW:
        return "p/i/c/a: tabs  Enter: open  x: close  C: comment  r: refresh  o: browser  /: search  q: back"
    if session.screen == Screen.PR_DETAIL:
        return "d: diff  m: merge  R: review  x: close  C: comment  o: browser  /: search  q: back"
    return "d: diff  o: browser  y: yank  /: search  q: back"


def status_line(session: Session, now: Optional[float] = None) -> Tuple[str, str]:
    """Status text and its palette key."""
    search = session.search
    if session.input_mode == InputMode.SEARCH:
        return f"/{search.query}  ({search.match_count} matches)", "accent"
    if session.error:
        return session.error, "error"
    flash = session.visible_flash(now)
    if flash:
        return flash, "flash"
    if session.loading:
        return "Loading...", "accent"
    if search.active:
        if search.match_count:
            return f"/{search.query}  [{search.current_match + 1}/{search.match_count}]  n/N: next/prev  Esc: clear", "accent"
        return f"/{search.query}  no matches", "accent"
    return "", "accent"


def _state_attr(item: Any, palette: Dict[str, int]) -> int:
    state = getattr(item, "state", None)
    value = getattr(state, "value", None)
    if value == "merged":
        return palette.get("merged", 0)
    if value == "closed":
        return palette.get("closed", 0)
    return curses.A_NORMAL


def _draw_list(stdscr, session: Session, top: int, rows: int, width: int, palette: Dict[str, int]):
    slot = session.focused_slot()
    items = session.slot_items(slot)
    selected = session.slot_index(slot)
    matches = set(session.search.match_indices)

    if not items:
        message = "Loading..." if session.loading else "Nothing here."
        stdscr.addnstr(top, 2, message, max(0, width - 3), curses.A_DIM)
        return

    offset = 0
    if rows > 0 and selected >= rows:
        offset = selected - rows + 1
    now = datetime.now(timezone.utc)
    for y, index in enumerate(range(offset, min(len(items), offset + rows))):
        item = items[index]
        marker = ">" if index == selected else ("*" if index in matches else " ")
        text = f"{marker} {format_row(row_columns(item, now), max(1, width - 3))}"
        attr = _state_attr(item, palette)
        if index == selected:
            attr |= curses.A_REVERSE | curses.A_BOLD
        stdscr.addnstr(top + y, 0, text, max(0, width - 1), attr)

    if isinstance(slot, ListKind) and session.pagination[slot].loading_more:
        if top + rows < stdscr.getmaxyx()[0]:
            stdscr.addnstr(top + rows - 1, 2, "Loading more...", max(0, width - 3), curses.A_DIM)


_LINE_STYLES = {
    "header": ("accent", curses.A_BOLD),
    "label": ("accent", curses.A_BOLD),
    "file": ("accent", curses.A_BOLD),
    "add": ("add", 0),
    "del": ("del", 0),
    "hunk": ("hunk", 0),
    "blank": (None, curses.A_DIM),
}


def _line_attr(line: DocLine, palette: Dict[str, int]) -> int:
    color, extra = _LINE_STYLES.get(line.style, (None, 0))
    return (palette.get(color, 0) if color else 0) | extra


def _draw_document(
    stdscr,
    session: Session,
    lines: List[DocLine],
    top: int,
    rows: int,
    width: int,
    palette: Dict[str, int],
):
    by_line: Dict[int, List[Tuple[int, int, int]]] = {}
    for ordinal, (line_idx, start, end) in enumerate(session.search.content_matches):
        by_line.setdefault(line_idx, []).append((start, end, ordinal))

    visible = lines[session.scroll_offset: session.scroll_offset + rows]
    for y, line in enumerate(visible, start=top):
        line_idx = session.scroll_offset + (y - top)
        x = line.indent
        limit = max(0, width - 1 - x)
        stdscr.addnstr(y, x, line.text, limit, _line_attr(line, palette))
        for start, end, ordinal in by_line.get(line_idx, []):
            if start >= limit:
                continue
            attr = palette.get("match", curses.A_STANDOUT)
            if ordinal == session.search.current_match:
                attr |= curses.A_REVERSE | curses.A_BOLD
            stdscr.addnstr(y, x + start, line.text[start:end], max(0, min(end, limit) - start), attr)


def _draw_popup(stdscr, title: str, body: List[str], selected: Optional[int], palette: Dict[str, int]):
    height, width = stdscr.getmaxyx()
    box_width = min(max([len(title)] + [len(b) for b in body]) + 6, max(width - 2, 10))
    box_height = len(body) + 4
    top = max((height - box_height) // 2, 0)
    left = max((width - box_width) // 2, 0)
    try:
        win = curses.newwin(box_height, box_width, top, left)
    except curses.error:
        return
    win.erase()
    win.box()
    win.addnstr(0, 2, f" {title} ", box_width - 4, curses.A_BOLD | palette.get("header", 0))
    for i, text in enumerate(body):
        attr = curses.A_REVERSE if i == selected else curses.A_NORMAL
        prefix = "> " if i == selected else "  "
        win.addnstr(2 + i, 2, prefix + text, box_width - 4, attr)
    win.noutrefresh()


def draw(stdscr, session: Session, palette: Dict[str, int], now: Optional[float] = None):
    stdscr.erase()
    height, width = stdscr.getmaxyx()
    if height < _RESERVED_SCREEN_ROWS + 1 or width < 10:
        stdscr.refresh()
        return

    stdscr.addnstr(0, 0, screen_title(session), max(0, width - 1), curses.A_BOLD | palette.get("header", 0))
    stdscr.addnstr(1, 0, tab_bar(session), max(0, width - 1), palette.get("accent", 0))

    top = 2
    rows = height - _RESERVED_SCREEN_ROWS
    if session.screen == Screen.PR_DETAIL and session.current_pr is not None:
        header = pr_header_lines(session.current_pr)
        for i, text in enumerate(header[: max(rows, 0)]):
            attr = curses.A_BOLD if i == 0 else _state_attr(session.current_pr, palette) if i == 1 else curses.A_DIM
            stdscr.addnstr(top + i, 0, text, max(0, width - 1), attr)
        doc_top = top + len(header) + 1
        _draw_document(stdscr, session, session.document_lines(), doc_top, max(rows - len(header) - 1, 0), width, palette)
    elif session.screen == Screen.COMMIT_DETAIL and session.current_commit is not None:
        _draw_document(stdscr, session, session.document_lines(), top, rows, width, palette)
    elif session.focused_slot() is not None:
        _draw_list(stdscr, session, top, rows, width, palette)

    text, key = status_line(session, now)
    if text:
        attr = palette.get(key, 0)
        if key in ("error", "flash"):
            attr |= curses.A_BOLD
        stdscr.addnstr(height - 2, 0, text, max(0, width - 1), attr)
    stdscr.addnstr(height - 1, 0, key_hints(session), max(0, width - 1), curses.A_DIM)
    stdscr.noutrefresh()

    if session.input_mode == InputMode.CONFIRM and session.confirm is not None:
        _draw_popup(stdscr, session.confirm.title, [session.confirm.prompt, "", "y: yes   n: no"], None, palette)
    elif session.input_mode == InputMode.SELECT_POPUP and session.popup is not None:
        _draw_popup(stdscr, session.popup.title, session.popup.items, session.popup.index, palette)
    curses.doupdate()
