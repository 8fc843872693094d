"""Translate input events into actions.

Translation reads the session but never changes it, and every event maps
to exactly one action (``Noop`` when nothing is bound).
"""

from __future__ import annotations

from .actions import (
    Action,
    Back,
    ClearSearch,
    CloseIssue,
    ClosePr,
    ConfirmNo,
    ConfirmYes,
    EditorContext,
    EnterSearchMode,
    ExitSearchMode,
    GoToBottom,
    GoToTop,
    NextTab,
    Noop,
    OpenInBrowser,
    PageDown,
    PageUp,
    PopupDown,
    PopupSelect,
    PopupUp,
    PrevTab,
    Quit,
    Refresh,
    RepoTab,
    ScrollDown,
    ScrollUp,
    SearchBackspace,
    SearchConfirm,
    SearchInput,
    SearchNext,
    SearchPrev,
    Select,
    ShowConfirm,
    ShowMergeMethodSelect,
    ShowReviewSelect,
    SuspendForEditor,
    SwitchRepoTab,
    ViewDiff,
    YankUrl,
)
from .events import Event, Key
from .session import InputMode, Screen, Session

_TAB_SHORTCUTS = {
    "p": RepoTab.PULL_REQUESTS,
    "i": RepoTab.ISSUES,
    "c": RepoTab.COMMITS,
    "a": RepoTab.ACTIONS,
}


def translate(session: Session, event: Event) -> Action:
    if not isinstance(event, Key):
        return Noop()

    mode = session.input_mode
    if mode == InputMode.CONFIRM:
        return _confirm_key(event)
    if mode == InputMode.SELECT_POPUP:
        return _popup_key(event)
    if mode == InputMode.SEARCH:
        return _search_key(event)
    return _normal_key(session, event)


def _confirm_key(key: Key) -> Action:
    if key.ctrl:
        return Noop()
    if key.name == "y":
        return ConfirmYes()
    if key.name in ("n", "Esc"):
        return ConfirmNo()
    return Noop()


def _popup_key(key: Key) -> Action:
    if key.ctrl:
        return Noop()
    if key.name in ("j", "Down"):
        return PopupDown()
    if key.name in ("k", "Up"):
        return PopupUp()
    if key.name == "Enter":
        return PopupSelect()
    if key.name == "Esc":
        return ConfirmNo()
    return Noop()


def _search_key(key: Key) -> Action:
    if key.name == "Esc":
        return ExitSearchMode()
    if key.name == "Enter":
        return SearchConfirm()
    if key.name == "Backspace":
        return SearchBackspace()
    if key.is_char:
        return SearchInput(key.name)
    return Noop()


def _normal_key(session: Session, key: Key) -> Action:
    screen = session.screen

    if key.ctrl:
        if key.name in ("d", "f"):
            return PageDown()
        if key.name in ("u", "b"):
            return PageUp()
        return Noop()

    name = key.name
    if name == "q":
        return Quit() if screen == Screen.HOME else Back()
    if name == "Esc":
        if session.search.active:
            return ClearSearch()
        return Quit() if screen == Screen.HOME else Back()

    if name == "/":
        return EnterSearchMode()
    if name == "n" and session.search.active:
        return SearchNext()
    if name == "N" and session.search.active:
        return SearchPrev()

    if name in ("j", "Down"):
        return ScrollDown()
    if name in ("k", "Up"):
        return ScrollUp()
    if name in ("g", "Home"):
        return GoToTop()
    if name in ("G", "End"):
        return GoToBottom()
    if name == "PageDown":
        return PageDown()
    if name == "PageUp":
        return PageUp()
    if name in ("h", "Left", "BackTab"):
        return PrevTab()
    if name in ("l", "Right", "Tab"):
        return NextTab()
    if name == "Enter":
        return Select()

    if name == "d" and screen in (Screen.PR_DETAIL, Screen.COMMIT_DETAIL):
        return ViewDiff()
    if name == "r":
        return Refresh()
    if name == "o":
        return OpenInBrowser()
    if name == "y":
        return YankUrl()

    if screen == Screen.PR_DETAIL:
        if name == "m":
            return ShowMergeMethodSelect()
        if name == "R":
            return ShowReviewSelect()

    if name == "x":
        return _close_action(session)
    if name == "C":
        return _comment_action(session)

    if screen == Screen.REPO_VIEW and name in _TAB_SHORTCUTS:
        return SwitchRepoTab(_TAB_SHORTCUTS[name])

    return Noop()


def _close_action(session: Session) -> Action:
    if session.screen == Screen.PR_DETAIL and session.current_pr is not None:
        return ShowConfirm(ClosePr(session.current_pr.number))
    if session.screen == Screen.REPO_VIEW and session.repo_tab == RepoTab.ISSUES:
        issue = session.selected_issue()
        if issue is not None:
            return ShowConfirm(CloseIssue(issue.number))
    return Noop()


def _comment_action(session: Session) -> Action:
    if session.current_repo is None:
        return Noop()
    owner, repo = session.current_repo

    if session.screen == Screen.PR_DETAIL and session.current_pr is not None:
        return SuspendForEditor(EditorContext(owner, repo, session.current_pr.number))
    if session.screen == Screen.REPO_VIEW and session.repo_tab == RepoTab.ISSUES:
        issue = session.selected_issue()
        if issue is not None:
            return SuspendForEditor(EditorContext(owner, repo, issue.number, on_issue=True))
    return Noop()
