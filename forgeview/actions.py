"""Semantic actions consumed by the session reducer.

Actions come from two places: key translation (user intents) and
background units reporting results. Every action is an immutable value;
load results carry the generation they were spawned under.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from .models import CommitDetail, HomeData, MergeMethod, PullRequest, ReviewEvent


class RepoTab(Enum):
    """Tabs of the repository view, in display order."""
    PULL_REQUESTS = "pull_requests"
    ISSUES = "issues"
    COMMITS = "commits"
    ACTIONS = "actions"

    @property
    def title(self) -> str:
        return {
            "pull_requests": "Pull Requests",
            "issues": "Issues",
            "commits": "Commits",
            "actions": "Actions",
        }[self.value]

    def next(self) -> "RepoTab":
        tabs = list(RepoTab)
        return tabs[(tabs.index(self) + 1) % len(tabs)]

    def prev(self) -> "RepoTab":
        tabs = list(RepoTab)
        return tabs[(tabs.index(self) - 1) % len(tabs)]


class ListKind(Enum):
    """Paginated lists owned by the session."""
    REPOS = "repos"
    PRS = "prs"
    ISSUES = "issues"
    COMMITS = "commits"
    ACTION_RUNS = "action_runs"


TAB_LISTS = {
    RepoTab.PULL_REQUESTS: ListKind.PRS,
    RepoTab.ISSUES: ListKind.ISSUES,
    RepoTab.COMMITS: ListKind.COMMITS,
    RepoTab.ACTIONS: ListKind.ACTION_RUNS,
}


class PopupKind(Enum):
    """Workflow that opened a select popup."""
    MERGE_METHOD = "merge_method"
    REVIEW = "review"


# --- Confirmation requests -------------------------------------------------


@dataclass(frozen=True)
class ConfirmRequest:
    title = "Confirm"

    @property
    def prompt(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class ClosePr(ConfirmRequest):
    number: int
    title = "Close PR"

    @property
    def prompt(self) -> str:
        return f"Close PR #{self.number}?"


@dataclass(frozen=True)
class MergePr(ConfirmRequest):
    number: int
    method: MergeMethod
    title = "Merge PR"

    @property
    def prompt(self) -> str:
        return f"Merge PR #{self.number} via {self.method.value}?"


@dataclass(frozen=True)
class CloseIssue(ConfirmRequest):
    number: int
    title = "Close Issue"

    @property
    def prompt(self) -> str:
        return f"Close issue #{self.number}?"


@dataclass(frozen=True)
class EditorContext:
    """What to do with editor output: comment when ``event`` is None, else review."""
    owner: str
    repo: str
    number: int
    event: Optional[ReviewEvent] = None
    on_issue: bool = False


# --- Actions ---------------------------------------------------------------


@dataclass(frozen=True)
class Action:
    pass


@dataclass(frozen=True)
class Noop(Action):
    pass


@dataclass(frozen=True)
class Quit(Action):
    pass


@dataclass(frozen=True)
class Back(Action):
    pass


@dataclass(frozen=True)
class ScrollUp(Action):
    pass


@dataclass(frozen=True)
class ScrollDown(Action):
    pass


@dataclass(frozen=True)
class GoToTop(Action):
    pass


@dataclass(frozen=True)
class GoToBottom(Action):
    pass


@dataclass(frozen=True)
class PageUp(Action):
    pass


@dataclass(frozen=True)
class PageDown(Action):
    pass


@dataclass(frozen=True)
class NextTab(Action):
    pass


@dataclass(frozen=True)
class PrevTab(Action):
    pass


@dataclass(frozen=True)
class Select(Action):
    pass


@dataclass(frozen=True)
class SwitchRepoTab(Action):
    tab: RepoTab


@dataclass(frozen=True)
class Refresh(Action):
    pass


@dataclass(frozen=True)
class LoadHome(Action):
    pass


@dataclass(frozen=True)
class HomeLoaded(Action):
    data: HomeData
    generation: int


@dataclass(frozen=True)
class ListLoaded(Action):
    kind: ListKind
    items: List[Any]
    generation: int


@dataclass(frozen=True)
class ListAppended(Action):
    kind: ListKind
    items: List[Any]
    generation: int
    page: int


@dataclass(frozen=True)
class PageFailed(Action):
    kind: ListKind
    page: int
    generation: int


@dataclass(frozen=True)
class PrDetailLoaded(Action):
    pr: PullRequest
    generation: int


@dataclass(frozen=True)
class CommitDetailLoaded(Action):
    commit: CommitDetail
    generation: int


@dataclass(frozen=True)
class EnterSearchMode(Action):
    pass


@dataclass(frozen=True)
class ExitSearchMode(Action):
    pass


@dataclass(frozen=True)
class SearchInput(Action):
    ch: str


@dataclass(frozen=True)
class SearchBackspace(Action):
    pass


@dataclass(frozen=True)
class SearchConfirm(Action):
    pass


@dataclass(frozen=True)
class SearchNext(Action):
    pass


@dataclass(frozen=True)
class SearchPrev(Action):
    pass


@dataclass(frozen=True)
class ClearSearch(Action):
    pass


@dataclass(frozen=True)
class ShowConfirm(Action):
    request: ConfirmRequest


@dataclass(frozen=True)
class ConfirmYes(Action):
    pass


@dataclass(frozen=True)
class ConfirmNo(Action):
    pass


@dataclass(frozen=True)
class ShowMergeMethodSelect(Action):
    pass


@dataclass(frozen=True)
class ShowReviewSelect(Action):
    pass


@dataclass(frozen=True)
class PopupUp(Action):
    pass


@dataclass(frozen=True)
class PopupDown(Action):
    pass


@dataclass(frozen=True)
class PopupSelect(Action):
    pass


@dataclass(frozen=True)
class ViewDiff(Action):
    pass


@dataclass(frozen=True)
class OpenInBrowser(Action):
    pass


@dataclass(frozen=True)
class YankUrl(Action):
    pass


@dataclass(frozen=True)
class PrMerged(Action):
    pass


@dataclass(frozen=True)
class PrClosed(Action):
    pass


@dataclass(frozen=True)
class IssueClosed(Action):
    pass


@dataclass(frozen=True)
class CommentPosted(Action):
    pass


@dataclass(frozen=True)
class ReviewSubmitted(Action):
    pass


@dataclass(frozen=True)
class Flash(Action):
    text: str


@dataclass(frozen=True)
class SuspendForPager(Action):
    text: str


@dataclass(frozen=True)
class SuspendForEditor(Action):
    context: EditorContext


@dataclass(frozen=True)
class Error(Action):
    message: str


SUSPEND_ACTIONS = (SuspendForPager, SuspendForEditor)

# Actions that leave an existing error banner in place.
BANNER_PRESERVING = (Quit, Back, Noop)
