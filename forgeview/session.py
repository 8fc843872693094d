"""Interactive session state and the reducer that mutates it.

The session is owned by the main loop. ``Session.update`` applies one
action at a time and never performs I/O: anything that needs the network,
the cache or a child process is spawned as a background unit that reports
back through the action channel.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from . import effects, loader
from .actions import (
    BANNER_PRESERVING,
    TAB_LISTS,
    Action,
    Back,
    ClearSearch,
    CloseIssue,
    ClosePr,
    CommentPosted,
    CommitDetailLoaded,
    ConfirmNo,
    ConfirmRequest,
    ConfirmYes,
    EditorContext,
    EnterSearchMode,
    Error,
    ExitSearchMode,
    Flash,
    GoToBottom,
    GoToTop,
    HomeLoaded,
    IssueClosed,
    ListAppended,
    ListKind,
    ListLoaded,
    LoadHome,
    MergePr,
    NextTab,
    OpenInBrowser,
    PageDown,
    PageFailed,
    PageUp,
    PopupDown,
    PopupKind,
    PopupSelect,
    PopupUp,
    PrClosed,
    PrDetailLoaded,
    PrevTab,
    PrMerged,
    Quit,
    Refresh,
    RepoTab,
    ReviewSubmitted,
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
    SuspendForPager,
    SwitchRepoTab,
    ViewDiff,
    YankUrl,
)
from .cache import NullCache
from .layout import DocLine, commit_diff_text, commit_lines, pr_body_lines, split_lines
from .loader import BackgroundRunner, PaginationState
from .models import (
    CommitDetail,
    Issue,
    MergeMethod,
    MyPr,
    PullRequest,
    ReviewEvent,
    ReviewRequest,
)
from .search import SearchState, match_items, match_lines, scroll_for_match

logger = logging.getLogger(__name__)

SCROLL_STEP = 10
FLASH_SECONDS = 3.0

MERGE_CHOICES = [
    ("Merge commit", MergeMethod.MERGE),
    ("Squash and merge", MergeMethod.SQUASH),
    ("Rebase and merge", MergeMethod.REBASE),
]

REVIEW_CHOICES = [
    ("Approve", ReviewEvent.APPROVE),
    ("Request changes", ReviewEvent.REQUEST_CHANGES),
    ("Comment", ReviewEvent.COMMENT),
]


class Screen(Enum):
    HOME = "home"
    REPO_LIST = "repo_list"
    REPO_VIEW = "repo_view"
    PR_DETAIL = "pr_detail"
    COMMIT_DETAIL = "commit_detail"


class InputMode(Enum):
    NORMAL = "normal"
    SEARCH = "search"
    CONFIRM = "confirm"
    SELECT_POPUP = "select_popup"


class HomeSection(Enum):
    REVIEW_REQUESTS = "review_requests"
    MY_PRS = "my_prs"

    def toggled(self) -> "HomeSection":
        if self == HomeSection.REVIEW_REQUESTS:
            return HomeSection.MY_PRS
        return HomeSection.REVIEW_REQUESTS


@dataclass
class SelectPopup:
    kind: PopupKind
    title: str
    items: List[str]
    index: int = 0


# Selection slots: a HomeSection for the two Home lists, a ListKind otherwise.
Slot = Any


def _clamp(index: int, length: int) -> int:
    if length == 0:
        return 0
    return max(0, min(index, length - 1))


class Session:
    """All mutable interactive state, mutated only through ``update``."""

    def __init__(
        self,
        forge,
        send: Callable[[Action], None],
        cache=None,
        runner: Optional[BackgroundRunner] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.forge = forge
        self._send = send
        self.cache = cache if cache is not None else NullCache()
        self.runner = runner or BackgroundRunner(send)
        self.clock = clock

        self.screen = Screen.HOME
        self.prev_screen: Optional[Screen] = None
        self.input_mode = InputMode.NORMAL
        self.home_section = HomeSection.REVIEW_REQUESTS
        self.repo_tab = RepoTab.PULL_REQUESTS
        self.should_quit = False

        self.generation = 0
        self.loading = False
        self.error: Optional[str] = None
        self.flash_message: Optional[str] = None
        self.flash_at = 0.0

        self.review_requests: List[ReviewRequest] = []
        self.my_prs: List[MyPr] = []
        self.review_index = 0
        self.my_pr_index = 0

        self.lists = {kind: [] for kind in ListKind}
        self.indices = {kind: 0 for kind in ListKind}
        self.pagination = {kind: PaginationState() for kind in ListKind}

        self.current_repo: Optional[Tuple[str, str]] = None
        self.current_pr: Optional[PullRequest] = None
        self.current_commit: Optional[CommitDetail] = None
        self.scroll_offset = 0

        self.search = SearchState()
        self.confirm: Optional[ConfirmRequest] = None
        self.popup: Optional[SelectPopup] = None

    # --- Read-side helpers -------------------------------------------------

    @property
    def repos(self) -> list:
        return self.lists[ListKind.REPOS]

    @property
    def prs(self) -> list:
        return self.lists[ListKind.PRS]

    @property
    def issues(self) -> list:
        return self.lists[ListKind.ISSUES]

    @property
    def commits(self) -> list:
        return self.lists[ListKind.COMMITS]

    @property
    def action_runs(self) -> list:
        return self.lists[ListKind.ACTION_RUNS]

    def focused_slot(self) -> Optional[Slot]:
        """The list the selection cursor is on, or None on detail screens."""
        if self.screen == Screen.HOME:
            return self.home_section
        if self.screen == Screen.REPO_LIST:
            return ListKind.REPOS
        if self.screen == Screen.REPO_VIEW:
            return TAB_LISTS[self.repo_tab]
        return None

    def slot_items(self, slot: Slot) -> list:
        if slot == HomeSection.REVIEW_REQUESTS:
            return self.review_requests
        if slot == HomeSection.MY_PRS:
            return self.my_prs
        return self.lists[slot]

    def slot_index(self, slot: Slot) -> int:
        if slot == HomeSection.REVIEW_REQUESTS:
            return self.review_index
        if slot == HomeSection.MY_PRS:
            return self.my_pr_index
        return self.indices[slot]

    def _set_slot_index(self, slot: Slot, index: int):
        index = _clamp(index, len(self.slot_items(slot)))
        if slot == HomeSection.REVIEW_REQUESTS:
            self.review_index = index
        elif slot == HomeSection.MY_PRS:
            self.my_pr_index = index
        else:
            self.indices[slot] = index

    def selected(self, slot: Slot) -> Optional[Any]:
        items = self.slot_items(slot)
        index = self.slot_index(slot)
        if 0 <= index < len(items):
            return items[index]
        return None

    def selected_issue(self) -> Optional[Issue]:
        return self.selected(ListKind.ISSUES)

    def document_lines(self) -> List[DocLine]:
        if self.screen == Screen.PR_DETAIL and self.current_pr is not None:
            return pr_body_lines(self.current_pr)
        if self.screen == Screen.COMMIT_DETAIL and self.current_commit is not None:
            return commit_lines(self.current_commit)
        return []

    def max_scroll_offset(self) -> int:
        if self.screen == Screen.PR_DETAIL and self.current_pr is not None:
            # An empty body still scrolls as zero lines.
            return max(len(split_lines(self.current_pr.body)) - 1, 0)
        return max(len(self.document_lines()) - 1, 0)

    def visible_flash(self, now: Optional[float] = None) -> Optional[str]:
        if self.flash_message is None:
            return None
        now = self.clock() if now is None else now
        if now - self.flash_at >= FLASH_SECONDS:
            return None
        return self.flash_message

    def current_item_url(self) -> Optional[str]:
        """Web URL of the highlighted item, or of the record on a detail screen."""
        web_url = self.forge.web_url

        if self.screen == Screen.HOME:
            item = self.selected(self.home_section)
            if isinstance(item, ReviewRequest):
                return web_url(item.repo_owner, item.repo_name, "pr", str(item.pr_number))
            if isinstance(item, MyPr):
                return web_url(item.repo_owner, item.repo_name, "pr", str(item.number))
            return None

        if self.screen == Screen.REPO_LIST:
            repo = self.selected(ListKind.REPOS)
            return web_url(repo.owner, repo.name, "repo", "") if repo else None

        if self.current_repo is None:
            return None
        owner, name = self.current_repo

        if self.screen == Screen.PR_DETAIL:
            return web_url(owner, name, "pr", str(self.current_pr.number)) if self.current_pr else None
        if self.screen == Screen.COMMIT_DETAIL:
            return web_url(owner, name, "commit", self.current_commit.sha) if self.current_commit else None

        item = self.selected(TAB_LISTS[self.repo_tab])
        if item is None:
            return None
        if self.repo_tab == RepoTab.PULL_REQUESTS:
            return web_url(owner, name, "pr", str(item.number))
        if self.repo_tab == RepoTab.ISSUES:
            return web_url(owner, name, "issue", str(item.number))
        if self.repo_tab == RepoTab.COMMITS:
            return web_url(owner, name, "commit", item.sha)
        return web_url(owner, name, "action_run", str(item.id))

    # --- Reducer -----------------------------------------------------------

    def update(self, action: Action):
        if not isinstance(action, BANNER_PRESERVING):
            self.error = None

        if isinstance(action, (Quit, Back, Select, NextTab, PrevTab, SwitchRepoTab, Refresh, LoadHome)):
            self._navigate(action)
        elif isinstance(action, (ScrollUp, ScrollDown, GoToTop, GoToBottom, PageUp, PageDown)):
            self._move(action)
        elif isinstance(action, (HomeLoaded, ListLoaded, ListAppended, PageFailed, PrDetailLoaded, CommitDetailLoaded)):
            self._apply_result(action)
        elif isinstance(
            action,
            (EnterSearchMode, ExitSearchMode, SearchInput, SearchBackspace, SearchConfirm, SearchNext, SearchPrev, ClearSearch),
        ):
            self._search_action(action)
        elif isinstance(
            action,
            (ShowConfirm, ConfirmYes, ConfirmNo, ShowMergeMethodSelect, ShowReviewSelect, PopupUp, PopupDown, PopupSelect),
        ):
            self._modal_action(action)
        elif isinstance(action, (ViewDiff, OpenInBrowser, YankUrl)):
            self._item_action(action)
        elif isinstance(action, (PrMerged, PrClosed, IssueClosed, CommentPosted, ReviewSubmitted, Flash)):
            self._mutation_result(action)
        elif isinstance(action, Error):
            logger.debug(f"Error banner: {action.message}")
            self.loading = False
            self.error = action.message

        self._expire_flash()

    # --- Generation and loads ----------------------------------------------

    def _next_generation(self) -> int:
        """Invalidate every in-flight load; results tagged earlier are dropped."""
        self.generation += 1
        for state in self.pagination.values():
            state.abandon()
        return self.generation

    def _spawn_home(self):
        self.loading = True
        generation = self._next_generation()
        self.runner.spawn(
            loader.load_home(self.forge, self.cache, self._send, generation),
            "Loading home",
        )

    def _spawn_list(self, kind: ListKind):
        repo = None if kind == ListKind.REPOS else self.current_repo
        if kind != ListKind.REPOS and repo is None:
            return
        self.loading = True
        generation = self._next_generation()
        self.runner.spawn(
            loader.load_list(self.forge, self.cache, self._send, kind, repo, generation),
            f"Loading {kind.value}",
        )

    def _spawn_pr_detail(self, owner: str, repo: str, number: int):
        self.loading = True
        generation = self._next_generation()
        self.runner.spawn(
            loader.load_pr_detail(self.forge, self.cache, self._send, owner, repo, number, generation),
            f"Loading PR #{number}",
        )

    def _spawn_commit_detail(self, owner: str, repo: str, sha: str):
        self.loading = True
        generation = self._next_generation()
        self.runner.spawn(
            loader.load_commit_detail(self.forge, self.cache, self._send, owner, repo, sha, generation),
            f"Loading commit {sha[:7]}",
        )

    def _check_pagination(self):
        slot = self.focused_slot()
        if not isinstance(slot, ListKind):
            return
        state = self.pagination[slot]
        if not state.should_prefetch(self.indices[slot], len(self.lists[slot])):
            return
        repo = None if slot == ListKind.REPOS else self.current_repo
        if slot != ListKind.REPOS and repo is None:
            return
        page = state.begin_next()
        logger.debug(f"Prefetching {slot.value} page {page}")
        self.runner.spawn(
            loader.load_next_page(self.forge, self._send, slot, repo, page, self.generation),
            f"Loading more {slot.value}",
        )

    # --- Navigation --------------------------------------------------------

    def _leave_repo_view(self):
        self.repo_tab = RepoTab.PULL_REQUESTS
        for kind in TAB_LISTS.values():
            self.lists[kind] = []
            self.indices[kind] = 0
            self.pagination[kind] = PaginationState()

    def _switch_tab(self, tab: RepoTab):
        self.repo_tab = tab
        kind = TAB_LISTS[tab]
        self.indices[kind] = 0
        self._spawn_list(kind)

    def _navigate(self, action: Action):
        if isinstance(action, Quit):
            self.should_quit = True
            return

        if isinstance(action, LoadHome):
            self._spawn_home()
            return

        if isinstance(action, Back):
            self._go_back()
            return

        if isinstance(action, (NextTab, PrevTab)):
            if self.screen == Screen.HOME:
                self.home_section = self.home_section.toggled()
                self.search.reset()
            elif self.screen == Screen.REPO_VIEW:
                tab = self.repo_tab.next() if isinstance(action, NextTab) else self.repo_tab.prev()
                self.search.reset()
                self._switch_tab(tab)
            return

        if isinstance(action, SwitchRepoTab):
            if self.screen == Screen.REPO_VIEW:
                self.search.reset()
                self._switch_tab(action.tab)
            return

        if isinstance(action, Refresh):
            self._refresh()
            return

        self._select()

    def _go_back(self):
        screen = self.screen
        if screen == Screen.HOME:
            self.should_quit = True
            return

        if screen == Screen.REPO_LIST:
            self.screen = Screen.HOME
        elif screen == Screen.REPO_VIEW:
            self.screen = Screen.REPO_LIST
            self._leave_repo_view()
        elif screen == Screen.PR_DETAIL:
            self.screen = self.prev_screen or Screen.HOME
            self.current_pr = None
            self.scroll_offset = 0
            self.prev_screen = None
        elif screen == Screen.COMMIT_DETAIL:
            self.screen = self.prev_screen or Screen.REPO_VIEW
            self.current_commit = None
            self.scroll_offset = 0
            self.prev_screen = None

        self.loading = False
        self.search.reset()
        self._next_generation()

    def _refresh(self):
        if self.screen == Screen.HOME:
            self.screen = Screen.REPO_LIST
            self.search.reset()
            self._spawn_list(ListKind.REPOS)
        elif self.screen == Screen.REPO_LIST:
            self._spawn_list(ListKind.REPOS)
        elif self.screen == Screen.REPO_VIEW:
            self._spawn_list(TAB_LISTS[self.repo_tab])
        elif self.screen == Screen.PR_DETAIL:
            if self.current_repo and self.current_pr:
                owner, repo = self.current_repo
                self._spawn_pr_detail(owner, repo, self.current_pr.number)
        elif self.screen == Screen.COMMIT_DETAIL:
            if self.current_repo and self.current_commit:
                owner, repo = self.current_repo
                self._spawn_commit_detail(owner, repo, self.current_commit.sha)

    def _select(self):
        if self.screen == Screen.HOME:
            item = self.selected(self.home_section)
            if isinstance(item, ReviewRequest):
                self.current_repo = (item.repo_owner, item.repo_name)
                self._spawn_pr_detail(item.repo_owner, item.repo_name, item.pr_number)
            elif isinstance(item, MyPr):
                self.current_repo = (item.repo_owner, item.repo_name)
                self._spawn_pr_detail(item.repo_owner, item.repo_name, item.number)
            return

        if self.screen == Screen.REPO_LIST:
            repo = self.selected(ListKind.REPOS)
            if repo is None:
                return
            self.current_repo = (repo.owner, repo.name)
            self.screen = Screen.REPO_VIEW
            self.repo_tab = RepoTab.PULL_REQUESTS
            for kind in TAB_LISTS.values():
                self.indices[kind] = 0
            self.search.reset()
            self._spawn_list(ListKind.PRS)
            return

        if self.screen != Screen.REPO_VIEW or self.current_repo is None:
            return
        owner, name = self.current_repo
        if self.repo_tab == RepoTab.PULL_REQUESTS:
            pr = self.selected(ListKind.PRS)
            if pr is not None:
                self._spawn_pr_detail(owner, name, pr.number)
        elif self.repo_tab == RepoTab.COMMITS:
            commit = self.selected(ListKind.COMMITS)
            if commit is not None:
                self._spawn_commit_detail(owner, name, commit.sha)

    # --- Movement ----------------------------------------------------------

    def _move(self, action: Action):
        slot = self.focused_slot()
        if slot is None:
            self._scroll_document(action)
            return

        length = len(self.slot_items(slot))
        index = self.slot_index(slot)
        if isinstance(action, ScrollUp):
            index -= 1
        elif isinstance(action, ScrollDown):
            index += 1
        elif isinstance(action, PageUp):
            index -= SCROLL_STEP
        elif isinstance(action, PageDown):
            index += SCROLL_STEP
        elif isinstance(action, GoToTop):
            index = 0
        elif isinstance(action, GoToBottom):
            index = length - 1
        self._set_slot_index(slot, index)

        if isinstance(action, (ScrollDown, PageDown, GoToBottom)):
            self._check_pagination()

    def _scroll_document(self, action: Action):
        limit = self.max_scroll_offset()
        offset = self.scroll_offset
        if isinstance(action, ScrollUp):
            offset -= 1
        elif isinstance(action, ScrollDown):
            offset += 1
        elif isinstance(action, PageUp):
            offset -= SCROLL_STEP
        elif isinstance(action, PageDown):
            offset += SCROLL_STEP
        elif isinstance(action, GoToTop):
            offset = 0
        elif isinstance(action, GoToBottom):
            offset = limit
        self.scroll_offset = max(0, min(offset, limit))

    # --- Load results ------------------------------------------------------

    def _apply_result(self, action: Action):
        if action.generation != self.generation:
            logger.debug(
                f"Dropping stale {type(action).__name__} (generation {action.generation}, current {self.generation})"
            )
            return

        if isinstance(action, HomeLoaded):
            self.loading = False
            self.review_requests = list(action.data.review_requests)
            self.my_prs = list(action.data.my_prs)
            self.review_index = _clamp(self.review_index, len(self.review_requests))
            self.my_pr_index = _clamp(self.my_pr_index, len(self.my_prs))
        elif isinstance(action, ListLoaded):
            self.loading = False
            self.pagination[action.kind].reset_from(len(action.items))
            self.lists[action.kind] = list(action.items)
            self.indices[action.kind] = _clamp(self.indices[action.kind], len(action.items))
        elif isinstance(action, ListAppended):
            state = self.pagination[action.kind]
            if not state.accepts(action.page):
                logger.debug(f"Dropping {action.kind.value} page {action.page} (cursor at page {state.page})")
                return
            state.apply_append(len(action.items))
            self.lists[action.kind].extend(action.items)
        elif isinstance(action, PageFailed):
            state = self.pagination[action.kind]
            if state.accepts(action.page):
                state.abandon()
            return
        elif isinstance(action, PrDetailLoaded):
            self.loading = False
            self.current_pr = action.pr
            self._enter_detail(Screen.PR_DETAIL)
        elif isinstance(action, CommitDetailLoaded):
            self.loading = False
            self.current_commit = action.commit
            self._enter_detail(Screen.COMMIT_DETAIL)

        if self.search.active and self.input_mode == InputMode.NORMAL:
            self._recompute_matches(reset_cursor=False)
        elif self.input_mode == InputMode.SEARCH and self.search.query:
            self._recompute_matches(reset_cursor=False)

    def _enter_detail(self, screen: Screen):
        if self.screen == screen:
            self.scroll_offset = min(self.scroll_offset, self.max_scroll_offset())
            return
        self.prev_screen = self.screen
        self.screen = screen
        self.scroll_offset = 0
        self.search.reset()
        if self.input_mode == InputMode.SEARCH:
            self.input_mode = InputMode.NORMAL

    # --- Search ------------------------------------------------------------

    def _recompute_matches(self, reset_cursor: bool = True):
        previous = self.search.current_match
        query = self.search.query
        if self.focused_slot() is None:
            self.search.match_indices = []
            self.search.content_matches = match_lines(self.document_lines(), query)
        else:
            self.search.content_matches = []
            self.search.match_indices = match_items(self.slot_items(self.focused_slot()), query)

        count = self.search.match_count
        if reset_cursor or previous >= count:
            self.search.current_match = 0
        else:
            self.search.current_match = previous

    def _jump_to_match(self):
        slot = self.focused_slot()
        if slot is not None:
            item = self.search.current_item()
            if item is not None:
                self._set_slot_index(slot, item)
            return
        content = self.search.current_content()
        if content is not None:
            self.scroll_offset = scroll_for_match(content[0])

    def _search_action(self, action: Action):
        search = self.search
        if isinstance(action, EnterSearchMode):
            self.input_mode = InputMode.SEARCH
            search.query = ""
            search.clear_matches()
        elif isinstance(action, ExitSearchMode):
            self.input_mode = InputMode.NORMAL
            if search.query:
                search.active = True
        elif isinstance(action, SearchInput):
            search.query += action.ch
            self._recompute_matches()
        elif isinstance(action, SearchBackspace):
            search.query = search.query[:-1]
            if not search.query:
                search.clear_matches()
                search.active = False
            else:
                self._recompute_matches()
        elif isinstance(action, SearchConfirm):
            self.input_mode = InputMode.NORMAL
            if search.query:
                search.active = True
                self._jump_to_match()
        elif isinstance(action, SearchNext):
            if search.step(1):
                self._jump_to_match()
        elif isinstance(action, SearchPrev):
            if search.step(-1):
                self._jump_to_match()
        elif isinstance(action, ClearSearch):
            search.reset()

    # --- Modals ------------------------------------------------------------

    def _open_popup(self, kind: PopupKind, title: str, items: List[str]):
        self.popup = SelectPopup(kind=kind, title=title, items=items)
        self.input_mode = InputMode.SELECT_POPUP

    def _close_modal(self):
        self.confirm = None
        self.popup = None
        self.input_mode = InputMode.NORMAL

    def _modal_action(self, action: Action):
        if isinstance(action, ShowConfirm):
            self.popup = None
            self.confirm = action.request
            self.input_mode = InputMode.CONFIRM
        elif isinstance(action, ShowMergeMethodSelect):
            if self.screen == Screen.PR_DETAIL and self.current_pr is not None:
                self._open_popup(PopupKind.MERGE_METHOD, "Merge Method", [label for label, _ in MERGE_CHOICES])
        elif isinstance(action, ShowReviewSelect):
            if self.screen == Screen.PR_DETAIL and self.current_pr is not None:
                self._open_popup(PopupKind.REVIEW, "Submit Review", [label for label, _ in REVIEW_CHOICES])
        elif isinstance(action, PopupUp):
            if self.popup is not None:
                self.popup.index = max(self.popup.index - 1, 0)
        elif isinstance(action, PopupDown):
            if self.popup is not None:
                self.popup.index = min(self.popup.index + 1, len(self.popup.items) - 1)
        elif isinstance(action, PopupSelect):
            self._resolve_popup()
        elif isinstance(action, ConfirmNo):
            self._close_modal()
        elif isinstance(action, ConfirmYes):
            request = self.confirm
            self._close_modal()
            if request is not None:
                self._perform(request)

    def _resolve_popup(self):
        popup = self.popup
        self._close_modal()
        if popup is None or self.current_pr is None:
            return
        number = self.current_pr.number

        if popup.kind == PopupKind.MERGE_METHOD:
            _, method = MERGE_CHOICES[popup.index]
            self._send(ShowConfirm(MergePr(number, method)))
        elif popup.kind == PopupKind.REVIEW and self.current_repo is not None:
            _, event = REVIEW_CHOICES[popup.index]
            owner, repo = self.current_repo
            self._send(SuspendForEditor(EditorContext(owner, repo, number, event)))

    def _perform(self, request: ConfirmRequest):
        if self.current_repo is None:
            return
        owner, repo = self.current_repo
        if isinstance(request, MergePr):
            self.runner.spawn(
                effects.merge_pr(self.forge, self._send, owner, repo, request.number, request.method),
                f"Merging PR #{request.number}",
            )
        elif isinstance(request, ClosePr):
            self.runner.spawn(
                effects.close_pr(self.forge, self._send, owner, repo, request.number),
                f"Closing PR #{request.number}",
            )
        elif isinstance(request, CloseIssue):
            self.runner.spawn(
                effects.close_issue(self.forge, self._send, owner, repo, request.number),
                f"Closing issue #{request.number}",
            )

    # --- Item actions and mutation results ---------------------------------

    def _item_action(self, action: Action):
        if isinstance(action, ViewDiff):
            if self.screen == Screen.PR_DETAIL and self.current_pr and self.current_repo:
                owner, repo = self.current_repo
                self.runner.spawn(
                    effects.show_pr_diff(self.forge, self._send, owner, repo, self.current_pr.number),
                    "Loading diff",
                )
            elif self.screen == Screen.COMMIT_DETAIL and self.current_commit is not None:
                text = commit_diff_text(self.current_commit)
                if text:
                    self._send(SuspendForPager(text))
                else:
                    self._set_flash("No diff available.")
            return

        url = self.current_item_url()
        if url is None:
            return
        if isinstance(action, OpenInBrowser):
            self.runner.spawn(effects.open_in_browser(self._send, url), "Opening browser")
        else:
            self.runner.spawn(effects.yank_url(self._send, url), "Copying URL")

    def _mutation_result(self, action: Action):
        if isinstance(action, PrMerged):
            self._set_flash("PR merged!")
            self._send(Back())
        elif isinstance(action, PrClosed):
            self._set_flash("PR closed.")
            self._send(Back())
        elif isinstance(action, IssueClosed):
            self._set_flash("Issue closed.")
            self._send(Refresh())
        elif isinstance(action, CommentPosted):
            self._set_flash("Comment posted.")
        elif isinstance(action, ReviewSubmitted):
            self._set_flash("Review submitted.")
        elif isinstance(action, Flash):
            self._set_flash(action.text)

    # --- Flash -------------------------------------------------------------

    def _set_flash(self, text: str):
        self.flash_message = text
        self.flash_at = self.clock()

    def _expire_flash(self):
        if self.flash_message is not None and self.visible_flash() is None:
            self.flash_message = None
