"""Background load units, pagination bookkeeping and the task runner.

Every load unit is handed the generation that was current when it was
spawned and tags each result with it. Units talk to the session only by
sending actions; the session drops results whose generation is stale.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple

from .actions import (
    Action,
    CommitDetailLoaded,
    Error,
    HomeLoaded,
    ListAppended,
    ListKind,
    ListLoaded,
    PageFailed,
    PrDetailLoaded,
)
from .cache import repo_key
from .errors import ForgeError
from .models import (
    ActionRun,
    Commit,
    CommitDetail,
    HomeData,
    Issue,
    Paged,
    PrSummary,
    PullRequest,
    Repository,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
PREFETCH_THRESHOLD = 5

Send = Callable[[Action], None]
RepoRef = Tuple[str, str]

LIST_MODELS: Dict[ListKind, type] = {
    ListKind.REPOS: Repository,
    ListKind.PRS: PrSummary,
    ListKind.ISSUES: Issue,
    ListKind.COMMITS: Commit,
    ListKind.ACTION_RUNS: ActionRun,
}

_LIST_KEY_PREFIX = {
    ListKind.PRS: "prs",
    ListKind.ISSUES: "issues",
    ListKind.COMMITS: "commits",
    ListKind.ACTION_RUNS: "actions",
}


@dataclass
class PaginationState:
    """Page cursor and guards for one paginated list."""

    page: int = 1
    has_more: bool = False
    loading_more: bool = False

    def reset_from(self, count: int):
        """A full reload replaced the list with ``count`` items from page 1.

        A page-2 fetch already in flight still follows the new page 1, so it
        is kept. Any later page is forgotten and its result dropped.
        """
        self.has_more = count == PAGE_SIZE
        if self.loading_more and self.page == 2 and self.has_more:
            return
        self.page = 1
        self.loading_more = False

    def accepts(self, page: int) -> bool:
        """Whether a fetched page is the one this list is waiting for."""
        return self.loading_more and page == self.page

    def apply_append(self, count: int):
        self.has_more = count == PAGE_SIZE
        self.loading_more = False

    def should_prefetch(self, index: int, loaded: int) -> bool:
        if not self.has_more or self.loading_more or loaded == 0:
            return False
        return index >= loaded - PREFETCH_THRESHOLD

    def begin_next(self) -> int:
        self.loading_more = True
        self.page += 1
        return self.page

    def abandon(self):
        """Forget an in-flight page whose result will be discarded as stale."""
        if self.loading_more:
            self.page = max(1, self.page - 1)
            self.loading_more = False


class ActionChannel:
    """Multi-producer channel of actions consumed by the main loop."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()

    def send(self, action: Action):
        self._queue.put_nowait(action)

    async def get(self) -> Action:
        return await self._queue.get()

    def get_nowait(self) -> Optional[Action]:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def empty(self) -> bool:
        return self._queue.empty()


class BackgroundRunner:
    """Schedules background units and turns their failures into Error actions."""

    def __init__(self, send: Send):
        self._send = send
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Awaitable[Any], description: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._guard(coro, description))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, coro: Awaitable[Any], description: str):
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except ForgeError as e:
            logger.warning(f"{description} failed: {e}")
            self._send(Error(str(e)))
        except Exception as e:
            logger.exception(f"Unexpected failure in {description}")
            self._send(Error(f"{description} failed: {e}"))

    async def join(self):
        """Wait until every spawned unit, including ones spawned meanwhile, has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self):
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


# --- Cache keys ------------------------------------------------------------


def list_cache_key(kind: ListKind, repo: Optional[RepoRef]) -> str:
    if kind == ListKind.REPOS:
        return "repos"
    owner, name = repo
    return f"{_LIST_KEY_PREFIX[kind]}_{repo_key(owner, name)}"


def pr_cache_key(owner: str, repo: str, number: int) -> str:
    return f"pr_{repo_key(owner, repo)}_{number}"


def commit_cache_key(owner: str, repo: str, sha: str) -> str:
    return f"commit_{repo_key(owner, repo)}_{sha[:7]}"


# --- Cache access ----------------------------------------------------------


async def _cached(cache, key: str, decode: Callable[[Any], Any]) -> Optional[Any]:
    raw = await asyncio.to_thread(cache.read, key)
    if raw is None:
        return None
    try:
        return decode(raw)
    except (KeyError, TypeError, ValueError) as e:
        logger.debug(f"Discarding malformed cache entry {key}: {e}")
        return None


async def _store(cache, key: str, value: Any):
    await asyncio.to_thread(cache.write, key, value)


def _decode_list(kind: ListKind) -> Callable[[Any], list]:
    model = LIST_MODELS[kind]
    return lambda raw: [model.from_dict(item) for item in raw]


# --- Load units ------------------------------------------------------------


def fetch_page(forge, kind: ListKind, repo: Optional[RepoRef], page: int) -> Awaitable[Paged]:
    if kind == ListKind.REPOS:
        return forge.list_repos(page)
    owner, name = repo
    if kind == ListKind.PRS:
        return forge.list_prs(owner, name, page)
    if kind == ListKind.ISSUES:
        return forge.list_issues(owner, name, page)
    if kind == ListKind.COMMITS:
        return forge.list_commits(owner, name, page)
    return forge.list_action_runs(owner, name, page)


async def load_home(forge, cache, send: Send, generation: int):
    cached = await _cached(cache, "home", HomeData.from_dict)
    if cached is not None:
        send(HomeLoaded(cached, generation))

    username = await forge.current_user()
    review_requests, my_prs = await asyncio.gather(
        forge.list_review_requests(username),
        forge.list_my_prs(username),
    )
    data = HomeData(review_requests=review_requests, my_prs=my_prs)
    await _store(cache, "home", data.to_dict())
    send(HomeLoaded(data, generation))


async def load_list(forge, cache, send: Send, kind: ListKind, repo: Optional[RepoRef], generation: int):
    """Load page 1 of a list: cached copy first, then the authoritative one."""
    key = list_cache_key(kind, repo)
    cached = await _cached(cache, key, _decode_list(kind))
    if cached is not None:
        send(ListLoaded(kind, cached, generation))

    result = await fetch_page(forge, kind, repo, 1)
    await _store(cache, key, [item.to_dict() for item in result.items])
    send(ListLoaded(kind, list(result.items), generation))


async def load_next_page(forge, send: Send, kind: ListKind, repo: Optional[RepoRef], page: int, generation: int):
    try:
        result = await fetch_page(forge, kind, repo, page)
    except Exception:
        # Release the prefetch guard; the runner reports the error itself.
        send(PageFailed(kind, page, generation))
        raise
    logger.debug(f"Fetched {kind.value} page {page}: {len(result.items)} items")
    send(ListAppended(kind, list(result.items), generation, page))


async def load_pr_detail(forge, cache, send: Send, owner: str, repo: str, number: int, generation: int):
    key = pr_cache_key(owner, repo, number)
    cached = await _cached(cache, key, PullRequest.from_dict)
    if cached is not None:
        send(PrDetailLoaded(cached, generation))

    pr = await forge.get_pr(owner, repo, number)
    await _store(cache, key, pr.to_dict())
    send(PrDetailLoaded(pr, generation))


async def load_commit_detail(forge, cache, send: Send, owner: str, repo: str, sha: str, generation: int):
    key = commit_cache_key(owner, repo, sha)
    cached = await _cached(cache, key, CommitDetail.from_dict)
    if cached is not None:
        send(CommitDetailLoaded(cached, generation))

    commit = await forge.get_commit(owner, repo, sha)
    await _store(cache, key, commit.to_dict())
    send(CommitDetailLoaded(commit, generation))
