"""Shared pytest fixtures for forgeview tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from forgeview.actions import Action
from forgeview.cache import NullCache
from forgeview.forge.base import Forge
from forgeview.loader import PAGE_SIZE
from forgeview.models import (
    ActionRun,
    ActionStatus,
    Commit,
    CommitDetail,
    CommitFile,
    CommitStats,
    Issue,
    IssueState,
    MyPr,
    Paged,
    PrState,
    PrSummary,
    PullRequest,
    Repository,
    ReviewRequest,
)
from forgeview.session import Session

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_repo(i: int, owner: str = "acme") -> Repository:
    return Repository(owner=owner, name=f"repo-{i}", description=f"Repository {i}", stars=i, updated_at=BASE_TIME)


def make_pr_summary(number: int, title: Optional[str] = None) -> PrSummary:
    return PrSummary(number=number, title=title or f"PR {number}", state=PrState.OPEN, author="alice", updated_at=BASE_TIME)


def make_issue(number: int, title: Optional[str] = None) -> Issue:
    return Issue(number=number, title=title or f"Issue {number}", state=IssueState.OPEN, author="bob")


def make_commit(i: int) -> Commit:
    return Commit(sha=f"{i:07x}" + "0" * 33, message=f"Commit {i}", author="carol", date=BASE_TIME)


def make_run(i: int) -> ActionRun:
    return ActionRun(id=i, name=f"CI {i}", status=ActionStatus.QUEUED, branch="main", event="push")


def make_pr(number: int, body: Optional[str] = "line one\nline two") -> PullRequest:
    return PullRequest(
        number=number,
        title=f"PR {number}",
        state=PrState.OPEN,
        author="alice",
        body=body,
        head_branch="feature",
        base_branch="main",
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )


def make_commit_detail(sha: str = "abc1234def", message: str = "Fix parser", patch: Optional[str] = "@@ -1 +1 @@\n-old\n+new") -> CommitDetail:
    files = [CommitFile(filename="src/parser.py", status="modified", additions=1, deletions=1, patch=patch)]
    return CommitDetail(
        sha=sha,
        message=message,
        author="carol",
        date=BASE_TIME,
        stats=CommitStats(additions=1, deletions=1, total=2),
        files=files,
    )


class FakeForge(Forge):
    """In-memory forge. Lists are paginated by PAGE_SIZE like the real APIs.

    A method name in ``gates`` blocks that call until the event is set, and a
    ``(method, *args)`` key blocks only that call. Tests use them
    to finish loads in any order.
    """

    name = "Fake"

    def __init__(self):
        self.repos: List[Repository] = [make_repo(i) for i in range(3)]
        self.prs: List[PrSummary] = [make_pr_summary(n) for n in range(1, 4)]
        self.issues: List[Issue] = [make_issue(n) for n in range(10, 13)]
        self.commits: List[Commit] = [make_commit(i) for i in range(3)]
        self.runs: List[ActionRun] = [make_run(i) for i in range(2)]
        self.review_requests: List[ReviewRequest] = [
            ReviewRequest("acme", "widgets", 7, "Add widgets", "dave"),
        ]
        self.my_prs: List[MyPr] = [MyPr("acme", "gadgets", 9, "Tune gadgets")]
        self.pull_requests: Dict[int, PullRequest] = {}
        self.commit_details: Dict[str, CommitDetail] = {}
        self.diff = "diff --git a/x b/x\n"
        self.calls: List[tuple] = []
        self.gates: Dict[Any, asyncio.Event] = {}
        self.failures: Dict[str, Exception] = {}

    async def _enter(self, method: str, *args):
        self.calls.append((method, *args))
        gate = self.gates.get((method, *args)) or self.gates.get(method)
        if gate is not None:
            await gate.wait()
        if method in self.failures:
            raise self.failures[method]

    def called(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    @staticmethod
    def _page(items: list, page: int) -> Paged:
        start = (page - 1) * PAGE_SIZE
        return Paged(items=list(items[start:start + PAGE_SIZE]))

    def web_url(self, owner, repo, kind, item_id=""):
        url = f"https://fake.test/{owner}/{repo}"
        if kind == "repo":
            return url
        return f"{url}/{kind}/{item_id}"

    async def current_user(self):
        await self._enter("current_user")
        return "me"

    async def list_review_requests(self, username):
        await self._enter("list_review_requests", username)
        return list(self.review_requests)

    async def list_my_prs(self, username):
        await self._enter("list_my_prs", username)
        return list(self.my_prs)

    async def list_repos(self, page):
        await self._enter("list_repos", page)
        return self._page(self.repos, page)

    async def list_prs(self, owner, repo, page):
        await self._enter("list_prs", owner, repo, page)
        return self._page(self.prs, page)

    async def get_pr(self, owner, repo, number):
        await self._enter("get_pr", owner, repo, number)
        return self.pull_requests.get(number) or make_pr(number)

    async def list_issues(self, owner, repo, page):
        await self._enter("list_issues", owner, repo, page)
        return self._page(self.issues, page)

    async def list_commits(self, owner, repo, page):
        await self._enter("list_commits", owner, repo, page)
        return self._page(self.commits, page)

    async def get_commit(self, owner, repo, sha):
        await self._enter("get_commit", owner, repo, sha)
        return self.commit_details.get(sha) or make_commit_detail(sha)

    async def list_action_runs(self, owner, repo, page):
        await self._enter("list_action_runs", owner, repo, page)
        return self._page(self.runs, page)

    async def get_pr_diff(self, owner, repo, number):
        await self._enter("get_pr_diff", owner, repo, number)
        return self.diff

    async def merge_pr(self, owner, repo, number, method):
        await self._enter("merge_pr", owner, repo, number, method)

    async def close_pr(self, owner, repo, number):
        await self._enter("close_pr", owner, repo, number)

    async def close_issue(self, owner, repo, number):
        await self._enter("close_issue", owner, repo, number)

    async def comment(self, owner, repo, number, body, on_issue=False):
        await self._enter("comment", owner, repo, number, body, on_issue)

    async def submit_review(self, owner, repo, number, event, body):
        await self._enter("submit_review", owner, repo, number, event, body)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class Outbox(list):
    """Collects actions sent by the session and its background units."""

    def send(self, action: Action):
        self.append(action)

    def take(self) -> List[Action]:
        items = list(self)
        self.clear()
        return items

    def of_type(self, cls) -> List[Action]:
        return [a for a in self if isinstance(a, cls)]


async def settle(session: Session, outbox: Outbox, rounds: int = 20) -> List[Action]:
    """Run background units and feed their actions back until quiet.

    Returns every action that was delivered to the reducer, in order.
    """
    delivered: List[Action] = []
    for _ in range(rounds):
        await session.runner.join()
        pending = outbox.take()
        if not pending:
            break
        for action in pending:
            delivered.append(action)
            session.update(action)
    return delivered


@pytest.fixture
def forge() -> FakeForge:
    return FakeForge()


@pytest.fixture
def outbox() -> Outbox:
    return Outbox()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session(forge, outbox, clock) -> Session:
    return Session(forge, outbox.send, cache=NullCache(), clock=clock)


@pytest.fixture
def later() -> datetime:
    return BASE_TIME + timedelta(hours=2)
