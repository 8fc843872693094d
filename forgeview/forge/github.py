"""GitHub REST API backend."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import httpx

from ..errors import ApiError
from ..models import (
    ActionConclusion,
    ActionRun,
    ActionStatus,
    ChecksStatus,
    Commit,
    CommitDetail,
    CommitFile,
    CommitStats,
    Issue,
    IssueState,
    MergeMethod,
    MyPr,
    Paged,
    PrState,
    PrStats,
    PrSummary,
    PullRequest,
    Repository,
    ReviewEvent,
    ReviewRequest,
    parse_timestamp,
    timestamp,
)
from .base import PER_PAGE, HttpForge, expect_dict, expect_list, first_line

logger = logging.getLogger(__name__)

_CONCLUSIONS = {c.value: c for c in ActionConclusion}

# Bound on concurrent check-run lookups while building "my PRs".
_CHECKS_CONCURRENCY = 8


def _login(user: Optional[dict]) -> str:
    return (user or {}).get("login") or "unknown"


def _pr_state(data: dict) -> PrState:
    if data.get("merged_at"):
        return PrState.MERGED
    if data.get("state") == "closed":
        return PrState.CLOSED
    return PrState.OPEN


def _repo_from_url(repository_url: str):
    parts = repository_url.rstrip("/").split("/")
    if len(parts) < 2:
        return None
    return parts[-2], parts[-1]


def parse_run(run: dict) -> ActionRun:
    status = run.get("status")
    if status == "queued":
        action_status = ActionStatus.QUEUED
    elif status == "in_progress":
        action_status = ActionStatus.IN_PROGRESS
    else:
        action_status = ActionStatus.COMPLETED
    conclusion = run.get("conclusion")
    return ActionRun(
        id=run["id"],
        name=run.get("name") or "",
        status=action_status,
        conclusion=_CONCLUSIONS.get(conclusion, ActionConclusion.FAILURE) if conclusion else None,
        branch=run.get("head_branch") or "unknown",
        event=run.get("event") or "unknown",
        created_at=timestamp(run.get("created_at")),
    )


def aggregate_check_runs(runs: List[dict]) -> ChecksStatus:
    """Any failure wins, then any pending run, else success. No runs means none."""
    if not runs:
        return ChecksStatus.NONE
    has_pending = False
    has_failure = False
    for run in runs:
        status = run.get("status")
        if status == "completed":
            if run.get("conclusion") in ("failure", "cancelled", "timed_out"):
                has_failure = True
        elif status in ("queued", "in_progress"):
            has_pending = True
    if has_failure:
        return ChecksStatus.FAILURE
    if has_pending:
        return ChecksStatus.PENDING
    return ChecksStatus.SUCCESS


class GitHubForge(HttpForge):
    """Backend for github.com and GitHub Enterprise."""

    name = "GitHub"

    def __init__(self, token: str, host: str = "github.com", transport: Optional[httpx.AsyncBaseTransport] = None):
        self.host = host
        api = "https://api.github.com" if host == "github.com" else f"https://{host}/api/v3"
        super().__init__(
            api,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
            },
            transport=transport,
        )

    def web_url(self, owner: str, repo: str, kind: str, item_id: str = "") -> str:
        base = f"https://{self.host}/{owner}/{repo}"
        if kind == "pr":
            return f"{base}/pull/{item_id}"
        if kind == "issue":
            return f"{base}/issues/{item_id}"
        if kind == "commit":
            return f"{base}/commit/{item_id}"
        if kind == "action_run":
            return f"{base}/actions/runs/{item_id}"
        return base

    async def current_user(self) -> str:
        data = expect_dict(await self._get("/user"), "current user")
        return data.get("login") or ""

    async def list_repos(self, page: int) -> Paged[Repository]:
        payload = await self._get(
            "/user/repos",
            params={"sort": "updated", "direction": "desc", "per_page": PER_PAGE, "page": page},
        )
        try:
            items = [
                Repository(
                    owner=_login(r.get("owner")),
                    name=r["name"],
                    description=r.get("description"),
                    url=r.get("html_url") or "",
                    stars=r.get("stargazers_count") or 0,
                    updated_at=timestamp(r.get("updated_at")),
                )
                for r in expect_list(payload, "repositories")
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed repository list: {e}") from e
        return Paged(items=items)

    async def list_prs(self, owner: str, repo: str, page: int) -> Paged[PrSummary]:
        payload = await self._get(
            f"/repos/{owner}/{repo}/pulls",
            params={"state": "open", "sort": "updated", "direction": "desc", "per_page": PER_PAGE, "page": page},
        )
        try:
            items = [
                PrSummary(
                    number=p["number"],
                    title=p.get("title") or "",
                    state=_pr_state(p),
                    author=_login(p.get("user")),
                    updated_at=timestamp(p.get("updated_at")),
                )
                for p in expect_list(payload, "pull requests")
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed pull request list: {e}") from e
        return Paged(items=items)

    async def get_pr(self, owner: str, repo: str, number: int) -> PullRequest:
        p = expect_dict(await self._get(f"/repos/{owner}/{repo}/pulls/{number}"), "pull request")
        try:
            return PullRequest(
                number=p["number"],
                title=p.get("title") or "",
                body=p.get("body"),
                state=_pr_state(p),
                author=_login(p.get("user")),
                head_branch=(p.get("head") or {}).get("ref", ""),
                base_branch=(p.get("base") or {}).get("ref", ""),
                stats=PrStats(
                    additions=p.get("additions") or 0,
                    deletions=p.get("deletions") or 0,
                    changed_files=p.get("changed_files") or 0,
                    commits=p.get("commits") or 0,
                    comments=p.get("comments") or 0,
                ),
                created_at=timestamp(p.get("created_at")),
                updated_at=timestamp(p.get("updated_at")),
                merged_at=parse_timestamp(p.get("merged_at")),
                closed_at=parse_timestamp(p.get("closed_at")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed pull request: {e}") from e

    async def list_issues(self, owner: str, repo: str, page: int) -> Paged[Issue]:
        payload = await self._get(
            f"/repos/{owner}/{repo}/issues",
            params={"state": "open", "sort": "updated", "direction": "desc", "per_page": PER_PAGE, "page": page},
        )
        try:
            # The issues endpoint also returns pull requests.
            items = [
                Issue(
                    number=i["number"],
                    title=i.get("title") or "",
                    state=IssueState.CLOSED if i.get("state") == "closed" else IssueState.OPEN,
                    author=_login(i.get("user")),
                    labels=[label["name"] for label in i.get("labels") or []],
                    comments=i.get("comments") or 0,
                    created_at=timestamp(i.get("created_at")),
                    updated_at=timestamp(i.get("updated_at")),
                )
                for i in expect_list(payload, "issues")
                if "pull_request" not in i
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed issue list: {e}") from e
        return Paged(items=items)

    async def list_commits(self, owner: str, repo: str, page: int) -> Paged[Commit]:
        payload = await self._get(
            f"/repos/{owner}/{repo}/commits",
            params={"per_page": PER_PAGE, "page": page},
        )
        try:
            items = []
            for c in expect_list(payload, "commits"):
                git_author = (c.get("commit") or {}).get("author") or {}
                items.append(Commit(
                    sha=c["sha"],
                    message=first_line((c.get("commit") or {}).get("message")),
                    author=(c.get("author") or {}).get("login") or git_author.get("name") or "unknown",
                    date=timestamp(git_author.get("date")),
                ))
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed commit list: {e}") from e
        return Paged(items=items)

    async def get_commit(self, owner: str, repo: str, sha: str) -> CommitDetail:
        c = expect_dict(await self._get(f"/repos/{owner}/{repo}/commits/{sha}"), "commit")
        try:
            git_commit = c.get("commit") or {}
            git_author = git_commit.get("author") or {}
            stats = c.get("stats") or {}
            return CommitDetail(
                sha=sha,
                message=git_commit.get("message") or "",
                author=(c.get("author") or {}).get("login") or git_author.get("name") or "unknown",
                date=timestamp(git_author.get("date")),
                stats=CommitStats(
                    additions=stats.get("additions", 0),
                    deletions=stats.get("deletions", 0),
                    total=stats.get("total", 0),
                ),
                files=[
                    CommitFile(
                        filename=f["filename"],
                        status=f["status"],
                        additions=f.get("additions", 0),
                        deletions=f.get("deletions", 0),
                        patch=f.get("patch"),
                    )
                    for f in c.get("files") or []
                ],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed commit: {e}") from e

    async def get_pr_diff(self, owner: str, repo: str, number: int) -> str:
        return await self._text(
            f"/repos/{owner}/{repo}/pulls/{number}",
            headers={"Accept": "application/vnd.github.diff"},
        )

    async def merge_pr(self, owner: str, repo: str, number: int, method: MergeMethod):
        await self._send(
            "PUT",
            f"/repos/{owner}/{repo}/pulls/{number}/merge",
            json={"merge_method": method.value},
        )

    async def close_pr(self, owner: str, repo: str, number: int):
        await self._send("PATCH", f"/repos/{owner}/{repo}/pulls/{number}", json={"state": "closed"})

    async def close_issue(self, owner: str, repo: str, number: int):
        await self._send("PATCH", f"/repos/{owner}/{repo}/issues/{number}", json={"state": "closed"})

    async def comment(self, owner: str, repo: str, number: int, body: str, on_issue: bool = False):
        await self._send("POST", f"/repos/{owner}/{repo}/issues/{number}/comments", json={"body": body})

    async def _search_prs(self, query: str) -> List[dict]:
        payload = expect_dict(
            await self._get("/search/issues", params={"q": query, "per_page": PER_PAGE}),
            "search",
        )
        return payload.get("items") or []

    async def list_review_requests(self, username: str) -> List[ReviewRequest]:
        items = await self._search_prs(f"is:pr is:open review-requested:{username}")
        requests = []
        for item in items:
            repo = _repo_from_url(item.get("repository_url") or "")
            if repo is None:
                continue
            requests.append(ReviewRequest(
                repo_owner=repo[0],
                repo_name=repo[1],
                pr_number=item["number"],
                pr_title=item.get("title") or "",
                author=_login(item.get("user")),
                updated_at=timestamp(item.get("updated_at")),
            ))
        return requests

    async def list_my_prs(self, username: str) -> List[MyPr]:
        items = await self._search_prs(f"is:pr is:open author:{username}")
        prs = []
        for item in items:
            repo = _repo_from_url(item.get("repository_url") or "")
            if repo is None:
                continue
            prs.append(MyPr(
                repo_owner=repo[0],
                repo_name=repo[1],
                number=item["number"],
                title=item.get("title") or "",
                state=PrState.CLOSED if item.get("state") == "closed" else PrState.OPEN,
                updated_at=timestamp(item.get("updated_at")),
            ))

        semaphore = asyncio.Semaphore(_CHECKS_CONCURRENCY)

        async def fill_status(pr: MyPr):
            async with semaphore:
                try:
                    pr.checks_status = await self.get_check_status(pr.repo_owner, pr.repo_name, pr.number)
                except ApiError as e:
                    logger.debug(f"Check status unavailable for {pr.repo_owner}/{pr.repo_name}#{pr.number}: {e}")
                    pr.checks_status = ChecksStatus.NONE

        await asyncio.gather(*(fill_status(pr) for pr in prs))
        return prs

    async def list_action_runs(self, owner: str, repo: str, page: int) -> Paged[ActionRun]:
        payload = expect_dict(
            await self._get(f"/repos/{owner}/{repo}/actions/runs", params={"per_page": PER_PAGE, "page": page}),
            "workflow runs",
        )
        try:
            runs = [parse_run(run) for run in payload.get("workflow_runs") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed workflow runs: {e}") from e
        return Paged(items=runs, total_count=payload.get("total_count"))

    async def get_check_status(self, owner: str, repo: str, number: int) -> ChecksStatus:
        pr = expect_dict(await self._get(f"/repos/{owner}/{repo}/pulls/{number}"), "pull request")
        sha = (pr.get("head") or {}).get("sha")
        if not sha:
            return ChecksStatus.NONE
        payload = expect_dict(await self._get(f"/repos/{owner}/{repo}/commits/{sha}/check-runs"), "check runs")
        return aggregate_check_runs(payload.get("check_runs") or [])

    async def submit_review(self, owner: str, repo: str, number: int, event: ReviewEvent, body: str):
        await self._send(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{number}/reviews",
            json={"event": event.value, "body": body},
        )
