"""Gitea (and Forgejo) REST API v1 backend."""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from ..errors import ApiError
from ..models import (
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

_REVIEW_EVENTS = {
    ReviewEvent.APPROVE: "APPROVED",
    ReviewEvent.REQUEST_CHANGES: "REQUEST_CHANGES",
    ReviewEvent.COMMENT: "COMMENT",
}


def _login(user: Optional[dict]) -> str:
    return (user or {}).get("login") or "unknown"


def pr_state(data: dict) -> PrState:
    if data.get("merged"):
        return PrState.MERGED
    if data.get("state") == "closed":
        return PrState.CLOSED
    return PrState.OPEN


def _commit_fields(data: dict):
    inner = data.get("commit") or {}
    author = inner.get("author") or {}
    return inner.get("message") or "", author.get("name") or "unknown", timestamp(author.get("date"))


class GiteaForge(HttpForge):
    """Backend for a Gitea or Forgejo instance; there is no default host."""

    name = "Gitea"

    def __init__(self, token: str, host: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.host = host
        super().__init__(
            f"https://{host}/api/v1",
            headers={"Authorization": f"token {token}"},
            transport=transport,
        )

    def web_url(self, owner: str, repo: str, kind: str, item_id: str = "") -> str:
        base = f"https://{self.host}/{owner}/{repo}"
        if kind == "pr":
            return f"{base}/pulls/{item_id}"
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
        payload = await self._get("/user/repos", params={"sort": "updated", "limit": PER_PAGE, "page": page})
        try:
            repos = [
                Repository(
                    owner=_login(r.get("owner")),
                    name=r["name"],
                    description=r.get("description") or None,
                    url=r.get("html_url") or "",
                    stars=r.get("stars_count") or 0,
                    updated_at=timestamp(r.get("updated_at")),
                )
                for r in expect_list(payload, "repositories")
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed repository list: {e}") from e
        return Paged(items=repos)

    async def list_prs(self, owner: str, repo: str, page: int) -> Paged[PrSummary]:
        payload = await self._get(
            f"/repos/{owner}/{repo}/pulls",
            params={"state": "open", "sort": "recentupdate", "limit": PER_PAGE, "page": page},
        )
        try:
            items = [
                PrSummary(
                    number=pr["number"],
                    title=pr.get("title") or "",
                    state=pr_state(pr),
                    author=_login(pr.get("user")),
                    updated_at=timestamp(pr.get("updated_at")),
                )
                for pr in expect_list(payload, "pull requests")
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed pull request list: {e}") from e
        return Paged(items=items)

    async def get_pr(self, owner: str, repo: str, number: int) -> PullRequest:
        pr = expect_dict(await self._get(f"/repos/{owner}/{repo}/pulls/{number}"), "pull request")
        try:
            return PullRequest(
                number=pr["number"],
                title=pr.get("title") or "",
                body=pr.get("body"),
                state=pr_state(pr),
                author=_login(pr.get("user")),
                head_branch=(pr.get("head") or {}).get("ref") or "",
                base_branch=(pr.get("base") or {}).get("ref") or "",
                stats=PrStats(
                    additions=pr.get("additions") or 0,
                    deletions=pr.get("deletions") or 0,
                    changed_files=pr.get("changed_files") or 0,
                    comments=pr.get("comments") or 0,
                ),
                created_at=timestamp(pr.get("created_at")),
                updated_at=timestamp(pr.get("updated_at")),
                merged_at=parse_timestamp(pr.get("merged_at")),
                closed_at=parse_timestamp(pr.get("closed_at")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed pull request: {e}") from e

    async def list_issues(self, owner: str, repo: str, page: int) -> Paged[Issue]:
        payload = await self._get(
            f"/repos/{owner}/{repo}/issues",
            params={"type": "issues", "state": "open", "limit": PER_PAGE, "page": page},
        )
        try:
            items = [
                Issue(
                    number=i["number"],
                    title=i.get("title") or "",
                    state=IssueState.CLOSED if i.get("state") == "closed" else IssueState.OPEN,
                    author=_login(i.get("user")),
                    labels=[label.get("name", "") for label in i.get("labels") or []],
                    comments=i.get("comments") or 0,
                    created_at=timestamp(i.get("created_at")),
                    updated_at=timestamp(i.get("updated_at")),
                )
                for i in expect_list(payload, "issues")
            ]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ApiError(f"Malformed issue list: {e}") from e
        return Paged(items=items)

    async def list_commits(self, owner: str, repo: str, page: int) -> Paged[Commit]:
        payload = await self._get(f"/repos/{owner}/{repo}/commits", params={"limit": PER_PAGE, "page": page})
        commits = []
        for c in expect_list(payload, "commits"):
            message, author, date = _commit_fields(c)
            commits.append(Commit(sha=c.get("sha") or "", message=first_line(message), author=author, date=date))
        return Paged(items=commits)

    async def get_commit(self, owner: str, repo: str, sha: str) -> CommitDetail:
        # This endpoint has no per-file patches; the detail view shows a file list only.
        detail = expect_dict(await self._get(f"/repos/{owner}/{repo}/git/commits/{sha}"), "commit")
        message, author, date = _commit_fields(detail)
        stats = detail.get("stats") or {}
        files = [
            CommitFile(
                filename=f["filename"],
                status=f.get("status") or "modified",
                additions=f.get("additions") or 0,
                deletions=f.get("deletions") or 0,
            )
            for f in detail.get("files") or []
            if f.get("filename")
        ]
        return CommitDetail(
            sha=detail.get("sha") or sha,
            message=message,
            author=author,
            date=date,
            stats=CommitStats(
                additions=stats.get("additions") or 0,
                deletions=stats.get("deletions") or 0,
                total=stats.get("total") or 0,
            ),
            files=files,
        )

    async def get_pr_diff(self, owner: str, repo: str, number: int) -> str:
        return await self._text(f"/repos/{owner}/{repo}/pulls/{number}.diff")

    async def merge_pr(self, owner: str, repo: str, number: int, method: MergeMethod):
        await self._send("POST", f"/repos/{owner}/{repo}/pulls/{number}/merge", json={"Do": method.value})

    async def close_pr(self, owner: str, repo: str, number: int):
        await self._send("PATCH", f"/repos/{owner}/{repo}/pulls/{number}", json={"state": "closed"})

    async def close_issue(self, owner: str, repo: str, number: int):
        await self._send("PATCH", f"/repos/{owner}/{repo}/issues/{number}", json={"state": "closed"})

    async def comment(self, owner: str, repo: str, number: int, body: str, on_issue: bool = False):
        # Pull requests share the issue comment thread.
        await self._send("POST", f"/repos/{owner}/{repo}/issues/{number}/comments", json={"body": body})

    async def submit_review(self, owner: str, repo: str, number: int, event: ReviewEvent, body: str):
        await self._send(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{number}/reviews",
            json={"event": _REVIEW_EVENTS[event], "body": body},
        )

    async def _search_pulls(self, **filters) -> List[dict]:
        params = {"type": "pulls", "state": "open", "limit": PER_PAGE, **filters}
        return expect_list(await self._get("/repos/issues/search", params=params), "pull request search")

    async def list_review_requests(self, username: str) -> List[ReviewRequest]:
        requests = []
        for item in await self._search_pulls(review_requested="true"):
            repository = item.get("repository") or {}
            requests.append(ReviewRequest(
                repo_owner=repository.get("owner") or "",
                repo_name=repository.get("name") or "",
                pr_number=item["number"],
                pr_title=item.get("title") or "",
                author=_login(item.get("user")),
                updated_at=timestamp(item.get("updated_at")),
            ))
        return requests

    async def list_my_prs(self, username: str) -> List[MyPr]:
        prs = []
        for item in await self._search_pulls(created="true"):
            repository = item.get("repository") or {}
            prs.append(MyPr(
                repo_owner=repository.get("owner") or "",
                repo_name=repository.get("name") or "",
                number=item["number"],
                title=item.get("title") or "",
                state=PrState.MERGED if (item.get("pull_request") or {}).get("merged") else pr_state(item),
                updated_at=timestamp(item.get("updated_at")),
            ))
        return prs
