"""GitLab REST API (v4) backend. Merge requests are presented as pull requests."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple
from urllib.parse import quote, urlparse

import httpx

from ..errors import ApiError
from ..layout import split_lines
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
    ReviewRequest,
    parse_timestamp,
    timestamp,
)
from .base import PER_PAGE, HttpForge, expect_dict, expect_list, first_line

logger = logging.getLogger(__name__)

_MERGE_METHODS = {
    MergeMethod.MERGE: "merge",
    MergeMethod.SQUASH: "squash_merge",
    MergeMethod.REBASE: "rebase_merge",
}

_PIPELINE_CHECKS = {
    "success": ChecksStatus.SUCCESS,
    "failed": ChecksStatus.FAILURE,
    "canceled": ChecksStatus.FAILURE,
    "skipped": ChecksStatus.FAILURE,
    "running": ChecksStatus.PENDING,
    "pending": ChecksStatus.PENDING,
    "created": ChecksStatus.PENDING,
    "waiting_for_resource": ChecksStatus.PENDING,
    "preparing": ChecksStatus.PENDING,
}


def mr_state(state: Optional[str]) -> PrState:
    if state == "merged":
        return PrState.MERGED
    if state == "closed":
        return PrState.CLOSED
    return PrState.OPEN


def pipeline_status(status: Optional[str]) -> Tuple[ActionStatus, Optional[ActionConclusion]]:
    if status in ("created", "waiting_for_resource", "preparing", "pending"):
        return ActionStatus.QUEUED, None
    if status == "running":
        return ActionStatus.IN_PROGRESS, None
    if status == "success":
        return ActionStatus.COMPLETED, ActionConclusion.SUCCESS
    if status == "canceled":
        return ActionStatus.COMPLETED, ActionConclusion.CANCELLED
    if status == "skipped":
        return ActionStatus.COMPLETED, ActionConclusion.SKIPPED
    return ActionStatus.COMPLETED, ActionConclusion.FAILURE


def count_changes(diff: Optional[str]) -> Tuple[int, int]:
    """Added and removed line counts of a unified diff body."""
    additions = deletions = 0
    for line in split_lines(diff):
        if line.startswith("+") and not line.startswith("+++"):
            additions += 1
        elif line.startswith("-") and not line.startswith("---"):
            deletions += 1
    return additions, deletions


def split_path(path_with_namespace: str) -> Tuple[str, str]:
    """``group/sub/project`` -> (``group``, ``sub/project``)."""
    owner, _, name = path_with_namespace.partition("/")
    return owner, name or owner


def _username(user: Optional[dict]) -> str:
    return (user or {}).get("username") or "unknown"


class GitLabForge(HttpForge):
    """Backend for gitlab.com and self-hosted GitLab."""

    name = "GitLab"

    def __init__(self, token: str, host: str = "gitlab.com", transport: Optional[httpx.AsyncBaseTransport] = None):
        self.host = host
        super().__init__(
            f"https://{host}/api/v4",
            headers={"PRIVATE-TOKEN": token},
            transport=transport,
        )

    @staticmethod
    def project(owner: str, repo: str) -> str:
        return quote(f"{owner}/{repo}", safe="")

    def web_url(self, owner: str, repo: str, kind: str, item_id: str = "") -> str:
        base = f"https://{self.host}/{owner}/{repo}"
        if kind == "pr":
            return f"{base}/-/merge_requests/{item_id}"
        if kind == "issue":
            return f"{base}/-/issues/{item_id}"
        if kind == "commit":
            return f"{base}/-/commit/{item_id}"
        if kind == "action_run":
            return f"{base}/-/pipelines/{item_id}"
        return base

    def _repo_of(self, mr: dict) -> Optional[Tuple[str, str]]:
        path = urlparse(mr.get("web_url") or "").path.strip("/")
        project_path, sep, _ = path.partition("/-/")
        if not sep or "/" not in project_path:
            return None
        return split_path(project_path)

    async def current_user(self) -> str:
        data = expect_dict(await self._get("/user"), "current user")
        return data.get("username") or ""

    async def list_repos(self, page: int) -> Paged[Repository]:
        payload = await self._get(
            "/projects",
            params={
                "membership": "true",
                "order_by": "last_activity_at",
                "sort": "desc",
                "per_page": PER_PAGE,
                "page": page,
            },
        )
        try:
            repos = []
            for p in expect_list(payload, "projects"):
                owner, name = split_path(p["path_with_namespace"])
                repos.append(Repository(
                    owner=owner,
                    name=name,
                    description=p.get("description") or None,
                    url=p.get("web_url") or "",
                    stars=p.get("star_count") or 0,
                    updated_at=timestamp(p.get("last_activity_at")),
                ))
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed project list: {e}") from e
        return Paged(items=repos)

    async def list_prs(self, owner: str, repo: str, page: int) -> Paged[PrSummary]:
        payload = await self._get(
            f"/projects/{self.project(owner, repo)}/merge_requests",
            params={"state": "opened", "order_by": "updated_at", "sort": "desc", "per_page": PER_PAGE, "page": page},
        )
        try:
            items = [
                PrSummary(
                    number=mr["iid"],
                    title=mr.get("title") or "",
                    state=mr_state(mr.get("state")),
                    author=_username(mr.get("author")),
                    updated_at=timestamp(mr.get("updated_at")),
                )
                for mr in expect_list(payload, "merge requests")
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed merge request list: {e}") from e
        return Paged(items=items)

    async def get_pr(self, owner: str, repo: str, number: int) -> PullRequest:
        mr = expect_dict(
            await self._get(f"/projects/{self.project(owner, repo)}/merge_requests/{number}"),
            "merge request",
        )
        try:
            changes = str(mr.get("changes_count") or "0").rstrip("+")
            return PullRequest(
                number=mr["iid"],
                title=mr.get("title") or "",
                body=mr.get("description"),
                state=mr_state(mr.get("state")),
                author=_username(mr.get("author")),
                head_branch=mr.get("source_branch") or "",
                base_branch=mr.get("target_branch") or "",
                stats=PrStats(
                    changed_files=int(changes) if changes.isdigit() else 0,
                    comments=mr.get("user_notes_count") or 0,
                ),
                created_at=timestamp(mr.get("created_at")),
                updated_at=timestamp(mr.get("updated_at")),
                merged_at=parse_timestamp(mr.get("merged_at")),
                closed_at=parse_timestamp(mr.get("closed_at")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed merge request: {e}") from e

    async def list_issues(self, owner: str, repo: str, page: int) -> Paged[Issue]:
        payload = await self._get(
            f"/projects/{self.project(owner, repo)}/issues",
            params={"state": "opened", "order_by": "updated_at", "sort": "desc", "per_page": PER_PAGE, "page": page},
        )
        try:
            items = [
                Issue(
                    number=i["iid"],
                    title=i.get("title") or "",
                    state=IssueState.CLOSED if i.get("state") == "closed" else IssueState.OPEN,
                    author=_username(i.get("author")),
                    labels=list(i.get("labels") or []),
                    comments=i.get("user_notes_count") or 0,
                    created_at=timestamp(i.get("created_at")),
                    updated_at=timestamp(i.get("updated_at")),
                )
                for i in expect_list(payload, "issues")
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed issue list: {e}") from e
        return Paged(items=items)

    async def list_commits(self, owner: str, repo: str, page: int) -> Paged[Commit]:
        payload = await self._get(
            f"/projects/{self.project(owner, repo)}/repository/commits",
            params={"per_page": PER_PAGE, "page": page},
        )
        try:
            items = [
                Commit(
                    sha=c["id"],
                    message=c.get("title") or first_line(c.get("message")),
                    author=c.get("author_name") or "unknown",
                    date=timestamp(c.get("created_at")),
                )
                for c in expect_list(payload, "commits")
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed commit list: {e}") from e
        return Paged(items=items)

    async def get_commit(self, owner: str, repo: str, sha: str) -> CommitDetail:
        base = f"/projects/{self.project(owner, repo)}/repository/commits/{sha}"
        detail, diffs = await asyncio.gather(self._get(base), self._get(f"{base}/diff"))
        detail = expect_dict(detail, "commit")
        try:
            files = []
            for d in expect_list(diffs, "commit diff"):
                if d.get("new_file"):
                    status = "added"
                elif d.get("deleted_file"):
                    status = "removed"
                elif d.get("renamed_file"):
                    status = "renamed"
                else:
                    status = "modified"
                additions, deletions = count_changes(d.get("diff"))
                files.append(CommitFile(
                    filename=d["new_path"],
                    status=status,
                    additions=additions,
                    deletions=deletions,
                    patch=d.get("diff"),
                ))
            stats = detail.get("stats") or {}
            return CommitDetail(
                sha=detail.get("id") or sha,
                message=detail.get("message") or "",
                author=detail.get("author_name") or "unknown",
                date=timestamp(detail.get("created_at")),
                stats=CommitStats(
                    additions=stats.get("additions") or 0,
                    deletions=stats.get("deletions") or 0,
                    total=stats.get("total") or 0,
                ),
                files=files,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed commit: {e}") from e

    async def get_pr_diff(self, owner: str, repo: str, number: int) -> str:
        mr = expect_dict(
            await self._get(f"/projects/{self.project(owner, repo)}/merge_requests/{number}/changes"),
            "merge request changes",
        )
        parts = []
        for change in mr.get("changes") or []:
            old_path = change.get("old_path") or "unknown"
            new_path = change.get("new_path") or "unknown"
            body = change.get("diff") or ""
            if body and not body.endswith("\n"):
                body += "\n"
            parts.append(f"diff --git a/{old_path} b/{new_path}\n--- a/{old_path}\n+++ b/{new_path}\n{body}")
        return "".join(parts)

    async def merge_pr(self, owner: str, repo: str, number: int, method: MergeMethod):
        await self._send(
            "PUT",
            f"/projects/{self.project(owner, repo)}/merge_requests/{number}/merge",
            json={"merge_method": _MERGE_METHODS[method]},
        )

    async def close_pr(self, owner: str, repo: str, number: int):
        await self._send(
            "PUT",
            f"/projects/{self.project(owner, repo)}/merge_requests/{number}",
            json={"state_event": "close"},
        )

    async def close_issue(self, owner: str, repo: str, number: int):
        await self._send(
            "PUT",
            f"/projects/{self.project(owner, repo)}/issues/{number}",
            json={"state_event": "close"},
        )

    async def comment(self, owner: str, repo: str, number: int, body: str, on_issue: bool = False):
        collection = "issues" if on_issue else "merge_requests"
        await self._send(
            "POST",
            f"/projects/{self.project(owner, repo)}/{collection}/{number}/notes",
            json={"body": body},
        )

    async def _search_mrs(self, **filters) -> List[dict]:
        params = {"state": "opened", "scope": "all", "per_page": PER_PAGE, **filters}
        return expect_list(await self._get("/merge_requests", params=params), "merge requests")

    async def list_review_requests(self, username: str) -> List[ReviewRequest]:
        requests = []
        for mr in await self._search_mrs(reviewer_username=username):
            repo = self._repo_of(mr)
            if repo is None:
                continue
            requests.append(ReviewRequest(
                repo_owner=repo[0],
                repo_name=repo[1],
                pr_number=mr["iid"],
                pr_title=mr.get("title") or "",
                author=_username(mr.get("author")),
                updated_at=timestamp(mr.get("updated_at")),
            ))
        return requests

    async def list_my_prs(self, username: str) -> List[MyPr]:
        prs = []
        for mr in await self._search_mrs(author_username=username):
            repo = self._repo_of(mr)
            if repo is None:
                continue
            prs.append(MyPr(
                repo_owner=repo[0],
                repo_name=repo[1],
                number=mr["iid"],
                title=mr.get("title") or "",
                state=mr_state(mr.get("state")),
                updated_at=timestamp(mr.get("updated_at")),
            ))

        async def fill_status(pr: MyPr):
            try:
                pr.checks_status = await self.get_check_status(pr.repo_owner, pr.repo_name, pr.number)
            except ApiError as e:
                logger.debug(f"Pipeline status unavailable for !{pr.number}: {e}")

        await asyncio.gather(*(fill_status(pr) for pr in prs))
        return prs

    async def list_action_runs(self, owner: str, repo: str, page: int) -> Paged[ActionRun]:
        payload = await self._get(
            f"/projects/{self.project(owner, repo)}/pipelines",
            params={"per_page": PER_PAGE, "page": page},
        )
        try:
            runs = []
            for p in expect_list(payload, "pipelines"):
                status, conclusion = pipeline_status(p.get("status"))
                runs.append(ActionRun(
                    id=p["id"],
                    name=f"Pipeline #{p['id']}",
                    status=status,
                    conclusion=conclusion,
                    branch=p.get("ref") or "unknown",
                    event=p.get("source") or "push",
                    created_at=timestamp(p.get("created_at")),
                ))
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed pipeline list: {e}") from e
        return Paged(items=runs)

    async def get_check_status(self, owner: str, repo: str, number: int) -> ChecksStatus:
        pipelines = expect_list(
            await self._get(f"/projects/{self.project(owner, repo)}/merge_requests/{number}/pipelines"),
            "merge request pipelines",
        )
        if not pipelines:
            return ChecksStatus.NONE
        return _PIPELINE_CHECKS.get(pipelines[0].get("status"), ChecksStatus.NONE)
