"""Forge capability interface and the shared HTTP plumbing of its backends."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from ..errors import ApiError, AuthError, UnsupportedError
from ..layout import split_lines
from ..models import (
    ActionRun,
    ChecksStatus,
    Commit,
    CommitDetail,
    Issue,
    MergeMethod,
    MyPr,
    Paged,
    PrSummary,
    PullRequest,
    Repository,
    ReviewEvent,
    ReviewRequest,
)

logger = logging.getLogger(__name__)

PER_PAGE = 50
REQUEST_TIMEOUT = 30.0
USER_AGENT = "forgeview"


class Forge(ABC):
    """One code-hosting backend.

    The session only ever talks to this interface; it never checks which
    backend it has. Optional features have defaults that return empty
    results, or raise ``UnsupportedError`` for reviews.
    """

    name = "forge"

    @abstractmethod
    def web_url(self, owner: str, repo: str, kind: str, item_id: str = "") -> str:
        """Browser URL for ``kind`` in repo, pr, issue, commit, action_run."""

    @abstractmethod
    async def current_user(self) -> str: ...

    @abstractmethod
    async def list_repos(self, page: int) -> Paged[Repository]: ...

    @abstractmethod
    async def list_prs(self, owner: str, repo: str, page: int) -> Paged[PrSummary]: ...

    @abstractmethod
    async def get_pr(self, owner: str, repo: str, number: int) -> PullRequest: ...

    @abstractmethod
    async def list_issues(self, owner: str, repo: str, page: int) -> Paged[Issue]: ...

    @abstractmethod
    async def list_commits(self, owner: str, repo: str, page: int) -> Paged[Commit]: ...

    @abstractmethod
    async def get_commit(self, owner: str, repo: str, sha: str) -> CommitDetail: ...

    @abstractmethod
    async def get_pr_diff(self, owner: str, repo: str, number: int) -> str: ...

    @abstractmethod
    async def merge_pr(self, owner: str, repo: str, number: int, method: MergeMethod): ...

    @abstractmethod
    async def close_pr(self, owner: str, repo: str, number: int): ...

    @abstractmethod
    async def close_issue(self, owner: str, repo: str, number: int): ...

    @abstractmethod
    async def comment(self, owner: str, repo: str, number: int, body: str, on_issue: bool = False): ...

    async def list_review_requests(self, username: str) -> List[ReviewRequest]:
        return []

    async def list_my_prs(self, username: str) -> List[MyPr]:
        return []

    async def list_action_runs(self, owner: str, repo: str, page: int) -> Paged[ActionRun]:
        return Paged(items=[], total_count=None)

    async def get_check_status(self, owner: str, repo: str, number: int) -> ChecksStatus:
        return ChecksStatus.NONE

    async def submit_review(self, owner: str, repo: str, number: int, event: ReviewEvent, body: str):
        raise UnsupportedError("Reviews not supported by this forge")

    async def aclose(self):
        pass


class HttpForge(Forge):
    """Forge backed by a JSON REST API over ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str,
        headers: Dict[str, str],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"User-Agent": USER_AGENT, **headers},
            timeout=REQUEST_TIMEOUT,
            transport=transport,
        )

    async def aclose(self):
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"{self.name} {method} {path} failed: {e}")
            raise ApiError(f"{method} {path}: {e}") from e

        if response.status_code == 401:
            raise AuthError(f"{self.name} rejected the token (401)")
        if response.is_error:
            detail = response.text.strip()[:200] or response.reason_phrase
            logger.warning(f"{self.name} {method} {path} -> {response.status_code}: {detail}")
            raise ApiError(f"{method} {path} returned {response.status_code}: {detail}")
        return response

    async def _json(self, method: str, path: str, **kwargs) -> Any:
        response = await self._send(method, path, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"{method} {path}: invalid JSON response") from e

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._json("GET", path, params=params)

    async def _text(self, path: str, headers: Optional[Dict[str, str]] = None) -> str:
        response = await self._send("GET", path, headers=headers)
        return response.text


def first_line(message: Optional[str]) -> str:
    lines = split_lines(message)
    return lines[0] if lines else ""


def expect_list(payload: Any, what: str) -> list:
    if not isinstance(payload, list):
        raise ApiError(f"Unexpected response for {what}")
    return payload


def expect_dict(payload: Any, what: str) -> dict:
    if not isinstance(payload, dict):
        raise ApiError(f"Unexpected response for {what}")
    return payload
