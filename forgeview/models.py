"""Data models for forge records shown in forgeview."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as returned by forge APIs.

    Accepts a trailing ``Z`` and naive values (treated as UTC).
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def timestamp(value: Optional[str]) -> datetime:
    """Like parse_timestamp, with the Unix epoch standing in for a missing value."""
    return parse_timestamp(value) or _epoch()


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _epoch() -> datetime:
    return datetime.fromtimestamp(0, tz=timezone.utc)


class PrState(Enum):
    """Pull/merge request state."""
    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class IssueState(Enum):
    """Issue state."""
    OPEN = "open"
    CLOSED = "closed"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class ActionStatus(Enum):
    """CI run lifecycle status."""
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def label(self) -> str:
        return {"queued": "Queued", "in_progress": "Running", "completed": "Done"}[self.value]


class ActionConclusion(Enum):
    """Outcome of a completed CI run."""
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"

    @property
    def symbol(self) -> str:
        return {
            "success": "ok",
            "failure": "fail",
            "cancelled": "cancel",
            "skipped": "skip",
            "timed_out": "timeout",
        }[self.value]


class ChecksStatus(Enum):
    """Aggregated CI status for a pull request."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    NONE = "none"

    @property
    def symbol(self) -> str:
        return {"pending": "...", "success": "ok", "failure": "fail", "none": "-"}[self.value]


class MergeMethod(Enum):
    """Merge strategies offered by the merge popup."""
    MERGE = "merge"
    SQUASH = "squash"
    REBASE = "rebase"


class ReviewEvent(Enum):
    """Review verdicts offered by the review popup."""
    APPROVE = "APPROVE"
    REQUEST_CHANGES = "REQUEST_CHANGES"
    COMMENT = "COMMENT"


@dataclass
class Paged(Generic[T]):
    """One page of a paginated listing."""
    items: List[T] = field(default_factory=list)
    total_count: Optional[int] = None


@dataclass
class Repository:
    owner: str
    name: str
    description: Optional[str] = None
    url: str = ""
    stars: int = 0
    updated_at: datetime = field(default_factory=_epoch)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def to_dict(self) -> dict:
        return {
            "owner": self.owner,
            "name": self.name,
            "description": self.description,
            "url": self.url,
            "stars": self.stars,
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Repository":
        return cls(
            owner=data["owner"],
            name=data["name"],
            description=data.get("description"),
            url=data.get("url", ""),
            stars=data.get("stars", 0),
            updated_at=timestamp(data.get("updated_at")),
        )


@dataclass
class PrSummary:
    number: int
    title: str
    state: PrState
    author: str
    updated_at: datetime = field(default_factory=_epoch)

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "title": self.title,
            "state": self.state.value,
            "author": self.author,
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PrSummary":
        return cls(
            number=data["number"],
            title=data["title"],
            state=PrState(data["state"]),
            author=data["author"],
            updated_at=timestamp(data.get("updated_at")),
        )


@dataclass
class PrStats:
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    commits: int = 0
    comments: int = 0

    def to_dict(self) -> dict:
        return {
            "additions": self.additions,
            "deletions": self.deletions,
            "changed_files": self.changed_files,
            "commits": self.commits,
            "comments": self.comments,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PrStats":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class PullRequest:
    """Full pull/merge request record for the detail screen."""
    number: int
    title: str
    state: PrState
    author: str
    body: Optional[str] = None
    head_branch: str = ""
    base_branch: str = ""
    stats: PrStats = field(default_factory=PrStats)
    created_at: datetime = field(default_factory=_epoch)
    updated_at: datetime = field(default_factory=_epoch)
    merged_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "title": self.title,
            "state": self.state.value,
            "author": self.author,
            "body": self.body,
            "head_branch": self.head_branch,
            "base_branch": self.base_branch,
            "stats": self.stats.to_dict(),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "merged_at": _iso(self.merged_at),
            "closed_at": _iso(self.closed_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PullRequest":
        return cls(
            number=data["number"],
            title=data["title"],
            state=PrState(data["state"]),
            author=data["author"],
            body=data.get("body"),
            head_branch=data.get("head_branch", ""),
            base_branch=data.get("base_branch", ""),
            stats=PrStats.from_dict(data.get("stats") or {}),
            created_at=timestamp(data.get("created_at")),
            updated_at=timestamp(data.get("updated_at")),
            merged_at=parse_timestamp(data.get("merged_at")),
            closed_at=parse_timestamp(data.get("closed_at")),
        )


@dataclass
class Issue:
    number: int
    title: str
    state: IssueState
    author: str
    labels: List[str] = field(default_factory=list)
    comments: int = 0
    created_at: datetime = field(default_factory=_epoch)
    updated_at: datetime = field(default_factory=_epoch)

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "title": self.title,
            "state": self.state.value,
            "author": self.author,
            "labels": list(self.labels),
            "comments": self.comments,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Issue":
        return cls(
            number=data["number"],
            title=data["title"],
            state=IssueState(data["state"]),
            author=data["author"],
            labels=list(data.get("labels") or []),
            comments=data.get("comments", 0),
            created_at=timestamp(data.get("created_at")),
            updated_at=timestamp(data.get("updated_at")),
        )


@dataclass
class Commit:
    """Commit summary for list views. ``message`` holds the first line only."""
    sha: str
    message: str
    author: str
    date: datetime = field(default_factory=_epoch)

    def to_dict(self) -> dict:
        return {
            "sha": self.sha,
            "message": self.message,
            "author": self.author,
            "date": _iso(self.date),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Commit":
        return cls(
            sha=data["sha"],
            message=data["message"],
            author=data["author"],
            date=timestamp(data.get("date")),
        )


@dataclass
class CommitStats:
    additions: int = 0
    deletions: int = 0
    total: int = 0

    def to_dict(self) -> dict:
        return {"additions": self.additions, "deletions": self.deletions, "total": self.total}

    @classmethod
    def from_dict(cls, data: dict) -> "CommitStats":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class CommitFile:
    filename: str
    status: str
    additions: int = 0
    deletions: int = 0
    patch: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "status": self.status,
            "additions": self.additions,
            "deletions": self.deletions,
            "patch": self.patch,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CommitFile":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class CommitDetail:
    """Full commit with per-file patches for the detail screen."""
    sha: str
    message: str
    author: str
    date: datetime = field(default_factory=_epoch)
    stats: CommitStats = field(default_factory=CommitStats)
    files: List[CommitFile] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "sha": self.sha,
            "message": self.message,
            "author": self.author,
            "date": _iso(self.date),
            "stats": self.stats.to_dict(),
            "files": [f.to_dict() for f in self.files],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CommitDetail":
        return cls(
            sha=data["sha"],
            message=data["message"],
            author=data["author"],
            date=timestamp(data.get("date")),
            stats=CommitStats.from_dict(data.get("stats") or {}),
            files=[CommitFile.from_dict(f) for f in data.get("files") or []],
        )


@dataclass
class ActionRun:
    id: int
    name: str
    status: ActionStatus
    conclusion: Optional[ActionConclusion] = None
    branch: str = ""
    event: str = ""
    created_at: datetime = field(default_factory=_epoch)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "conclusion": self.conclusion.value if self.conclusion else None,
            "branch": self.branch,
            "event": self.event,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ActionRun":
        conclusion = data.get("conclusion")
        return cls(
            id=data["id"],
            name=data["name"],
            status=ActionStatus(data["status"]),
            conclusion=ActionConclusion(conclusion) if conclusion else None,
            branch=data.get("branch", ""),
            event=data.get("event", ""),
            created_at=timestamp(data.get("created_at")),
        )


@dataclass
class ReviewRequest:
    """A pull request where the current user is a requested reviewer."""
    repo_owner: str
    repo_name: str
    pr_number: int
    pr_title: str
    author: str
    updated_at: datetime = field(default_factory=_epoch)

    def to_dict(self) -> dict:
        return {
            "repo_owner": self.repo_owner,
            "repo_name": self.repo_name,
            "pr_number": self.pr_number,
            "pr_title": self.pr_title,
            "author": self.author,
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ReviewRequest":
        return cls(
            repo_owner=data["repo_owner"],
            repo_name=data["repo_name"],
            pr_number=data["pr_number"],
            pr_title=data["pr_title"],
            author=data["author"],
            updated_at=timestamp(data.get("updated_at")),
        )


@dataclass
class MyPr:
    """An open pull request authored by the current user, with CI status."""
    repo_owner: str
    repo_name: str
    number: int
    title: str
    state: PrState = PrState.OPEN
    checks_status: ChecksStatus = ChecksStatus.NONE
    updated_at: datetime = field(default_factory=_epoch)

    def to_dict(self) -> dict:
        return {
            "repo_owner": self.repo_owner,
            "repo_name": self.repo_name,
            "number": self.number,
            "title": self.title,
            "state": self.state.value,
            "checks_status": self.checks_status.value,
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MyPr":
        return cls(
            repo_owner=data["repo_owner"],
            repo_name=data["repo_name"],
            number=data["number"],
            title=data["title"],
            state=PrState(data.get("state", "open")),
            checks_status=ChecksStatus(data.get("checks_status", "none")),
            updated_at=timestamp(data.get("updated_at")),
        )


@dataclass
class HomeData:
    review_requests: List[ReviewRequest] = field(default_factory=list)
    my_prs: List[MyPr] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "review_requests": [r.to_dict() for r in self.review_requests],
            "my_prs": [p.to_dict() for p in self.my_prs],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HomeData":
        return cls(
            review_requests=[ReviewRequest.from_dict(r) for r in data.get("review_requests") or []],
            my_prs=[MyPr.from_dict(p) for p in data.get("my_prs") or []],
        )
