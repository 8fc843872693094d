"""Incremental search over loaded lists and detail documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .layout import DocLine
from .models import ActionRun, Commit, Issue, MyPr, PrSummary, Repository, ReviewRequest

# Lines kept above a document match when scrolling to it.
SEARCH_MARGIN = 5

ContentMatch = Tuple[int, int, int]

_FIELDS: Dict[type, Callable[[Any], Sequence[Optional[str]]]] = {
    ReviewRequest: lambda r: (r.pr_title, r.repo_name, r.author),
    MyPr: lambda p: (p.title, p.repo_name),
    Repository: lambda r: (r.name, r.owner, r.description),
    PrSummary: lambda p: (p.title, p.author, str(p.number)),
    Issue: lambda i: (i.title, i.author, str(i.number)),
    Commit: lambda c: (c.message, c.author, c.sha),
    ActionRun: lambda r: (r.name, r.branch),
}


@dataclass
class SearchState:
    query: str = ""
    active: bool = False
    match_indices: List[int] = field(default_factory=list)
    content_matches: List[ContentMatch] = field(default_factory=list)
    current_match: int = 0

    def clear_matches(self):
        self.match_indices = []
        self.content_matches = []
        self.current_match = 0

    def reset(self):
        self.query = ""
        self.active = False
        self.clear_matches()

    @property
    def match_count(self) -> int:
        return len(self.match_indices) or len(self.content_matches)

    def step(self, delta: int) -> bool:
        """Move the current-match cursor cyclically. False when nothing matched."""
        count = self.match_count
        if count == 0:
            return False
        self.current_match = (self.current_match + delta) % count
        return True

    def current_item(self) -> Optional[int]:
        if 0 <= self.current_match < len(self.match_indices):
            return self.match_indices[self.current_match]
        return None

    def current_content(self) -> Optional[ContentMatch]:
        if 0 <= self.current_match < len(self.content_matches):
            return self.content_matches[self.current_match]
        return None


def item_matches(item: Any, needle: str) -> bool:
    fields = _FIELDS.get(type(item))
    if fields is None:
        return False
    return any(needle in (value or "").lower() for value in fields(item))


def match_items(items: Sequence[Any], query: str) -> List[int]:
    """Indices of items whose searchable fields contain ``query``, case-insensitively."""
    needle = query.lower()
    if not needle:
        return []
    return [i for i, item in enumerate(items) if item_matches(item, needle)]


def match_lines(lines: Sequence[DocLine], query: str) -> List[ContentMatch]:
    """Every non-overlapping occurrence of ``query`` in searchable lines, in document order."""
    needle = query.lower()
    if not needle:
        return []

    matches = []
    for line_idx, line in enumerate(lines):
        if not line.searchable:
            continue
        lower = line.text.lower()
        start = 0
        while True:
            pos = lower.find(needle, start)
            if pos < 0:
                break
            end = pos + len(needle)
            matches.append((line_idx, pos, end))
            start = end
    return matches


def scroll_for_match(line_idx: int) -> int:
    return max(line_idx - SEARCH_MARGIN, 0)
