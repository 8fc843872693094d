"""Best-effort JSON cache of last-known-good forge responses.

Values are stored one file per key under
``~/.cache/forgeview/<forge-name>/<key>.json``. Read and write failures are
logged at debug level and otherwise ignored; a missing or corrupt entry is
simply a cache miss.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


def default_cache_root() -> Path:
    base = os.environ.get("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / "forgeview"


def repo_key(owner: str, repo: str) -> str:
    """Filesystem-safe key segment for a repository."""
    return f"{owner.replace('/', '_')}_{repo.replace('/', '_')}"


class ResponseCache:
    """Key/value store of JSON-serializable payloads."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    @classmethod
    def for_forge(cls, forge_name: str, root: Optional[Path] = None) -> "ResponseCache":
        return cls((root or default_cache_root()) / forge_name)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.debug(f"Ignoring unreadable cache entry {path}: {e}")
            return None

    def write(self, key: str, value: Any):
        path = self._path(key)
        temp_file = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(value, f)
            temp_file.rename(path)
        except (OSError, TypeError, ValueError) as e:
            logger.debug(f"Failed to write cache entry {path}: {e}")


class NullCache:
    """Cache that never stores anything."""

    def read(self, key: str) -> Optional[Any]:
        return None

    def write(self, key: str, value: Any):
        pass
