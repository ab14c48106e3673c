"""Local cache adapters for profile snapshots."""

import hashlib
from pathlib import Path

import structlog

logger = structlog.get_logger()


class InMemoryLocalCache:
    """Process-local key-value cache."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)


class FileLocalCache:
    """Key-value cache persisted as one file per key under a directory.

    Writes go to a temporary sibling first and are then renamed into place,
    so a reader never observes a half-written value.
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._directory / f"{digest}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
        logger.debug("local_cache_key_removed", key=key)
