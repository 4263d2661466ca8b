"""Persistent metadata index for fast listing.

Lives at ``<root>/.folio/index.json``:

    {"version": 1,
     "entries": {"notes/a.md": {"id": "notes/a", "title": "A",
                                "tags": ["x"], "lastModified": "...Z"}}}

An entry is only trusted when its stored mtime equals the file's current
mtime exactly. The index is derived data: a missing file means an empty
index and a corrupt one is discarded.
"""

from __future__ import annotations

import contextlib
import json
import logging
import threading
from collections.abc import Iterable, Iterator
from pathlib import Path, PurePath

from folio.store.atomic import write_atomic
from folio.store.models import IndexEntry

logger = logging.getLogger(__name__)

INDEX_VERSION = 1
SYSTEM_DIR = ".folio"
INDEX_FILE = "index.json"


class _ReadWriteLock:
    """Many readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextlib.contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextlib.contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _key(rel_path: str | PurePath) -> str:
    if isinstance(rel_path, PurePath):
        return rel_path.as_posix()
    return rel_path.replace("\\", "/")


class MetadataCache:
    """mtime-keyed summary index for one store root."""

    def __init__(self, root: Path, system_dir: str = SYSTEM_DIR) -> None:
        self.path = root / system_dir / INDEX_FILE
        self._entries: dict[str, IndexEntry] = {}
        self._dirty = False
        self._lock = _ReadWriteLock()

    @property
    def dirty(self) -> bool:
        return self._dirty

    def load(self) -> None:
        """Replace the in-memory index with the persisted one."""
        with self._lock.write():
            self._dirty = False
            try:
                raw = self.path.read_text(encoding="utf-8")
            except FileNotFoundError:
                self._entries = {}
                return

            try:
                self._entries = _decode_index(raw)
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("Discarding corrupt index %s: %s", self.path, e)
                self._entries = {}

    def get(self, rel_path: str | PurePath, mtime_ns: int) -> IndexEntry | None:
        """Cached entry for ``rel_path``, or None if absent or stale."""
        with self._lock.read():
            entry = self._entries.get(_key(rel_path))
        if entry is None or entry.last_modified != mtime_ns:
            return None
        return entry

    def set(self, rel_path: str | PurePath, entry: IndexEntry) -> None:
        with self._lock.write():
            self._entries[_key(rel_path)] = entry
            self._dirty = True

    def delete(self, rel_path: str | PurePath) -> None:
        with self._lock.write():
            if self._entries.pop(_key(rel_path), None) is not None:
                self._dirty = True

    def prune(self, keep: Iterable[str | PurePath]) -> int:
        """Drop every entry whose path is not in ``keep``. Returns how many went."""
        keep_keys = {_key(p) for p in keep}
        with self._lock.write():
            stale = [k for k in self._entries if k not in keep_keys]
            for k in stale:
                del self._entries[k]
            if stale:
                self._dirty = True
        return len(stale)

    def save(self) -> None:
        """Persist the index if anything changed since the last load/save."""
        with self._lock.write():
            if not self._dirty:
                return
            payload = {
                "version": INDEX_VERSION,
                "entries": {k: self._entries[k].to_dict() for k in sorted(self._entries)},
            }
            self.path.parent.mkdir(parents=True, exist_ok=True)
            write_atomic(self.path, json.dumps(payload, indent=2, ensure_ascii=False) + "\n")
            self._dirty = False
        logger.debug("Saved index %s (%d entries)", self.path, len(payload["entries"]))

    def items(self) -> list[tuple[str, IndexEntry]]:
        """Snapshot of (relative path, entry) pairs."""
        with self._lock.read():
            return list(self._entries.items())

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __contains__(self, rel_path: object) -> bool:
        if not isinstance(rel_path, (str, PurePath)):
            return False
        with self._lock.read():
            return _key(rel_path) in self._entries


def _decode_index(raw: str) -> dict[str, IndexEntry]:
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise TypeError("index root is not an object")
    if data.get("version") != INDEX_VERSION:
        raise ValueError(f"unsupported index version {data.get('version')!r}")
    entries = data.get("entries") or {}
    if not isinstance(entries, dict):
        raise TypeError("index entries is not an object")
    return {_key(k): IndexEntry.from_dict(v) for k, v in entries.items()}
