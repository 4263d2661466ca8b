"""Storage adapters: documents as markdown files under a store root.

``PlainAdapter`` works on the filesystem alone. ``VersionedAdapter`` adds git
staging and commits on top of it. ``initialize()`` picks one from a
``StoreConfig``; callers only see the ``StorageAdapter`` protocol and can ask
``adapter.versioned`` or ``isinstance(adapter, Syncable)`` instead of trying
an operation and catching the failure.

Every mutation runs under the store's ProcessLock. Reads take no lock; file
replacement is atomic, so a reader sees either the old or the new document.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from folio.config import StoreConfig, resolve_root
from folio.errors import (
    ConfigurationError,
    EmptyIdentifier,
    InvalidIdentifier,
    MalformedHeader,
    NoRemoteConfigured,
    NotFound,
    VersioningDisabled,
)
from folio.store import codec, commits
from folio.store import git as gitmod
from folio.store.atomic import write_atomic
from folio.store.cache import SYSTEM_DIR, MetadataCache
from folio.store.git import GitClient
from folio.store.lock import LOCK_NAME, ProcessLock
from folio.store.models import ChangeEvent, Document, IndexEntry, Metadata, check_metadata

if TYPE_CHECKING:
    from folio.store.transaction import Transaction

logger = logging.getLogger(__name__)

EXTENSION = ".md"
IGNORE_ENTRIES = (f"{SYSTEM_DIR}/", f"{LOCK_NAME}*", ".folio-tmp-*")


@runtime_checkable
class StorageAdapter(Protocol):
    """Port between the document service and a concrete store."""

    root: Path

    @property
    def versioned(self) -> bool: ...

    def save(
        self, doc_id: str, content: str, metadata: Metadata | None = None, *, message: str | None = None
    ) -> Document: ...

    def get(self, doc_id: str) -> Document: ...

    def list(self) -> list[Document]: ...

    def delete(self, doc_id: str) -> None: ...

    def sync(self) -> None: ...

    def transaction(self) -> Transaction: ...


@runtime_checkable
class Syncable(Protocol):
    """Adapters that can exchange history with a remote."""

    def has_remote(self) -> bool: ...

    def sync(self) -> None: ...


class PlainAdapter:
    """Filesystem-only store: no history, no remote."""

    def __init__(
        self,
        root: Path,
        *,
        strict: bool = False,
        lock: ProcessLock | None = None,
        cache: MetadataCache | None = None,
    ) -> None:
        self.root = root
        self.strict = strict
        self.lock = lock or ProcessLock(root)
        self.cache = cache or MetadataCache(root)

    @property
    def versioned(self) -> bool:
        return False

    # ── Identifier mapping ────────────────────────────────────

    def relpath(self, doc_id: str) -> PurePosixPath:
        """Store-relative file path for a document id."""
        if not doc_id or not doc_id.strip():
            raise EmptyIdentifier()
        rel = PurePosixPath(doc_id.strip().replace("\\", "/"))
        if rel.is_absolute():
            raise InvalidIdentifier(f"document id must be relative: {doc_id!r}")
        if not rel.parts:
            raise InvalidIdentifier(f"document id has no name: {doc_id!r}")
        for part in rel.parts:
            if part == "..":
                raise InvalidIdentifier(f"document id must not leave the store: {doc_id!r}")
            if part.startswith("."):
                raise InvalidIdentifier(f"document id segments must not start with '.': {doc_id!r}")
        if rel.suffix != EXTENSION:
            rel = rel.with_name(rel.name + EXTENSION)
        return rel

    def canonical_id(self, doc_id: str) -> str:
        return _id_for(self.relpath(doc_id))

    def path_for(self, doc_id: str) -> Path:
        return self.root / self.relpath(doc_id)

    # ── CRUD ──────────────────────────────────────────────────

    def save(
        self, doc_id: str, content: str, metadata: Metadata | None = None, *, message: str | None = None
    ) -> Document:
        """Create or overwrite a document. Returns what was written."""
        rel = self.relpath(doc_id)
        doc = Document(id=_id_for(rel), content=content, metadata=dict(metadata or {}))
        check_metadata(doc.metadata)
        self._apply(
            {rel: doc},
            set(),
            message or commits.default_save_message(doc.id),
            commit_paths=[rel],
        )
        logger.debug("Saved %s", doc.id)
        return doc

    def get(self, doc_id: str) -> Document:
        rel = self.relpath(doc_id)
        return self._read(self.root / rel, _id_for(rel))

    def delete(self, doc_id: str) -> None:
        """Remove a document. Versioned stores stage the removal without committing."""
        rel = self.relpath(doc_id)
        with self.lock:
            if not (self.root / rel).is_file():
                raise NotFound(_id_for(rel))
            self._remove(rel)
            self.cache.load()
            self.cache.delete(rel)
            self._save_cache()
        logger.debug("Deleted %s", _id_for(rel))

    def list(self) -> list[Document]:
        """All documents, sorted by id.

        Documents served from the index carry only title/tags metadata and an
        empty body; call ``get()`` for the full document.
        """
        self.cache.load()
        docs: list[Document] = []
        seen: set[str] = set()
        hits = 0

        for rel, mtime in self._scan():
            seen.add(rel)
            doc_id = _id_for(PurePosixPath(rel))
            entry = self._cached(rel, mtime, doc_id)
            if entry is not None:
                hits += 1
                docs.append(entry.to_document())
                continue
            try:
                doc = self._read(self.root / rel, doc_id)
            except (MalformedHeader, NotFound, OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping %s: %s", rel, e)
                continue
            self.cache.set(rel, IndexEntry.from_document(doc, mtime))
            docs.append(doc)

        self.cache.prune(seen)
        self._save_cache()
        logger.debug("Listed %d documents (%d from index)", len(docs), hits)
        docs.sort(key=lambda d: d.id)
        return docs

    def reconcile(self) -> list[ChangeEvent]:
        """Changes on disk since the index was last persisted; refreshes the index."""
        self.cache.load()
        known = {rel for rel, _ in self.cache.items()}
        events: list[ChangeEvent] = []
        seen: set[str] = set()

        for rel, mtime in self._scan():
            seen.add(rel)
            doc_id = _id_for(PurePosixPath(rel))
            if self._cached(rel, mtime, doc_id) is not None:
                continue
            events.append(ChangeEvent("modify" if rel in known else "create", doc_id))
            try:
                doc = self._read(self.root / rel, doc_id)
            except (MalformedHeader, NotFound, OSError, UnicodeDecodeError) as e:
                logger.warning("Cannot index %s: %s", rel, e)
                continue
            self.cache.set(rel, IndexEntry.from_document(doc, mtime))

        for rel, entry in self.cache.items():
            if rel not in seen:
                events.append(ChangeEvent("delete", entry.id))
        self.cache.prune(seen)
        self._save_cache()
        return events

    def sync(self) -> None:
        raise VersioningDisabled("cannot sync a store without versioning")

    def transaction(self) -> Transaction:
        from folio.store.transaction import Transaction

        return Transaction(self)

    # ── Internal helpers ──────────────────────────────────────

    def _apply(
        self,
        writes: Mapping[PurePosixPath, Document],
        deletes: set[PurePosixPath],
        message: str,
        *,
        commit_paths: list[PurePosixPath] | None = None,
    ) -> None:
        """Write and remove files, record them, refresh the index. Takes the lock."""
        with self.lock:
            for rel, doc in writes.items():
                path = self.root / rel
                path.parent.mkdir(parents=True, exist_ok=True)
                write_atomic(path, codec.encode(doc.metadata, doc.content))
            for rel in deletes:
                self._remove(rel)

            self._record(list(writes), message, commit_paths)

            self.cache.load()
            for rel, doc in writes.items():
                mtime = (self.root / rel).stat().st_mtime_ns
                self.cache.set(rel, IndexEntry.from_document(doc, mtime))
            for rel in deletes:
                self.cache.delete(rel)
            self._save_cache()

    def _record(
        self, written: list[PurePosixPath], message: str, commit_paths: list[PurePosixPath] | None
    ) -> None:
        """Hook for versioned stores: stage and commit the changes."""

    def _remove(self, rel: PurePosixPath) -> None:
        (self.root / rel).unlink(missing_ok=True)

    def _read(self, path: Path, doc_id: str) -> Document:
        try:
            with path.open("r", encoding="utf-8", newline="") as f:
                return codec.decode(f, doc_id, strict=self.strict)
        except (FileNotFoundError, IsADirectoryError):
            raise NotFound(doc_id) from None

    def _scan(self) -> Iterator[tuple[str, int]]:
        """(relative posix path, mtime_ns) for every document file, in sorted order."""
        for dirpath, dirnames, filenames in os.walk(self.root):
            # .git, .folio and any other hidden directory
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for name in sorted(filenames):
                if name.startswith(".") or not name.endswith(EXTENSION):
                    continue
                path = Path(dirpath) / name
                try:
                    mtime = path.stat().st_mtime_ns
                except FileNotFoundError:
                    continue
                yield path.relative_to(self.root).as_posix(), mtime

    def _cached(self, rel: str, mtime: int, doc_id: str) -> IndexEntry | None:
        """Index entry for a file, trusted only if it still names that file."""
        entry = self.cache.get(rel, mtime)
        if entry is not None and entry.id != doc_id:
            logger.debug("Index entry for %s names %s; re-reading", rel, entry.id)
            return None
        return entry

    def _save_cache(self) -> None:
        try:
            self.cache.save()
        except OSError as e:
            logger.warning("Failed to save index %s: %s", self.cache.path, e)


class VersionedAdapter(PlainAdapter):
    """Store whose mutations are staged and committed with git."""

    def __init__(
        self,
        root: Path,
        git: GitClient | None = None,
        *,
        strict: bool = False,
        lock: ProcessLock | None = None,
        cache: MetadataCache | None = None,
    ) -> None:
        super().__init__(root, strict=strict, lock=lock, cache=cache)
        self.git = git or GitClient(root)

    @property
    def versioned(self) -> bool:
        return True

    def commit(self, message: str) -> bool:
        """Commit whatever is staged (e.g. deletions). Returns False if nothing was."""
        with self.lock:
            if not self._staged():
                logger.info("Nothing staged in %s, skipping commit", self.root)
                return False
            self.git.commit(message)
        logger.info("Committed: %s", message.splitlines()[0])
        return True

    def status(self) -> str:
        return self.git.status()

    def has_remote(self) -> bool:
        return self.git.has_remote()

    def sync(self) -> None:
        with self.lock:
            if not self.git.has_remote():
                raise NoRemoteConfigured(f"no remote configured for {self.root}")
            self.git.sync()

    def _record(
        self, written: list[PurePosixPath], message: str, commit_paths: list[PurePosixPath] | None
    ) -> None:
        self.git.add(*(rel.as_posix() for rel in written))
        staged = self._staged()
        if commit_paths is None:
            if staged:
                self.git.commit(message)
            return

        wanted = [rel.as_posix() for rel in commit_paths if rel.as_posix() in staged]
        if not wanted:
            logger.debug("No changes to commit for %s", ", ".join(str(p) for p in commit_paths))
        elif set(wanted) == set(staged):
            self.git.commit(message)
        else:
            # Leave unrelated staged changes (e.g. pending deletions) for a later commit
            self.git.run("commit", "-m", message, "--", *wanted)

    def _remove(self, rel: PurePosixPath) -> None:
        self.git.rm(rel.as_posix())
        # untracked files are not touched by git rm --ignore-unmatch
        (self.root / rel).unlink(missing_ok=True)

    def _staged(self) -> list[str]:
        out = self.git.run("diff", "--cached", "--name-only", "--no-renames", "-z")
        return [name for name in out.split("\0") if name]


def initialize(config: StoreConfig) -> StorageAdapter:
    """Open (and optionally create) the store described by ``config``."""
    root = resolve_root(Path(config.root).expanduser(), config.force_ephemeral).resolve()
    if config.force_ephemeral:
        logger.warning("Running in ephemeral mode: %s -> %s", config.root, root)

    if config.must_exist:
        if not root.is_dir():
            raise ConfigurationError(f"store root does not exist or is not a directory: {root}")
    elif config.auto_init or config.force_ephemeral:
        root.mkdir(parents=True, exist_ok=True)
    elif not root.is_dir():
        raise ConfigurationError(f"store root does not exist: {root} (enable auto_init to create it)")

    lock = ProcessLock(root, timeout=config.lock_timeout, stale_after=config.stale_after)
    git = _open_git(root, config, lock)
    if git is not None:
        logger.debug("Opened versioned store at %s", root)
        return VersionedAdapter(root, git, strict=config.strict, lock=lock)

    if config.auto_init:
        # marks the directory as a store for find_root()
        (root / SYSTEM_DIR).mkdir(exist_ok=True)
    logger.debug("Opened plain store at %s", root)
    return PlainAdapter(root, strict=config.strict, lock=lock)


def _open_git(root: Path, config: StoreConfig, lock: ProcessLock) -> GitClient | None:
    """GitClient for the store, or None when it runs without versioning."""
    if config.versioning is False:
        return None
    demanded = config.versioning is True

    if not gitmod.is_installed():
        if demanded:
            raise ConfigurationError("versioning was requested but git is not installed")
        logger.warning("git not found on PATH; running without versioning")
        return None

    client = GitClient(root)
    if client.is_repo():
        return client

    if not config.auto_init:
        if demanded:
            raise ConfigurationError(f"{root} is not a git repository (enable auto_init to create one)")
        logger.info("%s is not a git repository; running without versioning", root)
        return None

    client.init()
    if _ensure_ignore(root):
        with lock:
            client.add(".gitignore")
            client.commit(commits.format_commit_message(commits.CHORE, "", f"configure {SYSTEM_DIR} ignore"))
    return client


def _ensure_ignore(root: Path) -> bool:
    """Make sure .gitignore lists the store's private files. True if it changed."""
    path = root / ".gitignore"
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    present = {line.strip() for line in existing.splitlines()}
    missing = [entry for entry in IGNORE_ENTRIES if entry not in present]
    if not missing:
        return False

    text = existing
    if text and not text.endswith("\n"):
        text += "\n"
    text += "\n".join(missing) + "\n"
    path.write_text(text, encoding="utf-8")
    return True


def _id_for(rel: PurePosixPath) -> str:
    return rel.with_name(rel.name[: -len(EXTENSION)]).as_posix() if rel.suffix == EXTENSION else rel.as_posix()
