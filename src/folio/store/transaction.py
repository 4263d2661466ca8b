"""Batched writes: stage several saves/deletes, apply them as one unit.

    with adapter.transaction() as tx:
        tx.save("notes/a", "body", {"title": "A"})
        tx.delete("notes/old")
        tx.message = "docs(notes): reorganize"

Leaving the block normally commits; an exception rolls back. On a versioned
store the whole batch becomes a single commit.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from folio.errors import NotFound, TransactionClosed
from folio.store.commits import BATCH_MESSAGE
from folio.store.models import Document, Metadata, check_metadata

if TYPE_CHECKING:
    from folio.store.adapter import PlainAdapter

logger = logging.getLogger(__name__)


class Transaction:
    """Unit of work over one adapter. Not thread-safe."""

    def __init__(self, adapter: PlainAdapter) -> None:
        self.adapter = adapter
        self.message: str | None = None
        self._writes: dict[PurePosixPath, Document] = {}
        self._deletes: set[PurePosixPath] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return len(self._writes) + len(self._deletes)

    def save(self, doc_id: str, content: str, metadata: Metadata | None = None) -> Document:
        self._check_open()
        rel = self.adapter.relpath(doc_id)
        doc = Document(id=self.adapter.canonical_id(doc_id), content=content, metadata=dict(metadata or {}))
        check_metadata(doc.metadata)
        self._writes[rel] = doc
        self._deletes.discard(rel)
        return doc

    def get(self, doc_id: str) -> Document:
        """Staged state first, then the store."""
        self._check_open()
        rel = self.adapter.relpath(doc_id)
        if rel in self._deletes:
            raise NotFound(self.adapter.canonical_id(doc_id))
        if rel in self._writes:
            return self._writes[rel]
        return self.adapter.get(doc_id)

    def delete(self, doc_id: str) -> None:
        self._check_open()
        rel = self.adapter.relpath(doc_id)
        staged = self._writes.pop(rel, None)
        if (self.adapter.root / rel).is_file():
            self._deletes.add(rel)
        elif staged is None:
            raise NotFound(self.adapter.canonical_id(doc_id))

    def commit(self, message: str | None = None) -> None:
        self._check_open()
        message = message or self.message or BATCH_MESSAGE
        if self._writes or self._deletes:
            self.adapter._apply(self._writes, self._deletes, message)
            logger.debug(
                "Transaction committed: %d written, %d deleted", len(self._writes), len(self._deletes)
            )
        self._close()

    def rollback(self) -> None:
        if self._closed:
            return
        logger.debug("Transaction rolled back (%d pending changes dropped)", self.pending)
        self._close()

    def __enter__(self) -> Transaction:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._closed:
            return
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    def _check_open(self) -> None:
        if self._closed:
            raise TransactionClosed("transaction already committed or rolled back")

    def _close(self) -> None:
        self._writes = {}
        self._deletes = set()
        self._closed = True
