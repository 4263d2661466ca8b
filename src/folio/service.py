"""Document service: the domain-facing entry point.

Validates input, then delegates to whichever StorageAdapter it was built
with. The service does not know whether the store is versioned; callers ask
``service.versioned`` when they care.
"""

from __future__ import annotations

import logging

from folio.config import StoreConfig
from folio.errors import EmptyIdentifier, VersioningDisabled
from folio.store.adapter import StorageAdapter, Syncable, initialize
from folio.store.models import Document, Metadata, check_metadata
from folio.store.transaction import Transaction

logger = logging.getLogger(__name__)


class DocumentService:
    """CRUD over documents plus history operations when the store supports them."""

    def __init__(self, adapter: StorageAdapter) -> None:
        self.adapter = adapter

    @property
    def versioned(self) -> bool:
        return self.adapter.versioned

    @property
    def can_sync(self) -> bool:
        return isinstance(self.adapter, Syncable)

    def save_document(
        self,
        doc_id: str,
        content: str,
        metadata: Metadata | None = None,
        *,
        message: str | None = None,
    ) -> Document:
        """Create or update a document."""
        _require_id(doc_id)
        metadata = dict(metadata or {})
        check_metadata(metadata)
        return self.adapter.save(doc_id, content, metadata, message=message)

    def get_document(self, doc_id: str) -> Document:
        _require_id(doc_id)
        return self.adapter.get(doc_id)

    def list_documents(self) -> list[Document]:
        return self.adapter.list()

    def delete_document(self, doc_id: str) -> None:
        _require_id(doc_id)
        self.adapter.delete(doc_id)

    def commit(self, message: str) -> bool:
        """Record staged changes (e.g. deletions). Needs a versioned store."""
        commit = getattr(self.adapter, "commit", None)
        if not self.versioned or commit is None:
            raise VersioningDisabled("cannot commit in a store without versioning")
        return commit(message)

    def sync(self) -> None:
        if not isinstance(self.adapter, Syncable):
            raise VersioningDisabled("cannot sync a store without versioning")
        logger.info("Syncing %s", self.adapter.root)
        self.adapter.sync()

    def transaction(self) -> Transaction:
        return self.adapter.transaction()


def open_store(config: StoreConfig) -> DocumentService:
    """Initialize the store described by ``config`` and wrap it in a service."""
    return DocumentService(initialize(config))


def _require_id(doc_id: str) -> None:
    if not doc_id or not doc_id.strip():
        raise EmptyIdentifier()
