"""Folio: a markdown document store with optional git history."""

from folio.config import FolioConfig, StoreConfig, load_config
from folio.errors import FolioError, NotFound
from folio.service import DocumentService, open_store
from folio.store.adapter import initialize
from folio.store.models import Document

__version__ = "0.1.0"

__all__ = [
    "Document",
    "DocumentService",
    "FolioConfig",
    "FolioError",
    "NotFound",
    "StoreConfig",
    "initialize",
    "load_config",
    "open_store",
]
