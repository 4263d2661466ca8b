"""Exception hierarchy for folio stores.

Every error raised on purpose by the store derives from ``FolioError`` so
callers (the CLI in particular) can report it without a traceback.
"""

from __future__ import annotations


class FolioError(Exception):
    """Base class for all folio errors."""


class NotFound(FolioError, FileNotFoundError):
    """The requested document does not exist."""

    def __init__(self, doc_id: str) -> None:
        super().__init__(f"document not found: {doc_id}")
        self.doc_id = doc_id


class InvalidIdentifier(FolioError, ValueError):
    """A document identifier cannot be mapped to a file in the store."""


class EmptyIdentifier(InvalidIdentifier):
    def __init__(self) -> None:
        super().__init__("document identifier must not be empty")


class InvalidMetadata(FolioError, ValueError):
    """Metadata contains a value outside the supported shapes."""


class MalformedHeader(FolioError, ValueError):
    """The frontmatter block of a document could not be decoded."""


class BackendCommandFailed(FolioError):
    """A versioning backend command exited with a non-zero status."""

    def __init__(self, command: list[str], output: str, returncode: int | None = None) -> None:
        self.command = list(command)
        self.output = output
        self.returncode = returncode
        joined = " ".join(self.command)
        message = f"{joined} failed"
        if returncode is not None:
            message += f" (rc={returncode})"
        if output.strip():
            message += f": {output.strip()}"
        super().__init__(message)


class VersioningDisabled(FolioError):
    """The operation needs the versioning backend but the store runs without it."""


class NoRemoteConfigured(FolioError):
    """Synchronisation was requested but the repository has no remote."""


class LockError(FolioError):
    """Base class for process lock failures."""


class LockAcquisitionFailed(LockError):
    """The lock marker could not be created for a reason other than contention."""


class LockTimeout(LockError):
    """The lock was not obtained before the caller's deadline."""


class ConfigurationError(FolioError):
    """The store root or versioning backend does not satisfy the configuration."""


class TransactionClosed(FolioError):
    """A transaction was used after commit or rollback."""
