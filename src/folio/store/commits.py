"""Conventional-commit style messages for store mutations."""

from __future__ import annotations

FEAT = "feat"
FIX = "fix"
DOCS = "docs"
STYLE = "style"
REFACTOR = "refactor"
PERF = "perf"
TEST = "test"
CHORE = "chore"

COMMIT_KINDS = (FEAT, FIX, DOCS, STYLE, REFACTOR, PERF, TEST, CHORE)

FOOTER = "Committed-by: folio"
DEFAULT_SCOPE = "documents"
BATCH_MESSAGE = "batch transaction update"


def format_commit_message(kind: str, scope: str, subject: str, body: str = "") -> str:
    """Build ``<kind>(<scope>): <subject>``, an optional body and the footer."""
    header = kind or CHORE
    if scope:
        header += f"({scope})"
    header += f": {subject}"

    parts = [header]
    if body.strip():
        parts.append(body.strip())
    parts.append(FOOTER)
    return "\n\n".join(parts)


def append_footer(message: str) -> str:
    """Add the footer to a free-form message, once."""
    if FOOTER in message:
        return message
    return message.rstrip("\n") + "\n\n" + FOOTER


def default_save_message(doc_id: str) -> str:
    return format_commit_message(DOCS, DEFAULT_SCOPE, f"update {doc_id}")


def default_delete_message(doc_id: str) -> str:
    return format_commit_message(DOCS, DEFAULT_SCOPE, f"delete {doc_id}")
