"""Document and index records shared by the store components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from folio.errors import InvalidMetadata

MetadataValue = Union[
    str,
    int,
    float,
    bool,
    None,
    date,
    datetime,
    Decimal,
    list["MetadataValue"],
    dict[str, "MetadataValue"],
]
Metadata = dict[str, MetadataValue]


class ValueKind(Enum):
    """Shape of a metadata value."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    NULL = "null"
    TIMESTAMP = "timestamp"
    LIST = "list"
    MAP = "map"


def kind_of(value: Any) -> ValueKind:
    """Classify a metadata value. Raises InvalidMetadata for unsupported types."""
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if value is None:
        return ValueKind.NULL
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, (float, Decimal)):
        return ValueKind.FLOAT
    if isinstance(value, (date, datetime)):
        return ValueKind.TIMESTAMP
    if isinstance(value, (list, tuple)):
        return ValueKind.LIST
    if isinstance(value, dict):
        return ValueKind.MAP
    raise InvalidMetadata(f"unsupported metadata value of type {type(value).__name__}")


def check_metadata(metadata: Any, _path: str = "") -> None:
    """Validate that metadata is a string-keyed map of supported values."""
    if not isinstance(metadata, dict):
        raise InvalidMetadata(f"metadata must be a mapping, got {type(metadata).__name__}")
    for key, value in metadata.items():
        if not isinstance(key, str):
            raise InvalidMetadata(f"metadata key {key!r} at '{_path or '/'}' is not a string")
        _check_value(value, f"{_path}/{key}")


def _check_value(value: Any, path: str) -> None:
    try:
        kind = kind_of(value)
    except InvalidMetadata as e:
        raise InvalidMetadata(f"{e} at '{path}'") from None
    if kind is ValueKind.LIST:
        for i, item in enumerate(value):
            _check_value(item, f"{path}[{i}]")
    elif kind is ValueKind.MAP:
        check_metadata(value, path)


@dataclass
class Document:
    """One record: frontmatter metadata plus body text."""

    id: str
    content: str = ""
    metadata: Metadata = field(default_factory=dict)

    @property
    def title(self) -> str | None:
        title = self.metadata.get("title")
        return title if isinstance(title, str) else None

    @property
    def tags(self) -> list[str]:
        tags = self.metadata.get("tags")
        if not isinstance(tags, list):
            return []
        return [t for t in tags if isinstance(t, str)]


@dataclass
class IndexEntry:
    """Summary of a document kept in the metadata cache."""

    id: str
    title: str | None = None
    tags: list[str] = field(default_factory=list)
    last_modified: int = 0  # st_mtime_ns

    @classmethod
    def from_document(cls, doc: Document, mtime_ns: int) -> IndexEntry:
        return cls(id=doc.id, title=doc.title, tags=doc.tags, last_modified=mtime_ns)

    def to_document(self) -> Document:
        """Lightweight document built from the summary alone (no body)."""
        metadata: Metadata = {}
        if self.title is not None:
            metadata["title"] = self.title
        if self.tags:
            metadata["tags"] = list(self.tags)
        return Document(id=self.id, content="", metadata=metadata)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "tags": list(self.tags),
            "lastModified": format_mtime(self.last_modified),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexEntry:
        """Rebuild an entry from its persisted form. Raises ValueError/KeyError/TypeError."""
        doc_id = data["id"]
        if not isinstance(doc_id, str):
            raise TypeError("entry id must be a string")
        title = data.get("title")
        if title is not None and not isinstance(title, str):
            raise TypeError("entry title must be a string")
        tags = data.get("tags") or []
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise TypeError("entry tags must be a list of strings")
        return cls(
            id=doc_id,
            title=title,
            tags=tags,
            last_modified=parse_mtime(data["lastModified"]),
        )


@dataclass(frozen=True)
class ChangeEvent:
    """A document change detected by reconciling the index with the disk."""

    kind: str  # "create" | "modify" | "delete"
    id: str


# ── Timestamps ────────────────────────────────────────────────

_NS = 1_000_000_000


def format_mtime(mtime_ns: int) -> str:
    """RFC 3339 UTC string with nanosecond precision."""
    seconds, nanos = divmod(mtime_ns, _NS)
    stamp = datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
    return f"{stamp}.{nanos:09d}Z"


def parse_mtime(value: str) -> int:
    """Inverse of format_mtime. Raises ValueError on anything else."""
    if not isinstance(value, str) or not value.endswith("Z") or "." not in value:
        raise ValueError(f"invalid timestamp: {value!r}")
    whole, frac = value[:-1].rsplit(".", 1)
    if len(frac) != 9 or not frac.isdigit():
        raise ValueError(f"invalid timestamp fraction: {value!r}")
    dt = datetime.strptime(whole, "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)
    seconds = int(dt.timestamp())
    return seconds * _NS + int(frac)
