"""Tests for document records, metadata validation and index timestamps."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from folio.errors import InvalidMetadata
from folio.store.models import (
    Document,
    IndexEntry,
    ValueKind,
    check_metadata,
    format_mtime,
    kind_of,
    parse_mtime,
)


class TestKindOf:
    @pytest.mark.parametrize(
        "value, kind",
        [
            ("x", ValueKind.STRING),
            (3, ValueKind.INTEGER),
            (True, ValueKind.BOOLEAN),
            (1.5, ValueKind.FLOAT),
            (Decimal("1.5"), ValueKind.FLOAT),
            (None, ValueKind.NULL),
            (date(2024, 1, 1), ValueKind.TIMESTAMP),
            (datetime(2024, 1, 1, tzinfo=timezone.utc), ValueKind.TIMESTAMP),
            ([1, 2], ValueKind.LIST),
            ((1, 2), ValueKind.LIST),
            ({"a": 1}, ValueKind.MAP),
        ],
    )
    def test_kinds(self, value, kind):
        assert kind_of(value) is kind

    def test_unsupported(self):
        with pytest.raises(InvalidMetadata):
            kind_of(object())


class TestCheckMetadata:
    def test_accepts_nested(self):
        check_metadata({"a": [1, {"b": None}], "c": {"d": date(2024, 1, 1)}})

    def test_rejects_non_mapping(self):
        with pytest.raises(InvalidMetadata):
            check_metadata(["a"])

    def test_rejects_non_string_key(self):
        with pytest.raises(InvalidMetadata):
            check_metadata({1: "x"})

    def test_reports_path(self):
        with pytest.raises(InvalidMetadata, match="/a/b"):
            check_metadata({"a": {"b": object()}})

    def test_reports_list_index(self):
        with pytest.raises(InvalidMetadata, match=r"/tags\[1\]"):
            check_metadata({"tags": ["ok", {1, 2}]})


class TestDocument:
    def test_title_and_tags(self):
        doc = Document(id="a", metadata={"title": "A", "tags": ["x", 3, "y"]})
        assert doc.title == "A"
        assert doc.tags == ["x", "y"]

    def test_missing_or_wrong_shapes(self):
        doc = Document(id="a", metadata={"title": 5, "tags": "x"})
        assert doc.title is None
        assert doc.tags == []


class TestIndexEntry:
    def test_from_document(self):
        doc = Document(id="n/a", content="body", metadata={"title": "A", "tags": ["t"], "extra": 1})
        entry = IndexEntry.from_document(doc, 42)
        assert entry == IndexEntry(id="n/a", title="A", tags=["t"], last_modified=42)

    def test_to_document_has_summary_only(self):
        doc = IndexEntry(id="n/a", title="A", tags=["t"], last_modified=1).to_document()
        assert doc.content == ""
        assert doc.metadata == {"title": "A", "tags": ["t"]}

    def test_persisted_form_keeps_nanoseconds(self):
        entry = IndexEntry(id="a", title=None, tags=[], last_modified=1_700_000_000_123_456_789)
        data = entry.to_dict()
        assert data["lastModified"] == "2023-11-14T22:13:20.123456789Z"
        assert IndexEntry.from_dict(data) == entry

    def test_from_dict_rejects_bad_tags(self):
        with pytest.raises(TypeError):
            IndexEntry.from_dict({"id": "a", "tags": "x", "lastModified": format_mtime(0)})

    def test_from_dict_requires_timestamp(self):
        with pytest.raises(KeyError):
            IndexEntry.from_dict({"id": "a"})


class TestTimestamps:
    def test_epoch(self):
        assert format_mtime(0) == "1970-01-01T00:00:00.000000000Z"

    def test_parse_inverse(self):
        ns = 1_234_567_890_000_000_001
        assert parse_mtime(format_mtime(ns)) == ns

    @pytest.mark.parametrize(
        "value",
        ["2024-01-01T00:00:00Z", "2024-01-01T00:00:00.123Z", "2024-01-01T00:00:00.123456789", "nope", 5],
    )
    def test_parse_rejects(self, value):
        with pytest.raises(ValueError):
            parse_mtime(value)
