"""Tests for the frontmatter codec."""

from __future__ import annotations

import io
from datetime import date
from decimal import Decimal

import pytest

from folio.errors import MalformedHeader
from folio.store.codec import decode, encode


class TestDecode:
    def test_header_and_body(self):
        doc = decode("---\ntitle: Hi\ntags: [a, b]\n---\n# Hi\n", "a/b")
        assert doc.id == "a/b"
        assert doc.metadata == {"title": "Hi", "tags": ["a", "b"]}
        assert doc.content == "# Hi\n"

    def test_no_header_is_all_body(self):
        doc = decode("just text\n---\nnot: a header\n")
        assert doc.metadata == {}
        assert doc.content == "just text\n---\nnot: a header\n"

    def test_empty_input(self):
        doc = decode("")
        assert doc.metadata == {}
        assert doc.content == ""

    def test_empty_header(self):
        doc = decode("---\n---\nbody")
        assert doc.metadata == {}
        assert doc.content == "body"

    def test_closing_delimiter_at_end_of_input(self):
        doc = decode("---\ntitle: A\n---")
        assert doc.metadata == {"title": "A"}
        assert doc.content == ""

    def test_body_keeps_later_delimiters(self):
        doc = decode("---\ntitle: A\n---\ntext\n---\nmore\n")
        assert doc.content == "text\n---\nmore\n"

    def test_body_whitespace_preserved(self):
        doc = decode("---\ntitle: A\n---\n\n  indented\n\n")
        assert doc.content == "\n  indented\n\n"

    def test_crlf(self):
        doc = decode("---\r\ntitle: A\r\n---\r\nbody\r\n")
        assert doc.metadata == {"title": "A"}
        assert doc.content == "body\r\n"

    def test_unterminated_header(self):
        with pytest.raises(MalformedHeader):
            decode("---\ntitle: A\nno closing line\n")

    def test_invalid_yaml(self):
        with pytest.raises(MalformedHeader):
            decode("---\ntitle: [unclosed\n---\nbody")

    def test_non_mapping_header(self):
        with pytest.raises(MalformedHeader, match="mapping"):
            decode("---\n- a\n- b\n---\nbody")

    def test_bytes_and_streams(self):
        raw = "---\ntitle: Ünï\n---\nbody"
        assert decode(raw.encode("utf-8")).metadata == {"title": "Ünï"}
        assert decode(io.StringIO(raw)).content == "body"
        assert decode(io.BytesIO(raw.encode("utf-8"))).metadata["title"] == "Ünï"

    def test_timestamps(self):
        doc = decode("---\ncreated: 2024-01-02\n---\n")
        assert doc.metadata["created"] == date(2024, 1, 2)

    def test_floats_default_and_strict(self):
        raw = "---\nprice: 1.10\n---\n"
        assert decode(raw).metadata["price"] == 1.1
        strict = decode(raw, strict=True).metadata["price"]
        assert isinstance(strict, Decimal)
        assert strict == Decimal("1.10")

    def test_strict_keeps_special_floats(self):
        value = decode("---\nx: .inf\n---\n", strict=True).metadata["x"]
        assert value == float("inf")


class TestEncode:
    def test_empty_metadata_is_bare_body(self):
        assert encode({}, "# Hi") == "# Hi"
        assert encode(None, "") == ""

    def test_header_layout(self):
        assert encode({"title": "Hi"}, "# Hi") == "---\ntitle: Hi\n---\n# Hi"

    def test_key_order_preserved(self):
        text = encode({"b": 1, "a": 2}, "")
        assert text.index("b: 1") < text.index("a: 2")

    def test_unicode_not_escaped(self):
        assert "title: 日本" in encode({"title": "日本"}, "")

    def test_decimal(self):
        assert "x: 1.10" in encode({"x": Decimal("1.10")}, "")

    def test_decodes_back(self):
        metadata = {"title": "Hi", "tags": ["a", "b"], "nested": {"n": 1, "ok": True}}
        doc = decode(encode(metadata, "# Hi\n\nbody\n"))
        assert doc.metadata == metadata
        assert doc.content == "# Hi\n\nbody\n"
