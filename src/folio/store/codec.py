"""Frontmatter codec: YAML metadata block + free-text body.

    ---
    title: Hi
    tags: [a, b]
    ---
    # Hi

The opening delimiter must be the very first line. Input that does not start
with it is all body. The YAML itself is handled by python-frontmatter's
YAMLHandler; the delimiters are split here because ``frontmatter.loads``
strips leading/trailing whitespace from the body, which would break round
trips.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import IO, Any

import frontmatter
import yaml

from folio.errors import MalformedHeader
from folio.store.models import Document, Metadata

DELIMITER = "---"
_CLOSING = re.compile(r"^---\r?$", re.MULTILINE)

_handler = frontmatter.YAMLHandler()


class _Dumper(yaml.SafeDumper):
    pass


def _represent_decimal(dumper: yaml.SafeDumper, value: Decimal) -> yaml.Node:
    return dumper.represent_scalar("tag:yaml.org,2002:float", str(value))


_Dumper.add_representer(Decimal, _represent_decimal)


class _StrictLoader(yaml.SafeLoader):
    """Safe loader that keeps floats as Decimal (no binary rounding)."""


def _construct_decimal(loader: yaml.SafeLoader, node: yaml.ScalarNode) -> Any:
    raw = loader.construct_scalar(node)
    try:
        return Decimal(str(raw).replace("_", ""))
    except InvalidOperation:
        # .inf / .nan spellings
        return loader.construct_yaml_float(node)


_StrictLoader.add_constructor("tag:yaml.org,2002:float", _construct_decimal)


def decode(source: str | bytes | IO[str] | IO[bytes], doc_id: str = "", *, strict: bool = False) -> Document:
    """Parse a document. Raises MalformedHeader on an unterminated or invalid header."""
    text = _read_text(source)

    if text.startswith("---\n"):
        start = 4
    elif text.startswith("---\r\n"):
        start = 5
    else:
        return Document(id=doc_id, content=text, metadata={})

    match = _CLOSING.search(text, start)
    if match is None:
        raise MalformedHeader(f"{doc_id or 'document'}: frontmatter started but no closing delimiter found")

    raw_meta = text[start:match.start()]
    body = text[match.end():]
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]

    return Document(id=doc_id, content=body, metadata=_load_metadata(raw_meta, doc_id, strict))


def encode(metadata: Metadata | None, content: str) -> str:
    """Render a document. Empty metadata produces the bare body."""
    if not metadata:
        return content
    header = _handler.export(
        metadata,
        Dumper=_Dumper,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
    )
    return f"{DELIMITER}\n{header}\n{DELIMITER}\n{content}"


def _load_metadata(raw: str, doc_id: str, strict: bool) -> Metadata:
    loader = _StrictLoader if strict else yaml.SafeLoader
    try:
        data = _handler.load(raw, Loader=loader)
    except yaml.YAMLError as e:
        raise MalformedHeader(f"{doc_id or 'document'}: failed to parse frontmatter: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedHeader(
            f"{doc_id or 'document'}: frontmatter must be a mapping, got {type(data).__name__}"
        )
    return data


def _read_text(source: str | bytes | IO[str] | IO[bytes]) -> str:
    if hasattr(source, "read"):
        source = source.read()
    if isinstance(source, bytes):
        return source.decode("utf-8")
    return source
