"""Load .ymmp documents and locate string members in their raw text."""

import codecs
import json
from collections.abc import Iterator
from dataclasses import dataclass
from json.decoder import scanstring
from pathlib import Path
from typing import Any

from ymmp_relink.errors import DocumentNotFound, IoFailure, ParseError

_WHITESPACE = " \t\n\r"


class Members(tuple):  # type: ignore[type-arg]
    """A JSON object as an ordered tuple of (key, value) pairs.

    Duplicate keys are kept, so the parsed tree has one member per key
    token in the text.
    """


@dataclass(frozen=True)
class RawDocument:
    """Document text as read from disk."""

    text: str
    has_bom: bool = False

    def encode(self, text: str | None = None) -> bytes:
        """Encode text (default: the original) back to the on-disk byte layout."""
        body = (self.text if text is None else text).encode("utf-8")
        return codecs.BOM_UTF8 + body if self.has_bom else body


@dataclass(frozen=True)
class StringMember:
    """An object member whose value is a string literal.

    ``start``/``end`` delimit the value literal, quotes included.
    """

    key: str
    value: str
    start: int
    end: int


def read_document(path: Path) -> RawDocument:
    """Read a document as UTF-8, remembering a leading byte-order mark.

    Newlines are not translated, so the text maps back to the original bytes.
    """
    try:
        raw = path.read_bytes()
    except (FileNotFoundError, IsADirectoryError) as e:
        msg = f"Document not found: {path}"
        raise DocumentNotFound(msg) from e
    except OSError as e:
        msg = f"Cannot read document {path}: {e}"
        raise IoFailure(msg) from e

    has_bom = raw.startswith(codecs.BOM_UTF8)
    if has_bom:
        raw = raw[len(codecs.BOM_UTF8) :]
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        msg = f"Document is not valid UTF-8: {path} ({e})"
        raise ParseError(msg) from e
    return RawDocument(text=text, has_bom=has_bom)


def parse_tree(text: str) -> Any:
    """Parse document text into nested Members / list / scalar values."""
    try:
        tree = json.loads(text, object_pairs_hook=Members)
    except json.JSONDecodeError as e:
        msg = f"Invalid JSON at line {e.lineno}, column {e.colno}: {e.msg}"
        raise ParseError(msg) from e
    except RecursionError as e:
        msg = "Document nesting is too deep"
        raise ParseError(msg) from e
    if tree is None:
        msg = "Document root is null"
        raise ParseError(msg)
    return tree


def _skip_whitespace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in _WHITESPACE:
        pos += 1
    return pos


def iter_string_members(text: str) -> Iterator[StringMember]:
    """Yield every string-valued object member of a valid JSON text, in order.

    Outside string literals valid JSON has no quote characters, so each quote
    found here opens a literal; literals are consumed whole.
    """
    pos = 0
    while True:
        start = text.find('"', pos)
        if start == -1:
            return
        key, end = scanstring(text, start + 1)
        colon = _skip_whitespace(text, end)
        if colon >= len(text) or text[colon] != ":":
            pos = end
            continue
        value_start = _skip_whitespace(text, colon + 1)
        if value_start < len(text) and text[value_start] == '"':
            value, value_end = scanstring(text, value_start + 1)
            yield StringMember(key=key, value=value, start=value_start, end=value_end)
            pos = value_end
        else:
            pos = value_start
