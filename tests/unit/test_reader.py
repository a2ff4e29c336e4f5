"""Tests for document reading and string-member location."""

import codecs
from pathlib import Path

import pytest

from ymmp_relink.core.document.reader import (
    Members,
    RawDocument,
    iter_string_members,
    parse_tree,
    read_document,
)
from ymmp_relink.errors import DocumentNotFound, ParseError


def test_read_document_strips_and_remembers_bom(tmp_path: Path) -> None:
    """A UTF-8 BOM is removed from the text and remembered."""
    path = tmp_path / "bom.ymmp"
    path.write_bytes(codecs.BOM_UTF8 + b'{"a": 1}\r\n')

    raw = read_document(path)

    assert raw.has_bom is True
    assert raw.text == '{"a": 1}\r\n'
    assert raw.encode() == path.read_bytes()


def test_read_document_keeps_line_endings(tmp_path: Path) -> None:
    """CRLF line endings are kept as they are."""
    path = tmp_path / "crlf.ymmp"
    path.write_bytes(b'{\r\n  "a": "\xe3\x81\x82"\r\n}')

    raw = read_document(path)

    assert raw.has_bom is False
    assert "\r\n" in raw.text
    assert raw.encode() == path.read_bytes()


def test_read_document_missing_file(tmp_path: Path) -> None:
    """A missing document raises DocumentNotFound."""
    with pytest.raises(DocumentNotFound, match="not found"):
        read_document(tmp_path / "nope.ymmp")


def test_read_document_directory_is_not_a_document(tmp_path: Path) -> None:
    """A directory is rejected as a document."""
    with pytest.raises(DocumentNotFound):
        read_document(tmp_path)


def test_read_document_rejects_invalid_utf8(tmp_path: Path) -> None:
    """Bytes that are not UTF-8 are rejected."""
    path = tmp_path / "latin1.ymmp"
    path.write_bytes(b'{"a": "\xff"}')

    with pytest.raises(ParseError, match="UTF-8"):
        read_document(path)


def test_encode_replacement_text_keeps_bom() -> None:
    """Encoding puts the BOM back when the original had one."""
    raw = RawDocument(text="{}", has_bom=True)

    assert raw.encode('{"b": 2}') == codecs.BOM_UTF8 + b'{"b": 2}'


def test_parse_tree_preserves_duplicate_keys() -> None:
    """Duplicate keys survive parsing in document order."""
    tree = parse_tree('{"a": 1, "a": {"b": [1, 2]}}')

    assert isinstance(tree, Members)
    assert [key for key, _ in tree] == ["a", "a"]
    assert isinstance(tree[1][1], Members)


def test_parse_tree_invalid_json_reports_position() -> None:
    """Invalid JSON reports the line and column."""
    with pytest.raises(ParseError, match="line 1"):
        parse_tree('{"a": }')


def test_parse_tree_rejects_null_root() -> None:
    """A document whose root is null is malformed."""
    with pytest.raises(ParseError, match="null"):
        parse_tree("null")


def test_iter_string_members_finds_only_string_valued_members() -> None:
    """Only members with string values are yielded."""
    text = '{"FilePath": "C:\\\\media\\\\a.png", "n": 1, "list": ["x", "y"], "k": "v"}'

    members = list(iter_string_members(text))

    assert [(m.key, m.value) for m in members] == [
        ("FilePath", "C:\\media\\a.png"),
        ("k", "v"),
    ]
    first = members[0]
    assert text[first.start : first.end] == '"C:\\\\media\\\\a.png"'


def test_iter_string_members_handles_escaped_quotes_and_whitespace() -> None:
    """Escaped quotes and odd whitespace do not confuse the lexer."""
    text = '{"a" :\n  "say \\"b\\": hi", "b": "c"}'

    members = list(iter_string_members(text))

    assert [(m.key, m.value) for m in members] == [("a", 'say "b": hi'), ("b", "c")]


def test_iter_string_members_decodes_escaped_keys() -> None:
    """Keys written with escapes are yielded decoded."""
    text = '{"File\\u0050ath": "x.png"}'

    members = list(iter_string_members(text))

    assert members[0].key == "FilePath"
