"""Unit tests for low-level document file IO."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.errors import JsonDbStoreError, JsonDbValidationError
from core.types import ReadStatus
from store import document_io
from store.document_io import (
    decode_raw_payload,
    encode_document,
    list_directory_names,
    list_document_names,
    parse_document,
    read_document_bytes,
    write_bytes_atomic,
)


def test_read_document_bytes_reports_missing_file(tmp_path: Path) -> None:
    """Missing files are NOT_FOUND rather than errors."""
    result = read_document_bytes(tmp_path / "missing.json")

    assert result.status is ReadStatus.NOT_FOUND and result.payload is None


def test_read_document_bytes_reports_io_failure(tmp_path: Path) -> None:
    """Reading a directory as a document is an IO failure."""
    (tmp_path / "dir.json").mkdir()

    result = read_document_bytes(tmp_path / "dir.json")

    assert result.status is ReadStatus.IO_FAILURE and result.error is not None


def test_parse_document_raises_for_corrupt_json(tmp_path: Path) -> None:
    """Corrupt stored JSON is a store error, not a missing document."""
    with pytest.raises(JsonDbStoreError):
        parse_document(tmp_path / "bad.json", b"{not json")


def test_encode_document_rejects_unserializable_values() -> None:
    """Sets and NaN cannot be stored as JSON."""
    with pytest.raises(JsonDbValidationError):
        encode_document("/a", {"tags": {"x"}})
    with pytest.raises(JsonDbValidationError):
        encode_document("/a", float("nan"))


def test_encode_document_keeps_unicode_text() -> None:
    """Non-ASCII text is written as UTF-8, not escaped."""
    assert encode_document("/a", {"name": "café"}) == '{"name": "café"}'.encode("utf-8")


def test_decode_raw_payload_returns_bytes_and_value() -> None:
    """Raw text is kept verbatim alongside its parsed value."""
    raw, value = decode_raw_payload("/a", '{ "x" : 1 }')

    assert raw == b'{ "x" : 1 }' and value == {"x": 1}


def test_decode_raw_payload_rejects_invalid_json() -> None:
    """Raw payloads must be valid JSON text."""
    with pytest.raises(JsonDbValidationError):
        decode_raw_payload("/a", b"nope")


def test_write_bytes_atomic_replaces_target(tmp_path: Path) -> None:
    """Atomic writes replace content and leave no temporary file."""
    target = tmp_path / "doc.json"
    target.write_bytes(b"1")

    write_bytes_atomic(target, b"2")

    assert target.read_bytes() == b"2"
    assert list(tmp_path.iterdir()) == [target]


def test_write_bytes_atomic_cleans_up_on_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A failed swap should keep the old file and drop the temp file."""
    target = tmp_path / "doc.json"
    target.write_bytes(b"old")

    def _fail_replace(source: object, destination: object) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(document_io.os, "replace", _fail_replace)

    with pytest.raises(OSError):
        write_bytes_atomic(target, b"new")

    assert target.read_bytes() == b"old"
    assert list(tmp_path.iterdir()) == [target]


def test_list_document_names_strips_suffix_and_skips_other_files(tmp_path: Path) -> None:
    """Only .json files count as entries, listed in sorted order."""
    (tmp_path / "b.json").write_text("{}", encoding="utf-8")
    (tmp_path / "a.json").write_text("{}", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")
    (tmp_path / "sub.json").mkdir()

    assert list_document_names(tmp_path) == ["a", "b"]


def test_list_directory_names_hides_requested_path(tmp_path: Path) -> None:
    """The hidden directory should be excluded from listings."""
    (tmp_path / "posts").mkdir()
    (tmp_path / ".dbindex").mkdir()

    names = list_directory_names(tmp_path, hidden=tmp_path / ".dbindex")

    assert names == ["posts"]
