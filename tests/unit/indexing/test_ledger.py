"""Unit tests for the entries-processed ledger."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from core.constants import LEDGER_COMPACT_MIN_LINES
from indexing.ledger import EntriesLedger


def test_record_persists_across_reload(tmp_path: Path) -> None:
    """Recorded keys reload from disk."""
    ledger = EntriesLedger(tmp_path / "entries")
    processed_at = ledger.record("/posts/1")

    reloaded = EntriesLedger(tmp_path / "entries")
    reloaded.load()

    assert reloaded.entries() == {"/posts/1": processed_at}


def test_forget_survives_reload(tmp_path: Path) -> None:
    """Forgotten keys stay forgotten after reload."""
    ledger = EntriesLedger(tmp_path / "entries")
    ledger.record("/posts/1")
    ledger.record("/posts/2")
    ledger.forget("/posts/1")

    reloaded = EntriesLedger(tmp_path / "entries")
    reloaded.load()

    assert list(reloaded.entries()) == ["/posts/2"]


def test_load_skips_malformed_lines(tmp_path: Path) -> None:
    """Corrupt lines are skipped instead of failing the load."""
    ledger_path = tmp_path / "entries"
    ledger_path.write_text(
        '{"key": "/a", "processed_at": "2024-01-01T00:00:00+00:00"}\n'
        "garbage\n"
        '{"key": "/b"}\n',
        encoding="utf-8",
    )
    ledger = EntriesLedger(ledger_path)

    ledger.load()

    assert ledger.entries() == {"/a": "2024-01-01T00:00:00+00:00"}


def test_compact_rewrites_one_line_per_key(tmp_path: Path) -> None:
    """Compaction drops superseded and forgotten lines."""
    ledger_path = tmp_path / "entries"
    ledger = EntriesLedger(ledger_path)
    ledger.record("/a")
    ledger.record("/a")
    ledger.record("/b")
    ledger.forget("/b")

    ledger.compact()

    assert len(ledger_path.read_text(encoding="utf-8").splitlines()) == 1


def test_entries_returns_copy(tmp_path: Path) -> None:
    """Callers cannot mutate the ledger through entries()."""
    ledger = EntriesLedger(tmp_path / "entries")
    ledger.record("/a")

    ledger.entries().clear()

    assert "/a" in ledger.entries()


def test_repeated_records_compact_automatically(tmp_path: Path) -> None:
    """Rewriting one key many times keeps the file bounded."""
    ledger_path = tmp_path / "entries"
    ledger = EntriesLedger(ledger_path)

    for _ in range(500):
        ledger.record("/a")

    lines = ledger_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) <= LEDGER_COMPACT_MIN_LINES
    assert ledger.line_count() == len(lines)
    assert list(ledger.entries()) == ["/a"]


def test_load_compacts_bloated_file(tmp_path: Path) -> None:
    """A file written by an older process is compacted when reopened."""
    ledger_path = tmp_path / "entries"
    line = '{"key": "/a", "processed_at": "2024-01-01T00:00:00+00:00"}\n'
    ledger_path.write_text(line * 200, encoding="utf-8")
    ledger = EntriesLedger(ledger_path)

    ledger.load()

    assert ledger_path.read_text(encoding="utf-8") == line
    assert ledger.line_count() == 1


def test_failed_append_is_repaired_by_next_write(tmp_path: Path) -> None:
    """A key whose append failed is persisted once the file is writable again."""
    ledger_path = tmp_path / "entries"
    ledger_path.mkdir()
    ledger = EntriesLedger(ledger_path)

    ledger.record("/a")
    ledger_path.rmdir()
    ledger.record("/b")

    reloaded = EntriesLedger(ledger_path)
    reloaded.load()
    assert sorted(reloaded.entries()) == ["/a", "/b"]


def test_failed_append_logs_error(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    """Append failures are reported at error level."""
    ledger_path = tmp_path / "entries"
    ledger_path.mkdir()

    with caplog.at_level(logging.ERROR, logger="indexing.ledger"):
        EntriesLedger(ledger_path).record("/a")

    events = [json.loads(record.getMessage()) for record in caplog.records]
    assert [(event["event"], event["key"]) for event in events] == [("ledger_append_failed", "/a")]
