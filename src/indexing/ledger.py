"""Entries-processed ledger.

Tracks every key routed through the index engine with the time it was
last processed, so reindex can replay documents written before a
definition existed. Persisted as append-only JSON lines; the last line
for a key wins. The file is rewritten once superseded lines outnumber
live keys by LEDGER_COMPACT_RATIO.
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
from pathlib import Path
import threading

from core.constants import LEDGER_COMPACT_MIN_LINES, LEDGER_COMPACT_RATIO
from core.logging_config import get_logger
from store.document_io import write_bytes_atomic

_LOGGER = get_logger(__name__)


class EntriesLedger:
    """Append-only key -> last-processed timestamp ledger."""

    def __init__(self, ledger_path: Path) -> None:
        self._ledger_path = ledger_path
        self._entries: dict[str, str] = {}
        self._line_count = 0
        self._needs_rewrite = False
        self._lock = threading.Lock()

    def load(self) -> None:
        """Read the ledger file, skipping malformed lines."""
        with self._lock:
            self._entries = {}
            self._line_count = 0
            try:
                text = self._ledger_path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return
            for line_number, line in enumerate(text.splitlines(), 1):
                if not line.strip():
                    continue
                self._line_count += 1
                try:
                    payload = json.loads(line)
                    key = payload["key"]
                    processed_at = payload["processed_at"]
                except (json.JSONDecodeError, KeyError, TypeError):
                    _LOGGER.warning(
                        "ledger_line_skipped",
                        path=str(self._ledger_path),
                        line_number=line_number,
                    )
                    continue
                if processed_at is None:
                    self._entries.pop(str(key), None)
                else:
                    self._entries[str(key)] = str(processed_at)
            self._compact_if_bloated()

    def record(self, key: str) -> str:
        """Mark a key as processed now and persist it."""
        processed_at = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._entries[key] = processed_at
            self._persist({"key": key, "processed_at": processed_at})
        return processed_at

    def forget(self, key: str) -> None:
        with self._lock:
            if self._entries.pop(key, None) is not None:
                self._persist({"key": key, "processed_at": None})

    def entries(self) -> dict[str, str]:
        with self._lock:
            return dict(self._entries)

    def line_count(self) -> int:
        """Return the number of lines currently in the ledger file."""
        with self._lock:
            return self._line_count

    def compact(self) -> None:
        """Rewrite the ledger with one line per live key.

        Raises:
            OSError: If the ledger cannot be rewritten.
        """
        with self._lock:
            self._rewrite()

    def _persist(self, payload: dict[str, str | None]) -> None:
        if self._needs_rewrite:
            self._try_rewrite()
            return
        try:
            with self._ledger_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(payload, sort_keys=True) + "\n")
        except OSError as error:
            self._needs_rewrite = True
            _LOGGER.error(
                "ledger_append_failed",
                path=str(self._ledger_path),
                key=payload["key"],
                error=str(error),
            )
            return
        self._line_count += 1
        self._compact_if_bloated()

    def _compact_if_bloated(self) -> None:
        limit = max(LEDGER_COMPACT_MIN_LINES, LEDGER_COMPACT_RATIO * len(self._entries))
        if self._line_count > limit:
            self._try_rewrite()

    def _try_rewrite(self) -> None:
        try:
            self._rewrite()
        except OSError as error:
            self._needs_rewrite = True
            _LOGGER.error("ledger_compact_failed", path=str(self._ledger_path), error=str(error))

    def _rewrite(self) -> None:
        lines = [
            json.dumps({"key": key, "processed_at": processed_at}, sort_keys=True)
            for key, processed_at in self._entries.items()
        ]
        payload = "\n".join(lines) + "\n" if lines else ""
        write_bytes_atomic(self._ledger_path, payload.encode("utf-8"))
        self._line_count = len(lines)
        self._needs_rewrite = False
