"""Recursive subtree operations.

This module implements bounded-retry tree deletion and depth-first file
search. Callers pass already-validated directory paths.
"""

from __future__ import annotations

import errno
import os
import re
import time
from pathlib import Path

from core.constants import DELETE_TREE_RETRY_DELAY_SECONDS, DOCUMENT_SUFFIX
from core.errors import JsonDbTreeDeletionError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)
_TRANSIENT_ERRNOS = frozenset({errno.EAGAIN, errno.EBUSY, errno.EINTR, errno.ENOTEMPTY})


class _DeletionFailure(Exception):
    def __init__(self, path: Path, error: OSError) -> None:
        super().__init__(str(error))
        self.path = path
        self.error = error

    @property
    def transient(self) -> bool:
        return self.error.errno in _TRANSIENT_ERRNOS


def delete_document_tree(directory: Path, attempts: int) -> int:
    """Delete every document file under a directory, then empty directories.

    Args:
        directory: Root of the subtree.
        attempts: Maximum number of passes when failures are transient.

    Returns:
        Number of document files removed.

    Raises:
        JsonDbTreeDeletionError: On a permanent failure or when retries run out.
    """
    removed = [0]
    failure: _DeletionFailure | None = None
    for attempt in range(1, attempts + 1):
        try:
            _delete_tree_once(directory, removed)
            return removed[0]
        except _DeletionFailure as error:
            failure = error
            if not error.transient:
                break
            _LOGGER.warning(
                "tree_delete_retry",
                directory=str(directory),
                path=str(error.path),
                attempt=attempt,
                error=str(error.error),
            )
            time.sleep(DELETE_TREE_RETRY_DELAY_SECONDS)
    assert failure is not None
    raise JsonDbTreeDeletionError(
        f"Failed to delete tree {directory}: could not remove {failure.path}: {failure.error}. "
        "Check permissions and concurrent writers, then retry.",
        path=failure.path,
        cause=failure.error,
    )


def _delete_tree_once(directory: Path, removed: list[int]) -> None:
    if not directory.is_dir():
        return

    def _raise_walk_error(error: OSError) -> None:
        if isinstance(error, FileNotFoundError):
            return
        raise _DeletionFailure(Path(error.filename or directory), error)

    for current, _, files in os.walk(directory, topdown=False, onerror=_raise_walk_error):
        current_path = Path(current)
        for file_name in files:
            if not file_name.endswith(DOCUMENT_SUFFIX):
                continue
            file_path = current_path / file_name
            try:
                file_path.unlink()
                removed[0] += 1
            except FileNotFoundError:
                continue
            except OSError as error:
                raise _DeletionFailure(file_path, error) from error
        _remove_if_empty(current_path)


def _remove_if_empty(directory: Path) -> None:
    try:
        with os.scandir(directory) as entries:
            if any(True for _ in entries):
                return
        directory.rmdir()
    except FileNotFoundError:
        return
    except OSError as error:
        raise _DeletionFailure(directory, error) from error


def find_files(directory: Path, pattern: re.Pattern[str], hidden: Path | None = None) -> list[str]:
    """Depth-first search for files whose name matches a pattern.

    Unreadable subdirectories are logged and skipped.

    Args:
        directory: Root of the search.
        pattern: Pattern searched in each file name.
        hidden: Optional directory never descended into.

    Returns:
        Absolute file paths in traversal order.
    """
    matches: list[str] = []
    _collect_files(directory, pattern, hidden, matches)
    return matches


def _collect_files(
    directory: Path,
    pattern: re.Pattern[str],
    hidden: Path | None,
    matches: list[str],
) -> None:
    try:
        with os.scandir(directory) as scanned:
            entries = sorted(scanned, key=lambda entry: entry.name)
    except OSError as error:
        _LOGGER.warning("directory_list_failed", path=str(directory), error=str(error))
        return
    for entry in entries:
        entry_path = Path(entry.path)
        if entry.is_dir(follow_symlinks=False):
            if hidden is None or entry_path != hidden:
                _collect_files(entry_path, pattern, hidden, matches)
        elif entry.is_file() and pattern.search(entry.name):
            matches.append(str(entry_path))
