"""Filesystem-backed JSON document store.

This module maps slash-delimited keys to JSON files under one root and
routes every write through the index engine before persisting it.
Read, list, and delete failures are logged and reported as sentinels;
get_result exposes the underlying tagged outcome.
"""

from __future__ import annotations

import re
import stat
from pathlib import Path
from typing import Any, Callable

from core.config import JsonDbConfig
from core.constants import DOCUMENT_SUFFIX
from core.errors import JsonDbValidationError
from core.keys import check_document_key, check_key, compile_pattern
from core.logging_config import get_logger
from core.types import ReadResult, ReadStatus, VisitorSignal
from indexing.index_engine import IndexEngine
from indexing.index_registry import IndexRegistry
from indexing.transform_registry import TransformRegistry
from store.document_io import (
    decode_raw_payload,
    encode_document,
    list_directory_names,
    list_document_names,
    parse_document,
    read_document_bytes,
    write_bytes_atomic,
)
from store.path_resolver import PathResolver
from store.tree_ops import delete_document_tree, find_files

_LOGGER = get_logger(__name__)
_DOCUMENT_FILE_PATTERN = re.compile(re.escape(DOCUMENT_SUFFIX) + "$")

Visitor = Callable[[str, Any], Any]


class JsonDocumentStore:
    """Key-addressed JSON document store with write-triggered indexes.

    The store owns its index registry and engine for its whole lifetime.
    All operations are synchronous; there is no cross-process locking.
    """

    def __init__(self, config: JsonDbConfig, transforms: TransformRegistry | None = None) -> None:
        """Open a store, creating the root and index directory if absent.

        Args:
            config: Runtime configuration.
            transforms: Registered index transforms; required before loading
                a registry that references them.

        Raises:
            JsonDbIndexIntegrityError: If the persisted registry cannot be restored.
        """
        self._config = config
        self._resolver = PathResolver(config.root, config.index_key)
        self._resolver.ensure_layout()
        self._transforms = transforms if transforms is not None else TransformRegistry()
        self._indexes = IndexRegistry(
            self,
            self._resolver.index_dir,
            self._transforms,
            config.index_key,
        )
        self._engine = IndexEngine(self, self._indexes, config.max_index_depth)

    @property
    def config(self) -> JsonDbConfig:
        return self._config

    @property
    def root(self) -> Path:
        return self._resolver.root

    @property
    def indexes(self) -> IndexRegistry:
        return self._indexes

    @property
    def transforms(self) -> TransformRegistry:
        return self._transforms

    @property
    def engine(self) -> IndexEngine:
        return self._engine

    def get(
        self,
        key: str,
        pattern: str | re.Pattern[str] | None = None,
        visitor: Visitor | None = None,
    ) -> Any:
        """Read one document, a directory of documents, or visit them.

        Args:
            key: Document key, or directory key when a pattern is given.
            pattern: Regex searched in each stripped entry name.
            visitor: Called with (name, document) per entry; return
                VisitorSignal.STOP to end iteration early.

        Returns:
            The document or None; a name -> document dict; or None when visiting.

        Raises:
            JsonDbValidationError: If the key or arguments are invalid.
            JsonDbStoreError: If a document holds invalid JSON.
        """
        return self._read(key, pattern, visitor, parse=True)

    def get_raw(
        self,
        key: str,
        pattern: str | re.Pattern[str] | None = None,
        visitor: Visitor | None = None,
    ) -> Any:
        """Same as get, returning unparsed bytes."""
        return self._read(key, pattern, visitor, parse=False)

    def get_result(self, key: str) -> ReadResult:
        """Read one document and report the tagged outcome."""
        document_path = self._document_path(key)
        result = read_document_bytes(document_path)
        if result.status is ReadStatus.FOUND:
            return ReadResult(
                status=ReadStatus.FOUND,
                payload=parse_document(document_path, result.payload),
            )
        return result

    def get_raw_result(self, key: str) -> ReadResult:
        return read_document_bytes(self._document_path(key))

    def set(self, key: str, document: Any) -> bool:
        """Index and persist a document.

        Args:
            key: Document key.
            document: JSON-serializable value.

        Returns:
            True when written, False when the file write failed.

        Raises:
            JsonDbValidationError: If the key or document is invalid.
            JsonDbIndexIntegrityError: If indexing detects a cycle or corruption.
        """
        self._document_path(key)
        payload = encode_document(key, document)
        return self._write(key, payload, document)

    def set_raw(self, key: str, payload: bytes | str) -> bool:
        """Index and persist raw JSON text without re-encoding it."""
        self._document_path(key)
        raw_bytes, document = decode_raw_payload(key, payload)
        return self._write(key, raw_bytes, document)

    def delete(self, key: str) -> bool:
        """Delete one document.

        Aggregates built from the document are not retracted.

        Returns:
            True when removed, False when absent or removal failed.
        """
        document_path = self._document_path(key)
        try:
            document_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as error:
            _LOGGER.warning("document_delete_failed", key=key, error=str(error))
            return False
        return True

    def exists(self, key: str) -> bool:
        document_path = self._document_path(key)
        try:
            return stat.S_ISREG(document_path.stat().st_mode)
        except FileNotFoundError:
            return False
        except OSError as error:
            _LOGGER.warning("document_stat_failed", key=key, error=str(error))
            return False

    def list_entries(
        self,
        key: str,
        pattern: str | re.Pattern[str] | None = None,
    ) -> list[str] | None:
        """List document names directly under a directory key.

        Returns:
            Sorted stripped names, or None when the directory cannot be listed.
        """
        directory = self._directory_path(key)
        compiled = compile_pattern(pattern)
        try:
            names = list_document_names(directory)
        except OSError as error:
            _LOGGER.warning("directory_list_failed", key=key, error=str(error))
            return None
        return _filter_names(names, compiled)

    def list_dirs(
        self,
        key: str,
        pattern: str | re.Pattern[str] | None = None,
    ) -> list[str] | None:
        """List subdirectory names directly under a directory key.

        The reserved index directory is never listed.
        """
        directory = self._directory_path(key)
        compiled = compile_pattern(pattern)
        try:
            names = list_directory_names(directory, hidden=self._resolver.index_dir)
        except OSError as error:
            _LOGGER.warning("directory_list_failed", key=key, error=str(error))
            return None
        return _filter_names(names, compiled)

    def count_entries(self, key: str, pattern: str | re.Pattern[str] | None = None) -> int:
        """Count matching documents directly under a directory key; -1 on failure."""
        names = self.list_entries(key, pattern)
        return -1 if names is None else len(names)

    def delete_tree(self, key: str) -> int:
        """Recursively delete documents under a directory key.

        Non-document files are left in place along with the directories
        that still hold them.

        Returns:
            Number of document files removed.

        Raises:
            JsonDbValidationError: If the tree is or contains the index directory.
            JsonDbTreeDeletionError: If deletion fails permanently.
        """
        directory = self._directory_path(key)
        if self._resolver.contains_reserved_path(directory):
            raise JsonDbValidationError(
                f"Refusing to delete tree '{key}': it contains the db index at "
                f"{self._resolver.index_dir}."
            )
        removed = delete_document_tree(directory, self._config.delete_tree_attempts)
        _LOGGER.info("tree_deleted", key=key, removed=removed)
        return removed

    def find_recursive(self, key: str, pattern: str | re.Pattern[str]) -> list[str]:
        """Find files at any depth under a directory key whose name matches.

        Returns:
            Absolute file paths in depth-first traversal order.
        """
        directory = self._directory_path(key)
        compiled = compile_pattern(pattern)
        if compiled is None:
            raise JsonDbValidationError("find_recursive requires a pattern.")
        return find_files(directory, compiled, hidden=self._resolver.index_dir)

    def document_keys(self) -> list[str]:
        """List the key of every document file in the store."""
        paths = find_files(self.root, _DOCUMENT_FILE_PATTERN, hidden=self._resolver.index_dir)
        return [self._resolver.key_for_document(Path(path)) for path in paths]

    def _read(
        self,
        key: str,
        pattern: str | re.Pattern[str] | None,
        visitor: Visitor | None,
        parse: bool,
    ) -> Any:
        if pattern is None:
            if visitor is not None:
                raise JsonDbValidationError("A visitor requires a pattern.")
            result = self.get_result(key) if parse else self.get_raw_result(key)
            if result.status is ReadStatus.IO_FAILURE:
                _LOGGER.warning("document_read_failed", key=key, error=str(result.error))
            return result.payload
        if visitor is not None and not callable(visitor):
            raise JsonDbValidationError("visitor must be callable.")
        directory = self._directory_path(key)
        names = self.list_entries(key, pattern)
        if visitor is None:
            documents: dict[str, Any] = {}
            for name in names or []:
                result = self._read_entry(directory, name, parse)
                if result.status is ReadStatus.FOUND:
                    documents[name] = result.payload
            return documents
        for name in names or []:
            result = self._read_entry(directory, name, parse)
            if visitor(name, result.payload) is VisitorSignal.STOP:
                break
        return None

    def _read_entry(self, directory: Path, name: str, parse: bool) -> ReadResult:
        document_path = directory / (name + DOCUMENT_SUFFIX)
        result = read_document_bytes(document_path)
        if result.status is ReadStatus.IO_FAILURE:
            _LOGGER.warning("document_read_failed", path=str(document_path), error=str(result.error))
        if result.status is not ReadStatus.FOUND or not parse:
            return result
        return ReadResult(
            status=ReadStatus.FOUND,
            payload=parse_document(document_path, result.payload),
        )

    def _write(self, key: str, payload: bytes, document: Any) -> bool:
        self._engine.process(key, document)
        try:
            document_path = self._resolver.resolve(key, DOCUMENT_SUFFIX)
            write_bytes_atomic(document_path, payload)
        except OSError as error:
            _LOGGER.error("document_write_failed", key=key, error=str(error))
            return False
        self._indexes.record_processed(key)
        return True

    def _document_path(self, key: str) -> Path:
        checked = check_document_key(key, self._config.index_key)
        return self._resolver.locate(checked, DOCUMENT_SUFFIX)

    def _directory_path(self, key: str) -> Path:
        checked = check_key(key, self._config.index_key)
        return self._resolver.locate(checked)


def _filter_names(names: list[str], pattern: re.Pattern[str] | None) -> list[str]:
    if pattern is None:
        return names
    return [name for name in names if pattern.search(name)]
