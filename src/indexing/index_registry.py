"""Persistent index definition registry.

The registry is owned by one document store. It loads once when the
store opens and rewrites its whole file synchronously on every add or
remove. Removing a definition never touches aggregates it produced.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

from core.constants import (
    FILTER_KIND_PATTERN,
    FILTER_KIND_STRING,
    INDEX_LEDGER_FILE_NAME,
    INDEX_REGISTRY_FILE_NAME,
    SUPPORTED_FILTER_KINDS,
)
from core.errors import JsonDbIndexIntegrityError, JsonDbStoreError, JsonDbValidationError
from core.keys import check_document_key, compile_pattern
from core.logging_config import get_logger
from core.types import IndexDefinition, IndexRegistrySnapshot, KeyFilter, ReadStatus
from indexing.ledger import EntriesLedger
from indexing.registry_codec import decode_registry, empty_snapshot, encode_registry
from indexing.transform_registry import TransformRegistry
from store.document_io import write_bytes_atomic

if TYPE_CHECKING:
    from store.document_store import JsonDocumentStore

_LOGGER = get_logger(__name__)


class IndexRegistry:
    """Named index definitions plus the entries-processed ledger."""

    def __init__(
        self,
        store: "JsonDocumentStore",
        index_dir: Path,
        transforms: TransformRegistry,
        index_key: str,
    ) -> None:
        """Load or create the registry stored under the index directory.

        Args:
            store: Owning document store.
            index_dir: Reserved index directory.
            transforms: Handlers resolving persisted transform names.
            index_key: Reserved index key, used to validate target keys.

        Raises:
            JsonDbIndexIntegrityError: If the persisted registry is malformed.
            JsonDbStoreError: If the registry file cannot be read or created.
        """
        self._store = store
        self._registry_path = index_dir / INDEX_REGISTRY_FILE_NAME
        self._transforms = transforms
        self._index_key = index_key
        self._ledger = EntriesLedger(index_dir / INDEX_LEDGER_FILE_NAME)
        self._snapshot = self._load()
        self._ledger.load()

    def list(self) -> list[str]:
        """List definition names in registration order."""
        return list(self._snapshot.ordered_names)

    def get(self, name: str) -> IndexDefinition | None:
        return self._snapshot.definitions.get(name)

    def snapshot(self) -> IndexRegistrySnapshot:
        return IndexRegistrySnapshot(
            ordered_names=self._snapshot.ordered_names,
            definitions=dict(self._snapshot.definitions),
        )

    def definitions(self, names: Sequence[str] | None = None) -> list[IndexDefinition]:
        """Return definitions in registry order, optionally restricted to names."""
        selected = self._snapshot.ordered_names
        if names is not None:
            selected = tuple(name for name in selected if name in names)
        return [self._snapshot.definitions[name] for name in selected]

    def add(
        self,
        name: str,
        key_filter: str | re.Pattern[str] | KeyFilter,
        target_key: str,
        transform: Any,
    ) -> IndexDefinition:
        """Add or replace a definition and persist the registry.

        Args:
            name: Unique definition name; an existing name is replaced in place.
            key_filter: Exact key string, compiled pattern, or KeyFilter.
            target_key: Key of the aggregate document.
            transform: Registered transform name or registered callable.

        Returns:
            The stored definition.

        Raises:
            JsonDbValidationError: If any argument has the wrong type or is unknown.
            JsonDbStoreError: If the registry cannot be written.
        """
        if not isinstance(name, str) or not name:
            raise JsonDbValidationError("Index name must be a non-empty string.")
        transform_name = self._transform_name(transform)
        definition = IndexDefinition(
            name=name,
            key_filter=_coerce_filter(key_filter),
            target_key=check_document_key(target_key, self._index_key),
            transform_name=transform_name,
            transform=self._transforms.resolve(transform_name),
        )
        ordered_names = self._snapshot.ordered_names
        if name not in self._snapshot.definitions:
            ordered_names = ordered_names + (name,)
        definitions = dict(self._snapshot.definitions)
        definitions[name] = definition
        self._commit(IndexRegistrySnapshot(ordered_names=ordered_names, definitions=definitions))
        _LOGGER.info(
            "index_definition_added",
            name=name,
            filter_kind=definition.key_filter.kind,
            target_key=definition.target_key,
            transform=transform_name,
        )
        return definition

    def remove(self, name: str) -> None:
        """Remove a definition and persist the registry.

        Aggregates written by the definition are left in place.

        Raises:
            JsonDbValidationError: If the name is not registered.
        """
        self._require(name)
        definitions = dict(self._snapshot.definitions)
        del definitions[name]
        ordered_names = tuple(item for item in self._snapshot.ordered_names if item != name)
        self._commit(IndexRegistrySnapshot(ordered_names=ordered_names, definitions=definitions))
        _LOGGER.info("index_definition_removed", name=name)

    def reindex(self, name: str | None = None, reset: bool = False, scan: bool = False) -> int:
        """Replay tracked documents through one or all definitions.

        Args:
            name: Definition to rebuild; all definitions when omitted.
            reset: Delete the affected aggregate documents before replaying.
                Every definition writing to a deleted aggregate is replayed,
                not only the named one.
            scan: Also replay documents found on disk but missing from the ledger.

        Returns:
            Number of documents replayed.

        Raises:
            JsonDbValidationError: If name is not registered.
            JsonDbIndexIntegrityError: If replay detects a reentrant cycle.
        """
        if name is not None:
            self._require(name)
        names = (name,) if name is not None else self._snapshot.ordered_names
        if reset:
            targets = {definition.target_key for definition in self.definitions(names)}
            names = tuple(
                definition.name for definition in self.definitions() if definition.target_key in targets
            )
            for target_key in sorted(targets):
                self._store.delete(target_key)
        keys = list(self._ledger.entries())
        if scan:
            tracked = set(keys)
            keys.extend(key for key in self._store.document_keys() if key not in tracked)
        replayed = 0
        for key in keys:
            result = self._store.get_result(key)
            if result.status is ReadStatus.NOT_FOUND:
                self._ledger.forget(key)
                continue
            if result.status is ReadStatus.IO_FAILURE:
                _LOGGER.warning("reindex_entry_skipped", key=key, error=str(result.error))
                continue
            self._store.engine.process(key, result.payload, names=names)
            self._ledger.record(key)
            replayed += 1
        try:
            self._ledger.compact()
        except OSError as error:
            _LOGGER.error("ledger_compact_failed", error=str(error))
        _LOGGER.info("reindex_completed", name=name, replayed=replayed, reset=reset, scan=scan)
        return replayed

    def record_processed(self, key: str) -> str:
        """Record that a key just went through the index engine."""
        return self._ledger.record(key)

    def entries_processed(self) -> dict[str, str]:
        """Return a copy of the key -> last-processed timestamp ledger."""
        return self._ledger.entries()

    def _transform_name(self, transform: Any) -> str:
        if isinstance(transform, str):
            if transform not in self._transforms:
                raise JsonDbValidationError(
                    f"Transform '{transform}' is not registered. "
                    "Register it with TransformRegistry.register first."
                )
            return transform
        if not callable(transform):
            raise JsonDbValidationError("Transform must be a registered name or callable.")
        transform_name = self._transforms.name_of(transform)
        if transform_name is None:
            raise JsonDbValidationError(
                f"Transform {transform!r} is not registered. "
                "Register it with TransformRegistry.register so it can be restored by name."
            )
        return transform_name

    def _require(self, name: object) -> None:
        if not isinstance(name, str):
            raise JsonDbValidationError("Index name must be a string.")
        if name not in self._snapshot.definitions:
            raise JsonDbValidationError(f"Index '{name}' is not registered.")

    def _load(self) -> IndexRegistrySnapshot:
        try:
            text = self._registry_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            snapshot = empty_snapshot()
            self._write(snapshot)
            return snapshot
        except OSError as error:
            raise JsonDbStoreError(
                f"Failed to read index registry at {self._registry_path}: {error}."
            ) from error
        if not text.strip():
            return empty_snapshot()
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as error:
            raise JsonDbIndexIntegrityError(
                f"Failed to parse index registry at {self._registry_path}: {error.msg}. "
                "Repair or delete the registry file and re-add the indexes."
            ) from error
        return decode_registry(payload, self._transforms, self._index_key)

    def _commit(self, snapshot: IndexRegistrySnapshot) -> None:
        self._write(snapshot)
        self._snapshot = snapshot

    def _write(self, snapshot: IndexRegistrySnapshot) -> None:
        payload = json.dumps(encode_registry(snapshot), indent=2) + "\n"
        try:
            write_bytes_atomic(self._registry_path, payload.encode("utf-8"))
        except OSError as error:
            raise JsonDbStoreError(
                f"Failed to write index registry at {self._registry_path}: {error}."
            ) from error
        _LOGGER.debug("index_registry_saved", path=str(self._registry_path))


def _coerce_filter(key_filter: object) -> KeyFilter:
    if isinstance(key_filter, KeyFilter):
        if key_filter.kind not in SUPPORTED_FILTER_KINDS:
            raise JsonDbValidationError(f"Unsupported filter kind '{key_filter.kind}'.")
        if key_filter.kind == FILTER_KIND_PATTERN:
            return KeyFilter(kind=FILTER_KIND_PATTERN, value=_require_pattern(key_filter.value))
        return _coerce_filter(key_filter.value)
    if isinstance(key_filter, str):
        return KeyFilter(kind=FILTER_KIND_STRING, value=key_filter)
    if isinstance(key_filter, re.Pattern):
        return KeyFilter(kind=FILTER_KIND_PATTERN, value=key_filter)
    raise JsonDbValidationError("Filter must be a string or a compiled regex pattern.")


def _require_pattern(value: object) -> re.Pattern[str]:
    pattern = compile_pattern(value)
    if pattern is None:
        raise JsonDbValidationError("Pattern filters need a regex value.")
    return pattern
