"""Write-triggered index processing.

Every document write passes through IndexEngine.process before it hits
disk. Matching definitions load their aggregate, merge the transform
output, and write the aggregate back through the store, which re-enters
process for the aggregate key.

Reentrancy is bounded: keys currently being processed on this thread
form a chain, and revisiting a key in the chain (or exceeding the depth
cap) raises JsonDbIndexIntegrityError. Before an aggregate is locked the
targets reachable from it are walked too, so a cycle between definitions
is reported instead of deadlocking two writer threads.

The load-merge-store cycle is serialized per target key inside one
process only. Separate processes writing the same aggregate can still
lose updates.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from core.errors import JsonDbIndexIntegrityError, JsonDbStoreError
from core.logging_config import get_logger
from core.types import IndexDefinition, ReadStatus
from indexing.index_registry import IndexRegistry
from indexing.merge import merge_index_entry

if TYPE_CHECKING:
    from store.document_store import JsonDocumentStore

_LOGGER = get_logger(__name__)


class IndexEngine:
    """Route written documents into aggregate documents."""

    def __init__(self, store: "JsonDocumentStore", registry: IndexRegistry, max_depth: int) -> None:
        self._store = store
        self._registry = registry
        self._max_depth = max_depth
        self._local = threading.local()
        self._target_locks: dict[str, threading.RLock] = {}
        self._target_locks_guard = threading.Lock()

    def process(self, key: str, document: Any, names: Sequence[str] | None = None) -> int:
        """Feed one written document to every matching definition.

        Args:
            key: Key being written.
            document: Parsed document value.
            names: Optional subset of definition names to evaluate.

        Returns:
            Number of aggregates updated directly by this write.

        Raises:
            JsonDbIndexIntegrityError: On a reentrant cycle, depth overflow,
                unreadable aggregate, or non-object transform output.
            JsonDbStoreError: If an aggregate cannot be written.
        """
        chain = self._chain()
        if key in chain:
            raise JsonDbIndexIntegrityError(
                "Index cycle detected: "
                + " -> ".join(chain + [key])
                + ". An index target key is matched by a filter that feeds it."
            )
        if len(chain) >= self._max_depth:
            raise JsonDbIndexIntegrityError(
                f"Index write depth exceeded {self._max_depth} at '{key}': "
                + " -> ".join(chain)
                + ". Raise JSONDB_MAX_INDEX_DEPTH or flatten the index chain."
            )
        chain.append(key)
        try:
            updated = 0
            for definition in self._registry.definitions(names):
                if definition.key_filter.matches(key) and self._apply(definition, key, document):
                    updated += 1
            return updated
        finally:
            chain.pop()

    def _apply(self, definition: IndexDefinition, key: str, document: Any) -> bool:
        target_key = definition.target_key
        self._check_target_graph(target_key, self._chain(), set())
        # The target graph reachable from here is acyclic, so nested
        # target locks are always taken in the same order.
        with self._target_lock(target_key):
            result = self._store.get_result(target_key)
            if result.status is ReadStatus.IO_FAILURE:
                raise JsonDbIndexIntegrityError(
                    f"Cannot read aggregate '{target_key}' for index '{definition.name}': "
                    f"{result.error}. Refusing to overwrite it."
                )
            aggregate = result.payload if result.status is ReadStatus.FOUND else {}
            if not isinstance(aggregate, dict):
                raise JsonDbIndexIntegrityError(
                    f"Aggregate '{target_key}' for index '{definition.name}' is not a JSON object."
                )
            partial = definition.transform(key, document)
            if not partial:
                return False
            if not isinstance(partial, Mapping):
                raise JsonDbIndexIntegrityError(
                    f"Transform '{definition.transform_name}' for index '{definition.name}' "
                    f"returned {type(partial).__name__}; expected an object or a falsy value."
                )
            merge_index_entry(partial, aggregate)
            if not self._store.set(target_key, aggregate):
                raise JsonDbStoreError(
                    f"Failed to write aggregate '{target_key}' for index '{definition.name}'. "
                    "Check the store root permissions, then reindex."
                )
        _LOGGER.debug(
            "index_aggregate_updated",
            index=definition.name,
            source_key=key,
            target_key=target_key,
        )
        return True

    def _check_target_graph(self, target_key: str, path: list[str], acyclic: set[str]) -> None:
        """Raise if writing target_key could feed back into path.

        Follows every definition whose filter matches the target, whatever
        its transform would return, so two definitions feeding each other
        fail before any target lock is taken.
        """
        if target_key in path:
            raise JsonDbIndexIntegrityError(
                "Index cycle detected: "
                + " -> ".join(path + [target_key])
                + ". An index target key is matched by a filter that feeds it."
            )
        if target_key in acyclic:
            return
        for definition in self._registry.definitions():
            if definition.key_filter.matches(target_key):
                self._check_target_graph(definition.target_key, path + [target_key], acyclic)
        acyclic.add(target_key)

    def _chain(self) -> list[str]:
        chain = getattr(self._local, "chain", None)
        if chain is None:
            chain = []
            self._local.chain = chain
        return chain

    def _target_lock(self, target_key: str) -> threading.RLock:
        with self._target_locks_guard:
            lock = self._target_locks.get(target_key)
            if lock is None:
                lock = threading.RLock()
                self._target_locks[target_key] = lock
            return lock
