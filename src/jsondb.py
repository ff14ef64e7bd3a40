"""Public SDK surface for jsondb.

This module provides a stable import path for embedding applications.
It re-exports the store, the transform registry, and typed models.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from core.config import JsonDbConfig, validate_index_key
from core.errors import (
    JsonDbConfigError,
    JsonDbDependencyError,
    JsonDbError,
    JsonDbIndexIntegrityError,
    JsonDbStoreError,
    JsonDbTreeDeletionError,
    JsonDbValidationError,
)
from core.types import IndexDefinition, KeyFilter, ReadResult, ReadStatus, VisitorSignal
from indexing.index_spec import apply_index_spec, load_index_spec
from indexing.transform_registry import TransformRegistry, load_transform_module
from store.document_store import JsonDocumentStore

STOP = VisitorSignal.STOP

__all__ = [
    "IndexDefinition",
    "JsonDbConfig",
    "JsonDbConfigError",
    "JsonDbDependencyError",
    "JsonDbError",
    "JsonDbIndexIntegrityError",
    "JsonDbStoreError",
    "JsonDbTreeDeletionError",
    "JsonDbValidationError",
    "JsonDocumentStore",
    "KeyFilter",
    "ReadResult",
    "ReadStatus",
    "STOP",
    "TransformRegistry",
    "VisitorSignal",
    "apply_index_spec",
    "load_index_spec",
    "load_transform_module",
    "open_store",
]


def open_store(
    root_path: str | Path,
    index_key: str | None = None,
    transforms: TransformRegistry | None = None,
) -> JsonDocumentStore:
    """Open a store rooted at a directory, creating it when absent.

    Args:
        root_path: Store root directory.
        index_key: Optional reserved index key; defaults to JSONDB_INDEX_KEY.
        transforms: Registered transforms referenced by persisted indexes.

    Returns:
        An open document store.
    """
    config = replace(JsonDbConfig.from_env(), root=Path(root_path).expanduser().resolve())
    if index_key is not None:
        config = replace(config, index_key=validate_index_key(index_key))
    return JsonDocumentStore(config, transforms=transforms)
