"""Pytest configuration and shared fixtures for repository test runs."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest

from core.config import JsonDbConfig
from indexing.transform_registry import TransformRegistry
from store.document_store import JsonDocumentStore


@pytest.fixture
def store_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> JsonDbConfig:
    """Config rooted in a temporary directory with default policy values."""
    for variable_name in (
        "JSONDB_ROOT",
        "JSONDB_INDEX_KEY",
        "JSONDB_DELETE_TREE_ATTEMPTS",
        "JSONDB_MAX_INDEX_DEPTH",
    ):
        monkeypatch.delenv(variable_name, raising=False)
    return replace(JsonDbConfig.from_env(), root=tmp_path / "db")


@pytest.fixture
def transforms() -> TransformRegistry:
    """Registry with the transforms used across index tests."""
    registry = TransformRegistry()

    @registry.register("post_tags")
    def _post_tags(key: str, document: Any) -> dict[str, Any]:
        return {"tags": list(document.get("tags", []))}

    @registry.register("post_ids")
    def _post_ids(key: str, document: Any) -> dict[str, Any]:
        return {"ids": [key]}

    return registry


@pytest.fixture
def store(store_config: JsonDbConfig, transforms: TransformRegistry) -> JsonDocumentStore:
    """Open store over a temporary root."""
    return JsonDocumentStore(store_config, transforms=transforms)
