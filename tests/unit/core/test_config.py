"""Unit tests for core config parsing."""

from __future__ import annotations

import pytest

from core.config import JsonDbConfig, validate_index_key
from core.constants import DEFAULT_DELETE_TREE_ATTEMPTS, DEFAULT_INDEX_KEY
from core.errors import JsonDbConfigError


def test_from_env_reads_root(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should resolve the store root from environment."""
    monkeypatch.setenv("JSONDB_ROOT", "./.tmp-jsondb")

    config = JsonDbConfig.from_env()

    assert config.root.name == ".tmp-jsondb" and config.root.is_absolute()


def test_from_env_uses_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    """Unset variables should fall back to documented defaults."""
    monkeypatch.delenv("JSONDB_INDEX_KEY", raising=False)
    monkeypatch.delenv("JSONDB_DELETE_TREE_ATTEMPTS", raising=False)

    config = JsonDbConfig.from_env()

    assert config.index_key == DEFAULT_INDEX_KEY
    assert config.delete_tree_attempts == DEFAULT_DELETE_TREE_ATTEMPTS


def test_from_env_raises_for_invalid_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should fail for a non-numeric retry bound."""
    monkeypatch.setenv("JSONDB_DELETE_TREE_ATTEMPTS", "many")

    with pytest.raises(JsonDbConfigError):
        JsonDbConfig.from_env()


def test_from_env_raises_for_zero_depth(monkeypatch: pytest.MonkeyPatch) -> None:
    """Index depth cap must be positive."""
    monkeypatch.setenv("JSONDB_MAX_INDEX_DEPTH", "0")

    with pytest.raises(JsonDbConfigError):
        JsonDbConfig.from_env()


def test_validate_index_key_normalizes_slashes() -> None:
    """Repeated and trailing separators should collapse."""
    assert validate_index_key("//meta//index/") == "/meta/index"


@pytest.mark.parametrize("index_key", ["dbindex", "/", "/a/../b", 7])
def test_validate_index_key_rejects_unusable_keys(index_key: object) -> None:
    """Index keys must name a directory below the root."""
    with pytest.raises(JsonDbConfigError):
        validate_index_key(index_key)
