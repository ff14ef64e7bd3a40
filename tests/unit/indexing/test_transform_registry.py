"""Unit tests for named transform registration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from core.errors import JsonDbIndexIntegrityError, JsonDbValidationError
from indexing.transform_registry import TransformRegistry, load_transform_module


def test_register_as_decorator_returns_function() -> None:
    """Decorator registration keeps the function usable."""
    registry = TransformRegistry()

    @registry.register("ids")
    def _ids(key: str, document: Any) -> dict[str, Any]:
        return {"ids": [key]}

    assert registry.resolve("ids") is _ids
    assert _ids("/a", {}) == {"ids": ["/a"]}


def test_name_of_finds_registered_callable() -> None:
    """Registered callables map back to their names."""
    registry = TransformRegistry()
    handler = registry.register("noop", lambda key, document: None)

    assert registry.name_of(handler) == "noop"
    assert registry.name_of(lambda key, document: None) is None


def test_resolve_unknown_name_raises_integrity_error() -> None:
    """Persisted names without handlers fail loudly."""
    with pytest.raises(JsonDbIndexIntegrityError, match="No transform registered"):
        TransformRegistry().resolve("missing")


def test_register_rejects_non_callable() -> None:
    """Handlers must be callable."""
    with pytest.raises(JsonDbValidationError):
        TransformRegistry().register("bad", "not callable")  # type: ignore[arg-type]


def test_names_are_sorted() -> None:
    """Registered names list alphabetically."""
    registry = TransformRegistry()
    registry.register("b", lambda key, document: None)
    registry.register("a", lambda key, document: None)

    assert registry.names() == ["a", "b"] and "a" in registry


def test_load_transform_module_calls_hook(tmp_path: Path) -> None:
    """A transform module registers handlers through its hook."""
    module_path = tmp_path / "my_transforms.py"
    module_path.write_text(
        "def register_transforms(registry):\n"
        "    registry.register('upper', lambda key, document: {'keys': [key.upper()]})\n",
        encoding="utf-8",
    )
    registry = TransformRegistry()

    load_transform_module(str(module_path), registry)

    assert registry.resolve("upper")("/a", {}) == {"keys": ["/A"]}


def test_load_transform_module_raises_for_missing_file(tmp_path: Path) -> None:
    """Missing module files are validation errors."""
    with pytest.raises(JsonDbValidationError):
        load_transform_module(str(tmp_path / "missing.py"), TransformRegistry())


def test_load_transform_module_raises_without_hook(tmp_path: Path) -> None:
    """Modules must define register_transforms."""
    module_path = tmp_path / "empty_transforms.py"
    module_path.write_text("VALUE = 1\n", encoding="utf-8")

    with pytest.raises(JsonDbValidationError, match="register_transforms"):
        load_transform_module(str(module_path), TransformRegistry())
