"""Integration test for a blog store with tag and author indexes."""

from __future__ import annotations

from pathlib import Path
import re
from typing import Any

import pytest

import jsondb


def _blog_transforms() -> jsondb.TransformRegistry:
    transforms = jsondb.TransformRegistry()

    @transforms.register("tag_index")
    def _tag_index(key: str, document: Any) -> dict[str, Any]:
        return {tag: [key] for tag in document.get("tags", [])}

    @transforms.register("author_index")
    def _author_index(key: str, document: Any) -> dict[str, Any] | None:
        author = document.get("author")
        return {"authors": {author: [key]}, "latest": key} if author else None

    return transforms


def test_blog_store_end_to_end(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Writes, reopen, listing, reindex, and tree deletion work together."""
    monkeypatch.delenv("JSONDB_INDEX_KEY", raising=False)
    root = tmp_path / "blog"
    store = jsondb.open_store(root, transforms=_blog_transforms())
    store.indexes.add("tags", re.compile(r"^/posts/\d+$"), "/indexes/tags", "tag_index")
    store.indexes.add("authors", re.compile(r"^/posts/"), "/indexes/authors", "author_index")

    store.set("/posts/1", {"author": "ann", "tags": ["python"]})
    store.set("/posts/2", {"author": "bob", "tags": ["python", "json"]})
    store.set("/posts/3", {"tags": ["json"]})

    reopened = jsondb.open_store(root, transforms=_blog_transforms())
    reopened.set("/posts/4", {"author": "ann", "tags": ["yaml"]})

    assert reopened.get("/indexes/tags") == {
        "python": ["/posts/1", "/posts/2"],
        "json": ["/posts/2", "/posts/3"],
        "yaml": ["/posts/4"],
    }
    assert reopened.get("/indexes/authors") == {
        "authors": {"ann": ["/posts/1", "/posts/4"], "bob": ["/posts/2"]},
        "latest": "/posts/4",
    }
    assert reopened.list_entries("/posts") == ["1", "2", "3", "4"]
    assert reopened.list_dirs("/") == ["indexes", "posts"]

    titles: list[str] = []

    def _collect(name: str, document: Any) -> Any:
        titles.append(name)
        return jsondb.STOP if len(titles) == 2 else None

    reopened.get("/posts", r"^\d+$", _collect)
    assert titles == ["1", "2"]

    assert reopened.delete_tree("/posts") == 4
    assert reopened.indexes.reindex(reset=True) == 0
    assert reopened.exists("/indexes/tags") is False
    assert reopened.indexes.entries_processed() == {}
    assert reopened.list_dirs("/") == ["indexes"]


def test_document_and_exact_index_scenario(tmp_path: Path) -> None:
    """Round trip, delete, and an exact-key index stay consistent."""
    transforms = jsondb.TransformRegistry()
    transforms.register("t1", lambda key, document: {"tags": ["t1"]})
    store = jsondb.open_store(tmp_path / "db", index_key="/.dbindex", transforms=transforms)

    store.set("/a/b", {"x": 1})
    assert store.get("/a/b") == {"x": 1}
    assert store.delete("/a/b") is True
    assert store.get("/a/b") is None

    store.indexes.add("n1", "/a/c", "/idx", "t1")
    store.set("/a/c", {})
    assert store.get("/idx") == {"tags": ["t1"]}
    store.set("/a/c", {})
    assert store.get("/idx") == {"tags": ["t1"]}
