"""Key to filesystem path mapping.

A document at key K lives at ROOT + K + ".json" and a directory key maps
to ROOT + K. Paths are normalized lexically and must stay inside the root
and outside the reserved index directory.
"""

from __future__ import annotations

import os
from pathlib import Path

from core.constants import DOCUMENT_SUFFIX, KEY_SEPARATOR
from core.errors import JsonDbValidationError


class PathResolver:
    """Resolve store keys to absolute filesystem locations."""

    def __init__(self, root: Path, index_key: str) -> None:
        self._root = Path(os.path.abspath(root))
        self._index_dir = self._root / index_key.strip(KEY_SEPARATOR)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def index_dir(self) -> Path:
        return self._index_dir

    def ensure_layout(self) -> None:
        """Create the store root and reserved index directory."""
        self._index_dir.mkdir(parents=True, exist_ok=True)

    def locate(self, key: str, suffix: str = "") -> Path:
        """Map a key to its path without touching the filesystem.

        Args:
            key: Validated store key.
            suffix: Appended file suffix, such as ".json".

        Returns:
            Absolute normalized path.

        Raises:
            JsonDbValidationError: If the path escapes the root or hits the index.
        """
        candidate = Path(os.path.normpath(str(self._root) + key.rstrip(KEY_SEPARATOR) + suffix))
        if candidate != self._root and not _is_within(candidate, self._root):
            raise JsonDbValidationError(
                f"Invalid key '{key}': it resolves outside the store root {self._root}."
            )
        if self.is_reserved_path(candidate):
            raise JsonDbValidationError(
                f"Invalid key '{key}': attempting to access the db index at {self._index_dir}."
            )
        return candidate

    def resolve(self, key: str, suffix: str = DOCUMENT_SUFFIX) -> Path:
        """Map a key to its path and create the parent directory chain.

        Raises:
            OSError: If parent directories cannot be created.
        """
        path = self.locate(key, suffix)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def is_reserved_path(self, path: Path) -> bool:
        """Return whether a path is, or lies inside, the index directory."""
        return path == self._index_dir or _is_within(path, self._index_dir)

    def contains_reserved_path(self, path: Path) -> bool:
        """Return whether a directory tree would include the index directory."""
        return self.is_reserved_path(path) or _is_within(self._index_dir, path)

    def key_for_document(self, path: Path) -> str:
        """Map a document file path back to its key."""
        relative = path.relative_to(self._root).as_posix()
        return KEY_SEPARATOR + relative[: -len(DOCUMENT_SUFFIX)]


def _is_within(path: Path, parent: Path) -> bool:
    return parent in path.parents
