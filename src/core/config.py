"""Runtime configuration model for jsondb.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_DATA_ROOT,
    DEFAULT_DELETE_TREE_ATTEMPTS,
    DEFAULT_INDEX_KEY,
    DEFAULT_MAX_INDEX_DEPTH,
    KEY_SEPARATOR,
)
from core.errors import JsonDbConfigError


@dataclass(frozen=True)
class JsonDbConfig:
    """Validated runtime configuration.

    Attributes:
        root: Absolute root directory holding every document file.
        index_key: Reserved key under which the index registry is stored.
        delete_tree_attempts: Upper bound on delete_tree retries.
        max_index_depth: Upper bound on nested index writes per document write.
    """

    root: Path
    index_key: str
    delete_tree_attempts: int
    max_index_depth: int

    @classmethod
    def from_env(cls) -> "JsonDbConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            JsonDbConfigError: If environment values are invalid.
        """
        root_value = os.getenv("JSONDB_ROOT", str(DEFAULT_DATA_ROOT))
        index_key = validate_index_key(os.getenv("JSONDB_INDEX_KEY", DEFAULT_INDEX_KEY))
        delete_tree_attempts = _parse_positive_int(
            "JSONDB_DELETE_TREE_ATTEMPTS",
            os.getenv("JSONDB_DELETE_TREE_ATTEMPTS", str(DEFAULT_DELETE_TREE_ATTEMPTS)),
        )
        max_index_depth = _parse_positive_int(
            "JSONDB_MAX_INDEX_DEPTH",
            os.getenv("JSONDB_MAX_INDEX_DEPTH", str(DEFAULT_MAX_INDEX_DEPTH)),
        )
        return cls(
            root=Path(root_value).expanduser().resolve(),
            index_key=index_key,
            delete_tree_attempts=delete_tree_attempts,
            max_index_depth=max_index_depth,
        )


def validate_index_key(index_key: object) -> str:
    """Validate the reserved index key.

    Args:
        index_key: Candidate reserved key.

    Returns:
        The validated key.

    Raises:
        JsonDbConfigError: If the key is not a usable reserved location.
    """
    if not isinstance(index_key, str):
        raise JsonDbConfigError(
            f"Invalid index key {index_key!r}: expected a string such as '{DEFAULT_INDEX_KEY}'."
        )
    if not index_key.startswith(KEY_SEPARATOR):
        raise JsonDbConfigError(
            f"Invalid index key '{index_key}': it must start with '{KEY_SEPARATOR}'."
        )
    segments = [segment for segment in index_key.split(KEY_SEPARATOR) if segment]
    if not segments or any(segment in {".", ".."} for segment in segments):
        raise JsonDbConfigError(
            f"Invalid index key '{index_key}': name a directory below the store root, "
            f"for example '{DEFAULT_INDEX_KEY}'."
        )
    return KEY_SEPARATOR + KEY_SEPARATOR.join(segments)


def _parse_positive_int(variable_name: str, raw_value: str) -> int:
    """Parse a positive integer environment value.

    Args:
        variable_name: Environment variable name for error messages.
        raw_value: Raw string from environment.

    Returns:
        Parsed integer.

    Raises:
        JsonDbConfigError: If value is not a positive integer.
    """
    try:
        parsed = int(raw_value)
    except ValueError as error:
        raise JsonDbConfigError(
            f"Invalid {variable_name} value: "
            f"expected integer, got '{raw_value}'. "
            f"Set {variable_name} to a positive number."
        ) from error
    if parsed < 1:
        raise JsonDbConfigError(
            f"Invalid {variable_name} value: expected a positive integer, got {parsed}."
        )
    return parsed
