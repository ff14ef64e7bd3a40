"""Key and pattern validation rules.

Keys are slash-delimited virtual paths. Every public store operation
validates its key here before touching the filesystem.
"""

from __future__ import annotations

import re

from core.constants import KEY_SEPARATOR
from core.errors import JsonDbValidationError


def check_key(key: object, index_key: str) -> str:
    """Validate a key addressing a document or directory.

    Args:
        key: Candidate key.
        index_key: Reserved index key of the owning store.

    Returns:
        The validated key.

    Raises:
        JsonDbValidationError: If the key is malformed or reserved.
    """
    if not isinstance(key, str):
        raise JsonDbValidationError(f"Keys must be strings, got {type(key).__name__}.")
    if not key.startswith(KEY_SEPARATOR):
        raise JsonDbValidationError(f"Invalid key '{key}': all keys must start with a '/'.")
    if "\x00" in key:
        raise JsonDbValidationError(f"Invalid key {key!r}: keys cannot contain NUL bytes.")
    if is_reserved_key(key, index_key):
        raise JsonDbValidationError(
            f"Invalid key '{key}': attempting to access the db index at '{index_key}'."
        )
    return key


def check_document_key(key: object, index_key: str) -> str:
    """Validate a key naming a single document."""
    checked = check_key(key, index_key)
    if checked.endswith(KEY_SEPARATOR):
        raise JsonDbValidationError(
            f"Invalid document key '{checked}': document keys cannot end with a '/'."
        )
    return checked


def is_reserved_key(key: str, index_key: str) -> bool:
    """Return whether a key equals or lies inside the reserved index key."""
    normalized = key.rstrip(KEY_SEPARATOR)
    return normalized == index_key or normalized.startswith(index_key + KEY_SEPARATOR)


def compile_pattern(pattern: object) -> re.Pattern[str] | None:
    """Compile an optional name pattern.

    Args:
        pattern: None, a regex string, or a compiled pattern.

    Returns:
        Compiled pattern, or None when omitted.

    Raises:
        JsonDbValidationError: If the pattern has the wrong type or is invalid.
    """
    if pattern is None or isinstance(pattern, re.Pattern):
        return pattern
    if not isinstance(pattern, str):
        raise JsonDbValidationError(
            f"Patterns must be a string or compiled regex, got {type(pattern).__name__}."
        )
    try:
        return re.compile(pattern)
    except re.error as error:
        raise JsonDbValidationError(f"Invalid pattern '{pattern}': {error}.") from error
