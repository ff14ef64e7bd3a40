"""Deep merge of transform output into aggregate documents.

Objects merge recursively, arrays behave as insertion-ordered sets, and
scalars overwrite. Membership uses JSON value equality, so true and 1
are distinct values.
"""

from __future__ import annotations

import copy
from typing import Any, Mapping


def merge_index_entry(partial: Mapping[str, Any], aggregate: dict[str, Any]) -> dict[str, Any]:
    """Merge a partial result into an aggregate in place.

    Args:
        partial: Object returned by an index transform.
        aggregate: Current aggregate document, mutated in place.

    Returns:
        The mutated aggregate.
    """
    for field_name, value in partial.items():
        if isinstance(value, Mapping):
            current = aggregate.get(field_name)
            if not isinstance(current, dict):
                current = {}
                aggregate[field_name] = current
            merge_index_entry(value, current)
        elif isinstance(value, (list, tuple)):
            current = aggregate.get(field_name)
            if not isinstance(current, list):
                current = []
                aggregate[field_name] = current
            for item in value:
                if not any(json_equal(existing, item) for existing in current):
                    current.append(copy.deepcopy(item))
        else:
            aggregate[field_name] = value
    return aggregate


def json_equal(left: Any, right: Any) -> bool:
    """Compare two JSON values without conflating booleans and numbers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return left.keys() == right.keys() and all(
            json_equal(left[name], right[name]) for name in left
        )
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(
            json_equal(item_left, item_right) for item_left, item_right in zip(left, right)
        )
    if isinstance(left, (Mapping, list, tuple)) or isinstance(right, (Mapping, list, tuple)):
        return False
    return left == right
