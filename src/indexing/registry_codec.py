"""Index registry persistence codec.

The registry persists as one JSON object:

    {
      "orderedNames": ["by_tag", ...],
      "definitions": {
        "by_tag": {
          "filter": {"kind": "string" | "pattern", "value": "<key or regex>"},
          "targetKey": "/indexes/tags",
          "transform": "<registered transform name>"
        }
      }
    }

Only transform names are stored; decoding resolves them through the
TransformRegistry and fails loudly on unknown names.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

from core.constants import FILTER_KIND_PATTERN, FILTER_KIND_STRING, SUPPORTED_FILTER_KINDS
from core.errors import JsonDbIndexIntegrityError, JsonDbValidationError
from core.keys import check_document_key
from core.types import IndexDefinition, IndexRegistrySnapshot, KeyFilter
from indexing.transform_registry import TransformRegistry

_INLINE_FLAGS = (
    (re.IGNORECASE, "i"),
    (re.MULTILINE, "m"),
    (re.DOTALL, "s"),
    (re.VERBOSE, "x"),
    (re.ASCII, "a"),
)


def empty_snapshot() -> IndexRegistrySnapshot:
    return IndexRegistrySnapshot(ordered_names=(), definitions={})


def encode_registry(snapshot: IndexRegistrySnapshot) -> dict[str, Any]:
    """Convert a registry snapshot into its persisted JSON form."""
    definitions: dict[str, Any] = {}
    for name in snapshot.ordered_names:
        definition = snapshot.definitions[name]
        definitions[name] = {
            "filter": encode_filter(definition.key_filter),
            "targetKey": definition.target_key,
            "transform": definition.transform_name,
        }
    return {"orderedNames": list(snapshot.ordered_names), "definitions": definitions}


def encode_filter(key_filter: KeyFilter) -> dict[str, str]:
    if key_filter.kind == FILTER_KIND_STRING:
        return {"kind": FILTER_KIND_STRING, "value": str(key_filter.value)}
    return {"kind": FILTER_KIND_PATTERN, "value": pattern_source(key_filter.value)}  # type: ignore[arg-type]


def pattern_source(pattern: re.Pattern[str]) -> str:
    """Return pattern text that recompiles with the same flags."""
    if re.compile(pattern.pattern).flags == pattern.flags:
        return pattern.pattern
    letters = "".join(letter for flag, letter in _INLINE_FLAGS if pattern.flags & flag)
    return f"(?{letters}){pattern.pattern}" if letters else pattern.pattern


def decode_registry(
    payload: object,
    transforms: TransformRegistry,
    index_key: str,
) -> IndexRegistrySnapshot:
    """Rebuild a registry snapshot from its persisted JSON form.

    Args:
        payload: Parsed registry file content.
        transforms: Handlers used to resolve transform names.
        index_key: Reserved index key, used to validate target keys.

    Returns:
        Registry snapshot with resolved transforms.

    Raises:
        JsonDbIndexIntegrityError: If the payload is malformed or names are unresolvable.
    """
    if not isinstance(payload, Mapping):
        raise JsonDbIndexIntegrityError("Index registry must be a JSON object.")
    ordered_names = payload.get("orderedNames")
    raw_definitions = payload.get("definitions")
    if not isinstance(ordered_names, list) or not all(
        isinstance(name, str) for name in ordered_names
    ):
        raise JsonDbIndexIntegrityError("Index registry 'orderedNames' must be a list of strings.")
    if not isinstance(raw_definitions, Mapping):
        raise JsonDbIndexIntegrityError("Index registry 'definitions' must be an object.")
    if len(set(ordered_names)) != len(ordered_names) or set(ordered_names) != set(raw_definitions):
        raise JsonDbIndexIntegrityError(
            "Index registry 'orderedNames' does not match its 'definitions'. "
            "Repair or delete the registry file and re-add the indexes."
        )
    definitions = {
        name: _decode_definition(name, raw_definitions[name], transforms, index_key)
        for name in ordered_names
    }
    return IndexRegistrySnapshot(ordered_names=tuple(ordered_names), definitions=definitions)


def _decode_definition(
    name: str,
    payload: object,
    transforms: TransformRegistry,
    index_key: str,
) -> IndexDefinition:
    if not isinstance(payload, Mapping):
        raise JsonDbIndexIntegrityError(f"Index definition '{name}' must be an object.")
    transform_name = payload.get("transform")
    target_key = payload.get("targetKey")
    if not isinstance(transform_name, str):
        raise JsonDbIndexIntegrityError(f"Index definition '{name}' has no transform name.")
    try:
        checked_target = check_document_key(target_key, index_key)
    except JsonDbValidationError as error:
        raise JsonDbIndexIntegrityError(
            f"Index definition '{name}' has an invalid targetKey: {error}"
        ) from error
    return IndexDefinition(
        name=name,
        key_filter=decode_filter(name, payload.get("filter")),
        target_key=checked_target,
        transform_name=transform_name,
        transform=transforms.resolve(transform_name),
    )


def decode_filter(name: str, payload: object) -> KeyFilter:
    """Rebuild one persisted filter.

    Raises:
        JsonDbIndexIntegrityError: If the filter kind or value is malformed.
    """
    if not isinstance(payload, Mapping):
        raise JsonDbIndexIntegrityError(f"Index definition '{name}' has no filter object.")
    kind = payload.get("kind")
    value = payload.get("value")
    if kind not in SUPPORTED_FILTER_KINDS or not isinstance(value, str):
        supported = ", ".join(SUPPORTED_FILTER_KINDS)
        raise JsonDbIndexIntegrityError(
            f"Index definition '{name}' has an invalid filter: "
            f"expected kind in ({supported}) and a string value."
        )
    if kind == FILTER_KIND_STRING:
        return KeyFilter(kind=FILTER_KIND_STRING, value=value)
    try:
        return KeyFilter(kind=FILTER_KIND_PATTERN, value=re.compile(value))
    except re.error as error:
        raise JsonDbIndexIntegrityError(
            f"Index definition '{name}' has an invalid filter pattern '{value}': {error}."
        ) from error
