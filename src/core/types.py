"""Shared typed models.

This module defines immutable data models used by the document store,
the index registry, and the index engine to keep interfaces explicit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import re
from typing import Any, Callable, Literal, Mapping

FilterKind = Literal["string", "pattern"]
TransformCallable = Callable[[str, Any], Any]


class ReadStatus(Enum):
    """Outcome of a single storage read."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    IO_FAILURE = "io_failure"


class VisitorSignal(Enum):
    """Return value a get() visitor uses to stop iteration."""

    CONTINUE = "continue"
    STOP = "stop"


@dataclass(frozen=True)
class ReadResult:
    """Tagged result for document reads.

    Attributes:
        status: Read outcome.
        payload: Parsed document or raw bytes when found.
        error: Underlying OS error for IO failures.
    """

    status: ReadStatus
    payload: Any = None
    error: OSError | None = None

    @property
    def found(self) -> bool:
        return self.status is ReadStatus.FOUND


@dataclass(frozen=True)
class KeyFilter:
    """Predicate deciding whether a written key feeds an index.

    Attributes:
        kind: "string" for exact equality or "pattern" for regex search.
        value: Exact key or compiled pattern.
    """

    kind: FilterKind
    value: str | re.Pattern[str]

    def matches(self, key: str) -> bool:
        """Return whether the key satisfies this filter."""
        if self.kind == "string":
            return self.value == key
        return bool(self.value.search(key))  # type: ignore[union-attr]


@dataclass(frozen=True)
class IndexDefinition:
    """Named index definition.

    Attributes:
        name: Unique definition name.
        key_filter: Filter evaluated against written keys.
        target_key: Key of the aggregate document.
        transform_name: Registered transform identifier.
        transform: Resolved transform callable.
    """

    name: str
    key_filter: KeyFilter
    target_key: str
    transform_name: str
    transform: TransformCallable = field(compare=False, repr=False)


@dataclass(frozen=True)
class IndexRegistrySnapshot:
    """Ordered view of every registered definition."""

    ordered_names: tuple[str, ...]
    definitions: Mapping[str, IndexDefinition]
