"""jsondb exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations

from pathlib import Path


class JsonDbError(Exception):
    """Base exception for all jsondb failures."""


class JsonDbConfigError(JsonDbError):
    """Raised for invalid runtime configuration."""


class JsonDbValidationError(JsonDbError):
    """Raised for malformed keys, reserved key access, or bad arguments."""


class JsonDbStoreError(JsonDbError):
    """Raised for storage failures that cannot be reported as a sentinel."""


class JsonDbTreeDeletionError(JsonDbStoreError):
    """Raised when a recursive tree deletion cannot complete.

    Attributes:
        path: Filesystem path whose removal failed.
        cause: Underlying OS error.
    """

    def __init__(self, message: str, path: Path, cause: OSError) -> None:
        super().__init__(message)
        self.path = path
        self.cause = cause


class JsonDbIndexIntegrityError(JsonDbError):
    """Raised for corrupt index registry state or reentrant index cycles."""


class JsonDbDependencyError(JsonDbError):
    """Raised when an optional runtime dependency is missing."""
