"""Core constants used across jsondb modules.

This module centralizes storage layout names and policy defaults.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

KEY_SEPARATOR = "/"
DOCUMENT_SUFFIX = ".json"
TEMP_FILE_SUFFIX = ".tmp"
DEFAULT_DATA_ROOT = Path(".jsondb")
DEFAULT_INDEX_KEY = "/.dbindex"
INDEX_REGISTRY_FILE_NAME = "indexes"
INDEX_LEDGER_FILE_NAME = "entries"
FILTER_KIND_STRING = "string"
FILTER_KIND_PATTERN = "pattern"
SUPPORTED_FILTER_KINDS = (FILTER_KIND_STRING, FILTER_KIND_PATTERN)
DEFAULT_DELETE_TREE_ATTEMPTS = 100
DELETE_TREE_RETRY_DELAY_SECONDS = 0.01
DEFAULT_MAX_INDEX_DEPTH = 32
INDEX_SPEC_VERSION = 1
TRANSFORM_MODULE_HOOK_NAME = "register_transforms"
LEDGER_COMPACT_MIN_LINES = 64
LEDGER_COMPACT_RATIO = 2
