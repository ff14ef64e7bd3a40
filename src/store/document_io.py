"""Low-level document file IO.

This module isolates reads, atomic writes, and directory scans.
Reads report a tagged ReadResult; writes and scans raise OSError so the
document store decides how each failure surfaces.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
import uuid

from core.constants import DOCUMENT_SUFFIX, TEMP_FILE_SUFFIX
from core.errors import JsonDbStoreError, JsonDbValidationError
from core.types import ReadResult, ReadStatus


def read_document_bytes(document_path: Path) -> ReadResult:
    """Read raw document bytes.

    Args:
        document_path: Absolute document file path.

    Returns:
        FOUND with bytes, NOT_FOUND when missing, IO_FAILURE otherwise.
    """
    try:
        with document_path.open("rb") as handle:
            return ReadResult(status=ReadStatus.FOUND, payload=handle.read())
    except FileNotFoundError:
        return ReadResult(status=ReadStatus.NOT_FOUND)
    except OSError as error:
        return ReadResult(status=ReadStatus.IO_FAILURE, error=error)


def parse_document(document_path: Path, payload: bytes) -> Any:
    """Parse document bytes as JSON.

    Raises:
        JsonDbStoreError: If the file does not hold valid JSON.
    """
    try:
        return json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as error:
        raise JsonDbStoreError(
            f"Failed to parse document at {document_path}: {error}. "
            "Rewrite the document with valid JSON or delete it."
        ) from error


def encode_document(key: str, document: Any) -> bytes:
    """Serialize a document to JSON bytes.

    Raises:
        JsonDbValidationError: If the value is not JSON-serializable.
    """
    try:
        return json.dumps(document, ensure_ascii=False, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as error:
        raise JsonDbValidationError(
            f"Document for key '{key}' is not JSON-serializable: {error}."
        ) from error


def decode_raw_payload(key: str, payload: bytes | str) -> tuple[bytes, Any]:
    """Validate a raw JSON payload and return its bytes and parsed value.

    Raises:
        JsonDbValidationError: If the payload is not valid JSON text.
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    if not isinstance(payload, (bytes, bytearray)):
        raise JsonDbValidationError(
            f"Raw payload for key '{key}' must be bytes or str, got {type(payload).__name__}."
        )
    try:
        return bytes(payload), json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as error:
        raise JsonDbValidationError(f"Raw payload for key '{key}' is not valid JSON: {error}.") from error


def write_bytes_atomic(target_path: Path, payload: bytes) -> None:
    """Write bytes through a temporary sibling and swap it into place.

    Each call gets its own uniquely named sibling, so concurrent writers
    of the same target never share a temporary file.

    Raises:
        OSError: If the write or rename fails.
    """
    tmp_path = target_path.with_name(f"{target_path.name}.{uuid.uuid4().hex}{TEMP_FILE_SUFFIX}")
    try:
        # "xb" keeps umask-derived permissions, unlike mkstemp's 0600.
        with tmp_path.open("xb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, target_path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def list_document_names(directory: Path) -> list[str]:
    """List stripped names of document files directly under a directory.

    Raises:
        OSError: If the directory cannot be scanned.
    """
    names: list[str] = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if entry.name.endswith(DOCUMENT_SUFFIX) and entry.is_file():
                names.append(entry.name[: -len(DOCUMENT_SUFFIX)])
    return sorted(names)


def list_directory_names(directory: Path, hidden: Path | None = None) -> list[str]:
    """List subdirectory names directly under a directory.

    Args:
        directory: Directory to scan.
        hidden: Optional path excluded from the result.

    Raises:
        OSError: If the directory cannot be scanned.
    """
    names: list[str] = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if entry.is_dir() and (hidden is None or Path(entry.path) != hidden):
                names.append(entry.name)
    return sorted(names)
