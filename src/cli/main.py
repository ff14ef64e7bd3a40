"""jsondb CLI entry points.
This module exposes document commands and the index command group.
It maps argparse commands onto store calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
import json
from pathlib import Path
import sys
from typing import Any, Sequence

from cli.index_command import add_index_command, run_index_command
from core.config import JsonDbConfig, validate_index_key
from core.errors import JsonDbError
from indexing.transform_registry import TransformRegistry, load_transform_module
from store.document_store import JsonDocumentStore


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="jsondb", description="JSON document store CLI")
    parser.add_argument("--root", help="Override JSONDB_ROOT for this command")
    parser.add_argument("--index-key", help="Override JSONDB_INDEX_KEY for this command")
    parser.add_argument(
        "--transforms",
        action="append",
        default=[],
        help="Python file defining register_transforms(registry); repeatable",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_document_commands(subparsers)
    add_index_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the jsondb CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        store = _build_store(args.root, args.index_key, args.transforms)
        return _dispatch(store, args)
    except JsonDbError as error:
        print(f"error={error}", file=sys.stderr)
        return 1


def _build_store(
    root: str | None,
    index_key: str | None,
    transform_paths: list[str],
) -> JsonDocumentStore:
    """Build a store with optional overrides and user transforms."""
    config = JsonDbConfig.from_env()
    if root:
        config = replace(config, root=Path(root).expanduser().resolve())
    if index_key:
        config = replace(config, index_key=validate_index_key(index_key))
    transforms = TransformRegistry()
    for transform_path in transform_paths:
        load_transform_module(transform_path, transforms)
    return JsonDocumentStore(config, transforms=transforms)


def _dispatch(store: JsonDocumentStore, args: argparse.Namespace) -> int:
    if args.command == "get":
        return _run_get_command(store, args)
    if args.command == "set":
        return _run_set_command(store, args)
    if args.command == "delete":
        return _print_flag(store.delete(args.key))
    if args.command == "exists":
        return _print_flag(store.exists(args.key))
    if args.command == "ls":
        return _print_names(store.list_entries(args.key, args.pattern))
    if args.command == "dirs":
        return _print_names(store.list_dirs(args.key, args.pattern))
    if args.command == "count":
        count = store.count_entries(args.key, args.pattern)
        print(count)
        return 0 if count >= 0 else 1
    if args.command == "find":
        return _print_names(store.find_recursive(args.key, args.pattern))
    if args.command == "rm-tree":
        print(f"removed={store.delete_tree(args.key)}")
        return 0
    return run_index_command(store, args)


def _run_get_command(store: JsonDocumentStore, args: argparse.Namespace) -> int:
    """Print one document, or every matching document under a directory."""
    if args.raw:
        payload = store.get_raw(args.key, args.pattern)
        if args.pattern is None:
            if payload is None:
                return 1
            sys.stdout.write(payload.decode("utf-8") + "\n")
            return 0
        for name, raw in payload.items():
            print(f"{name}\t{raw.decode('utf-8')}")
        return 0
    if args.pattern is None:
        result = store.get_result(args.key)
        if not result.found:
            return 1
        document = result.payload
    else:
        document = store.get(args.key, args.pattern)
    print(json.dumps(document, indent=2, sort_keys=True))
    return 0


def _run_set_command(store: JsonDocumentStore, args: argparse.Namespace) -> int:
    """Write a document given as JSON text."""
    return _print_flag(store.set_raw(args.key, args.value))


def _print_flag(flag: bool) -> int:
    print("true" if flag else "false")
    return 0 if flag else 1


def _print_names(names: list[str] | None) -> int:
    if names is None:
        return 1
    for name in names:
        print(name)
    return 0


def _add_document_commands(subparsers: Any) -> None:
    """Register document subcommands."""
    parser = subparsers.add_parser("get", help="Print a document or a directory of documents")
    parser.add_argument("key", help="Document key, or directory key with --pattern")
    parser.add_argument("--pattern", help="Regex matched against entry names")
    parser.add_argument("--raw", action="store_true", help="Print stored bytes unchanged")

    parser = subparsers.add_parser("set", help="Write a document from JSON text")
    parser.add_argument("key", help="Document key")
    parser.add_argument("value", help="JSON document text")

    parser = subparsers.add_parser("delete", help="Delete one document")
    parser.add_argument("key", help="Document key")

    parser = subparsers.add_parser("exists", help="Check whether a document exists")
    parser.add_argument("key", help="Document key")

    for command, help_text in (("ls", "List documents"), ("dirs", "List directories")):
        parser = subparsers.add_parser(command, help=f"{help_text} under a key")
        parser.add_argument("key", help="Directory key")
        parser.add_argument("--pattern", help="Regex matched against names")

    parser = subparsers.add_parser("count", help="Count documents under a key")
    parser.add_argument("key", help="Directory key")
    parser.add_argument("--pattern", help="Regex matched against entry names")

    parser = subparsers.add_parser("find", help="Find files at any depth under a key")
    parser.add_argument("key", help="Directory key")
    parser.add_argument("pattern", help="Regex matched against file names")

    parser = subparsers.add_parser("rm-tree", help="Recursively delete documents under a key")
    parser.add_argument("key", help="Directory key")
