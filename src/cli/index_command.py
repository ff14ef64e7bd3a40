"""Index command group for jsondb CLI."""

from __future__ import annotations

import argparse
import re
from typing import Any

from core.errors import JsonDbValidationError
from indexing.index_spec import apply_index_spec, load_index_spec
from indexing.registry_codec import pattern_source
from store.document_store import JsonDocumentStore


def add_index_command(subparsers: Any) -> None:
    """Register index subcommand and its actions."""
    parser = subparsers.add_parser("index", help="Manage secondary indexes")
    actions = parser.add_subparsers(dest="index_action", required=True)

    actions.add_parser("list", help="List index definitions in order")

    add_parser = actions.add_parser("add", help="Add or replace an index definition")
    add_parser.add_argument("name", help="Index name")
    filter_group = add_parser.add_mutually_exclusive_group(required=True)
    filter_group.add_argument("--exact", help="Exact key the index listens to")
    filter_group.add_argument("--pattern", help="Regex searched in written keys")
    add_parser.add_argument("--target", required=True, help="Aggregate document key")
    add_parser.add_argument("--transform", required=True, help="Registered transform name")

    remove_parser = actions.add_parser("remove", help="Remove an index definition")
    remove_parser.add_argument("name", help="Index name")

    reindex_parser = actions.add_parser("reindex", help="Replay documents through indexes")
    reindex_parser.add_argument("name", nargs="?", help="Index name; all when omitted")
    reindex_parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete affected aggregates before replaying",
    )
    reindex_parser.add_argument(
        "--scan",
        action="store_true",
        help="Also replay documents found on disk but not yet tracked",
    )

    apply_parser = actions.add_parser("apply", help="Add every index from a YAML spec")
    apply_parser.add_argument("spec", help="Path to YAML index spec")


def run_index_command(store: JsonDocumentStore, args: argparse.Namespace) -> int:
    """Execute one index action and print its result."""
    registry = store.indexes
    if args.index_action == "list":
        for definition in registry.definitions():
            print(
                f"{definition.name}\t"
                f"{definition.key_filter.kind}\t"
                f"{_filter_text(definition.key_filter.value)}\t"
                f"{definition.target_key}\t"
                f"{definition.transform_name}"
            )
        return 0
    if args.index_action == "add":
        key_filter = args.exact if args.exact is not None else _compile(args.pattern)
        registry.add(args.name, key_filter, args.target, args.transform)
        print(args.name)
        return 0
    if args.index_action == "remove":
        registry.remove(args.name)
        print(args.name)
        return 0
    if args.index_action == "reindex":
        replayed = registry.reindex(args.name, reset=args.reset, scan=args.scan)
        print(f"replayed={replayed}")
        return 0
    if args.index_action == "apply":
        definitions = apply_index_spec(store, load_index_spec(args.spec))
        for definition in definitions:
            print(definition.name)
        return 0
    raise JsonDbValidationError(f"Unsupported index action: {args.index_action}")


def _compile(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as error:
        raise JsonDbValidationError(f"Invalid pattern '{pattern}': {error}.") from error


def _filter_text(value: object) -> str:
    return pattern_source(value) if isinstance(value, re.Pattern) else str(value)
