"""Command line interface for jsondelta."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Optional

from .arrays import analyze_document, get_array_strategy_info
from .config import load_config
from .exceptions import JsonDeltaError, ParseError
from .log import setup_logging
from .models import ChangeKind, DiffResult
from .runner import DiffRunner, load_document
from .transforms import describe_transform
from .validation import has_blocking_errors

EXIT_NO_CHANGES = 0
EXIT_CHANGES = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jsondelta",
        description="Structural diff of two JSON documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  jsondelta before.json after.json
  jsondelta before.json after.json -r rules.yaml -o diff.json
  jsondelta before.json after.json -r rules.yaml --validate-only
  jsondelta before.json after.json --suggest
        """
    )

    parser.add_argument("document_a", help="Path to the baseline JSON document")
    parser.add_argument("document_b", help="Path to the JSON document to compare")
    parser.add_argument("-r", "--rules", help="Path to YAML/JSON rule file")
    parser.add_argument("-o", "--output", help="Path to output JSON diff file")
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Only validate the rule file and exit",
    )
    parser.add_argument(
        "--suggest",
        action="store_true",
        help="Print array strategy suggestions for the baseline document",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: JSONDELTA_LOG_LEVEL or info)",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress console output")
    return parser


def print_summary(result: DiffResult) -> None:
    root = result.root
    print(f"Nodes: {result.stats.nodes} ({result.stats.compute_ms} ms)")
    if root.kind is ChangeKind.UNCHANGED:
        print("No changes")
        return

    for node in root.walk():
        if node.children:
            continue
        if node.kind is ChangeKind.ADDED:
            print(f"+ {node.path or '$'}: {json.dumps(node.after)}")
        elif node.kind is ChangeKind.REMOVED:
            print(f"- {node.path or '$'}: {json.dumps(node.before)}")
        elif node.kind is ChangeKind.MODIFIED:
            print(f"~ {node.path or '$'}: {json.dumps(node.before)} -> {json.dumps(node.after)}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config()
    setup_logging(args.log_level or config.log_level.value.lower())

    runner = DiffRunner(args.rules)

    try:
        errors = runner.validate()
        if not args.quiet:
            for error in errors:
                print(f"[{error.severity.value}] {error.message}", file=sys.stderr)

        if args.validate_only:
            if not args.quiet:
                info = get_array_strategy_info(runner.options)
                print(f"Array strategy: {info.strategy} - {info.description}")
                for rule in runner.options.transform_rules:
                    print(f"Transform: {describe_transform(rule)}")
            return EXIT_ERROR if has_blocking_errors(errors) else EXIT_NO_CHANGES

        if args.suggest and not args.quiet:
            for path, suggestion in analyze_document(load_document(args.document_a)).items():
                key = f" (key: {suggestion.key_path})" if suggestion.key_path else ""
                print(
                    f"{path or '$'}: {suggestion.suggested.value}{key} "
                    f"[{suggestion.confidence:.1f}] {suggestion.reason}"
                )

        result = runner.diff_files(args.document_a, args.document_b)

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except ParseError as e:
        location = f" (line {e.line}, column {e.column})" if e.line else ""
        print(f"Error: {e.message}{location}", file=sys.stderr)
        return EXIT_ERROR
    except JsonDeltaError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), indent=2, fp=f)

    if not args.quiet:
        print_summary(result)
        if args.output:
            print(f"\nDiff saved to: {args.output}")

    return EXIT_CHANGES if result.has_changes else EXIT_NO_CHANGES


if __name__ == "__main__":
    sys.exit(main())
