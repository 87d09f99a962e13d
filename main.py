#!/usr/bin/env python3
"""
CLI for the Comp Match Engine.

Usage:
    python main.py comparables <subject_json> [--target N] [--summary]
    python main.py resolve <subject_json>
    python main.py stats
    python main.py serve

Examples:
    # Find 12 comparables for a listing
    python main.py comparables listings/subject.json

    # Production entrypoint, binds 0.0.0.0:$PORT
    python main.py serve
"""

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Optional

from core.comp_engine import CatalogUnavailableError, normalise_record
from core.services import build_engine, build_resolver
from utils.config import Config
from utils.formatting import format_area, format_currency
from utils.log import setup_logging


def load_subject(path: str) -> Optional[dict]:
    """
    Load a subject listing from a JSON file.

    Returns:
        The listing dict, or None after printing an error
    """
    input_path = Path(path)
    if not input_path.exists():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return None

    try:
        with open(input_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON: {e}", file=sys.stderr)
        return None

    if not isinstance(data, dict):
        print("Error: Subject must be a JSON object", file=sys.stderr)
        return None
    return data


def print_summary(result) -> None:
    """Print one line per comparable."""
    print(f"{result.count} comparables ({result.total_found} examined)")
    for i, comp in enumerate(result.comparables, 1):
        print(
            f"{i:>2}. {comp.address or comp.reference or '-'} | "
            f"{format_currency(comp.price)} | "
            f"{format_area(comp.area, comp.area_type.value)} | "
            f"{comp.bedrooms} bed | score {comp.score:.2f}"
        )


def cmd_comparables(args, config: Config) -> int:
    """Find comparables for a subject listing."""
    subject = load_subject(args.subject_file)
    if subject is None:
        return 1

    engine = build_engine(config)
    try:
        result = engine.find_comparables(subject, target_count=args.target or config.target_count)
    except CatalogUnavailableError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.summary:
        print_summary(result)
    else:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_resolve(args, config: Config) -> int:
    """Resolve a subject listing's location."""
    subject = load_subject(args.subject_file)
    if subject is None:
        return 1

    resolver = build_resolver(config)
    result = resolver.resolve(normalise_record(subject))
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_stats(args, config: Config) -> int:
    """Print catalog statistics."""
    engine = build_engine(config)
    try:
        engine.catalog.ensure_available()
    except CatalogUnavailableError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(json.dumps(engine.catalog.stats(), indent=2, ensure_ascii=False))
    return 0


def cmd_serve(args, config: Config) -> int:
    """Production entrypoint. Binds 0.0.0.0:$PORT."""
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    print(f"Starting Comp Match Engine on port {port}")

    # Import app here to ensure clean module loading
    from web.app import app

    uvicorn.run(app, host="0.0.0.0", port=port, log_config=None)
    return 0


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Comp Match Engine - comparable property matching and ranking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py comparables listings/subject.json --target 8
    python main.py resolve listings/subject.json
    python main.py stats

Environment:
    CATALOG_PATH, DATA_DIR, COMPLETION_API_KEY, LOG_LEVEL (see utils/config.py)
        """,
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Comparables command
    comp_parser = subparsers.add_parser(
        "comparables",
        help="Find comparables for a subject listing",
    )
    comp_parser.add_argument("subject_file", help="Path to JSON subject listing")
    comp_parser.add_argument("--target", type=int, default=None, help="Number of comparables wanted")
    comp_parser.add_argument("--summary", action="store_true", help="Print a short table instead of JSON")
    comp_parser.set_defaults(func=cmd_comparables)

    # Resolve command
    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Resolve the location of a subject listing",
    )
    resolve_parser.add_argument("subject_file", help="Path to JSON subject listing")
    resolve_parser.set_defaults(func=cmd_resolve)

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Print catalog statistics")
    stats_parser.set_defaults(func=cmd_stats)

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)
    config = Config.load()
    setup_logging(config.log_level, stream=sys.stderr, fmt=config.log_format)
    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
