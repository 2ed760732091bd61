"""Command-line maintenance entry point."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
import logging
from pathlib import Path
import sys
from typing import Any, get_args

import anyio
import orjson

from content_graph.bootstrap import ContentGraph
from content_graph.config import Settings
from content_graph.domain.model import StatusFilter
from content_graph.domain.search import SearchOptions, SearchType
from content_graph.observability.logging import configure_logging
from content_graph.service_layer.sessions import purge_expired_sessions


logger = logging.getLogger(__name__)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="content-graph",
        description="Maintain and query a content-graph database",
    )
    parser.add_argument(
        "--database",
        type=Path,
        help="SQLite database file (defaults to DATABASE_PATH)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create tables and indexes")
    subparsers.add_parser("stats", help="Print admin dashboard counts as JSON")
    subparsers.add_parser("purge-sessions", help="Delete expired sessions")

    search = subparsers.add_parser("search", help="Search articles and print the results as JSON")
    search.add_argument("query", help="Free-text query")
    search.add_argument("--type", dest="search_type", choices=get_args(SearchType), default="all")
    search.add_argument("--status", choices=get_args(StatusFilter), default="published")
    search.add_argument("--limit", type=int, help="Page size")
    search.add_argument("--skip", type=int, default=0, help="Results to skip")
    search.add_argument("--include-body", action="store_true", help="Include article bodies")
    return parser


def _emit(payload: Any) -> None:
    sys.stdout.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8") + "\n")


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    async with ContentGraph.from_settings(settings) as graph:
        if args.command == "init-db":
            logger.info("Schema ready at %s", graph.store.db_path)
            return 0

        if args.command == "stats":
            stats = await graph.admin_stats()
            _emit(stats.model_dump(mode="json"))
            return 0

        if args.command == "purge-sessions":
            purged = await purge_expired_sessions(graph.store)
            if not purged.ok:
                logger.error("Purge failed: %s", purged.error.message)
                return 1
            _emit({"purged": purged.data})
            return 0

        if args.command == "search":
            options = SearchOptions(
                search_type=args.search_type,
                status=args.status,
                limit=args.limit,
                skip=args.skip,
                include_body=args.include_body,
            )
            result = await graph.search.search(args.query, options)
            if not result.ok:
                logger.error("Search failed [%s]: %s", result.error.code, result.error.message)
                return 1
            _emit(result.data.model_dump(mode="json"))
            return 0

    logger.error("Unknown command %s", args.command)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    overrides: dict[str, Any] = {}
    if args.database is not None:
        overrides["database_path"] = args.database
    try:
        settings = Settings(**overrides)
    except ValueError as exc:
        parser.error(f"Invalid configuration: {exc}")

    configure_logging(level=settings.log_level, json_output=settings.log_json, stream=sys.stderr)

    if getattr(args, "limit", None) is not None and args.limit < 1:
        parser.error("--limit must be >= 1")
    if getattr(args, "skip", 0) < 0:
        parser.error("--skip must be >= 0")

    try:
        return anyio.run(_run, args, settings)
    except Exception:
        logger.exception("Command %s failed", args.command)
        return 1


if __name__ == "__main__":
    sys.exit(main())
