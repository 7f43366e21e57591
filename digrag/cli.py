"""Command-line interface for building and querying digrag indices."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any, Callable, Optional

from .cache import LruCache
from .clients.base import ClientError
from .config import DigragConfig, load_config, render_default_toml
from .embedding.openrouter import OpenRouterEmbeddingClient
from .exceptions import ConfigError, DigragError
from .index.builder import IndexBuilder
from .index.files import atomic_write_text
from .models import Document, SearchMode
from .paths import get_default_config_path
from .search.searcher import Searcher
from .telemetry import TelemetryCollector

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(verbose: bool) -> None:
    level_name = os.environ.get("DIGRAG_LOG_LEVEL")
    if verbose:
        level = logging.DEBUG
    elif level_name:
        level = getattr(logging, level_name.upper(), logging.WARNING)
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError("value must be a positive integer")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="digrag", description="Local BM25, semantic and hybrid search over changelog memos"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init", help="Write a default config file")
    init.add_argument("--force", action="store_true", help="Overwrite an existing config file")

    build = subparsers.add_parser("build", help="Build the index from changelog or JSONL input")
    build.add_argument(
        "--input",
        "-i",
        action="append",
        dest="inputs",
        required=True,
        help="Changelog file, JSONL file, directory, or '-' for JSONL on stdin (repeatable)",
    )
    build.add_argument("--output", "-o", default=None, help="Index directory (default: .rag)")
    embeddings = build.add_mutually_exclusive_group()
    embeddings.add_argument(
        "--with-embeddings", action="store_true", help="Generate embeddings via OpenRouter"
    )
    embeddings.add_argument(
        "--skip-embeddings", action="store_true", help="Build keyword indices only"
    )
    build.add_argument(
        "--incremental", action="store_true", help="Only embed added or modified documents"
    )
    build.add_argument(
        "--force", action="store_true", help="Force a full rebuild even with --incremental"
    )

    search = subparsers.add_parser("search", help="Query the index")
    search.add_argument("query", help="Search query")
    search.add_argument("--index-dir", "-d", default=None, help="Index directory")
    search.add_argument("--top-k", "-k", type=_positive_int, default=None, help="Result count")
    search.add_argument(
        "--mode",
        "-m",
        choices=[mode.value for mode in SearchMode],
        default=None,
        help="Search mode (default from config: bm25)",
    )
    search.add_argument("--tag", "-t", default=None, help="Only return documents with this tag")
    search.add_argument("--json", action="store_true", help="Emit results as JSON lines")

    tags = subparsers.add_parser("tags", help="List tags with document counts")
    tags.add_argument("--index-dir", "-d", default=None, help="Index directory")

    recent = subparsers.add_parser("recent", help="Show the most recent documents")
    recent.add_argument("--index-dir", "-d", default=None, help="Index directory")
    recent.add_argument("--limit", "-n", type=_positive_int, default=10)

    return parser


def _make_embedder(
    config: DigragConfig, telemetry: TelemetryCollector, *, cache_queries: bool
) -> OpenRouterEmbeddingClient:
    if config.openrouter_api_key is None:
        raise ConfigError("OPENROUTER_API_KEY is not set")
    cache: Optional[LruCache[list[float]]] = None
    if cache_queries:
        cache = LruCache(config.cache_max_entries, config.cache_ttl_s)
    return OpenRouterEmbeddingClient(
        config.openrouter_api_key,
        model=config.embedding_model,
        base_url=config.embedding_base_url,
        timeout=config.request_timeout_s,
        cache=cache,
        telemetry=telemetry,
    )


def _print_progress(step: int, total: int, message: str) -> None:
    print(f"[{step}/{total}] {message}", file=sys.stderr)


def _format_document(document: Document) -> str:
    tags = " ".join(f"[{tag}]" for tag in document.tags)
    stamp = document.date.strftime("%Y-%m-%d %H:%M:%S")
    return f"{document.title} ({stamp}) {tags}".rstrip()


def _log_telemetry(telemetry: TelemetryCollector) -> None:
    if telemetry.get_stats().total_calls:
        logger.debug("%s", telemetry.generate_report())


def _run_init(args: argparse.Namespace) -> int:
    path = get_default_config_path()
    if path.exists() and not args.force:
        print(f"Config already exists at {path} (use --force to overwrite)", file=sys.stderr)
        return 1
    atomic_write_text(path, render_default_toml())
    print(f"Wrote config to {path}")
    return 0


def _run_build(args: argparse.Namespace) -> int:
    config = load_config(index_dir=args.output)
    telemetry = TelemetryCollector()
    embedder = None
    if args.with_embeddings:
        embedder = _make_embedder(config, telemetry, cache_queries=False)

    if args.incremental and args.force:
        print("Forcing full rebuild (--force)", file=sys.stderr)
    elif args.incremental:
        print("Performing incremental build", file=sys.stderr)

    builder = IndexBuilder(
        embedder=embedder,
        batch_size=config.embedding_batch_size,
        batch_delay_s=config.embedding_batch_delay_s,
        progress=_print_progress,
    )
    report = builder.build(
        args.inputs, config.index_dir, incremental=args.incremental, force=args.force
    )

    summary = f"Indexed {report.doc_count} documents into {report.output_dir}"
    if report.diff is not None:
        summary += f" (incremental: {report.diff.summary()})"
    if embedder is not None:
        summary += f"; embedded {report.embedded}, reused {report.reused_embeddings}"
    print(summary)
    _log_telemetry(telemetry)
    return 0


def _run_search(args: argparse.Namespace) -> int:
    config = load_config(index_dir=args.index_dir)
    mode = SearchMode.parse(args.mode or config.default_search_mode)
    top_k = args.top_k or config.default_top_k
    telemetry = TelemetryCollector()

    embedder = None
    if mode is not SearchMode.BM25:
        if config.has_api_key:
            embedder = _make_embedder(config, telemetry, cache_queries=True)
        else:
            print(
                "Note: OPENROUTER_API_KEY is not set; semantic ranking is unavailable",
                file=sys.stderr,
            )

    searcher = Searcher.from_index_dir(
        config.index_dir,
        embedder=embedder,
        rrf_k=config.rrf_k,
        tag_overfetch_factor=config.tag_overfetch_factor,
    )
    if mode is not SearchMode.BM25 and not searcher.has_vector_index():
        print(
            "Note: the index has no embeddings; rebuild with --with-embeddings for semantic search",
            file=sys.stderr,
        )

    results = searcher.search(args.query, mode, top_k, args.tag)
    for position, result in enumerate(results, start=1):
        document = searcher.get_document(result.doc_id)
        if args.json:
            payload: dict[str, Any] = {"doc_id": result.doc_id, "score": result.score}
            if document is not None:
                payload.update(document.to_dict())
            print(json.dumps(payload, ensure_ascii=False))
        elif document is not None:
            print(f"{position}. [{result.score:.4f}] {_format_document(document)}")
        else:
            print(f"{position}. [{result.score:.4f}] {result.doc_id}")

    if not results and not args.json:
        print("No results.", file=sys.stderr)
    _log_telemetry(telemetry)
    return 0


def _run_tags(args: argparse.Namespace) -> int:
    config = load_config(index_dir=args.index_dir)
    searcher = Searcher.from_index_dir(config.index_dir)
    for tag, count in searcher.tag_counts().items():
        print(f"{tag}\t{count}")
    return 0


def _run_recent(args: argparse.Namespace) -> int:
    config = load_config(index_dir=args.index_dir)
    searcher = Searcher.from_index_dir(config.index_dir)
    for document in searcher.get_recent(args.limit):
        print(_format_document(document))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    commands: dict[str, Callable[[argparse.Namespace], int]] = {
        "init": _run_init,
        "build": _run_build,
        "search": _run_search,
        "tags": _run_tags,
        "recent": _run_recent,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.error("Unknown command")
        return 1

    try:
        return handler(args)
    except (DigragError, ClientError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
