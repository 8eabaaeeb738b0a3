"""
minirag - Command-line Interface
=================================
CLI entry point over the ``RAGManager``:
    index   Embed one document and store it under an id.
    ingest  Bulk-index every .txt / .md file of a directory.
    ask     Answer a question from the indexed documents.
    stats   Print the store location and record count.

Input validation mirrors an HTTP controller: blank ids, texts and
questions are rejected with exit code 2 before any provider call.
A configuration error at startup (bad ``.env`` value) exits with 1.

Usage:
    minirag index --id paris --text "Paris is the capital of France."
    minirag index --id report --file notes/report.txt
    minirag ingest --source-dir notes/ --purge-cache
    minirag ask "What is the capital of France?" --top-k 2
    minirag stats
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

_EXIT_CONFIG = 1
_EXIT_USAGE = 2


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="minirag", description="minirag — index documents and ask questions over them.")
    parser.add_argument("--store", type=Path, default=None, help="Path of the JSON vector file (defaults to settings).")
    sub = parser.add_subparsers(dest="command", required=True)

    index = sub.add_parser("index", help="Embed and store one document.")
    index.add_argument("--id", dest="doc_id", required=True, help="Document id (overwrites an existing one).")
    source = index.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", help="Document text.")
    source.add_argument("--file", type=Path, help="Read the document text from a file.")

    ingest = sub.add_parser("ingest", help="Index every .txt/.md file of a directory.")
    ingest.add_argument("--source-dir", type=Path, default=None, help="Directory to scan (defaults to settings.DATA_RAW_DIR).")
    ingest.add_argument("--purge-cache", action="store_true", default=False, help="Clear the hash cache and re-index every file.")

    ask = sub.add_parser("ask", help="Answer a question from the indexed documents.")
    ask.add_argument("question", help="The question to answer.")
    ask.add_argument("--top-k", type=int, default=None, help="Number of documents used as context.")

    sub.add_parser("stats", help="Show the store location and size.")
    return parser


def _usage_error(message: str) -> int:
    print(f"[ERROR] {message}", file=sys.stderr)
    return _EXIT_USAGE


# ── Main Orchestration ─────────────────────────────────────────────────

async def _run(args: argparse.Namespace) -> int:
    from minirag.config.settings import settings
    from minirag.src.core.providers import build_embedding_provider, build_generation_provider
    from minirag.src.core.rag_engine import RAGManager
    from minirag.src.database.vector_store import JsonFileVectorStore
    from minirag.src.utils.logger import get_logger

    logger = get_logger(__name__)

    store = JsonFileVectorStore(args.store)
    rag = RAGManager(build_embedding_provider(settings), store, build_generation_provider(settings))

    if args.command == "stats":
        print(f"Store   : {store.path}")
        print(f"Records : {store.count()}")
        print(f"Provider: {settings.PROVIDER}")
        return 0

    if args.command == "index":
        if not args.doc_id.strip():
            return _usage_error("Id and Text are required")
        text = args.text
        if args.file is not None:
            try:
                text = args.file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                return _usage_error(f"Cannot read {args.file}: {exc}")
        if not text or not text.strip():
            return _usage_error("Id and Text are required")
        await rag.index(args.doc_id, text)
        print(f"Indexed: {args.doc_id}")
        return 0

    if args.command == "ingest":
        from minirag.src.core.ingestor import DocumentIngestor

        ingestor = DocumentIngestor(rag, source_dir=args.source_dir, hash_cache_path=store.path.parent / "ingestion_hashes.json")
        if args.purge_cache:
            ingestor.clear_cache()
        summary = await ingestor.run()
        _print_summary(summary)
        return 0 if summary["files_failed"] == 0 else 1

    # ask
    if not args.question.strip():
        return _usage_error("The 'question' parameter is required")
    top_k = args.top_k if args.top_k is not None else settings.DEFAULT_TOP_K
    t_start = time.perf_counter()
    answer = await rag.ask(args.question, top_k=top_k)
    logger.debug("Answered in %.1fms", (time.perf_counter() - t_start) * 1000)
    print(answer)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    # ── Load settings + .env ───────────────────────────────────────────
    try:
        from minirag.config.settings import settings  # noqa: F401
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n", file=sys.stderr)
        print(f"  {exc}\n", file=sys.stderr)
        return _EXIT_CONFIG

    from minirag.src.core.errors import ConfigurationError, TransportError

    try:
        return asyncio.run(_run(args))
    except ConfigurationError as exc:
        print(f"[FATAL] {exc}", file=sys.stderr)
        return _EXIT_CONFIG
    except TransportError as exc:
        print(f"[ERROR] Provider call failed: {exc}", file=sys.stderr)
        return 1


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_summary(summary: dict) -> None:
    print()
    print("=" * 60)
    print("  INGESTION SUMMARY")
    print("-" * 60)
    print(f"  Total files scanned  : {summary['total_files']}")
    print(f"  Files indexed        : {summary['files_indexed']}")
    print(f"  Files skipped (cache): {summary['files_skipped']}")
    print(f"  Files failed         : {summary['files_failed']}")
    print(f"  Elapsed              : {summary['elapsed_seconds']:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())
