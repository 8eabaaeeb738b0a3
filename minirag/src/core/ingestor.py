"""
minirag - DocumentIngestor
===========================
Bulk-indexes a directory of text files through the ``RAGManager``:
read → clean → embed → store, one document per file.

Key design decisions:
    • **Dependency Injection** – receives an initialised ``RAGManager``.
    • **One file, one document** – the file name is the document id, so
      re-ingesting an edited file overwrites its previous vector.
    • **Concurrency** – files are embedded concurrently, bounded by an
      ``asyncio.Semaphore`` of ``max_workers`` (provider calls are
      I/O-bound).
    • **Caching** – MD5-based file hashing skips unchanged files.
    • **Isolation** – a failing file is logged and counted; the run
      continues with the rest.

Usage:
    from minirag.src.core.ingestor import DocumentIngestor
    ingestor = DocumentIngestor(rag, source_dir=Path("docs"))
    summary  = await ingestor.run()
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import time
from pathlib import Path
from typing import Any

from minirag.config.settings import settings
from minirag.src.core.rag_engine import RAGManager
from minirag.src.utils.logger import get_logger
from minirag.src.utils.text_utils import clean_text

logger = get_logger(__name__)

# File extensions the ingestor knows how to read
_SUPPORTED_EXTENSIONS = {".txt", ".md"}

HASH_CACHE_FILENAME = "ingestion_hashes.json"

# Outcome markers returned by _ingest_file
_INDEXED = "indexed"
_SKIPPED = "skipped"
_FAILED = "failed"


class DocumentIngestor:
    """
    End-to-end directory ingestion.

    Parameters
    ----------
    rag
        The ``RAGManager`` whose ``index`` stores each document.
    source_dir
        Directory to scan.  Defaults to ``settings.DATA_RAW_DIR``.
    max_workers
        Maximum number of files embedded at the same time.
    hash_cache_path
        Location of the MD5 cache.  Defaults to a file next to the
        vector store.
    """

    def __init__(self, rag: RAGManager, source_dir: Path | None = None, max_workers: int | None = None, hash_cache_path: Path | None = None) -> None:
        self._rag = rag
        self._source_dir = Path(source_dir or settings.DATA_RAW_DIR)
        self._max_workers = max_workers or settings.MAX_WORKERS
        self._hash_cache_path: Path = hash_cache_path or settings.VECTOR_STORE_DIR / HASH_CACHE_FILENAME
        self._hash_cache: dict[str, str] = self._load_hash_cache()

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    async def run(self) -> dict[str, Any]:
        """
        Ingest every supported file of the source directory.

        Returns
        -------
        dict
            Execution summary with keys ``total_files``,
            ``files_indexed``, ``files_skipped``, ``files_failed``,
            ``elapsed_seconds``.
        """
        t_start = time.perf_counter()
        source = self._source_dir

        if not source.is_dir():
            logger.warning("[INGEST] Source directory does not exist: %s", source)
            return self._summary(0, 0, 0, 0, time.perf_counter() - t_start)

        files = sorted(f for f in source.iterdir() if f.is_file() and f.suffix.lower() in _SUPPORTED_EXTENSIONS)
        if not files:
            logger.warning("[INGEST] No supported files found in %s", source)
            return self._summary(0, 0, 0, 0, time.perf_counter() - t_start)

        logger.info("[INGEST] Starting — %d file(s) found in %s (workers=%d)", len(files), source, self._max_workers)

        semaphore = asyncio.Semaphore(self._max_workers)

        async def bounded(filepath: Path) -> str:
            async with semaphore:
                return await self._ingest_file(filepath)

        outcomes = await asyncio.gather(*(bounded(fp) for fp in files))

        self._save_hash_cache()

        elapsed = time.perf_counter() - t_start
        summary = self._summary(len(files), outcomes.count(_INDEXED), outcomes.count(_SKIPPED), outcomes.count(_FAILED), elapsed)
        logger.info("[INGEST] Complete — %d indexed, %d skipped, %d failed in %.2fs.", summary["files_indexed"], summary["files_skipped"], summary["files_failed"], elapsed)
        return summary


    def clear_cache(self) -> None:
        """Forget every cached hash so the next run re-indexes all files."""
        self._hash_cache = {}
        if self._hash_cache_path.exists():
            self._hash_cache_path.unlink()
            logger.warning("[INGEST] Hash cache deleted: %s", self._hash_cache_path)

    # ══════════════════════════════════════════════════════════════════
    #  PER-FILE PROCESSING
    # ══════════════════════════════════════════════════════════════════

    async def _ingest_file(self, filepath: Path) -> str:
        """Read, clean and index a single file; return its outcome marker."""
        try:
            file_hash = self._compute_file_hash(filepath)
            if self._hash_cache.get(filepath.name) == file_hash:
                logger.info("[INGEST] CACHE_HIT — Skipping unchanged file: %s", filepath.name)
                return _SKIPPED

            text = clean_text(self._read_file(filepath))
            if not text:
                logger.warning("[INGEST] Skipping empty file: %s", filepath.name)
                return _SKIPPED

            await self._rag.index(filepath.name, text)
        except Exception:
            logger.exception("[INGEST] Failed to ingest file: %s", filepath.name)
            return _FAILED

        self._hash_cache[filepath.name] = file_hash
        return _INDEXED

    # ══════════════════════════════════════════════════════════════════
    #  FILE READING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _read_file(filepath: Path) -> str:
        """Read a text file as UTF-8, falling back to latin-1."""
        try:
            return filepath.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug("[INGEST] %s is not UTF-8 — retrying as latin-1.", filepath.name)
            return filepath.read_text(encoding="latin-1")

    # ══════════════════════════════════════════════════════════════════
    #  MD5 CACHING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _compute_file_hash(filepath: Path) -> str:
        """Return the MD5 hex digest of a file's contents."""
        hasher = hashlib.md5()
        with open(filepath, "rb") as f:
            for block in iter(lambda: f.read(8192), b""):
                hasher.update(block)
        return hasher.hexdigest()

    def _load_hash_cache(self) -> dict[str, str]:
        """Load the hash cache from disk (or return empty dict)."""
        if self._hash_cache_path.exists():
            try:
                return json.loads(self._hash_cache_path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError):
                logger.warning("[INGEST] Corrupt hash cache — starting fresh.")
        return {}

    def _save_hash_cache(self) -> None:
        """Persist the hash cache to disk."""
        self._hash_cache_path.parent.mkdir(parents=True, exist_ok=True)
        self._hash_cache_path.write_text(json.dumps(self._hash_cache, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("[INGEST] Hash cache saved to %s", self._hash_cache_path)

    # ── Summary helper ─────────────────────────────────────────────────

    @staticmethod
    def _summary(total: int, indexed: int, skipped: int, failed: int, elapsed: float) -> dict[str, Any]:
        return {
            "total_files": total,
            "files_indexed": indexed,
            "files_skipped": skipped,
            "files_failed": failed,
            "elapsed_seconds": round(elapsed, 2),
        }
