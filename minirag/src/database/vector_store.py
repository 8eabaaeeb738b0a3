"""
minirag - JsonFileVectorStore
==============================
Durable, thread-safe keyed collection of ``(id, text, vector)`` records
with exact (brute-force) cosine-similarity search:
  • Upsert with write-through persistence to a single JSON file
  • Snapshot enumeration decoupled from live mutation
  • Top-K search, descending by score, ties kept in insertion order

Design decisions:
  • **Two locks** — ``_records_lock`` guards the in-memory map and is
    held only to mutate or copy it; ``_persist_lock`` serialises the
    physical write so only one write to the file is ever in flight.
    Searches never wait on disk I/O.
  • **Atomic replace** — the full set is written to ``<file>.tmp``,
    fsynced, then ``os.replace``-d over the canonical file.  A crash
    mid-write leaves the previous file intact.
  • **Forgiving load** — a missing or malformed file yields an empty
    store; the problem is logged, never raised.
  • **Exact search only** — every record is scored, which suits small
    corpora.  There is no approximate index.

File format::

    [
      {"id": "a", "text": "Paris is the capital of France.", "vector": [0.1, ...]},
      ...
    ]

Usage:
    from minirag.src.database.vector_store import JsonFileVectorStore
    store = JsonFileVectorStore()
    store.upsert("a", "Paris is the capital of France.", [0.1, 0.9])
    hits = store.search([0.1, 0.8], top_k=3)
"""

from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

import numpy as np
from pydantic import AliasChoices, BaseModel, Field, TypeAdapter, ValidationError

from minirag.config.settings import settings
from minirag.src.core.errors import MalformedDataError
from minirag.src.utils.logger import get_logger

logger = get_logger(__name__)

# Score given to a record whose vector cannot be compared with the query
# (length mismatch, NaN or infinite components)
MISMATCH_SCORE = -1.0


# ── Data Model ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class VectorRecord:
    """A stored document: application id, original text, embedding."""

    id: str
    text: str
    vector: tuple[float, ...]


@dataclass(frozen=True)
class SearchHit:
    """A record paired with its cosine similarity to the query."""

    record: VectorRecord
    score: float


# ── Store Protocol ─────────────────────────────────────────────────────

@runtime_checkable
class VectorStore(Protocol):
    """Structural type for anything the ``RAGManager`` can index into."""

    def upsert(self, record_id: str, text: str, vector: Sequence[float]) -> None: ...

    def all(self) -> list[VectorRecord]: ...

    def search(self, query: Sequence[float], top_k: int = 3) -> list[SearchHit]: ...

    def count(self) -> int: ...


# ── On-disk Schema ─────────────────────────────────────────────────────

class _StoredRecord(BaseModel):
    """One element of the JSON array; accepts camelCase and PascalCase keys."""

    id: str = Field(validation_alias=AliasChoices("id", "Id"))
    text: str | None = Field(default=None, validation_alias=AliasChoices("text", "Text"))
    vector: list[float] | None = Field(default=None, validation_alias=AliasChoices("vector", "Vector"))


_PAYLOAD_ADAPTER: TypeAdapter[list[_StoredRecord] | None] = TypeAdapter(list[_StoredRecord] | None)


# ── Similarity ─────────────────────────────────────────────────────────

def to_float32(vector: Sequence[float]) -> tuple[float, ...]:
    """Round every component through float32 and freeze the result."""
    return tuple(np.asarray(vector, dtype=np.float32).reshape(-1).tolist())


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity ``dot(a, b) / (|a| · |b|)`` in float64.

    Returns ``MISMATCH_SCORE`` when the lengths differ or either vector
    holds a NaN/infinite component, and ``0.0`` when either vector has
    zero norm, so ordering stays total.  The result is clamped to
    ``[-1, 1]`` to absorb rounding.
    """
    if len(a) != len(b):
        return MISMATCH_SCORE

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if not (np.isfinite(va).all() and np.isfinite(vb).all()):
        return MISMATCH_SCORE

    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0

    score = float(np.dot(va, vb)) / denom
    # Overflowing norms end up here as inf/nan
    if not np.isfinite(score):
        return MISMATCH_SCORE
    return max(-1.0, min(1.0, score))


def is_finite_vector(vector: Sequence[float]) -> bool:
    """True when every component is a finite number."""
    return bool(np.isfinite(np.asarray(vector, dtype=np.float64)).all())


# ── JSON-file Implementation ───────────────────────────────────────────

class JsonFileVectorStore:
    """
    Vector store backed by one JSON file, fully held in memory.

    Parameters
    ----------
    path
        Location of the JSON file.  Defaults to
        ``settings.VECTOR_STORE_DIR / settings.VECTOR_STORE_FILENAME``.
        The parent directory is created if missing.
    """

    __slots__ = ("_path", "_tmp_path", "_records", "_records_lock", "_persist_lock")

    def __init__(self, path: str | Path | None = None) -> None:
        self._path: Path = Path(path) if path is not None else settings.vector_store_path
        self._tmp_path: Path = self._path.with_name(self._path.name + ".tmp")
        self._records: dict[str, VectorRecord] = {}
        self._records_lock = threading.Lock()
        self._persist_lock = threading.Lock()

        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._load_from_disk()

    @property
    def path(self) -> Path:
        return self._path

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC API
    # ══════════════════════════════════════════════════════════════════

    def upsert(self, record_id: str, text: str, vector: Sequence[float]) -> None:
        """
        Insert or overwrite the record stored under *record_id*, then
        persist the whole set before returning.

        An overwritten record keeps its original enumeration position.

        Raises
        ------
        OSError
            If the file could not be written.  The in-memory record is
            already updated at that point.
        """
        record = VectorRecord(id=record_id, text=text, vector=to_float32(vector))
        with self._records_lock:
            is_update = record_id in self._records
            self._records[record_id] = record

        logger.debug("[STORE] %s '%s' (dim=%d).", "Updated" if is_update else "Inserted", record_id, len(record.vector))
        self._persist()


    def all(self) -> list[VectorRecord]:
        """Return a snapshot of every record, in insertion order."""
        with self._records_lock:
            return list(self._records.values())


    def count(self) -> int:
        """Return the number of stored records."""
        with self._records_lock:
            return len(self._records)


    def search(self, query: Sequence[float], top_k: int = 3) -> list[SearchHit]:
        """
        Score every record against *query* and return the best *top_k*.

        ``top_k <= 0`` returns nothing; a *top_k* larger than the store
        returns every record.  Equal scores keep insertion order.
        """
        if top_k <= 0:
            return []

        hits = [SearchHit(record=record, score=cosine_similarity(query, record.vector)) for record in self.all()]
        # list.sort is stable, also with reverse=True
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:top_k]

    # ══════════════════════════════════════════════════════════════════
    #  PERSISTENCE
    # ══════════════════════════════════════════════════════════════════

    def _persist(self) -> None:
        """Write the current set to disk via temp file + atomic replace."""
        with self._persist_lock:
            # Snapshot inside the persist lock: the last writer always
            # sees every upsert that finished before it.
            snapshot = self.all()
            # Non-finite vectors are not valid JSON; they persist as empty
            payload = [{"id": r.id, "text": r.text, "vector": list(r.vector) if is_finite_vector(r.vector) else []} for r in snapshot]

            try:
                with open(self._tmp_path, "w", encoding="utf-8") as fh:
                    json.dump(payload, fh, indent=2, ensure_ascii=False, allow_nan=False)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(self._tmp_path, self._path)
            except OSError as exc:
                logger.error("[STORE] Failed to persist %d record(s) to %s: %s", len(payload), self._path, exc)
                raise

        logger.debug("[STORE] Persisted %d record(s) to %s", len(payload), self._path)


    def _load_from_disk(self) -> None:
        """Populate the store from disk; any problem leaves it empty."""
        if not self._path.exists():
            logger.info("[STORE] No vector file at %s — starting empty.", self._path)
            return

        try:
            stored = self._read_records(self._path)
        except (OSError, MalformedDataError) as exc:
            logger.warning("[STORE] Ignoring unreadable vector file %s: %s", self._path, exc)
            return

        loaded: dict[str, VectorRecord] = {}
        for item in stored:
            vector = item.vector or []
            if not is_finite_vector(vector):
                logger.warning("[STORE] Record '%s' has a non-finite vector; it is kept without one.", item.id)
                vector = []
            loaded[item.id] = VectorRecord(id=item.id, text=item.text or "", vector=to_float32(vector))

        with self._records_lock:
            self._records = loaded
        logger.info("[STORE] Loaded %d record(s) from %s", len(loaded), self._path)


    @staticmethod
    def _read_records(path: Path) -> list[_StoredRecord]:
        """
        Parse the JSON file.

        Raises
        ------
        MalformedDataError
            If the content is not a JSON array of records.
        """
        raw = path.read_bytes()
        try:
            stored = _PAYLOAD_ADAPTER.validate_json(raw)
        except ValidationError as exc:
            raise MalformedDataError(f"{exc.error_count()} validation error(s) in {path.name}") from exc
        return stored or []


    def __repr__(self) -> str:
        return f"JsonFileVectorStore(path='{self._path}', records={self.count()})"


def build_vector_store(backend: str = "json", **kwargs: object) -> VectorStore:
    """
    Factory: create a ``VectorStore`` of the requested type.

    Raises
    ------
    ValueError
        Unknown backend.
    """
    if backend == "json":
        return JsonFileVectorStore(**kwargs)  # type: ignore[arg-type]
    raise ValueError(f"Unknown vector store backend: {backend!r}. Supported: 'json'")
