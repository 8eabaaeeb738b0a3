"""
minirag - RAG Engine
=====================
Orchestrates the Retrieval-Augmented Generation pipeline on top of an
``EmbeddingProvider``, a ``VectorStore`` and a ``GenerationProvider``.

Architecture
------------
``ContextEntry``
    One ranked hit as rendered into the prompt: rank (1-based), id,
    full text, and text trimmed to the per-document budget.

``RAGManager``
    Stateless pipeline orchestrator.  ``index`` flow:
        1. Embed the text.
        2. Upsert into the store (only after a successful embed).
    ``ask`` flow:
        1. Blank question → fixed guidance (no I/O).
        2. Empty store → fixed guidance (no provider call).
        3. Clamp top_k to [1, record count].
        4. Embed question → search.
        5. Render citation list + context block.
        6. Build system + user prompt.
        7. Call the generator once.
        8. Generation failure → fall back to the raw context.

Concurrency
-----------
No request-scoped state lives on the manager, so concurrent ``index``
and ``ask`` calls interleave freely.  The store serialises its own
writes.  Cancellation propagates at every ``await``; a cancelled embed
never reaches the upsert.

Usage:
    from minirag.src.core.rag_engine import RAGManager
    rag = RAGManager(embedder, store, generator)
    await rag.index("a", "Paris is the capital of France.")
    answer = await rag.ask("What is the capital of France?")
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

from minirag.config.prompt_templates import ANSWER_TEMPLATE, EMPTY_QUESTION_RESPONSE, GENERATION_FAILURE_TEMPLATE, NO_DATA_RESPONSE, SYSTEM_PROMPT, USER_PROMPT_TEMPLATE
from minirag.src.core.providers import EmbeddingProvider, GenerationProvider
from minirag.src.database.vector_store import SearchHit, VectorStore
from minirag.src.utils.logger import get_logger
from minirag.src.utils.text_utils import snippet, trim_to

logger = get_logger(__name__)

# ── Output limits ──────────────────────────────────────────────────────
MAX_CONTEXT_CHARS = 2000
MIN_DOC_CHARS = 200
SNIPPET_CHARS = 160

CONTEXT_SEPARATOR = "\n---\n"


@dataclass(frozen=True)
class ContextEntry:
    """A retrieved document as it appears in the prompt."""

    rank: int
    id: str
    text: str
    truncated_text: str


class RAGManager:
    """
    Indexes documents and answers questions from them.

    Parameters
    ----------
    embedder
        ``EmbeddingProvider`` used for both documents and questions.
    vector_store
        ``VectorStore`` holding the indexed documents.
    generator
        ``GenerationProvider`` that synthesises the final answer.
    """

    __slots__ = ("_embedder", "_store", "_generator")

    def __init__(self, embedder: EmbeddingProvider, vector_store: VectorStore, generator: GenerationProvider) -> None:
        self._embedder = embedder
        self._store = vector_store
        self._generator = generator

    # ══════════════════════════════════════════════════════════════════
    #  INDEXING
    # ══════════════════════════════════════════════════════════════════

    async def index(self, doc_id: str, text: str) -> None:
        """
        Embed *text* and upsert it under *doc_id*.

        All-or-nothing: an embedding failure (or cancellation) propagates
        before the store is touched.  The caller validates that *doc_id*
        and *text* are non-blank.
        """
        t_start = time.perf_counter()
        vector = await self._embedder.embed(text)
        embed_ms = (time.perf_counter() - t_start) * 1000

        # File I/O runs off the event loop
        await asyncio.to_thread(self._store.upsert, doc_id, text, vector)
        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] Indexed '%s' (%d chars, dim=%d) — embed: %.1fms, total: %.1fms", doc_id, len(text), len(vector), embed_ms, total_ms)

    # ══════════════════════════════════════════════════════════════════
    #  ANSWERING
    # ══════════════════════════════════════════════════════════════════

    async def ask(self, question: str, top_k: int = 1) -> str:
        """
        Answer *question* from the *top_k* most similar documents.

        Returns guidance text for a blank question or an empty store,
        ``"Answer: … Sources: …"`` on success, and a fallback carrying
        the raw context when generation fails.  Embedding failures
        propagate; generation failures never do.
        """
        if not question or not question.strip():
            return EMPTY_QUESTION_RESPONSE

        total = self._store.count()
        if total == 0:
            logger.info("[RAG] Store is empty — nothing to retrieve.")
            return NO_DATA_RESPONSE

        # Best-effort clamp: the store may grow before the search runs
        top_k = max(1, min(top_k, total))

        t_start = time.perf_counter()
        query_vector = await self._embedder.embed(question)
        hits = self._store.search(query_vector, top_k)
        search_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] Retrieved %d/%d hit(s) (top_k=%d) in %.1fms", len(hits), total, top_k, search_ms)

        if not hits:
            return NO_DATA_RESPONSE

        entries = self.build_context(hits)
        citations = self.format_citations(entries)
        context = self.format_context(entries)
        user_prompt = USER_PROMPT_TEMPLATE.format(question=question, citations=citations, context=context)

        t_llm = time.perf_counter()
        try:
            generated = await self._generator.generate(SYSTEM_PROMPT, user_prompt)
        except Exception as exc:
            logger.warning("[RAG] Generation failed (%s) — returning retrieved context instead.", type(exc).__name__, exc_info=True)
            return GENERATION_FAILURE_TEMPLATE.format(category=type(exc).__name__, context=context)

        llm_ms = (time.perf_counter() - t_llm) * 1000
        logger.info("[RAG] LLM response: %.1fms (%d chars)", llm_ms, len(generated))
        return ANSWER_TEMPLATE.format(answer=generated, citations=citations)

    # ══════════════════════════════════════════════════════════════════
    #  CONTEXT RENDERING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def build_context(hits: list[SearchHit]) -> list[ContextEntry]:
        """
        Rank hits from 1 and trim each text to its share of the budget.

        The per-document budget is ``max(MIN_DOC_CHARS,
        MAX_CONTEXT_CHARS // len(hits))``: more hits, smaller shares,
        never below the floor.
        """
        if not hits:
            return []
        per_doc_limit = max(MIN_DOC_CHARS, MAX_CONTEXT_CHARS // len(hits))
        return [
            ContextEntry(rank=rank, id=hit.record.id, text=hit.record.text, truncated_text=trim_to(hit.record.text, per_doc_limit))
            for rank, hit in enumerate(hits, 1)
        ]


    @staticmethod
    def format_citations(entries: list[ContextEntry]) -> str:
        """One ``- [rank] id: snippet`` line per entry."""
        return "\n".join(f"- [{e.rank}] {e.id}: {snippet(e.text, SNIPPET_CHARS)}" for e in entries)


    @staticmethod
    def format_context(entries: list[ContextEntry]) -> str:
        """``[rank] (id)`` headers over trimmed texts, separated by ``---``."""
        return CONTEXT_SEPARATOR.join(f"[{e.rank}] ({e.id})\n{e.truncated_text}" for e in entries)
