"""
Shared test fixtures: in-process providers and a temp-dir vector store.

Nothing here touches the network.  ``FakeEmbedder`` maps known texts to
fixed vectors; ``FakeGenerator`` returns a canned reply or raises.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from minirag.src.core.rag_engine import RAGManager
from minirag.src.database.vector_store import JsonFileVectorStore

PARIS = "Paris is the capital of France."
TOKYO = "Tokyo is the capital of Japan."
FRANCE_QUESTION = "What is the capital of France?"


class FakeEmbedder:
    """EmbeddingProvider returning preset vectors and recording every call."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, default: list[float] | None = None, error: Exception | None = None) -> None:
        self.vectors = vectors or {}
        self.default = default or [1.0, 1.0]
        self.error = error
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vectors.get(text, self.default))


class BlockingEmbedder:
    """EmbeddingProvider that never returns, so callers can cancel it."""

    def __init__(self) -> None:
        self.started = asyncio.Event()

    async def embed(self, text: str) -> list[float]:
        self.started.set()
        await asyncio.Event().wait()
        return [0.0]


class FakeGenerator:
    """GenerationProvider returning a canned reply or raising *error*."""

    def __init__(self, reply: str = "Paris [1].", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "store" / "vectors.json"


@pytest.fixture
def store(store_path: Path) -> JsonFileVectorStore:
    return JsonFileVectorStore(store_path)


@pytest.fixture
def capitals_embedder() -> FakeEmbedder:
    return FakeEmbedder(vectors={PARIS: [1.0, 0.0], TOKYO: [0.0, 1.0], FRANCE_QUESTION: [0.9, 0.1]})


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def rag(capitals_embedder: FakeEmbedder, store: JsonFileVectorStore, generator: FakeGenerator) -> RAGManager:
    return RAGManager(capitals_embedder, store, generator)
