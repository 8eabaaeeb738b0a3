"""
minirag - Embedding & Generation Providers
===========================================
Capability interfaces for the two external services the pipeline
depends on, plus LangChain-backed implementations.

``EmbeddingProvider``
    ``await embed(text) -> list[float]``
``GenerationProvider``
    ``await generate(system_prompt, user_prompt) -> str``

Any object with a matching coroutine satisfies the protocol, so a local
model or another vendor can be swapped in without touching the
``RAGManager``.

Backends (``settings.PROVIDER``):
  • ``"openai"`` — ``OpenAIEmbeddings`` / ``ChatOpenAI`` against any
    OpenAI-compatible base URL, bearer-token authenticated.
  • ``"gemini"`` — ``GoogleGenerativeAIEmbeddings`` /
    ``ChatGoogleGenerativeAI``.

Failure contract:
  • No credential → ``ConfigurationError`` on the first call (the
    LangChain client is built lazily, so the app starts without keys).
  • Client/network failure → ``TransportError`` (original chained).
  • Unexpected payload → ``MalformedResponseError``.
  • Cancellation is never wrapped.

Usage:
    from minirag.src.core.providers import build_embedding_provider, build_generation_provider
    embedder = build_embedding_provider()
    vector = await embedder.embed("Paris is the capital of France.")
"""

from __future__ import annotations

import numbers
import threading
from typing import Callable, Protocol, runtime_checkable

from langchain_core.embeddings import Embeddings
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from minirag.config.settings import Settings, settings as default_settings
from minirag.src.core.errors import ConfigurationError, MalformedResponseError, TransportError
from minirag.src.utils.logger import get_logger

logger = get_logger(__name__)

EmbeddingsFactory = Callable[[], Embeddings]
ChatModelFactory = Callable[[], BaseChatModel]


# ══════════════════════════════════════════════════════════════════════
#  CAPABILITY PROTOCOLS
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that can turn a text into a dense vector."""

    async def embed(self, text: str) -> list[float]: ...


@runtime_checkable
class GenerationProvider(Protocol):
    """Anything that can answer a user prompt under a system instruction."""

    async def generate(self, system_prompt: str, user_prompt: str) -> str: ...


# ══════════════════════════════════════════════════════════════════════
#  LANGCHAIN ADAPTERS
# ══════════════════════════════════════════════════════════════════════


class _LazyClient:
    """Builds a LangChain client once, on first use, from a factory."""

    __slots__ = ("_factory", "_client", "_lock")

    def __init__(self, factory: Callable[[], object]) -> None:
        self._factory = factory
        self._client: object | None = None
        self._lock = threading.Lock()

    def get(self) -> object:
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = self._factory()
        return self._client


class LangChainEmbeddingProvider:
    """
    ``EmbeddingProvider`` over a LangChain ``Embeddings`` model.

    Parameters
    ----------
    factory
        Zero-argument callable returning the ``Embeddings`` instance.
        May raise ``ConfigurationError``; it is retried on the next call.
    name
        Label used in logs and error messages.
    """

    __slots__ = ("_client", "_name")

    def __init__(self, factory: EmbeddingsFactory, name: str = "embeddings") -> None:
        self._client = _LazyClient(factory)
        self._name = name


    async def embed(self, text: str) -> list[float]:
        client: Embeddings = self._client.get()  # type: ignore[assignment]
        try:
            vector = await client.aembed_query(text)
        except Exception as exc:
            logger.error("[PROVIDER] %s embedding call failed: %s", self._name, exc)
            raise TransportError(f"{self._name} embedding request failed: {exc}") from exc

        if not isinstance(vector, (list, tuple)) or not vector or not all(isinstance(v, numbers.Real) for v in vector):
            raise MalformedResponseError(f"{self._name} returned no usable embedding vector")
        return [float(v) for v in vector]


    def __repr__(self) -> str:
        return f"LangChainEmbeddingProvider(name='{self._name}')"


class LangChainGenerationProvider:
    """
    ``GenerationProvider`` over a LangChain chat model.

    Sends one ``SystemMessage`` and one ``HumanMessage`` and returns the
    reply's text content.  No retries: one attempt per call.
    """

    __slots__ = ("_client", "_name")

    def __init__(self, factory: ChatModelFactory, name: str = "chat") -> None:
        self._client = _LazyClient(factory)
        self._name = name


    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        client: BaseChatModel = self._client.get()  # type: ignore[assignment]
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        try:
            response = await client.ainvoke(messages)
        except Exception as exc:
            logger.error("[PROVIDER] %s generation call failed: %s", self._name, exc)
            raise TransportError(f"{self._name} generation request failed: {exc}") from exc

        content = getattr(response, "content", None)
        if not isinstance(content, str):
            raise MalformedResponseError(f"{self._name} returned a non-text completion ({type(content).__name__})")
        return content


    def __repr__(self) -> str:
        return f"LangChainGenerationProvider(name='{self._name}')"


# ══════════════════════════════════════════════════════════════════════
#  BACKEND FACTORIES
# ══════════════════════════════════════════════════════════════════════


def _require_key(secret: object, env_name: str) -> str:
    """Return the raw key or fail fast with ``ConfigurationError``."""
    value = secret.get_secret_value() if secret is not None else ""  # type: ignore[attr-defined]
    if not value or not value.strip():
        raise ConfigurationError(f"API key is not configured. Set {env_name} in .env or the environment.")
    return value


def _openai_embeddings(cfg: Settings) -> EmbeddingsFactory:
    def factory() -> Embeddings:
        api_key = _require_key(cfg.OPENAI_API_KEY, "OPENAI_API_KEY")
        from langchain_openai import OpenAIEmbeddings

        logger.info("Embedding model initialised: %s (%s)", cfg.EMBEDDING_MODEL, cfg.OPENAI_BASE_URL)
        # Plain strings only: OpenAI-compatible servers rarely accept token arrays
        return OpenAIEmbeddings(model=cfg.EMBEDDING_MODEL, api_key=api_key, base_url=cfg.OPENAI_BASE_URL, timeout=cfg.PROVIDER_TIMEOUT_SECONDS, max_retries=0, check_embedding_ctx_length=False)

    return factory


def _openai_chat(cfg: Settings) -> ChatModelFactory:
    def factory() -> BaseChatModel:
        api_key = _require_key(cfg.OPENAI_API_KEY, "OPENAI_API_KEY")
        from langchain_openai import ChatOpenAI

        logger.info("LLM initialised: %s (temperature=%.1f, max_tokens=%d)", cfg.LLM_MODEL, cfg.LLM_TEMPERATURE, cfg.LLM_MAX_TOKENS)
        return ChatOpenAI(model=cfg.LLM_MODEL, api_key=api_key, base_url=cfg.OPENAI_BASE_URL, temperature=cfg.LLM_TEMPERATURE, max_tokens=cfg.LLM_MAX_TOKENS, timeout=cfg.PROVIDER_TIMEOUT_SECONDS, max_retries=0)

    return factory


def _gemini_embeddings(cfg: Settings) -> EmbeddingsFactory:
    def factory() -> Embeddings:
        api_key = _require_key(cfg.GOOGLE_API_KEY, "GOOGLE_API_KEY")
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        logger.info("Embedding model initialised: %s", cfg.GEMINI_EMBEDDING_MODEL)
        return GoogleGenerativeAIEmbeddings(model=cfg.GEMINI_EMBEDDING_MODEL, google_api_key=api_key)

    return factory


def _gemini_chat(cfg: Settings) -> ChatModelFactory:
    def factory() -> BaseChatModel:
        api_key = _require_key(cfg.GOOGLE_API_KEY, "GOOGLE_API_KEY")
        from langchain_google_genai import ChatGoogleGenerativeAI

        logger.info("LLM initialised: %s (temperature=%.1f, max_tokens=%d)", cfg.GEMINI_LLM_MODEL, cfg.LLM_TEMPERATURE, cfg.LLM_MAX_TOKENS)
        return ChatGoogleGenerativeAI(model=cfg.GEMINI_LLM_MODEL, temperature=cfg.LLM_TEMPERATURE, max_output_tokens=cfg.LLM_MAX_TOKENS, timeout=cfg.PROVIDER_TIMEOUT_SECONDS, max_retries=0, google_api_key=api_key)

    return factory


def build_embedding_provider(cfg: Settings | None = None) -> EmbeddingProvider:
    """
    Factory: the ``EmbeddingProvider`` for ``cfg.PROVIDER``.

    Raises
    ------
    ValueError
        Unknown backend.
    """
    cfg = cfg or default_settings
    if cfg.PROVIDER == "openai":
        return LangChainEmbeddingProvider(_openai_embeddings(cfg), name="openai")
    if cfg.PROVIDER == "gemini":
        return LangChainEmbeddingProvider(_gemini_embeddings(cfg), name="gemini")
    raise ValueError(f"Unknown provider backend: {cfg.PROVIDER!r}. Supported: 'openai', 'gemini'")


def build_generation_provider(cfg: Settings | None = None) -> GenerationProvider:
    """
    Factory: the ``GenerationProvider`` for ``cfg.PROVIDER``.

    Raises
    ------
    ValueError
        Unknown backend.
    """
    cfg = cfg or default_settings
    if cfg.PROVIDER == "openai":
        return LangChainGenerationProvider(_openai_chat(cfg), name="openai")
    if cfg.PROVIDER == "gemini":
        return LangChainGenerationProvider(_gemini_chat(cfg), name="gemini")
    raise ValueError(f"Unknown provider backend: {cfg.PROVIDER!r}. Supported: 'openai', 'gemini'")
