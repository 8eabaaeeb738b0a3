"""
minirag - Centralized Configuration
====================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``OPENAI_API_KEY`` and ``GOOGLE_API_KEY`` are typed as ``SecretStr``.
  Both are optional at load time so the package (and its tests) import
  without credentials; the provider that needs a key raises
  ``ConfigurationError`` on first use when it is missing.  The raw value
  is never exposed in repr, logs, or tracebacks.

Paths
-----
All filesystem paths are ``Path.resolve()``-d at class level so they
work identically on Windows, WSL, and Linux.

Concurrency
-----------
``MAX_WORKERS`` bounds how many documents the bulk ingestor embeds at
the same time (provider calls are I/O-bound).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).

    Attributes
    ----------
    ENV : Literal["dev", "prod"]
        Environment mode controlling logging verbosity.
    LOG_LEVEL : Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None
        Explicit log level; overrides the level derived from ``ENV``.
    VECTOR_STORE_DIR : Path
        Directory holding the JSON vector file.
    VECTOR_STORE_FILENAME : str
        File name of the JSON vector file inside ``VECTOR_STORE_DIR``.
    PROVIDER : Literal["openai", "gemini"]
        Backend used for both embeddings and answer generation.
    OPENAI_API_KEY : SecretStr | None
        Bearer token for the OpenAI-compatible endpoint.
    OPENAI_BASE_URL : str
        Base URL of the OpenAI-compatible endpoint.
    EMBEDDING_MODEL / LLM_MODEL : str
        Model identifiers for the ``openai`` backend.
    GOOGLE_API_KEY : SecretStr | None
        API key for Google AI Studio (Gemini).
    GEMINI_EMBEDDING_MODEL / GEMINI_LLM_MODEL : str
        Model identifiers for the ``gemini`` backend.
    LLM_TEMPERATURE : float
        Sampling temperature for answer generation.
    LLM_MAX_TOKENS : int
        Output cap for answer generation.
    PROVIDER_TIMEOUT_SECONDS : float
        Per-request timeout handed to the provider clients.
    DEFAULT_TOP_K : int
        Number of documents used as context when the caller gives none.
    MAX_WORKERS : int
        Concurrent embeddings during bulk ingestion.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    DATA_RAW_DIR: Path = BASE_DIR / "data" / "raw"
    VECTOR_STORE_DIR: Path = BASE_DIR / "data"
    VECTOR_STORE_FILENAME: str = "vectors.json"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None

    # ── Provider Selection ─────────────────────────────────────────────
    PROVIDER: Literal["openai", "gemini"] = "openai"

    # ── OpenAI-compatible backend ──────────────────────────────────────
    OPENAI_API_KEY: SecretStr | None = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    LLM_MODEL: str = "gpt-4o-mini"

    # ── Gemini backend ─────────────────────────────────────────────────
    GOOGLE_API_KEY: SecretStr | None = None
    GEMINI_EMBEDDING_MODEL: str = "gemini-embedding-001"
    GEMINI_LLM_MODEL: str = "gemini-2.0-flash"

    # ── Generation Parameters ──────────────────────────────────────────
    LLM_TEMPERATURE: float = 0.2
    LLM_MAX_TOKENS: int = 700
    PROVIDER_TIMEOUT_SECONDS: float = 60.0

    # ── Retrieval ──────────────────────────────────────────────────────
    DEFAULT_TOP_K: int = 1

    # ── Concurrency ────────────────────────────────────────────────────
    MAX_WORKERS: int = 4

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("LLM_TEMPERATURE")
    @classmethod
    def _temperature_range(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"LLM_TEMPERATURE must be 0–2, got {v}")
        return v


    @field_validator("LLM_MAX_TOKENS", "DEFAULT_TOP_K")
    @classmethod
    def _positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v


    @field_validator("PROVIDER_TIMEOUT_SECONDS")
    @classmethod
    def _timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"PROVIDER_TIMEOUT_SECONDS must be > 0, got {v}")
        return v


    @field_validator("MAX_WORKERS")
    @classmethod
    def _workers_range(cls, v: int) -> int:
        if not 1 <= v <= 16:
            raise ValueError(f"MAX_WORKERS must be 1–16, got {v}")
        return v

    # ── Derived Paths ──────────────────────────────────────────────────

    @property
    def vector_store_path(self) -> Path:
        """Absolute path of the JSON vector file."""
        return self.VECTOR_STORE_DIR / self.VECTOR_STORE_FILENAME

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from minirag.config.settings import settings
settings = Settings()
