"""
Extraction pipeline configuration.

All values can be overridden via environment variables prefixed with
``INGEST_`` (e.g. ``INGEST_MAX_CHUNKS=500``).
"""

from __future__ import annotations

from pydantic_settings import BaseSettings


class IngestSettings(BaseSettings):
    """Tuneable knobs for every pipeline stage."""

    # ── PDF parsing / layout ─────────────────────────────────────────────
    max_pages: int = 0  # 0 = unlimited
    row_tolerance: float = 3.0  # fragments closer than this share a row

    # ── Chunking ─────────────────────────────────────────────────────────
    max_chunks: int = 300  # hard budget, spec-priority chunks go first
    min_chunk_length: int = 30  # chars – discard noise

    # ── Embeddings ───────────────────────────────────────────────────────
    embedding_backend: str = "hashing"  # hashing | sentence-transformers | openai
    embedding_dimension: int = 1536  # hashing backend only
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    openai_embedding_model: str = "text-embedding-3-small"
    embedding_batch_size: int = 20

    # ── Retrieval ────────────────────────────────────────────────────────
    top_k: int = 6

    # ── Quality gates ────────────────────────────────────────────────────
    min_confidence: float = 0.5  # inclusive
    require_literal_values: bool = True

    # ── Run control ──────────────────────────────────────────────────────
    chunk_cache_size: int = 8  # documents; 0 disables
    run_timeout_seconds: float = 0.0  # 0 = no timeout

    model_config = {
        "env_prefix": "INGEST_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


ingest_settings = IngestSettings()
