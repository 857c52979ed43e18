"""
Embedding providers.

Every provider satisfies the same small interface::

    embed(text)         -> list[float]
    embed_batch(texts)  -> list[list[float]]   # output[i] belongs to texts[i]

Backends
--------
``hashing``               – deterministic character-bigram / word hashing
                            (1536-dim, no model, no network).  Default.
``sentence-transformers`` – local ``all-MiniLM-L6-v2`` (384-dim), lazy-loaded.
``openai``                – hosted ``text-embedding-3-small`` via the
                            embeddings API.  Not guaranteed bit-for-bit
                            deterministic across calls.

The retriever only sees vectors, so any provider plugs in unchanged as long
as one run uses one provider for both chunks and query.
"""

from __future__ import annotations

import asyncio
import logging
import re
import warnings
from typing import Callable, Protocol, Sequence

import numpy as np
import openai

from specrag.config import settings
from specrag.errors import EmbeddingError
from specrag.ingestion.config import ingest_settings
from specrag.ingestion.schemas import Chunk

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    name: str

    def embed(self, text: str) -> list[float]: ...

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]: ...


# ═══════════════════════════════════════════════════════════════════════════
# Deterministic hashing
# ═══════════════════════════════════════════════════════════════════════════

DOMAIN_TERMS = frozenset({
    "torque", "nm", "lb", "ft", "capacity", "pressure", "fluid",
    "bolt", "nut", "spec", "liter", "psi", "clearance",
})
_DOMAIN_WEIGHT = 3.0
_MAX_CHARS = 2000
_WORD = re.compile(r"\b\w+\b")


def _string_hash(word: str) -> int:
    """32-bit signed ``h * 31 + c`` string hash."""
    h = 0
    for ch in word:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h - (1 << 32) if h & 0x80000000 else h


class HashingEmbeddingProvider:
    """Character-frequency embedding.

    No semantic understanding of synonyms ("torque" vs "tightening spec"),
    but queries and manual text share vocabulary (Nm, lb-ft, component
    names) so cosine similarity still ranks well.
    """

    name = "hashing"

    def __init__(self, dimension: int | None = None) -> None:
        self.dimension = dimension or ingest_settings.embedding_dimension

    def embed(self, text: str) -> list[float]:
        dim = self.dimension
        vec = np.zeros(dim, dtype=np.float64)
        normalized = text.lower()[:_MAX_CHARS]

        # Character bigrams
        for a, b in zip(normalized, normalized[1:]):
            vec[(ord(a) * 31 + ord(b)) % dim] += 1.0

        # Word unigrams, domain terms weighted higher
        for word in _WORD.findall(normalized):
            weight = _DOMAIN_WEIGHT if word in DOMAIN_TERMS else 1.0
            vec[abs(_string_hash(word)) % dim] += weight

        norm = float(np.linalg.norm(vec)) or 1.0
        return (vec / norm).tolist()

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        return [self.embed(t) for t in texts]


# ═══════════════════════════════════════════════════════════════════════════
# Local sentence-transformers
# ═══════════════════════════════════════════════════════════════════════════

class SentenceTransformerEmbeddingProvider:
    name = "sentence-transformers"

    def __init__(self, model_name: str | None = None, batch_size: int | None = None) -> None:
        self.model_name = model_name or ingest_settings.embedding_model
        self.batch_size = batch_size or ingest_settings.embedding_batch_size
        self._model = None

    def _get_model(self):
        """Lazy-load the sentence-transformer model."""
        if self._model is not None:
            return self._model
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as exc:
            raise EmbeddingError(
                "sentence-transformers is not installed; "
                "set INGEST_EMBEDDING_BACKEND=hashing or install it."
            ) from exc

        logger.info("Loading embedding model '%s' …", self.model_name)
        self._model = SentenceTransformer(
            self.model_name,
            device="mps" if _mps_available() else "cpu",
        )
        logger.info(
            "Embedding model loaded (dim=%d, max_seq=%d).",
            self._model.get_sentence_embedding_dimension(),
            self._model.max_seq_length,
        )
        return self._model

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        model = self._get_model()
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", message=".*pin_memory.*")
            warnings.filterwarnings("ignore", message=".*Token indices sequence length.*")
            embs = model.encode(
                list(texts),
                batch_size=self.batch_size,
                show_progress_bar=False,
                normalize_embeddings=True,
            )
        return embs.tolist()


def _mps_available() -> bool:
    try:
        import torch
        return torch.backends.mps.is_available()
    except Exception:
        return False


# ═══════════════════════════════════════════════════════════════════════════
# Hosted embeddings API
# ═══════════════════════════════════════════════════════════════════════════

class OpenAIEmbeddingProvider:
    name = "openai"

    def __init__(self, client: openai.OpenAI | None = None, model: str | None = None) -> None:
        self.model = model or ingest_settings.openai_embedding_model
        self._client = client

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            self._client = openai.OpenAI(
                base_url=settings.embeddings_base_url,
                api_key=settings.embeddings_api_key or "missing",
            )
        return self._client

    def embed(self, text: str) -> list[float]:
        try:
            response = self._get_client().embeddings.create(model=self.model, input=text)
            if not response.data or not response.data[0].embedding:
                raise EmbeddingError("Empty embedding response.")
            return list(response.data[0].embedding)
        except (EmbeddingError, openai.OpenAIError) as exc:
            logger.warning("Single embedding failed (%s) – retrying as batch of one.", exc)
            return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            response = self._get_client().embeddings.create(model=self.model, input=list(texts))
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise EmbeddingError(
                "Invalid or missing embeddings API key. Check EMBEDDINGS_API_KEY."
            ) from exc
        except openai.RateLimitError as exc:
            raise EmbeddingError("Embeddings API rate limit exceeded. Wait a moment and retry.") from exc
        except openai.OpenAIError as exc:
            raise EmbeddingError(f"Embedding failed: {exc}") from exc

        data = sorted(response.data or [], key=lambda item: item.index)
        if len(data) != len(texts) or any(not item.embedding for item in data):
            raise EmbeddingError(
                f"Malformed embedding response: expected {len(texts)} vectors, got {len(data)}."
            )
        return [list(item.embedding) for item in data]


# ═══════════════════════════════════════════════════════════════════════════
# Factory & batched chunk embedding
# ═══════════════════════════════════════════════════════════════════════════

_BACKENDS: dict[str, Callable[[], EmbeddingProvider]] = {
    "hashing": HashingEmbeddingProvider,
    "sentence-transformers": SentenceTransformerEmbeddingProvider,
    "openai": OpenAIEmbeddingProvider,
}


def get_embedding_provider(backend: str | None = None) -> EmbeddingProvider:
    name = (backend or ingest_settings.embedding_backend).lower()
    try:
        factory = _BACKENDS[name]
    except KeyError:
        raise ValueError(
            f"Unknown embedding backend '{name}'. Choose one of: {', '.join(_BACKENDS)}."
        ) from None
    return factory()


async def embed_chunks(
    provider: EmbeddingProvider,
    chunks: Sequence[Chunk],
    batch_size: int | None = None,
    on_batch: Callable[[int, int], None] | None = None,
) -> list[Chunk]:
    """Return embedded copies of *chunks*, in order.

    Each batch call runs in a worker thread.  Vectors are collected for every
    batch first; nothing is attached until all batches have succeeded.
    """
    size = batch_size or ingest_settings.embedding_batch_size
    total = len(chunks)
    vectors: list[list[float]] = []
    for i in range(0, total, size):
        batch = chunks[i : i + size]
        embs = await asyncio.to_thread(provider.embed_batch, [c.text for c in batch])
        if len(embs) != len(batch):
            raise EmbeddingError(
                f"Provider '{provider.name}' returned {len(embs)} vectors for {len(batch)} texts."
            )
        vectors.extend(embs)
        if on_batch is not None:
            on_batch(min(i + size, total), total)

    return [c.with_embedding(v) for c, v in zip(chunks, vectors)]
