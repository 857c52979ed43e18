"""
Cosine-similarity retrieval over embedded chunks.

The chunk set of one document is small (≤ ``max_chunks``), so an exact
linear scan is used instead of an ANN index: results are exact and ties are
broken deterministically by chunk generation order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from specrag.ingestion.config import ingest_settings
from specrag.ingestion.schemas import Chunk, ScoredChunk

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n---\n"


@dataclass
class RetrievalResult:
    scored: list[ScoredChunk] = field(default_factory=list)
    context: str = ""


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a|·|b|); 0 for empty, mismatched or zero-magnitude vectors."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.size == 0 or va.shape != vb.shape:
        return 0.0
    mag = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if mag == 0.0:
        return 0.0
    return max(-1.0, min(1.0, float(np.dot(va, vb)) / mag))


def retrieve(
    query_vector: Sequence[float],
    chunks: Sequence[Chunk],
    k: int | None = None,
) -> RetrievalResult:
    """Return the top-*k* chunks by cosine similarity plus their joined context.

    Chunks without an embedding are not scored at all.
    """
    top_k = ingest_settings.top_k if k is None else k
    scored = [
        ScoredChunk(chunk=c, score=cosine_similarity(query_vector, c.embedding))
        for c in chunks
        if c.embedding
    ]
    # sorted() is stable, also with reverse=True: equal scores keep chunk order
    ranked = sorted(scored, key=lambda s: s.score, reverse=True)[: max(0, top_k)]

    if ranked:
        logger.info(
            "Retrieved %d/%d chunks; top: %s p.%d (%.3f).",
            len(ranked),
            len(scored),
            ranked[0].chunk.section,
            ranked[0].chunk.page,
            ranked[0].score,
        )
    else:
        logger.warning("No embedded chunks to retrieve from.")

    return RetrievalResult(
        scored=ranked,
        context=CONTEXT_SEPARATOR.join(s.chunk.text for s in ranked),
    )
