"""
End-to-end extraction pipeline orchestrator.

Wires together: PDF parsing → row reconstruction → chunking → embedding →
retrieval → LLM extraction, one stage at a time.

Run states::

    idle → reconstructing → chunking → embedding → retrieving → extracting
         → completed | failed

Every transition is reported through ``on_stage_change(stage_id, status,
description)``; that callback is the only coupling to a presentation layer.
A failing stage marks the run failed, skips the remaining stages and re-raises
the original exception.  Outputs of completed stages stay readable on the
``PipelineRun`` for diagnostics.

Blocking work (PDF parsing, embedding batches, the LLM call) runs in worker
threads so the event loop stays responsive; retrieval is computed inline.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable

from specrag.ingestion.chunker import generate_chunks
from specrag.ingestion.config import ingest_settings
from specrag.ingestion.embeddings import EmbeddingProvider, embed_chunks, get_embedding_provider
from specrag.ingestion.layout import ReconstructedPage, reconstruct_pages
from specrag.ingestion.pdf_parser import compute_content_hash, extract_pages, read_document
from specrag.ingestion.quality import validate_confidence
from specrag.ingestion.retrieval import retrieve
from specrag.ingestion.schemas import Chunk, ScoredChunk, SpecRecord
from specrag.services.extractor import LLMSpecExtractor, SpecExtractor

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    RECONSTRUCTING = "reconstructing"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    RETRIEVING = "retrieving"
    EXTRACTING = "extracting"
    COMPLETED = "completed"
    FAILED = "failed"


class StageStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Stage:
    id: str
    label: str


STAGES: dict[RunState, Stage] = {
    RunState.RECONSTRUCTING: Stage("reconstruct", "Row Reconstruction"),
    RunState.CHUNKING: Stage("chunk", "Semantic Chunking"),
    RunState.EMBEDDING: Stage("embed", "Semantic Indexing"),
    RunState.RETRIEVING: Stage("retrieve", "Vector Retrieval"),
    RunState.EXTRACTING: Stage("extract", "Spec Synthesis"),
}

StageCallback = Callable[[str, StageStatus, str], None]


@dataclass(frozen=True)
class StageEvent:
    stage_id: str
    status: StageStatus
    description: str


# ═══════════════════════════════════════════════════════════════════════════
# Chunk cache
# ═══════════════════════════════════════════════════════════════════════════

class ChunkCache:
    """LRU of embedded chunks keyed by (document content hash, provider name).

    Cached chunks are frozen models, so later runs can only read them.
    """

    def __init__(self, max_documents: int) -> None:
        self.max_documents = max_documents
        self._entries: OrderedDict[tuple[str, str], tuple[Chunk, ...]] = OrderedDict()

    def get(self, key: tuple[str, str]) -> tuple[Chunk, ...] | None:
        chunks = self._entries.get(key)
        if chunks is not None:
            self._entries.move_to_end(key)
        return chunks

    def put(self, key: tuple[str, str], chunks: list[Chunk]) -> None:
        if self.max_documents <= 0:
            return
        self._entries[key] = tuple(chunks)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_documents:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cached chunks for %s…", evicted[0][:12])

    def __len__(self) -> int:
        return len(self._entries)


# ═══════════════════════════════════════════════════════════════════════════
# Run
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class PipelineRun:
    """State and outputs of one query against one document."""

    query: str
    k: int
    on_stage_change: StageCallback | None = None
    state: RunState = RunState.IDLE
    content_hash: str = ""
    pages: list[ReconstructedPage] = field(default_factory=list)
    chunks: list[Chunk] = field(default_factory=list)
    scored: list[ScoredChunk] = field(default_factory=list)
    context: str = ""
    records: list[SpecRecord] = field(default_factory=list)
    error: BaseException | None = None
    events: list[StageEvent] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def stage(self) -> Stage | None:
        return STAGES.get(self.state)

    def _emit(self, status: StageStatus, description: str, stage: Stage | None = None) -> None:
        stage = stage or self.stage
        if stage is None:
            return
        event = StageEvent(stage.id, status, description)
        self.events.append(event)
        logger.info("[%s] %s – %s", stage.id, status.value, description)
        if self.on_stage_change is not None:
            self.on_stage_change(stage.id, status, description)

    def enter(self, state: RunState, description: str) -> None:
        self.state = state
        self._emit(StageStatus.RUNNING, description)

    def progress(self, description: str) -> None:
        self._emit(StageStatus.RUNNING, description)

    def complete(self, description: str) -> None:
        self._emit(StageStatus.COMPLETED, description)

    def fail(self, exc: BaseException) -> None:
        stage = self.stage
        if stage is not None:
            if isinstance(exc, asyncio.CancelledError):
                description = f"{stage.label} cancelled."
            else:
                description = f"{stage.label} failed: {exc}"
            self._emit(StageStatus.FAILED, description, stage)
        self.state = RunState.FAILED
        self.error = exc


# ═══════════════════════════════════════════════════════════════════════════
# Pipeline
# ═══════════════════════════════════════════════════════════════════════════

def _parse_and_reconstruct(data: bytes) -> list[ReconstructedPage]:
    return reconstruct_pages(extract_pages(data))


def _apply_confidence_floor(records: Iterable[SpecRecord]) -> list[SpecRecord]:
    """Keep records at or above ``min_confidence``, whatever the extractor."""
    kept: list[SpecRecord] = []
    for record in records:
        ok, reason = validate_confidence(record)
        if ok:
            kept.append(record)
        else:
            logger.debug("Record dropped (%s): %s", reason, record.component)
    return kept


class SpecPipeline:
    """Orchestrates one run per call; depends only on the provider interfaces."""

    def __init__(
        self,
        embedder: EmbeddingProvider | None = None,
        extractor: SpecExtractor | None = None,
        *,
        on_stage_change: StageCallback | None = None,
        cache: ChunkCache | None = None,
    ) -> None:
        self.embedder = embedder or get_embedding_provider()
        self.extractor = extractor or LLMSpecExtractor()
        self.on_stage_change = on_stage_change
        self.cache = cache if cache is not None else ChunkCache(ingest_settings.chunk_cache_size)

    def new_run(
        self,
        query: str,
        *,
        k: int | None = None,
        on_stage_change: StageCallback | None = None,
    ) -> PipelineRun:
        return PipelineRun(
            query=query,
            k=ingest_settings.top_k if k is None else k,
            on_stage_change=on_stage_change or self.on_stage_change,
        )

    async def run(
        self,
        document: bytes | str | Path,
        query: str,
        *,
        k: int | None = None,
        on_stage_change: StageCallback | None = None,
        timeout: float | None = None,
    ) -> PipelineRun:
        """Execute every stage for *query* against *document*.

        Returns the completed run; on failure the triggering exception
        propagates.  Use ``new_run`` + ``execute`` to keep a handle on a
        failed run's partial outputs.
        """
        run = self.new_run(query, k=k, on_stage_change=on_stage_change)
        return await self.execute(run, document, timeout=timeout)

    async def execute(
        self,
        run: PipelineRun,
        document: bytes | str | Path,
        *,
        timeout: float | None = None,
    ) -> PipelineRun:
        limit = ingest_settings.run_timeout_seconds if timeout is None else timeout
        t0 = time.time()
        try:
            if limit and limit > 0:
                await asyncio.wait_for(self._execute(run, document), limit)
            else:
                await self._execute(run, document)
        except asyncio.TimeoutError as exc:
            run.error = exc
            logger.error("Run timed out after %.1fs.", limit)
            raise
        finally:
            run.elapsed_seconds = time.time() - t0
        return run

    async def _execute(self, run: PipelineRun, document: bytes | str | Path) -> None:
        try:
            await self._build_index(run, document)

            # ── Retrieval ────────────────────────────────────────────
            run.enter(RunState.RETRIEVING, f"Cosine similarity search (k={run.k}).")
            query_vector = await asyncio.to_thread(self.embedder.embed, run.query)
            result = retrieve(query_vector, run.chunks, run.k)
            run.scored, run.context = result.scored, result.context
            if result.scored:
                top = result.scored[0]
                run.complete(f'Top: "{top.chunk.section}" ({top.score:.3f}).')
            else:
                run.complete("No chunks retrieved.")

            # ── Extraction ───────────────────────────────────────────
            run.enter(RunState.EXTRACTING, "LLM extraction → validated JSON schema.")
            extracted = await asyncio.to_thread(self.extractor.extract, run.query, run.context)
            records = _apply_confidence_floor(extracted)
            run.records = records
            run.complete(f"Extracted {len(records)} spec{'s' if len(records) != 1 else ''}.")

            run.state = RunState.COMPLETED
        except (Exception, asyncio.CancelledError) as exc:
            run.fail(exc)
            raise

    async def _build_index(self, run: PipelineRun, document: bytes | str | Path) -> None:
        run.enter(RunState.RECONSTRUCTING, "Table-aware coordinate parsing.")
        data = await asyncio.to_thread(read_document, document)
        run.content_hash = compute_content_hash(data)

        key = (run.content_hash, self.embedder.name)
        cached = self.cache.get(key)
        if cached is not None:
            run.chunks = list(cached)
            run.complete("Document already indexed (cached).")
            run.enter(RunState.CHUNKING, "Reusing cached chunks.")
            run.complete(f"{len(cached)} chunks (cached).")
            run.enter(RunState.EMBEDDING, "Reusing cached vectors.")
            run.complete(f"{len(cached)} vectors (cached).")
            return

        pages = await asyncio.to_thread(_parse_and_reconstruct, data)
        run.pages = pages
        run.complete(f"Parsed {len(pages)} pages.")

        run.enter(RunState.CHUNKING, "Section-aware chunking with spec priority.")
        chunks = await asyncio.to_thread(generate_chunks, pages)
        run.chunks = chunks
        spec_count = sum(1 for c in chunks if c.is_spec_priority)
        run.complete(f"{len(chunks)} chunks ({spec_count} spec-priority).")

        run.enter(RunState.EMBEDDING, f"Vectorizing with '{self.embedder.name}'.")
        embedded = await embed_chunks(
            self.embedder,
            chunks,
            on_batch=lambda done, total: run.progress(f"Vectorizing… ({done}/{total})"),
        )
        run.chunks = embedded
        self.cache.put(key, embedded)
        run.complete(f"{len(embedded)} vectors built ({self.embedder.name}).")
