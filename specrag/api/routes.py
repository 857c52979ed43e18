"""REST API routes for the spec extraction assistant."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from specrag.config import settings
from specrag.errors import (
    DocumentOpenError,
    EmbeddingError,
    ExtractionError,
    InvalidCredentialsError,
    RateLimitedError,
)
from specrag.ingestion.pipeline import SpecPipeline, StageStatus
from specrag.ingestion.schemas import SpecRecord
from specrag.services.export import records_to_csv

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------

class RetrievedChunk(BaseModel):
    id: str
    section: str
    page: int
    score: float
    is_spec_priority: bool
    text: str


class StageEventOut(BaseModel):
    stage_id: str
    status: str
    description: str


class ExtractionResponse(BaseModel):
    query: str
    records: list[SpecRecord]
    retrieved: list[RetrievedChunk]
    stages: list[StageEventOut]
    elapsed_seconds: float


class HealthResponse(BaseModel):
    status: str
    embedding_backend: str
    llm_model: str
    cached_documents: int


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

def _pipeline(request: Request) -> SpecPipeline:
    return request.app.state.pipeline


@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health_check(request: Request):
    """Return service health and configured backends."""
    pipeline = _pipeline(request)
    return HealthResponse(
        status="ok",
        embedding_backend=pipeline.embedder.name,
        llm_model=settings.llm_model,
        cached_documents=len(pipeline.cache),
    )


@router.post("/extract", response_model=ExtractionResponse, tags=["extraction"])
async def extract_specs(
    request: Request,
    file: UploadFile = File(..., description="Service manual PDF"),
    query: str = Form(..., min_length=1),
    top_k: int | None = Form(None, ge=1, le=50),
):
    """Upload a manual and extract the spec records answering *query*."""
    data = await file.read()
    pipeline = _pipeline(request)
    run = pipeline.new_run(query, k=top_k)
    try:
        await pipeline.execute(run, data)
    except asyncio.TimeoutError as exc:
        failed = [e.description for e in run.events if e.status == StageStatus.FAILED]
        detail = failed[-1] if failed else "Extraction run timed out."
        logger.error("Run timed out for %s: %s", file.filename, detail)
        raise HTTPException(status_code=504, detail=detail) from exc
    except DocumentOpenError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except RateLimitedError as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from exc
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except (ExtractionError, EmbeddingError) as exc:
        logger.exception("Pipeline failed for %s.", file.filename)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return ExtractionResponse(
        query=query,
        records=run.records,
        retrieved=[
            RetrievedChunk(
                id=sc.chunk.id,
                section=sc.chunk.section,
                page=sc.chunk.page,
                score=sc.score,
                is_spec_priority=sc.chunk.is_spec_priority,
                text=sc.chunk.text,
            )
            for sc in run.scored
        ],
        stages=[
            StageEventOut(stage_id=e.stage_id, status=e.status.value, description=e.description)
            for e in run.events
        ],
        elapsed_seconds=run.elapsed_seconds,
    )


@router.post("/export/csv", response_class=PlainTextResponse, tags=["extraction"])
async def export_csv(records: list[SpecRecord]):
    """Render previously extracted records as CSV."""
    return PlainTextResponse(
        records_to_csv(records),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="specs.csv"'},
    )
