"""Application entry-point – creates the FastAPI app and builds the pipeline."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from specrag.api.routes import router
from specrag.config import settings
from specrag.ingestion.pipeline import SpecPipeline

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: one pipeline (providers + chunk cache) shared by all requests."""
    app.state.pipeline = SpecPipeline()
    logger.info(
        "Pipeline ready (embeddings=%s, llm=%s).",
        app.state.pipeline.embedder.name,
        settings.llm_model,
    )
    yield


app = FastAPI(
    title="Service Manual Spec Extractor",
    description=(
        "RAG pipeline that reconstructs table rows from service-manual PDFs, "
        "retrieves the most relevant sections and extracts validated "
        "specification records (torque, capacities, part numbers) with an LLM."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router, prefix="/api")


def serve() -> None:
    """Run the API with uvicorn on the configured host and port."""
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    serve()
