"""
Pydantic models for every artifact that flows through the extraction pipeline.

  - Chunk        – section/page-tagged unit of manual text (embedded + retrieved)
  - ScoredChunk  – a chunk with its cosine similarity to one query
  - SpecRecord   – one validated specification extracted by the LLM

All three are frozen: a chunk gets its embedding exactly once, by copy, and
extracted records are never mutated after validation.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ── Enums ────────────────────────────────────────────────────────────────

class SpecType(str, Enum):
    TORQUE = "Torque"
    FLUID_CAPACITY = "Fluid Capacity"
    PRESSURE = "Pressure"
    CLEARANCE = "Clearance"
    GAP = "Gap"
    PART_NUMBER = "Part Number"
    TEMPERATURE = "Temperature"
    VOLTAGE = "Voltage"


def _squash(value: str) -> str:
    return re.sub(r"[^a-z]", "", value.lower())


_SPEC_TYPE_LOOKUP = {_squash(t.value): t for t in SpecType}


# ── Chunks ───────────────────────────────────────────────────────────────

class Chunk(BaseModel):
    """A bounded unit of manual text; ``text`` is exactly what gets embedded."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="p<page>-s<segment index>, unique per run")
    text: str
    section: str
    page: int
    is_spec_priority: bool = False
    embedding: list[float] | None = None

    def with_embedding(self, vector: list[float]) -> Chunk:
        return self.model_copy(update={"embedding": list(vector)})


class ScoredChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    score: float = Field(..., ge=-1.0, le=1.0)


# ── Extracted records ────────────────────────────────────────────────────

class SpecRecord(BaseModel):
    """One specification value as returned by the extraction model."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    component: str = Field(..., min_length=1)
    spec_type: SpecType
    value: str = Field(..., min_length=1)
    unit: str = ""
    part_number: str | None = None
    condition: str | None = None
    source_page: int | None = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    source_context: str | None = None

    @field_validator("spec_type", mode="before")
    @classmethod
    def _normalise_spec_type(cls, v: Any) -> Any:
        # Models write "FluidCapacity", "fluid capacity", "PART NUMBER" …
        if isinstance(v, str):
            return _SPEC_TYPE_LOOKUP.get(_squash(v), v)
        return v

    @field_validator("component", "value", "unit", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    @field_validator("part_number", "condition", "source_context", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("source_page", mode="before")
    @classmethod
    def _page_or_none(cls, v: Any) -> Any:
        if v in ("", 0, "0"):
            return None
        return v
