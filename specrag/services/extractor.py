"""Structured spec extraction: one deterministic LLM call, strict parsing,
validation gates.

A malformed model response never crashes the pipeline – it degrades to an
empty record list.  Provider failures (auth, rate limit, transport) are
raised by ``llm.chat``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol

from specrag.ingestion.quality import filter_records
from specrag.ingestion.schemas import SpecRecord, SpecType
from specrag.services import llm

logger = logging.getLogger(__name__)


class SpecExtractor(Protocol):
    def extract(self, query: str, context: str) -> list[SpecRecord]: ...


# ---------------------------------------------------------------------------
# Instruction
# ---------------------------------------------------------------------------

EXTRACTION_SYSTEM = f"""\
You are an expert automotive data extraction engineer specialising in vehicle service manuals.

Extract ALL vehicle specifications from the provided text that are relevant to the query.

Rules:
1. TABLE RECONSTRUCTION: Map component names (left column) to their values (right columns).
2. DUAL UNITS: If a spec shows one quantity in two units (e.g. Nm and lb-ft for the same bolt), create TWO separate records, one per unit, with the same component, condition and source_page.
3. PART NUMBERS: Capture manufacturer part IDs (e.g. XL-2, W707628) in the part_number field.
4. CONDITIONS: Capture qualifiers like "new bolts only", "dry threads", "with filter", "6-lug wheel" in condition.
5. PAGE TRACKING: Use the "PAGE: X" metadata in the context for source_page.
6. CONFIDENCE: Score 0.0-1.0. Use 0.9+ for values taken verbatim from a table, 0.6-0.8 for values inferred from prose. Skip the record if below 0.5.
7. NO INVENTION: Never invent values. If a spec is not literally stated in the text, omit it entirely.
8. SOURCE CONTEXT: Copy the exact sentence or table row the value came from into source_context.

Return ONLY a valid JSON array. No markdown, no explanation, no preamble.
Each object has these fields:
- component (string)
- spec_type (string): one of [{", ".join(t.value for t in SpecType)}]
- value (string): the number only, without unit
- unit (string)
- part_number (string, optional)
- condition (string, optional)
- source_page (number, optional)
- confidence (number, 0-1)
- source_context (string)
Return [] if nothing relevant is found.
"""


def build_user_prompt(query: str, context: str) -> str:
    return f"Query: {query}\n\nService Manual Context:\n{context}"


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")


def _loads_array(text: str) -> list[Any] | None:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, list) else None


def _balanced_arrays(text: str):
    """Yield every balanced ``[...]`` substring, in order of its opening bracket."""
    start = text.find("[")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            ch = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "[":
                depth += 1
            elif ch == "]":
                depth -= 1
                if depth == 0:
                    yield text[start : pos + 1]
                    break
        start = text.find("[", start + 1)


def parse_json_array(raw: str) -> list[Any] | None:
    """Recover a JSON array from a model response, or None if there is none.

    Fallback chain: raw JSON → fence-stripped JSON → first balanced [...] that
    parses as an array.
    """
    text = raw.strip()

    parsed = _loads_array(text)
    if parsed is not None:
        return parsed

    unfenced = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text)).strip()
    if unfenced != text:
        parsed = _loads_array(unfenced)
        if parsed is not None:
            return parsed

    for candidate in _balanced_arrays(unfenced):
        parsed = _loads_array(candidate)
        if parsed is not None:
            return parsed
    return None


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

class LLMSpecExtractor:
    """Extract spec records with one chat-completion call.

    Sampling is pinned to temperature 0.
    """

    def __init__(self, model: str | None = None, max_tokens: int | None = None) -> None:
        self.model = model
        self.max_tokens = max_tokens

    def extract(self, query: str, context: str) -> list[SpecRecord]:
        raw = llm.chat(
            EXTRACTION_SYSTEM,
            build_user_prompt(query, context),
            model=self.model,
            temperature=0.0,
            max_tokens=self.max_tokens,
        )

        items = parse_json_array(raw)
        if items is None:
            logger.error("Could not parse LLM response: %s", raw[:300])
            return []

        records = filter_records(items, context)
        logger.info("Extracted %d spec record(s) from %d raw item(s).", len(records), len(items))
        return records
