"""
Section-aware chunking with spec-priority selection.

Pages    → segments split at spec sub-headers ("TORQUE SPECIFICATIONS", …)
Segments → ``Chunk`` objects prefixed with their section breadcrumb:

    SECTION: 204-01A: FRONT SUSPENSION
    PAGE: 14
    CONTENT: ...

The prefix is part of the embedded text, so the vector captures component
context ("front suspension") alongside the spec values ("350 Nm").

The active section is threaded through the page loop as an explicit fold
accumulator; a page without its own header inherits the last one seen.

Selection under budget keeps *every* spec-priority chunk first and fills the
rest of the budget with general chunks, so torque / capacity tables deep in a
long manual are never dropped just because of their position.

Header and unit detection are regex heuristics: occasional false positives
and negatives are expected.
"""

from __future__ import annotations

import logging
import re
from functools import reduce
from typing import Iterable, NamedTuple, Sequence

from specrag.ingestion.config import ingest_settings
from specrag.ingestion.layout import ReconstructedPage
from specrag.ingestion.schemas import Chunk

logger = logging.getLogger(__name__)

DEFAULT_SECTION = "GENERAL INFORMATION"

# e.g. "SECTION 204-01A: FRONT SUSPENSION", "Group 303-01 ENGINE".
# The title ends at a column separator (two blanks) or the end of the line.
SECTION_HEADER = re.compile(
    r"(?i:SECTION|GROUP)[ \t]+(\d+-\d+[A-Z]?):?[ \t]+([A-Z](?:[A-Z\-]|[ \t](?![ \t]))+)"
)

# Split *before* spec category sub-headers; the header stays with its segment.
SUBHEADER_SPLIT = re.compile(
    r"(?=^(?:TORQUE SPECIFICATIONS?|GENERAL SPECIFICATIONS?|FLUID CAPACIT"
    r"|CAPACITIES[ \t]*$|TORQUE[ \t]*$))",
    re.IGNORECASE | re.MULTILINE,
)

SPEC_VALUE_PATTERN = re.compile(
    r"\b(\d+(?:\.\d+)?)\s*(Nm|N·m|lb-ft|ft-lb|liters?|qt|quarts?|pt|psi|bar|mm)\b",
    re.IGNORECASE,
)

CHUNK_TEMPLATE = "SECTION: {section}\nPAGE: {page}\nCONTENT: {content}"


class _FoldState(NamedTuple):
    active_section: str
    chunks: tuple[Chunk, ...]


def detect_section(text: str) -> str | None:
    """Return ``"<code>: <title>"`` for the first section header in *text*."""
    m = SECTION_HEADER.search(text)
    if not m:
        return None
    return f"{m.group(1)}: {m.group(2).strip()}"


def split_segments(text: str) -> list[str]:
    segments = SUBHEADER_SPLIT.split(text)
    if segments and not segments[0]:
        segments = segments[1:]  # header at offset 0
    return segments


def is_spec_priority(text: str) -> bool:
    return SPEC_VALUE_PATTERN.search(text) is not None


def _chunk_page(
    state: _FoldState,
    page: ReconstructedPage,
    min_length: int,
) -> _FoldState:
    text = page.text
    section = detect_section(text) or state.active_section

    emitted: list[Chunk] = []
    for s_idx, seg in enumerate(split_segments(text)):
        clean = seg.strip()
        if len(clean) < min_length:
            continue
        emitted.append(
            Chunk(
                id=f"p{page.number}-s{s_idx}",
                text=CHUNK_TEMPLATE.format(section=section, page=page.number, content=clean),
                section=section,
                page=page.number,
                is_spec_priority=is_spec_priority(clean),
            )
        )
    return _FoldState(section, state.chunks + tuple(emitted))


def build_chunks(
    pages: Iterable[ReconstructedPage],
    min_length: int | None = None,
) -> list[Chunk]:
    """Chunk every page, in order, carrying the active section across pages."""
    min_len = ingest_settings.min_chunk_length if min_length is None else min_length
    final = reduce(
        lambda state, page: _chunk_page(state, page, min_len),
        pages,
        _FoldState(DEFAULT_SECTION, ()),
    )
    return list(final.chunks)


def select_chunks(chunks: Sequence[Chunk], max_chunks: int | None = None) -> list[Chunk]:
    """All spec-priority chunks first, then general chunks up to the budget."""
    budget = ingest_settings.max_chunks if max_chunks is None else max_chunks
    spec = [c for c in chunks if c.is_spec_priority]
    general = [c for c in chunks if not c.is_spec_priority]

    selected = (spec + general[: max(0, budget - len(spec))])[:budget]

    logger.info(
        "Total chunks: %d | Spec-priority: %d | Embedding: %d",
        len(chunks),
        len(spec),
        len(selected),
    )
    return selected


def generate_chunks(
    pages: Iterable[ReconstructedPage],
    max_chunks: int | None = None,
) -> list[Chunk]:
    """Chunk *pages* and apply the spec-priority budget."""
    return select_chunks(build_chunks(pages), max_chunks)
