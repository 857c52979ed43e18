"""
Table-aware row reconstruction.

PyMuPDF hands back text spans as positioned fragments in storage order, not
reading order.  A torque-table row such as::

    Cam Bolt Nut    350    Nm    258    lb-ft

arrives as five unrelated fragments.  We group fragments into rows by their
baseline (within ``row_tolerance``), sort rows top-to-bottom and fragments
left-to-right, and join columns with a double space so that downstream
chunking and the extraction model still see the column separation.

Row grouping is incremental and takes the *first* existing row within
tolerance, not the nearest one.  Fragments close to a tolerance boundary may
therefore land in different rows depending on arrival order; that is an
accepted heuristic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from specrag.ingestion.config import ingest_settings
from specrag.ingestion.pdf_parser import Fragment, Page

logger = logging.getLogger(__name__)

COLUMN_SEPARATOR = "  "


@dataclass(frozen=True)
class ReconstructedPage:
    number: int
    lines: tuple[str, ...] = field(default_factory=tuple)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


def group_rows(
    fragments: Iterable[Fragment],
    tolerance: float | None = None,
) -> dict[int, list[Fragment]]:
    """Cluster fragments into rows keyed by the first member's rounded y."""
    tol = ingest_settings.row_tolerance if tolerance is None else tolerance
    rows: dict[int, list[Fragment]] = {}
    for frag in fragments:
        y = round(frag.y)
        key = next((k for k in rows if abs(k - y) < tol), None)
        if key is None:
            rows[y] = [frag]
        else:
            rows[key].append(frag)
    return rows


def reconstruct_lines(
    fragments: Iterable[Fragment],
    tolerance: float | None = None,
) -> list[str]:
    """Return the page's lines in reading order (top-down, left-right)."""
    rows = group_rows(fragments, tolerance)
    lines: list[str] = []
    for y in sorted(rows, reverse=True):
        cells = sorted(rows[y], key=lambda f: f.x)
        line = COLUMN_SEPARATOR.join(t for t in (f.text.strip() for f in cells) if t)
        if line.strip():
            lines.append(line)
    return lines


def reconstruct_page(page: Page, tolerance: float | None = None) -> ReconstructedPage:
    return ReconstructedPage(
        number=page.number,
        lines=tuple(reconstruct_lines(page.fragments, tolerance)),
    )


def reconstruct_pages(pages: Iterable[Page]) -> list[ReconstructedPage]:
    result = [reconstruct_page(p) for p in pages]
    logger.debug("Reconstructed %d pages.", len(result))
    return result
