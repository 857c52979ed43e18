"""
PDF opening & text-fragment extraction via PyMuPDF (fitz).

Responsibilities
- Open a PDF from bytes or a path and fail loudly with ``DocumentOpenError``
  when it is corrupt, encrypted or not a PDF at all.
- Yield one ``Page`` per PDF page holding the positioned text fragments of
  the native text layer, in whatever order the PDF stores them.

Coordinates are flipped so that ``y`` grows upwards (larger = higher on the
page); the layout stage relies on that to sort rows top-to-bottom.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path

import fitz  # PyMuPDF

from specrag.errors import DocumentOpenError
from specrag.ingestion.config import ingest_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Fragment:
    """A single text span with its baseline position."""

    text: str
    x: float
    y: float


@dataclass(frozen=True)
class Page:
    """Raw positioned fragments of one PDF page."""

    number: int  # 1-based
    fragments: tuple[Fragment, ...] = field(default_factory=tuple)


def compute_content_hash(data: bytes) -> str:
    """SHA-256 of the document bytes – the document's content identity."""
    return hashlib.sha256(data).hexdigest()


def read_document(source: bytes | str | Path) -> bytes:
    """Return the raw bytes of *source* (bytes are passed through)."""
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    try:
        return Path(source).read_bytes()
    except OSError as exc:
        raise DocumentOpenError(f"Could not read {source}: {exc}", cause=exc) from exc


def open_document(data: bytes) -> fitz.Document:
    """Open *data* as a PDF or raise ``DocumentOpenError``."""
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        raise DocumentOpenError(
            f"Failed to open the file: {exc}. Make sure the file is a valid, "
            "non-encrypted PDF.",
            cause=exc,
        ) from exc

    if doc.needs_pass:
        doc.close()
        raise DocumentOpenError("The PDF is encrypted and requires a password.")
    return doc


def extract_pages(data: bytes) -> list[Page]:
    """Parse every page of the PDF into positioned fragments.

    If ``ingest_settings.max_pages > 0`` only the first N pages are processed.
    """
    doc = open_document(data)
    try:
        total = len(doc)
        limit = ingest_settings.max_pages or total
        pages = [_page_fragments(doc[idx], idx + 1) for idx in range(min(total, limit))]
    except DocumentOpenError:
        raise
    except Exception as exc:
        raise DocumentOpenError(f"Failed to read PDF text layer: {exc}", cause=exc) from exc
    finally:
        doc.close()

    logger.info("Parsed %d of %d pages.", len(pages), total)
    return pages


def _page_fragments(page: fitz.Page, page_number: int) -> Page:
    height = page.rect.height
    fragments: list[Fragment] = []
    for b in page.get_text("dict", flags=fitz.TEXT_PRESERVE_WHITESPACE)["blocks"]:
        if b["type"] != 0:  # not a text block
            continue
        for line in b.get("lines", []):
            for span in line.get("spans", []):
                txt = span.get("text", "").strip()
                if not txt:
                    continue
                ox, oy = span["origin"]
                fragments.append(Fragment(text=txt, x=ox, y=height - oy))
    return Page(number=page_number, fragments=tuple(fragments))
