"""Shared fixtures: small service-manual PDFs generated in memory with PyMuPDF."""

from __future__ import annotations

import fitz
import pytest


def make_pdf(pages: list[list[tuple[float, float, str]]]) -> bytes:
    """Build a PDF; each page is a list of (x, baseline_y_from_top, text)."""
    doc = fitz.open()
    for items in pages:
        page = doc.new_page()
        for x, y, text in items:
            page.insert_text((x, y), text, fontsize=10)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def manual_pdf() -> bytes:
    return make_pdf([
        [
            (72, 72, "SECTION 204-04: WHEELS AND TIRES"),
            (72, 100, "The wheels are attached with lug nuts to the hub."),
            (72, 130, "TORQUE SPECIFICATIONS"),
            (72, 160, "Wheel nut"),
            (300, 160, "204 Nm"),
            (400, 160, "150 lb-ft"),
        ],
        [
            (72, 72, "SECTION 206-00: BRAKE SYSTEM"),
            (72, 100, "Brake fluid reservoir capacity 0.5 liter DOT 3"),
        ],
    ])


@pytest.fixture
def pdf_factory():
    return make_pdf
