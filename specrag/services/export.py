"""CSV / JSON export of extracted spec records."""

from __future__ import annotations

import csv
import io
import json
from typing import Sequence

from specrag.ingestion.schemas import SpecRecord

CSV_HEADER = ["Component", "Type", "Value", "Unit", "Condition", "Part Number", "Page", "Confidence"]


def records_to_rows(records: Sequence[SpecRecord]) -> list[list[str]]:
    rows = [CSV_HEADER]
    for r in records:
        rows.append([
            r.component,
            r.spec_type.value,
            r.value,
            r.unit,
            r.condition or "",
            r.part_number or "",
            "" if r.source_page is None else str(r.source_page),
            f"{r.confidence * 100:.0f}%",
        ])
    return rows


def records_to_csv(records: Sequence[SpecRecord]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(records_to_rows(records))
    return buf.getvalue()


def records_to_json(records: Sequence[SpecRecord]) -> str:
    return json.dumps([r.model_dump(mode="json") for r in records], indent=2)
