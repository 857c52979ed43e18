"""
Quality gates and validation for extracted spec records.

The extraction model is instructed to follow the rules below, but its output
is still checked here.  Each gate is a pure function: input → (pass, reason).

  - shape       – item is a JSON object that validates as ``SpecRecord``
  - confidence  – confidence >= ``min_confidence`` (0.5 is kept)
  - literal     – the value literally occurs in the retrieved context
  - dual unit   – "115 Nm (85 lb-ft)" in one record becomes two records
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable

from pydantic import ValidationError

from specrag.ingestion.config import ingest_settings
from specrag.ingestion.schemas import SpecRecord

logger = logging.getLogger(__name__)

_NUM = r"(\d+(?:[.,]\d+)?(?:\s*-\s*\d+(?:[.,]\d+)?)?)"
_UNIT = r"([A-Za-z°][A-Za-z°·.\-]*)"

# "115 Nm (85 lb-ft)", "115 Nm / 85 lb-ft", "115 Nm or 85 lb-ft"
_DUAL_PAIRED = re.compile(
    rf"^\s*{_NUM}\s*{_UNIT}\s*(?:\(|/|,|\bor\b)\s*{_NUM}\s*{_UNIT}\s*\)?\s*$",
    re.IGNORECASE,
)
# "115/85 Nm/lb-ft"
_DUAL_SPLIT = re.compile(rf"^\s*{_NUM}\s*/\s*{_NUM}\s+{_UNIT}\s*/\s*{_UNIT}\s*$")


def _normalise(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip().lower()


def validate_item(item: Any) -> tuple[SpecRecord | None, str]:
    """Validate one raw JSON item from the model."""
    if not isinstance(item, dict):
        return None, f"Not an object ({type(item).__name__})"
    try:
        return SpecRecord.model_validate(item), "OK"
    except ValidationError as exc:
        fields = ", ".join(str(e["loc"][0]) for e in exc.errors() if e.get("loc"))
        return None, f"Schema violation ({fields})"


def validate_confidence(record: SpecRecord, floor: float | None = None) -> tuple[bool, str]:
    threshold = ingest_settings.min_confidence if floor is None else floor
    if record.confidence < threshold:
        return False, f"Low confidence ({record.confidence:.2f} < {threshold:.2f})"
    return True, "OK"


def validate_literal_value(record: SpecRecord, context: str) -> tuple[bool, str]:
    """Reject values that never appear in the context the model was given."""
    if _normalise(record.value) not in _normalise(context):
        return False, f"Value '{record.value}' not present in context"
    return True, "OK"


def split_dual_units(record: SpecRecord) -> list[SpecRecord]:
    """Split a record carrying one quantity in two units into two records."""
    combined = f"{record.value} {record.unit}".strip()

    m = _DUAL_PAIRED.match(combined)
    if m:
        v1, u1, v2, u2 = m.groups()
    else:
        m = _DUAL_SPLIT.match(combined)
        if not m:
            return [record]
        v1, v2, u1, u2 = m.groups()

    logger.debug("Splitting dual-unit record %s: %s", record.component, combined)
    return [
        record.model_copy(update={"value": v1.strip(), "unit": u1}),
        record.model_copy(update={"value": v2.strip(), "unit": u2}),
    ]


def filter_records(
    items: Iterable[Any],
    context: str | None = None,
    *,
    min_confidence: float | None = None,
    require_literal: bool | None = None,
) -> list[SpecRecord]:
    """Apply every gate to raw model items, returning only valid records."""
    literal = ingest_settings.require_literal_values if require_literal is None else require_literal
    passed: list[SpecRecord] = []
    rejected = 0

    for item in items:
        record, reason = validate_item(item)
        if record is None:
            rejected += 1
            logger.debug("Record rejected (%s): %.120s", reason, item)
            continue

        ok, reason = validate_confidence(record, min_confidence)
        if not ok:
            rejected += 1
            logger.debug("Record rejected (%s): %s", reason, record.component)
            continue

        for rec in split_dual_units(record):
            if literal and context is not None:
                ok, reason = validate_literal_value(rec, context)
                if not ok:
                    rejected += 1
                    logger.debug("Record rejected (%s): %s", reason, rec.component)
                    continue
            passed.append(rec)

    if rejected:
        logger.info("Quality gate: %d records passed, %d rejected.", len(passed), rejected)
    return passed
