"""
CLI entry-point for the spec extraction pipeline.

Usage
-----
    python -m specrag.services.manual_loader chunks manual.pdf [--max-chunks 300]
    python -m specrag.services.manual_loader extract manual.pdf "wheel nut torque" \
        [--top-k 6] [--csv specs.csv] [--json specs.json]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from specrag.errors import SpecRagError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


def cmd_chunks(args: argparse.Namespace) -> None:
    from specrag.ingestion.chunker import build_chunks, select_chunks
    from specrag.ingestion.layout import reconstruct_pages
    from specrag.ingestion.pdf_parser import extract_pages, read_document

    pages = reconstruct_pages(extract_pages(read_document(Path(args.file_path))))
    all_chunks = build_chunks(pages)
    selected = select_chunks(all_chunks, args.max_chunks)

    print("\n══════════════ Chunking Summary ══════════════")
    print(f"  Pages           : {len(pages)}")
    print(f"  Total chunks    : {len(all_chunks)}")
    print(f"  Spec-priority   : {sum(1 for c in all_chunks if c.is_spec_priority)}")
    print(f"  Selected        : {len(selected)}")
    print(f"  Sections        : {len({c.section for c in all_chunks})}")
    print("══════════════════════════════════════════════")


def _print_stage(stage_id: str, status, description: str) -> None:
    print(f"  [{stage_id:<11}] {status.value:<9} {description}")


def cmd_extract(args: argparse.Namespace) -> None:
    from specrag.ingestion.pipeline import SpecPipeline
    from specrag.services.export import records_to_csv, records_to_json

    pipeline = SpecPipeline(on_stage_change=_print_stage)
    run = asyncio.run(pipeline.run(Path(args.file_path), args.query, k=args.top_k))

    print(f"\nTop {len(run.scored)} chunks for: \"{args.query}\"")
    for i, sc in enumerate(run.scored, 1):
        print(f"  {i}. {sc.chunk.id:<10} p.{sc.chunk.page:<4} {sc.score:.3f}  {sc.chunk.section}")

    print(f"\n{len(run.records)} spec record(s):")
    for r in run.records:
        page = f"p.{r.source_page}" if r.source_page else "p.?"
        print(
            f"  {r.component} | {r.spec_type.value} | {r.value} {r.unit} | {page} | "
            f"{r.confidence * 100:.0f}%"
            + (f" | {r.condition}" if r.condition else "")
        )

    if args.csv:
        Path(args.csv).write_text(records_to_csv(run.records), encoding="utf-8")
        print(f"\nCSV written to {args.csv}")
    if args.json:
        Path(args.json).write_text(records_to_json(run.records), encoding="utf-8")
        print(f"JSON written to {args.json}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Service-manual spec extraction CLI",
        prog="python -m specrag.services.manual_loader",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # chunks
    p_chunks = sub.add_parser("chunks", help="Reconstruct and chunk a PDF, print statistics")
    p_chunks.add_argument("file_path", type=str, help="Path to the PDF manual")
    p_chunks.add_argument("--max-chunks", type=int, default=None, help="Override chunk budget")
    p_chunks.set_defaults(func=cmd_chunks)

    # extract
    p_extract = sub.add_parser("extract", help="Run the full pipeline for one query")
    p_extract.add_argument("file_path", type=str, help="Path to the PDF manual")
    p_extract.add_argument("query", type=str, help="Spec query, e.g. 'wheel nut torque'")
    p_extract.add_argument("--top-k", type=int, default=None, help="Number of chunks retrieved")
    p_extract.add_argument("--csv", type=str, default=None, help="Write records as CSV")
    p_extract.add_argument("--json", type=str, default=None, help="Write records as JSON")
    p_extract.set_defaults(func=cmd_extract)

    args = parser.parse_args()
    try:
        args.func(args)
    except SpecRagError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
