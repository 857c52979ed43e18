"""
Tests for the extraction pipeline building blocks.

Run: python -m pytest tests/ -v
"""

from __future__ import annotations

import asyncio
import math
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest



def _chunk(cid: str, priority: bool = False, embedding=None, page: int = 1):
    from specrag.ingestion.schemas import Chunk

    return Chunk(
        id=cid,
        text=f"SECTION: GENERAL INFORMATION\nPAGE: {page}\nCONTENT: {cid}",
        section="GENERAL INFORMATION",
        page=page,
        is_spec_priority=priority,
        embedding=embedding,
    )


# ═══════════════════════════════════════════════════════════════════════════
# Schema tests
# ═══════════════════════════════════════════════════════════════════════════

class TestSchemas:
    def test_spec_record_normalises_model_output(self):
        from specrag.ingestion.schemas import SpecRecord, SpecType

        rec = SpecRecord.model_validate({
            "component": " Wheel nut ",
            "spec_type": "FluidCapacity",
            "value": 204,
            "unit": "Nm",
            "part_number": "",
            "condition": "  ",
            "source_page": "14",
            "confidence": 0.95,
        })
        assert rec.component == "Wheel nut"
        assert rec.spec_type == SpecType.FLUID_CAPACITY
        assert rec.value == "204"
        assert rec.part_number is None
        assert rec.condition is None
        assert rec.source_page == 14

    def test_spec_record_rejects_out_of_range_confidence(self):
        from pydantic import ValidationError

        from specrag.ingestion.schemas import SpecRecord

        with pytest.raises(ValidationError):
            SpecRecord(component="Bolt", spec_type="Torque", value="10", unit="Nm", confidence=1.5)

    def test_spec_record_page_zero_means_unknown(self):
        from specrag.ingestion.schemas import SpecRecord

        rec = SpecRecord(component="Bolt", spec_type="Torque", value="10", unit="Nm",
                         source_page=0, confidence=0.9)
        assert rec.source_page is None

    def test_chunk_is_frozen_and_embedding_attached_by_copy(self):
        from pydantic import ValidationError

        chunk = _chunk("p1-s0")
        embedded = chunk.with_embedding([0.1, 0.2])
        assert chunk.embedding is None
        assert embedded.embedding == [0.1, 0.2]
        assert embedded.id == chunk.id
        with pytest.raises(ValidationError):
            chunk.text = "changed"


# ═══════════════════════════════════════════════════════════════════════════
# PDF parser tests
# ═══════════════════════════════════════════════════════════════════════════

class TestPdfParser:
    def test_extract_pages_flips_y_upwards(self, pdf_factory):
        from specrag.ingestion.pdf_parser import extract_pages

        data = pdf_factory([[(72, 100, "Top line"), (72, 300, "Lower line")]])
        pages = extract_pages(data)
        assert len(pages) == 1
        assert pages[0].number == 1
        by_text = {f.text: f for f in pages[0].fragments}
        assert by_text["Top line"].y > by_text["Lower line"].y
        assert by_text["Top line"].x == pytest.approx(72, abs=1)

    def test_extract_pages_respects_max_pages(self, monkeypatch, pdf_factory):
        from specrag.ingestion import pdf_parser

        monkeypatch.setattr(pdf_parser.ingest_settings, "max_pages", 1)
        data = pdf_factory([[(72, 72, "page one")], [(72, 72, "page two")]])
        assert len(pdf_parser.extract_pages(data)) == 1

    def test_invalid_bytes_raise_document_open_error(self):
        from specrag.errors import DocumentOpenError
        from specrag.ingestion.pdf_parser import extract_pages

        with pytest.raises(DocumentOpenError) as info:
            extract_pages(b"")
        assert info.value.cause is not None

    def test_encrypted_pdf_raises_document_open_error(self):
        import fitz

        from specrag.errors import DocumentOpenError
        from specrag.ingestion.pdf_parser import extract_pages

        doc = fitz.open()
        doc.new_page().insert_text((72, 72), "secret torque table")
        data = doc.tobytes(encryption=fitz.PDF_ENCRYPT_AES_256, owner_pw="owner", user_pw="user")
        doc.close()

        with pytest.raises(DocumentOpenError, match="encrypted"):
            extract_pages(data)

    def test_read_document_missing_file(self, tmp_path):
        from specrag.errors import DocumentOpenError
        from specrag.ingestion.pdf_parser import read_document

        with pytest.raises(DocumentOpenError):
            read_document(tmp_path / "missing.pdf")

    def test_compute_content_hash(self):
        from specrag.ingestion.pdf_parser import compute_content_hash

        h = compute_content_hash(b"hello world")
        assert len(h) == 64  # SHA-256 hex
        assert h == compute_content_hash(b"hello world")


# ═══════════════════════════════════════════════════════════════════════════
# Layout tests
# ═══════════════════════════════════════════════════════════════════════════

class TestLayout:
    def test_rows_top_down_and_columns_left_right(self):
        from specrag.ingestion.layout import reconstruct_lines
        from specrag.ingestion.pdf_parser import Fragment

        fragments = [Fragment("Nm", 50, 100), Fragment("350", 10, 100), Fragment("Cam Bolt", 5, 40)]
        assert "\n".join(reconstruct_lines(fragments, tolerance=3)) == "350  Nm\nCam Bolt"

    def test_fragments_within_tolerance_share_a_row(self):
        from specrag.ingestion.layout import reconstruct_lines
        from specrag.ingestion.pdf_parser import Fragment

        fragments = [
            Fragment("Cam Bolt Nut", 5, 200.4),
            Fragment("350", 120, 201.6),
            Fragment("Nm", 160, 199),
            Fragment("258", 200, 200),
            Fragment("lb-ft", 240, 202),
        ]
        assert reconstruct_lines(fragments, tolerance=3) == ["Cam Bolt Nut  350  Nm  258  lb-ft"]

    def test_first_found_row_wins_over_nearest(self):
        from specrag.ingestion.layout import group_rows, reconstruct_lines
        from specrag.ingestion.pdf_parser import Fragment

        fragments = [Fragment("a", 0, 100), Fragment("b", 0, 104), Fragment("c", 5, 102)]
        rows = group_rows(fragments, tolerance=3)
        # 102 is within tolerance of both 100 and 104; the first row (100) takes it
        assert [f.text for f in rows[100]] == ["a", "c"]
        assert reconstruct_lines(fragments, tolerance=3) == ["b", "a  c"]

    def test_reconstruction_is_deterministic(self):
        from specrag.ingestion.layout import reconstruct_lines
        from specrag.ingestion.pdf_parser import Fragment

        fragments = [Fragment(f"cell{i}", (i * 37) % 400, 700 - (i // 4) * 20) for i in range(40)]
        first = reconstruct_lines(fragments)
        assert all(reconstruct_lines(fragments) == first for _ in range(5))

    def test_blank_fragments_and_rows_dropped(self):
        from specrag.ingestion.layout import reconstruct_lines
        from specrag.ingestion.pdf_parser import Fragment

        fragments = [Fragment("  ", 0, 500), Fragment("Bolt", 0, 300), Fragment(" ", 40, 300)]
        assert reconstruct_lines(fragments) == ["Bolt"]

    def test_reconstruct_page_from_pdf(self, manual_pdf):
        from specrag.ingestion.layout import reconstruct_pages
        from specrag.ingestion.pdf_parser import extract_pages

        pages = reconstruct_pages(extract_pages(manual_pdf))
        assert [p.number for p in pages] == [1, 2]
        lines = pages[0].lines
        assert lines[0] == "SECTION 204-04: WHEELS AND TIRES"
        assert lines[2] == "TORQUE SPECIFICATIONS"
        assert lines[3].startswith("Wheel nut")
        assert lines[3].index("204 Nm") < lines[3].index("150 lb-ft")
        assert pages[0].text.count("\n") == len(lines) - 1


# ═══════════════════════════════════════════════════════════════════════════
# Chunker tests
# ═══════════════════════════════════════════════════════════════════════════

def _page(number: int, *lines: str):
    from specrag.ingestion.layout import ReconstructedPage

    return ReconstructedPage(number=number, lines=tuple(lines))


class TestChunker:
    def test_detect_section(self):
        from specrag.ingestion.chunker import detect_section

        text = "Workshop Manual\nSECTION 204-01A: FRONT SUSPENSION\nRemoval and installation"
        assert detect_section(text) == "204-01A: FRONT SUSPENSION"
        assert detect_section("group 303-01 ENGINE") == "303-01: ENGINE"
        assert detect_section("No header on this page") is None

    def test_section_title_stops_at_column_separator(self):
        from specrag.ingestion.chunker import detect_section

        text = "SECTION 204-01A: FRONT SUSPENSION  Page 14\nbody"
        assert detect_section(text) == "204-01A: FRONT SUSPENSION"
        assert detect_section("SECTION 303-01: ENGINE  COOLING  2014") == "303-01: ENGINE"

    def test_section_from_reconstructed_header_row(self):
        from specrag.ingestion.chunker import build_chunks

        page = _page(
            7,
            "SECTION 206-00: BRAKE SYSTEM  2014 F-150  Page 7",
            "Brake fluid reservoir capacity 0.5 liter DOT 3",
        )
        assert [c.section for c in build_chunks([page])] == ["206-00: BRAKE SYSTEM"]

    def test_spec_priority_units(self):
        from specrag.ingestion.chunker import is_spec_priority

        for text in ["Tighten to 115 Nm", "350Nm", "45 N·m", "85 lb-ft", "2.5 liters",
                     "5 qt", "6 quarts", "35 psi", "2 bar", "0.8 mm", "3 pt"]:
            assert is_spec_priority(text), text
        for text in ["Refer to page 12", "psi rating", "Model 2014 F-150"]:
            assert not is_spec_priority(text), text

    def test_split_keeps_subheader_with_following_segment(self):
        from specrag.ingestion.chunker import split_segments

        text = (
            "Front suspension overview and general notes\n"
            "torque specifications\n"
            "Tie-rod end nut  115 Nm  85 lb-ft\n"
            "Fluid Capacities\n"
            "Rear axle  2.6 liters"
        )
        segments = split_segments(text)
        assert len(segments) == 3
        assert segments[1].startswith("torque specifications")
        assert segments[2].startswith("Fluid Capacities")

    def test_split_ignores_mid_line_keywords(self):
        from specrag.ingestion.chunker import split_segments

        text = "See the torque specifications below for every fastener in this section."
        assert split_segments(text) == [text]

    def test_header_at_start_does_not_shift_segment_index(self):
        from specrag.ingestion.chunker import build_chunks

        page = _page(3, "TORQUE SPECIFICATIONS", "Lug nut  204 Nm  150 lb-ft")
        chunks = build_chunks([page])
        assert [c.id for c in chunks] == ["p3-s0"]

    def test_chunk_text_template_and_ids(self):
        from specrag.ingestion.chunker import build_chunks

        page = _page(
            14,
            "SECTION 204-01A: FRONT SUSPENSION",
            "The front suspension uses coil-over shocks.",
            "TORQUE SPECIFICATIONS",
            "Tie-rod end nut  115 Nm  85 lb-ft",
        )
        chunks = build_chunks([page])
        assert [c.id for c in chunks] == ["p14-s0", "p14-s1"]
        general, spec = chunks
        assert not general.is_spec_priority
        assert spec.is_spec_priority
        assert spec.section == "204-01A: FRONT SUSPENSION"
        assert spec.text == (
            "SECTION: 204-01A: FRONT SUSPENSION\nPAGE: 14\n"
            "CONTENT: TORQUE SPECIFICATIONS\nTie-rod end nut  115 Nm  85 lb-ft"
        )

    def test_section_carries_across_pages(self):
        from specrag.ingestion.chunker import DEFAULT_SECTION, build_chunks

        pages = [
            _page(1, "Introduction to this workshop manual and its layout."),
            _page(2, "SECTION 204-04: WHEELS AND TIRES", "Wheels are attached with lug nuts."),
            _page(3, "Inspect each wheel for damage before installation."),
            _page(4, "SECTION 206-00: BRAKE SYSTEM", "Brake fluid capacity is 0.5 liter."),
        ]
        sections = [c.section for c in build_chunks(pages)]
        assert sections == [
            DEFAULT_SECTION,
            "204-04: WHEELS AND TIRES",
            "204-04: WHEELS AND TIRES",
            "206-00: BRAKE SYSTEM",
        ]

    def test_short_segments_dropped_but_index_consumed(self):
        from specrag.ingestion.chunker import build_chunks

        page = _page(
            5,
            "Short intro",
            "TORQUE SPECIFICATIONS",
            "Caliper bolt  37 Nm  27 lb-ft",
        )
        chunks = build_chunks([page])
        assert [c.id for c in chunks] == ["p5-s1"]

    def test_ids_unique_within_run(self):
        from specrag.ingestion.chunker import build_chunks

        pages = [
            _page(n, "General text about the vehicle systems here.", "TORQUE SPECIFICATIONS",
                  f"Bolt {n}  {10 + n} Nm  {7 + n} lb-ft")
            for n in range(1, 20)
        ]
        ids = [c.id for c in build_chunks(pages)]
        assert len(ids) == len(set(ids))

    def test_select_keeps_all_spec_priority_chunks(self):
        from specrag.ingestion.chunker import select_chunks

        chunks = [_chunk(f"g{i}") for i in range(400)]
        for i in range(10):
            chunks.insert(i * 37, _chunk(f"s{i}", priority=True))

        selected = select_chunks(chunks, max_chunks=300)
        assert len(selected) == 300
        assert [c.id for c in selected[:10]] == [f"s{i}" for i in range(10)]
        assert [c.id for c in selected[10:]] == [f"g{i}" for i in range(290)]

    def test_select_when_spec_priority_exceeds_budget(self):
        from specrag.ingestion.chunker import select_chunks

        chunks = [_chunk("g0")] + [_chunk(f"s{i}", priority=True) for i in range(5)]
        selected = select_chunks(chunks, max_chunks=3)
        assert [c.id for c in selected] == ["s0", "s1", "s2"]

    def test_select_under_budget_keeps_everything(self):
        from specrag.ingestion.chunker import select_chunks

        chunks = [_chunk("g0"), _chunk("s0", priority=True), _chunk("g1")]
        assert [c.id for c in select_chunks(chunks, max_chunks=300)] == ["s0", "g0", "g1"]


# ═══════════════════════════════════════════════════════════════════════════
# Embedding tests
# ═══════════════════════════════════════════════════════════════════════════

def _api_error(cls, status: int):
    request = httpx.Request("POST", "https://api.example.test/v1/embeddings")
    return cls("boom", response=httpx.Response(status, request=request), body=None)


def _embedding_response(vectors_by_index: dict[int, list[float]]):
    data = [SimpleNamespace(index=i, embedding=v) for i, v in vectors_by_index.items()]
    return SimpleNamespace(data=data)


class TestHashingEmbeddings:
    def test_string_hash(self):
        from specrag.ingestion.embeddings import _string_hash

        assert _string_hash("a") == 97
        assert _string_hash("ab") == 97 * 31 + 98
        assert -(2 ** 31) <= _string_hash("clearance" * 20) < 2 ** 31

    def test_deterministic_and_normalised(self):
        from specrag.ingestion.embeddings import HashingEmbeddingProvider

        provider = HashingEmbeddingProvider(dimension=1536)
        a = provider.embed("Wheel nut torque 204 Nm")
        b = provider.embed("Wheel nut torque 204 Nm")
        assert a == b
        assert len(a) == 1536
        assert math.isclose(math.sqrt(sum(x * x for x in a)), 1.0, rel_tol=1e-9)

    def test_empty_text_is_zero_vector(self):
        from specrag.ingestion.embeddings import HashingEmbeddingProvider

        vec = HashingEmbeddingProvider(dimension=64).embed("")
        assert vec == [0.0] * 64

    def test_batch_preserves_order(self):
        from specrag.ingestion.embeddings import HashingEmbeddingProvider

        provider = HashingEmbeddingProvider(dimension=256)
        texts = ["brake fluid capacity", "wheel nut torque", "spark plug gap"]
        batch = provider.embed_batch(texts)
        assert batch == [provider.embed(t) for t in texts]

    def test_related_text_scores_higher(self):
        from specrag.ingestion.embeddings import HashingEmbeddingProvider
        from specrag.ingestion.retrieval import cosine_similarity

        provider = HashingEmbeddingProvider()
        q = provider.embed("wheel nut torque")
        near = provider.embed("Wheel nut torque 204 Nm 150 lb-ft")
        far = provider.embed("Brake fluid reservoir capacity 0.5 liter")
        assert cosine_similarity(q, near) > cosine_similarity(q, far)

    def test_factory(self):
        from specrag.ingestion.embeddings import HashingEmbeddingProvider, get_embedding_provider

        assert isinstance(get_embedding_provider("hashing"), HashingEmbeddingProvider)
        with pytest.raises(ValueError):
            get_embedding_provider("word2vec")


class TestOpenAIEmbeddings:
    def test_batch_reordered_by_index(self):
        from specrag.ingestion.embeddings import OpenAIEmbeddingProvider

        client = MagicMock()
        client.embeddings.create.return_value = _embedding_response(
            {2: [0.0, 0.0, 1.0], 0: [1.0, 0.0, 0.0], 1: [0.0, 1.0, 0.0]}
        )
        provider = OpenAIEmbeddingProvider(client=client, model="m")
        out = provider.embed_batch(["a", "b", "c"])
        assert out == [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]
        client.embeddings.create.assert_called_once_with(model="m", input=["a", "b", "c"])

    def test_malformed_response_raises(self):
        from specrag.errors import EmbeddingError
        from specrag.ingestion.embeddings import OpenAIEmbeddingProvider

        client = MagicMock()
        client.embeddings.create.return_value = _embedding_response({0: [1.0]})
        provider = OpenAIEmbeddingProvider(client=client)
        with pytest.raises(EmbeddingError, match="Malformed"):
            provider.embed_batch(["a", "b"])

    @pytest.mark.parametrize(
        "error,match",
        [
            (lambda: _api_error(openai.AuthenticationError, 401), "API key"),
            (lambda: _api_error(openai.RateLimitError, 429), "rate limit"),
            (lambda: _api_error(openai.InternalServerError, 500), "Embedding failed"),
        ],
    )
    def test_api_errors_become_embedding_errors(self, error, match):
        from specrag.errors import EmbeddingError
        from specrag.ingestion.embeddings import OpenAIEmbeddingProvider

        client = MagicMock()
        client.embeddings.create.side_effect = error()
        with pytest.raises(EmbeddingError, match=match):
            OpenAIEmbeddingProvider(client=client).embed_batch(["a"])

    def test_single_embed_falls_back_to_batch_of_one(self):
        from specrag.ingestion.embeddings import OpenAIEmbeddingProvider

        client = MagicMock()
        client.embeddings.create.side_effect = [
            _api_error(openai.InternalServerError, 500),
            _embedding_response({0: [0.6, 0.8]}),
        ]
        provider = OpenAIEmbeddingProvider(client=client, model="m")
        assert provider.embed("wheel nut torque") == [0.6, 0.8]
        assert client.embeddings.create.call_count == 2
        assert client.embeddings.create.call_args.kwargs["input"] == ["wheel nut torque"]

    def test_single_embed_surfaces_error_after_one_retry(self):
        from specrag.errors import EmbeddingError
        from specrag.ingestion.embeddings import OpenAIEmbeddingProvider

        client = MagicMock()
        client.embeddings.create.side_effect = [
            _api_error(openai.RateLimitError, 429),
            _api_error(openai.RateLimitError, 429),
        ]
        with pytest.raises(EmbeddingError):
            OpenAIEmbeddingProvider(client=client).embed("q")
        assert client.embeddings.create.call_count == 2


class TestEmbedChunks:
    def test_batches_attach_embeddings_in_order(self):
        from specrag.ingestion.embeddings import HashingEmbeddingProvider, embed_chunks

        provider = HashingEmbeddingProvider(dimension=32)
        chunks = [_chunk(f"p1-s{i}") for i in range(5)]
        progress: list[tuple[int, int]] = []

        embedded = asyncio.run(
            embed_chunks(provider, chunks, batch_size=2, on_batch=lambda d, t: progress.append((d, t)))
        )

        assert progress == [(2, 5), (4, 5), (5, 5)]
        assert [c.id for c in embedded] == [c.id for c in chunks]
        assert all(c.embedding == provider.embed(c.text) for c in embedded)
        assert all(c.embedding is None for c in chunks)

    def test_vector_count_mismatch_raises(self):
        from specrag.errors import EmbeddingError
        from specrag.ingestion.embeddings import embed_chunks

        provider = MagicMock()
        provider.name = "broken"
        provider.embed_batch.return_value = [[1.0]]
        with pytest.raises(EmbeddingError):
            asyncio.run(embed_chunks(provider, [_chunk("a"), _chunk("b")], batch_size=10))


# ═══════════════════════════════════════════════════════════════════════════
# Retrieval tests
# ═══════════════════════════════════════════════════════════════════════════

class TestRetrieval:
    def test_cosine_similarity(self):
        from specrag.ingestion.retrieval import cosine_similarity

        assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([3, 4], [6, 8]) == pytest.approx(1.0)

    def test_cosine_degenerate_inputs_are_zero(self):
        from specrag.ingestion.retrieval import cosine_similarity

        assert cosine_similarity([0, 0], [1, 1]) == 0.0
        assert cosine_similarity([1, 2, 3], [1, 2]) == 0.0
        assert cosine_similarity([], []) == 0.0

    def test_top_k_descending(self):
        from specrag.ingestion.retrieval import retrieve

        chunks = [_chunk(f"c{i}", embedding=[1.0, float(i)]) for i in range(10)]
        result = retrieve([0.0, 1.0], chunks, k=6)
        assert [s.chunk.id for s in result.scored] == ["c9", "c8", "c7", "c6", "c5", "c4"]
        scores = [s.score for s in result.scored]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_generation_order(self):
        from specrag.ingestion.retrieval import retrieve

        chunks = [
            _chunk("a", embedding=[1.0, 0.0]),
            _chunk("b", embedding=[0.0, 1.0]),
            _chunk("c", embedding=[2.0, 0.0]),
            _chunk("d", embedding=[5.0, 0.0]),
        ]
        result = retrieve([1.0, 0.0], chunks, k=3)
        assert [s.chunk.id for s in result.scored] == ["a", "c", "d"]

    def test_unembedded_chunks_excluded(self):
        from specrag.ingestion.retrieval import retrieve

        chunks = [_chunk("none"), _chunk("neg", embedding=[-1.0, 0.0])]
        result = retrieve([1.0, 0.0], chunks, k=6)
        assert [s.chunk.id for s in result.scored] == ["neg"]
        assert result.scored[0].score == pytest.approx(-1.0)

    def test_context_joined_with_separator(self):
        from specrag.ingestion.retrieval import CONTEXT_SEPARATOR, retrieve

        chunks = [_chunk("x", embedding=[1.0, 0.0]), _chunk("y", embedding=[0.5, 0.5])]
        result = retrieve([1.0, 0.0], chunks, k=2)
        assert CONTEXT_SEPARATOR == "\n---\n"
        assert result.context == chunks[0].text + "\n---\n" + chunks[1].text

    def test_empty_chunk_set(self):
        from specrag.ingestion.retrieval import retrieve

        result = retrieve([1.0], [], k=6)
        assert result.scored == []
        assert result.context == ""


# ═══════════════════════════════════════════════════════════════════════════
# Quality gate tests
# ═══════════════════════════════════════════════════════════════════════════

def _item(**overrides):
    item = {
        "component": "Tie-rod end nut",
        "spec_type": "Torque",
        "value": "115",
        "unit": "Nm",
        "source_page": 14,
        "confidence": 0.95,
        "source_context": "Tie-rod end nut  115 Nm  85 lb-ft",
    }
    item.update(overrides)
    return item


class TestQuality:
    CONTEXT = "SECTION: 204-01A\nPAGE: 14\nCONTENT: Tie-rod end nut  115 Nm  85 lb-ft"

    def test_confidence_floor_is_inclusive(self):
        from specrag.ingestion.quality import filter_records

        records = filter_records(
            [_item(confidence=0.5), _item(confidence=0.49), _item(confidence=0.0)],
            self.CONTEXT,
        )
        assert [r.confidence for r in records] == [0.5]

    def test_non_objects_and_schema_violations_dropped(self):
        from specrag.ingestion.quality import filter_records

        items = ["text", 42, None, _item(spec_type="Colour"), _item(component=""), _item()]
        records = filter_records(items, self.CONTEXT)
        assert len(records) == 1
        assert records[0].component == "Tie-rod end nut"

    def test_literal_value_gate(self):
        from specrag.ingestion.quality import filter_records

        records = filter_records([_item(value="999"), _item(value="85", unit="lb-ft")], self.CONTEXT)
        assert [r.value for r in records] == ["85"]

    def test_literal_gate_can_be_disabled(self):
        from specrag.ingestion.quality import filter_records

        records = filter_records([_item(value="999")], self.CONTEXT, require_literal=False)
        assert len(records) == 1

    def test_dual_unit_value_split(self):
        from specrag.ingestion.quality import split_dual_units
        from specrag.ingestion.schemas import SpecRecord

        rec = SpecRecord.model_validate(_item(value="115 Nm (85 lb-ft)", unit="", condition="new bolts only"))
        first, second = split_dual_units(rec)
        assert (first.value, first.unit) == ("115", "Nm")
        assert (second.value, second.unit) == ("85", "lb-ft")
        assert first.component == second.component
        assert first.condition == second.condition == "new bolts only"
        assert first.source_page == second.source_page == 14

    def test_dual_unit_slash_forms(self):
        from specrag.ingestion.quality import split_dual_units
        from specrag.ingestion.schemas import SpecRecord

        a = SpecRecord.model_validate(_item(value="115/85", unit="Nm/lb-ft"))
        b = SpecRecord.model_validate(_item(value="115 Nm / 85 lb-ft", unit=""))
        for rec in (a, b):
            assert [(r.value, r.unit) for r in split_dual_units(rec)] == [("115", "Nm"), ("85", "lb-ft")]

    def test_single_unit_record_untouched(self):
        from specrag.ingestion.quality import split_dual_units
        from specrag.ingestion.schemas import SpecRecord

        rec = SpecRecord.model_validate(_item())
        assert split_dual_units(rec) == [rec]
