"""
Extraction pipeline for vehicle service-manual PDFs.

Modules
-------
config       – Pipeline-specific settings (row tolerance, chunk budget, thresholds …)
schemas      – Pydantic models for Chunk, ScoredChunk, SpecRecord
pdf_parser   – PDF opening & positioned text-fragment extraction (PyMuPDF)
layout       – Row reconstruction from scattered fragments (table-aware)
chunker      – Section-aware chunking with spec-priority selection
embeddings   – Embedding providers (hashing, sentence-transformers, hosted API)
retrieval    – Cosine-similarity top-k retrieval and context assembly
quality      – Validation gates for extracted spec records
pipeline     – Stage-by-stage orchestrator with progress notifications
"""
