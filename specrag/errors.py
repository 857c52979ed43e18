"""Error taxonomy surfaced by the extraction pipeline.

Every stage failure aborts the run and propagates one of these to the caller.
Unparseable model output is *not* an error: it degrades to an empty result.
"""

from __future__ import annotations


class SpecRagError(Exception):
    """Base class for all pipeline errors."""


class DocumentOpenError(SpecRagError):
    """The source document could not be opened or parsed (corrupt, encrypted, not a PDF)."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class EmbeddingError(SpecRagError):
    """An embedding provider failed (auth, rate limit, transport, malformed response)."""


class ExtractionError(SpecRagError):
    """The extraction model call failed."""


class InvalidCredentialsError(ExtractionError):
    """The LLM provider rejected the configured API key."""


class RateLimitedError(ExtractionError):
    """The LLM provider is rate-limiting us. Wait and retry; the core never auto-retries."""
