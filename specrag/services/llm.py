"""Thin wrapper around an OpenAI-compatible chat-completion API (Groq by default)."""

from __future__ import annotations

import logging

import openai
from openai import OpenAI as _HTTPClient

from specrag.config import settings
from specrag.errors import ExtractionError, InvalidCredentialsError, RateLimitedError

logger = logging.getLogger(__name__)

_client: _HTTPClient | None = None


def _get_client() -> _HTTPClient:
    global _client
    if _client is None:
        if not settings.llm_api_key:
            logger.warning("No LLM API key configured. Set LLM_API_KEY in .env.")
        _client = _HTTPClient(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key or "missing",
        )
    return _client


def chat(
    system_prompt: str,
    user_prompt: str,
    *,
    model: str | None = None,
    temperature: float = 0.0,
    max_tokens: int | None = None,
) -> str:
    """Send a chat completion request and return the assistant's reply.

    Provider failures are translated into the pipeline's error taxonomy.
    """
    client = _get_client()
    try:
        response = client.chat.completions.create(
            model=model or settings.llm_model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens or settings.llm_max_tokens,
        )
    except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
        raise InvalidCredentialsError(
            "Invalid LLM API key. Check LLM_API_KEY in your .env file."
        ) from exc
    except openai.RateLimitError as exc:
        raise RateLimitedError("LLM rate limit hit. Wait 30 seconds and try again.") from exc
    except openai.OpenAIError as exc:
        raise ExtractionError(f"LLM extraction failed: {exc}") from exc

    content = response.choices[0].message.content if response.choices else None
    content = content or ""
    logger.debug("LLM response (%d chars): %s…", len(content), content[:120])
    return content.strip()
