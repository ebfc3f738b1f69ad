"""Provider-agnostic LLM client with fallback support."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from openai import APIConnectionError, APIStatusError, OpenAI, RateLimitError

from stocksage.config import settings

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


def call_llm_with_fallback(
    messages: List[Dict[str, Any]],
    max_tokens: Optional[int] = None,
    json_mode: bool = False,
) -> str:
    """Call primary LLM provider and fall back on rate limits or missing config.

    With ``json_mode`` the provider is asked for a single JSON object.
    """
    primary = settings.LLM_PRIMARY_PROVIDER.lower().strip()
    fallback = settings.LLM_FALLBACK_PROVIDER.lower().strip()
    max_tokens = max_tokens or settings.LLM_MAX_TOKENS

    try:
        return _call_provider(primary, messages, max_tokens, json_mode)
    except Exception as exc:  # noqa: BLE001 - handled for fallback
        if not _should_fallback(exc) or fallback == primary:
            raise
        logger.warning(
            "Primary LLM provider '%s' failed (%s); trying fallback '%s'.",
            primary,
            exc.__class__.__name__,
            fallback,
        )
        return _call_provider(fallback, messages, max_tokens, json_mode)


def _build_client(provider: str) -> tuple[OpenAI, str]:
    """Return an OpenAI-compatible client and model name for a provider."""
    if provider == "groq":
        if not settings.GROQ_API_KEY:
            raise ValueError("GROQ_API_KEY not set")
        return OpenAI(api_key=settings.GROQ_API_KEY, base_url=GROQ_BASE_URL), settings.GROQ_MODEL
    if provider == "openai":
        if not settings.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY not set")
        return OpenAI(api_key=settings.OPENAI_API_KEY), settings.OPENAI_MODEL
    raise ValueError(f"Unsupported LLM provider: {provider}")


def _call_provider(
    provider: str,
    messages: List[Dict[str, Any]],
    max_tokens: int,
    json_mode: bool = False,
) -> str:
    """Call a specific provider using the OpenAI SDK."""
    client, model = _build_client(provider.lower().strip())

    kwargs: Dict[str, Any] = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    response = client.chat.completions.create(
        model=model,
        messages=messages,
        temperature=settings.LLM_TEMPERATURE,
        max_tokens=max_tokens,
        **kwargs,
    )

    content = response.choices[0].message.content if response.choices else None
    if not content:
        raise ValueError("Empty LLM response")

    return content.strip()


def _should_fallback(exc: Exception) -> bool:
    """Determine whether to use fallback provider."""
    if isinstance(exc, RateLimitError):
        return True
    if isinstance(exc, APIStatusError) and exc.status_code == 429:
        return True
    if isinstance(exc, APIConnectionError):
        return True
    if isinstance(exc, ValueError):
        return True
    return False
