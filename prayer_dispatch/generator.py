"""Dynamically generated nudge text via the OpenAI chat completions API."""
from __future__ import annotations

import logging
from typing import Any

from openai import OpenAI, OpenAIError

from prayer_dispatch.config import Config
from prayer_dispatch.errors import GenerationError

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Time for your daily lesson!"


def build_nudge_prompt(profile: dict) -> str:
    username = profile.get("username") or "friend"
    streak = profile.get("streak_count") or 0
    language = profile.get("preferred_language") or "your language"
    return (
        "You are a persistent, slightly dramatic language coach. Your goal is to guilt-trip the user "
        "into doing their lesson. Keep it under 100 characters.\n"
        f"User Data: Name: {username}, Streak: {streak}, Language: {language}.\n"
        f"Example Output: 'Hey {username}, your {streak} day streak looks lonely. "
        f"{language} won't learn itself! 🦉'"
    )


def build_client() -> OpenAI:
    if not Config.OPENAI_API_KEY:
        raise GenerationError("OPENAI_API_KEY is not configured")
    # No SDK retries: one bounded attempt, then the fallback.
    return OpenAI(api_key=Config.OPENAI_API_KEY, timeout=Config.OPENAI_TIMEOUT_S, max_retries=0)


def _completion_text(completion: Any) -> str:
    try:
        content = completion.choices[0].message.content
    except (AttributeError, IndexError, TypeError) as exc:
        raise GenerationError(f"Malformed completion response: {exc}") from exc
    text = (content or "").strip().strip('"').strip()
    if not text:
        raise GenerationError("Completion returned no text")
    return text


def request_completion(prompt: str, client: OpenAI | None = None) -> str:
    client = client or build_client()
    try:
        completion = client.chat.completions.create(
            model=Config.OPENAI_MODEL,
            messages=[{"role": "system", "content": prompt}],
            max_tokens=Config.NUDGE_MAX_TOKENS,
        )
    except OpenAIError as exc:
        raise GenerationError(str(exc)) from exc
    return _completion_text(completion)


def generate_dynamic(prompt_context: dict | str, client: OpenAI | None = None) -> str:
    """Generated message for ``prompt_context``, or the fixed fallback on any failure."""
    prompt = prompt_context if isinstance(prompt_context, str) else build_nudge_prompt(prompt_context)
    try:
        return request_completion(prompt, client)
    except GenerationError as exc:
        logger.error("AI generation failed, using fallback: %s", exc)
    except Exception:
        logger.exception("Unexpected AI generation error, using fallback")
    return FALLBACK_MESSAGE
