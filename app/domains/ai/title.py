"""Thread title generation through OpenRouter."""

import asyncio
import logging

import openai
from openai import AsyncOpenAI
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import settings
from app.domains.chat.prompts import TITLE_GENERATOR_PROMPT
from app.schemas.ai import ApiKeys

logger = logging.getLogger(__name__)

TITLE_INPUT_LIMIT = 1000


def fallback_title(text: str) -> str:
    return text[: settings.title_fallback_length]


def _title_api_key(api_keys: ApiKeys | None) -> str | None:
    user_key = api_keys.openrouter if api_keys else None
    return user_key or settings.title_generator_openrouter_api_key or settings.openrouter_api_key


@retry(
    retry=retry_if_exception_type(
        (openai.RateLimitError, openai.APIConnectionError, openai.InternalServerError)
    ),
    stop=stop_after_attempt(settings.ai_max_retry_attempts),
    wait=wait_exponential(
        multiplier=settings.ai_retry_backoff_factor,
        min=settings.ai_retry_min_wait,
        max=settings.ai_retry_max_wait,
    ),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _request_title(client: AsyncOpenAI, text: str) -> str:
    response = await client.chat.completions.create(
        model=settings.title_generator_model,
        messages=[
            {"role": "system", "content": TITLE_GENERATOR_PROMPT},
            {"role": "user", "content": text[:TITLE_INPUT_LIMIT]},
        ],
    )
    if not response.choices:
        return ""
    return (response.choices[0].message.content or "").strip()


async def generate_thread_title(text: str, api_keys: ApiKeys | None = None) -> str:
    """Title a new thread from its first user message.

    Never raises: without a key, or on any provider failure, the first
    characters of ``text`` are used instead.
    """
    api_key = _title_api_key(api_keys)
    if not api_key:
        return fallback_title(text)

    client = AsyncOpenAI(
        api_key=api_key,
        base_url=settings.openrouter_base_url,
        timeout=settings.ai_request_timeout,
    )
    try:
        title = await _request_title(client, text)
    except (openai.APIError, asyncio.TimeoutError) as e:
        logger.error(f"Error generating thread title: {str(e)}")
        return fallback_title(text)
    finally:
        await client.close()

    if not title:
        return fallback_title(text)
    return title[: settings.title_max_length]
