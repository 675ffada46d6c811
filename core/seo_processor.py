"""
SEO keyword and hashtag suggestions for finished content.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ai_service import GenerationEngine, generate_with_retries, get_engine
from config import config
from errors import EngineUnavailable
from models import SamplingConfig, SeoKeywords
from usage_tracking import UsageTracker

from .prompt_templates import build_seo_prompt, parse_seo_keywords

logger = logging.getLogger(__name__)

USAGE_PHASE_SEO = "seo"
SEO_SAMPLING = SamplingConfig(temperature=0.5, max_tokens=800)


async def generate_seo_keywords(
    content: str,
    *,
    engine: Optional[GenerationEngine] = None,
    usage: Optional[UsageTracker] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> SeoKeywords:
    """
    Ask the engine for 10-15 keywords and hashtags describing ``content``.

    Raises:
        EngineUnavailable: transient failure after retries, or a reply with no usable keywords
        EngineRejected: backend refusal
    """
    response = await generate_with_retries(
        engine or get_engine(),
        build_seo_prompt(content),
        SEO_SAMPLING,
        timeout=config.ENGINE_TIMEOUT_SECONDS,
        max_attempts=config.ENGINE_MAX_ATTEMPTS,
        base_delay=config.ENGINE_RETRY_BASE_DELAY,
        sleep=sleep,
    )
    if usage is not None:
        usage.record(phase=USAGE_PHASE_SEO, iteration=0, usage=response.usage, model=response.model)

    keywords, hashtags = parse_seo_keywords(response.text)
    if not keywords and not hashtags:
        logger.warning("SEO reply contained no keywords: %.120r", response.text)
        raise EngineUnavailable("Engine returned no usable SEO keywords")

    logger.debug("Extracted %d keywords and %d hashtags", len(keywords), len(hashtags))
    return SeoKeywords(keywords=keywords, hashtags=hashtags, token_usage=response.usage)
