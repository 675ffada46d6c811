"""
Result assembly: turns the outcome of a refinement run into the immutable
``GenerationResult`` returned to callers.
"""

from typing import Optional

from constraint_evaluator import count_keyword_occurrences
from models import (
    ConstraintReport,
    GenerationRequest,
    GenerationResult,
    HumanizationSummary,
    KeywordUsage,
    RefinementState,
    SeoKeywords,
)
from usage_tracking import UsageTracker
from word_count_utils import count_words


def assemble_result(
    request: GenerationRequest,
    content: str,
    *,
    iteration_count: int,
    processing_time_ms: int,
    usage: UsageTracker,
    final_state: RefinementState,
    report: Optional[ConstraintReport] = None,
    partial: bool = False,
    soft_accepted: bool = False,
    humanization: Optional[HumanizationSummary] = None,
    removed_phrases: int = 0,
    seo: Optional[SeoKeywords] = None,
) -> GenerationResult:
    """
    Package final text plus metadata.

    Word count and keyword usage are recounted from ``content`` (after
    humanization). The constraint report is attached when the result is
    partial or soft-accepted so callers can see what was not met.
    """
    keyword_usage = [
        KeywordUsage(
            keyword=requirement.keyword,
            required=requirement.min_occurrences,
            occurrences=count_keyword_occurrences(content, requirement.keyword),
        )
        for requirement in request.required_keywords
    ]

    return GenerationResult(
        request_id=request.request_id,
        content=content,
        word_count=count_words(content),
        iteration_count=iteration_count,
        processing_time_ms=max(0, int(processing_time_ms)),
        token_usage=usage.total(),
        token_usage_by_phase=usage.by_phase(),
        cost_usd=usage.total_cost(),
        partial=partial,
        soft_accepted=soft_accepted,
        final_state=final_state,
        constraint_report=report if (partial or soft_accepted) else None,
        keyword_usage=keyword_usage,
        humanization=humanization or HumanizationSummary(),
        removed_phrases=removed_phrases,
        seo=seo,
    )
