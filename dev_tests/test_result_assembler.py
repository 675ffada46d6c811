"""
Tests for core/result_assembler.py - final result packaging.
"""

from constraint_evaluator import ConstraintEvaluator
from core.result_assembler import assemble_result
from models import HumanizationSummary, RefinementState, TokenUsage
from usage_tracking import UsageTracker


def _tracker():
    tracker = UsageTracker()
    tracker.record(
        phase="generation",
        iteration=1,
        usage=TokenUsage(prompt_tokens=100, completion_tokens=200, total_tokens=300),
    )
    return tracker


class TestAssembleResult:

    def test_accepted_result(self, request_factory, build_article):
        request = request_factory(keywords={"solar panels": 2})
        text = build_article(total_words=480, keywords={"solar panels": 2})
        report = ConstraintEvaluator().evaluate(text, request)

        result = assemble_result(
            request, text,
            iteration_count=1,
            processing_time_ms=1234,
            usage=_tracker(),
            final_state=RefinementState.ACCEPTED,
            report=report,
        )

        assert result.request_id == request.request_id
        assert result.word_count == 480
        assert result.iteration_count == 1
        assert result.processing_time_ms == 1234
        assert result.token_usage.total_tokens == 300
        assert set(result.token_usage_by_phase) == {"generation"}
        assert result.partial is False
        assert result.constraint_report is None
        assert [(item.keyword, item.required, item.occurrences) for item in result.keyword_usage] == [
            ("solar panels", 2, 2)
        ]
        assert result.humanization == HumanizationSummary()

    def test_partial_result_carries_report(self, request_factory, build_article):
        request = request_factory(keywords={"solar panels": 4})
        text = build_article(keywords={"solar panels": 1})
        report = ConstraintEvaluator().evaluate(text, request)

        result = assemble_result(
            request, text,
            iteration_count=5,
            processing_time_ms=10,
            usage=_tracker(),
            final_state=RefinementState.EXHAUSTED,
            report=report,
            partial=True,
        )

        assert result.partial is True
        assert result.final_state == RefinementState.EXHAUSTED
        assert result.constraint_report == report
        assert result.keyword_usage[0].occurrences == 1

    def test_counts_are_taken_from_final_text(self, request_factory, build_article):
        request = request_factory(keywords={"solar panels": 1})
        humanized = build_article(total_words=495, keywords={"solar panels": 1})
        summary = HumanizationSummary(applied=True, seed=7, typos=3, words_removed=5)

        result = assemble_result(
            request, humanized,
            iteration_count=2,
            processing_time_ms=-5,
            usage=UsageTracker(),
            final_state=RefinementState.ACCEPTED,
            soft_accepted=True,
            humanization=summary,
            removed_phrases=2,
        )

        assert result.word_count == 495
        assert result.processing_time_ms == 0
        assert result.humanization.applied is True
        assert result.removed_phrases == 2
        assert result.soft_accepted is True
