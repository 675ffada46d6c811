"""
Tests for constraint_evaluator.py - per-draft constraint reports.

Test Areas:
1. Keyword counting helpers
2. Word count, keyword, section, reading-level and citation checks
3. ConstraintEvaluator aggregation and weighted distance
"""

import pytest

from constraint_evaluator import (
    CitationCheck,
    ConstraintEvaluator,
    KeywordOccurrenceCheck,
    ReadingLevelCheck,
    SectionOrderCheck,
    WordCountCheck,
    count_keyword_occurrences,
    extract_headings,
    find_keyword_spans,
    heading_matches,
    weighted_distance,
)
from models import GradeLevel, RequiredSource


# ============================================================================
# Helpers
# ============================================================================

class TestKeywordHelpers:
    def test_count_is_case_insensitive(self):
        assert count_keyword_occurrences("Solar panels and SOLAR PANELS.", "solar panels") == 2

    def test_count_is_non_overlapping(self):
        assert count_keyword_occurrences("aaaa", "aa") == 2

    def test_empty_keyword_counts_zero(self):
        assert count_keyword_occurrences("anything", "") == 0

    def test_find_spans(self):
        text = "Solar power. More solar power."
        assert find_keyword_spans(text, ["solar power"]) == [(0, 11), (18, 29)]

    def test_spans_index_the_original_text_when_lowercasing_changes_length(self):
        """
        Given: Text with a character whose lowercase form is two code points
        When: Keyword spans are located
        Then: Each span slices the keyword out of the original text
        """
        text = "İstanbul rooftops use Solar Panels; İzmir solar panels too."

        spans = find_keyword_spans(text, ["solar panels"])

        assert [text[start:end] for start, end in spans] == ["Solar Panels", "solar panels"]
        assert len(spans) == count_keyword_occurrences(text, "solar panels")


class TestHeadings:
    def test_extract_headings(self, build_article):
        article = build_article(total_words=120)
        assert extract_headings(article) == ["Home Energy Guide", "Introduction", "Benefits", "Conclusion"]

    @pytest.mark.parametrize("required,heading,expected", [
        ("Benefits", "Benefits", True),
        ("Benefits", "2. Key Benefits", True),
        ("benefits", "BENEFITS!", True),
        ("Benefit", "Benefits", False),
        ("Conclusion", "Introduction", False),
    ])
    def test_heading_matches(self, required, heading, expected):
        assert heading_matches(required, heading) is expected


# ============================================================================
# Individual Checks
# ============================================================================

class TestWordCountCheck:
    def test_within_tolerance_passes(self, build_article, request_factory):
        request = request_factory(target_word_count=500)
        [result] = WordCountCheck().evaluate(build_article(total_words=540), request)
        assert result.passed
        assert result.distance == pytest.approx(0.08)
        assert result.detail == {"actual": 540, "target": 500, "min": 450, "max": 550}

    def test_outside_tolerance_fails(self, build_article, request_factory):
        request = request_factory(target_word_count=500)
        [result] = WordCountCheck().evaluate(build_article(total_words=300), request)
        assert not result.passed
        assert result.distance == pytest.approx(-0.4)


class TestKeywordOccurrenceCheck:
    def test_each_keyword_is_reported(self, build_article, request_factory):
        """
        Given: Two required keywords, one present enough times and one short
        When: The keyword check runs
        Then: One result per keyword with distance = required - actual
        """
        request = request_factory(keywords={"solar panels": 2, "net metering": 3})
        text = build_article(keywords={"solar panels": 2, "net metering": 1})
        results = {item.name: item for item in KeywordOccurrenceCheck().evaluate(text, request)}

        assert results["keyword:solar panels"].passed
        assert results["keyword:solar panels"].distance == 0
        assert not results["keyword:net metering"].passed
        assert results["keyword:net metering"].distance == 2
        assert results["keyword:net metering"].detail["actual"] == 1


class TestSectionOrderCheck:
    def test_no_sections_no_result(self, build_article, request_factory):
        assert SectionOrderCheck().evaluate(build_article(), request_factory()) == []

    def test_in_order_passes(self, build_article, request_factory):
        request = request_factory(required_sections=("Introduction", "Benefits", "Conclusion"))
        [result] = SectionOrderCheck().evaluate(build_article(), request)
        assert result.passed
        assert result.distance == 0

    def test_out_of_order_fails(self, build_article, request_factory):
        request = request_factory(required_sections=("Introduction", "Benefits", "Conclusion"))
        text = build_article(sections=("Introduction", "Conclusion", "Benefits"))
        [result] = SectionOrderCheck().evaluate(text, request)
        assert not result.passed
        assert result.detail["missing"] == ["Conclusion"]

    def test_missing_section_fails(self, build_article, request_factory):
        request = request_factory(required_sections=("Introduction", "Costs", "Conclusion"))
        [result] = SectionOrderCheck().evaluate(build_article(), request)
        assert not result.passed
        assert result.distance == 1
        assert result.detail["missing"] == ["Costs"]


class TestReadingLevelCheck:
    def test_skipped_without_grade(self, build_article, request_factory):
        assert ReadingLevelCheck().evaluate(build_article(), request_factory()) == []

    def test_simple_text_meets_low_grade(self, build_article, request_factory):
        request = request_factory(grade_level=GradeLevel.GRADE_4_6)
        [result] = ReadingLevelCheck().evaluate(build_article(), request)
        assert result.passed
        assert result.detail["measured"] == "grade-4-6"

    def test_simple_text_fails_college(self, build_article, request_factory):
        request = request_factory(grade_level=GradeLevel.COLLEGE)
        [result] = ReadingLevelCheck().evaluate(build_article(), request)
        assert not result.passed
        assert result.distance == -3
        assert result.detail["target"] == "college"


class TestCitationCheck:
    def test_skipped_when_not_requested(self, build_article, request_factory):
        assert CitationCheck().evaluate(build_article(), request_factory()) == []

    def test_marker_required(self, build_article, request_factory):
        request = request_factory(include_citations=True)
        [result] = CitationCheck().evaluate(build_article(), request)
        assert not result.passed
        assert result.detail["missing"] == ["citation marker"]

    @pytest.mark.parametrize("marker", [
        "Costs fell sharply [1].",
        "Costs fell sharply (Lazard, 2023).",
        "See https://www.nrel.gov/solar for data.",
        "Sources: national lab data.",
    ])
    def test_marker_forms(self, build_article, request_factory, marker):
        request = request_factory(include_citations=True)
        [result] = CitationCheck().evaluate(build_article(extra_sentences=(marker,)), request)
        assert result.passed

    def test_required_sources_by_label_or_url(self, build_article, request_factory):
        request = request_factory(required_sources=(
            RequiredSource(label="NREL", url="https://www.nrel.gov"),
            RequiredSource(label="Energy Star"),
            RequiredSource(label="IEA"),
        ))
        text = build_article(extra_sentences=(
            "Data from https://www.nrel.gov backs this.",
            "Energy Star lists efficient models.",
        ))
        [result] = CitationCheck().evaluate(text, request)
        assert not result.passed
        assert result.detail["missing"] == ["IEA"]


# ============================================================================
# Aggregation
# ============================================================================

class TestConstraintEvaluator:
    def test_report_contains_every_applicable_constraint(self, build_article, request_factory):
        request = request_factory(
            keywords={"solar panels": 2},
            required_sections=("Introduction", "Benefits", "Conclusion"),
            grade_level=GradeLevel.GRADE_7_10,
            include_citations=True,
        )
        text = build_article(keywords={"solar panels": 2}, extra_sentences=("Prices dropped [1].",))
        report = ConstraintEvaluator().evaluate(text, request)

        assert set(report.results) == {
            "word_count", "keyword:solar panels", "sections", "reading_level", "citations",
        }
        assert report.all_passed
        assert report.keyword_pass_count == 1

    def test_evaluation_is_pure(self, build_article, request_factory):
        request = request_factory(keywords={"solar panels": 5})
        text = build_article(keywords={"solar panels": 1})
        evaluator = ConstraintEvaluator()
        assert evaluator.evaluate(text, request) == evaluator.evaluate(text, request)

    def test_custom_checks(self, build_article, request_factory):
        report = ConstraintEvaluator(checks=[WordCountCheck()]).evaluate(build_article(), request_factory())
        assert list(report.results) == ["word_count"]


class TestWeightedDistance:
    def test_word_count_always_counts_other_kinds_only_when_failing(self, build_article, request_factory):
        request = request_factory(keywords={"solar panels": 3, "inverter": 1})
        text = build_article(total_words=525, keywords={"solar panels": 1, "inverter": 1})
        report = ConstraintEvaluator().evaluate(text, request)
        weights = {"word_count": 10.0, "keyword": 1.0}

        # 10 * 0.05 for word count plus 2 missing keyword occurrences
        assert weighted_distance(report, weights) == pytest.approx(2.5)
