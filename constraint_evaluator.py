"""
Constraint Evaluator
====================

Scores a draft against every requirement of a ``GenerationRequest`` and
returns a ``ConstraintReport``. Each constraint kind is a separate
``ConstraintCheck`` so kinds can be added or swapped without touching the
refinement loop. Everything here is a pure function of (text, request).
"""

import re
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

from models import ConstraintReport, ConstraintResult, GenerationRequest
from readability_utils import flesch_kincaid_grade, grade_bucket, grade_level_for_score, heading_text, normalize_heading
from word_count_utils import calculate_word_count_range, count_words, is_within_tolerance, word_count_deviation

CITATION_MARKER = re.compile(
    r"\[\^?\d+\]"                              # [1] or [^1]
    r"|\([^()]*\b\d{4}[a-z]?\)"                # (Smith, 2020)
    r"|https?://[^\s)\]]+"                     # bare URLs
    r"|\b(?:Source|Sources|Reference|References)\s*:",
    re.IGNORECASE,
)


def _keyword_matches(text: str, keyword: str) -> Iterator[re.Match]:
    return re.finditer(re.escape(keyword), text, re.IGNORECASE)


def count_keyword_occurrences(text: str, keyword: str) -> int:
    """Case-insensitive, non-overlapping substring count."""
    if not keyword:
        return 0
    return sum(1 for _ in _keyword_matches(text, keyword))


def find_keyword_spans(text: str, keywords: Iterable[str]) -> List[Tuple[int, int]]:
    """Character spans, in ``text`` itself, of every non-overlapping occurrence of each keyword."""
    spans: List[Tuple[int, int]] = []
    for keyword in keywords:
        if not keyword:
            continue
        spans.extend(match.span() for match in _keyword_matches(text, keyword))
    return sorted(spans)


def extract_headings(text: str) -> List[str]:
    headings = []
    for line in text.splitlines():
        title = heading_text(line)
        if title:
            headings.append(title)
    return headings


def heading_matches(required: str, heading: str) -> bool:
    """A heading matches when it equals the required title or contains it as whole words."""
    wanted = normalize_heading(required)
    found = normalize_heading(heading)
    if not wanted or not found:
        return False
    if wanted == found:
        return True
    return re.search(rf"(?:^|\s){re.escape(wanted)}(?:\s|$)", found) is not None


class ConstraintCheck(Protocol):
    kind: str

    def evaluate(self, text: str, request: GenerationRequest) -> List[ConstraintResult]:
        ...


class WordCountCheck:
    kind = "word_count"

    def evaluate(self, text: str, request: GenerationRequest) -> List[ConstraintResult]:
        actual = count_words(text)
        target = request.target_word_count
        minimum, maximum = calculate_word_count_range(target, request.word_count_tolerance)
        return [
            ConstraintResult(
                name="word_count",
                kind=self.kind,
                passed=is_within_tolerance(actual, target, request.word_count_tolerance),
                distance=word_count_deviation(actual, target),
                detail={"actual": actual, "target": target, "min": minimum, "max": maximum},
            )
        ]


class KeywordOccurrenceCheck:
    kind = "keyword"

    def evaluate(self, text: str, request: GenerationRequest) -> List[ConstraintResult]:
        results = []
        for requirement in request.required_keywords:
            actual = count_keyword_occurrences(text, requirement.keyword)
            results.append(
                ConstraintResult(
                    name=f"keyword:{requirement.keyword}",
                    kind=self.kind,
                    passed=actual >= requirement.min_occurrences,
                    distance=float(requirement.min_occurrences - actual),
                    detail={
                        "keyword": requirement.keyword,
                        "actual": actual,
                        "required": requirement.min_occurrences,
                    },
                )
            )
        return results


class SectionOrderCheck:
    """Required headings must appear as an in-order subsequence of the draft's headings."""

    kind = "sections"

    def evaluate(self, text: str, request: GenerationRequest) -> List[ConstraintResult]:
        if not request.required_sections:
            return []

        headings = extract_headings(text)
        cursor = 0
        missing: List[str] = []
        for section in request.required_sections:
            position = self._find_from(section, headings, cursor)
            if position is None:
                missing.append(section)
            else:
                cursor = position + 1

        return [
            ConstraintResult(
                name="sections",
                kind=self.kind,
                passed=not missing,
                distance=float(len(missing)),
                detail={"missing": missing, "headings": headings},
            )
        ]

    @staticmethod
    def _find_from(section: str, headings: Sequence[str], start: int) -> Optional[int]:
        for index in range(start, len(headings)):
            if heading_matches(section, headings[index]):
                return index
        return None


class ReadingLevelCheck:
    kind = "reading_level"

    def evaluate(self, text: str, request: GenerationRequest) -> List[ConstraintResult]:
        if request.grade_level is None:
            return []

        score = flesch_kincaid_grade(text)
        difference = grade_bucket(score) - request.grade_level.bucket
        return [
            ConstraintResult(
                name="reading_level",
                kind=self.kind,
                passed=abs(difference) <= 1,
                distance=float(difference),
                detail={
                    "fk_grade": round(score, 2),
                    "measured": grade_level_for_score(score).value,
                    "target": request.grade_level.value,
                },
            )
        ]


class CitationCheck:
    kind = "citations"

    def evaluate(self, text: str, request: GenerationRequest) -> List[ConstraintResult]:
        if not request.include_citations and not request.required_sources:
            return []

        missing: List[str] = []
        markers = len(CITATION_MARKER.findall(text))
        if request.include_citations and markers == 0:
            missing.append("citation marker")

        lowered = text.lower()
        for source in request.required_sources:
            if source.label.lower() in lowered:
                continue
            if source.url and source.url.lower() in lowered:
                continue
            missing.append(source.label)

        return [
            ConstraintResult(
                name="citations",
                kind=self.kind,
                passed=not missing,
                distance=float(len(missing)),
                detail={"markers": markers, "missing": missing},
            )
        ]


def default_checks() -> List[ConstraintCheck]:
    return [WordCountCheck(), KeywordOccurrenceCheck(), SectionOrderCheck(), ReadingLevelCheck(), CitationCheck()]


class ConstraintEvaluator:
    """Runs every configured check over a draft."""

    def __init__(self, checks: Optional[Sequence[ConstraintCheck]] = None):
        self.checks = list(checks) if checks is not None else default_checks()

    def evaluate(self, text: str, request: GenerationRequest) -> ConstraintReport:
        results: Dict[str, ConstraintResult] = {}
        for check in self.checks:
            for result in check.evaluate(text, request):
                results[result.name] = result
        return ConstraintReport(results=results)


def weighted_distance(report: ConstraintReport, weights: Dict[str, float]) -> float:
    """
    Total weighted distance of a report.

    Word-count deviation always counts (closer to target is better); other
    kinds only contribute while failing.
    """
    total = 0.0
    for result in report.results.values():
        weight = weights.get(result.kind, 1.0)
        if result.kind == "word_count":
            total += weight * abs(result.distance)
        elif not result.passed:
            total += weight * abs(result.distance)
    return total
