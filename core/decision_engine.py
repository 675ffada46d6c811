"""
Refinement decision policy: accept, repair, regenerate or exhaust, plus
best-draft selection once the budget is spent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from config import RefinementSettings
from constraint_evaluator import weighted_distance
from models import ConstraintReport

ACCEPT = "accept"
REPAIR = "repair"
REGENERATE = "regenerate"
EXHAUST = "exhaust"

# Kinds that make up the lexicographic ranking key, in priority order after keyword count
_RANKED_PASS_KINDS = ("sections", "reading_level", "citations")


@dataclass(frozen=True)
class RefinementDecision:
    action: str
    reason: str


@dataclass(frozen=True)
class ScoredDraft:
    """One evaluated draft kept as a candidate for best-draft selection."""

    iteration: int
    text: str
    report: ConstraintReport


def repair_threshold(total_constraints: int, settings: RefinementSettings) -> float:
    return max(1.0, total_constraints * settings.repair_failing_ratio)


def decide(
    report: ConstraintReport,
    iteration: int,
    max_iterations: int,
    settings: RefinementSettings,
) -> RefinementDecision:
    """
    Decide the next transition after evaluating a draft.

    1. Every constraint passes -> accept
    2. Iteration budget spent -> exhaust
    3. Word count off by more than the regeneration threshold, or a majority
       of constraints failing -> regenerate from the base prompt
    4. Otherwise a minority fails -> targeted repair
    """
    failing = report.failing()
    if not failing:
        return RefinementDecision(ACCEPT, "All constraints satisfied")

    names = ", ".join(item.name for item in failing)
    if iteration >= max_iterations:
        return RefinementDecision(EXHAUST, f"Iteration budget of {max_iterations} spent; failing: {names}")

    word_count = report.get("word_count")
    if word_count is not None and abs(word_count.distance) > settings.regenerate_word_deviation:
        return RefinementDecision(
            REGENERATE,
            f"Word count deviates by {word_count.distance:+.0%} (limit {settings.regenerate_word_deviation:.0%})",
        )

    threshold = repair_threshold(len(report.results), settings)
    if len(failing) > threshold:
        return RefinementDecision(
            REGENERATE, f"{len(failing)} of {len(report.results)} constraints failing: {names}"
        )

    return RefinementDecision(REPAIR, f"Repairing {len(failing)} failing constraint(s): {names}")


def ranking_key(draft: ScoredDraft, settings: RefinementSettings) -> Tuple:
    """
    Sort key where larger is better.

    The pass tuple is primary: (word count passes, keyword passes, sections
    pass, reading level passes, citations pass) is compared lexicographically,
    so any extra pass outranks any amount of distance. Lowest weighted
    distance only breaks ties between equal pass tuples, then the earliest
    iteration wins.
    """
    report = draft.report
    key: List = [report.kind_passed("word_count"), report.keyword_pass_count]
    key.extend(report.kind_passed(kind) for kind in _RANKED_PASS_KINDS)
    key.append(-weighted_distance(report, settings.distance_weights))
    key.append(-draft.iteration)
    return tuple(key)


def select_best_draft(drafts: Sequence[ScoredDraft], settings: RefinementSettings) -> Optional[ScoredDraft]:
    if not drafts:
        return None
    return max(drafts, key=lambda draft: ranking_key(draft, settings))


def is_soft_acceptable(report: ConstraintReport, settings: RefinementSettings) -> bool:
    """
    A draft may be soft-accepted when word count passes and every failing
    constraint belongs to a configured soft kind. Keyword failures never are.
    """
    if not report.kind_passed("word_count"):
        return False
    soft = set(settings.soft_constraints) - {"keyword", "word_count"}
    return all(item.kind in soft for item in report.failing())
