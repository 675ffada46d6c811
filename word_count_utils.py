"""
Word Count Utilities for the Ghostli Content Engine
===================================================

Utilities for word count validation and enforcement.
"""

import logging
import re
from typing import Tuple

logger = logging.getLogger(__name__)

_WORD_TOKEN = re.compile(r"\S+")
_HAS_ALNUM = re.compile(r"[^\W_]")


def count_words(text: str) -> int:
    """
    Count words in text using a robust method

    A word is a whitespace-delimited token containing at least one letter or
    digit, so markdown markers ("##", "**", "-") are never counted while
    hyphenated and apostrophised words count once.

    Args:
        text: Text to count words in

    Returns:
        Number of words
    """
    if not text or not text.strip():
        return 0

    return sum(1 for token in _WORD_TOKEN.findall(text) if _HAS_ALNUM.search(token))


def calculate_word_count_range(target: int, tolerance: float) -> Tuple[int, int]:
    """
    Calculate the acceptable word count range based on target and tolerance

    Args:
        target: Target word count
        tolerance: Allowed relative deviation (0.10 means +/-10%)

    Returns:
        (absolute_min, absolute_max) word counts, both inclusive
    """
    if target <= 0:
        return 0, 0

    slack = target * tolerance
    absolute_min = max(1, int(-(-(target - slack) // 1)))
    absolute_max = int((target + slack) // 1)
    return absolute_min, absolute_max


def word_count_deviation(actual: int, target: int) -> float:
    """Signed relative deviation of ``actual`` from ``target`` (negative when short)."""
    if target <= 0:
        return 0.0
    return (actual - target) / target


def is_within_tolerance(actual: int, target: int, tolerance: float) -> bool:
    return abs(word_count_deviation(actual, target)) <= tolerance + 1e-9


def build_word_count_instructions(target: int, tolerance: float) -> str:
    """Build word count instructions for the AI generator."""

    if target <= 0:
        return ""

    abs_min, abs_max = calculate_word_count_range(target, tolerance)
    percent = int(round(tolerance * 100))
    return f"""CRITICAL WORD COUNT REQUIREMENT: Exactly {target} words (acceptable range {abs_min}-{abs_max}, +/-{percent}%).
- MANDATORY to comply with this requirement
- If you do not meet this requirement, the content will be REJECTED and you will have to regenerate it
- VERIFY the word count before delivering the text
- Stay within {percent}% of the target; do not pad the ending or cut sections short"""
