"""
Readability helpers: heading detection, sentence splitting and the
Flesch-Kincaid grade level.
"""

import re
from typing import List, Optional

from models import GradeLevel

_MARKDOWN_HEADING = re.compile(r"^\s{0,3}#{1,6}\s+(.+?)\s*#*\s*$")
_BOLD_LINE = re.compile(r"^\s*(\*\*|__)(.+?)\1\s*:?\s*$")
_NUMBER_PREFIX = re.compile(r"^(?:\d+[.)]|[IVXivx]+\.)\s+")
_LIST_ITEM = re.compile(r"^\s*(?:[-*+•]\s|>)")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])[\"')\]]*\s+")
_WORD = re.compile(r"[A-Za-z]+(?:'[A-Za-z]+)?")
_VOWEL_GROUPS = re.compile(r"[aeiouy]+")

MAX_TITLE_LINE_WORDS = 10

# Upper FK bounds (exclusive) for grade-4-6, grade-7-10 and grade-11-12; anything above is college
GRADE_BUCKET_LIMITS = (6.5, 10.5, 12.5)


def heading_text(line: str) -> Optional[str]:
    """
    Return the heading text when ``line`` looks like a section heading.

    Recognised forms: markdown ``#`` headings, lines that are entirely bold,
    and short standalone title lines without sentence punctuation.
    """
    match = _MARKDOWN_HEADING.match(line)
    if match:
        return match.group(1).strip()

    match = _BOLD_LINE.match(line)
    if match:
        return match.group(2).strip()

    stripped = line.strip()
    if not stripped or _LIST_ITEM.match(line):
        return None
    if stripped[-1] in ".!?,;\"'":
        return None
    if len(stripped.split()) > MAX_TITLE_LINE_WORDS or not re.search(r"[A-Za-z]", stripped):
        return None
    return stripped.rstrip(":").strip()


def normalize_heading(text: str) -> str:
    text = _NUMBER_PREFIX.sub("", text.strip())
    text = re.sub(r"[^\w\s]", " ", text.lower())
    return " ".join(text.split())


def body_lines(text: str) -> List[str]:
    """Non-empty lines that are not headings."""
    return [line for line in text.splitlines() if line.strip() and heading_text(line) is None]


def split_sentences(text: str) -> List[str]:
    sentences: List[str] = []
    for line in body_lines(text):
        for sentence in _SENTENCE_SPLIT.split(line.strip()):
            if _WORD.search(sentence):
                sentences.append(sentence)
    return sentences


def count_syllables(word: str) -> int:
    word = (word or "").lower()
    if not word:
        return 0
    if len(word) > 2 and word.endswith("e") and not word.endswith("le"):
        word = word[:-1]
    return max(1, len(_VOWEL_GROUPS.findall(word)))


def flesch_kincaid_grade(text: str) -> float:
    """
    Flesch-Kincaid grade level of the body text (headings excluded).

    0.39 * (words / sentences) + 11.8 * (syllables / words) - 15.59
    """
    sentences = split_sentences(text)
    words = [word for sentence in sentences for word in _WORD.findall(sentence)]
    if not words:
        return 0.0
    syllables = sum(count_syllables(word) for word in words)
    return 0.39 * (len(words) / max(1, len(sentences))) + 11.8 * (syllables / len(words)) - 15.59


def grade_bucket(score: float) -> int:
    for index, limit in enumerate(GRADE_BUCKET_LIMITS):
        if score < limit:
            return index
    return len(GRADE_BUCKET_LIMITS)


def grade_level_for_score(score: float) -> GradeLevel:
    return list(GradeLevel)[grade_bucket(score)]
