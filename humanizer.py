"""
Humanizer
=========

Seeded post-processor that injects typos, grammar slips and punctuation
irregularities at the rates requested in the brief.

Randomness comes from a ``random.Random`` seeded with the request id, so a
given request always humanizes the same way and concurrent runs never share
state. Keyword occurrences, heading lines, URLs and citation markers are never
edited, and every edit is checked to leave keyword counts unchanged.
"""

import logging
import math
import random
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from config import HumanizerSettings, config
from constraint_evaluator import CITATION_MARKER, count_keyword_occurrences, find_keyword_spans
from models import GenerationRequest
from readability_utils import heading_text
from word_count_utils import count_words

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[A-Za-z]+")
_URL = re.compile(r"(?:https?://|www\.)\S+", re.IGNORECASE)
_COMMA_SPACE = re.compile(r",(?=\s+\w)")
_ARTICLE = re.compile(r"\b(the|an|a)\b(\s+)(?=[A-Za-z])", re.IGNORECASE)
_SENTENCE_GAP = re.compile(r"(?<=[.!?]) (?=[A-Z])")
_APOSTROPHE = re.compile(r"(?<=[A-Za-z])['’](?=[A-Za-z])")
_STRAIGHT_DOUBLE = re.compile(r'"')
_SPACE_AFTER_COMMA = re.compile(r"(?<=,) (?=\w)")

Span = Tuple[int, int]


@dataclass(frozen=True)
class HumanizationResult:
    text: str
    seed: int
    typos_applied: int = 0
    grammar_applied: int = 0
    misc_applied: int = 0
    words_removed: int = 0


@dataclass(frozen=True)
class _Edit:
    start: int
    end: int
    replacement: str


def sites_for_rate(word_count: int, rate: float) -> int:
    """round(word_count * rate / 100), rounding halves up."""
    if word_count <= 0 or rate <= 0:
        return 0
    return int(math.floor(word_count * rate / 100.0 + 0.5))


def protected_spans(text: str, keywords: Sequence[str]) -> List[Span]:
    spans: List[Span] = list(find_keyword_spans(text, keywords))
    spans.extend(match.span() for match in _URL.finditer(text))
    spans.extend(match.span() for match in CITATION_MARKER.finditer(text))

    offset = 0
    for line in text.splitlines(keepends=True):
        if heading_text(line.rstrip("\r\n")) is not None:
            spans.append((offset, offset + len(line)))
        offset += len(line)
    return sorted(spans)


def _overlaps(start: int, end: int, spans: Sequence[Span]) -> bool:
    return any(start < span_end and span_start < end for span_start, span_end in spans)


def _token_window(text: str, start: int, end: int) -> Span:
    left = start
    while left > 0 and not text[left - 1].isspace():
        left -= 1
    right = end
    while right < len(text) and not text[right].isspace():
        right += 1
    return left, right


def _match_case(source: str, replacement: str) -> str:
    return replacement.upper() if source.isupper() else replacement


class Humanizer:
    """Applies the three humanization passes to an accepted draft."""

    def __init__(self, settings: Optional[HumanizerSettings] = None):
        self.settings = settings or config.HUMANIZER

    def humanize(self, text: str, request: GenerationRequest) -> HumanizationResult:
        seed = request.humanization_seed
        rng = random.Random(seed)
        keywords = request.keywords
        baseline = {keyword: count_keyword_occurrences(text, keyword) for keyword in keywords}

        word_count = count_words(text)
        word_budget = int(math.floor(self.settings.word_slack * word_count))
        rates = request.humanization_rates

        state = _PassState(text=text, keywords=keywords, baseline=baseline, word_budget=word_budget)

        typos = self._run_pass(state, self._typo_edits, rng, sites_for_rate(word_count, rates.typos))
        grammar = self._run_pass(state, self._grammar_edits, rng, sites_for_rate(word_count, rates.grammar_mistakes))
        misc = self._run_pass(state, self._misc_edits, rng, sites_for_rate(word_count, rates.misc_errors))

        logger.debug(
            "Humanized %s (seed=%d): %d typos, %d grammar, %d misc, %d words removed",
            request.request_id, seed, typos, grammar, misc, state.words_removed,
        )
        return HumanizationResult(
            text=state.text,
            seed=seed,
            typos_applied=typos,
            grammar_applied=grammar,
            misc_applied=misc,
            words_removed=state.words_removed,
        )

    def _run_pass(self, state: "_PassState", builder, rng: random.Random, sites: int) -> int:
        if sites <= 0:
            return 0
        protected = protected_spans(state.text, state.keywords)
        edits = builder(state.text, protected, rng, sites)
        applied = 0
        boundary = len(state.text) + 1
        for edit in sorted(edits, key=lambda item: item.start, reverse=True):
            if edit.end > boundary:
                continue
            if state.try_apply(edit):
                applied += 1
                boundary = edit.start
        return applied

    def _typo_edits(self, text: str, protected: List[Span], rng: random.Random, sites: int) -> List[_Edit]:
        min_length = self.settings.min_typo_word_length
        candidates = [
            match for match in _WORD.finditer(text)
            if len(match.group(0)) >= min_length and not _overlaps(match.start(), match.end(), protected)
        ]
        chosen = rng.sample(candidates, min(sites, len(candidates)))
        return [self._typo_for(match, rng) for match in sorted(chosen, key=lambda item: item.start())]

    def _typo_for(self, match: "re.Match[str]", rng: random.Random) -> _Edit:
        word = match.group(0)
        operation = rng.choice(("swap", "drop", "duplicate", "neighbor"))
        # Interior characters only: first and last letters are never touched
        if operation == "swap" and len(word) >= 4:
            index = rng.randint(1, len(word) - 3)
            if word[index] != word[index + 1]:
                mutated = word[:index] + word[index + 1] + word[index] + word[index + 2:]
                return _Edit(match.start(), match.end(), mutated)
        if operation == "swap":
            operation = "neighbor"

        index = rng.randint(1, len(word) - 2)
        char = word[index]
        if operation == "drop":
            mutated = word[:index] + word[index + 1:]
        elif operation == "duplicate":
            mutated = word[:index] + char + word[index:]
        else:
            neighbors = self.settings.keyboard_neighbors.get(char.lower(), "")
            if not neighbors:
                mutated = word[:index] + char + word[index:]
            else:
                mutated = word[:index] + _match_case(char, rng.choice(neighbors)) + word[index + 1:]
        return _Edit(match.start(), match.end(), mutated)

    def _grammar_edits(self, text: str, protected: List[Span], rng: random.Random, sites: int) -> List[_Edit]:
        articles = {article.lower() for article in self.settings.articles}
        candidates: List[Tuple[str, "re.Match[str]"]] = []
        for match in _COMMA_SPACE.finditer(text):
            if not _overlaps(match.start(), match.end(), protected):
                candidates.append(("comma", match))
        for match in _ARTICLE.finditer(text):
            if match.group(1).lower() in articles and not _overlaps(match.start(), match.end() + 1, protected):
                candidates.append(("article", match))
        candidates.sort(key=lambda item: item[1].start())

        chosen = rng.sample(candidates, min(sites, len(candidates)))
        edits = []
        for kind, match in sorted(chosen, key=lambda item: item[1].start()):
            if kind == "comma":
                edits.append(_Edit(match.start(), match.end(), ""))
                continue
            article = match.group(1)
            if article.lower() in ("a", "an") and rng.random() < 0.5:
                swapped = "an" if article.lower() == "a" else "a"
                replacement = swapped.capitalize() if article[0].isupper() else swapped
                edits.append(_Edit(match.start(1), match.end(1), replacement))
                continue
            # Drop the article; a sentence-initial article hands its capital to the next word
            next_char = text[match.end()]
            replacement = next_char.upper() if article[0].isupper() else next_char
            edits.append(_Edit(match.start(), match.end() + 1, replacement))
        return edits

    def _misc_edits(self, text: str, protected: List[Span], rng: random.Random, sites: int) -> List[_Edit]:
        candidates: List[_Edit] = []
        for match in _SENTENCE_GAP.finditer(text):
            candidates.append(_Edit(match.start(), match.end(), "  "))
        for match in _APOSTROPHE.finditer(text):
            swapped = "’" if match.group(0) == "'" else "'"
            candidates.append(_Edit(match.start(), match.end(), swapped))
        for match in _STRAIGHT_DOUBLE.finditer(text):
            opening = match.start() == 0 or text[match.start() - 1].isspace()
            candidates.append(_Edit(match.start(), match.end(), "“" if opening else "”"))
        for match in _SPACE_AFTER_COMMA.finditer(text):
            candidates.append(_Edit(match.start(), match.end(), ""))

        candidates = [
            edit for edit in candidates
            if not _overlaps(max(0, edit.start - 1), edit.end + 1, protected)
        ]
        candidates.sort(key=lambda edit: edit.start)
        return rng.sample(candidates, min(sites, len(candidates)))


class _PassState:
    """Mutable text plus the invariants every edit must preserve."""

    def __init__(self, text: str, keywords: List[str], baseline: Dict[str, int], word_budget: int):
        self.text = text
        self.keywords = keywords
        self.baseline = baseline
        self.word_budget = word_budget
        self.words_removed = 0

    def try_apply(self, edit: _Edit) -> bool:
        left, right = _token_window(self.text, edit.start, edit.end)
        before = self.text[left:right]
        after = self.text[left:edit.start] + edit.replacement + self.text[edit.end:right]
        removed = count_words(before) - count_words(after)
        if removed > 0 and self.words_removed + removed > self.word_budget:
            return False

        candidate = self.text[:edit.start] + edit.replacement + self.text[edit.end:]
        for keyword, expected in self.baseline.items():
            if count_keyword_occurrences(candidate, keyword) != expected:
                return False

        self.text = candidate
        if removed > 0:
            self.words_removed += removed
        return True
