"""
Redundant phrase cleanup.

Rewrites "not just X, but Y" style constructions into direct statements for
briefs that ask for a concise style.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Tuple

_CONNECTOR = r"(?:,?\s+but|,)"
_ITS = r"(?:it's|its|this\s+is)"
_ITS_CONNECTOR = r"(?:,?\s+it's|,?\s+but|,)"


@dataclass(frozen=True)
class RemovedPhrase:
    phrase_type: str
    match: str


# Most specific patterns first so "it's not just about" is not consumed by "not just"
REDUNDANT_PHRASE_PATTERNS: List[Tuple[str, "re.Pattern[str]", Callable[["re.Match[str]"], str]]] = [
    (
        "NOT_JUST_ABOUT",
        re.compile(
            rf"{_ITS}\s+not\s+just\s+about\s+([^,.]+?){_ITS_CONNECTOR}\s+(?:about\s+)?([^,.]+)",
            re.IGNORECASE,
        ),
        lambda m: f"{m.group(1)} and {m.group(2)} both matter",
    ),
    (
        "ITS_NOT_JUST",
        re.compile(
            rf"{_ITS}\s+not\s+just\s+([^,.]+?){_ITS_CONNECTOR}\s+([^,.]+)",
            re.IGNORECASE,
        ),
        lambda m: f"It is {m.group(1)} and {m.group(2)}",
    ),
    (
        "NOT_ONLY",
        re.compile(
            r"not\s+only\s+(?:is\s+it|are\s+they|does\s+it|do\s+they|will\s+it|can\s+it|are|is|does|do|will|can)\s+"
            rf"([^,.]+?){_CONNECTOR}(?:\s+it's|\s+they're|\s+it|\s+they)?\s+(?:also\s+)?([^,.]+)",
            re.IGNORECASE,
        ),
        lambda m: f"{m.group(1)} and {m.group(2)}",
    ),
    (
        "NOT_JUST",
        re.compile(rf"not\s+just\s+([^,.]+?){_CONNECTOR}\s+([^,.]+)", re.IGNORECASE),
        lambda m: f"{m.group(1)} and {m.group(2)}",
    ),
]


def find_redundant_phrases(content: str) -> List[RemovedPhrase]:
    found = []
    for phrase_type, pattern, _ in REDUNDANT_PHRASE_PATTERNS:
        for match in pattern.finditer(content):
            found.append(RemovedPhrase(phrase_type=phrase_type, match=match.group(0)))
    return found


def remove_redundant_phrases(content: str, concise_style: bool = True) -> Tuple[str, List[RemovedPhrase]]:
    """
    Replace redundant constructions with direct language.

    Returns:
        (processed_content, removed_phrases)
    """
    if not concise_style:
        return content, []

    removed: List[RemovedPhrase] = []
    processed = content
    for phrase_type, pattern, replacement in REDUNDANT_PHRASE_PATTERNS:
        for match in pattern.finditer(processed):
            removed.append(RemovedPhrase(phrase_type=phrase_type, match=match.group(0)))
        processed = pattern.sub(replacement, processed)
    return processed, removed
