"""Shared pytest fixtures for Ghostli Content Engine tests."""

import os
import sys
from unittest.mock import patch

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import EngineResponse, GenerationRequest, KeywordRequirement, TokenUsage  # noqa: E402
from word_count_utils import count_words  # noqa: E402


DEFAULT_SECTIONS = ("Introduction", "Benefits", "Conclusion")
FILLER_SENTENCE = "The panels keep working quietly on the roof all year."
PAD_WORDS = "Clean power keeps monthly bills low for many families".split()
SCRIPTED_USAGE = TokenUsage(prompt_tokens=100, completion_tokens=200, total_tokens=300)


# ============================================================================
# Draft Builders
# ============================================================================

def make_article(
    total_words=500,
    sections=DEFAULT_SECTIONS,
    keywords=None,
    title="Home Energy Guide",
    extra_sentences=(),
):
    """
    Build a markdown article with exactly ``total_words`` words.

    Each keyword in ``keywords`` ({keyword: count}) appears exactly ``count``
    times; headings are rendered as '## ' lines in the given order.
    """
    keywords = keywords or {}
    bodies = [[] for _ in sections] or [[]]
    slot = 0
    for keyword, count in keywords.items():
        for _ in range(count):
            bodies[slot % len(bodies)].append(f"Homeowners often ask about {keyword} before buying.")
            slot += 1
    bodies[0].extend(extra_sentences)

    def render():
        lines = [f"# {title}", ""]
        if sections:
            for heading, body in zip(sections, bodies):
                lines.extend([f"## {heading}", "", " ".join(body), ""])
        else:
            lines.extend([" ".join(bodies[0]), ""])
        return "\n".join(lines).strip() + "\n"

    remaining = total_words - count_words(render())
    if remaining < 0:
        raise ValueError("skeleton is longer than the requested word count")

    index = 0
    while remaining >= len(FILLER_SENTENCE.split()):
        bodies[index % len(bodies)].append(FILLER_SENTENCE)
        remaining -= len(FILLER_SENTENCE.split())
        index += 1
    if remaining:
        bodies[-1].append(" ".join(PAD_WORDS[:remaining]) + ".")

    text = render()
    assert count_words(text) == total_words
    return text


# ============================================================================
# Engine Fakes
# ============================================================================

class ScriptedEngine:
    """
    Generation engine returning scripted steps in order.

    A step is a draft string, an ``EngineResponse``, an exception instance
    (raised) or a callable taking (payload, sampling) and returning either.
    The last step repeats once the script runs out.
    """

    model = "scripted-model"

    def __init__(self, *steps):
        if not steps:
            raise ValueError("ScriptedEngine needs at least one step")
        self.steps = list(steps)
        self.calls = []

    async def generate(self, payload, sampling):
        self.calls.append((payload, sampling))
        step = self.steps[min(len(self.calls), len(self.steps)) - 1]
        if callable(step) and not isinstance(step, (str, BaseException)):
            step = step(payload, sampling)
            if hasattr(step, "__await__"):
                step = await step
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, str):
            return EngineResponse(text=step, usage=SCRIPTED_USAGE, finish_reason="stop", model=self.model)
        return step

    @property
    def call_count(self):
        return len(self.calls)

    @property
    def payloads(self):
        return [payload for payload, _ in self.calls]


def make_request(**overrides):
    """GenerationRequest with sensible defaults; keyword dicts become requirements."""
    keywords = overrides.pop("keywords", None)
    if keywords is not None:
        overrides["required_keywords"] = tuple(
            KeywordRequirement(keyword=keyword, min_occurrences=count) for keyword, count in keywords.items()
        )
    values = {
        "request_id": "req-test-0001",
        "content_type": "blog post",
        "prompt": "Write about the benefits of solar panels for homeowners.",
        "target_word_count": 500,
        "word_count_tolerance": 0.10,
    }
    values.update(overrides)
    return GenerationRequest(**values)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def build_article():
    return make_article


@pytest.fixture
def scripted_engine():
    return ScriptedEngine


@pytest.fixture
def request_factory():
    return make_request


@pytest.fixture
def solar_brief():
    """Raw brief for a 500-word solar panel article with three ordered sections."""
    return {
        "requestId": "solar-500",
        "userId": "user-42",
        "contentType": "blog post",
        "prompt": "Explain why homeowners should consider solar panels.",
        "targetWordCount": 500,
        "requiredKeywords": [{"keyword": "solar panels", "minOccurrences": 3}],
        "requiredSections": ["Intro", "Benefits", "Conclusion"],
        "tone": "informative",
    }


@pytest.fixture
def solar_article():
    """Draft satisfying ``solar_brief`` on the first pass."""
    return make_article(
        total_words=500,
        sections=("Intro", "Benefits", "Conclusion"),
        keywords={"solar panels": 3},
    )


@pytest.fixture
def no_sleep():
    """Async sleep replacement that records requested delays."""
    delays = []

    async def _sleep(seconds):
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def clean_env():
    """Environment without engine credentials or pipeline overrides."""
    keys_to_remove = [
        "OPENAI_API_KEY", "OPENAI_KEY", "ENGINE_MODEL", "ENGINE_BASE_URL",
        "MAX_ITERATIONS", "ENGINE_MAX_ATTEMPTS", "MIN_WORD_COUNT", "MAX_WORD_COUNT",
    ]
    with patch.dict(os.environ, {}, clear=False):
        for key in keys_to_remove:
            os.environ.pop(key, None)
        yield
