"""
Data Models for the Ghostli Content Engine
==========================================

Pydantic models for the generation request, intermediate constraint reports
and the final result handed back to callers.
"""

import hashlib
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Tone(str, Enum):
    PROFESSIONAL = "professional"
    CASUAL = "casual"
    ACADEMIC = "academic"
    ENTHUSIASTIC = "enthusiastic"
    AUTHORITATIVE = "authoritative"
    PERSUASIVE = "persuasive"
    INFORMATIVE = "informative"
    HUMOROUS = "humorous"
    FORMAL = "formal"
    POLITE = "polite"
    FIRM = "firm"
    LEGAL = "legal"
    CONVERSATIONAL = "conversational"
    TECHNICAL = "technical"
    COMPASSIONATE = "compassionate"
    INSPIRING = "inspiring"
    FRIENDLY = "friendly"
    EMPATHETIC = "empathetic"
    SERIOUS = "serious"


class WritingStyle(str, Enum):
    INFORMATIVE = "informative"
    CONVERSATIONAL = "conversational"
    NARRATIVE = "narrative"
    TECHNICAL = "technical"
    ACADEMIC = "academic"
    PROMOTIONAL = "promotional"
    ANALYTICAL = "analytical"
    DESCRIPTIVE = "descriptive"
    JOURNALISTIC = "journalistic"
    EDUCATIONAL = "educational"
    PERSUASIVE = "persuasive"
    TUTORIAL = "tutorial"


class BrandArchetype(str, Enum):
    SAGE = "sage"
    HERO = "hero"
    OUTLAW = "outlaw"
    EXPLORER = "explorer"
    CREATOR = "creator"
    RULER = "ruler"
    CAREGIVER = "caregiver"
    INNOCENT = "innocent"
    EVERYMAN = "everyman"
    JESTER = "jester"
    LOVER = "lover"
    MAGICIAN = "magician"


class GradeLevel(str, Enum):
    """Reading-level buckets, ordered from simplest to most advanced."""

    GRADE_4_6 = "grade-4-6"
    GRADE_7_10 = "grade-7-10"
    GRADE_11_12 = "grade-11-12"
    COLLEGE = "college"

    @property
    def bucket(self) -> int:
        return list(GradeLevel).index(self)


class LanguageVariant(str, Enum):
    US = "US"
    UK = "UK"


class RefinementState(str, Enum):
    """States of the refinement state machine."""

    INIT = "init"
    GENERATING = "generating"
    EVALUATING = "evaluating"
    ACCEPTED = "accepted"
    REPAIRING = "repairing"
    REGENERATING = "regenerating"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    CANCELLED = "cancelled"


class KeywordRequirement(BaseModel):
    """A keyword that must appear at least ``min_occurrences`` times."""

    model_config = ConfigDict(frozen=True)

    keyword: str = Field(..., min_length=1)
    min_occurrences: int = Field(default=1, ge=1)


class RequiredSource(BaseModel):
    """A source the draft must cite. Priority 1 is the most important."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., min_length=1)
    url: Optional[str] = None
    priority: int = Field(default=3, ge=1, le=5)


class HumanizationRates(BaseModel):
    """Percentages in [0, 5] for each humanization pass."""

    model_config = ConfigDict(frozen=True)

    typos: float = Field(default=0.0, ge=0.0, le=5.0)
    grammar_mistakes: float = Field(default=0.0, ge=0.0, le=5.0)
    misc_errors: float = Field(default=0.0, ge=0.0, le=5.0)


class GenerationRequest(BaseModel):
    """Immutable, canonical form of a user brief."""

    model_config = ConfigDict(frozen=True)

    request_id: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    content_type: str = Field(..., min_length=1)
    prompt: str = Field(..., min_length=1)
    preferred_headline: str = ""
    tone: Tone = Tone.PROFESSIONAL
    writing_style: WritingStyle = WritingStyle.INFORMATIVE
    brand_archetype: BrandArchetype = BrandArchetype.SAGE
    grade_level: Optional[GradeLevel] = None
    target_word_count: int = Field(..., gt=0)
    word_count_tolerance: float = Field(default=0.10, gt=0.0, le=0.5)
    required_keywords: Tuple[KeywordRequirement, ...] = ()
    required_sections: Tuple[str, ...] = ()
    include_citations: bool = False
    required_sources: Tuple[RequiredSource, ...] = ()
    anti_ai_detection: bool = False
    humanization_rates: HumanizationRates = Field(default_factory=HumanizationRates)
    language_variant: LanguageVariant = LanguageVariant.US
    revision_rounds: int = Field(default=0, ge=0)
    max_iterations: Optional[int] = Field(default=None, ge=1, le=10)
    concise_style: bool = False
    region_focus: str = ""
    generate_seo: bool = False

    @property
    def keywords(self) -> List[str]:
        return [item.keyword for item in self.required_keywords]

    @property
    def humanization_seed(self) -> int:
        """Seed derived from the request id so parallel runs never share RNG state."""
        digest = hashlib.sha256(self.request_id.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big")


class PromptPayload(BaseModel):
    """Instruction payload sent to the generation engine."""

    model_config = ConfigDict(frozen=True)

    system_prompt: str
    user_prompt: str

    def fingerprint(self) -> str:
        hasher = hashlib.sha256()
        hasher.update(self.system_prompt.encode("utf-8"))
        hasher.update(b"\x00")
        hasher.update(self.user_prompt.encode("utf-8"))
        return hasher.hexdigest()


class SamplingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, gt=0)


class TokenUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class EngineResponse(BaseModel):
    """Raw output of one engine call."""

    model_config = ConfigDict(frozen=True)

    text: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    finish_reason: Optional[str] = None
    model: Optional[str] = None


class ConstraintResult(BaseModel):
    """Outcome of one constraint on one draft."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: str
    passed: bool
    distance: float = 0.0
    detail: Dict[str, Any] = Field(default_factory=dict)


class ConstraintReport(BaseModel):
    """Per-draft map from constraint name to result."""

    model_config = ConfigDict(frozen=True)

    results: Dict[str, ConstraintResult] = Field(default_factory=dict)

    @property
    def all_passed(self) -> bool:
        return all(item.passed for item in self.results.values())

    def failing(self) -> List[ConstraintResult]:
        return [item for item in self.results.values() if not item.passed]

    def of_kind(self, kind: str) -> List[ConstraintResult]:
        return [item for item in self.results.values() if item.kind == kind]

    def kind_passed(self, kind: str) -> bool:
        """True when every constraint of ``kind`` passed (or none was evaluated)."""
        return all(item.passed for item in self.of_kind(kind))

    @property
    def keyword_pass_count(self) -> int:
        return sum(1 for item in self.of_kind("keyword") if item.passed)

    def get(self, name: str) -> Optional[ConstraintResult]:
        return self.results.get(name)


class KeywordUsage(BaseModel):
    keyword: str
    required: int
    occurrences: int


class HumanizationSummary(BaseModel):
    applied: bool = False
    seed: Optional[int] = None
    typos: int = 0
    grammar_mistakes: int = 0
    misc_errors: int = 0
    words_removed: int = 0


class SeoKeywords(BaseModel):
    """Search keywords and social hashtags suggested for a finished text."""

    model_config = ConfigDict(frozen=True)

    keywords: List[str] = Field(default_factory=list)
    hashtags: List[str] = Field(default_factory=list)
    token_usage: TokenUsage = Field(default_factory=TokenUsage)


class GenerationResult(BaseModel):
    """The only entity returned to callers. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    content: str
    word_count: int
    iteration_count: int
    processing_time_ms: int
    token_usage: TokenUsage
    token_usage_by_phase: Dict[str, TokenUsage] = Field(default_factory=dict)
    cost_usd: Optional[float] = None
    partial: bool = False
    soft_accepted: bool = False
    final_state: RefinementState = RefinementState.ACCEPTED
    constraint_report: Optional[ConstraintReport] = None
    keyword_usage: List[KeywordUsage] = Field(default_factory=list)
    humanization: HumanizationSummary = Field(default_factory=HumanizationSummary)
    removed_phrases: int = 0
    seo: Optional[SeoKeywords] = None


class GenerationErrorResponse(BaseModel):
    """Wire shape of user-visible failures."""

    error: str
    message: str
    retryable: bool = False
    iteration_count: int = 0
    field: Optional[str] = None


class CancelResponse(BaseModel):
    request_id: str
    cancelled: bool
