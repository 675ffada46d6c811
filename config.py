"""
Configuration for the Ghostli Content Engine
============================================

Central configuration for the generation pipeline: engine credentials,
refinement thresholds, humanization tables and HTTP settings.
Values are read from the environment (and a local .env file) once, when the
module-level ``config`` singleton is created.
"""

import os
from typing import Dict, List

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()

TRUTHY_ENV_VALUES = {"1", "true", "yes", "on"}


class RefinementSettings(BaseModel):
    """Thresholds used by the refinement decision policy."""

    repair_failing_ratio: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Drafts with at most max(1, total * ratio) failing constraints are repaired instead of regenerated",
    )
    regenerate_word_deviation: float = Field(
        default=0.5,
        gt=0.0,
        description="Relative word-count deviation above which a draft is discarded and regenerated",
    )
    regeneration_temperature_step: float = Field(
        default=-0.1,
        description="Temperature adjustment applied on every regeneration",
    )
    min_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_temperature: float = Field(default=1.2, ge=0.0, le=2.0)
    soft_constraints: List[str] = Field(
        default_factory=lambda: ["reading_level"],
        description="Constraint kinds that may still fail when a draft is soft-accepted after the budget is spent",
    )
    distance_weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "word_count": 10.0,
            "keyword": 1.0,
            "sections": 2.0,
            "reading_level": 0.5,
            "citations": 1.0,
        },
        description="Weights used to compute the total distance of a constraint report",
    )


class HumanizerSettings(BaseModel):
    """Fixed data tables and limits for the humanization passes."""

    word_slack: float = Field(
        default=0.02,
        ge=0.0,
        le=0.1,
        description="Maximum share of words the humanizer may remove",
    )
    min_typo_word_length: int = Field(default=4, ge=3)
    keyboard_neighbors: Dict[str, str] = Field(
        default_factory=lambda: {
            "a": "qwsz", "b": "vghn", "c": "xdfv", "d": "serfcx", "e": "wsdr",
            "f": "drtgvc", "g": "ftyhbv", "h": "gyujnb", "i": "ujko", "j": "huikmn",
            "k": "jiolm", "l": "kop", "m": "njk", "n": "bhjm", "o": "iklp",
            "p": "ol", "q": "wa", "r": "edft", "s": "awedxz", "t": "rfgy",
            "u": "yhji", "v": "cfgb", "w": "qase", "x": "zsdc", "y": "tghu",
            "z": "asx",
        },
        description="QWERTY adjacency table used for substitution typos",
    )
    articles: List[str] = Field(default_factory=lambda: ["the", "a", "an"])


class Config(BaseModel):
    """Configuration settings for the Ghostli Content Engine."""

    # Engine backend
    OPENAI_API_KEY: str = Field(default="", description="Bearer token for the text-generation backend")
    ENGINE_BASE_URL: str = Field(default="", description="Optional OpenAI-compatible base URL")
    ENGINE_MODEL: str = Field(default="gpt-4o", description="Model used for generation")
    ENGINE_TEMPERATURE: float = Field(default=0.7, ge=0.0, le=2.0)
    ENGINE_MAX_TOKENS: int = Field(default=2000, gt=0, description="Lower bound for completion tokens")
    ENGINE_TOKENS_PER_WORD: float = Field(default=2.0, gt=0.0, description="Completion token budget per target word")
    ENGINE_TIMEOUT_SECONDS: float = Field(default=90.0, gt=0.0, description="Per-call timeout imposed by the pipeline")
    ENGINE_MAX_ATTEMPTS: int = Field(default=3, ge=1, description="Attempts per engine call on transient failures")
    ENGINE_RETRY_BASE_DELAY: float = Field(default=1.0, ge=0.0, description="Base delay (seconds) for exponential backoff")
    ENGINE_INPUT_PRICE_PER_MILLION: float = Field(default=2.5, ge=0.0)
    ENGINE_OUTPUT_PRICE_PER_MILLION: float = Field(default=10.0, ge=0.0)

    # Brief limits
    MIN_WORD_COUNT: int = Field(default=50, gt=0)
    MAX_WORD_COUNT: int = Field(default=10000, gt=0)
    DEFAULT_WORD_COUNT_TOLERANCE: float = Field(default=0.10, gt=0.0, le=0.5)
    MAX_HUMANIZATION_RATE: float = Field(default=5.0, ge=0.0)
    DEFAULT_HUMANIZATION_RATE: float = Field(default=3.0, ge=0.0, description="Rate used for sliders the brief leaves unset")
    MAX_KEYWORD_OCCURRENCES: int = Field(default=50, ge=1)
    KEYWORD_FREQUENCY_PRESETS: Dict[str, int] = Field(
        default_factory=lambda: {"low": 1, "medium": 3, "high": 5},
        description="Default minimum occurrences applied to keywords listed without an explicit count",
    )
    DEFAULT_TONE: str = Field(default="professional")
    DEFAULT_WRITING_STYLE: str = Field(default="informative")
    DEFAULT_BRAND_ARCHETYPE: str = Field(default="sage")

    # Refinement loop
    MAX_ITERATIONS: int = Field(default=5, ge=1, le=10)
    WALL_CLOCK_BUDGET_SECONDS: float = Field(default=300.0, gt=0.0)
    REFINEMENT: RefinementSettings = Field(default_factory=RefinementSettings)
    HUMANIZER: HumanizerSettings = Field(default_factory=HumanizerSettings)

    # Credits (lite / pro / enterprise tiers)
    CREDIT_COSTS: Dict[str, int] = Field(
        default_factory=lambda: {"lite": 10, "basic": 10, "pro": 5, "premium": 5, "enterprise": 3}
    )
    DEFAULT_CREDIT_BALANCE: int = Field(default=100, ge=0)

    # FastAPI configuration
    APP_HOST: str = Field(default="0.0.0.0", description="FastAPI host")
    APP_PORT: int = Field(default=8000, description="FastAPI port")
    APP_RELOAD: bool = Field(default=False, description="FastAPI reload mode")
    LOG_LEVEL: str = Field(default="INFO")
    VERBOSE: bool = Field(default=False)
    EXTRA_VERBOSE: bool = Field(default=False)

    def __init__(self, **data):
        super().__init__(**data)
        self.load_from_environment()

    def load_from_environment(self):
        """Load configuration overrides from environment variables."""
        self.OPENAI_API_KEY = os.getenv("OPENAI_KEY", "") or os.getenv("OPENAI_API_KEY", self.OPENAI_API_KEY)
        self.ENGINE_BASE_URL = os.getenv("ENGINE_BASE_URL", self.ENGINE_BASE_URL)
        self.ENGINE_MODEL = os.getenv("ENGINE_MODEL", self.ENGINE_MODEL)

        self.ENGINE_TEMPERATURE = _float_env("ENGINE_TEMPERATURE", self.ENGINE_TEMPERATURE)
        self.ENGINE_MAX_TOKENS = _int_env("ENGINE_MAX_TOKENS", self.ENGINE_MAX_TOKENS)
        self.ENGINE_TIMEOUT_SECONDS = _float_env("ENGINE_TIMEOUT_SECONDS", self.ENGINE_TIMEOUT_SECONDS)
        self.ENGINE_MAX_ATTEMPTS = max(1, _int_env("ENGINE_MAX_ATTEMPTS", self.ENGINE_MAX_ATTEMPTS))
        self.ENGINE_RETRY_BASE_DELAY = max(0.0, _float_env("ENGINE_RETRY_BASE_DELAY", self.ENGINE_RETRY_BASE_DELAY))

        self.MIN_WORD_COUNT = _int_env("MIN_WORD_COUNT", self.MIN_WORD_COUNT)
        self.MAX_WORD_COUNT = _int_env("MAX_WORD_COUNT", self.MAX_WORD_COUNT)

        max_iterations = _int_env("MAX_ITERATIONS", self.MAX_ITERATIONS)
        if 1 <= max_iterations <= 10:
            self.MAX_ITERATIONS = max_iterations
        self.WALL_CLOCK_BUDGET_SECONDS = _float_env("WALL_CLOCK_BUDGET_SECONDS", self.WALL_CLOCK_BUDGET_SECONDS)

        self.DEFAULT_CREDIT_BALANCE = _int_env("DEFAULT_CREDIT_BALANCE", self.DEFAULT_CREDIT_BALANCE)

        self.APP_HOST = os.getenv("APP_HOST", self.APP_HOST)
        self.APP_PORT = _int_env("APP_PORT", self.APP_PORT)
        self.APP_RELOAD = os.getenv("APP_RELOAD", str(self.APP_RELOAD)).lower() in TRUTHY_ENV_VALUES

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", self.LOG_LEVEL)
        self.VERBOSE = os.getenv("VERBOSE", str(self.VERBOSE)).lower() in TRUTHY_ENV_VALUES
        self.EXTRA_VERBOSE = os.getenv("EXTRA_VERBOSE", str(self.EXTRA_VERBOSE)).lower() in TRUTHY_ENV_VALUES

    def credit_cost_for_tier(self, tier: str) -> int:
        """Credits charged for one generation; unknown tiers pay the highest price."""
        return self.CREDIT_COSTS.get((tier or "").lower(), max(self.CREDIT_COSTS.values()))


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


config = Config()
