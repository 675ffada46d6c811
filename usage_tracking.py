"""
Usage tracking utilities for the Ghostli Content Engine.

Captures token usage and cost for each engine call of a generation run so the
final result can include a per-phase breakdown and aggregated totals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config import config
from models import TokenUsage

MILLION = 1_000_000


@dataclass
class UsageRecord:
    """Single usage event emitted by one engine call."""

    phase: str
    iteration: int
    model: Optional[str]
    usage: TokenUsage
    cost_usd: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def as_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "iteration": self.iteration,
            "model": self.model,
            "prompt_tokens": self.usage.prompt_tokens,
            "completion_tokens": self.usage.completion_tokens,
            "total_tokens": self.usage.total_tokens,
            "cost": round(self.cost_usd, 6),
            "timestamp": self.timestamp,
        }


def estimate_cost(usage: TokenUsage) -> float:
    """Cost in USD from the configured per-million token prices."""
    return (
        usage.prompt_tokens * config.ENGINE_INPUT_PRICE_PER_MILLION
        + usage.completion_tokens * config.ENGINE_OUTPUT_PRICE_PER_MILLION
    ) / MILLION


class UsageTracker:
    """Collects usage events of one run; request-scoped, never shared."""

    def __init__(self):
        self._records: List[UsageRecord] = []

    def record(self, *, phase: str, iteration: int, usage: TokenUsage, model: Optional[str] = None) -> UsageRecord:
        entry = UsageRecord(phase=phase, iteration=iteration, model=model, usage=usage, cost_usd=estimate_cost(usage))
        self._records.append(entry)
        return entry

    @property
    def records(self) -> List[UsageRecord]:
        return list(self._records)

    @property
    def call_count(self) -> int:
        return len(self._records)

    def total(self) -> TokenUsage:
        total = TokenUsage()
        for entry in self._records:
            total = total + entry.usage
        return total

    def by_phase(self) -> Dict[str, TokenUsage]:
        breakdown: Dict[str, TokenUsage] = {}
        for entry in self._records:
            breakdown[entry.phase] = breakdown.get(entry.phase, TokenUsage()) + entry.usage
        return breakdown

    def total_cost(self) -> float:
        return round(sum(entry.cost_usd for entry in self._records), 6)
