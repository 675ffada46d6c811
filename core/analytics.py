"""
Metrics sinks for generation runs.

The pipeline reports one ``GenerationMetrics`` record per run (iteration
count, processing time, token usage). Dashboards live elsewhere; here we only
log the record and keep a small in-process aggregate for the summary route.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

import json_utils as json

logger = logging.getLogger(__name__)


class GenerationMetrics(BaseModel):
    request_id: str
    user_id: Optional[str] = None
    status: str
    error_code: Optional[str] = None
    iteration_count: int = 0
    engine_calls: int = 0
    processing_time_ms: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float = 0.0
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class MetricsSink(Protocol):
    def record(self, metrics: GenerationMetrics) -> None:
        ...


class LoggingMetricsSink:
    """Emits one JSON line per run on the ``ghostli.metrics`` logger."""

    def __init__(self, metrics_logger: Optional[logging.Logger] = None):
        self.logger = metrics_logger or logging.getLogger("ghostli.metrics")

    def record(self, metrics: GenerationMetrics) -> None:
        self.logger.info("generation_metrics %s", json.dumps(metrics.model_dump(mode="json"), sort_keys=True))


class InMemoryMetricsSink:
    """Thread-safe running aggregate of every recorded run."""

    def __init__(self):
        self._lock = threading.Lock()
        self._runs = 0
        self._by_status: Dict[str, int] = {}
        self._iterations = 0
        self._processing_ms = 0
        self._total_tokens = 0
        self._cost = 0.0
        self._recent: List[GenerationMetrics] = []
        self._recent_limit = 50

    def record(self, metrics: GenerationMetrics) -> None:
        with self._lock:
            self._runs += 1
            self._by_status[metrics.status] = self._by_status.get(metrics.status, 0) + 1
            self._iterations += metrics.iteration_count
            self._processing_ms += metrics.processing_time_ms
            self._total_tokens += metrics.total_tokens
            self._cost += metrics.cost_usd
            self._recent.append(metrics)
            if len(self._recent) > self._recent_limit:
                self._recent.pop(0)

    def summary(self) -> Dict[str, Any]:
        with self._lock:
            runs = self._runs
            return {
                "total_runs": runs,
                "by_status": dict(self._by_status),
                "average_iterations": round(self._iterations / runs, 2) if runs else 0.0,
                "average_processing_time_ms": round(self._processing_ms / runs, 1) if runs else 0.0,
                "total_tokens": self._total_tokens,
                "total_cost_usd": round(self._cost, 6),
                "recent": [item.model_dump(mode="json") for item in self._recent[-10:]],
            }


class CompositeMetricsSink:
    """Fans a record out to several sinks; a failing sink never breaks a run."""

    def __init__(self, sinks: Sequence[MetricsSink]):
        self.sinks = list(sinks)

    def record(self, metrics: GenerationMetrics) -> None:
        for sink in self.sinks:
            try:
                sink.record(metrics)
            except Exception:
                logger.exception("Metrics sink %s failed", type(sink).__name__)
