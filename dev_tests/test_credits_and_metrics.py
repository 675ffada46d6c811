"""
Tests for core/credits.py and core/analytics.py - billing ledger and metrics sinks.
"""

import logging
from unittest.mock import MagicMock

import pytest

import json_utils as json
from core.analytics import (
    CompositeMetricsSink,
    GenerationMetrics,
    InMemoryMetricsSink,
    LoggingMetricsSink,
)
from core.credits import InMemoryCreditLedger, InsufficientCredits


# ============================================================================
# Credit Ledger
# ============================================================================

class TestInMemoryCreditLedger:

    @pytest.mark.asyncio
    async def test_charge_debits_balance(self):
        ledger = InMemoryCreditLedger(default_balance=50)
        outcome = await ledger.charge("req-1", "user-1", 10)
        assert outcome.newly_charged is True
        assert ledger.balance("user-1") == 40

    @pytest.mark.asyncio
    async def test_same_request_is_charged_once(self):
        """
        Given: A request id that was already charged
        When: It is charged again (client retry)
        Then: The existing charge is returned and the balance is unchanged
        """
        ledger = InMemoryCreditLedger(default_balance=50)
        await ledger.charge("req-1", "user-1", 10)
        again = await ledger.charge("req-1", "user-1", 10)
        assert again.newly_charged is False
        assert ledger.balance("user-1") == 40

    @pytest.mark.asyncio
    async def test_insufficient_credits(self):
        ledger = InMemoryCreditLedger(balances={"user-1": 5})
        with pytest.raises(InsufficientCredits) as excinfo:
            await ledger.charge("req-1", "user-1", 10)
        assert excinfo.value.required == 10
        assert excinfo.value.balance == 5
        assert ledger.get_charge("req-1") is None

    @pytest.mark.asyncio
    async def test_refund_restores_balance_once(self):
        ledger = InMemoryCreditLedger(default_balance=20)
        await ledger.charge("req-1", "user-1", 10)
        assert await ledger.refund("req-1") is True
        assert await ledger.refund("req-1") is False
        assert ledger.balance("user-1") == 20
        assert ledger.get_charge("req-1").refunded is True

    @pytest.mark.asyncio
    async def test_refunded_request_can_be_charged_again(self):
        ledger = InMemoryCreditLedger(default_balance=20)
        await ledger.charge("req-1", "user-1", 10)
        await ledger.refund("req-1")
        outcome = await ledger.charge("req-1", "user-1", 10)
        assert outcome.newly_charged is True
        assert ledger.balance("user-1") == 10

    @pytest.mark.asyncio
    async def test_refund_unknown_request(self):
        assert await InMemoryCreditLedger().refund("missing") is False


# ============================================================================
# Metrics Sinks
# ============================================================================

def _metrics(status="accepted", iterations=2, tokens=300, ms=1500):
    return GenerationMetrics(
        request_id=f"req-{status}-{iterations}",
        status=status,
        iteration_count=iterations,
        engine_calls=iterations,
        processing_time_ms=ms,
        total_tokens=tokens,
        cost_usd=0.01,
    )


class TestInMemoryMetricsSink:

    def test_empty_summary(self):
        summary = InMemoryMetricsSink().summary()
        assert summary["total_runs"] == 0
        assert summary["average_iterations"] == 0.0

    def test_summary_aggregates(self):
        sink = InMemoryMetricsSink()
        sink.record(_metrics("accepted", iterations=1, tokens=300, ms=1000))
        sink.record(_metrics("partial", iterations=5, tokens=1500, ms=3000))

        summary = sink.summary()

        assert summary["total_runs"] == 2
        assert summary["by_status"] == {"accepted": 1, "partial": 1}
        assert summary["average_iterations"] == 3.0
        assert summary["average_processing_time_ms"] == 2000.0
        assert summary["total_tokens"] == 1800
        assert summary["total_cost_usd"] == pytest.approx(0.02)
        assert len(summary["recent"]) == 2


class TestLoggingMetricsSink:

    def test_emits_one_json_line(self, caplog):
        sink = LoggingMetricsSink(logging.getLogger("ghostli.metrics.test"))
        with caplog.at_level(logging.INFO, logger="ghostli.metrics.test"):
            sink.record(_metrics())
        [record] = caplog.records
        payload = json.loads(record.getMessage().split(" ", 1)[1])
        assert payload["status"] == "accepted"
        assert payload["iteration_count"] == 2


class TestCompositeMetricsSink:

    def test_failing_sink_does_not_block_others(self):
        broken = MagicMock()
        broken.record.side_effect = RuntimeError("disk full")
        store = InMemoryMetricsSink()

        CompositeMetricsSink([broken, store]).record(_metrics())

        assert store.summary()["total_runs"] == 1
