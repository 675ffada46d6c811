"""
Tests for logging_utils.py - request-scoped phase logging.
"""

import logging

import pytest

from logging_utils import Phase, PhaseLogger, create_phase_logger


LOGGER_NAME = "ghostli.test.phases"


@pytest.fixture
def phase_logger():
    return PhaseLogger("req-logging-0001", verbose=True, logger=logging.getLogger(LOGGER_NAME))


class TestPhaseLogger:

    def test_lines_carry_request_and_iteration(self, phase_logger, caplog):
        phase_logger.set_iteration(3)
        with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
            with phase_logger.phase(Phase.REPAIR):
                phase_logger.info("repairing")

        messages = [record.getMessage() for record in caplog.records]
        assert any("[req-logging-" in line and "[it 3]" in line and "repairing" in line for line in messages)
        assert any(Phase.REPAIR in line and "took" in line for line in messages)

    def test_phase_durations_accumulate(self, phase_logger):
        with phase_logger.phase(Phase.GENERATION):
            pass
        with phase_logger.phase(Phase.GENERATION):
            pass
        with phase_logger.phase(Phase.EVALUATION):
            assert phase_logger.current_phase == Phase.EVALUATION

        durations = phase_logger.phase_durations()
        assert set(durations) == {Phase.GENERATION, Phase.EVALUATION}
        assert phase_logger.current_phase is None

    def test_phase_closed_when_body_raises(self, phase_logger):
        with pytest.raises(RuntimeError):
            with phase_logger.phase(Phase.HUMANIZATION):
                raise RuntimeError("boom")
        assert phase_logger.current_phase is None
        assert Phase.HUMANIZATION in phase_logger.phase_durations()

    def test_prompt_dump_only_when_extra_verbose(self, caplog):
        quiet = create_phase_logger("req-quiet", verbose=True)
        loud = create_phase_logger("req-loud", extra_verbose=True)
        with caplog.at_level(logging.INFO, logger="logging_utils"):
            quiet.log_prompt("gpt-4o", "system text", "user text")
            assert caplog.records == []
            loud.log_prompt("gpt-4o", "system text", "user text", temperature=0.7)

        messages = [record.getMessage() for record in caplog.records]
        assert "user text" in messages
        assert any("temperature: 0.7" in line for line in messages)
        assert loud.verbose is True

    def test_constraint_lines_need_verbose(self, caplog):
        silent = PhaseLogger("req-silent", logger=logging.getLogger(LOGGER_NAME))
        with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
            silent.log_constraint_result("word_count", False, -0.2)
            silent.log_decision("repair", "1 of 4 constraints failing")

        [record] = caplog.records
        assert "DECISION REPAIR: 1 of 4 constraints failing" in record.getMessage()
