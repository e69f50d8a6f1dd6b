"""
Tests for structured logging across the pipeline.

Loggers are created inside ``capture_logs`` so that their bound processor
chain is the captured one.
"""

import json
import logging

import pytest
import structlog
from structlog.testing import capture_logs

from struxis.errors import InputOrderingError, StateInvariantViolation
from struxis.logging.config import (
    configure_logging,
    get_pipeline_logger,
    get_state_logger,
    log_backtrack,
    log_state_transition,
)
from struxis.state import TimeframeContext
from struxis.structure.fractals import FractalType
from struxis.structure.swings import SwingBuilder


class TestLoggingHelpers:
    """Test logger factories and helpers"""

    def test_state_logger_binds_audit_context(self):
        with capture_logs() as logs:
            logger = get_state_logger("test")
            log_state_transition(logger, 1, "forming", "pending_reverse", "opposing_fractal", {"cbar_id": 10})

        assert len(logs) == 1
        entry = logs[0]
        assert entry["event"] == "state_transition"
        assert entry["subsystem"] == "structure_state"
        assert entry["audit_trail"] is True
        assert entry["entity_id"] == 1
        assert entry["to_state"] == "pending_reverse"
        assert entry["context"] == {"cbar_id": 10}

    def test_backtrack_logged_at_debug(self):
        with capture_logs() as logs:
            log_backtrack(get_state_logger("test"), "swing", 3, "candidate_superseded")

        assert logs[0]["event"] == "backtrack"
        assert logs[0]["log_level"] == "debug"
        assert logs[0]["stage"] == "swing"

    def test_pipeline_logger_binds_scope(self):
        with capture_logs() as logs:
            get_pipeline_logger("test", "I2601", "5m").info("hello")

        assert logs[0]["symbol"] == "I2601"
        assert logs[0]["timeframe"] == "5m"
        assert logs[0]["subsystem"] == "pipeline"

    def test_configure_logging_json(self, caplog):
        """Test JSON output through the stdlib bridge"""
        caplog.set_level(logging.INFO)
        try:
            configure_logging(level="INFO", format_json=True)
            structlog.get_logger("struxis.test").info("configured", answer=42)
        finally:
            structlog.reset_defaults()

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["event"] == "configured"
        assert payload["answer"] == 42
        assert payload["level"] == "info"
        assert payload["logger"] == "struxis.test"


class TestPipelineLogging:
    """Test log records emitted by the stages"""

    def test_swing_transitions_logged(self, make_fractal):
        with capture_logs() as logs:
            builder = SwingBuilder()
            builder.update([], [
                make_fractal(4, FractalType.TOP, 14.5, 12.5, 14.5),
                make_fractal(10, FractalType.BOTTOM, 7.5, 7.5, 9.5),
                make_fractal(18, FractalType.TOP, 16.5, 14.5, 16.5),
            ])

        transitions = [entry for entry in logs if entry["event"] == "state_transition"]
        assert [(e["entity_id"], e["to_state"]) for e in transitions] == [
            (1, "forming"),
            (1, "pending_reverse"),
            (1, "confirmed"),
            (2, "forming"),
            (2, "pending_reverse"),
        ]
        assert transitions[2]["trigger"] == "reversal_disjoint"

    def test_superseded_candidate_logged_as_backtrack(self, make_fractal):
        with capture_logs() as logs:
            builder = SwingBuilder()
            builder.update([], [
                make_fractal(4, FractalType.TOP, 14.5, 12.5, 14.5),
                make_fractal(10, FractalType.BOTTOM, 7.5, 7.5, 9.5),
                make_fractal(14, FractalType.BOTTOM, 6.5, 6.5, 8.5),
            ])

        backtracks = [entry for entry in logs if entry["event"] == "backtrack"]
        assert len(backtracks) == 1
        assert backtracks[0]["reason"] == "candidate_superseded"
        assert backtracks[0]["context"] == {"discarded_cbar_id": 10, "new_cbar_id": 14}

    def test_rejected_bar_logged_as_warning(self, make_bar):
        with capture_logs() as logs:
            context = TimeframeContext("I2601", "5m")
            context.append(make_bar(0, 11, 10))
            with pytest.raises(InputOrderingError):
                context.append(make_bar(0, 11, 10))

        rejected = [entry for entry in logs if entry["event"] == "Bar rejected"]
        assert len(rejected) == 1
        assert rejected[0]["log_level"] == "warning"
        assert rejected[0]["seq_id"] == 0
        assert rejected[0]["symbol"] == "I2601"
        assert rejected[0]["ts"] == "2024-01-02T09:00:00+00:00"

    def test_halt_logged_as_error(self, make_bar):
        with capture_logs() as logs:
            context = TimeframeContext("I2601", "5m")
            context.zone_deriver.evaluate = lambda zones, series: 1 / 0
            with pytest.raises(StateInvariantViolation):
                context.append(make_bar(0, 11, 10))

        halted = [entry for entry in logs if entry["event"] == "Context halted"]
        assert len(halted) == 1
        assert halted[0]["log_level"] == "error"
        assert halted[0]["invariant"] == "cascade"
