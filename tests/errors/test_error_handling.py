"""Tests for the error classification hierarchy"""

from datetime import datetime, timezone

from struxis.config.validation import ValidationError
from struxis.errors import (
    ConfigValidationError,
    ContextHaltedError,
    DataQualityError,
    InputOrderingError,
    MalformedBarError,
    StateInvariantViolation,
    SystemFailureError,
)


class TestDataQualityErrors:
    """Test recoverable input errors"""

    def test_ordering_error(self):
        ts = datetime(2024, 1, 2, tzinfo=timezone.utc)
        error = InputOrderingError(
            "Duplicate sequence id 5 after 5",
            seq_id=5,
            last_seq_id=5,
            timestamp=ts,
            last_timestamp=ts,
            context={"source": "feed"},
        )

        assert isinstance(error, DataQualityError)
        assert error.recoverable
        assert (error.seq_id, error.last_seq_id) == (5, 5)
        assert error.context == {"source": "feed"}
        assert str(error) == "Duplicate sequence id 5 after 5"

    def test_malformed_bar_error(self):
        error = MalformedBarError("Bar 3 has inconsistent close", seq_id=3, field="close")

        assert isinstance(error, DataQualityError)
        assert error.field == "close"
        assert error.context == {}


class TestSystemFailures:
    """Test unrecoverable errors"""

    def test_invariant_violation(self):
        error = StateInvariantViolation("broken", invariant="cbar_containment", entity_ids=[3, 4])

        assert isinstance(error, SystemFailureError)
        assert not error.recoverable
        assert error.entity_ids == (3, 4)

    def test_halted_error_carries_cause(self):
        cause = StateInvariantViolation("broken", invariant="swing_state")
        error = ContextHaltedError("halted", symbol="I2601", timeframe="5m", cause=cause)

        assert error.cause is cause
        assert not error.recoverable
        assert (error.symbol, error.timeframe) == ("I2601", "5m")


class TestConfigValidationError:
    """Test configuration rejection errors"""

    def test_fields_and_message(self):
        error = ConfigValidationError(
            "Scoring profile rejected",
            errors=[
                ValidationError(field="default.window_size", message="Must be an integer between 2 and 5000", value=0),
                ValidationError(field="timeframe.7m", message="Unknown timeframe", value="7m"),
            ],
            source="scoring.yaml",
        )

        assert error.fields == ["default.window_size", "timeframe.7m"]
        assert error.source == "scoring.yaml"
        assert "timeframe.7m: Unknown timeframe" in str(error)

    def test_without_details(self):
        error = ConfigValidationError("Scoring profile not found")
        assert str(error) == "Scoring profile not found"
        assert error.fields == []
