"""Tests for bar timestamp semantics"""

from datetime import datetime, timedelta, timezone

import pytest

from struxis.data.models import RawBar
from struxis.utils.time import format_bar_time, to_utc


class TestToUtc:
    """Test timestamp coercion"""

    def test_naive_datetime_is_utc(self):
        ts = to_utc(datetime(2024, 1, 2, 9, 30))
        assert ts.tzinfo == timezone.utc
        assert ts.hour == 9

    def test_aware_datetime_converted(self):
        shanghai = timezone(timedelta(hours=8))
        ts = to_utc(datetime(2024, 1, 2, 17, 30, tzinfo=shanghai))
        assert ts == datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)

    def test_epoch_milliseconds(self):
        assert to_utc(1704187800000) == datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            to_utc(True)

    def test_string_rejected(self):
        with pytest.raises(TypeError):
            to_utc("2024-01-02")


class TestBarTimestamps:
    """Test timestamps carried by bars"""

    def test_bar_create_coerces_timestamp(self):
        bar = RawBar.create(1, 1704187800000, 10, 11, 9, 10.5)
        assert bar.ts == datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)
        assert isinstance(bar.open, float)

    def test_format_bar_time(self):
        assert format_bar_time(datetime(2024, 1, 2, 9, 30)) == "2024-01-02T09:30:00+00:00"
