"""
Bar validation for the pipeline input boundary.

Validation never mutates context state: a rejected bar leaves every stage
exactly as it was.
"""

from typing import Optional, Sequence

from struxis.errors import InputOrderingError, MalformedBarError

from .models import RawBar


def validate_bar(bar: RawBar) -> None:
    """
    Check OHLC consistency of a single bar.

    Raises:
        MalformedBarError: If a price is non-finite or outside the bar range
    """
    field = bar.inconsistent_field()
    if field is not None:
        raise MalformedBarError(
            f"Bar {bar.seq_id} has inconsistent {field}",
            seq_id=bar.seq_id,
            field=field,
            context={
                "open": bar.open,
                "high": bar.high,
                "low": bar.low,
                "close": bar.close,
            },
        )


def check_ordering(bar: RawBar, last_bar: Optional[RawBar]) -> None:
    """
    Check that a bar may follow the last accepted bar.

    Sequence ids must strictly increase and timestamps must not decrease.

    Raises:
        InputOrderingError: If the bar is duplicated or out of order
    """
    if last_bar is None:
        return

    if bar.seq_id <= last_bar.seq_id:
        kind = "Duplicate" if bar.seq_id == last_bar.seq_id else "Decreasing"
        raise InputOrderingError(
            f"{kind} sequence id {bar.seq_id} after {last_bar.seq_id}",
            seq_id=bar.seq_id,
            last_seq_id=last_bar.seq_id,
            timestamp=bar.ts,
            last_timestamp=last_bar.ts,
        )

    if bar.ts < last_bar.ts:
        raise InputOrderingError(
            f"Timestamp of bar {bar.seq_id} precedes bar {last_bar.seq_id}",
            seq_id=bar.seq_id,
            last_seq_id=last_bar.seq_id,
            timestamp=bar.ts,
            last_timestamp=last_bar.ts,
        )


def validate_batch(bars: Sequence[RawBar], last_bar: Optional[RawBar]) -> None:
    """
    Validate a whole batch before any of it is applied.

    Args:
        bars: Candidate bars in submission order
        last_bar: Last bar already accepted by the context

    Raises:
        MalformedBarError: If any bar is malformed
        InputOrderingError: If any bar is out of order
    """
    previous = last_bar
    for bar in bars:
        validate_bar(bar)
        check_ordering(bar, previous)
        previous = bar
