"""Append-only raw bar storage with id lookups."""

from typing import Optional

from .models import RawBar


class RawBarSeries:
    """
    The accepted raw bars of one context, in arrival order.

    Later stages read spans through this series by sequence id; nothing but
    the owning context appends to it.
    """

    def __init__(self) -> None:
        self._bars: list[RawBar] = []
        self._positions: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._bars)

    def __getitem__(self, index: int) -> RawBar:
        return self._bars[index]

    @property
    def last(self) -> Optional[RawBar]:
        return self._bars[-1] if self._bars else None

    @property
    def bars(self) -> list[RawBar]:
        """All bars. Callers must treat it as read-only."""
        return self._bars

    def append(self, bar: RawBar) -> None:
        self._positions[bar.seq_id] = len(self._bars)
        self._bars.append(bar)

    def position(self, seq_id: int) -> int:
        """
        Index of a bar in the series.

        Raises:
            KeyError: If no bar with that sequence id was accepted
        """
        return self._positions[seq_id]

    def span(self, start_id: int, end_id: int) -> list[RawBar]:
        """Bars from ``start_id`` through ``end_id`` inclusive."""
        return self._bars[self._positions[start_id]:self._positions[end_id] + 1]

    def tail(self, count: int) -> list[RawBar]:
        """The last ``count`` bars."""
        if count <= 0:
            return []
        return self._bars[-count:]

    def checkpoint(self) -> int:
        return len(self._bars)

    def restore(self, count: int) -> None:
        for bar in self._bars[count:]:
            del self._positions[bar.seq_id]
        del self._bars[count:]
