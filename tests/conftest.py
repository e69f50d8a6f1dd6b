"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest

from struxis.data.models import Direction, RawBar
from struxis.structure.envelopes import OverlapKind, PriceEnvelope
from struxis.structure.fractals import Fractal, FractalType
from struxis.structure.swings import Swing, SwingState
from struxis.zones.models import KeyZone, ZoneOrigin, ZoneRole

BASE_TS = datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc)

# Mid prices of a clean zigzag: tops at 4, 18, 28 and bottoms at 10, 22
ZIGZAG_MIDS = [
    10, 11, 12, 13, 14,
    13, 12, 11, 10, 9, 8,
    9, 10, 11, 12, 13, 14, 15, 16,
    15, 14, 13, 12,
    13, 14, 15, 16, 17, 18,
    17, 16,
]


def build_bar(
    seq_id: int,
    high: float,
    low: float,
    open: Optional[float] = None,
    close: Optional[float] = None,
    volume: float = 0.0,
    open_interest: float = 0.0,
) -> RawBar:
    """Bar at ``BASE_TS + seq_id`` minutes; open and close default to the midpoint."""
    mid = (high + low) / 2.0
    return RawBar.create(
        seq_id=seq_id,
        ts=BASE_TS + timedelta(minutes=seq_id),
        open=mid if open is None else open,
        high=high,
        low=low,
        close=mid if close is None else close,
        volume=volume,
        open_interest=open_interest,
    )


def build_zigzag(mids=ZIGZAG_MIDS, half_range: float = 0.5, volume: float = 100.0) -> list[RawBar]:
    """Non-overlapping-by-containment bars following ``mids``, bodies in the move direction."""
    bars = []
    previous = None
    for seq_id, mid in enumerate(mids):
        high, low = mid + half_range, mid - half_range
        rising = previous is None or mid >= previous
        if rising:
            open_, close = low + 0.1, high - 0.1
        else:
            open_, close = high - 0.1, low + 0.1
        bars.append(build_bar(seq_id, high, low, open_, close, volume=volume))
        previous = mid
    return bars


def build_fractal(cbar_id: int, kind: FractalType, price: float, low: float, high: float) -> Fractal:
    return Fractal(
        cbar_id=cbar_id,
        kind=kind,
        price=price,
        envelope=PriceEnvelope(low=low, high=high),
        start_raw_id=cbar_id,
        end_raw_id=cbar_id,
    )


def build_swing(
    swing_id: int,
    direction: Direction,
    start_price: float,
    end_price: float,
    start_raw_id: int = 0,
    end_raw_id: int = 1,
    anchor_overlap: OverlapKind = OverlapKind.DISJOINT,
) -> Swing:
    """A confirmed swing with consistent anchor kinds."""
    start_kind = FractalType.BOTTOM if direction is Direction.UP else FractalType.TOP
    return Swing(
        id=swing_id,
        direction=direction,
        state=SwingState.CONFIRMED,
        start_kind=start_kind,
        start_cbar_id=start_raw_id,
        start_raw_id=start_raw_id,
        start_price=start_price,
        start_envelope=PriceEnvelope(min(start_price, end_price), max(start_price, end_price)),
        end_cbar_id=end_raw_id,
        end_raw_id=end_raw_id,
        end_price=end_price,
        end_kind=start_kind.opposite(),
        end_envelope=PriceEnvelope(min(start_price, end_price), max(start_price, end_price)),
        anchor_overlap=anchor_overlap,
    )


def build_zone(
    role: ZoneRole,
    lower: float,
    upper: float,
    weight: float = 1.0,
    source_end_raw_id: int = 0,
    zone_id: str = "swing-1",
) -> KeyZone:
    direction = Direction.UP if role is ZoneRole.SUPPLY else Direction.DOWN
    return KeyZone(
        zone_id=zone_id,
        origin=ZoneOrigin.SWING,
        source_id=1,
        role=role,
        direction=direction,
        upper=upper,
        lower=lower,
        candidate_upper=upper,
        candidate_lower=lower,
        source_start_raw_id=0,
        source_end_raw_id=source_end_raw_id,
        anchor_overlap=OverlapKind.DISJOINT,
        weight=weight,
        touch_count=0,
        last_touch_id=None,
    )


@pytest.fixture
def make_bar() -> Callable[..., RawBar]:
    """Factory for raw bars with sequential timestamps."""
    return build_bar


@pytest.fixture
def make_fractal() -> Callable[..., Fractal]:
    return build_fractal


@pytest.fixture
def make_swing() -> Callable[..., Swing]:
    return build_swing


@pytest.fixture
def make_zone() -> Callable[..., KeyZone]:
    return build_zone


@pytest.fixture
def zigzag_bars() -> list[RawBar]:
    """31 bars with three completed swings once fully applied."""
    return build_zigzag()


@pytest.fixture
def rising_bars() -> list[RawBar]:
    """Ten strictly rising bars with no containment."""
    return [build_bar(i, 10.5 + i, 9.5 + i, 9.6 + i, 10.4 + i) for i in range(10)]


@pytest.fixture
def random_walk_bars() -> list[RawBar]:
    """Deterministic random walk with plenty of containment."""
    import random

    rng = random.Random(7)
    bars = []
    mid = 100.0
    for seq_id in range(400):
        mid += rng.uniform(-1.2, 1.2)
        high = mid + rng.uniform(0.05, 1.0)
        low = mid - rng.uniform(0.05, 1.0)
        open_ = rng.uniform(low, high)
        close = rng.uniform(low, high)
        bars.append(build_bar(
            seq_id, high, low, open_, close,
            volume=rng.uniform(50, 500),
            open_interest=10_000 + seq_id * rng.uniform(-5, 5),
        ))
    return bars
