"""
System failure error classifications for unrecoverable errors.

These exceptions signal an implementation or data corruption bug. The
affected (symbol, timeframe) context stops accepting bars until it is reset.
"""

from typing import Any, Dict, Optional, Sequence


class SystemFailureError(Exception):
    """Base class for unrecoverable pipeline failures."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class StateInvariantViolation(SystemFailureError):
    """An internal structural invariant no longer holds."""

    def __init__(self, message: str, invariant: Optional[str] = None,
                 entity_ids: Optional[Sequence[int]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.invariant = invariant
        self.entity_ids = tuple(entity_ids or ())


class ContextHaltedError(SystemFailureError):
    """A write was attempted on a context halted by an earlier violation."""

    def __init__(self, message: str, symbol: Optional[str] = None,
                 timeframe: Optional[str] = None,
                 cause: Optional[StateInvariantViolation] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.symbol = symbol
        self.timeframe = timeframe
        self.cause = cause
