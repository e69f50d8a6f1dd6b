"""
Error classification for the structure pipeline.

Input problems are recoverable and reject a single bar; configuration
problems are rejected at load time; invariant violations are fatal for the
affected context only.
"""

from .configuration import ConfigValidationError
from .data_quality import (
    DataQualityError,
    InputOrderingError,
    MalformedBarError,
)
from .system_failures import (
    ContextHaltedError,
    StateInvariantViolation,
    SystemFailureError,
)

__all__ = [
    # Input errors
    "DataQualityError",
    "InputOrderingError",
    "MalformedBarError",
    # Configuration
    "ConfigValidationError",
    # System failures
    "SystemFailureError",
    "StateInvariantViolation",
    "ContextHaltedError",
]
