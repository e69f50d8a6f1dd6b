"""Configuration error raised when a document fails validation at load time."""

from typing import Any, Dict, Optional, Sequence

from struxis.config.validation import ValidationError


class ConfigValidationError(Exception):
    """
    Raised when a configuration document is rejected.

    The previously active configuration stays in effect.
    """

    def __init__(self, message: str, errors: Optional[Sequence[ValidationError]] = None,
                 source: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.errors = list(errors or [])
        self.source = source
        self.context = context or {}
        self.recoverable = True

    @property
    def fields(self) -> list[str]:
        """Offending parameter paths."""
        return [error.field for error in self.errors]

    def __str__(self) -> str:
        base = super().__str__()
        if not self.errors:
            return base
        details = "; ".join(f"{e.field}: {e.message} (got: {e.value!r})" for e in self.errors)
        return f"{base}: {details}"
