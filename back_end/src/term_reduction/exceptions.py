"""
Exception Hierarchy for Term Reduction

All errors raised by the reduction pipeline derive from TermReductionError.
Each subclass also derives from the closest builtin so callers can catch
ValueError / LookupError without importing this module.
"""

from typing import Iterable, Optional, Sequence


class TermReductionError(Exception):
    """Base exception for term reduction errors."""
    pass


class DimensionMismatchError(TermReductionError, ValueError):
    """Raised when a similarity matrix is malformed (shape, symmetry, labels, values)."""
    pass


class MissingScoreError(TermReductionError, ValueError):
    """Raised when a score map does not cover every label."""

    def __init__(self, missing: Iterable[str], message: Optional[str] = None):
        self.missing = sorted(missing)
        if message is None:
            preview = ", ".join(self.missing[:10])
            if len(self.missing) > 10:
                preview += f", ... ({len(self.missing) - 10} more)"
            message = f"Missing scores for {len(self.missing)} label(s): {preview}"
        super().__init__(message)


class InvalidThresholdError(TermReductionError, ValueError):
    """Raised when a similarity threshold is outside (0, 1]."""

    def __init__(self, threshold, name: str = "threshold"):
        self.threshold = threshold
        super().__init__(f"Invalid {name} {threshold!r}: must be a number in (0, 1]")


class TermLookupError(TermReductionError, LookupError):
    """Raised when an external collaborator (similarity or annotation) fails."""

    def __init__(self, message: str, labels: Sequence[str] = ()):
        self.labels = tuple(labels)
        super().__init__(message)


class ConfigurationError(TermReductionError):
    """Raised when configuration is invalid."""
    pass
