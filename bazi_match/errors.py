"""
Error types raised by the BaZi engine.

Validation problems are always surfaced to the caller. Numeric degeneracies
in the calendar routines are NOT errors: those paths fall back to reference
values and mark their result as degraded instead (see astro_calendar).
"""

from typing import Any, Optional


class BaziError(Exception):
    """Base class for every error raised by bazi_match."""


class ValidationError(BaziError, ValueError):
    """
    Malformed or out-of-range input.

    Carries the offending field, the rejected value and a human readable
    description of the accepted range so the presentation layer can re-prompt.
    """

    def __init__(self, field: str, value: Any, accepted: str, message: Optional[str] = None):
        self.field = field
        self.value = value
        self.accepted = accepted
        if message is None:
            message = f"invalid {field}: {value!r} (accepted: {accepted})"
        super().__init__(message)


class CycleError(BaziError):
    """Cycle generation was asked to work from an impossible state."""
