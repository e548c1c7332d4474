# ephemkit/core/errors.py
# -----------------------------------------------------------------------------
# Error taxonomy for the reduction pipeline.
#
#   EphemerisError          base, carries stage + structured context
#   ├── InvalidDateError    out-of-span epochs, non-existent calendar dates
#   ├── UnsupportedTargetError  body/source combinations the source can't serve
#   └── NonConvergenceError iteration caps reached (light time, events, Kepler)
# -----------------------------------------------------------------------------
from __future__ import annotations

from typing import Any

__all__ = [
    "EphemerisError",
    "InvalidDateError",
    "UnsupportedTargetError",
    "NonConvergenceError",
]


class EphemerisError(RuntimeError):
    """Categorized error for pipeline callers."""
    def __init__(self, stage: str, message: str, **context: Any):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message
        self.context = context


class InvalidDateError(EphemerisError, ValueError):
    """Date outside the supported span, or a calendar label that never existed."""


class UnsupportedTargetError(EphemerisError):
    """The position source cannot produce the requested body."""


class NonConvergenceError(EphemerisError):
    """An iterative solver hit its iteration cap."""
