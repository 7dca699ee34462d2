"""Structured warning classes for the :mod:`deltax` package."""
from __future__ import annotations


class DeltaXWarning(UserWarning):
    """Base warning class for deltax."""


class NumericalWarning(DeltaXWarning):
    """Points replaced by NaN or clamped during liquidus evaluation."""


__all__ = [
    "DeltaXWarning",
    "NumericalWarning",
]
