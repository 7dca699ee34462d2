"""Custom exceptions for the :mod:`deltax` package."""
from __future__ import annotations

from typing import Optional, Sequence, Tuple


class DeltaXError(Exception):
    """Base exception for deltaX postprocessing errors."""


class ConfigurationError(DeltaXError, ValueError):
    """Malformed or out-of-range parameter entry.

    ``section`` is the subsection path the entry lives in and ``entry`` is the
    entry name, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        section: Sequence[str] = (),
        entry: Optional[str] = None,
    ) -> None:
        self.section: Tuple[str, ...] = tuple(section)
        self.entry = entry
        if entry is not None:
            location = " / ".join(self.section + (entry,))
            message = f"{location}: {message}"
        super().__init__(message)


class ContractViolationError(DeltaXError, AssertionError):
    """Internal inconsistency between the host and the postprocessor."""


class NumericDomainError(DeltaXError, ArithmeticError):
    """Liquidus law evaluated outside its real-valued domain."""

    def __init__(self, message: str, *, indices: Sequence[int] = (), pressures: Sequence[float] = ()) -> None:
        self.indices = tuple(int(i) for i in indices)
        self.pressures = tuple(float(p) for p in pressures)
        super().__init__(message)


class RegistrationError(DeltaXError, KeyError):
    """Unknown or conflicting postprocessor registration."""

    def __str__(self) -> str:
        # KeyError repr-quotes its argument.
        return str(self.args[0]) if self.args else ""


__all__ = [
    "DeltaXError",
    "ConfigurationError",
    "ContractViolationError",
    "NumericDomainError",
    "RegistrationError",
]
