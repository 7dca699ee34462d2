"""Closed-form physics used by the postprocessors."""
from . import liquidus

__all__ = ["liquidus"]
