"""Liquidus-anomaly (``deltaX``) visualization postprocessor."""
from . import constants, physics
from .errors import DeltaXError
from .parameters import ParameterHandler
from .postprocessor import DeltaXPostprocessor, VectorInputs

__all__ = ["constants", "physics", "DeltaXError", "ParameterHandler", "DeltaXPostprocessor", "VectorInputs"]
