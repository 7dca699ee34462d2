"""Configuration records for the deltaX postprocessor.

:class:`DeltaXConfig` is the immutable record filled from the parameter file.
:class:`LiquidusModel` bundles the material constants of the pressure-melting
law; it is not part of the parameter file, but callers that need another
material can pass their own instance to the postprocessor.
"""
from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import constants
from .errors import ConfigurationError

__all__ = ["DeltaXConfig", "LiquidusModel", "build_config"]


class DeltaXConfig(BaseModel):
    """Settings parsed from ``Postprocess/Visualization/deltaX``.

    The slice count and the two extrapolation flags describe a lateral
    averaging scheme.  They are parsed and kept with the postprocessor, but
    the liquidus anomaly does not depend on them.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    depth_slices: int = Field(
        constants.DEFAULT_DEPTH_SLICES,
        ge=1,
        description="Number of depth slices used to define average temperature",
    )
    extrapolate_surface: bool = Field(
        False,
        description="Extrapolate the temperature gradient to the surface instead of using the boundary temperature",
    )
    extrapolate_bottom: bool = Field(
        False,
        description="Extrapolate the temperature gradient to the bottom instead of using the boundary temperature",
    )


class LiquidusModel(BaseModel):
    """Hydrostatic pressure and power-law liquidus constants."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    gravity: float = Field(constants.GRAVITY, gt=0.0, description="Gravity [m s^-2]")
    density: float = Field(constants.DENSITY, gt=0.0, description="Density [kg m^-3]")
    reference_temperature: float = Field(
        constants.LIQUIDUS_REFERENCE_T,
        description="Liquidus temperature at zero pressure",
    )
    pressure_limit: float = Field(
        constants.LIQUIDUS_PRESSURE_LIMIT,
        gt=0.0,
        description="Pressure at which the liquidus reaches zero",
    )
    exponent: float = Field(constants.LIQUIDUS_EXPONENT, gt=0.0)
    anomaly_scale: float = Field(constants.ANOMALY_SCALE, gt=0.0)

    @field_validator("*")
    @classmethod
    def _check_finite(cls, value: Any, info) -> Any:
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"{info.field_name} must be finite")
        return value

    def pressure(self, depth):
        """Return the hydrostatic pressure ``g * rho * depth``."""

        return self.gravity * self.density * depth

    def liquidus(self, pressure):
        """Return ``T0 * (1 - P/P_lim) ** exponent``; ``pressure`` must not exceed the limit."""

        return self.reference_temperature * (1.0 - pressure / self.pressure_limit) ** self.exponent

    def max_valid_depth(self) -> float:
        """Depth at which the pressure reaches ``pressure_limit``."""

        return self.pressure_limit / (self.gravity * self.density)


def build_config(**values: Any) -> DeltaXConfig:
    """Construct :class:`DeltaXConfig`, turning validation failures into :class:`ConfigurationError`."""

    try:
        return DeltaXConfig(**values)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ConfigurationError(first.get("msg", str(exc)), section=constants.SECTION_PATH, entry=field) from exc
