r"""Material constants and parameter-file layout for the deltaX postprocessor.

The liquidus law is a power-law pressure-melting curve

.. math::

    T_\mathrm{liq}(P) = T_0 \left(1 - P / P_\mathrm{lim}\right)^{1/9},

with a hydrostatic pressure :math:`P = g \rho d`.  The default values below
describe an icy body with a low surface gravity; they are the values the
visualization output has always been computed with.
"""
from __future__ import annotations

from typing import Tuple

# Surface gravity (m s^-2)
GRAVITY: float = 1.4

# Bulk density of the shell (kg m^-3)
DENSITY: float = 916.0

# Liquidus temperature at zero pressure
LIQUIDUS_REFERENCE_T: float = 73.2

# Pressure at which the liquidus reaches zero; the law is undefined above it
LIQUIDUS_PRESSURE_LIMIT: float = 395.0

LIQUIDUS_EXPONENT: float = 1.0 / 9.0

# Multiplier applied to T - T_liquidus
ANOMALY_SCALE: float = 1500.0

# Registration
POSTPROCESSOR_NAME: str = "deltaX"
POSTPROCESSOR_DESCRIPTION: str = (
    "A visualization output postprocessor that outputs the temperature minus "
    "the pressure-dependent liquidus temperature, scaled by a constant factor. "
    "The liquidus is a power-law melting curve evaluated at the hydrostatic "
    "pressure of each output point."
)

# Parameter file layout
SECTION_PATH: Tuple[str, ...] = ("Postprocess", "Visualization", POSTPROCESSOR_NAME)
ENTRY_DEPTH_SLICES: str = "Number of depth slices"
ENTRY_MAXIMAL_BOTTOM: str = "Use maximal temperature for bottom"
ENTRY_MINIMAL_SURFACE: str = "Use minimal temperature for surface"

DEFAULT_DEPTH_SLICES: int = 20

DOMAIN_POLICIES: Tuple[str, ...] = ("raise", "nan", "clamp")
