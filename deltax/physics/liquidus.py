r"""Hydrostatic pressure and power-law liquidus anomaly.

For a point at depth :math:`d` with temperature :math:`T` the anomaly is

.. math::

    P = g \rho d, \qquad
    T_\mathrm{liq} = T_0 \left(1 - P/P_\mathrm{lim}\right)^{n}, \qquad
    \Delta X = s \, (T - T_\mathrm{liq}).

The power law has no real value for :math:`P > P_\mathrm{lim}`.  How such
points are handled is selected with ``policy``:

``"raise"``
    abort with :class:`~deltax.errors.NumericDomainError`; nothing is returned.
``"nan"``
    the affected points evaluate to NaN.
``"clamp"``
    the pressure is limited to :math:`P_\mathrm{lim}`, i.e. :math:`T_\mathrm{liq}=0`.

Non-finite pressures (from non-finite depths) are treated as out of domain.
The last two policies emit a :class:`~deltax.warnings.NumericalWarning`
with the number of affected points.
"""
from __future__ import annotations

import warnings
from typing import NamedTuple, Optional, Union

import numpy as np

from ..constants import DOMAIN_POLICIES
from ..errors import ConfigurationError, NumericDomainError
from ..schema import LiquidusModel
from ..warnings import NumericalWarning

__all__ = [
    "DEFAULT_MODEL",
    "check_policy",
    "hydrostatic_pressure",
    "liquidus_temperature",
    "liquidus_anomaly",
    "LiquidusProfile",
    "liquidus_profile",
]

ArrayLike = Union[float, np.ndarray]

DEFAULT_MODEL = LiquidusModel()

# Indices reported in NumericDomainError messages
_MAX_REPORTED = 5


def check_policy(policy: str) -> str:
    if policy not in DOMAIN_POLICIES:
        raise ConfigurationError(
            f"unknown domain policy '{policy}'; expected one of {', '.join(DOMAIN_POLICIES)}"
        )
    return policy


def _as_result(values: np.ndarray) -> ArrayLike:
    return float(values) if values.ndim == 0 else values


def hydrostatic_pressure(depth: ArrayLike, model: Optional[LiquidusModel] = None) -> ArrayLike:
    """Return ``g * rho * depth``."""

    model = model or DEFAULT_MODEL
    return _as_result(np.asarray(model.pressure(np.asarray(depth, dtype=float)), dtype=float))


def _resolve_domain(pressure: np.ndarray, model: LiquidusModel, policy: str) -> np.ndarray:
    """Apply ``policy`` to pressures outside ``[-inf, P_lim]``."""

    limit = model.pressure_limit
    bad = ~np.isfinite(pressure) | (pressure > limit)
    if not np.any(bad):
        return pressure
    flat = np.atleast_1d(bad).ravel()
    indices = np.flatnonzero(flat)
    if policy == "raise":
        shown = ", ".join(
            f"{i} (P={p:.6g})" for i, p in zip(indices[:_MAX_REPORTED], np.atleast_1d(pressure).ravel()[indices])
        )
        more = "" if indices.size <= _MAX_REPORTED else f" and {indices.size - _MAX_REPORTED} more"
        raise NumericDomainError(
            f"pressure exceeds the liquidus limit {limit:g} at {indices.size} point(s): {shown}{more}",
            indices=indices,
            pressures=np.atleast_1d(pressure).ravel()[indices],
        )
    warnings.warn(
        f"{indices.size} point(s) outside the liquidus pressure range (P > {limit:g}); applying policy '{policy}'",
        NumericalWarning,
        stacklevel=3,
    )
    if policy == "nan":
        return np.where(bad, np.nan, pressure)
    # clamp: +inf and finite overpressures go to the limit, NaN stays NaN
    return np.where(np.isnan(pressure), np.nan, np.minimum(pressure, limit))


def liquidus_temperature(
    pressure: ArrayLike,
    model: Optional[LiquidusModel] = None,
    *,
    policy: str = "raise",
) -> ArrayLike:
    """Return the liquidus temperature at ``pressure``."""

    model = model or DEFAULT_MODEL
    check_policy(policy)
    p = _resolve_domain(np.asarray(pressure, dtype=float), model, policy)
    return _as_result(np.asarray(model.liquidus(p), dtype=float))


class LiquidusProfile(NamedTuple):
    """Intermediate and final values of one anomaly evaluation."""

    pressure: np.ndarray
    liquidus: np.ndarray
    anomaly: np.ndarray


def liquidus_profile(
    temperature: ArrayLike,
    depth: ArrayLike,
    model: Optional[LiquidusModel] = None,
    *,
    policy: str = "raise",
) -> LiquidusProfile:
    """Evaluate pressure, liquidus and anomaly in one pass.

    ``pressure`` is the hydrostatic pressure before ``policy`` is applied;
    ``liquidus`` and ``anomaly`` are the values after it.
    """

    model = model or DEFAULT_MODEL
    check_policy(policy)
    T = np.asarray(temperature, dtype=float)
    pressure = np.asarray(model.pressure(np.asarray(depth, dtype=float)), dtype=float)
    T_liq = np.asarray(model.liquidus(_resolve_domain(pressure, model, policy)), dtype=float)
    anomaly = np.asarray(model.anomaly_scale * (T - T_liq), dtype=float)
    return LiquidusProfile(pressure=pressure, liquidus=T_liq, anomaly=anomaly)


def liquidus_anomaly(
    temperature: ArrayLike,
    depth: ArrayLike,
    model: Optional[LiquidusModel] = None,
    *,
    policy: str = "raise",
) -> ArrayLike:
    """Return ``s * (T - T_liq(g * rho * depth))``.

    Parameters
    ----------
    temperature:
        Temperature at each point.
    depth:
        Depth below the reference surface at each point; broadcast against
        ``temperature``.
    model:
        Material constants; defaults to :data:`DEFAULT_MODEL`.
    policy:
        Handling of over-pressurised points, see the module docstring.
    """

    return _as_result(liquidus_profile(temperature, depth, model, policy=policy).anomaly)
