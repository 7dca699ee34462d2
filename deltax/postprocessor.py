"""The ``deltaX`` visualization postprocessor.

For every output point the postprocessor writes

``deltaX = 1500 * (T - 73.2 * (1 - 1.4 * 916 * depth / 395) ** (1/9))``

i.e. the temperature excess over a pressure-dependent liquidus, scaled for
visualization.  The host calls :meth:`DeltaXPostprocessor.declare_parameters`
and :meth:`DeltaXPostprocessor.parse_parameters` once during setup and then
:meth:`DeltaXPostprocessor.evaluate_vector_field` once per batch of points
per output step, possibly from several workers at once.  Evaluation only
reads the postprocessor's state and writes only into the buffer it is given.

The parameter section also carries a depth-slice count and two boundary
extrapolation flags describing a lateral averaging scheme.  They are parsed,
validated and exposed through :attr:`DeltaXPostprocessor.config`, but the
anomaly above does not use them.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, MutableSequence, Optional, Sequence, Union

import numpy as np

from . import constants
from .errors import ContractViolationError
from .geometry import GeometryModel, Introspection, depths_for
from .parameters import Bool, Integer, ParameterHandler
from .physics import liquidus
from .registry import register_visualization_postprocessor
from .schema import DeltaXConfig, LiquidusModel, build_config

logger = logging.getLogger(__name__)

__all__ = ["VectorInputs", "DeltaXPostprocessor", "declare_parameters", "parse_parameters"]

OutputBuffer = Union[np.ndarray, MutableSequence[MutableSequence[float]]]


@dataclass(frozen=True)
class VectorInputs:
    """One batch of output points.

    Parameters
    ----------
    solution_values:
        ``(N, n_components)`` solution vectors, one row per point.
    evaluation_points:
        ``(N, dim)`` point coordinates.
    """

    solution_values: Any
    evaluation_points: Any

    def __len__(self) -> int:
        return len(self.solution_values)


def declare_parameters(prm: ParameterHandler) -> None:
    """Declare the ``Postprocess/Visualization/deltaX`` entries."""

    with prm.subsection(*constants.SECTION_PATH):
        prm.declare_entry(
            constants.ENTRY_DEPTH_SLICES,
            str(constants.DEFAULT_DEPTH_SLICES),
            Integer(1),
            "Number of depth slices used to define average temperature.",
        )
        prm.declare_entry(
            constants.ENTRY_MAXIMAL_BOTTOM,
            "true",
            Bool(),
            "Whether to use the maximal specified boundary temperature as the bottom boundary "
            "temperature. If false, extrapolate the temperature gradient between the last two "
            "cells to the bottom. This option will only work for models with a fixed bottom "
            "boundary temperature.",
        )
        prm.declare_entry(
            constants.ENTRY_MINIMAL_SURFACE,
            "true",
            Bool(),
            "Whether to use the minimal specified boundary temperature as the surface temperature. "
            "If false, extrapolate the temperature gradient between the first and second cells to "
            "the surface. This option will only work for models with a fixed surface temperature.",
        )
    logger.debug("deltaX: declared parameters in %s", "/".join(constants.SECTION_PATH))


def parse_parameters(prm: ParameterHandler) -> DeltaXConfig:
    """Read the declared entries back into a :class:`DeltaXConfig`."""

    with prm.subsection(*constants.SECTION_PATH):
        n_slices = prm.get_integer(constants.ENTRY_DEPTH_SLICES)
        extrapolate_surface = not prm.get_bool(constants.ENTRY_MINIMAL_SURFACE)
        extrapolate_bottom = not prm.get_bool(constants.ENTRY_MAXIMAL_BOTTOM)
    cfg = build_config(
        depth_slices=n_slices,
        extrapolate_surface=extrapolate_surface,
        extrapolate_bottom=extrapolate_bottom,
    )
    logger.debug("deltaX: parsed %s", cfg)
    return cfg


@register_visualization_postprocessor(constants.POSTPROCESSOR_NAME, constants.POSTPROCESSOR_DESCRIPTION)
class DeltaXPostprocessor:
    """Temperature excess over the liquidus at each output point.

    Parameters
    ----------
    geometry:
        Supplies ``maximal_depth()`` and ``depth(point)``.
    introspection:
        Supplies ``n_components`` and ``component_indices.temperature``.
    config:
        Parsed settings; defaults to the declared defaults.
    model:
        Liquidus constants; defaults to :data:`deltax.physics.liquidus.DEFAULT_MODEL`.
    domain_policy:
        ``"raise"``, ``"nan"`` or ``"clamp"`` for points deeper than the
        liquidus law allows.
    """

    name = constants.POSTPROCESSOR_NAME
    description = constants.POSTPROCESSOR_DESCRIPTION
    n_output_components = 1

    declare_parameters = staticmethod(declare_parameters)

    def __init__(
        self,
        geometry: GeometryModel,
        introspection: Introspection,
        *,
        config: Optional[DeltaXConfig] = None,
        model: Optional[LiquidusModel] = None,
        domain_policy: str = "raise",
    ) -> None:
        self._geometry = geometry
        self._introspection = introspection
        self._config = config if config is not None else DeltaXConfig()
        self._model = model if model is not None else liquidus.DEFAULT_MODEL
        self._policy = liquidus.check_policy(domain_policy)

    @classmethod
    def from_parameters(
        cls,
        prm: ParameterHandler,
        geometry: GeometryModel,
        introspection: Introspection,
        **kwargs: Any,
    ) -> "DeltaXPostprocessor":
        """Construct the postprocessor from an already populated handler."""

        return cls(geometry, introspection, config=parse_parameters(prm), **kwargs)

    def parse_parameters(self, prm: ParameterHandler) -> DeltaXConfig:
        self._config = parse_parameters(prm)
        return self._config

    @property
    def config(self) -> DeltaXConfig:
        return self._config

    @property
    def model(self) -> LiquidusModel:
        return self._model

    @property
    def domain_policy(self) -> str:
        return self._policy

    def _check_output(self, computed_quantities: OutputBuffer, n_points: int) -> None:
        if isinstance(computed_quantities, np.ndarray):
            if computed_quantities.ndim != 2:
                raise ContractViolationError(
                    f"internal inconsistency: output buffer of shape {computed_quantities.shape}, "
                    f"expected ({n_points}, {self.n_output_components})"
                )
            n_slots, widths = computed_quantities.shape[0], {computed_quantities.shape[1]}
        else:
            n_slots = len(computed_quantities)
            try:
                widths = {len(slot) for slot in computed_quantities}
            except TypeError as exc:
                raise ContractViolationError(
                    f"internal inconsistency: output slots must be sequences of {self.n_output_components} "
                    f"component ({exc})"
                ) from exc
        if n_slots != n_points:
            raise ContractViolationError(f"internal inconsistency: {n_slots} output slots for {n_points} points")
        if n_points and widths != {self.n_output_components}:
            raise ContractViolationError(
                f"internal inconsistency: output slots hold {sorted(widths)} components, "
                f"expected {self.n_output_components}"
            )

    def _check_points(self, points: np.ndarray, n_points: int) -> None:
        if points.ndim != 2 or points.shape[0] != n_points:
            raise ContractViolationError(
                f"internal inconsistency: {points.shape[0] if points.ndim else 0} evaluation points "
                f"for {n_points} solution vectors"
            )
        dim = points.shape[1]
        expected = getattr(self._geometry, "dim", None)
        if dim not in (2, 3) or (expected is not None and dim != expected):
            wanted = "2 or 3" if expected is None else str(expected)
            raise ContractViolationError(
                f"internal inconsistency: evaluation points have {dim} coordinates, expected {wanted}"
            )

    def _check_inputs(self, inputs: VectorInputs, computed_quantities: Optional[OutputBuffer]) -> tuple:
        try:
            solution = np.asarray(inputs.solution_values, dtype=float)
            points = np.asarray(inputs.evaluation_points, dtype=float)
        except (TypeError, ValueError) as exc:
            raise ContractViolationError(f"internal inconsistency: ragged or non-numeric input batch ({exc})") from exc
        n_points = solution.shape[0] if solution.ndim else 0
        if computed_quantities is not None:
            self._check_output(computed_quantities, n_points)
        if n_points == 0:
            return np.empty(0, dtype=float), points.reshape(0, 0)
        n_components = int(self._introspection.n_components)
        if solution.ndim != 2 or solution.shape[1] != n_components:
            raise ContractViolationError(
                f"internal inconsistency: solution vectors have shape {solution.shape[1:]}, "
                f"expected ({n_components},)"
            )
        self._check_points(points, n_points)
        t_index = int(self._introspection.component_indices.temperature)
        if not 0 <= t_index < n_components:
            raise ContractViolationError(
                f"internal inconsistency: temperature component {t_index} outside 0..{n_components - 1}"
            )
        return solution[:, t_index], points

    def _profile(self, temperature: np.ndarray, points: np.ndarray) -> Dict[str, np.ndarray]:
        if temperature.shape[0] == 0:
            empty = np.empty(0, dtype=float)
            return {"depth": empty, "pressure": empty, "T_liquidus": empty, "deltaX": empty}
        depth = depths_for(self._geometry, points)
        logger.debug(
            "deltaX: evaluating %d points (maximal depth %.6g)", temperature.shape[0], self._geometry.maximal_depth()
        )
        profile = liquidus.liquidus_profile(temperature, depth, self._model, policy=self._policy)
        return {
            "depth": np.asarray(depth, dtype=float).reshape(-1),
            "pressure": profile.pressure.reshape(-1),
            "T_liquidus": profile.liquidus.reshape(-1),
            "deltaX": profile.anomaly.reshape(-1),
        }

    def evaluate_vector_field(self, inputs: VectorInputs, computed_quantities: OutputBuffer) -> None:
        """Write one anomaly value per point into ``computed_quantities``.

        ``computed_quantities`` is owned by the caller and must have one
        length-1 slot per point.  When the ``"raise"`` policy aborts the batch
        no slot has been written.
        """

        temperature, points = self._check_inputs(inputs, computed_quantities)
        values = self._profile(temperature, points)["deltaX"]
        if isinstance(computed_quantities, np.ndarray):
            computed_quantities[:, 0] = values
            return
        for q, value in enumerate(values):
            computed_quantities[q][0] = float(value)

    def evaluate(self, inputs: VectorInputs) -> np.ndarray:
        """Return the anomaly for every point as a new ``(N,)`` array."""

        temperature, points = self._check_inputs(inputs, None)
        return self._profile(temperature, points)["deltaX"]

    def evaluate_profile(self, inputs: VectorInputs) -> Dict[str, np.ndarray]:
        """Return ``depth``, ``pressure``, ``T_liquidus`` and ``deltaX`` per point from a single evaluation."""

        temperature, points = self._check_inputs(inputs, None)
        return self._profile(temperature, points)

    def evaluate_points(self, temperature: Sequence[float], points: Sequence[Sequence[float]]) -> np.ndarray:
        """Evaluate from bare temperatures and coordinates, without a solution vector."""

        T = np.asarray(temperature, dtype=float).reshape(-1)
        pts = np.asarray(points, dtype=float)
        if T.size == 0 and pts.size == 0:
            return np.empty(0, dtype=float)
        if pts.ndim != 2 or pts.shape[0] != T.shape[0]:
            raise ContractViolationError(
                f"internal inconsistency: {pts.shape[0] if pts.ndim else 0} points for {T.shape[0]} temperatures"
            )
        self._check_points(pts, T.shape[0])
        return self._profile(T, pts)["deltaX"]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(config={self._config!r}, domain_policy={self._policy!r})"
