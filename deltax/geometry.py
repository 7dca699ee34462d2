"""Geometry and solution-introspection collaborators.

The postprocessor only needs two things from the host: the depth of a point
below the reference surface, and the position of the temperature within the
solution vector.  Both are expressed as :class:`typing.Protocol` classes so
that any host object with the right attributes can be passed in.  Two simple
geometry models, :class:`Box` and :class:`SphericalShell`, are provided for
the command-line runner and for tests.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from .errors import ConfigurationError

__all__ = [
    "GeometryModel",
    "ComponentIndices",
    "Introspection",
    "SimpleIntrospection",
    "Box",
    "SphericalShell",
    "depths_for",
]


@runtime_checkable
class GeometryModel(Protocol):
    """Interface for the domain geometry."""

    def maximal_depth(self) -> float:
        """Return the largest depth found in the domain."""

    def depth(self, position: Sequence[float]) -> float:
        """Return the depth of ``position`` below the reference surface."""


class ComponentIndices(Protocol):
    temperature: int


class Introspection(Protocol):
    """Layout of the host solution vector."""

    n_components: int
    component_indices: ComponentIndices


@dataclass(frozen=True)
class _Indices:
    temperature: int


@dataclass(frozen=True)
class SimpleIntrospection:
    """Name-based lookup of solution components.

    Parameters
    ----------
    component_names:
        Ordered names of the solution components, e.g.
        ``("velocity_x", "velocity_y", "pressure", "temperature")``.
    temperature_name:
        Which of the names is the temperature.
    """

    component_names: Tuple[str, ...]
    temperature_name: str = "temperature"
    _lookup: Dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        names = tuple(str(name) for name in self.component_names)
        object.__setattr__(self, "component_names", names)
        if len(set(names)) != len(names):
            raise ConfigurationError(f"duplicate component names in {names}")
        if self.temperature_name not in names:
            raise ConfigurationError(f"no '{self.temperature_name}' component among {names}")
        object.__setattr__(self, "_lookup", {name: i for i, name in enumerate(names)})

    @property
    def n_components(self) -> int:
        return len(self.component_names)

    @property
    def component_indices(self) -> _Indices:
        return _Indices(temperature=self._lookup[self.temperature_name])

    def index_of(self, name: str) -> int:
        return self._lookup[name]


@dataclass(frozen=True)
class Box:
    """Axis-aligned box; depth is measured down from the top face.

    The last coordinate is vertical.  ``extents`` holds the box size per
    dimension and ``origin`` its lower corner.
    """

    extents: Tuple[float, ...]
    origin: Tuple[float, ...] = ()

    def __post_init__(self) -> None:
        extents = tuple(float(e) for e in self.extents)
        if len(extents) not in (2, 3) or any(not math.isfinite(e) or e <= 0.0 for e in extents):
            raise ConfigurationError(f"box extents must be 2 or 3 positive values, got {self.extents}")
        origin = tuple(float(o) for o in self.origin) if self.origin else (0.0,) * len(extents)
        if len(origin) != len(extents):
            raise ConfigurationError("box origin and extents must have the same dimension")
        object.__setattr__(self, "extents", extents)
        object.__setattr__(self, "origin", origin)

    @property
    def dim(self) -> int:
        return len(self.extents)

    @property
    def top(self) -> float:
        return self.origin[-1] + self.extents[-1]

    def maximal_depth(self) -> float:
        return self.extents[-1]

    def depth(self, position: Sequence[float]) -> float:
        d = self.top - float(position[self.dim - 1])
        return min(max(d, 0.0), self.maximal_depth())

    def depth_array(self, points: np.ndarray) -> np.ndarray:
        d = self.top - np.asarray(points, dtype=float)[:, self.dim - 1]
        return np.clip(d, 0.0, self.maximal_depth())


@dataclass(frozen=True)
class SphericalShell:
    """Shell (or annulus in 2-D) centred at the origin."""

    inner_radius: float
    outer_radius: float

    def __post_init__(self) -> None:
        if not (0.0 <= self.inner_radius < self.outer_radius) or not math.isfinite(self.outer_radius):
            raise ConfigurationError(
                f"shell radii must satisfy 0 <= inner < outer, got {self.inner_radius}, {self.outer_radius}"
            )

    def maximal_depth(self) -> float:
        return self.outer_radius - self.inner_radius

    def depth(self, position: Sequence[float]) -> float:
        r = math.sqrt(sum(float(x) ** 2 for x in position))
        return min(max(self.outer_radius - r, 0.0), self.maximal_depth())

    def depth_array(self, points: np.ndarray) -> np.ndarray:
        r = np.linalg.norm(np.asarray(points, dtype=float), axis=1)
        return np.clip(self.outer_radius - r, 0.0, self.maximal_depth())


def depths_for(geometry: GeometryModel, points: Iterable[Sequence[float]]) -> np.ndarray:
    """Return the depth of every point, vectorised when the model allows it."""

    depth_array = getattr(geometry, "depth_array", None)
    if callable(depth_array):
        pts = np.asarray(points, dtype=float)
        if pts.ndim == 2:
            return np.asarray(depth_array(pts), dtype=float)
    return np.fromiter((geometry.depth(p) for p in points), dtype=float)
