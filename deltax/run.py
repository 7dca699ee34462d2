"""Command-line runner: evaluate the deltaX field on a table of points.

Example::

    deltax-run --config model.prm --points points.csv --extents 1.0 0.3 --output out/deltaX.parquet

The points table holds coordinate columns ``x``, ``y`` (and ``z`` in 3-D)
and a temperature column ``T``.  The output table adds ``depth``,
``pressure``, ``T_liquidus`` and ``deltaX``; a ``summary.json`` is written
next to it.
"""
from __future__ import annotations

import argparse
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from . import config_utils, constants
from .errors import ConfigurationError, DeltaXError
from .geometry import Box, GeometryModel, SimpleIntrospection, SphericalShell
from .io import points as points_io
from .io import writer
from .parameters import ParameterHandler
from .postprocessor import DeltaXPostprocessor, VectorInputs
from .registry import describe_visualization_postprocessors, get_visualization_postprocessor

logger = logging.getLogger(__name__)

__all__ = ["build_geometry", "build_parameters", "run_points", "main"]


def build_geometry(kind: str, *, extents: Optional[List[float]] = None, inner_radius: Optional[float] = None,
                   outer_radius: Optional[float] = None) -> GeometryModel:
    if kind == "box":
        if not extents:
            raise ConfigurationError("--extents is required for the box geometry")
        return Box(extents=tuple(extents))
    if kind == "shell":
        if inner_radius is None or outer_radius is None:
            raise ConfigurationError("--inner-radius and --outer-radius are required for the shell geometry")
        return SphericalShell(inner_radius=inner_radius, outer_radius=outer_radius)
    raise ConfigurationError(f"unknown geometry '{kind}'")


def build_parameters(config_path: Optional[Path] = None, overrides: Optional[List[str]] = None) -> ParameterHandler:
    """Declare the postprocessor entries and fill them from file and overrides."""

    prm = ParameterHandler()
    DeltaXPostprocessor.declare_parameters(prm)
    return config_utils.load_parameters(prm, config_path, overrides)


def _finite_stat(values: np.ndarray, func) -> Optional[float]:
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return None
    return float(func(finite))


def run_points(df: pd.DataFrame, postprocessor: DeltaXPostprocessor) -> pd.DataFrame:
    """Return ``df`` with ``depth``, ``pressure``, ``T_liquidus`` and ``deltaX`` columns added."""

    temperature, pts = points_io.split_points(df)
    inputs = VectorInputs(solution_values=temperature.reshape(-1, 1), evaluation_points=pts)
    profile = postprocessor.evaluate_profile(inputs)
    out = df.copy()
    for column in ("depth", "pressure", "T_liquidus", "deltaX"):
        out[column] = profile[column]
    return out


def main(argv: Optional[List[str]] = None) -> None:
    """Command line entry point."""

    parser = argparse.ArgumentParser(description="Evaluate the deltaX liquidus anomaly on a table of points")
    parser.add_argument("--config", type=Path, help="Parameter file (.prm, or .yml/.yaml)")
    parser.add_argument("--points", type=Path, help="CSV or Parquet table with x, y[, z] and T columns")
    parser.add_argument("--output", type=Path, default=Path("out") / "deltaX.parquet", help="Output table path")
    parser.add_argument("--geometry", choices=["box", "shell"], default="box")
    parser.add_argument("--extents", type=float, nargs="+", help="Box size per dimension; last is vertical")
    parser.add_argument("--inner-radius", type=float)
    parser.add_argument("--outer-radius", type=float)
    parser.add_argument(
        "--domain-policy",
        choices=list(constants.DOMAIN_POLICIES),
        default="raise",
        help="Handling of points deeper than the liquidus law allows",
    )
    parser.add_argument(
        "--override",
        action="append",
        nargs="+",
        metavar="PATH=VALUE",
        help=(
            "Apply parameter overrides using dotted paths; e.g. "
            "--override 'Postprocess.Visualization.deltaX.Number of depth slices=10'"
        ),
    )
    parser.add_argument(
        "--overrides-file",
        action="append",
        type=Path,
        help="Load overrides from a file (one PATH=VALUE per line).",
    )
    parser.add_argument("--list-postprocessors", action="store_true", help="List registered postprocessors and exit")
    parser.add_argument("--describe-parameters", action="store_true", help="Print the parameter listing and exit")
    parser.add_argument("--quiet", action="store_true", help="Suppress INFO logs and Python warnings")
    args = parser.parse_args(argv)

    config_utils.configure_logging(logging.WARNING if args.quiet else logging.INFO, suppress_warnings=args.quiet)

    if args.list_postprocessors:
        for name, description in describe_visualization_postprocessors():
            print(f"{name}: {description}")
        return

    override_list: List[str] = []
    if args.overrides_file:
        for override_path in args.overrides_file:
            override_list.extend(config_utils.read_overrides_file(override_path))
    if args.override:
        for group in args.override:
            override_list.extend(group)

    try:
        prm = build_parameters(args.config, override_list)
        if args.describe_parameters:
            print(prm.describe())
            return
        if args.points is None:
            parser.error("--points is required")
        geometry = build_geometry(
            args.geometry,
            extents=args.extents,
            inner_radius=args.inner_radius,
            outer_radius=args.outer_radius,
        )
        cls = get_visualization_postprocessor(constants.POSTPROCESSOR_NAME)
        postprocessor = cls.from_parameters(
            prm,
            geometry,
            SimpleIntrospection(("temperature",)),
            domain_policy=args.domain_policy,
        )
        max_valid = postprocessor.model.max_valid_depth()
        if math.isfinite(max_valid) and geometry.maximal_depth() > max_valid:
            logger.warning(
                "Domain depth %.6g exceeds the liquidus validity depth %.6g", geometry.maximal_depth(), max_valid
            )
        df = points_io.read_points(args.points)
        result = run_points(df, postprocessor)
    except DeltaXError as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc

    if args.output.suffix.lower() == ".csv":
        writer.write_csv(result, args.output)
    else:
        writer.write_parquet(result, args.output)
    values = result["deltaX"].to_numpy(dtype=float)
    summary: Dict[str, Any] = {
        "postprocessor": postprocessor.name,
        "n_points": int(values.size),
        "n_nan": int(np.count_nonzero(~np.isfinite(values))),
        "deltaX_min": _finite_stat(values, np.min),
        "deltaX_max": _finite_stat(values, np.max),
        "deltaX_mean": _finite_stat(values, np.mean),
        "domain_policy": postprocessor.domain_policy,
        "geometry": args.geometry,
        "maximal_depth": float(geometry.maximal_depth()),
        "config": postprocessor.config.model_dump(),
        "liquidus": postprocessor.model.model_dump(),
        "parameters": prm.to_dict(),
    }
    summary_path = args.output.parent / "summary.json"
    writer.write_summary(summary, summary_path)
    logger.info("Wrote %d values to %s (summary: %s)", values.size, args.output, summary_path)


if __name__ == "__main__":  # pragma: no cover - standard CLI entrypoint
    main()
