"""Reading tables of output points for the command-line runner."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence, Tuple

import numpy as np
import pandas as pd

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = ["read_points", "split_points"]

COORDINATE_COLUMNS: Tuple[str, ...] = ("x", "y", "z")


def read_points(path: Path) -> pd.DataFrame:
    """Load a CSV or Parquet table with coordinate columns and ``T``."""

    source = Path(path)
    if source.suffix.lower() in {".parquet", ".pq"}:
        df = pd.read_parquet(source)
    else:
        df = pd.read_csv(source)
    logger.info("Read %d points from %s", len(df), source)
    return df


def split_points(
    df: pd.DataFrame,
    *,
    temperature_column: str = "T",
    coordinate_columns: Sequence[str] = COORDINATE_COLUMNS,
) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(temperature, points)`` arrays from a points table.

    Coordinates are taken from the leading run of ``coordinate_columns``
    present in ``df``; at least two are required.
    """

    if temperature_column not in df.columns:
        raise ConfigurationError(f"points table has no temperature column '{temperature_column}'")
    coords = []
    for name in coordinate_columns:
        if name not in df.columns:
            break
        coords.append(name)
    if len(coords) < 2:
        raise ConfigurationError(
            f"points table needs at least the coordinate columns {', '.join(coordinate_columns[:2])}"
        )
    temperature = df[temperature_column].to_numpy(dtype=float)
    points = df[coords].to_numpy(dtype=float)
    return temperature, points
