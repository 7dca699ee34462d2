"""Output helper utilities.

Thin wrappers around :mod:`pandas` and :mod:`pyarrow` used by the
command-line runner.  Parquet is used for per-point tables and JSON for run
summaries.  Destination directories are created when necessary.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

__all__ = ["write_parquet", "write_csv", "write_summary", "COLUMN_UNITS", "COLUMN_DEFINITIONS"]

COLUMN_UNITS = {
    "x": "m",
    "y": "m",
    "z": "m",
    "T": "K",
    "depth": "m",
    "pressure": "Pa",
    "T_liquidus": "K",
    "deltaX": "dimensionless",
}

COLUMN_DEFINITIONS = {
    "x": "First coordinate of the output point.",
    "y": "Second coordinate of the output point (vertical in 2-D boxes).",
    "z": "Third coordinate of the output point (vertical in 3-D boxes).",
    "T": "Temperature read from the solution at the point.",
    "depth": "Depth below the reference surface reported by the geometry model.",
    "pressure": "Hydrostatic pressure g * rho * depth.",
    "T_liquidus": "Power-law liquidus temperature at the hydrostatic pressure.",
    "deltaX": "Scaled temperature excess over the liquidus, s * (T - T_liquidus).",
}


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_parquet(df: pd.DataFrame, path: Path, *, compression: str = "snappy") -> None:
    """Write a DataFrame to a Parquet file using ``pyarrow``.

    Column units and definitions for known columns are stored in the schema
    metadata under ``units`` and ``definitions``.
    """
    _ensure_parent(path)
    units = {k: v for k, v in COLUMN_UNITS.items() if k in df.columns}
    definitions = {k: v for k, v in COLUMN_DEFINITIONS.items() if k in df.columns}
    table = pa.Table.from_pandas(df, preserve_index=False)
    metadata = dict(table.schema.metadata or {})
    metadata.update(
        {
            b"units": json.dumps(units, sort_keys=True).encode("utf-8"),
            b"definitions": json.dumps(definitions, sort_keys=True).encode("utf-8"),
        }
    )
    table = table.replace_schema_metadata(metadata)
    compression_arg = None if compression == "none" else compression
    pq.write_table(table, path, compression=compression_arg)


def write_csv(df: pd.DataFrame, path: Path) -> None:
    _ensure_parent(path)
    df.to_csv(path, index=False)


def write_summary(summary: Mapping[str, Any], path: Path) -> None:
    """Write a summary dictionary as indented JSON."""
    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(summary, fh, indent=2, sort_keys=True)
