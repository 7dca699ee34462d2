import json
from pathlib import Path

import numpy as np
import pandas as pd
import pyarrow.parquet as pq
import pytest

from deltax import run
from deltax.geometry import Box, SimpleIntrospection
from deltax.postprocessor import DeltaXPostprocessor
from deltax.warnings import NumericalWarning


def reference(T: float, d: float) -> float:
    return 1500.0 * (T - 73.2 * (1.0 - 1.4 * 916.0 * d / 395.0) ** (1.0 / 9.0))


@pytest.fixture
def points_csv(tmp_path: Path) -> Path:
    df = pd.DataFrame({"x": [0.0, 0.5, 1.0], "y": [0.3, 0.2, 0.0], "T": [70.0, 80.0, 90.0]})
    path = tmp_path / "points.csv"
    df.to_csv(path, index=False)
    return path


def test_run_writes_parquet_and_summary(tmp_path: Path, points_csv: Path):
    prm_path = tmp_path / "model.prm"
    prm_path.write_text(
        "subsection Postprocess\n  subsection Visualization\n    subsection deltaX\n"
        "      set Number of depth slices = 8\n    end\n  end\nend\n",
        encoding="utf-8",
    )
    out = tmp_path / "out" / "deltaX.parquet"
    run.main(
        [
            "--config", str(prm_path),
            "--points", str(points_csv),
            "--extents", "1.0", "0.3",
            "--output", str(out),
            "--override", "Postprocess.Visualization.deltaX.Use minimal temperature for surface=false",
            "--quiet",
        ]
    )
    df = pd.read_parquet(out)
    assert list(df["deltaX"]) == pytest.approx([reference(70.0, 0.0), reference(80.0, 0.1), reference(90.0, 0.3)])
    assert df["T_liquidus"].iloc[0] == pytest.approx(73.2)
    assert df["pressure"].iloc[2] == pytest.approx(1.4 * 916.0 * 0.3)
    metadata = pq.read_schema(out).metadata
    assert json.loads(metadata[b"units"])["deltaX"] == "dimensionless"

    summary = json.loads((out.parent / "summary.json").read_text())
    assert summary["n_points"] == 3
    assert summary["n_nan"] == 0
    assert summary["config"] == {"depth_slices": 8, "extrapolate_surface": True, "extrapolate_bottom": False}
    assert summary["deltaX_max"] == pytest.approx(max(df["deltaX"]))
    assert summary["parameters"]["Postprocess"]["Visualization"]["deltaX"]["Number of depth slices"] == "8"


def test_run_shell_geometry_with_nan_policy(tmp_path: Path):
    df = pd.DataFrame({"x": [1.0, 0.5], "y": [0.0, 0.0], "T": [80.0, 80.0]})
    points = tmp_path / "shell.csv"
    df.to_csv(points, index=False)
    out = tmp_path / "shell.csv.out.csv"
    run.main(
        [
            "--points", str(points),
            "--geometry", "shell",
            "--inner-radius", "0.0",
            "--outer-radius", "1.0",
            "--domain-policy", "nan",
            "--output", str(out),
            "--quiet",
        ]
    )
    result = pd.read_csv(out)
    assert result["deltaX"].iloc[0] == pytest.approx(1500.0 * (80.0 - 73.2))
    assert np.isnan(result["deltaX"].iloc[1])
    assert np.isnan(result["T_liquidus"].iloc[1])
    summary = json.loads((out.parent / "summary.json").read_text())
    assert summary["n_nan"] == 1


def test_run_points_columns_come_from_one_evaluation():
    box = Box(extents=(1.0, 0.5))
    post = DeltaXPostprocessor(box, SimpleIntrospection(("temperature",)), domain_policy="clamp")
    df = pd.DataFrame({"x": [0.0, 0.0, 0.0], "y": [0.5, 0.4, 0.0], "T": [80.0, 80.0, 80.0]})
    with pytest.warns(NumericalWarning):
        result = run.run_points(df, post)
    assert list(result["depth"]) == pytest.approx([0.0, 0.1, 0.5])
    # the deepest point is over-pressurised: raw pressure is reported, the liquidus is clamped
    assert result["pressure"].iloc[2] == pytest.approx(1.4 * 916.0 * 0.5)
    assert result["T_liquidus"].iloc[2] == 0.0
    assert result["deltaX"].iloc[2] == pytest.approx(1500.0 * 80.0)
    assert np.allclose(result["deltaX"], 1500.0 * (result["T"] - result["T_liquidus"]))


def test_run_invalid_parameter_exits(tmp_path: Path, points_csv: Path):
    with pytest.raises(SystemExit) as excinfo:
        run.main(
            [
                "--points", str(points_csv),
                "--extents", "1.0", "0.3",
                "--override", "Postprocess.Visualization.deltaX.Number of depth slices=0",
                "--quiet",
            ]
        )
    assert excinfo.value.code == 1


def test_run_overpressure_exits(tmp_path: Path, points_csv: Path):
    with pytest.raises(SystemExit) as excinfo:
        run.main(["--points", str(points_csv), "--extents", "1.0", "2.0", "--quiet",
                  "--output", str(tmp_path / "o.parquet")])
    assert excinfo.value.code == 1
    assert not (tmp_path / "o.parquet").exists()


def test_describe_parameters(capsys):
    run.main(["--describe-parameters", "--quiet"])
    captured = capsys.readouterr().out
    assert "set Use minimal temperature for surface = true" in captured


def test_list_postprocessors(capsys):
    run.main(["--list-postprocessors", "--quiet"])
    assert capsys.readouterr().out.startswith("deltaX: ")
