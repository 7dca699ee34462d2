"""Helper utilities for loading parameter files and applying overrides."""
from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .errors import ConfigurationError
from .parameters import ParameterHandler, format_value

logger = logging.getLogger(__name__)

__all__ = [
    "parse_override_value",
    "apply_overrides_dict",
    "read_overrides_file",
    "apply_overrides",
    "load_parameters",
    "configure_logging",
]


def parse_override_value(raw: str) -> Any:
    """Parse a CLI override value into a Python object."""

    text = raw.strip()
    lower = text.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            pass
    if (text.startswith('"') and text.endswith('"')) or (text.startswith("'") and text.endswith("'")):
        return text[1:-1]
    return text


def apply_overrides_dict(payload: Dict[str, Any], overrides: Sequence[str]) -> Dict[str, Any]:
    """Apply dotted-path overrides to a nested parameter mapping.

    ``Postprocess.Visualization.deltaX.Number of depth slices=5`` sets the
    entry ``Number of depth slices`` in the nested subsection.  Entry names
    may contain spaces but not dots.
    """

    if not overrides:
        return payload
    for item in overrides:
        key, sep, value_str = item.partition("=")
        if not sep:
            raise ConfigurationError(f"Invalid override '{item}'; expected path=value")
        parts = [segment.strip() for segment in key.split(".") if segment.strip()]
        if not parts:
            raise ConfigurationError(f"Invalid override '{item}'; empty path")
        target: Any = payload
        for segment in parts[:-1]:
            if not isinstance(target, dict):
                raise ConfigurationError(f"Cannot traverse into non-mapping for override '{item}' at '{segment}'")
            if segment not in target or target[segment] is None:
                target[segment] = {}
            target = target[segment]
        if not isinstance(target, dict):
            raise ConfigurationError(f"Cannot set override '{item}'; target is not a mapping")
        target[parts[-1]] = parse_override_value(value_str)
    return payload


def read_overrides_file(path: Path) -> List[str]:
    """Return ``PATH=VALUE`` lines from ``path``, skipping blanks and ``#`` comments."""

    lines: List[str] = []
    for raw in Path(path).read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        lines.append(line)
    return lines


def apply_overrides(prm: ParameterHandler, overrides: Iterable[str]) -> None:
    """Apply dotted-path overrides to an already declared handler."""

    payload = apply_overrides_dict({}, list(overrides))
    if payload:
        prm.load_mapping(payload)
        logger.info("Applied %d parameter override(s)", sum(1 for _ in _leaves(payload)))


def _leaves(payload: Dict[str, Any]) -> Iterable[str]:
    for key, value in payload.items():
        if isinstance(value, dict):
            yield from _leaves(value)
        else:
            yield f"{key}={format_value(value)}"


def load_parameters(
    prm: ParameterHandler,
    path: Optional[Path] = None,
    overrides: Optional[Sequence[str]] = None,
) -> ParameterHandler:
    """Populate a declared ``prm`` from ``path`` and then ``overrides``."""

    if path is not None:
        prm.load_file(Path(path))
    if overrides:
        apply_overrides(prm, overrides)
    return prm


def configure_logging(level: int, suppress_warnings: bool = False) -> None:
    """Configure root logging and optionally silence Python warnings."""

    logging.basicConfig(level=level)
    root = logging.getLogger()
    root.setLevel(level)
    if suppress_warnings:
        warnings.filterwarnings("ignore")
    logging.captureWarnings(True)
