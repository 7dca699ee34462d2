"""Hierarchical parameter store with declared, pattern-checked entries.

Plugins declare their entries (name, default, pattern, documentation) inside
nested subsections, the host fills in values from a parameter file, and the
plugin reads them back through typed getters.  Two input formats are
understood:

* the host's native parameter-file syntax::

      subsection Postprocess
        subsection Visualization
          subsection deltaX
            set Number of depth slices = 10
          end
        end
      end

* nested YAML mappings, loaded with :mod:`ruamel.yaml`.

Values are stored as text, exactly as written in the parameter file, and are
validated against the declared pattern whenever they are set.
"""
from __future__ import annotations

import logging
import math
import re
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = [
    "Pattern",
    "Integer",
    "Double",
    "Bool",
    "Selection",
    "ParameterEntry",
    "ParameterHandler",
    "format_value",
]

_INTEGER_RE = re.compile(r"[-+]?[0-9]+")
_BOOL_WORDS = ("true", "false")


class Pattern:
    """Textual validation rule for a parameter value."""

    def match(self, text: str) -> bool:
        raise NotImplementedError

    def description(self) -> str:
        raise NotImplementedError

    def __repr__(self) -> str:
        return self.description()


class Integer(Pattern):
    """Integer within optional inclusive bounds."""

    def __init__(self, lower: Optional[int] = None, upper: Optional[int] = None) -> None:
        self.lower = lower
        self.upper = upper

    def match(self, text: str) -> bool:
        text = text.strip()
        if not _INTEGER_RE.fullmatch(text):
            return False
        value = int(text)
        if self.lower is not None and value < self.lower:
            return False
        if self.upper is not None and value > self.upper:
            return False
        return True

    def description(self) -> str:
        lower = "-MAX_INT" if self.lower is None else str(self.lower)
        upper = "MAX_INT" if self.upper is None else str(self.upper)
        return f"[Integer range {lower}...{upper} (inclusive)]"


class Double(Pattern):
    """Finite floating point number within optional inclusive bounds."""

    def __init__(self, lower: Optional[float] = None, upper: Optional[float] = None) -> None:
        self.lower = lower
        self.upper = upper

    def match(self, text: str) -> bool:
        try:
            value = float(text.strip())
        except ValueError:
            return False
        if not math.isfinite(value):
            return False
        if self.lower is not None and value < self.lower:
            return False
        if self.upper is not None and value > self.upper:
            return False
        return True

    def description(self) -> str:
        lower = "-MAX_DOUBLE" if self.lower is None else repr(float(self.lower))
        upper = "MAX_DOUBLE" if self.upper is None else repr(float(self.upper))
        return f"[Double {lower}...{upper} (inclusive)]"


class Bool(Pattern):
    """Exactly ``true`` or ``false``."""

    def match(self, text: str) -> bool:
        return text.strip() in _BOOL_WORDS

    def description(self) -> str:
        return "[Bool]"


class Selection(Pattern):
    """One of a fixed set of words."""

    def __init__(self, options: Sequence[str]) -> None:
        self.options = tuple(str(opt) for opt in options)

    def match(self, text: str) -> bool:
        return text.strip() in self.options

    def description(self) -> str:
        return f"[Selection {'|'.join(self.options)} ]"


@dataclass
class ParameterEntry:
    """One declared entry and its current textual value."""

    name: str
    default: str
    pattern: Pattern
    documentation: str = ""
    value: Optional[str] = None

    @property
    def current(self) -> str:
        return self.default if self.value is None else self.value


def format_value(value: Any) -> str:
    """Return the parameter-file spelling of a Python value."""

    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


class _Section:
    def __init__(self) -> None:
        self.entries: Dict[str, ParameterEntry] = {}
        self.subsections: Dict[str, "_Section"] = {}


class ParameterHandler:
    """Nested store of declared parameters.

    The handler keeps a cursor into the subsection tree.  Declarations, reads
    and writes act on the subsection the cursor points to; use
    :meth:`enter_subsection`/:meth:`leave_subsection` or the
    :meth:`subsection` context manager to move it.
    """

    def __init__(self) -> None:
        self._root = _Section()
        self._path: List[str] = []

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    @property
    def current_path(self) -> Tuple[str, ...]:
        return tuple(self._path)

    def _section(self, path: Sequence[str], *, create: bool = False) -> _Section:
        node = self._root
        for name in path:
            child = node.subsections.get(name)
            if child is None:
                if not create:
                    raise ConfigurationError(
                        f"no subsection '{name}' has been declared",
                        section=tuple(path[: list(path).index(name)]),
                    )
                child = _Section()
                node.subsections[name] = child
            node = child
        return node

    def enter_subsection(self, name: str) -> None:
        self._section(self._path + [name], create=True)
        self._path.append(name)

    def leave_subsection(self) -> None:
        if not self._path:
            raise ConfigurationError("cannot leave the top-level section")
        self._path.pop()

    @contextmanager
    def subsection(self, *names: str) -> Iterator["ParameterHandler"]:
        """Enter ``names`` in order and leave them again on exit."""

        for name in names:
            self.enter_subsection(name)
        try:
            yield self
        finally:
            for _ in names:
                self.leave_subsection()

    # ------------------------------------------------------------------
    # Declaration and access
    # ------------------------------------------------------------------
    def declare_entry(self, name: str, default: str, pattern: Pattern, documentation: str = "") -> None:
        section = self._section(self._path, create=True)
        if not pattern.match(default):
            raise ConfigurationError(
                f"default value '{default}' does not match pattern {pattern.description()}",
                section=self._path,
                entry=name,
            )
        if name in section.entries:
            logger.debug("parameters: redeclaring %s in %s", name, "/".join(self._path) or "<root>")
        section.entries[name] = ParameterEntry(name=name, default=default, pattern=pattern, documentation=documentation)

    def _entry(self, name: str, path: Optional[Sequence[str]] = None) -> ParameterEntry:
        path = self._path if path is None else list(path)
        section = self._section(path)
        try:
            return section.entries[name]
        except KeyError:
            raise ConfigurationError("entry has not been declared", section=path, entry=name) from None

    def set(self, name: str, value: Any) -> None:
        self._set_at(self._path, name, value)

    def _set_at(self, path: Sequence[str], name: str, value: Any) -> None:
        entry = self._entry(name, path)
        text = format_value(value).strip()
        if not entry.pattern.match(text):
            raise ConfigurationError(
                f"value '{text}' does not match pattern {entry.pattern.description()}",
                section=path,
                entry=name,
            )
        entry.value = text

    def get(self, name: str) -> str:
        return self._entry(name).current

    def get_integer(self, name: str) -> int:
        entry = self._entry(name)
        text = entry.current.strip()
        if not entry.pattern.match(text):
            raise ConfigurationError(f"value '{text}' is not valid", section=self._path, entry=name)
        try:
            return int(text)
        except ValueError:
            raise ConfigurationError(f"value '{text}' is not an integer", section=self._path, entry=name) from None

    def get_double(self, name: str) -> float:
        entry = self._entry(name)
        text = entry.current.strip()
        try:
            return float(text)
        except ValueError:
            raise ConfigurationError(f"value '{text}' is not a number", section=self._path, entry=name) from None

    def get_bool(self, name: str) -> bool:
        entry = self._entry(name)
        text = entry.current.strip()
        if text in _BOOL_WORDS:
            return text == "true"
        raise ConfigurationError(f"value '{entry.current}' is not a boolean", section=self._path, entry=name)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------
    def load_mapping(self, payload: Mapping[str, Any]) -> None:
        """Apply values from a nested mapping mirroring the subsection tree."""

        if not isinstance(payload, Mapping):
            raise ConfigurationError("parameter input must be a mapping of subsections and entries")
        self._load_mapping(list(self._path), payload)

    def _load_mapping(self, path: List[str], payload: Mapping[str, Any]) -> None:
        section = self._section(path)
        for key, value in payload.items():
            key = str(key)
            if isinstance(value, Mapping):
                if key not in section.subsections:
                    raise ConfigurationError(f"no subsection '{key}' has been declared", section=path)
                self._load_mapping(path + [key], value)
            else:
                self._set_at(path, key, value)

    def parse_prm(self, text: str) -> None:
        """Read the host parameter-file syntax from ``text``."""

        path = list(self._path)
        base_depth = len(path)
        for lineno, line in _logical_lines(text):
            words = line.split(None, 1)
            keyword = words[0]
            if keyword == "subsection":
                if len(words) < 2:
                    raise ConfigurationError(f"line {lineno}: subsection without a name", section=path)
                name = words[1].strip()
                if name not in self._section(path).subsections:
                    raise ConfigurationError(f"line {lineno}: no subsection '{name}' has been declared", section=path)
                path.append(name)
            elif keyword == "end":
                if len(path) <= base_depth:
                    raise ConfigurationError(f"line {lineno}: 'end' without matching subsection", section=path)
                path.pop()
            elif keyword == "set":
                name, sep, value = words[1].partition("=") if len(words) > 1 else ("", "", "")
                if not sep or not name.strip():
                    raise ConfigurationError(f"line {lineno}: expected 'set <name> = <value>'", section=path)
                self._set_at(path, name.strip(), value.strip())
            else:
                raise ConfigurationError(f"line {lineno}: unrecognised statement '{keyword}'", section=path)
        if len(path) != base_depth:
            raise ConfigurationError("unterminated subsection at end of input", section=path)

    def load_file(self, path: Path) -> None:
        """Read ``path``; ``.yml``/``.yaml`` as YAML, anything else as prm."""

        source = Path(path)
        if source.suffix.lower() in {".yml", ".yaml"}:
            from ruamel.yaml import YAML

            yaml = YAML(typ="safe")
            with source.open("r", encoding="utf-8") as fh:
                data = yaml.load(fh)
            self.load_mapping(data or {})
        else:
            self.parse_prm(source.read_text(encoding="utf-8"))
        logger.debug("parameters: loaded %s", source)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        """Return the current values as a nested mapping of strings."""

        def _walk(section: _Section) -> Dict[str, Any]:
            out: Dict[str, Any] = {name: entry.current for name, entry in section.entries.items()}
            for name, child in section.subsections.items():
                out[name] = _walk(child)
            return out

        return _walk(self._root)

    def describe(self) -> str:
        """Return a prm-style listing of every entry with its documentation."""

        lines: List[str] = []

        def _walk(section: _Section, indent: int) -> None:
            pad = "  " * indent
            for entry in section.entries.values():
                if entry.documentation:
                    lines.append(f"{pad}# {entry.documentation}")
                lines.append(f"{pad}# {entry.pattern.description()} default: {entry.default}")
                lines.append(f"{pad}set {entry.name} = {entry.current}")
            for name, child in section.subsections.items():
                lines.append(f"{pad}subsection {name}")
                _walk(child, indent + 1)
                lines.append(f"{pad}end")

        _walk(self._root, 0)
        return "\n".join(lines)


def _logical_lines(text: str) -> Iterator[Tuple[int, str]]:
    """Yield (line number, statement) with comments and continuations folded."""

    pending = ""
    start = 0
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].rstrip()
        if not pending:
            start = lineno
        if line.endswith("\\"):
            pending += line[:-1].strip() + " "
            continue
        line = (pending + line.strip()).strip()
        pending = ""
        if line:
            yield start, line
    if pending.strip():
        yield start, pending.strip()
