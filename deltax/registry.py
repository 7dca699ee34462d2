"""Registration of visualization postprocessors by short name."""
from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple, Type, TypeVar

from .errors import RegistrationError

logger = logging.getLogger(__name__)

__all__ = [
    "PostprocessorInfo",
    "register_visualization_postprocessor",
    "get_visualization_postprocessor",
    "registered_names",
    "describe_visualization_postprocessors",
    "load_entrypoint",
]

T = TypeVar("T", bound=type)


@dataclass(frozen=True)
class PostprocessorInfo:
    name: str
    description: str
    cls: type


_REGISTRY: Dict[str, PostprocessorInfo] = {}


def register_visualization_postprocessor(name: str, description: str) -> Callable[[T], T]:
    """Class decorator recording ``cls`` under ``name``.

    Registering the same class twice is a no-op; registering a different class
    under a name already in use raises :class:`RegistrationError`.
    """

    if not name or not name.strip():
        raise RegistrationError("postprocessor name must be a non-empty string")

    def _decorator(cls: T) -> T:
        existing = _REGISTRY.get(name)
        if existing is not None and existing.cls is not cls:
            raise RegistrationError(
                f"visualization postprocessor '{name}' is already registered to "
                f"{existing.cls.__module__}.{existing.cls.__qualname__}"
            )
        _REGISTRY[name] = PostprocessorInfo(name=name, description=description, cls=cls)
        logger.debug("registry: registered visualization postprocessor %s", name)
        return cls

    return _decorator


def get_visualization_postprocessor(name: str) -> Type:
    try:
        return _REGISTRY[name].cls
    except KeyError:
        known = ", ".join(sorted(_REGISTRY)) or "<none>"
        raise RegistrationError(f"unknown visualization postprocessor '{name}' (known: {known})") from None


def registered_names() -> List[str]:
    return sorted(_REGISTRY)


def describe_visualization_postprocessors() -> List[Tuple[str, str]]:
    """Return ``(name, description)`` pairs sorted by name."""

    return [(info.name, info.description) for _, info in sorted(_REGISTRY.items())]


def load_entrypoint(entrypoint: str) -> type:
    """Import ``module:attribute`` and return the attribute.

    Importing the module runs its registration decorators, so plugins living
    outside this package become visible to :func:`get_visualization_postprocessor`.
    """

    module_name, sep, attr = str(entrypoint).partition(":")
    if not module_name or not sep or not attr:
        raise RegistrationError(f"Invalid postprocessor entrypoint '{entrypoint}' (expected 'module:attribute')")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise RegistrationError(f"Unable to import postprocessor module '{module_name}': {exc}") from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise RegistrationError(f"postprocessor entrypoint '{entrypoint}' missing attribute '{attr}'") from exc
