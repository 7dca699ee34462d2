"""I/O helper subpackage."""
from . import points, writer

__all__ = ["points", "writer"]
