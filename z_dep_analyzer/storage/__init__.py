"""File storage for analyzer results."""

from z_dep_analyzer.storage.base import FileStorage
from z_dep_analyzer.storage.local import LocalFileStorage, XZCompressedLocalFileStorage

__all__ = ["FileStorage", "LocalFileStorage", "XZCompressedLocalFileStorage"]
