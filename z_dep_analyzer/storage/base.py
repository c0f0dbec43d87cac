"""File storage abstract interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import BinaryIO


class FileStorage(ABC):
    """Binary file storage addressed by relative, POSIX-style paths."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        ...

    @abstractmethod
    def read(self, path: str) -> BinaryIO:
        """Open a stored file for reading. The caller closes the stream."""
        ...

    @abstractmethod
    def write(self, path: str) -> BinaryIO:
        """Open a file for writing, replacing existing content. The caller closes the stream."""
        ...
