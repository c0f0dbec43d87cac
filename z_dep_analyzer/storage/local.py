"""Local file storage implementations."""

from __future__ import annotations

import lzma
from pathlib import Path
from typing import BinaryIO, cast

import structlog

from z_dep_analyzer.exceptions import StorageError
from z_dep_analyzer.storage.base import FileStorage

log = structlog.get_logger(__name__)


class LocalFileStorage(FileStorage):
    """Store files below *directory* on the local file system."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory).resolve()
        self.directory.mkdir(parents=True, exist_ok=True)

    def resolve(self, path: str) -> Path:
        """Absolute location of *path*; paths escaping the directory are rejected."""
        target = (self.directory / path).resolve()
        if self.directory not in target.parents:
            raise StorageError(f"Path '{path}' is not a file within '{self.directory}'")
        return target

    def _open(self, target: Path, mode: str) -> BinaryIO:
        return cast(BinaryIO, open(target, mode))

    def exists(self, path: str) -> bool:
        return self.resolve(path).is_file()

    def read(self, path: str) -> BinaryIO:
        target = self.resolve(path)
        try:
            return self._open(target, "rb")
        except OSError as exc:
            raise StorageError(f"Cannot read '{path}': {exc}") from exc

    def write(self, path: str) -> BinaryIO:
        target = self.resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            stream = self._open(target, "wb")
        except OSError as exc:
            raise StorageError(f"Cannot write '{path}': {exc}") from exc
        log.debug("storage.write", path=str(target))
        return stream


class XZCompressedLocalFileStorage(LocalFileStorage):
    """A :class:`LocalFileStorage` keeping every file XZ-compressed under ``<path>.xz``."""

    def resolve(self, path: str) -> Path:
        return super().resolve(f"{path}.xz")

    def _open(self, target: Path, mode: str) -> BinaryIO:
        return cast(BinaryIO, lzma.open(target, mode))
