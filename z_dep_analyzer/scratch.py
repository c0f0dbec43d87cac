"""Exclusively owned scratch directories with guaranteed cleanup."""

from __future__ import annotations

import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import structlog

from z_dep_analyzer.exceptions import DirtyWorkingTree

log = structlog.get_logger(__name__)


@contextmanager
def exclusive_scratch_dir(path: Path, definition_file: Path | None = None) -> Iterator[Path]:
    """Acquire *path* for the duration of the block and delete it afterwards.

    The directory must not exist on entry: stale content would be attributed
    to the project being resolved. It is removed on every exit path, including
    exceptions; a failed removal is logged and does not mask the block's outcome.
    """
    if path.exists():
        raise DirtyWorkingTree(path, definition_file)

    try:
        yield path
    finally:
        if path.exists():
            try:
                shutil.rmtree(path)
                log.debug("scratch.removed", path=str(path))
            except OSError:
                log.warning("scratch.remove_failed", path=str(path), exc_info=True)
