"""Definition file discovery — walk the analysis root and match manager globs."""

from __future__ import annotations

import os
from pathlib import Path

import structlog

from z_dep_analyzer.managers.registry import ManagerRegistry

log = structlog.get_logger(__name__)

# Install output, build output and VCS metadata never hold project definitions.
SKIPPED_DIRS = frozenset({"node_modules", "target", ".git", ".hg", ".svn"})


def find_definition_files(root: Path, registry: ManagerRegistry) -> dict[str, list[Path]]:
    """Map each manager name to the sorted definition files it handles below *root*.

    Managers without any match are omitted.
    """
    descriptors = registry.list_all()
    found: dict[str, list[Path]] = {}

    for dirpath, dirnames, filenames in os.walk(root):
        # Pruning in place stops os.walk from descending.
        dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS)
        for file_name in filenames:
            for desc in descriptors:
                if desc.matches(file_name):
                    found.setdefault(desc.name, []).append(Path(dirpath) / file_name)

    result = {name: sorted(paths) for name, paths in sorted(found.items())}
    log.info(
        "discovery.done",
        root=str(root),
        definition_files={name: len(paths) for name, paths in result.items()},
    )
    return result
