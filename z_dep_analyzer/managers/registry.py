"""Manager registry — explicit name to factory mapping."""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import structlog

from z_dep_analyzer.config import AnalyzerConfig
from z_dep_analyzer.exceptions import ManagerNotFoundError
from z_dep_analyzer.managers.base import PackageManager
from z_dep_analyzer.process import ProcessRunner

log = structlog.get_logger(__name__)

ManagerFactory = Callable[[Path, AnalyzerConfig, ProcessRunner], PackageManager]


@dataclass(frozen=True)
class ManagerDescriptor:
    """Package manager registration entry."""

    name: str
    definition_file_globs: frozenset[str]
    factory: ManagerFactory

    def matches(self, file_name: str) -> bool:
        return any(fnmatch.fnmatch(file_name, glob) for glob in self.definition_file_globs)


class ManagerRegistry:
    """Package manager registration center."""

    def __init__(self) -> None:
        self._managers: dict[str, ManagerDescriptor] = {}

    def register(self, descriptor: ManagerDescriptor) -> None:
        self._managers[descriptor.name] = descriptor
        log.debug("registry.registered", manager=descriptor.name)

    def get(self, name: str) -> ManagerDescriptor | None:
        return self._managers.get(name)

    def list_all(self) -> list[ManagerDescriptor]:
        return list(self._managers.values())

    def find_by_file(self, file_name: str) -> list[ManagerDescriptor]:
        """All managers whose globs match a definition file name."""
        return [d for d in self._managers.values() if d.matches(file_name)]

    def create(
        self,
        name: str,
        analysis_root: Path,
        config: AnalyzerConfig | None = None,
        runner: ProcessRunner | None = None,
    ) -> PackageManager:
        """Build a fresh manager instance for one resolution."""
        desc = self._managers.get(name)
        if desc is None:
            raise ManagerNotFoundError(
                f"No package manager registered as '{name}' "
                f"(available: {', '.join(sorted(self._managers)) or 'none'})"
            )
        return desc.factory(analysis_root, config or AnalyzerConfig(), runner or ProcessRunner())


def create_default_registry() -> ManagerRegistry:
    """Create a registry with the NPM and Cargo resolvers."""
    from z_dep_analyzer.managers.cargo import Cargo
    from z_dep_analyzer.managers.npm import Npm

    registry = ManagerRegistry()
    registry.register(
        ManagerDescriptor(
            name="NPM",
            definition_file_globs=frozenset(Npm.DEFINITION_FILE_GLOBS),
            factory=Npm,
        )
    )
    registry.register(
        ManagerDescriptor(
            name="Cargo",
            definition_file_globs=frozenset(Cargo.DEFINITION_FILE_GLOBS),
            factory=Cargo,
        )
    )
    return registry
