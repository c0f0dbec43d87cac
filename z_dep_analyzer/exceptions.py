"""Custom exceptions for Z-Dep-Analyzer."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path


class AnalyzerError(Exception):
    """Base exception for all analyzer errors."""


class ResolutionError(AnalyzerError):
    """Raised when the dependencies of one definition file cannot be resolved.

    Scoped to a single definition file: the orchestrator records it and keeps
    resolving sibling files.
    """

    def __init__(self, message: str, definition_file: Path | str | None = None) -> None:
        self.definition_file = str(definition_file) if definition_file is not None else None
        super().__init__(message)


class ToolInvocationFailed(ResolutionError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(
        self,
        command_line: Sequence[str],
        exit_code: int,
        stderr: str,
        definition_file: Path | str | None = None,
    ) -> None:
        self.command_line = list(command_line)
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(
            f"'{' '.join(self.command_line)}' failed with exit code {exit_code}:\n{stderr.strip()}",
            definition_file,
        )


class ToolOutputError(ResolutionError):
    """Raised when an external command succeeded but its output cannot be parsed."""

    def __init__(
        self,
        command_line: Sequence[str],
        detail: str,
        definition_file: Path | str | None = None,
    ) -> None:
        self.command_line = list(command_line)
        self.detail = detail
        super().__init__(
            f"Unexpected output of '{' '.join(self.command_line)}': {detail}", definition_file
        )


class DirtyWorkingTree(ResolutionError):
    """Raised when a scratch directory the resolver must own already exists."""

    def __init__(self, path: Path | str, definition_file: Path | str | None = None) -> None:
        self.path = str(path)
        super().__init__(f"'{path}' directory already exists.", definition_file)


class LockfileMissing(ResolutionError):
    """Raised when a required lockfile does not exist."""

    def __init__(self, path: Path | str, definition_file: Path | str | None = None) -> None:
        self.path = str(path)
        super().__init__(f"Required lockfile '{path}' does not exist.", definition_file)


class UnsupportedTopology(ResolutionError):
    """Raised when the dependency graph has a shape the resolver refuses to guess about."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{reason} ({path})", path)


class CyclicGraphDetected(UnsupportedTopology):
    """Raised when a dependency tree walk reaches an identifier already on its path."""

    def __init__(self, path: Path | str, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(path, f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class ManagerNotFoundError(AnalyzerError):
    """Raised when no package manager is registered under a name."""


class LicenseClassificationConflict(AnalyzerError):
    """Raised when a license appears in more than one classification set."""

    def __init__(self, conflicts: dict[str, Iterable[str]]) -> None:
        self.conflicts = {lic: sorted(sets) for lic, sets in conflicts.items()}
        details = "; ".join(
            f"{lic} in {', '.join(sets)}" for lic, sets in sorted(self.conflicts.items())
        )
        super().__init__(f"The classifications for the following licenses overlap: {details}")


class StorageError(AnalyzerError):
    """Raised when a storage path is invalid or cannot be accessed."""
