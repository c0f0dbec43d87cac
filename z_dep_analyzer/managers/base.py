"""Abstract base class every ecosystem resolver implements."""

from __future__ import annotations

import json
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog

from z_dep_analyzer.config import AnalyzerConfig
from z_dep_analyzer.exceptions import (
    CyclicGraphDetected,
    ToolInvocationFailed,
    ToolOutputError,
    UnsupportedTopology,
)
from z_dep_analyzer.models.package import ProjectAnalyzerResult
from z_dep_analyzer.process import ProcessResult, ProcessRunner
from z_dep_analyzer.progress import ResolutionProgress

log = structlog.get_logger(__name__)


class PackageManager(ABC):
    """
    Resolve the dependencies of one definition file by driving a native tool.

    A fresh instance is created for every resolution, so implementations may
    keep per-resolution state on ``self``. ``resolve_dependencies`` either
    returns a complete, validated result or raises a ResolutionError.
    """

    def __init__(
        self,
        analysis_root: Path,
        config: AnalyzerConfig | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self.analysis_root = analysis_root.resolve()
        self.config = config or AnalyzerConfig()
        self.runner = runner or ProcessRunner()
        # Set by resolve_dependencies; read by the orchestrator when a resolution fails.
        self.progress: ResolutionProgress | None = None

    @property
    @abstractmethod
    def manager_name(self) -> str:
        """Manager identifier, e.g. 'NPM', 'Cargo'."""
        ...

    @property
    @abstractmethod
    def definition_file_globs(self) -> set[str]:
        """File name globs marking a project root, e.g. {'package.json'}."""
        ...

    @abstractmethod
    def resolve_dependencies(self, definition_file: Path) -> ProjectAnalyzerResult:
        """
        Resolve all scopes of the project defined by *definition_file*.

        Raises:
            ToolInvocationFailed: the native tool exited non-zero.
            DirtyWorkingTree: a scratch directory already existed.
            LockfileMissing: a required lockfile is absent.
            UnsupportedTopology: the graph has no single root or is cyclic.
        """
        ...

    # ── tool invocation ──────────────────────────────────────────────────

    def command(self, working_dir: Path | None = None) -> str:
        """Name of the executable driving this manager."""
        return self.manager_name.lower()

    def transform_version(self, output: str) -> str:
        """Extract the bare version from ``<command> --version`` output."""
        return output.strip()

    def run(
        self,
        working_dir: Path,
        *args: str,
        command: str | None = None,
        allow_failure: bool = False,
    ) -> ProcessResult:
        """Run the manager's command, raising on a non-zero exit unless *allow_failure*."""
        result = self.runner.run(working_dir, command or self.command(working_dir), *args)
        if not result.ok and not allow_failure:
            raise ToolInvocationFailed(result.command_line, result.exit_code, result.stderr)
        return result

    def run_json(
        self,
        working_dir: Path,
        *args: str,
        command: str | None = None,
        allow_failure: bool = False,
    ) -> Any:
        """Run a command whose stdout is a single JSON document and parse it."""
        result = self.run(working_dir, *args, command=command, allow_failure=allow_failure)
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            if not result.ok:
                raise ToolInvocationFailed(
                    result.command_line, result.exit_code, result.stderr
                ) from exc
            raise ToolOutputError(result.command_line, f"invalid JSON ({exc})") from exc

    def locate_tool(self) -> str | None:
        """Absolute path of the executable, or None when it is not on PATH."""
        return shutil.which(self.command())

    def tool_version(self) -> str | None:
        """Version of the installed tool for diagnostics; never raises."""
        try:
            result = self.runner.run(Path.cwd(), self.command(), "--version")
        except ToolInvocationFailed:
            return None
        if not result.ok:
            return None
        return self.transform_version(result.stdout)

    # ── helpers for implementations ──────────────────────────────────────

    def relative_definition_path(self, definition_file: Path) -> str:
        """Definition file path relative to the analysis root, in POSIX form."""
        resolved = definition_file.resolve()
        try:
            return resolved.relative_to(self.analysis_root).as_posix()
        except ValueError:
            return resolved.as_posix()

    def is_under_analysis_root(self, path: Path | str) -> bool:
        resolved = Path(os.path.abspath(path))
        return resolved == self.analysis_root or self.analysis_root in resolved.parents

    def guard_path(self, definition_file: Path, path: list[str], node: str) -> None:
        """Fail predictably on cycles or runaway depth while walking a tree.

        *path* holds the keys from the scope root down to the parent of *node*.
        """
        if node in path:
            raise CyclicGraphDetected(definition_file, [*path[path.index(node) :], node])
        if len(path) >= self.config.max_tree_depth:
            raise UnsupportedTopology(
                definition_file,
                f"Dependency tree deeper than {self.config.max_tree_depth} levels below "
                f"'{path[0]}'",
            )
