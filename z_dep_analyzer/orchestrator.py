"""Resolve every definition file in parallel and merge the results."""

from __future__ import annotations

import asyncio
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

import structlog

from z_dep_analyzer.config import AnalyzerConfig
from z_dep_analyzer.discovery import find_definition_files
from z_dep_analyzer.exceptions import AnalyzerError
from z_dep_analyzer.managers.base import PackageManager
from z_dep_analyzer.managers.registry import ManagerRegistry, create_default_registry
from z_dep_analyzer.models.package import AnalyzerRun, ProjectAnalyzerResult
from z_dep_analyzer.process import ProcessRunner

log = structlog.get_logger(__name__)


class AnalyzerOrchestrator:
    """
    Drive the resolvers over an analysis root.

    Each definition file is resolved in a worker thread by a fresh manager
    instance; at most ``config.max_workers`` resolutions run at once. A failed
    resolution becomes an entry in :attr:`AnalyzerRun.issues` and does not
    affect its siblings.

    A resolution that exceeds ``config.resolution_timeout`` is reported as an
    issue right away, but its thread cannot be cancelled: it keeps its worker
    slot until it returns, and :meth:`analyze` does not wait for it.
    """

    def __init__(
        self,
        analysis_root: Path,
        config: AnalyzerConfig | None = None,
        registry: ManagerRegistry | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self.analysis_root = analysis_root.resolve()
        self.config = config or AnalyzerConfig()
        self.registry = registry or create_default_registry()
        self.runner = runner or ProcessRunner()

    def discover(self) -> dict[str, list[Path]]:
        return find_definition_files(self.analysis_root, self.registry)

    async def analyze(
        self, definition_files: dict[str, list[Path]] | None = None
    ) -> AnalyzerRun:
        """Resolve all *definition_files* (discovered when omitted) into one run."""
        if definition_files is None:
            definition_files = self.discover()

        loop = asyncio.get_running_loop()
        slots = asyncio.Semaphore(self.config.max_workers)
        executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="z-deps"
        )
        t0 = time.monotonic()

        def _release_slot(_: Future) -> None:
            if not loop.is_closed():
                loop.call_soon_threadsafe(slots.release)

        async def _resolve_one(
            manager_name: str, definition_file: Path
        ) -> ProjectAnalyzerResult | str:
            manager: PackageManager | None = None
            await slots.acquire()
            try:
                manager = self.registry.create(
                    manager_name, self.analysis_root, self.config, self.runner
                )
                future = executor.submit(manager.resolve_dependencies, definition_file)
            except Exception as exc:
                slots.release()
                return self._failure(manager_name, definition_file, exc, manager)

            # The slot is freed by the thread finishing, not by the timeout.
            future.add_done_callback(_release_slot)
            try:
                return await asyncio.wait_for(
                    asyncio.wrap_future(future), self.config.resolution_timeout
                )
            except Exception as exc:
                return self._failure(manager_name, definition_file, exc, manager)

        jobs = [
            (manager_name, path)
            for manager_name, paths in sorted(definition_files.items())
            for path in paths
        ]
        try:
            outcomes = await asyncio.gather(*(_resolve_one(name, path) for name, path in jobs))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        run = AnalyzerRun(analysis_root=self.analysis_root)
        for (_, path), outcome in zip(jobs, outcomes):
            if isinstance(outcome, ProjectAnalyzerResult):
                run.results.append(outcome)
            else:
                run.issues[self._issue_key(path)] = outcome

        log.info(
            "orchestrator.done",
            projects=len(run.results),
            issues=len(run.issues),
            elapsed=round(time.monotonic() - t0, 2),
        )
        return run

    def analyze_sync(
        self, definition_files: dict[str, list[Path]] | None = None
    ) -> AnalyzerRun:
        return asyncio.run(self.analyze(definition_files))

    def _failure(
        self,
        manager_name: str,
        definition_file: Path,
        exc: Exception,
        manager: PackageManager | None,
    ) -> str:
        """Log a failed resolution and return its issue message.

        Called from an ``except`` block so unexpected errors keep their traceback.
        """
        if isinstance(exc, asyncio.TimeoutError):
            message = f"Resolution timed out after {self.config.resolution_timeout} seconds"
        elif isinstance(exc, AnalyzerError):
            message = str(exc)
        else:
            log.exception(
                "orchestrator.unexpected_error",
                manager=manager_name,
                definition_file=str(definition_file),
            )
            message = f"{type(exc).__name__}: {exc}"

        progress = manager.progress if manager is not None else None
        log.warning(
            "orchestrator.resolution_failed",
            manager=manager_name,
            definition_file=str(definition_file),
            error=message,
            progress=progress.get_summary() if progress is not None else None,
        )
        return message

    def _issue_key(self, definition_file: Path) -> str:
        resolved = definition_file.resolve()
        try:
            return resolved.relative_to(self.analysis_root).as_posix()
        except ValueError:
            return resolved.as_posix()
