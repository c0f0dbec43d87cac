"""Phase tracking for a single definition file's resolution."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import structlog

log = structlog.get_logger(__name__)


@dataclass
class PhaseProgress:
    phase: str
    status: str = "pending"  # "pending" | "running" | "completed" | "failed"
    start_time: float | None = None
    end_time: float | None = None
    detail: str = ""
    error: str | None = None

    @property
    def duration(self) -> float | None:
        if self.start_time is not None and self.end_time is not None:
            return round(self.end_time - self.start_time, 2)
        return None


class ResolutionProgress:
    """Record the phases of one resolution, e.g. for NPM::

        installing -> listing:production -> listing:development -> cleanup -> done

    Only one phase runs at a time; starting a phase completes the running one.
    :attr:`state` is ``"idle"`` before the first phase and ``"done"`` or
    ``"failed"`` after :meth:`finish` / :meth:`fail`.
    """

    def __init__(self, definition_file: str) -> None:
        self.definition_file = definition_file
        self.phases: list[PhaseProgress] = []
        self.state = "idle"

    @property
    def current(self) -> PhaseProgress | None:
        if self.phases and self.phases[-1].status == "running":
            return self.phases[-1]
        return None

    def start_phase(self, phase: str) -> None:
        if self.state in ("done", "failed"):
            raise RuntimeError(f"Resolution of {self.definition_file} already {self.state}")
        self._close_current("completed")
        p = PhaseProgress(phase=phase, status="running", start_time=time.monotonic())
        self.phases.append(p)
        self.state = phase
        self._log_phase(p)

    def finish(self, detail: str = "") -> None:
        current = self.current
        if current is not None:
            current.detail = detail
        self._close_current("completed")
        self.state = "done"

    def fail(self, error: str) -> None:
        current = self.current
        if current is not None:
            current.error = error
        self._close_current("failed")
        self.state = "failed"

    def get_summary(self) -> dict[str, Any]:
        total_duration = sum(p.duration or 0 for p in self.phases)
        return {
            "definition_file": self.definition_file,
            "state": self.state,
            "phases": [
                {
                    "phase": p.phase,
                    "status": p.status,
                    "duration": p.duration,
                    "detail": p.detail,
                    "error": p.error,
                }
                for p in self.phases
            ],
            "total_duration": round(total_duration, 2),
        }

    def _close_current(self, status: str) -> None:
        current = self.current
        if current is None:
            return
        current.status = status
        current.end_time = time.monotonic()
        self._log_phase(current)

    def _log_phase(self, p: PhaseProgress) -> None:
        log.debug(
            "resolution.phase",
            definition_file=self.definition_file,
            phase=p.phase,
            status=p.status,
            duration=p.duration,
        )
