"""External tool invocation — blocking subprocess calls with captured output."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

import structlog

from z_dep_analyzer.exceptions import ToolInvocationFailed

log = structlog.get_logger(__name__)

COMMAND_NOT_FOUND = 127


@dataclass(frozen=True)
class ProcessResult:
    """Captured result of one finished command."""

    command_line: tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessRunner:
    """Run commands to completion. No timeout is applied at this layer."""

    def run(
        self,
        working_dir: Path,
        command: str,
        *args: str,
        env: dict[str, str] | None = None,
    ) -> ProcessResult:
        """Run *command* with *args* in *working_dir*.

        A non-zero exit status is returned, not raised; callers decide whether
        it is fatal. A missing executable raises :class:`ToolInvocationFailed`
        with exit code 127.
        """
        cmd = [command, *args]
        log.debug("process.run", command=" ".join(cmd), cwd=str(working_dir))
        try:
            proc = subprocess.run(
                cmd,
                cwd=working_dir,
                env=env,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ToolInvocationFailed(cmd, COMMAND_NOT_FOUND, str(exc)) from exc

        return ProcessResult(
            command_line=tuple(cmd),
            exit_code=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
        )
