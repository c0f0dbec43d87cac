"""Test doubles for z_dep_analyzer — use in unit / integration tests.

Usage::

    from z_dep_analyzer.testing import FakeProcessRunner

    runner = FakeProcessRunner()
    runner.add("cargo", "metadata", "--format-version=1", stdout=json.dumps(metadata))
    runner.add("npm", "install", side_effect=lambda cwd: (cwd / "node_modules").mkdir())

    manager = Cargo(tmp_path, runner=runner)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from z_dep_analyzer.exceptions import ToolInvocationFailed
from z_dep_analyzer.process import COMMAND_NOT_FOUND, ProcessResult, ProcessRunner


@dataclass
class FakeResponse:
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    # Called with the working directory before the result is returned,
    # e.g. to populate node_modules the way an install would.
    side_effect: Callable[[Path], None] | None = None


@dataclass(frozen=True)
class RecordedCall:
    working_dir: Path
    command_line: tuple[str, ...]


class FakeProcessRunner(ProcessRunner):
    """Drop-in replacement for ProcessRunner that replays canned responses.

    Responses are matched on the exact command line. Unknown commands behave
    like a missing executable and raise :class:`ToolInvocationFailed` with
    exit code 127.
    """

    def __init__(self) -> None:
        self._responses: dict[tuple[str, ...], FakeResponse] = {}
        self._calls: list[RecordedCall] = []

    @property
    def calls(self) -> list[RecordedCall]:
        """Commands received — useful for assertions in tests."""
        return self._calls

    def add(
        self,
        command: str,
        *args: str,
        exit_code: int = 0,
        stdout: str = "",
        stderr: str = "",
        side_effect: Callable[[Path], None] | None = None,
    ) -> None:
        self._responses[(command, *args)] = FakeResponse(exit_code, stdout, stderr, side_effect)

    def commands(self) -> list[tuple[str, ...]]:
        return [c.command_line for c in self._calls]

    def run(
        self,
        working_dir: Path,
        command: str,
        *args: str,
        env: dict[str, str] | None = None,
    ) -> ProcessResult:
        cmd = (command, *args)
        self._calls.append(RecordedCall(working_dir, cmd))
        response = self._responses.get(cmd)
        if response is None:
            raise ToolInvocationFailed(
                cmd, COMMAND_NOT_FOUND, f"[Errno 2] No such file or directory: '{command}'"
            )
        if response.side_effect is not None:
            response.side_effect(working_dir)
        return ProcessResult(cmd, response.exit_code, response.stdout, response.stderr)
