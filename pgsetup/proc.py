from __future__ import annotations

from dataclasses import dataclass
import subprocess
from typing import Callable

CommandRunner = Callable[[list[str]], subprocess.CompletedProcess[str]]


@dataclass(frozen=True)
class CommandResult:
    command: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def as_log_fields(self) -> str:
        detail = (self.stderr or self.stdout).strip()
        if len(detail) > 400:
            detail = f"{detail[:397]}..."
        return f"returncode={self.returncode} command={' '.join(self.command)!r} detail={detail!r}"


def default_runner(command: list[str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(command, capture_output=True, text=True, check=False)


def execute(command: list[str], *, runner: CommandRunner | None = None) -> CommandResult:
    """Run a command and report its exit status without interpreting its output."""
    active_runner = runner or default_runner
    try:
        completed = active_runner(command)
    except OSError as exc:
        # Missing binary or exec failure; reported like any other non-zero exit.
        return CommandResult(command=command, returncode=127, stdout="", stderr=str(exc))
    return CommandResult(
        command=command,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )

