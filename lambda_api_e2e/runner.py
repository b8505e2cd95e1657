"""Command execution helpers for terraform and docker invocations."""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Sequence

from lambda_api_e2e.logging import redact_cmd, safe_print


@dataclass(frozen=True)
class CompletedCommand:
    """Normalized command execution result."""

    cmd: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""


class RunnerError(RuntimeError):
    """Raised when a command execution fails."""


class CommandRunner:
    """Thin subprocess wrapper with prefixed, redacted output."""

    def __init__(self, *, printer: Callable[[str], None] | None = None) -> None:
        self._printer = printer or safe_print

    def format_cmd(self, cmd: Sequence[str]) -> str:
        return "$ " + " ".join(redact_cmd(cmd))

    def emit(self, message: str) -> None:
        self._printer(message)

    def which(self, command: str) -> str | None:
        resolved = shutil.which(command)
        if resolved is None:
            return None
        return str(Path(resolved).resolve())

    def require_command(self, command: str) -> str:
        resolved = self.which(command)
        if resolved is None:
            raise RunnerError(f"required command not found: {command}")
        return resolved

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture_output: bool = False,
        check: bool = True,
        stream_output: bool = False,
        input_text: str | None = None,
    ) -> CompletedCommand:
        rendered = self.format_cmd(cmd)
        tokens = [str(token) for token in cmd]
        run_env = os.environ.copy()
        if env:
            run_env.update({str(key): str(value) for key, value in env.items()})

        if stream_output and input_text is None:
            self.emit(rendered)
            proc = subprocess.Popen(
                tokens,
                cwd=str(cwd) if cwd else None,
                env=run_env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
                errors="replace",
            )
            assert proc.stdout is not None
            captured: list[str] = []
            for raw_line in proc.stdout:
                line = raw_line.rstrip("\n")
                captured.append(line)
                self.emit(line)
            rc = proc.wait()
            stdout = "\n".join(captured)
            if check and rc != 0:
                raise RunnerError(_failure_message(rc, rendered, stdout))
            return CompletedCommand(tuple(tokens), rc, stdout, "")

        if stream_output:
            self.emit(rendered)
        completed = subprocess.run(
            tokens,
            cwd=str(cwd) if cwd else None,
            env=run_env,
            input=input_text,
            stdin=subprocess.DEVNULL if input_text is None else None,
            stdout=subprocess.PIPE if capture_output or stream_output else None,
            stderr=subprocess.PIPE if capture_output or stream_output else None,
            text=True,
            check=False,
            errors="replace",
        )
        stdout = completed.stdout or ""
        stderr = completed.stderr or ""
        if stream_output:
            for line in (stdout + stderr).splitlines():
                self.emit(line)

        if check and completed.returncode != 0:
            detail = "\n".join(part for part in (stdout.strip(), stderr.strip()) if part)
            raise RunnerError(_failure_message(completed.returncode, rendered, detail))

        return CompletedCommand(tuple(tokens), completed.returncode, stdout, stderr)


def _failure_message(returncode: int, rendered: str, detail: str) -> str:
    detail = detail.strip()
    if detail:
        return f"command failed with exit code {returncode}: {rendered}\n{detail}"
    return f"command failed with exit code {returncode}: {rendered}"
