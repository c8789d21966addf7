"""
Command Execution for cysubmit

Narrow "run and capture combined output, return exit status" interface used
for the test runner and the openssl cipher tool. Tests substitute a fake
implementation so no real binaries are launched.
"""

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

from .errors import MissingDependency

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """
    Container for the result of an external command.
    """
    command: List[str]
    cwd: str
    returncode: int
    log_path: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def as_text_block(self) -> str:
        """Format the invocation for diagnostics (no output, it lives in the log)."""
        lines = [f"$ {shlex.join(self.command)}", f"(cwd: {self.cwd})"]
        if self.log_path:
            lines.append(f"(output: {self.log_path})")
        lines.append(f"Return code: {self.returncode}")
        return "\n".join(lines)


class CommandRunner(Protocol):
    """Protocol for command execution backends."""

    def run(
        self,
        command: Sequence[str],
        cwd: Optional[Path] = None,
        log_path: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        """Run command, send stdout+stderr to log_path, return its status."""
        ...


class SubprocessRunner:
    """
    Blocking subprocess execution with interleaved output capture.

    stdout and stderr both go to the same file handle so the log keeps the
    order in which the child wrote them. Without a log_path the child's
    output is inherited from this process.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(
        self,
        command: Sequence[str],
        cwd: Optional[Path] = None,
        log_path: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        cmd = [str(part) for part in command]
        workdir = str(cwd) if cwd else os.getcwd()
        logger.debug(f"Executing: {shlex.join(cmd)} (cwd: {workdir})")

        if log_path is not None:
            with open(log_path, "wb") as out:
                returncode = self._call(cmd, workdir, out, env)
        else:
            returncode = self._call(cmd, workdir, None, env)

        result = CommandResult(cmd, workdir, returncode, str(log_path) if log_path else None)
        logger.debug(result.as_text_block())
        return result

    def _call(self, cmd: List[str], cwd: str, out, env: Optional[Dict[str, str]]) -> int:
        try:
            cp = subprocess.run(
                cmd,
                cwd=cwd,
                stdout=out,
                stderr=subprocess.STDOUT if out is not None else None,
                env=env,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise MissingDependency(f"Required command '{cmd[0]}' is not available on PATH") from e
        except subprocess.TimeoutExpired:
            logger.error(f"Command timed out after {self.timeout}s: {cmd[0]}")
            return 124
        return cp.returncode


def require_command(name: str) -> str:
    """
    Ensure an external command is on PATH.

    Args:
        name: Command name

    Returns:
        Absolute path of the command

    Raises:
        MissingDependency: If the command cannot be found
    """
    path = shutil.which(name)
    if not path:
        raise MissingDependency(f"Required command '{name}' is not available on PATH")
    return path
