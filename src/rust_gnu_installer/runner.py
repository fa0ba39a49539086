"""Blocking external command execution with timeouts."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from rust_gnu_installer.errors import (
    PermissionDeniedError,
    ProcessSpawnError,
    ProcessTimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# Windows ERROR_ELEVATION_REQUIRED, raised when an installer demands UAC
ERROR_ELEVATION_REQUIRED = 740


@dataclass(frozen=True)
class CommandResult:
    """Structured outcome of a finished command.

    Attributes:
        args: The argument vector that was executed.
        returncode: Exit status of the child.
        stdout: Captured standard output (decoded, lossy).
        stderr: Captured standard error (decoded, lossy).
        duration: Wall-clock seconds.
    """

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class SubprocessRunner:
    """Runs commands with `subprocess.run`.

    Satisfies the ProcessRunner protocol structurally. A timeout kills the
    child and raises ProcessTimeoutError; failure to start the child raises
    ProcessSpawnError (or PermissionDeniedError when elevation is required).
    """

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT) -> None:
        self.default_timeout = default_timeout

    def run(
        self,
        args: Sequence[str | Path],
        timeout: float | None = None,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run a command to completion.

        Args:
            args: Program and arguments. No shell is involved.
            timeout: Seconds before the child is killed. Defaults to default_timeout.
            cwd: Working directory for the child.
            env: Variables merged over the current environment.

        Returns:
            CommandResult for the finished child.

        Raises:
            ProcessSpawnError: If the program cannot be started.
            PermissionDeniedError: If the program requires elevation.
            ProcessTimeoutError: If the timeout elapses.
        """
        argv = tuple(str(arg) for arg in args)
        limit = self.default_timeout if timeout is None else timeout
        child_env = None
        if env is not None:
            child_env = {**os.environ, **env}

        logger.debug("Running command: %s (timeout %ss)", argv, limit)
        started = time.monotonic()
        try:
            completed = subprocess.run(
                argv,
                capture_output=True,
                timeout=limit,
                cwd=cwd,
                env=child_env,
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired as e:
            logger.error("Command timed out after %s seconds: %s", limit, argv)
            raise ProcessTimeoutError(
                f"{argv[0]} timed out after {limit} seconds and was terminated"
            ) from e
        except PermissionError as e:
            raise PermissionDeniedError(f"Permission denied running {argv[0]}") from e
        except OSError as e:
            if getattr(e, "winerror", None) == ERROR_ELEVATION_REQUIRED:
                raise PermissionDeniedError(f"{argv[0]} requires elevation") from e
            raise ProcessSpawnError(f"Could not start {argv[0]}: {e}") from e

        result = CommandResult(
            args=argv,
            returncode=completed.returncode,
            stdout=completed.stdout.decode(errors="replace").strip(),
            stderr=completed.stderr.decode(errors="replace").strip(),
            duration=time.monotonic() - started,
        )
        if result.stderr:
            logger.debug("stderr: %s", result.stderr)
        return result
