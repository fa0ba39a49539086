"""Protocol definitions for core abstractions.

This module defines abstract interfaces (Protocols) for the services the
orchestrator depends on. Designing to interfaces enables:
- Loose coupling between components
- Easy substitution of test doubles (a scripted fake runner in particular)
- Clear contracts for implementations

All concrete implementations satisfy these protocols structurally (duck typing).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from rust_gnu_installer.types import Detection, DownloadTask, InstallStep, RunState

if TYPE_CHECKING:
    from rust_gnu_installer.capabilities import Capability, Probe
    from rust_gnu_installer.runner import CommandResult


@runtime_checkable
class ProcessRunner(Protocol):
    """Protocol for running external commands."""

    def run(
        self,
        args: Sequence[str | Path],
        timeout: float | None = None,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run a command to completion and return its structured result.

        Raises:
            ProcessSpawnError: If the program cannot be started.
            PermissionDeniedError: If the program requires elevation.
            ProcessTimeoutError: If the timeout elapses.
        """
        ...


@runtime_checkable
class Fetcher(Protocol):
    """Protocol for downloading remote artifacts."""

    def fetch(self, task: DownloadTask) -> Path:
        """Download task.url to task.destination atomically.

        Returns:
            The destination path.

        Raises:
            FetchError: On network or integrity failure.
        """
        ...


@runtime_checkable
class CapabilityProber(Protocol):
    """Protocol for read-only capability detection."""

    def detect(self, capability: Capability) -> Detection:
        """Report whether a capability currently holds. Never raises."""
        ...

    def locate(self, probe: Probe) -> Path | None:
        """Return the first functional executable for an executable probe."""
        ...

    def rustc_version(self, rustc: Path) -> str | None:
        """Return verbose version output of an existing compiler, if any."""
        ...


@runtime_checkable
class CapabilityInstaller(Protocol):
    """Protocol for idempotent capability installers."""

    def ensure(self, capability: Capability) -> InstallStep:
        """Make the capability hold, skipping work when it already does."""
        ...


@runtime_checkable
class FileSystem(Protocol):
    """Protocol for the filesystem operations the writer needs."""

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None:
        """Create a directory."""
        ...

    def atomic_write_text(self, path: Path, content: str) -> None:
        """Write content so readers see either the old or the new file."""
        ...


@runtime_checkable
class RunObserver(Protocol):
    """Receives orchestrator progress as it happens."""

    def on_state(self, state: RunState) -> None:
        """Called on every state transition."""
        ...

    def on_step(self, step: InstallStep) -> None:
        """Called when an install step is finalized."""
        ...

    def on_warning(self, message: str) -> None:
        """Called when a non-fatal warning is recorded."""
        ...

    def on_info(self, message: str) -> None:
        """Called for informational progress lines."""
        ...


__all__ = [
    "CapabilityInstaller",
    "CapabilityProber",
    "Fetcher",
    "FileSystem",
    "ProcessRunner",
    "RunObserver",
]
