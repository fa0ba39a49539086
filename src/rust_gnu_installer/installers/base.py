"""Base installer implementation with shared behavior.

Every installer follows the same algorithm; they vary only in how the
capability is actually installed.

Pattern: Template Method - `ensure()` defines the skeleton (detect, install,
re-detect), subclasses provide `install()`.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import TypeVar

from rust_gnu_installer.capabilities import Capability
from rust_gnu_installer.errors import CommandFailedError, ProvisionError, first_line
from rust_gnu_installer.protocols import CapabilityProber, Fetcher, ProcessRunner
from rust_gnu_installer.runner import CommandResult
from rust_gnu_installer.types import Detection, DownloadTask, InstallStep, StepOutcome

logger = logging.getLogger(__name__)

ProbeT = TypeVar("ProbeT")


class BaseInstaller(ABC):
    """Base class for capability installers.

    Subclasses implement `install()`, which raises ProvisionError on
    failure. `ensure()` turns every outcome into an InstallStep.
    """

    def __init__(
        self,
        prober: CapabilityProber,
        runner: ProcessRunner,
        timeout: float = 600.0,
    ) -> None:
        """Initialize installer with required dependencies.

        Args:
            prober: Capability detection.
            runner: External command execution.
            timeout: Timeout for install commands, in seconds.
        """
        self.prober = prober
        self.runner = runner
        self.timeout = timeout

    def ensure(self, capability: Capability) -> InstallStep:
        """Make a capability hold.

        Skips when already present. After installing, detects again: a
        zero exit code alone is not trusted.

        Args:
            capability: Capability to ensure.

        Returns:
            InstallStep describing the outcome.
        """
        started = time.monotonic()
        if self.prober.detect(capability) is Detection.PRESENT:
            return self._step(capability, StepOutcome.SKIPPED, started)

        logger.info("Installing %s", capability.label)
        try:
            self.install(capability)
        except ProvisionError as e:
            logger.warning("Installing %s failed: %s", capability.id, e)
            return self._step(capability, StepOutcome.FAILED, started, error=str(e))
        except Exception as e:
            logger.exception("Installation failed for %s", capability.id)
            return self._step(
                capability, StepOutcome.FAILED, started, error=f"Unexpected error: {e}"
            )

        if self.prober.detect(capability) is not Detection.PRESENT:
            return self._step(
                capability,
                StepOutcome.FAILED,
                started,
                error=(
                    f"Post-install verification failed: {capability.label} "
                    "is still not detected after the install command succeeded"
                ),
            )
        return self._step(capability, StepOutcome.INSTALLED, started)

    @abstractmethod
    def install(self, capability: Capability) -> None:
        """Install the capability.

        Raises:
            ProvisionError: If installation fails.
        """
        ...

    def run_checked(
        self,
        args: Sequence[str | Path],
        description: str,
        timeout: float | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        """Run a command and raise CommandFailedError on non-zero exit."""
        result = self.runner.run(args, timeout=timeout or self.timeout, cwd=cwd)
        if not result.ok:
            raise CommandFailedError(
                description, result.returncode, first_line(result.stderr or result.stdout)
            )
        return result

    def _probe_of(self, capability: Capability, kind: type[ProbeT]) -> ProbeT:
        probe = capability.probe
        if not isinstance(probe, kind):
            raise TypeError(
                f"{type(self).__name__} cannot install {capability.id}: "
                f"expected {kind.__name__}, got {type(probe).__name__}"
            )
        return probe

    def _step(
        self,
        capability: Capability,
        outcome: StepOutcome,
        started: float,
        error: str | None = None,
    ) -> InstallStep:
        return InstallStep(
            capability_id=capability.id,
            label=capability.label,
            criticality=capability.criticality,
            outcome=outcome,
            duration=time.monotonic() - started,
            error=error,
        )


class DownloadingInstaller(BaseInstaller):
    """Installer whose artifact is a downloaded installer binary."""

    def __init__(
        self,
        prober: CapabilityProber,
        runner: ProcessRunner,
        fetcher: Fetcher,
        download_dir: Path,
        retries: int = 3,
        timeout: float = 1800.0,
    ) -> None:
        super().__init__(prober, runner, timeout=timeout)
        self.fetcher = fetcher
        self.download_dir = download_dir
        self.retries = retries

    def download(self, url: str, filename: str, sha256: str | None = None) -> Path:
        """Fetch an installer binary into the download directory.

        Raises:
            FetchError: If the download fails.
        """
        task = DownloadTask(
            url=url,
            destination=self.download_dir / filename,
            sha256=sha256,
            retries=self.retries,
        )
        logger.info("Downloading %s", url)
        return self.fetcher.fetch(task)
