"""Read-only detection of capabilities."""

from __future__ import annotations

import logging
from pathlib import Path

from rust_gnu_installer.capabilities import (
    Capability,
    ExecutableProbe,
    OverrideProbe,
    PackageProbe,
    Probe,
    TargetProbe,
    bash_command,
)
from rust_gnu_installer.errors import ProvisionError
from rust_gnu_installer.protocols import ProcessRunner
from rust_gnu_installer.types import Detection

logger = logging.getLogger(__name__)


class EnvironmentProber:
    """Decides whether each capability currently holds.

    Presence of a file is never enough: every probe runs a query command
    through the ProcessRunner. A probe that cannot run reports ABSENT, so
    the orchestrator reinstalls instead of halting on an ambiguous state.
    """

    def __init__(self, runner: ProcessRunner, timeout: float = 30.0) -> None:
        self.runner = runner
        self.timeout = timeout

    def detect(self, capability: Capability) -> Detection:
        """Report whether a capability holds. Never raises.

        Args:
            capability: Capability to probe.

        Returns:
            Detection.PRESENT or Detection.ABSENT.
        """
        try:
            present = self._check(capability.probe)
        except ProvisionError as e:
            logger.debug("Probe for %s failed, treating as absent: %s", capability.id, e)
            present = False
        logger.debug("Capability %s: %s", capability.id, "present" if present else "absent")
        return Detection.PRESENT if present else Detection.ABSENT

    def locate(self, probe: Probe) -> Path | None:
        """Return the first functional candidate of an executable probe.

        Args:
            probe: An ExecutableProbe.

        Returns:
            Path of the working executable, or None.
        """
        if not isinstance(probe, ExecutableProbe):
            raise TypeError(f"locate() needs an ExecutableProbe, got {type(probe).__name__}")

        for candidate in probe.candidates:
            if not candidate.is_file():
                continue
            try:
                result = self.runner.run([candidate, *probe.version_args], timeout=self.timeout)
            except ProvisionError as e:
                logger.debug("Version query for %s failed: %s", candidate, e)
                continue
            if result.ok:
                return candidate
            logger.debug("%s is present but not functional (exit %s)", candidate, result.returncode)
        return None

    def rustc_version(self, rustc: Path) -> str | None:
        """Return `rustc --version --verbose` output of an existing compiler."""
        if not rustc.is_file():
            return None
        try:
            result = self.runner.run([rustc, "--version", "--verbose"], timeout=self.timeout)
        except ProvisionError:
            return None
        return result.stdout if result.ok and result.stdout else None

    def _check(self, probe: Probe) -> bool:
        if isinstance(probe, ExecutableProbe):
            return self.locate(probe) is not None
        if isinstance(probe, PackageProbe):
            return self._package_installed(probe)
        if isinstance(probe, TargetProbe):
            return self._target_installed(probe)
        if isinstance(probe, OverrideProbe):
            return self._override_active(probe)
        raise TypeError(f"Unknown probe type: {type(probe).__name__}")

    def _package_installed(self, probe: PackageProbe) -> bool:
        if not probe.bash.is_file():
            return False
        query = "pacman -Qg" if probe.group else "pacman -Q"
        result = self.runner.run(
            bash_command(probe.bash, f"{query} {probe.package}"), timeout=self.timeout
        )
        return result.ok

    def _target_installed(self, probe: TargetProbe) -> bool:
        if not probe.rustup.is_file():
            return False
        result = self.runner.run(
            [probe.rustup, "target", "list", "--installed"], timeout=self.timeout
        )
        return result.ok and probe.target in result.stdout.split()

    def _override_active(self, probe: OverrideProbe) -> bool:
        if not probe.rustup.is_file():
            return False
        result = self.runner.run(
            [probe.rustup, "show", "active-toolchain"],
            timeout=self.timeout,
            cwd=probe.directory,
        )
        # e.g. "stable-x86_64-pc-windows-gnu (directory override for '...')"
        tokens = result.stdout.split()
        return result.ok and bool(tokens) and tokens[0] == probe.toolchain
