"""MSYS2 (Unix environment) installer."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from rust_gnu_installer.capabilities import Capability, ExecutableProbe, bash_command, bash_path
from rust_gnu_installer.errors import CommandFailedError, ProvisionError, first_line
from rust_gnu_installer.installers.base import DownloadingInstaller
from rust_gnu_installer.protocols import CapabilityProber, Fetcher, ProcessRunner

logger = logging.getLogger(__name__)

INSTALLER_FILENAME = "msys2-installer.exe"

# First-run setup, executed in order inside a login shell
INIT_COMMANDS: tuple[tuple[str, str], ...] = (
    ("Initializing keyring", "pacman-key --init"),
    ("Populating keyring", "pacman-key --populate msys2"),
    ("Updating package database", "pacman -Sy --noconfirm"),
    ("Updating system packages", "pacman -Syu --noconfirm --disable-download-timeout"),
)

NOTHING_TO_DO_MARKERS = ("there is nothing to do", "nothing to do")


class Msys2Installer(DownloadingInstaller):
    """Downloads and silently runs the MSYS2 installer, then initializes pacman."""

    def __init__(
        self,
        prober: CapabilityProber,
        runner: ProcessRunner,
        fetcher: Fetcher,
        download_dir: Path,
        install_root: Path,
        url: str,
        sha256: str | None = None,
        retries: int = 3,
        timeout: float = 1800.0,
        command_timeout: float = 600.0,
        settle_timeout: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(prober, runner, fetcher, download_dir, retries=retries, timeout=timeout)
        self.install_root = install_root
        self.url = url
        self.sha256 = sha256
        self.command_timeout = command_timeout
        self.settle_timeout = settle_timeout
        self._sleep = sleep

    def install(self, capability: Capability) -> None:
        self._probe_of(capability, ExecutableProbe)

        installer = self.download(self.url, INSTALLER_FILENAME, self.sha256)
        try:
            self.run_checked(
                [
                    installer,
                    "install",
                    "--confirm-command",
                    "--accept-messages",
                    "--root",
                    str(self.install_root),
                ],
                "MSYS2 installer",
            )
        finally:
            installer.unlink(missing_ok=True)

        bash = self._wait_for_bash()
        self._initialize(bash)

    def _wait_for_bash(self) -> Path:
        """Poll until the installer's files have settled on disk."""
        bash = bash_path(self.install_root)
        waited = 0.0
        while not bash.is_file():
            if waited >= self.settle_timeout:
                raise ProvisionError(
                    f"MSYS2 bash not found at {bash} after installation; "
                    "the installation may be incomplete"
                )
            self._sleep(1.0)
            waited += 1.0
        return bash

    def _initialize(self, bash: Path) -> None:
        for description, script in INIT_COMMANDS:
            logger.info("MSYS2: %s (%s)", description, script)
            result = self.runner.run(bash_command(bash, script), timeout=self.command_timeout)
            if result.ok:
                continue

            combined = result.output.lower()
            if any(marker in combined for marker in NOTHING_TO_DO_MARKERS):
                logger.info("MSYS2: %s - no updates needed", description)
                continue

            stderr = result.stderr.lower()
            if "warning" in stderr and "error" not in stderr:
                logger.warning(
                    "MSYS2: %s reported a warning (continuing): %s",
                    description,
                    first_line(result.stderr),
                )
                continue

            raise CommandFailedError(
                f"MSYS2 initialization step '{description}'",
                result.returncode,
                first_line(result.stderr or result.stdout),
            )
