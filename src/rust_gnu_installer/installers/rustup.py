"""rustup (toolchain manager) installer."""

from __future__ import annotations

from pathlib import Path

from rust_gnu_installer.capabilities import Capability, ExecutableProbe
from rust_gnu_installer.installers.base import DownloadingInstaller
from rust_gnu_installer.protocols import CapabilityProber, Fetcher, ProcessRunner

INSTALLER_FILENAME = "rustup-init.exe"


class RustupInstaller(DownloadingInstaller):
    """Downloads rustup-init and runs it unattended with the GNU host as default."""

    def __init__(
        self,
        prober: CapabilityProber,
        runner: ProcessRunner,
        fetcher: Fetcher,
        download_dir: Path,
        url: str,
        default_host: str,
        channel: str = "stable",
        sha256: str | None = None,
        retries: int = 3,
        timeout: float = 1800.0,
    ) -> None:
        super().__init__(prober, runner, fetcher, download_dir, retries=retries, timeout=timeout)
        self.url = url
        self.default_host = default_host
        self.channel = channel
        self.sha256 = sha256

    def install(self, capability: Capability) -> None:
        self._probe_of(capability, ExecutableProbe)

        installer = self.download(self.url, INSTALLER_FILENAME, self.sha256)
        try:
            self.run_checked(
                [
                    installer,
                    "--default-host",
                    self.default_host,
                    "--default-toolchain",
                    self.channel,
                    "--profile",
                    "default",
                    "-y",
                ],
                "rustup-init",
            )
        finally:
            installer.unlink(missing_ok=True)
