"""MinGW-w64 package installer (pacman inside MSYS2)."""

from __future__ import annotations

from rust_gnu_installer.capabilities import Capability, PackageProbe, bash_command
from rust_gnu_installer.errors import ProvisionError
from rust_gnu_installer.installers.base import BaseInstaller


class PackageInstaller(BaseInstaller):
    """Installs one pacman package per call, judged by exit code."""

    def install(self, capability: Capability) -> None:
        probe = self._probe_of(capability, PackageProbe)
        if not probe.bash.is_file():
            raise ProvisionError(f"MSYS2 bash not found at {probe.bash}; install MSYS2 first")
        self.run_checked(
            bash_command(probe.bash, f"pacman -S --noconfirm --needed {probe.package}"),
            f"pacman install of {probe.package}",
        )
