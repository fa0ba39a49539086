"""rustup target and toolchain override installers."""

from __future__ import annotations

from rust_gnu_installer.capabilities import Capability, OverrideProbe, TargetProbe
from rust_gnu_installer.installers.base import BaseInstaller


class TargetInstaller(BaseInstaller):
    """Adds a compilation target with `rustup target add`."""

    def install(self, capability: Capability) -> None:
        probe = self._probe_of(capability, TargetProbe)
        self.run_checked(
            [probe.rustup, "target", "add", probe.target],
            f"rustup target add {probe.target}",
        )


class OverrideInstaller(BaseInstaller):
    """Pins the GNU toolchain for the project directory."""

    def install(self, capability: Capability) -> None:
        probe = self._probe_of(capability, OverrideProbe)
        self.run_checked(
            [probe.rustup, "override", "set", probe.toolchain, "--path", str(probe.directory)],
            f"rustup override set {probe.toolchain}",
        )
