"""Capability installer implementations."""

from __future__ import annotations

from dataclasses import dataclass

from rust_gnu_installer.protocols import (
    CapabilityInstaller,
    CapabilityProber,
    Fetcher,
    ProcessRunner,
)
from rust_gnu_installer.settings import Settings

from .base import BaseInstaller, DownloadingInstaller
from .msys2 import Msys2Installer
from .packages import PackageInstaller
from .rustup import RustupInstaller
from .target import OverrideInstaller, TargetInstaller


@dataclass
class InstallerSet:
    """One installer per capability kind, in orchestration order."""

    unix_env: CapabilityInstaller
    packages: CapabilityInstaller
    toolchain_manager: CapabilityInstaller
    target: CapabilityInstaller
    toolchain_override: CapabilityInstaller


def create_installers(
    settings: Settings,
    prober: CapabilityProber,
    runner: ProcessRunner,
    fetcher: Fetcher,
) -> InstallerSet:
    """Factory wiring every installer from settings.

    Args:
        settings: Run settings (roots, URLs, timeouts).
        prober: Shared capability prober.
        runner: Shared process runner.
        fetcher: Shared downloader.

    Returns:
        Configured InstallerSet.
    """
    return InstallerSet(
        unix_env=Msys2Installer(
            prober,
            runner,
            fetcher,
            download_dir=settings.download_dir,
            install_root=settings.msys2_root,
            url=settings.msys2_installer_url,
            sha256=settings.msys2_installer_sha256,
            retries=settings.download_retries,
            timeout=settings.install_timeout,
            command_timeout=settings.command_timeout,
            settle_timeout=settings.msys2_settle_timeout,
        ),
        packages=PackageInstaller(prober, runner, timeout=settings.command_timeout),
        toolchain_manager=RustupInstaller(
            prober,
            runner,
            fetcher,
            download_dir=settings.download_dir,
            url=settings.rustup_installer_url,
            default_host=settings.target,
            channel=settings.toolchain_channel,
            sha256=settings.rustup_installer_sha256,
            retries=settings.download_retries,
            timeout=settings.install_timeout,
        ),
        target=TargetInstaller(prober, runner, timeout=settings.command_timeout),
        toolchain_override=OverrideInstaller(prober, runner, timeout=settings.command_timeout),
    )


__all__ = [
    "BaseInstaller",
    "DownloadingInstaller",
    "InstallerSet",
    "Msys2Installer",
    "OverrideInstaller",
    "PackageInstaller",
    "RustupInstaller",
    "TargetInstaller",
    "create_installers",
]
