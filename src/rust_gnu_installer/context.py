"""Application context for dependency injection.

This module separates object creation from object use, enabling testability
and reducing coupling in the CLI.

Dependencies are typed using Protocols (abstract interfaces) rather than
concrete implementations, so test doubles such as a scripted process runner
can be injected without inheritance.
"""

from __future__ import annotations

from dataclasses import dataclass

from rust_gnu_installer.config_writer import ConfigWriter
from rust_gnu_installer.installers import InstallerSet
from rust_gnu_installer.protocols import CapabilityProber, Fetcher, ProcessRunner
from rust_gnu_installer.settings import Settings
from rust_gnu_installer.verifier import Verifier


@dataclass
class AppContext:
    """Container for application dependencies.

    Provides a single injection point for every service the orchestrator uses.
    """

    settings: Settings
    runner: ProcessRunner
    fetcher: Fetcher
    prober: CapabilityProber
    installers: InstallerSet
    config_writer: ConfigWriter
    verifier: Verifier


def create_context(
    settings: Settings,
    runner: ProcessRunner | None = None,
    fetcher: Fetcher | None = None,
) -> AppContext:
    """Factory for application dependencies.

    Creates all services with proper wiring. Use this in production code.
    Tests may pass a fake runner and fetcher; everything else is built on top
    of them.

    Args:
        settings: Run settings.
        runner: Override the subprocess runner.
        fetcher: Override the HTTP fetcher.

    Returns:
        Configured AppContext with all dependencies.
    """
    from rust_gnu_installer.capabilities import rustc_path
    from rust_gnu_installer.fetcher import HttpFetcher
    from rust_gnu_installer.filesystem import RealFileSystem
    from rust_gnu_installer.installers import create_installers
    from rust_gnu_installer.prober import EnvironmentProber
    from rust_gnu_installer.runner import SubprocessRunner

    runner = runner or SubprocessRunner(default_timeout=settings.command_timeout)
    fetcher = fetcher or HttpFetcher(
        timeout=settings.http_timeout, backoff=settings.download_backoff
    )
    prober = EnvironmentProber(runner, timeout=settings.probe_timeout)

    return AppContext(
        settings=settings,
        runner=runner,
        fetcher=fetcher,
        prober=prober,
        installers=create_installers(settings, prober, runner, fetcher),
        config_writer=ConfigWriter(RealFileSystem()),
        verifier=Verifier(runner, rustc_path(settings), timeout=settings.command_timeout),
    )
