"""CLI entry point using Typer."""

from __future__ import annotations

import logging
import signal
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

if TYPE_CHECKING:
    from rust_gnu_installer.context import AppContext

import typer
from rich.console import Console
from rich.logging import RichHandler

from rust_gnu_installer import __version__
from rust_gnu_installer.console import ProvisionConsole
from rust_gnu_installer.context import create_context
from rust_gnu_installer.errors import SettingsError, format_error, format_suggestion
from rust_gnu_installer.orchestrator import CANCELLED_REASON, Orchestrator
from rust_gnu_installer.settings import load_settings

EXIT_ABORTED = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="rust-gnu-installer",
    help="Provision MSYS2, MinGW-w64 and rustup for GNU-target Rust development on Windows",
    add_completion=False,
)

console = Console()
reporter = ProvisionConsole(console)


def configure_logging(verbose: bool) -> None:
    """Route library logging to stderr through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"rust-gnu-installer v{__version__}")
        raise typer.Exit()


def _build_context(config: Path | None, project_dir: Path | None) -> AppContext:
    try:
        settings = load_settings(config)
        settings = settings.with_overrides(
            project_dir=project_dir.resolve() if project_dir else None
        )
    except SettingsError as e:
        reporter.show_error(format_error(str(e)))
        raise typer.Exit(EXIT_USAGE) from e
    return create_context(settings)


@contextmanager
def cancel_on_interrupt(cancel_event: threading.Event) -> Iterator[None]:
    """Turn the first Ctrl-C into a cancellation request.

    The orchestrator stops at its next state transition, so a running
    installer or pacman call is left to finish. A second Ctrl-C raises
    KeyboardInterrupt as usual.
    """

    def handler(signum, frame) -> None:
        if cancel_event.is_set():
            raise KeyboardInterrupt
        cancel_event.set()
        reporter.show_warning(
            "Cancelling after the current step finishes; press Ctrl-C again to stop now"
        )

    try:
        previous = signal.signal(signal.SIGINT, handler)
    except ValueError:
        # Handlers can only be installed from the main thread
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


@app.command()
def install(
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Settings file (YAML)")
    ] = None,
    project_dir: Annotated[
        Path | None,
        typer.Option("--project-dir", "-p", help="Directory that receives .cargo/config.toml"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Show debug logging")] = False,
    allow_non_windows: Annotated[
        bool,
        typer.Option("--allow-non-windows", hidden=True, help="Skip the Windows host check"),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
    _context=None,
) -> None:
    """Bring this machine to a working GNU-toolchain Rust environment."""
    configure_logging(verbose)

    if sys.platform != "win32" and not allow_non_windows:
        reporter.show_error(format_error("This installer is designed for Windows systems only."))
        raise typer.Exit(EXIT_USAGE)

    ctx = _context or _build_context(config, project_dir)

    reporter.show_welcome()
    cancel_event = threading.Event()
    orchestrator = Orchestrator.create(ctx, observer=reporter, cancel_event=cancel_event)
    try:
        with cancel_on_interrupt(cancel_event):
            report = orchestrator.run()
    except KeyboardInterrupt as e:
        reporter.show_error(
            format_suggestion("Interrupted", "run again to continue where this run stopped")
        )
        raise typer.Exit(EXIT_INTERRUPTED) from e

    reporter.show_report(report)
    if report.abort_reason == CANCELLED_REASON:
        raise typer.Exit(EXIT_INTERRUPTED)
    if not report.success:
        raise typer.Exit(EXIT_ABORTED)


def main() -> None:
    """Console script entry point."""
    app()
