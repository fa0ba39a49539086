"""Console output for provisioning runs."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from rust_gnu_installer import __version__
from rust_gnu_installer.types import InstallStep, RunReport, RunState, StepOutcome

STATE_TITLES: dict[RunState, str] = {
    RunState.START: "Starting",
    RunState.PROBING: "Checking for existing installations",
    RunState.INSTALLING_UNIX_ENV: "MSYS2 installation",
    RunState.INSTALLING_PACKAGES: "Installing GNU toolchain packages",
    RunState.INSTALLING_TOOLCHAIN_MANAGER: "Installing rustup",
    RunState.CONFIGURING_TARGET: "Configuring the GNU target",
    RunState.WRITING_CONFIG: "Writing build configuration",
    RunState.VERIFYING: "Verifying installation",
    RunState.DONE: "Done",
    RunState.ABORTED: "Aborted",
}

OUTCOME_STYLES: dict[StepOutcome, tuple[str, str]] = {
    StepOutcome.SKIPPED: ("green", "already satisfied"),
    StepOutcome.INSTALLED: ("green", "installed"),
    StepOutcome.FAILED: ("red", "failed"),
}


class ProvisionConsole:
    """Prints orchestrator progress as it happens.

    Satisfies the RunObserver protocol structurally.
    """

    def __init__(self, console: Console | None = None) -> None:
        """Initialize the reporter.

        Args:
            console: Rich console to print to. Defaults to stdout.
        """
        self.console = console or Console()

    def show_welcome(self) -> None:
        """Display welcome banner."""
        self.console.print(
            Panel(
                f"[bold blue]Rust GNU/MSYS2 Installer[/bold blue] v{__version__}\n"
                "Provisions MSYS2, MinGW-w64 and rustup for the x86_64-pc-windows-gnu target",
                title="Welcome",
                border_style="blue",
            )
        )

    def on_state(self, state: RunState) -> None:
        if state in (RunState.START, RunState.DONE, RunState.ABORTED):
            return
        self.console.print()
        self.console.rule(f"[bold]{STATE_TITLES[state]}[/bold]", align="left")

    def on_step(self, step: InstallStep) -> None:
        if step.outcome is StepOutcome.FAILED:
            if step.fatal:
                self.show_error(f"{step.label} - failed: {step.error}")
            else:
                self.show_warning(f"{step.label} - skipped: {step.error}")
            return
        _, text = OUTCOME_STYLES[step.outcome]
        self.show_success(f"{step.label} - {text} ({step.duration:.1f}s)")

    def on_warning(self, message: str) -> None:
        self.show_warning(message)

    def on_info(self, message: str) -> None:
        self.show_info(message)

    def show_success(self, message: str) -> None:
        """Show success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def show_error(self, message: str) -> None:
        """Show error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def show_warning(self, message: str) -> None:
        """Show warning message."""
        self.console.print(f"[yellow]![/yellow] {message}")

    def show_info(self, message: str) -> None:
        """Show info message."""
        self.console.print(f"[blue]i[/blue] {message}")

    def show_report(self, report: RunReport) -> None:
        """Display the final summary table and every warning.

        Args:
            report: Completed run report.
        """
        self.console.print()
        table = Table(title="Provisioning Summary")
        table.add_column("Capability", style="cyan")
        table.add_column("Criticality")
        table.add_column("Outcome")
        table.add_column("Time", justify="right")

        for step in report.steps:
            style, text = OUTCOME_STYLES[step.outcome]
            table.add_row(
                step.label,
                step.criticality.value,
                f"[{style}]{text}[/{style}]",
                f"{step.duration:.1f}s",
            )
        self.console.print(table)

        if report.warnings:
            self.console.print()
            self.console.print(f"[yellow]Warnings ({len(report.warnings)}):[/yellow]")
            for warning in report.warnings:
                self.console.print(f"  - {warning}")

        self.console.print()
        if report.success:
            self.show_success("Installation process completed successfully!")
            if report.config_path:
                self.show_info(f"Build configuration: {report.config_path}")
        else:
            self.show_error(f"Installation aborted: {report.abort_reason}")
            self.show_info("Every step is idempotent; fix the problem and run again to resume.")
