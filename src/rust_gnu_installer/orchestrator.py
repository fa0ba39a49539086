"""The provisioning state machine.

States run strictly in order:

    start -> probing -> installing_unix_env -> installing_packages ->
    installing_toolchain_manager -> configuring_target -> writing_config ->
    verifying -> done

A failed required capability, an unwritable configuration or a failed
verification moves to `aborted` and nothing after it runs. Optional
failures become warnings. There is no rollback: every installer is
idempotent, so recovering from `aborted` means running again.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from rust_gnu_installer.capabilities import (
    Capability,
    CapabilitySet,
    build_capabilities,
    rustc_path,
    toolchain_root,
    unix_env_capability,
)
from rust_gnu_installer.config_writer import ConfigWriter, ToolchainConfig
from rust_gnu_installer.errors import ProvisionError
from rust_gnu_installer.installers import InstallerSet
from rust_gnu_installer.protocols import CapabilityInstaller, CapabilityProber, RunObserver
from rust_gnu_installer.settings import Settings
from rust_gnu_installer.types import Detection, InstallStep, RunReport, RunState
from rust_gnu_installer.verifier import Verifier

if TYPE_CHECKING:
    from rust_gnu_installer.context import AppContext

logger = logging.getLogger(__name__)

CANCELLED_REASON = "Run cancelled"

SEQUENCE: tuple[RunState, ...] = (
    RunState.PROBING,
    RunState.INSTALLING_UNIX_ENV,
    RunState.INSTALLING_PACKAGES,
    RunState.INSTALLING_TOOLCHAIN_MANAGER,
    RunState.CONFIGURING_TARGET,
    RunState.WRITING_CONFIG,
    RunState.VERIFYING,
)


class RunAborted(Exception):
    """Raised inside a state handler to stop the run."""

    pass


class NullObserver:
    """Observer that ignores all progress."""

    def on_state(self, state: RunState) -> None:
        pass

    def on_step(self, step: InstallStep) -> None:
        pass

    def on_warning(self, message: str) -> None:
        pass

    def on_info(self, message: str) -> None:
        pass


@dataclass
class _RunRecord:
    """Mutable state of one run. Frozen into a RunReport at the end."""

    steps: list[InstallStep] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    capabilities: CapabilitySet | None = None
    config: ToolchainConfig | None = None
    config_path: Path | None = None
    verification_output: tuple[str, ...] = ()


def _on_path(directory: Path, path_value: str) -> bool:
    wanted = os.path.normcase(os.path.normpath(str(directory)))
    for entry in path_value.split(os.pathsep):
        if entry and os.path.normcase(os.path.normpath(entry)) == wanted:
            return True
    return False


class Orchestrator:
    """Sequences probing, installation, configuration and verification.

    Follows Separate Use from Creation: the constructor takes every
    collaborator; use `create()` to wire from an AppContext.
    """

    def __init__(
        self,
        settings: Settings,
        prober: CapabilityProber,
        installers: InstallerSet,
        config_writer: ConfigWriter,
        verifier: Verifier,
        observer: RunObserver | None = None,
        cancel_event: threading.Event | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.settings = settings
        self.prober = prober
        self.installers = installers
        self.config_writer = config_writer
        self.verifier = verifier
        self.observer = observer or NullObserver()
        self.cancel_event = cancel_event or threading.Event()
        self.environ = os.environ if environ is None else environ

    @classmethod
    def create(
        cls,
        context: AppContext,
        observer: RunObserver | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Orchestrator:
        """Factory wiring the orchestrator from an application context."""
        return cls(
            settings=context.settings,
            prober=context.prober,
            installers=context.installers,
            config_writer=context.config_writer,
            verifier=context.verifier,
            observer=observer,
            cancel_event=cancel_event,
        )

    def run(self) -> RunReport:
        """Run the state machine to `done` or `aborted`.

        Returns:
            The immutable RunReport of this run.
        """
        record = _RunRecord()
        handlers: dict[RunState, Callable[[_RunRecord], None]] = {
            RunState.PROBING: self._probe,
            RunState.INSTALLING_UNIX_ENV: self._install_unix_env,
            RunState.INSTALLING_PACKAGES: self._install_packages,
            RunState.INSTALLING_TOOLCHAIN_MANAGER: self._install_toolchain_manager,
            RunState.CONFIGURING_TARGET: self._configure_target,
            RunState.WRITING_CONFIG: self._write_config,
            RunState.VERIFYING: self._verify,
        }

        self.observer.on_state(RunState.START)
        for state in SEQUENCE:
            if self.cancel_event.is_set():
                return self._finish(record, RunState.ABORTED, CANCELLED_REASON)
            logger.debug("Entering state %s", state.value)
            self.observer.on_state(state)
            try:
                handlers[state](record)
            except RunAborted as e:
                return self._finish(record, RunState.ABORTED, str(e))
        return self._finish(record, RunState.DONE)

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    def _probe(self, record: _RunRecord) -> None:
        located = self.prober.locate(unix_env_capability(self.settings).probe)
        # bash lives at <root>/usr/bin/bash.exe
        msys2_root = located.parents[2] if located else self.settings.msys2_root
        capabilities = build_capabilities(self.settings, msys2_root)
        record.capabilities = capabilities

        for capability in capabilities.all():
            detection = self.prober.detect(capability)
            marker = "found" if detection is Detection.PRESENT else "missing"
            self.observer.on_info(f"{capability.label}: {marker}")

        existing = self.prober.rustc_version(rustc_path(self.settings))
        if existing and "msvc" in existing:
            self._warn(
                record,
                "Existing Rust installation uses the MSVC toolchain; "
                f"{self.settings.target} is configured as an additional target",
            )

        path_value = self.environ.get("PATH", "")
        wanted = (toolchain_root(msys2_root) / "bin", msys2_root / "usr" / "bin")
        missing = [str(directory) for directory in wanted if not _on_path(directory, path_value)]
        if missing:
            self._warn(
                record,
                "Add these directories to PATH to use the GNU tools from a terminal: "
                + ", ".join(missing),
            )

    def _install_unix_env(self, record: _RunRecord) -> None:
        self._apply(record, self.installers.unix_env, self._caps(record).unix_env)

    def _install_packages(self, record: _RunRecord) -> None:
        for capability in self._caps(record).packages:
            self._apply(record, self.installers.packages, capability)

    def _install_toolchain_manager(self, record: _RunRecord) -> None:
        self._apply(
            record, self.installers.toolchain_manager, self._caps(record).toolchain_manager
        )

    def _configure_target(self, record: _RunRecord) -> None:
        capabilities = self._caps(record)
        self._apply(record, self.installers.target, capabilities.target)
        self._apply(record, self.installers.toolchain_override, capabilities.toolchain_override)

    def _write_config(self, record: _RunRecord) -> None:
        config = ToolchainConfig.from_toolchain_root(
            self.settings.target, toolchain_root(self._caps(record).msys2_root)
        )
        try:
            path = self.config_writer.write(config, self.settings.project_dir)
        except ProvisionError as e:
            raise RunAborted(f"Writing build configuration failed: {e}") from e
        record.config = config
        record.config_path = path
        self.observer.on_info(f"Wrote {path}")

    def _verify(self, record: _RunRecord) -> None:
        if record.config is None:
            raise RunAborted("No build configuration to verify")
        try:
            verified = self.verifier.verify(record.config)
        except ProvisionError as e:
            raise RunAborted(f"Verification failed: {e}") from e
        record.verification_output = verified.output
        self.observer.on_info(f"Compiler: {verified.rustc_version}")
        for detail in verified.rustc_details:
            self.observer.on_info(f"  {detail}")
        for line in verified.output:
            self.observer.on_info(f"  {line}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _caps(self, record: _RunRecord) -> CapabilitySet:
        if record.capabilities is None:
            raise RunAborted("Capabilities were not resolved during probing")
        return record.capabilities

    def _apply(
        self, record: _RunRecord, installer: CapabilityInstaller, capability: Capability
    ) -> None:
        """Ensure one capability and apply the failure policy to the result."""
        step = installer.ensure(capability)
        record.steps.append(step)
        self.observer.on_step(step)
        if not step.failed:
            return
        if step.fatal:
            raise RunAborted(f"Required capability '{capability.label}' failed: {step.error}")
        self._warn(record, f"{capability.label} could not be installed: {step.error}")

    def _warn(self, record: _RunRecord, message: str) -> None:
        logger.warning("%s", message)
        record.warnings.append(message)
        self.observer.on_warning(message)

    def _finish(
        self, record: _RunRecord, state: RunState, reason: str | None = None
    ) -> RunReport:
        if reason:
            logger.error("Provisioning aborted: %s", reason)
        self.observer.on_state(state)
        return RunReport(
            steps=tuple(record.steps),
            warnings=tuple(record.warnings),
            final_state=state,
            abort_reason=reason,
            config_path=record.config_path,
            verification_output=record.verification_output,
        )
