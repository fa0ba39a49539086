"""Shared data types for the provisioning run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

__all__ = [
    "Criticality",
    "Detection",
    "DownloadTask",
    "InstallStep",
    "RunReport",
    "RunState",
    "StepOutcome",
]


class Criticality(str, Enum):
    """Whether a capability failure aborts the run."""

    REQUIRED = "required"
    OPTIONAL = "optional"


class Detection(str, Enum):
    """Result of probing for a capability."""

    PRESENT = "present"
    ABSENT = "absent"


class StepOutcome(str, Enum):
    """Outcome of one attempt to ensure a capability."""

    SKIPPED = "skipped"
    INSTALLED = "installed"
    FAILED = "failed"


class RunState(str, Enum):
    """States of the provisioning state machine."""

    START = "start"
    PROBING = "probing"
    INSTALLING_UNIX_ENV = "installing_unix_env"
    INSTALLING_PACKAGES = "installing_packages"
    INSTALLING_TOOLCHAIN_MANAGER = "installing_toolchain_manager"
    CONFIGURING_TARGET = "configuring_target"
    WRITING_CONFIG = "writing_config"
    VERIFYING = "verifying"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class InstallStep:
    """One attempted application of a capability's install action.

    Attributes:
        capability_id: Identifier of the target capability.
        label: Human-readable capability label.
        criticality: Criticality of the capability.
        outcome: What happened.
        duration: Wall-clock seconds spent in the installer.
        error: Error detail (set only when outcome is FAILED).
    """

    capability_id: str
    label: str
    criticality: Criticality
    outcome: StepOutcome
    duration: float = 0.0
    error: str | None = None

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.outcome is StepOutcome.FAILED and not self.error:
            raise ValueError("outcome=failed requires error message")
        if self.outcome is not StepOutcome.FAILED and self.error is not None:
            raise ValueError(f"outcome={self.outcome.value} but error is set")
        if not self.capability_id:
            raise ValueError("capability_id cannot be empty")

    @property
    def failed(self) -> bool:
        return self.outcome is StepOutcome.FAILED

    @property
    def fatal(self) -> bool:
        """True if this step failed on a required capability."""
        return self.failed and self.criticality is Criticality.REQUIRED


@dataclass(frozen=True)
class DownloadTask:
    """A remote artifact to fetch.

    Attributes:
        url: Source URL (http or https).
        destination: Final local path. Written atomically.
        sha256: Expected hex digest, if known.
        size: Expected byte count, if known.
        retries: Attempts allowed for transient failures.
    """

    url: str
    destination: Path
    sha256: str | None = None
    size: int | None = None
    retries: int = 3

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.retries < 1:
            raise ValueError("retries must be at least 1")


@dataclass(frozen=True)
class RunReport:
    """Immutable record of one provisioning run."""

    steps: tuple[InstallStep, ...]
    warnings: tuple[str, ...]
    final_state: RunState
    abort_reason: str | None = None
    config_path: Path | None = None
    verification_output: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return self.final_state is RunState.DONE

    def step_for(self, capability_id: str) -> InstallStep | None:
        """Return the step recorded for a capability, if any."""
        for step in self.steps:
            if step.capability_id == capability_id:
                return step
        return None
