"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from rust_gnu_installer.context import AppContext, create_context
from rust_gnu_installer.errors import ProcessSpawnError
from rust_gnu_installer.orchestrator import Orchestrator
from rust_gnu_installer.runner import CommandResult
from rust_gnu_installer.settings import Settings
from rust_gnu_installer.types import DownloadTask, InstallStep, RunState

GNU_TOOLCHAIN = "stable-x86_64-pc-windows-gnu"


def ok(args: Sequence[str], stdout: str = "") -> CommandResult:
    return CommandResult(args=tuple(args), returncode=0, stdout=stdout)


def fail(args: Sequence[str], stderr: str = "error", returncode: int = 1) -> CommandResult:
    return CommandResult(args=tuple(args), returncode=returncode, stderr=stderr)


# ============================================================================
# Fake machine
# ============================================================================


class FakeFetcher:
    """Fetcher that writes a small placeholder binary and records tasks."""

    def __init__(self) -> None:
        self.tasks: list[DownloadTask] = []
        self.error: Exception | None = None

    def fetch(self, task: DownloadTask) -> Path:
        self.tasks.append(task)
        if self.error is not None:
            raise self.error
        task.destination.parent.mkdir(parents=True, exist_ok=True)
        task.destination.write_bytes(b"MZ fake installer")
        return task.destination


class FakeMachine:
    """A scripted Windows machine living under tmp_path.

    Acts as the ProcessRunner: installer binaries, bash/pacman, rustup and
    rustc are simulated by creating files and tracking package state.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.install_root = root / "msys64"
        self.msys2_root = self.install_root
        self.cargo_home = root / "cargo"
        self.project_dir = root / "project"
        self.project_dir.mkdir(parents=True)
        self.fetcher = FakeFetcher()

        self.packages: set[str] = set()
        self.targets: set[str] = set()
        self.default_toolchain: str | None = None
        self.override: str | None = None
        self.rustc_host = "x86_64-pc-windows-gnu"

        self.failing_packages: set[str] = set()
        self.failing_commands: dict[str, CommandResult] = {}
        self.ignored_packages: set[str] = set()
        self.program_output = (
            "Hello from Rust with GNU toolchain!\nSuccessfully using GNU environment!"
        )

        self.calls: list[tuple[str, ...]] = []

    # -- settings -----------------------------------------------------------

    def settings(self, **overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "msys2_root": self.install_root,
            "msys2_fallback_roots": [self.root / "msys32"],
            "cargo_home": self.cargo_home,
            "project_dir": self.project_dir,
            "download_dir": self.root / "downloads",
            "msys2_settle_timeout": 0,
        }
        values.update(overrides)
        return Settings(**values)

    # -- preinstalled state -------------------------------------------------

    @property
    def bash(self) -> Path:
        return self.msys2_root / "usr" / "bin" / "bash.exe"

    @property
    def rustup(self) -> Path:
        return self.cargo_home / "bin" / "rustup.exe"

    @property
    def rustc(self) -> Path:
        return self.cargo_home / "bin" / "rustc.exe"

    def install_msys2(self, root: Path | None = None) -> None:
        root = root or self.msys2_root
        bash = root / "usr" / "bin" / "bash.exe"
        bash.parent.mkdir(parents=True, exist_ok=True)
        bash.write_bytes(b"")
        (root / "mingw64" / "bin").mkdir(parents=True, exist_ok=True)
        self.msys2_root = root

    def install_rustup(self, host: str = "x86_64-pc-windows-gnu") -> None:
        self.rustup.parent.mkdir(parents=True, exist_ok=True)
        self.rustup.write_bytes(b"")
        self.rustc.write_bytes(b"")
        self.rustc_host = host
        self.targets.add(host)
        self.default_toolchain = f"stable-{host}"

    # -- ProcessRunner ------------------------------------------------------

    def run(
        self,
        args: Sequence[str | Path],
        timeout: float | None = None,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        argv = tuple(str(arg) for arg in args)
        self.calls.append(argv)
        program = Path(argv[0])
        if not program.is_file():
            raise ProcessSpawnError(f"Could not start {argv[0]}")

        name = program.name
        if name == "msys2-installer.exe":
            self.install_msys2(Path(argv[argv.index("--root") + 1]))
            return ok(argv)
        if name == "rustup-init.exe":
            self.install_rustup(argv[argv.index("--default-host") + 1])
            return ok(argv)
        if name == "bash.exe":
            return self._bash(argv)
        if name == "rustup.exe":
            return self._rustup(argv)
        if name == "rustc.exe":
            return self._rustc(argv)
        if name.startswith("test_gnu"):
            return ok(argv, self.program_output)
        raise ProcessSpawnError(f"Unknown program {argv[0]}")

    def _bash(self, argv: tuple[str, ...]) -> CommandResult:
        script = argv[-1]
        if script in self.failing_commands:
            return self.failing_commands[script]
        if argv[1:] == ("--version",):
            return ok(argv, "GNU bash, version 5.2.26(1)-release")
        words = script.split()
        if words[:2] in (["pacman", "-Q"], ["pacman", "-Qg"]):
            return ok(argv, words[2]) if words[2] in self.packages else fail(argv)
        if words[:2] == ["pacman", "-S"]:
            package = words[-1]
            if package in self.failing_packages:
                return fail(argv, f"error: target not found: {package}")
            if package not in self.ignored_packages:
                self.packages.add(package)
            return ok(argv)
        return ok(argv)

    def _rustup(self, argv: tuple[str, ...]) -> CommandResult:
        command = list(argv[1:])
        if command == ["--version"]:
            return ok(argv, "rustup 1.27.1 (54dd3d00f 2024-04-24)")
        if command == ["target", "list", "--installed"]:
            return ok(argv, "\n".join(sorted(self.targets)))
        if command[:2] == ["target", "add"]:
            self.targets.add(command[2])
            return ok(argv)
        if command == ["show", "active-toolchain"]:
            active = self.override or self.default_toolchain
            if active is None:
                return fail(argv, "error: no default toolchain configured")
            return ok(argv, f"{active} (default)")
        if command[:2] == ["override", "set"]:
            self.override = command[2]
            return ok(argv)
        return fail(argv, f"unsupported rustup call {command}")

    def _rustc(self, argv: tuple[str, ...]) -> CommandResult:
        if argv[1:] == ("--version",):
            return ok(argv, "rustc 1.80.0 (051478957 2024-07-21)")
        if argv[1:] == ("--version", "--verbose"):
            return ok(argv, f"rustc 1.80.0 (051478957 2024-07-21)\nhost: {self.rustc_host}")
        if "-o" in argv:
            Path(argv[argv.index("-o") + 1]).write_bytes(b"MZ")
            return ok(argv)
        return fail(argv, "error: no input filename given")


class RecordingObserver:
    """RunObserver that keeps everything it is told."""

    def __init__(self) -> None:
        self.states: list[RunState] = []
        self.steps: list[InstallStep] = []
        self.warnings: list[str] = []
        self.infos: list[str] = []

    def on_state(self, state: RunState) -> None:
        self.states.append(state)

    def on_step(self, step: InstallStep) -> None:
        self.steps.append(step)

    def on_warning(self, message: str) -> None:
        self.warnings.append(message)

    def on_info(self, message: str) -> None:
        self.infos.append(message)


def build_orchestrator(
    machine: FakeMachine,
    observer: RecordingObserver | None = None,
    path: str = "",
    **settings_overrides: Any,
) -> Orchestrator:
    """Wire a real orchestrator on top of the fake machine."""
    context = machine_context(machine, **settings_overrides)
    return Orchestrator(
        settings=context.settings,
        prober=context.prober,
        installers=context.installers,
        config_writer=context.config_writer,
        verifier=context.verifier,
        observer=observer,
        environ={"PATH": path},
    )


def machine_context(machine: FakeMachine, **settings_overrides: Any) -> AppContext:
    return create_context(
        machine.settings(**settings_overrides), runner=machine, fetcher=machine.fetcher
    )


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def temp_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Override home directory for testing."""
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    return tmp_path


@pytest.fixture
def machine(tmp_path: Path) -> FakeMachine:
    """A bare machine: no MSYS2, no rustup."""
    return FakeMachine(tmp_path)


@pytest.fixture
def provisioned_machine(machine: FakeMachine) -> FakeMachine:
    """A machine where every capability already holds."""
    machine.install_msys2()
    machine.packages.update(
        {
            "mingw-w64-x86_64-toolchain",
            "mingw-w64-x86_64-cmake",
            "mingw-w64-x86_64-pkgconf",
            "mingw-w64-x86_64-openssl",
            "mingw-w64-x86_64-make",
        }
    )
    machine.install_rustup()
    machine.override = GNU_TOOLCHAIN
    return machine


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()
