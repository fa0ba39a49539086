"""Tests for capability installers."""

from __future__ import annotations

import pytest
from conftest import GNU_TOOLCHAIN, FakeMachine, fail, ok

from rust_gnu_installer.capabilities import build_capabilities, unix_env_capability
from rust_gnu_installer.errors import (
    ELEVATION_HINT,
    IntegrityMismatchError,
    PermissionDeniedError,
    ProcessTimeoutError,
)
from rust_gnu_installer.fetcher import HttpFetcher
from rust_gnu_installer.installers import (
    BaseInstaller,
    Msys2Installer,
    OverrideInstaller,
    PackageInstaller,
    RustupInstaller,
    TargetInstaller,
    create_installers,
)
from rust_gnu_installer.installers.msys2 import INIT_COMMANDS
from rust_gnu_installer.prober import EnvironmentProber
from rust_gnu_installer.protocols import CapabilityInstaller
from rust_gnu_installer.types import StepOutcome


@pytest.fixture
def prober(machine: FakeMachine) -> EnvironmentProber:
    return EnvironmentProber(machine)


def capabilities_of(machine: FakeMachine):
    return build_capabilities(machine.settings(), machine.msys2_root)


def make_msys2_installer(machine: FakeMachine, prober: EnvironmentProber, **kwargs):
    settings = machine.settings()
    return Msys2Installer(
        prober,
        machine,
        machine.fetcher,
        download_dir=settings.download_dir,
        install_root=settings.msys2_root,
        url=settings.msys2_installer_url,
        settle_timeout=0,
        **kwargs,
    )


class TestCreateInstallers:
    """Tests for the installer factory."""

    def test_every_installer_satisfies_protocol(
        self, machine: FakeMachine, prober: EnvironmentProber
    ) -> None:
        installers = create_installers(machine.settings(), prober, machine, machine.fetcher)

        for installer in (
            installers.unix_env,
            installers.packages,
            installers.toolchain_manager,
            installers.target,
            installers.toolchain_override,
        ):
            assert isinstance(installer, CapabilityInstaller)
            assert isinstance(installer, BaseInstaller)

    def test_passes_settings_through(self, machine: FakeMachine, prober: EnvironmentProber) -> None:
        settings = machine.settings(download_retries=5, rustup_installer_sha256="ab" * 32)
        installers = create_installers(settings, prober, machine, machine.fetcher)

        assert installers.unix_env.install_root == settings.msys2_root
        assert installers.unix_env.retries == 5
        assert installers.toolchain_manager.sha256 == "ab" * 32
        assert installers.toolchain_manager.default_host == "x86_64-pc-windows-gnu"


class TestBaseInstaller:
    """Tests for the detect, install, re-detect skeleton."""

    def test_wrong_probe_kind_is_a_failed_step(
        self, machine: FakeMachine, prober: EnvironmentProber
    ) -> None:
        """Test that an unexpected exception becomes a failed step."""
        target = capabilities_of(machine).target
        machine.install_rustup()
        machine.targets.clear()

        step = PackageInstaller(prober, machine).ensure(target)

        assert step.outcome is StepOutcome.FAILED
        assert step.error.startswith("Unexpected error")

    def test_permission_denied_carries_hint(
        self, machine: FakeMachine, prober: EnvironmentProber
    ) -> None:
        class DenyingInstaller(BaseInstaller):
            def install(self, capability) -> None:
                raise PermissionDeniedError("Cannot write C:/msys64")

        step = DenyingInstaller(prober, machine).ensure(unix_env_capability(machine.settings()))

        assert step.outcome is StepOutcome.FAILED
        assert "elevated privileges" in step.error

    def test_unwritable_download_dir_carries_hint(
        self, machine: FakeMachine, prober: EnvironmentProber, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a denied download surfaces the elevation hint, not an unexpected error."""

        def denied(*args, **kwargs):
            raise PermissionError(13, "Access is denied")

        def no_network(*args, **kwargs):
            raise AssertionError("no request expected")

        monkeypatch.setattr("rust_gnu_installer.fetcher.tempfile.mkstemp", denied)
        settings = machine.settings()
        installer = Msys2Installer(
            prober,
            machine,
            HttpFetcher(opener=no_network, sleep=lambda _: None),
            download_dir=settings.download_dir,
            install_root=settings.msys2_root,
            url=settings.msys2_installer_url,
            settle_timeout=0,
        )

        step = installer.ensure(unix_env_capability(settings))

        assert step.outcome is StepOutcome.FAILED
        assert ELEVATION_HINT in step.error
        assert not step.error.startswith("Unexpected error")

    def test_timeout_is_a_failed_step(
        self, machine: FakeMachine, prober: EnvironmentProber
    ) -> None:
        """Test that a killed install command fails the step instead of raising."""
        machine.install_msys2()
        original = machine.run

        def run(args, timeout=None, cwd=None, env=None):
            if str(args[-1]).startswith("pacman -S "):
                raise ProcessTimeoutError(f"{args[0]} timed out after {timeout} seconds")
            return original(args, timeout=timeout, cwd=cwd, env=env)

        machine.run = run

        step = PackageInstaller(prober, machine).ensure(capabilities_of(machine).packages[0])

        assert step.outcome is StepOutcome.FAILED
        assert step.fatal
        assert "timed out after 600.0 seconds" in step.error

    def test_duration_is_recorded(self, machine: FakeMachine, prober: EnvironmentProber) -> None:
        step = make_msys2_installer(machine, prober).ensure(unix_env_capability(machine.settings()))

        assert step.duration >= 0


class TestMsys2Installer:
    """Tests for the MSYS2 installer."""

    def test_skips_when_present(self, machine: FakeMachine, prober: EnvironmentProber) -> None:
        machine.install_msys2()

        step = make_msys2_installer(machine, prober).ensure(unix_env_capability(machine.settings()))

        assert step.outcome is StepOutcome.SKIPPED
        assert machine.fetcher.tasks == []

    def test_installs_silently_and_initializes(
        self, machine: FakeMachine, prober: EnvironmentProber
    ) -> None:
        """Test the unattended install followed by pacman initialization."""
        step = make_msys2_installer(machine, prober).ensure(unix_env_capability(machine.settings()))

        assert step.outcome is StepOutcome.INSTALLED
        installer_call = next(c for c in machine.calls if c[0].endswith("msys2-installer.exe"))
        assert installer_call[1:] == (
            "install",
            "--confirm-command",
            "--accept-messages",
            "--root",
            str(machine.msys2_root),
        )
        scripts = [call[-1] for call in machine.calls if call[0].endswith("bash.exe")]
        assert [s for s in scripts if s != "--version"] == [script for _, script in INIT_COMMANDS]

    def test_removes_installer_binary(
        self, machine: FakeMachine, prober: EnvironmentProber
    ) -> None:
        make_msys2_installer(machine, prober).ensure(unix_env_capability(machine.settings()))

        assert not machine.fetcher.tasks[0].destination.exists()

    def test_passes_expected_hash(self, machine: FakeMachine, prober: EnvironmentProber) -> None:
        make_msys2_installer(machine, prober, sha256="cd" * 32).ensure(
            unix_env_capability(machine.settings())
        )

        assert machine.fetcher.tasks[0].sha256 == "cd" * 32

    def test_integrity_failure(self, machine: FakeMachine, prober: EnvironmentProber) -> None:
        machine.fetcher.error = IntegrityMismatchError("SHA-256 mismatch")

        step = make_msys2_installer(machine, prober).ensure(unix_env_capability(machine.settings()))

        assert step.outcome is StepOutcome.FAILED
        assert "SHA-256 mismatch" in step.error
        assert not any(c[0].endswith("msys2-installer.exe") for c in machine.calls)

    def test_installer_failure(self, machine: FakeMachine, prober: EnvironmentProber) -> None:
        """Test that a non-zero installer exit fails the step."""
        original = machine.run

        def run(args, timeout=None, cwd=None, env=None):
            if str(args[0]).endswith("msys2-installer.exe"):
                return fail(args, "installation aborted", returncode=2)
            return original(args, timeout=timeout, cwd=cwd, env=env)

        machine.run = run

        step = make_msys2_installer(machine, prober).ensure(unix_env_capability(machine.settings()))

        assert step.outcome is StepOutcome.FAILED
        assert "exit code 2" in step.error
        assert not machine.fetcher.tasks[0].destination.exists()

    def test_bash_never_appears(self, machine: FakeMachine, prober: EnvironmentProber) -> None:
        """Test that an installer that writes nothing fails after settling."""
        sleeps = []
        original = machine.run

        def run(args, timeout=None, cwd=None, env=None):
            if str(args[0]).endswith("msys2-installer.exe"):
                return ok(args)
            return original(args, timeout=timeout, cwd=cwd, env=env)

        machine.run = run

        step = make_msys2_installer(machine, prober).ensure(unix_env_capability(machine.settings()))
        assert "installation may be incomplete" in step.error

        installer = make_msys2_installer(machine, prober)
        installer.settle_timeout = 3
        installer._sleep = sleeps.append
        installer.ensure(unix_env_capability(machine.settings()))
        assert sleeps == [1.0, 1.0, 1.0]

    def test_nothing_to_do_is_success(
        self, machine: FakeMachine, prober: EnvironmentProber
    ) -> None:
        machine.failing_commands["pacman -Syu --noconfirm --disable-download-timeout"] = fail(
            ("bash",), " there is nothing to do"
        )

        step = make_msys2_installer(machine, prober).ensure(unix_env_capability(machine.settings()))

        assert step.outcome is StepOutcome.INSTALLED

    def test_warning_only_is_tolerated(
        self, machine: FakeMachine, prober: EnvironmentProber
    ) -> None:
        machine.failing_commands["pacman-key --populate msys2"] = fail(
            ("bash",), "warning: Public keyring not found"
        )

        step = make_msys2_installer(machine, prober).ensure(unix_env_capability(machine.settings()))

        assert step.outcome is StepOutcome.INSTALLED

    def test_initialization_error_fails(
        self, machine: FakeMachine, prober: EnvironmentProber
    ) -> None:
        machine.failing_commands["pacman -Sy --noconfirm"] = fail(
            ("bash",), "error: failed retrieving file 'msys.db'"
        )

        step = make_msys2_installer(machine, prober).ensure(unix_env_capability(machine.settings()))

        assert step.outcome is StepOutcome.FAILED
        assert "Updating package database" in step.error
        assert "failed retrieving file" in step.error


class TestPackageInstaller:
    """Tests for pacman package installation."""

    def test_installs_with_needed(self, machine: FakeMachine, prober: EnvironmentProber) -> None:
        machine.install_msys2()
        core = capabilities_of(machine).packages[0]

        step = PackageInstaller(prober, machine).ensure(core)

        assert step.outcome is StepOutcome.INSTALLED
        assert (
            str(machine.bash),
            "-l",
            "-c",
            "pacman -S --noconfirm --needed mingw-w64-x86_64-toolchain",
        ) in machine.calls

    def test_requires_msys2(self, machine: FakeMachine, prober: EnvironmentProber) -> None:
        step = PackageInstaller(prober, machine).ensure(capabilities_of(machine).packages[0])

        assert step.outcome is StepOutcome.FAILED
        assert "install MSYS2 first" in step.error

    def test_pacman_failure(self, machine: FakeMachine, prober: EnvironmentProber) -> None:
        machine.install_msys2()
        machine.failing_packages.add("mingw-w64-x86_64-cmake")

        step = PackageInstaller(prober, machine).ensure(capabilities_of(machine).packages[1])

        assert step.outcome is StepOutcome.FAILED
        assert "target not found" in step.error
        assert not step.fatal


class TestRustupInstaller:
    """Tests for rustup installation."""

    def make(self, machine: FakeMachine, prober: EnvironmentProber) -> RustupInstaller:
        settings = machine.settings()
        return RustupInstaller(
            prober,
            machine,
            machine.fetcher,
            download_dir=settings.download_dir,
            url=settings.rustup_installer_url,
            default_host=settings.target,
        )

    def test_installs(self, machine: FakeMachine, prober: EnvironmentProber) -> None:
        step = self.make(machine, prober).ensure(capabilities_of(machine).toolchain_manager)

        assert step.outcome is StepOutcome.INSTALLED
        assert machine.default_toolchain == GNU_TOOLCHAIN
        assert machine.fetcher.tasks[0].url == "https://win.rustup.rs/x86_64"
        assert not machine.fetcher.tasks[0].destination.exists()

    def test_skips_existing(self, machine: FakeMachine, prober: EnvironmentProber) -> None:
        machine.install_rustup("x86_64-pc-windows-msvc")

        step = self.make(machine, prober).ensure(capabilities_of(machine).toolchain_manager)

        assert step.outcome is StepOutcome.SKIPPED
        assert machine.fetcher.tasks == []


class TestTargetAndOverride:
    """Tests for rustup target and override installers."""

    def test_adds_target(self, machine: FakeMachine, prober: EnvironmentProber) -> None:
        machine.install_rustup("x86_64-pc-windows-msvc")

        step = TargetInstaller(prober, machine).ensure(capabilities_of(machine).target)

        assert step.outcome is StepOutcome.INSTALLED
        assert "x86_64-pc-windows-gnu" in machine.targets

    def test_sets_override_for_project(
        self, machine: FakeMachine, prober: EnvironmentProber
    ) -> None:
        machine.install_rustup("x86_64-pc-windows-msvc")

        capability = capabilities_of(machine).toolchain_override
        step = OverrideInstaller(prober, machine).ensure(capability)

        assert step.outcome is StepOutcome.INSTALLED
        assert (
            str(machine.rustup),
            "override",
            "set",
            GNU_TOOLCHAIN,
            "--path",
            str(machine.project_dir),
        ) in machine.calls

    def test_override_failure_is_not_fatal(
        self, machine: FakeMachine, prober: EnvironmentProber
    ) -> None:
        machine.install_rustup("x86_64-pc-windows-msvc")
        original = machine.run

        def run(args, timeout=None, cwd=None, env=None):
            if "override" in args:
                return fail(args, f"error: toolchain '{GNU_TOOLCHAIN}' is not installed")
            return original(args, timeout=timeout, cwd=cwd, env=env)

        machine.run = run

        capability = capabilities_of(machine).toolchain_override
        step = OverrideInstaller(prober, machine).ensure(capability)

        assert step.outcome is StepOutcome.FAILED
        assert not step.fatal
        assert "is not installed" in step.error


def test_missing_rustup_binary_fails_target(
    machine: FakeMachine, prober: EnvironmentProber
) -> None:
    """Test that adding a target without rustup fails instead of raising."""
    step = TargetInstaller(prober, machine).ensure(capabilities_of(machine).target)

    assert step.outcome is StepOutcome.FAILED
    assert "Could not start" in step.error
