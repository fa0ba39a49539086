"""End-to-end proof that the provisioned toolchain builds and runs a program."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from rust_gnu_installer.capabilities import EXE
from rust_gnu_installer.config_writer import ToolchainConfig
from rust_gnu_installer.errors import ProvisionError, VerificationError, first_line
from rust_gnu_installer.protocols import ProcessRunner
from rust_gnu_installer.runner import CommandResult

logger = logging.getLogger(__name__)

SUCCESS_MARKER = "Successfully using GNU environment"

TEST_PROGRAM = """\
fn main() {
    println!("Hello from Rust with GNU toolchain!");
    println!("Target: {}", std::env::consts::ARCH);
    println!("OS: {}", std::env::consts::OS);

    #[cfg(target_env = "gnu")]
    println!("Successfully using GNU environment!");

    #[cfg(not(target_env = "gnu"))]
    println!("Not using GNU environment");
}
"""


@dataclass(frozen=True)
class Verified:
    """Evidence of a working toolchain."""

    rustc_version: str
    output: tuple[str, ...]
    rustc_details: tuple[str, ...] = ()


class Verifier:
    """Compiles and runs a trivial program against a ToolchainConfig."""

    def __init__(self, runner: ProcessRunner, rustc: Path, timeout: float = 600.0) -> None:
        """Initialize the verifier.

        Args:
            runner: External command execution.
            rustc: Compiler to test (normally the rustup proxy in CARGO_HOME/bin).
            timeout: Timeout for compiling and running, in seconds.
        """
        self.runner = runner
        self.rustc = rustc
        self.timeout = timeout

    def verify(self, config: ToolchainConfig) -> Verified:
        """Build and run the test program.

        Args:
            config: Configuration whose linker and target are exercised.

        Returns:
            Verified with the compiler version, its verbose details and the
            program output.

        Raises:
            VerificationError: On compile failure, run failure or missing marker.
        """
        with tempfile.TemporaryDirectory(prefix="rust-gnu-verify-") as workdir:
            work = Path(workdir)
            source = work / "test_gnu.rs"
            binary = work / f"test_gnu{EXE}"
            source.write_text(TEST_PROGRAM, encoding="utf-8")

            version_output = self._run_step(
                [self.rustc, "--version", "--verbose"], "rustc --version", work, config
            ).stdout
            version = first_line(version_output, default="rustc (unknown version)")
            self._run_step(
                [
                    self.rustc,
                    source,
                    "--target",
                    config.target,
                    "-C",
                    f"linker={config.linker}",
                    "-o",
                    binary,
                ],
                "Test compilation",
                work,
                config,
            )
            if not binary.is_file():
                raise VerificationError(f"Test compilation produced no binary at {binary}")

            output = self._run_step([binary], "Test program", work, config).stdout

        if SUCCESS_MARKER not in output:
            raise VerificationError(
                f"Test program output does not contain {SUCCESS_MARKER!r}; "
                "the GNU environment may not be active"
            )
        logger.info("Verified toolchain: %s", version)
        # Verbose lines look like "host: x86_64-pc-windows-gnu"
        details = tuple(line.strip() for line in version_output.splitlines() if ": " in line)
        return Verified(
            rustc_version=version, output=tuple(output.splitlines()), rustc_details=details
        )

    def _run_step(
        self, args: list[str | Path], description: str, cwd: Path, config: ToolchainConfig
    ) -> CommandResult:
        # MinGW runtime DLLs must be on PATH for the test binary to start
        env = {"PATH": os.pathsep.join([str(config.bin_dir), os.environ.get("PATH", "")])}
        try:
            result = self.runner.run(args, timeout=self.timeout, cwd=cwd, env=env)
        except ProvisionError as e:
            raise VerificationError(f"{description} could not run: {e}") from e
        if not result.ok:
            raise VerificationError(
                f"{description} failed (exit code {result.returncode}): "
                f"{first_line(result.stderr or result.stdout)}"
            )
        return result
