"""Generation of the Cargo build configuration for the GNU target."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from rust_gnu_installer.capabilities import EXE
from rust_gnu_installer.errors import ConfigWriteError, PermissionDeniedError
from rust_gnu_installer.filesystem import RealFileSystem
from rust_gnu_installer.protocols import FileSystem

logger = logging.getLogger(__name__)

CONFIG_RELATIVE_PATH = Path(".cargo") / "config.toml"
HEADER = "# Generated by rust-gnu-installer. This file is regenerated on every run."

MINGW_TRIPLE = "x86_64-w64-mingw32"


def _toml_string(value: str) -> str:
    # A JSON string literal is a valid TOML basic string
    return json.dumps(value)


def _tool(root: Path, name: str) -> str:
    return (root / "bin" / f"{name}{EXE}").as_posix()


class ToolchainConfig(BaseModel):
    """Resolved build configuration for one target.

    Build it with `from_toolchain_root()`; the same (target, root) pair
    always renders to the same bytes.
    """

    model_config = ConfigDict(frozen=True)

    target: str
    toolchain_root: Path
    linker: str
    archiver: str
    env: dict[str, str]

    @classmethod
    def from_toolchain_root(cls, target: str, toolchain_root: Path) -> ToolchainConfig:
        """Derive tool paths from the MinGW-w64 prefix.

        Args:
            target: Rust target triple, e.g. x86_64-pc-windows-gnu.
            toolchain_root: MinGW-w64 prefix, e.g. C:/msys64/mingw64.

        Returns:
            ToolchainConfig with linker, archiver and compiler bindings.
        """
        suffix = target.replace("-", "_")
        return cls(
            target=target,
            toolchain_root=toolchain_root,
            linker=_tool(toolchain_root, f"{MINGW_TRIPLE}-gcc"),
            archiver=_tool(toolchain_root, "ar"),
            env={
                f"CC_{suffix}": _tool(toolchain_root, f"{MINGW_TRIPLE}-gcc"),
                f"CXX_{suffix}": _tool(toolchain_root, f"{MINGW_TRIPLE}-g++"),
            },
        )

    @property
    def bin_dir(self) -> Path:
        return self.toolchain_root / "bin"

    def render(self) -> str:
        """Render the config.toml document."""
        lines = [
            HEADER,
            "",
            f"[target.{self.target}]",
            f"linker = {_toml_string(self.linker)}",
            f"ar = {_toml_string(self.archiver)}",
            "",
            "[build]",
            f"target = {_toml_string(self.target)}",
            "",
            "[env]",
        ]
        for name in sorted(self.env):
            lines.append(f"{name} = {_toml_string(self.env[name])}")
        return "\n".join(lines) + "\n"


class ConfigWriter:
    """Writes ToolchainConfig to `<destination>/.cargo/config.toml`.

    The file is owned by this tool: it is always replaced, never merged.
    """

    def __init__(self, filesystem: FileSystem | None = None) -> None:
        self.fs = filesystem or RealFileSystem()

    def write(self, config: ToolchainConfig, destination_dir: Path) -> Path:
        """Atomically write the configuration file.

        Args:
            config: Configuration to render.
            destination_dir: Project directory receiving `.cargo/config.toml`.

        Returns:
            Path of the written file.

        Raises:
            PermissionDeniedError: If the destination is not writable by this user.
            ConfigWriteError: If the directory or file cannot be written.
        """
        path = destination_dir / CONFIG_RELATIVE_PATH
        try:
            self.fs.mkdir(path.parent, parents=True, exist_ok=True)
            self.fs.atomic_write_text(path, config.render())
        except PermissionError as e:
            raise PermissionDeniedError(f"Cannot write {path}") from e
        except OSError as e:
            raise ConfigWriteError(f"Cannot write {path}: {e}") from e
        logger.info("Wrote %s", path)
        return path
