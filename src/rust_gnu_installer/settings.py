"""Runtime settings: install roots, download sources and timeouts."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rust_gnu_installer.errors import SettingsError

# Default settings location
SETTINGS_DIR = Path.home() / ".rust-gnu-installer"
SETTINGS_ENV_VAR = "RUST_GNU_INSTALLER_CONFIG"

GNU_TARGET = "x86_64-pc-windows-gnu"
MSYS2_INSTALLER_URL = (
    "https://github.com/msys2/msys2-installer/releases/latest/download/msys2-x86_64-latest.exe"
)
RUSTUP_INSTALLER_URL = "https://win.rustup.rs/x86_64"


def _default_cargo_home() -> Path:
    if "CARGO_HOME" in os.environ:
        return Path(os.environ["CARGO_HOME"])
    return Path.home() / ".cargo"


class Settings(BaseModel):
    """Provisioning settings.

    Every field has a default suitable for a stock Windows machine; a
    settings file only needs the fields it changes.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    msys2_root: Path = Path("C:/msys64")
    msys2_fallback_roots: list[Path] = Field(default_factory=lambda: [Path("C:/msys32")])
    cargo_home: Path = Field(default_factory=_default_cargo_home)
    project_dir: Path = Field(default_factory=Path.cwd)
    download_dir: Path = Field(default_factory=lambda: SETTINGS_DIR / "downloads")

    target: str = GNU_TARGET
    toolchain_channel: str = "stable"

    msys2_installer_url: str = MSYS2_INSTALLER_URL
    msys2_installer_sha256: str | None = None
    rustup_installer_url: str = RUSTUP_INSTALLER_URL
    rustup_installer_sha256: str | None = None

    download_retries: int = Field(default=3, ge=1)
    download_backoff: float = Field(default=2.0, ge=0)
    http_timeout: float = Field(default=60.0, gt=0)
    probe_timeout: float = Field(default=30.0, gt=0)
    command_timeout: float = Field(default=600.0, gt=0)
    install_timeout: float = Field(default=1800.0, gt=0)
    msys2_settle_timeout: float = Field(default=10.0, ge=0)

    @property
    def toolchain(self) -> str:
        """Full rustup toolchain name, e.g. stable-x86_64-pc-windows-gnu."""
        return f"{self.toolchain_channel}-{self.target}"

    @property
    def cargo_bin(self) -> Path:
        return self.cargo_home / "bin"

    def with_overrides(self, **overrides: Any) -> Settings:
        """Return a copy with non-None overrides applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if not values:
            return self
        return self.model_validate({**self.model_dump(), **values})


def get_settings_path(explicit: Path | None = None) -> Path:
    """Return the settings file path.

    Priority:
    1. Explicit path (the --config option)
    2. RUST_GNU_INSTALLER_CONFIG environment variable (if set)
    3. ~/.rust-gnu-installer/settings.yaml
    """
    if explicit is not None:
        return explicit
    if SETTINGS_ENV_VAR in os.environ:
        return Path(os.environ[SETTINGS_ENV_VAR])
    return SETTINGS_DIR / "settings.yaml"


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from YAML, falling back to defaults.

    A missing file at the default location yields default settings; a
    missing file that was asked for explicitly is an error.

    Raises:
        SettingsError: If the file is missing (when explicit), unreadable or invalid.
    """
    settings_path = get_settings_path(path)
    explicit = path is not None or SETTINGS_ENV_VAR in os.environ

    if not settings_path.exists():
        if explicit:
            raise SettingsError(f"Settings file not found: {settings_path}")
        return Settings()

    try:
        data = yaml.safe_load(settings_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise SettingsError(f"Cannot read settings file {settings_path}: {e}") from e

    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {settings_path} must contain a mapping")

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise SettingsError(f"Invalid settings in {settings_path}: {e}") from e
