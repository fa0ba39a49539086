"""The fixed catalogue of capabilities a GNU Rust environment needs.

A capability pairs an identifier and criticality with a probe: a plain
description of how to detect it. The EnvironmentProber evaluates probes;
installers are registered per probe kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from rust_gnu_installer.settings import Settings
from rust_gnu_installer.types import Criticality

EXE = ".exe"

MINGW_PREFIX = "mingw-w64-x86_64"
CORE_TOOLCHAIN_PACKAGE = f"{MINGW_PREFIX}-toolchain"


@dataclass(frozen=True)
class ExecutableProbe:
    """An executable at one of several well-known locations.

    The first candidate that exists and answers version_args with exit
    code 0 satisfies the probe.
    """

    candidates: tuple[Path, ...]
    version_args: tuple[str, ...] = ("--version",)


@dataclass(frozen=True)
class PackageProbe:
    """A pacman package (or package group) installed inside MSYS2."""

    bash: Path
    package: str
    group: bool = False


@dataclass(frozen=True)
class TargetProbe:
    """A rustup target listed as installed."""

    rustup: Path
    target: str


@dataclass(frozen=True)
class OverrideProbe:
    """The active rustup toolchain for a directory."""

    rustup: Path
    toolchain: str
    directory: Path


Probe = Union[ExecutableProbe, PackageProbe, TargetProbe, OverrideProbe]


@dataclass(frozen=True)
class Capability:
    """A named unit of required environment state."""

    id: str
    label: str
    criticality: Criticality
    probe: Probe

    @property
    def required(self) -> bool:
        return self.criticality is Criticality.REQUIRED


@dataclass(frozen=True)
class PackageSpec:
    name: str
    label: str
    criticality: Criticality
    group: bool = False


# Install order matters: the core toolchain comes first and is the only
# package whose failure aborts the run.
PACKAGES: tuple[PackageSpec, ...] = (
    PackageSpec(CORE_TOOLCHAIN_PACKAGE, "Core toolchain", Criticality.REQUIRED, group=True),
    PackageSpec(f"{MINGW_PREFIX}-cmake", "CMake", Criticality.OPTIONAL),
    PackageSpec(f"{MINGW_PREFIX}-pkgconf", "pkg-config", Criticality.OPTIONAL),
    PackageSpec(f"{MINGW_PREFIX}-openssl", "OpenSSL", Criticality.OPTIONAL),
    PackageSpec(f"{MINGW_PREFIX}-make", "Make", Criticality.OPTIONAL),
)


def bash_path(msys2_root: Path) -> Path:
    return msys2_root / "usr" / "bin" / f"bash{EXE}"


def bash_command(bash: Path, script: str) -> list[str]:
    """Argument vector running script in an MSYS2 login shell."""
    return [str(bash), "-l", "-c", script]


def toolchain_root(msys2_root: Path) -> Path:
    """The MinGW-w64 prefix that holds gcc, ar and runtime DLLs."""
    return msys2_root / "mingw64"


def rustup_path(settings: Settings) -> Path:
    return settings.cargo_bin / f"rustup{EXE}"


def rustc_path(settings: Settings) -> Path:
    return settings.cargo_bin / f"rustc{EXE}"


def msys2_roots(settings: Settings) -> tuple[Path, ...]:
    """Candidate MSYS2 roots, configured root first."""
    roots = [settings.msys2_root]
    for root in settings.msys2_fallback_roots:
        if root not in roots:
            roots.append(root)
    return tuple(roots)


@dataclass(frozen=True)
class CapabilitySet:
    """Every capability of one run, bound to the resolved MSYS2 root."""

    msys2_root: Path
    unix_env: Capability
    packages: tuple[Capability, ...]
    toolchain_manager: Capability
    target: Capability
    toolchain_override: Capability

    def all(self) -> tuple[Capability, ...]:
        return (
            self.unix_env,
            *self.packages,
            self.toolchain_manager,
            self.target,
            self.toolchain_override,
        )


def unix_env_capability(settings: Settings) -> Capability:
    """MSYS2 detected under any well-known root."""
    return Capability(
        id="msys2",
        label="MSYS2 environment",
        criticality=Criticality.REQUIRED,
        probe=ExecutableProbe(candidates=tuple(bash_path(root) for root in msys2_roots(settings))),
    )


def build_capabilities(settings: Settings, msys2_root: Path) -> CapabilitySet:
    """Bind the fixed catalogue to a resolved MSYS2 root.

    Args:
        settings: Run settings.
        msys2_root: The MSYS2 root found during probing, or the configured
            install root when none exists yet.

    Returns:
        CapabilitySet in installation order.
    """
    bash = bash_path(msys2_root)
    rustup = rustup_path(settings)
    packages = tuple(
        Capability(
            id=f"package:{spec.name}",
            label=spec.label,
            criticality=spec.criticality,
            probe=PackageProbe(bash=bash, package=spec.name, group=spec.group),
        )
        for spec in PACKAGES
    )
    return CapabilitySet(
        msys2_root=msys2_root,
        unix_env=unix_env_capability(settings),
        packages=packages,
        toolchain_manager=Capability(
            id="rustup",
            label="rustup toolchain manager",
            criticality=Criticality.REQUIRED,
            probe=ExecutableProbe(candidates=(rustup,)),
        ),
        target=Capability(
            id=f"target:{settings.target}",
            label=f"Rust target {settings.target}",
            criticality=Criticality.REQUIRED,
            probe=TargetProbe(rustup=rustup, target=settings.target),
        ),
        toolchain_override=Capability(
            id="override",
            label=f"{settings.toolchain} as project toolchain",
            criticality=Criticality.OPTIONAL,
            probe=OverrideProbe(
                rustup=rustup, toolchain=settings.toolchain, directory=settings.project_dir
            ),
        ),
    )
