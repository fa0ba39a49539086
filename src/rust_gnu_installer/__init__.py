"""Unattended provisioning of a GNU-toolchain Rust environment on Windows."""

__version__ = "0.1.0"

# Export protocol interfaces for type hints and dependency injection
from rust_gnu_installer.protocols import (
    CapabilityInstaller,
    CapabilityProber,
    Fetcher,
    ProcessRunner,
    RunObserver,
)

__all__ = [
    "__version__",
    "CapabilityInstaller",
    "CapabilityProber",
    "Fetcher",
    "ProcessRunner",
    "RunObserver",
]
