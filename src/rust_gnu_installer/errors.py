"""Error types and message formatting for rust-gnu-installer.

Components raise these exceptions; installers translate them into failed
install steps so that only fatal outcomes reach the orchestrator.

Error Style Guide:
- User-facing errors use 'Error: ' prefix
- Include actionable hints where helpful
- Avoid emojis in error messages (keep them out of the console too)
"""

from __future__ import annotations

ELEVATION_HINT = "re-run with elevated privileges (Run as administrator)"


class ProvisionError(Exception):
    """Base class for provisioning errors."""

    pass


class FetchError(ProvisionError):
    """Download of a remote artifact failed."""

    pass


class NetworkTransientError(FetchError):
    """Temporary network failure (reset, timeout, 5xx). Retried with backoff."""

    pass


class NetworkFatalError(FetchError):
    """Permanent network failure (4xx, malformed URL). Never retried."""

    pass


class IntegrityMismatchError(FetchError):
    """Downloaded content does not match the expected hash or size."""

    pass


class ProcessError(ProvisionError):
    """An external command could not complete."""

    pass


class ProcessSpawnError(ProcessError):
    """The command could not be started at all."""

    pass


class ProcessTimeoutError(ProcessError):
    """The command exceeded its timeout and was killed."""

    pass


class CommandFailedError(ProcessError):
    """The command ran but exited with a non-zero status."""

    def __init__(self, description: str, returncode: int | None, detail: str = "") -> None:
        self.description = description
        self.returncode = returncode
        self.detail = detail
        message = f"{description} failed (exit code {returncode})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PermissionDeniedError(ProvisionError):
    """The operation needs privileges the current process does not hold."""

    def __str__(self) -> str:
        return f"{super().__str__()}. Hint: {ELEVATION_HINT}"


class ConfigWriteError(ProvisionError):
    """The build configuration file could not be written."""

    pass


class VerificationError(ProvisionError):
    """The provisioned toolchain failed the end-to-end check."""

    pass


class SettingsError(ProvisionError):
    """The settings file is unreadable or invalid."""

    pass


def format_error(message: str) -> str:
    """Format an error message with consistent prefix.

    Examples:
        >>> format_error("download failed")
        'Error: download failed'
    """
    return f"Error: {message}"


def format_suggestion(message: str, suggestion: str) -> str:
    """Format an error message with a helpful suggestion.

    Examples:
        >>> format_suggestion("MSYS2 not found", "install it from https://www.msys2.org/")
        'Error: MSYS2 not found. Hint: install it from https://www.msys2.org/'
    """
    return f"{format_error(message)}. Hint: {suggestion}"


def first_line(text: str, default: str = "Unknown error") -> str:
    """Return the first non-blank line of command output."""
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return default


__all__ = [
    "ELEVATION_HINT",
    "CommandFailedError",
    "ConfigWriteError",
    "FetchError",
    "IntegrityMismatchError",
    "NetworkFatalError",
    "NetworkTransientError",
    "PermissionDeniedError",
    "ProcessError",
    "ProcessSpawnError",
    "ProcessTimeoutError",
    "ProvisionError",
    "SettingsError",
    "VerificationError",
    "first_line",
    "format_error",
    "format_suggestion",
]
