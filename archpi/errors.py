"""Exceptions raised by ArchPI components."""

from typing import List, Optional, Sequence


class ArchPIError(Exception):
    """Base class for all ArchPI errors."""


class ConfigError(ArchPIError):
    """Invalid settings or package catalog."""


class RootUserError(ArchPIError):
    """The installer was started as root."""

    def __init__(self):
        super().__init__(
            "Do NOT run as root. Run as a regular user with sudo privileges."
        )


class OfflineError(ArchPIError):
    """No internet connection."""

    def __init__(self):
        super().__init__("No internet connection detected. Please check your network.")


class MissingDependencyError(ArchPIError):
    """Required tools are still missing after the automatic install attempt."""

    def __init__(self, missing: Sequence[str]):
        self.missing: List[str] = list(missing)
        super().__init__(
            f"Missing required dependencies: {' '.join(self.missing)}. "
            f"Please install them manually with: sudo pacman -S {' '.join(self.missing)}"
        )


class CommandError(ArchPIError):
    """An external command failed under the abort policy."""

    def __init__(self, cmd: Sequence[str], returncode: int, description: Optional[str] = None):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.description = description or " ".join(self.cmd)
        super().__init__(f"{self.description} failed (exit code {returncode})")


class StepSkipped(ArchPIError):
    """A component gave up; the remaining selections still run."""
