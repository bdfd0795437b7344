import logging
import os
import shutil
import subprocess
import urllib.error
import urllib.request
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Tuple

from archpi.errors import CommandError, StepSkipped

logger = logging.getLogger("ArchPI")


class Policy(Enum):
    """What a failed command means for the component that issued it."""

    ABORT = "abort"  # stop this and every remaining selection
    SKIP = "skip"  # give up on this component, continue with the next
    PROCEED = "proceed"  # caller inspects the result itself


@dataclass(frozen=True)
class CommandResult:
    cmd: Tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Execute external commands, log them, and apply a failure policy."""

    def __init__(self, elevate: bool = True):
        self.elevate = elevate

    def _prepare(self, cmd: Sequence[str], sudo: bool):
        cmd = [str(part) for part in cmd]
        if sudo and self.elevate and os.geteuid() != 0:
            cmd = ["sudo"] + cmd
        return cmd

    def run(
        self,
        cmd: Sequence[str],
        description: Optional[str] = None,
        sudo: bool = False,
        policy: Policy = Policy.ABORT,
        quiet: bool = True,
        timeout: Optional[int] = None,
        input: Optional[str] = None,
        cwd: Optional[Path] = None,
    ) -> CommandResult:
        """Execute a command safely."""
        cmd = self._prepare(cmd, sudo)
        cmd_str = " ".join(cmd)
        description = description or cmd_str
        logger.info(f"{description}: {cmd_str}")

        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE if quiet else None,
                stderr=subprocess.PIPE if quiet else None,
                input=input,
                text=True,
                timeout=timeout,
                cwd=cwd,
            )
            result = CommandResult(tuple(cmd), proc.returncode, proc.stdout or "", proc.stderr or "")
        except FileNotFoundError:
            logger.error(f"Command not found: {cmd[0]}")
            result = CommandResult(tuple(cmd), 127, "", f"{cmd[0]}: command not found")
        except subprocess.TimeoutExpired:
            logger.error(f"Command timed out after {timeout}s: {cmd_str}")
            result = CommandResult(tuple(cmd), 124, "", "Timeout")

        if result.ok:
            logger.info(f"✓ {description} completed successfully")
            return result

        logger.error(f"✗ {description} failed (exit code {result.returncode})")
        if quiet and result.stderr.strip():
            logger.error(f"Stderr: {result.stderr.strip()}")

        if policy is Policy.ABORT:
            raise CommandError(cmd, result.returncode, description)
        if policy is Policy.SKIP:
            raise StepSkipped(f"{description} failed (exit code {result.returncode})")
        return result

    def output(self, cmd: Sequence[str], timeout: Optional[int] = 10) -> Optional[str]:
        """Stdout of a probing command, or None when it is missing or fails.

        Never raises; used for hardware detection where a failing tool just
        means "no signal".
        """
        try:
            proc = subprocess.run(
                [str(part) for part in cmd],
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                timeout=timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug(f"Probe {' '.join(cmd)} unavailable: {e}")
            return None
        if proc.returncode != 0:
            return None
        return proc.stdout


def command_exists(name: str) -> bool:
    return shutil.which(name) is not None


def check_internet(url: str = "https://archlinux.org", timeout: int = 3) -> bool:
    try:
        with urllib.request.urlopen(url, timeout=timeout):
            return True
    except (urllib.error.URLError, OSError):
        return False
