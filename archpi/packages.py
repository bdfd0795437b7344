import logging
import shutil
from pathlib import Path
from typing import Iterable, List

from rich.console import Console
from rich.panel import Panel

from archpi.utils import CommandResult, CommandRunner, Policy, command_exists

logger = logging.getLogger("ArchPI")

FLATHUB_URL = "https://dl.flathub.org/repo/flathub.flatpakrepo"
PARU_REPO = "https://aur.archlinux.org/paru.git"


class PackageManager:
    """Handles pacman, paru, and flatpak operations."""

    def __init__(self, runner: CommandRunner, console: Console, temp_dir: Path):
        self.runner = runner
        self.console = console
        self.temp_dir = temp_dir
        self.failed_packages: List[str] = []

    def ensure_paru(self, build_deps: Iterable[str] = ("git", "base-devel")):
        """Bootstrap paru if missing."""
        if command_exists("paru"):
            logger.info("AUR helper 'paru' is already installed")
            return

        self.console.print(Panel("Installing paru AUR helper...", style="cyan"))
        self.install(build_deps, "pacman", policy=Policy.ABORT)

        self.temp_dir.mkdir(parents=True, exist_ok=True)
        clone_dir = self.temp_dir / "paru"
        if clone_dir.exists():
            shutil.rmtree(clone_dir)
        try:
            self.runner.run(["git", "clone", PARU_REPO, str(clone_dir)], "Cloning paru repository")
            # makepkg refuses to run as root; sudo is requested by makepkg itself
            self.runner.run(
                ["makepkg", "-si", "--noconfirm"], "Building and installing paru",
                cwd=clone_dir, quiet=False,
            )
        finally:
            shutil.rmtree(clone_dir, ignore_errors=True)

    def ensure_flathub(self):
        if not command_exists("flatpak"):
            self.install(["flatpak"], "pacman", policy=Policy.ABORT)
        self.runner.run(
            ["flatpak", "remote-add", "--if-not-exists", "flathub", FLATHUB_URL],
            "Adding Flathub repository", sudo=True,
        )

    def install(self, packages: Iterable[str], method: str = "pacman", policy: Policy = Policy.PROCEED) -> bool:
        """Install a package list; returns True when every package went in.

        pacman and paru receive the whole list in one transaction; flatpak
        apps are installed one at a time so a single missing app does not
        block the rest.
        """
        to_install = list(dict.fromkeys(packages))
        if not to_install:
            return True

        self.console.print(f"[cyan]Installing {len(to_install)} packages via {method}...[/cyan]")

        if method == "pacman":
            res = self.runner.run(
                ["pacman", "-S", "--noconfirm", "--needed"] + to_install,
                f"Installing {', '.join(to_install)}", sudo=True, policy=policy, quiet=False,
            )
            failed = [] if res.ok else to_install
        elif method == "aur":
            res = self.runner.run(
                ["paru", "-S", "--noconfirm", "--needed"] + to_install,
                f"Installing {', '.join(to_install)} from AUR", policy=policy, quiet=False,
            )
            failed = [] if res.ok else to_install
        elif method == "flatpak":
            failed = []
            for pkg in to_install:
                res = self.flatpak_install(pkg, policy=policy)
                if not res.ok:
                    failed.append(pkg)
        else:
            raise ValueError(f"Unknown install method: {method}")

        if failed:
            self.console.print(f"[red]Failed to install some packages via {method}[/red]")
            self.failed_packages.extend(failed)
            return False

        self.console.print(f"[green]Successfully installed packages via {method}[/green]")
        return True

    def flatpak_install(self, app: str, policy: Policy = Policy.PROCEED) -> CommandResult:
        return self.runner.run(
            ["flatpak", "install", "-y", "--noninteractive", "flathub", app],
            f"Installing {app}", policy=policy, quiet=False,
        )
