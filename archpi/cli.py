"""Command-line entry point."""

import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from archpi import __version__
from archpi.catalog import Catalog
from archpi.checks import check_connectivity, check_dependencies, check_root
from archpi.context import Context
from archpi.errors import ArchPIError
from archpi.menu import MainMenu
from archpi.settings import Settings, load_settings

logger = logging.getLogger("ArchPI")
console = Console()

BANNER = f"Arch Linux Post-Installation Script v{__version__}"

USAGE = f"""{BANNER}

Usage: archpi [options]

Options:
  --help, -h    Show this help message
  --version, -v Show version information

Run without arguments for interactive mode.

The splash and GDM logo steps read optional images from an assets/ directory
next to install.py (logo/boot/*.bmp, logo/gdm/*). Set assets_dir in the
$ARCHPI_CONFIG file to use another location; without images these steps
are skipped."""


def setup_logging(settings: Settings):
    settings.log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(settings.log_file, mode="a")
    file_handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    console_handler = RichHandler(console=console, show_path=False)

    logger.setLevel(logging.INFO)
    logger.handlers[:] = [file_handler, console_handler]
    logger.propagate = False


def run(settings: Settings):
    catalog = Catalog()
    ctx = Context.create(settings, catalog, console)

    check_root()
    check_connectivity(settings)
    check_dependencies(ctx.runner, catalog.get_packages("dependencies"))

    logger.info("Authenticating sudo credentials. You may be prompted for your password once.")
    ctx.runner.run(["sudo", "-v"], "Authenticating sudo", quiet=False)

    settings.temp_dir.mkdir(parents=True, exist_ok=True)
    settings.backup_dir.mkdir(parents=True, exist_ok=True)

    MainMenu(ctx).run()


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    first = args[0] if args else None
    if first in ("--help", "-h"):
        print(USAGE)
        return 0
    if first in ("--version", "-v"):
        print(BANNER)
        return 0

    try:
        settings = load_settings()
        setup_logging(settings)
        run(settings)
    except ArchPIError as e:
        logger.error(str(e))
        console.print(Panel(str(e), style="bold red"))
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
