import logging
import os
from typing import Sequence

from archpi.errors import MissingDependencyError, OfflineError, RootUserError
from archpi.settings import Settings
from archpi.utils import CommandRunner, Policy, check_internet, command_exists

logger = logging.getLogger("ArchPI")


def check_root():
    if os.geteuid() == 0:
        raise RootUserError()


def check_connectivity(settings: Settings):
    if not check_internet(settings.connectivity_url, settings.connectivity_timeout):
        raise OfflineError()


def check_dependencies(runner: CommandRunner, deps: Sequence[str]):
    """Make sure the required tools exist, installing them unattended if possible.

    The install uses ``sudo -n`` so it never prompts; anything still missing
    afterwards is reported through MissingDependencyError.
    """
    missing = [dep for dep in deps if not command_exists(dep)]
    if not missing:
        return

    logger.info(f"Missing required dependencies: {' '.join(missing)}")
    logger.info("Attempting automatic installation...")
    for dep in missing:
        res = runner.run(
            ["sudo", "-n", "pacman", "-S", "--noconfirm", dep], f"Installing {dep}",
            policy=Policy.PROCEED,
        )
        if not res.ok:
            logger.warning(f"Failed to install {dep} automatically (may require password)")

    still_missing = [dep for dep in missing if not command_exists(dep)]
    if still_missing:
        raise MissingDependencyError(still_missing)
    logger.info("All dependencies successfully installed!")
