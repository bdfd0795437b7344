"""System configuration: pacman, repositories, AUR helper, locales, services, Snapper."""

import logging
from functools import partial
from pathlib import Path

from archpi.context import Context
from archpi.files import insert_after, set_directive, uncomment_directive, uncomment_section
from archpi.settings import read_config
from archpi.utils import Policy

logger = logging.getLogger("ArchPI")

CHAOTIC_BLOCK = """
[chaotic-aur]
Include = /etc/pacman.d/chaotic-mirrorlist
"""

LIZARDBYTE_BLOCK = """
[lizardbyte]
SigLevel = Optional
Server = https://github.com/LizardByte/pacman-repo/releases/latest/download
"""

SNAPPER_CONFIG = Path("/etc/snapper/configs/root")
SNAP_PAC_INI = Path("/etc/snap-pac.ini")


def setup_pacman(ctx: Context):
    s = ctx.settings
    ctx.console.print("[cyan]Optimizing pacman configuration...[/cyan]")
    ctx.files.patch(
        s.pacman_conf,
        partial(uncomment_section, section="multilib"),
        partial(uncomment_directive, directive="Color"),
        partial(insert_after, anchor="Color", line="ILoveCandy"),
        partial(uncomment_directive, directive="VerbosePkgLists"),
        partial(set_directive, key="ParallelDownloads", value=str(s.parallel_downloads)),
    )

    refresh_mirrors(ctx)
    ctx.runner.run(["pacman", "-Syuu", "--noconfirm"], "Updating system", sudo=True, quiet=False)

    add_chaotic_repository(ctx)
    add_lizardbyte_repository(ctx)
    ctx.runner.run(["pacman", "-Syu", "--noconfirm"], "Syncing repositories", sudo=True, quiet=False)


def refresh_mirrors(ctx: Context):
    """Rank mirrors with reflector; put the previous list back if it fails."""
    s = ctx.settings
    ctx.packages.install(ctx.catalog.get_packages("system", "reflector"), "pacman")
    ctx.backups.backup(s.mirrorlist)
    res = ctx.runner.run(
        ["timeout", str(s.mirror_timeout), "reflector", "--country", s.mirror_country,
         "--sort", "rate", "--save", str(s.mirrorlist)],
        "Updating mirrorlist", sudo=True, timeout=s.mirror_timeout + 15, policy=Policy.PROCEED,
    )
    if not res.ok:
        logger.warning("Mirror refresh failed, restoring the previous mirrorlist")
        ctx.backups.restore_latest(s.mirrorlist)


def add_chaotic_repository(ctx: Context):
    conf = ctx.settings.pacman_conf
    if "[chaotic-aur]" in ctx.files.read(conf):
        logger.info("Chaotic-AUR repository already configured")
        return

    repo = ctx.catalog.get_mapping("repositories", "chaotic")
    ctx.runner.run(
        ["pacman-key", "--recv-key", repo["key"], "--keyserver", repo["keyserver"]],
        "Receiving Chaotic-AUR key", sudo=True,
    )
    ctx.runner.run(["pacman-key", "--lsign-key", repo["key"]], "Signing Chaotic-AUR key", sudo=True)
    ctx.runner.run(
        ["pacman", "-U", "--noconfirm", repo["keyring"], repo["mirrorlist"]],
        "Installing Chaotic keyring and mirrorlist", sudo=True, quiet=False,
    )
    ctx.files.append_once(conf, "[chaotic-aur]", CHAOTIC_BLOCK)


def add_lizardbyte_repository(ctx: Context):
    ctx.files.append_once(ctx.settings.pacman_conf, "[lizardbyte]", LIZARDBYTE_BLOCK)


def install_aur_helper(ctx: Context):
    ctx.packages.ensure_paru(ctx.catalog.get_packages("system", "aur_build"))


def setup_locales(ctx: Context):
    s = ctx.settings
    ctx.files.patch(s.locale_gen, *(partial(uncomment_directive, directive=loc) for loc in s.locales))
    ctx.runner.run(["locale-gen"], "Generating locales", sudo=True)
    ctx.files.write(s.locale_conf, f"LANG={s.lang}\n")


def setup_system_services(ctx: Context):
    ctx.packages.install(ctx.catalog.get_packages("system", "services"), "pacman", policy=Policy.SKIP)

    for service in ("bluetooth.service", "cups.service"):
        ctx.runner.run(
            ["systemctl", "enable", "--now", service], f"Enabling {service}", sudo=True,
            policy=Policy.PROCEED,
        )

    ctx.runner.run(
        ["usermod", "-aG", "lp,scanner", ctx.user], "Adding user to printer groups", sudo=True,
        policy=Policy.PROCEED,
    )


def setup_snapper(ctx: Context):
    ctx.packages.install(ctx.catalog.get_packages("system", "snapper"), "pacman", policy=Policy.SKIP)

    if not SNAPPER_CONFIG.exists():
        # snapper wants to create /.snapshots itself
        ctx.runner.run(["umount", "/.snapshots"], "Unmounting /.snapshots", sudo=True, policy=Policy.PROCEED)
        ctx.runner.run(["rm", "-rf", "/.snapshots"], "Removing /.snapshots", sudo=True, policy=Policy.PROCEED)
        ctx.runner.run(
            ["snapper", "-c", "root", "create-config", "/"], "Creating Snapper root config",
            sudo=True, policy=Policy.SKIP,
        )

    ctx.files.write(SNAPPER_CONFIG, read_config("snapper-root"))
    ctx.files.write(SNAP_PAC_INI, read_config("snap-pac.ini"))

    for timer in ("snapper-timeline.timer", "snapper-cleanup.timer"):
        ctx.runner.run(["systemctl", "enable", "--now", timer], f"Enabling {timer}", sudo=True)

    ctx.runner.run(
        ["snapper", "-c", "root", "create", "-d", "Fresh system install"],
        "Creating initial system snapshot", sudo=True, policy=Policy.PROCEED,
    )
    ctx.console.print("[green]Snapper configured. Use 'sudo snapper -c root list' to view snapshots.[/green]")
