"""Application sets: utilities, codecs, Flatpak apps, gaming, virtualization."""

import logging

from archpi.context import Context
from archpi.utils import Policy

logger = logging.getLogger("ArchPI")


def setup_utilities(ctx: Context):
    ctx.packages.install(ctx.catalog.get_packages("applications", "utilities"), "pacman")


def setup_codecs_and_multimedia(ctx: Context):
    ctx.packages.install(ctx.catalog.get_packages("applications", "codecs"), "pacman")


def setup_flatpak_applications(ctx: Context):
    ctx.packages.ensure_flathub()
    for group in ctx.catalog.subcategories("flatpak"):
        ctx.console.print(f"[cyan]Installing {group} apps...[/cyan]")
        ctx.packages.install(ctx.catalog.get_packages("flatpak", group), "flatpak")

    if ctx.packages.failed_packages:
        logger.warning(f"Packages that failed so far: {', '.join(ctx.packages.failed_packages)}")


def setup_gaming(ctx: Context):
    ctx.packages.ensure_paru()
    ctx.packages.install(ctx.catalog.get_packages("gaming", "aur"), "aur")
    ctx.runner.run(
        ["systemctl", "--user", "enable", "--now", "gamemoded"], "Enabling gamemode",
        policy=Policy.PROCEED,
    )


def setup_virtualization(ctx: Context):
    ctx.packages.install(ctx.catalog.get_packages("virtualization", "pacman"), "pacman", policy=Policy.SKIP)
    ctx.packages.ensure_paru()
    ctx.packages.install(ctx.catalog.get_packages("virtualization", "aur"), "aur")
    ctx.runner.run(["systemctl", "enable", "--now", "libvirtd.service"], "Enabling libvirt service", sudo=True)
    ctx.runner.run(
        ["usermod", "-aG", "libvirt", ctx.user], "Adding user to libvirt group", sudo=True,
        policy=Policy.PROCEED,
    )
