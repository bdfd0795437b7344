"""System enhancements: memory, DNS caching, fonts, kernel tweaks and updates."""

import logging
from functools import partial
from pathlib import Path
from typing import Optional

from archpi.context import Context
from archpi.errors import StepSkipped
from archpi.files import append_block, remove_lines_containing, set_directive
from archpi.settings import read_config
from archpi.utils import Policy, command_exists

logger = logging.getLogger("ArchPI")

GIB = 1024 ** 3
PAGE_SIZE = 4096
ZSWAP_SIZES_GB = (4, 6, 8, 12, 16, 20, 24, 28, 32, 64)
ZSWAP_PARAMS = "enabled=1 compressor=zstd zpool=zsmalloc same_filled_pages_enabled=1 max_pool_percent=100"

RESOLVED_CONF = Path("/etc/systemd/resolved.conf")
DNSMASQ_CONF = Path("/etc/dnsmasq.conf")
EARLYOOM_CONF = Path("/etc/default/earlyoom")
CACHYOS_SYSCTL = Path("/usr/lib/sysctl.d/99-cachyos.conf")

UPDATE_SCRIPT = "system-auto-update.sh"
UPDATE_LOG = Path("/var/log/system-auto-update.log")
UPDATE_DAYS = (
    (0, "Runs every Sunday at 12:00"),
    (2, "Retry on Tuesday 12:00 if Sunday failed"),
    (4, "Retry on Thursday 12:00 if Tuesday failed"),
    (6, "Final retry on Saturday 12:00 if Thursday failed"),
)


def _enable_service(ctx: Context, unit: str, description: str):
    ctx.runner.run(["systemctl", "enable", "--now", unit], description, sudo=True, policy=Policy.PROCEED)


# --- Zswap ---


def choose_zswap_size(ctx: Context) -> Optional[int]:
    default = ctx.settings.zswap_default_gb
    choices = [("auto", f"Automatic ({default}GB default)")]
    choices += [(f"{size}gb", f"{size}GB compressed pool") for size in ZSWAP_SIZES_GB]
    choice = ctx.dialog.menu(
        "Zswap Size Configuration",
        f"Select the maximum Zswap pool size (default: {default}GB):",
        choices,
    )
    if choice is None:
        return None
    if choice == "auto":
        return default
    return int(choice[: -len("gb")])


def zswap_sysctl(size_gb: int) -> str:
    size_bytes = size_gb * GIB
    return (
        "# Zswap pool size\n"
        f"# Maximum compressed pool size: {size_gb}GB ({size_bytes} bytes)\n"
        f"vm.zswap.max_pool_pages = {size_bytes // PAGE_SIZE}\n"
    )


def setup_zswap(ctx: Context):
    size_gb = choose_zswap_size(ctx)
    if size_gb is None:
        logger.info("Zswap setup cancelled by user")
        return

    s = ctx.settings
    sysctl_conf = s.sysctl_dir / "99-zswap.conf"
    ctx.files.write(s.modprobe_dir / "zswap.conf", read_config("zswap-modprobe.conf"))
    ctx.files.write(sysctl_conf, zswap_sysctl(size_gb))
    ctx.files.write(s.udev_rules_dir / "99-zswap.rules", read_config("zswap.rules"))

    ctx.runner.run(["sysctl", "--load", str(sysctl_conf)], "Applying Zswap sysctl settings", sudo=True,
                   policy=Policy.PROCEED)
    if not ctx.probe.module_loaded("zswap"):
        ctx.runner.run(["modprobe", "zswap"] + ZSWAP_PARAMS.split(), "Loading Zswap module", sudo=True,
                       policy=Policy.PROCEED)

    if ctx.probe.module_loaded("zswap"):
        ctx.console.print(f"[green]Zswap active with a {size_gb}GB compressed pool.[/green]")
    else:
        logger.warning("Zswap module not loaded yet; it will be enabled on next boot")
    logger.warning(f"Zswap uses up to {size_gb}GB of RAM for compressed swap")


# --- Services and tweaks ---


def setup_cachyos_configuration(ctx: Context):
    ctx.packages.install(ctx.catalog.get_packages("enhancements", "cachyos"), "pacman", policy=Policy.SKIP)
    if CACHYOS_SYSCTL.exists():
        ctx.runner.run(
            ["sysctl", "--load", str(CACHYOS_SYSCTL)], "Loading CachyOS sysctl settings", sudo=True,
            policy=Policy.PROCEED,
        )
    else:
        logger.warning(f"{CACHYOS_SYSCTL} not found; settings apply after reboot")


def setup_dnsmasq(ctx: Context):
    ctx.packages.install(ctx.catalog.get_packages("enhancements", "dnsmasq"), "pacman", policy=Policy.SKIP)
    ctx.files.write(DNSMASQ_CONF, read_config("dnsmasq.conf"))
    ctx.files.patch(
        RESOLVED_CONF,
        partial(set_directive, key="DNS", value="127.0.0.1", sep="="),
        partial(set_directive, key="DNSStubListener", value="no", sep="="),
    )
    _enable_service(ctx, "dnsmasq", "Enabling DNSMasq service")
    ctx.runner.run(
        ["systemctl", "restart", "systemd-resolved"], "Restarting systemd-resolved", sudo=True,
        policy=Policy.PROCEED,
    )


def setup_earlyoom(ctx: Context):
    ctx.packages.install(ctx.catalog.get_packages("enhancements", "earlyoom"), "pacman", policy=Policy.SKIP)
    ctx.files.write(EARLYOOM_CONF, read_config("earlyoom"))
    _enable_service(ctx, "earlyoom", "Enabling EarlyOOM service")


def setup_microsoft_corefonts(ctx: Context):
    ctx.packages.ensure_paru()
    if ctx.packages.install(ctx.catalog.get_packages("enhancements", "msfonts"), "aur", policy=Policy.SKIP):
        ctx.runner.run(["fc-cache", "-fv"], "Updating font cache", policy=Policy.PROCEED)


def setup_split_lock_mitigation(ctx: Context):
    conf = ctx.settings.sysctl_dir / "99-split-lock-mitigation.conf"
    ctx.files.write(conf, read_config("split-lock-mitigation.conf"))
    ctx.runner.run(["sysctl", "--load", str(conf)], "Applying split-lock mitigation settings", sudo=True,
                   policy=Policy.PROCEED)
    logger.warning("Split-lock mitigation disabled; this reduces security on vulnerable CPUs")


# --- Updates ---


def setup_topgrade(ctx: Context):
    ctx.packages.ensure_paru()
    ctx.packages.install(ctx.catalog.get_packages("enhancements", "topgrade"), "aur", policy=Policy.SKIP)
    ctx.files.write(ctx.settings.user_config_dir / "topgrade.toml", read_config("topgrade.toml"), sudo=False)
    ctx.console.print("[green]Topgrade configured with paru AUR support. Run 'topgrade' to update.[/green]")


def crontab_block(script: Path) -> str:
    entries = []
    for day, comment in UPDATE_DAYS:
        entries.append(f"# System auto update - {comment}\n0 12 * * {day}   root    {script}")
    return "\n\n".join(entries)


def update_crontab(text: str, script: Path) -> str:
    """Replace earlier auto-update entries with the current schedule."""
    cleaned = remove_lines_containing(text, "system-auto-update")
    cleaned = remove_lines_containing(cleaned, "# System auto update")
    return append_block(cleaned, str(script), crontab_block(script))


def setup_crontab_system_updates(ctx: Context):
    if not command_exists("topgrade"):
        raise StepSkipped("Topgrade not found. Install it first through the System Enhancements menu.")

    script = ctx.settings.local_bin / UPDATE_SCRIPT
    ctx.files.write(script, read_config(UPDATE_SCRIPT), mode="755")
    ctx.runner.run(["touch", str(UPDATE_LOG)], "Creating update log", sudo=True, policy=Policy.PROCEED)

    crontab = ctx.settings.crontab
    ctx.files.write(crontab, update_crontab(ctx.files.read(crontab), script))

    ctx.packages.install(ctx.catalog.get_packages("enhancements", "cron"), "pacman", policy=Policy.SKIP)
    _enable_service(ctx, "cronie", "Enabling cron service")

    logger.info("Schedule: Sunday, Tuesday, Thursday and Saturday at 12:00")
    logger.info(f"Update logs available at: {UPDATE_LOG}")
