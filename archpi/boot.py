"""Boot configuration: quiet boot, splash, Secure Boot, CachyOS kernels, recovery."""

import logging
import re
import sys
from functools import partial
from pathlib import Path
from typing import List, Optional

from archpi.context import Context
from archpi.errors import StepSkipped
from archpi.files import append_to_line, set_directive
from archpi.utils import Policy

logger = logging.getLogger("ArchPI")

BOOT_SPLASH_TARGET = Path("/usr/share/systemd/bootctl/splash.bmp")
PLYMOUTH_THEMES = Path("/usr/share/plymouth/themes")
PACKAGE_ROOT = Path(__file__).resolve().parent.parent
COUNTER_UNIT = "archpi-boot-counter.service"
SUCCESS_UNIT = "archpi-boot-success.service"


def _require_systemd_boot(ctx: Context):
    if not ctx.settings.loader_dir.is_dir():
        raise StepSkipped("systemd-boot not detected; this component requires systemd-boot")


def find_arch_entry(entries_dir: Path) -> Optional[Path]:
    """The main Arch Linux boot entry: arch.conf, or any entry titled Arch Linux."""
    for entry in sorted(entries_dir.glob("*.conf")):
        if "fallback" in entry.name:
            continue
        if entry.name == "arch.conf" or "Arch Linux" in entry.read_text():
            return entry
    return None


def configure_kernel_quiet_params(ctx: Context):
    _require_systemd_boot(ctx)
    entry = find_arch_entry(ctx.settings.loader_entries)
    if entry is None:
        raise StepSkipped(f"No Arch Linux systemd-boot entry found in {ctx.settings.loader_entries}")

    if ctx.files.patch(entry, partial(append_to_line, prefix="options", suffix="quiet splash")):
        logger.info(f"Added 'quiet splash' to {entry.name}")
    else:
        logger.info(f"Quiet splash parameters already present in {entry.name}")


def install_boot_logo(ctx: Context, asset: Path):
    if not asset.is_file():
        raise StepSkipped(f"Splash logo not found at {asset}")
    ctx.runner.run(["cp", str(asset), str(BOOT_SPLASH_TARGET)], "Installing splash logo", sudo=True)
    if ctx.settings.loader_dir.is_dir():
        ctx.runner.run(["bootctl", "update"], "Updating systemd-boot", sudo=True, policy=Policy.PROCEED)
    else:
        logger.warning("systemd-boot not detected. Splash logo may not be used.")


def setup_quiet_boot(ctx: Context):
    s = ctx.settings
    ctx.packages.install(ctx.catalog.get_packages("system", "plymouth"), "pacman", policy=Policy.SKIP)

    ctx.files.patch(s.plymouth_conf, partial(set_directive, key="Theme", value=s.plymouth_theme, sep="="))
    theme_dir = PLYMOUTH_THEMES / s.plymouth_theme
    if theme_dir.is_dir():
        ctx.runner.run(
            ["find", str(theme_dir), "-name", "*watermark*", "-delete"],
            "Removing theme watermark", sudo=True, policy=Policy.PROCEED,
        )

    configure_kernel_quiet_params(ctx)
    ctx.runner.run(["bootctl", "install"], "Ensuring systemd-boot is installed", sudo=True, policy=Policy.PROCEED)
    ctx.runner.run(["mkinitcpio", "-P"], "Regenerating initramfs with Plymouth support", sudo=True, quiet=False)

    try:
        install_boot_logo(ctx, s.assets_dir / "logo" / "boot" / "splash-arch.bmp")
    except StepSkipped as e:
        logger.warning(str(e))

    ctx.console.print("[green]Quiet boot configured. Reboot to see the new boot sequence.[/green]")


def unsigned_files(verify_output: str) -> List[str]:
    """Paths reported as unsigned by ``sbctl verify``."""
    files = []
    for line in verify_output.splitlines():
        if "not signed" not in line:
            continue
        match = re.search(r"(/\S+)", line)
        if match:
            files.append(match.group(1))
    return files


def setup_secure_boot(ctx: Context):
    logger.warning("Secure Boot setup can make the system unbootable if done incorrectly.")
    confirmed = ctx.dialog.yesno(
        "Warning: Secure Boot Setup",
        "Setting up Secure Boot can make your system unbootable if not configured properly.\n\n"
        "You need:\n- UEFI firmware in Setup Mode\n- Physical access for recovery\n"
        "- Basic knowledge of Secure Boot\n\nContinue only if you're sure!",
    )
    if not confirmed:
        logger.info("Secure Boot setup cancelled by user.")
        return

    ctx.packages.install(ctx.catalog.get_packages("system", "secureboot"), "pacman", policy=Policy.SKIP)
    ctx.runner.run(["sbctl", "status"], "Checking Secure Boot status", sudo=True, policy=Policy.PROCEED)
    ctx.runner.run(["sbctl", "create-keys"], "Generating Secure Boot keys", sudo=True, policy=Policy.SKIP)
    ctx.runner.run(
        ["sbctl", "enroll-keys", "--microsoft"], "Enrolling keys into UEFI firmware", sudo=True,
        policy=Policy.SKIP,
    )

    verify = ctx.runner.run(["sbctl", "verify"], "Listing boot files", sudo=True, policy=Policy.PROCEED)
    pending = unsigned_files(verify.stdout)
    if not pending:
        logger.warning("No unsigned boot files detected. You may need to sign them manually later.")
    for path in pending:
        ctx.runner.run(["sbctl", "sign", "-s", path], f"Signing {path}", sudo=True, policy=Policy.PROCEED)

    ctx.runner.run(["sbctl", "verify"], "Verifying signatures", sudo=True, policy=Policy.PROCEED)
    ctx.console.print(
        "[yellow]Secure Boot configured. If the system does not boot, disable Secure Boot in the firmware.[/yellow]"
    )


def setup_cachyos_kernel(ctx: Context):
    if "[chaotic-aur]" not in ctx.files.read(ctx.settings.pacman_conf):
        raise StepSkipped("Chaotic-AUR repository is required for CachyOS kernels; configure pacman first")

    ctx.packages.install(ctx.catalog.get_packages("system", "kernel"), "pacman", policy=Policy.SKIP)
    _require_systemd_boot(ctx)
    set_default_kernel(ctx)
    setup_boot_failure_recovery(ctx)

    ctx.console.print("[green]CachyOS kernel set as default; LTS kernel kept as fallback.[/green]")
    ctx.console.print(
        f"[green]Recovery: {ctx.settings.boot_failure_threshold} failed boots bring up the recovery menu.[/green]"
    )


def find_kernel_entry(entries_dir: Path, kernel: str = "linux-cachyos") -> Optional[Path]:
    for entry in sorted(entries_dir.glob("*.conf")):
        content = entry.read_text()
        if kernel in content and "lts" not in content and "fallback" not in entry.name:
            return entry
    return None


def set_default_kernel(ctx: Context):
    entry = find_kernel_entry(ctx.settings.loader_entries)
    if entry is None:
        raise StepSkipped("No CachyOS boot entry found; systemd-boot configuration may be required")

    conf = ctx.settings.loader_conf
    content = ctx.files.read(conf)
    line = f"default {entry.name}"
    if re.search(r"^default\b", content, re.MULTILINE):
        updated = re.sub(r"^default\b.*$", line, content, count=1, flags=re.MULTILINE)
    else:
        updated = f"{line}\n{content}"
    if updated != content:
        ctx.files.write(conf, updated)
    ctx.runner.run(["bootctl", "update"], "Updating systemd-boot", sudo=True, policy=Policy.PROCEED)


def bootguard_command(ctx: Context, action: str) -> str:
    s = ctx.settings
    return (
        f"{sys.executable} -m archpi.bootguard {action} "
        f"--count-file {s.boot_count_file} --threshold {s.boot_failure_threshold} "
        f"--loader-dir {s.loader_dir}"
    )


def unit_mounts(ctx: Context) -> str:
    """Paths the boot-time command needs mounted."""
    paths = [
        ctx.settings.loader_dir,
        ctx.settings.boot_count_file.parent,
        Path(sys.executable).parent,
        Path(sys.executable).resolve().parent,
        PACKAGE_ROOT,
    ]
    return " ".join(dict.fromkeys(str(p) for p in paths))


def counter_unit(ctx: Context) -> str:
    return f"""[Unit]
Description=ArchPI Boot Failure Counter
DefaultDependencies=no
After=local-fs.target
RequiresMountsFor={unit_mounts(ctx)}
Before=sysinit.target

[Service]
Type=oneshot
RemainAfterExit=yes
Environment="PYTHONPATH={PACKAGE_ROOT}"
ExecStart={bootguard_command(ctx, "attempt")}
StandardOutput=journal+console
StandardError=journal+console

[Install]
WantedBy=sysinit.target
"""


def success_unit(ctx: Context) -> str:
    return f"""[Unit]
Description=ArchPI Boot Success Reset
After=multi-user.target
RequiresMountsFor={unit_mounts(ctx)}

[Service]
Type=oneshot
Environment="PYTHONPATH={PACKAGE_ROOT}"
ExecStart={bootguard_command(ctx, "success")}

[Install]
WantedBy=multi-user.target
"""


def setup_boot_failure_recovery(ctx: Context):
    s = ctx.settings
    ctx.backups.backup(s.loader_conf)
    if not s.boot_count_file.exists():
        ctx.files.write(s.boot_count_file, "0\n", mode="644", backup=False)

    ctx.files.write(s.systemd_unit_dir / COUNTER_UNIT, counter_unit(ctx))
    ctx.files.write(s.systemd_unit_dir / SUCCESS_UNIT, success_unit(ctx))

    ctx.runner.run(["systemctl", "daemon-reload"], "Reloading systemd daemon", sudo=True)
    ctx.runner.run(
        ["systemctl", "enable", COUNTER_UNIT, SUCCESS_UNIT], "Enabling boot failure counter services",
        sudo=True,
    )
    logger.info(f"{s.boot_failure_threshold} consecutive boot failures will trigger the recovery menu")
