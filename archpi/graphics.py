"""Graphics & display: drivers, themes, boot/login logos, Flatpak hardware acceleration."""

import logging
from pathlib import Path
from typing import Optional, Tuple

from archpi.boot import install_boot_logo
from archpi.catalog import Catalog
from archpi.context import Context
from archpi.errors import StepSkipped
from archpi.probe import GpuVariant
from archpi.settings import read_config
from archpi.utils import Policy

logger = logging.getLogger("ArchPI")

GDM_THEME_DIR = Path("/usr/share/gnome-shell/theme")

VAAPI_DRIVERS = {
    GpuVariant.INTEL: "iHD",
    GpuVariant.AMD: "radeonsi",
    GpuVariant.NVIDIA: "nvidia",
    GpuVariant.UNKNOWN: "auto",
}


def driver_packages(catalog: Catalog, variant: GpuVariant) -> Tuple[str, ...]:
    return catalog.get_packages("graphics", variant.value)


def setup_graphics_drivers(ctx: Context):
    active = ctx.probe.resolve_graphics_driver()
    hardware = ctx.probe.detect_hardware_gpu()
    logger.info(f"Current active driver: {active.value}, hardware: {hardware.value}")

    if GpuVariant.UNKNOWN not in (active, hardware) and active is not hardware:
        proceed = ctx.dialog.yesno(
            "Graphics Driver Mismatch",
            f"Warning: Active driver ({active.value}) doesn't match hardware ({hardware.value}).\n\n"
            "This might indicate driver issues or multiple GPUs.\n\n"
            "Do you want to continue installing drivers?",
        )
        if not proceed:
            logger.info("Graphics driver installation cancelled by user")
            return

    if active is GpuVariant.UNKNOWN:
        logger.warning("Unknown GPU type detected. Installing basic Mesa drivers.")
    ctx.packages.install(driver_packages(ctx.catalog, active), "pacman", policy=Policy.SKIP)
    ctx.console.print("[green]Graphics drivers installed. A reboot may be required.[/green]")


def setup_themes(ctx: Context):
    ctx.packages.install(ctx.catalog.get_packages("graphics", "themes"), "aur")
    ctx.packages.install(ctx.catalog.get_packages("graphics", "theme_flatpaks"), "flatpak")

    for key, value in (("icon-theme", "Adwaita-blue"), ("gtk-theme", "adw-gtk3")):
        ctx.runner.run(
            ["gsettings", "set", "org.gnome.desktop.interface", key, value],
            f"Setting {key} to {value}", policy=Policy.PROCEED,
        )


def setup_systemd_boot_logo(ctx: Context):
    install_boot_logo(ctx, ctx.settings.assets_dir / "logo" / "boot" / "splash.bmp")


def find_gdm_logo(assets_dir: Path) -> Optional[Path]:
    gdm_dir = assets_dir / "logo" / "gdm"
    if not gdm_dir.is_dir():
        return None
    for path in sorted(gdm_dir.iterdir()):
        if path.is_file() and path.suffix in (".png", ".svg"):
            return path
    return None


def setup_gdm_logo(ctx: Context):
    logo = find_gdm_logo(ctx.settings.assets_dir)
    if logo is None:
        raise StepSkipped(f"GDM logo file not found in {ctx.settings.assets_dir / 'logo' / 'gdm'}")

    target = GDM_THEME_DIR / "logo.png"
    if logo.suffix == ".svg":
        ctx.runner.run(["magick", str(logo), str(target)], "Converting and installing SVG logo", sudo=True)
    else:
        ctx.runner.run(["cp", str(logo), str(target)], "Installing PNG logo", sudo=True)

    ctx.files.write(GDM_THEME_DIR / "custom-logo.css", read_config("gdm-custom-logo.css"))
    gdm_css = GDM_THEME_DIR / "gdm.css"
    if gdm_css.exists():
        ctx.files.append_once(gdm_css, "custom-logo.css", "@import url('custom-logo.css');")
    ctx.console.print("[green]GDM logo updated. Changes apply on next login.[/green]")


def choose_hwaccel_variant(ctx: Context, detected: GpuVariant) -> Optional[GpuVariant]:
    """AMD is used as is; anything else is confirmed through a menu."""
    if detected is GpuVariant.AMD:
        return detected
    choice = ctx.dialog.menu(
        "Hardware Acceleration Driver Selection",
        "Select the GPU driver to use for Flatpak hardware acceleration:",
        [
            ("auto", f"Auto-detect from current driver ({detected.value})"),
            ("intel", "Intel VA-API (iHD driver)"),
            ("amd", "AMD/Radeon VA-API"),
            ("nvidia", "NVIDIA NVENC/NVDEC"),
        ],
    )
    if choice is None:
        return None
    if choice == "auto":
        return detected
    return GpuVariant(choice)


def hwaccel_environment(variant: GpuVariant) -> str:
    return (
        "# Hardware acceleration for Flatpak applications\n"
        f"LIBVA_DRIVER_NAME={VAAPI_DRIVERS[variant]}\n"
        "VDPAU_DRIVER=va_gl\n"
    )


def setup_hardware_acceleration_flatpak(ctx: Context):
    variant = choose_hwaccel_variant(ctx, ctx.probe.resolve_graphics_driver())
    if variant is None:
        logger.info("Hardware acceleration setup cancelled by user")
        return

    ctx.packages.install(ctx.catalog.get_packages("hwaccel", variant.value), "pacman", policy=Policy.SKIP)
    ctx.files.write(ctx.settings.environment_dir / "10-flatpak-hwaccel.conf", hwaccel_environment(variant))

    override = ["flatpak", "override", "--system", "--device=dri", "--socket=wayland", "--share=ipc"]
    if variant is not GpuVariant.UNKNOWN:
        override.append(f"--env=LIBVA_DRIVER_NAME={VAAPI_DRIVERS[variant]}")
    ctx.runner.run(
        override + ["com.obsproject.Studio"],
        "Configuring OBS Studio for hardware acceleration", sudo=True, policy=Policy.PROCEED,
    )
    ctx.console.print(
        f"[green]Flatpak hardware acceleration: {variant.value} (VA-API: {VAAPI_DRIVERS[variant]})[/green]"
    )
