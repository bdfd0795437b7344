"""Interactive menus and dispatch of the selected components."""

import logging
import shutil
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from rich.panel import Panel

from archpi import apps, boot, devtools, enhancements, gnome, graphics, system
from archpi.context import Context
from archpi.errors import CommandError, StepSkipped
from archpi.utils import Policy

logger = logging.getLogger("ArchPI")


class Category(Enum):
    SYSTEM = "System Configuration"
    GRAPHICS = "Graphics & Display"
    DEVELOPMENT = "Development Tools"
    APPLICATIONS = "Applications"
    ENHANCEMENTS = "System Enhancements"


class Component(Enum):
    # System
    PACMAN = "pacman"
    AUR = "aur"
    LOCALES = "locales"
    KERNEL = "kernel"
    SNAPPER = "snapper"
    SERVICES = "services"
    PLYMOUTH = "plymouth"
    SECUREBOOT = "secureboot"
    # Graphics
    DRIVERS = "drivers"
    THEMES = "themes"
    SPLASH = "splash"
    GDM = "gdm"
    # Development
    TERMINAL = "terminal"
    DEVTOOLS = "devtools"
    # Applications
    UTILITIES = "utilities"
    CODECS = "codecs"
    FLATPAK = "flatpak"
    GAMING = "gaming"
    VIRTUALIZATION = "virtualization"
    # Enhancements
    ZSWAP = "zswap"
    CACHYOS = "cachyos"
    DNSMASQ = "dnsmasq"
    EARLYOOM = "earlyoom"
    MSFONTS = "msfonts"
    SPLITLOCK = "splitlock"
    FLATPAK_HWACCEL = "flatpak-hwaccel"
    TOPGRADE = "topgrade"
    CRON = "cron"
    # GNOME
    GNOME_MENU = "gnome-menu"
    GNOME_EXTENSIONS = "gnome-extensions"


Handler = Callable[[Context], None]

HANDLERS: Dict[Component, Handler] = {
    Component.PACMAN: system.setup_pacman,
    Component.AUR: system.install_aur_helper,
    Component.LOCALES: system.setup_locales,
    Component.KERNEL: boot.setup_cachyos_kernel,
    Component.SNAPPER: system.setup_snapper,
    Component.SERVICES: system.setup_system_services,
    Component.PLYMOUTH: boot.setup_quiet_boot,
    Component.SECUREBOOT: boot.setup_secure_boot,
    Component.DRIVERS: graphics.setup_graphics_drivers,
    Component.THEMES: graphics.setup_themes,
    Component.SPLASH: graphics.setup_systemd_boot_logo,
    Component.GDM: graphics.setup_gdm_logo,
    Component.TERMINAL: devtools.setup_terminal,
    Component.DEVTOOLS: devtools.setup_development_tools,
    Component.UTILITIES: apps.setup_utilities,
    Component.CODECS: apps.setup_codecs_and_multimedia,
    Component.FLATPAK: apps.setup_flatpak_applications,
    Component.GAMING: apps.setup_gaming,
    Component.VIRTUALIZATION: apps.setup_virtualization,
    Component.ZSWAP: enhancements.setup_zswap,
    Component.CACHYOS: enhancements.setup_cachyos_configuration,
    Component.DNSMASQ: enhancements.setup_dnsmasq,
    Component.EARLYOOM: enhancements.setup_earlyoom,
    Component.MSFONTS: enhancements.setup_microsoft_corefonts,
    Component.SPLITLOCK: enhancements.setup_split_lock_mitigation,
    Component.FLATPAK_HWACCEL: graphics.setup_hardware_acceleration_flatpak,
    Component.TOPGRADE: enhancements.setup_topgrade,
    Component.CRON: enhancements.setup_crontab_system_updates,
    Component.GNOME_MENU: gnome.setup_gnome_menu_organization,
    Component.GNOME_EXTENSIONS: gnome.setup_gnome_extensions,
}

_unhandled = [c.value for c in Component if c not in HANDLERS]
if _unhandled:
    raise RuntimeError(f"Components without a handler: {', '.join(_unhandled)}")

ChecklistItem = Tuple[Component, str, bool]

CHECKLISTS: Dict[Category, Sequence[ChecklistItem]] = {
    Category.SYSTEM: (
        (Component.PACMAN, "Configure Pacman (mirrors, multilib)", True),
        (Component.AUR, "Install AUR helper (paru)", True),
        (Component.LOCALES, "Setup system locales", True),
        (Component.KERNEL, "Install CachyOS kernel (performance optimized)", False),
        (Component.SNAPPER, "Setup Snapper for system snapshots", False),
        (Component.SERVICES, "Configure system services", True),
        (Component.PLYMOUTH, "Setup quiet boot (Plymouth splash + spinner)", False),
        (Component.SECUREBOOT, "Setup Secure Boot (sbctl)", False),
    ),
    Category.GRAPHICS: (
        (Component.DRIVERS, "Install graphics drivers", True),
        (Component.THEMES, "Setup themes and icons", True),
        (Component.SPLASH, "Setup systemd-boot splash logo", False),
        (Component.GDM, "Setup GDM login logo", False),
    ),
    Category.DEVELOPMENT: (
        (Component.TERMINAL, "Setup terminal (fish, tools)", True),
        (Component.DEVTOOLS, "Install development tools", True),
    ),
    Category.APPLICATIONS: (
        (Component.UTILITIES, "System utilities", True),
        (Component.CODECS, "Multimedia codecs", True),
        (Component.FLATPAK, "Flatpak applications", True),
    ),
    Category.ENHANCEMENTS: (
        (Component.ZSWAP, "Zswap compressed swap (default: 20GB)", True),
        (Component.CACHYOS, "CachyOS system settings", False),
        (Component.DNSMASQ, "DNSMasq for local DNS caching", False),
        (Component.EARLYOOM, "EarlyOOM for better OOM handling", False),
        (Component.MSFONTS, "Microsoft CoreFonts", False),
        (Component.SPLITLOCK, "Split-lock mitigation disabler", False),
        (Component.FLATPAK_HWACCEL, "Hardware acceleration for Flatpak", False),
        (Component.TOPGRADE, "Topgrade with Paru AUR support", False),
        (Component.CRON, "Automated system updates (weekly + retries)", False),
    ),
}

COMPLETE_SETUP = (
    Component.PACMAN,
    Component.AUR,
    Component.LOCALES,
    Component.SERVICES,
    Component.DNSMASQ,
    Component.EARLYOOM,
    Component.DRIVERS,
    Component.THEMES,
    Component.TERMINAL,
    Component.DEVTOOLS,
    Component.UTILITIES,
    Component.CODECS,
    Component.FLATPAK,
    Component.GAMING,
    Component.VIRTUALIZATION,
    Component.GNOME_EXTENSIONS,
)

COMPLETE = "complete"
EXIT = "exit"

# Main menu tag -> a category checklist, a single component, or an action.
MAIN_MENU: Sequence[Tuple[str, str, object]] = (
    ("1", Category.SYSTEM.value, Category.SYSTEM),
    ("2", Category.GRAPHICS.value, Category.GRAPHICS),
    ("3", Category.DEVELOPMENT.value, Category.DEVELOPMENT),
    ("4", Category.APPLICATIONS.value, Category.APPLICATIONS),
    ("5", "Gaming", Component.GAMING),
    ("6", "Virtualization", Component.VIRTUALIZATION),
    ("7", Category.ENHANCEMENTS.value, Category.ENHANCEMENTS),
    ("8", "GNOME Menu Organization", Component.GNOME_MENU),
    ("9", "GNOME Extensions", Component.GNOME_EXTENSIONS),
    ("10", "Complete Setup (All)", COMPLETE),
    ("11", "Exit", EXIT),
)


def run_components(ctx: Context, components: Iterable[Component]) -> bool:
    """Run handlers in order.

    A skipped component is logged and the next one runs. A failed command
    stops the remaining queue; returns False in that case.
    """
    for component in components:
        ctx.console.rule(f"[bold blue]{component.value}")
        logger.info(f"Running component: {component.value}")
        try:
            HANDLERS[component](ctx)
        except StepSkipped as e:
            logger.warning(f"Skipped {component.value}: {e}")
        except CommandError as e:
            logger.error(f"{component.value} failed; remaining selections cancelled: {e}")
            ctx.console.print(
                Panel(f"{component.value} failed:\n{e}\n\nRemaining selections were not run.", style="bold red")
            )
            return False
    return True


class MainMenu:
    def __init__(self, ctx: Context):
        self.ctx = ctx

    def show_welcome(self):
        self.ctx.dialog.msgbox(
            f"ArchPI v{self.ctx.settings.version}",
            "Welcome to the Arch Linux Post-Installation Script!\n\n"
            "This script will help you set up your Arch Linux system with modern tools and configurations.\n\n"
            "Please select the components you want to install from the main menu.\n\n"
            "Note: This script requires internet connection and may take some time to complete.",
        )

    def choose(self) -> Optional[object]:
        tag = self.ctx.dialog.menu(
            "Main Menu - Arch Linux Post-Installation",
            "Select a category to configure:",
            [(tag, label) for tag, label, _ in MAIN_MENU],
        )
        for menu_tag, _, action in MAIN_MENU:
            if menu_tag == tag:
                return action
        return None

    def select(self, category: Category) -> List[Component]:
        items = CHECKLISTS[category]
        tags = self.ctx.dialog.checklist(
            category.value,
            f"Select {category.value.lower()} components to install:",
            [(component.value, text, on) for component, text, on in items],
        )
        return [Component(tag) for tag in tags or []]

    def complete_setup(self):
        if not self.ctx.dialog.yesno(
            "Complete Setup", "This will install ALL components. This may take a long time. Continue?"
        ):
            return
        logger.info("Starting complete setup...")
        if run_components(self.ctx, COMPLETE_SETUP):
            self.ctx.dialog.msgbox(
                "Complete Setup Finished",
                "Complete setup has finished! Please reboot your system to apply all changes.",
            )

    def dispatch(self, action: object):
        if action == COMPLETE:
            self.complete_setup()
        elif isinstance(action, Category):
            run_components(self.ctx, self.select(action))
        elif isinstance(action, Component):
            run_components(self.ctx, [action])

    def run(self):
        self.show_welcome()
        while True:
            action = self.choose()
            # Cancel/ESC on the main menu leaves it, like Exit
            if action is None or action == EXIT:
                break
            try:
                self.dispatch(action)
            except Exception as e:
                logger.exception("Component crashed")
                self.ctx.console.print(Panel(f"Critical Error: {e}", style="bold red"))
        self.finish()

    def finish(self):
        shutil.rmtree(self.ctx.settings.temp_dir, ignore_errors=True)
        logger.info("Post-installation script completed.")

        if self.ctx.dialog.yesno(
            "Setup Complete",
            "Setup has been completed successfully! It is recommended to reboot the system to apply all "
            "changes.\n\nDo you want to reboot now?",
        ):
            logger.info("Rebooting system...")
            self.ctx.runner.run(["reboot"], "Rebooting", sudo=True, policy=Policy.PROCEED)
