"""GNOME Shell extensions and application-menu folder organization."""

import ast
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from rich.table import Table

from archpi.context import Context
from archpi.errors import StepSkipped
from archpi.utils import CommandRunner, Policy, command_exists

logger = logging.getLogger("ArchPI")

APP_FOLDERS_SCHEMA = "org.gnome.desktop.app-folders"
FOLDER_SCHEMA = "org.gnome.desktop.app-folders.folder"
FOLDER_PATH = "/org/gnome/desktop/app-folders/folders/{}/"

APPLICATION_DIRS = (
    Path("/usr/share/applications"),
    Path("/var/lib/flatpak/exports/share/applications"),
    Path.home() / ".local/share/flatpak/exports/share/applications",
)

# Used when none of the folder categories matched.
FALLBACK_RULES = (
    (("Game",), "Games"),
    (("Office",), "Office"),
    (("Graphics", "Audio", "Video"), "Media Edit"),
    (("Development", "Building"), "Workflow"),
    (("Container", "Virtualization"), "Containers"),
    (("Utility", "Monitor"), "Utilities"),
    (("Settings", "Hardware"), "System"),
)

Folders = Sequence[Tuple[str, Sequence[str]]]


@dataclass(frozen=True)
class DesktopApp:
    desktop_id: str
    name: str
    categories: str
    source: str

    @property
    def app_id(self) -> str:
        return self.desktop_id[: -len(".desktop")] if self.desktop_id.endswith(".desktop") else self.desktop_id


# --- GSettings values ---


def gvariant_strv(items: Iterable[str]) -> str:
    items = list(items)
    if not items:
        return "@as []"
    quoted = ("'" + i.replace("\\", "\\\\").replace("'", "\\'") + "'" for i in items)
    return "[" + ", ".join(quoted) + "]"


def parse_strv(text: Optional[str]) -> List[str]:
    text = (text or "").strip()
    if text.startswith("@as"):
        text = text[3:].strip()
    if not text:
        return []
    try:
        value = ast.literal_eval(text)
    except (ValueError, SyntaxError):
        logger.warning(f"Could not parse gsettings list: {text}")
        return []
    return [str(v) for v in value]


def folder_id(name: str) -> str:
    """dconf path component for a folder display name."""
    return re.sub(r"[^A-Za-z0-9]", "", name)


# --- Detection ---


def parse_desktop_file(path: Path, source: str) -> Optional[DesktopApp]:
    name = categories = None
    in_entry = False
    try:
        lines = path.read_text(errors="replace").splitlines()
    except OSError as e:
        logger.debug(f"Skipping unreadable desktop file {path}: {e}")
        return None
    for line in lines:
        line = line.strip()
        if line.startswith("["):
            in_entry = line == "[Desktop Entry]"
            continue
        if not in_entry:
            continue
        if name is None and line.startswith("Name="):
            name = line.split("=", 1)[1]
        elif categories is None and line.startswith("Categories="):
            categories = line.split("=", 1)[1]
        elif line in ("NoDisplay=true", "Hidden=true"):
            return None
    return DesktopApp(path.name, name or path.stem, categories or "", source)


def detect_installed_applications(dirs: Iterable[Path] = APPLICATION_DIRS) -> List[DesktopApp]:
    """Native and Flatpak applications that show up in the app grid."""
    apps: Dict[str, DesktopApp] = {}
    for directory in dirs:
        if not directory.is_dir():
            continue
        source = "flatpak" if "flatpak" in str(directory) else "native"
        for desktop_file in sorted(directory.glob("*.desktop")):
            app = parse_desktop_file(desktop_file, source)
            if app is not None:
                apps.setdefault(app.desktop_id, app)
    logger.info(f"Detected {len(apps)} applications")
    return list(apps.values())


# --- Categorization ---


def determine_target_folder(app_categories: str, folders: Folders) -> Optional[str]:
    """First folder (in table order) with a category contained in ``app_categories``."""
    for name, folder_categories in folders:
        for category in folder_categories:
            if category in app_categories:
                return name
    for keywords, name in FALLBACK_RULES:
        if any(keyword in app_categories for keyword in keywords):
            return name
    return None


def categorize(apps: Iterable[DesktopApp], folders: Folders, main_menu: Iterable[str]) -> Dict[str, List[str]]:
    """Folder name -> desktop ids; main-menu apps and unmatched apps stay out."""
    keep = set(main_menu)
    assignment: Dict[str, List[str]] = {name: [] for name, _ in folders}
    for app in apps:
        if app.app_id in keep:
            continue
        target = determine_target_folder(app.categories, folders)
        if target is None:
            logger.info(f"Leaving '{app.name}' ({app.app_id}) in main menu (no matching folder)")
            continue
        logger.info(f"Assigning '{app.name}' ({app.app_id}) to folder: {target}")
        assignment.setdefault(target, []).append(app.desktop_id)
    return assignment


# --- GSettings ---


class AppFolders:
    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def _folder(self, fid: str) -> str:
        return f"{FOLDER_SCHEMA}:{FOLDER_PATH.format(fid)}"

    def get(self, schema: str, key: str) -> Optional[str]:
        return self.runner.output(["gsettings", "get", schema, key])

    def set(self, schema: str, key: str, value: str) -> bool:
        res = self.runner.run(
            ["gsettings", "set", schema, key, value], f"Setting {key}", policy=Policy.PROCEED,
        )
        return res.ok

    def children(self) -> List[str]:
        return parse_strv(self.get(APP_FOLDERS_SCHEMA, "folder-children"))

    def apps(self, fid: str) -> List[str]:
        return parse_strv(self.get(self._folder(fid), "apps"))

    def create(self, name: str, categories: Sequence[str]):
        fid = folder_id(name)
        folder = self._folder(fid)
        if not self.set(folder, "name", name):
            logger.warning(f"Could not set name for folder {fid}")
        if not self.set(folder, "categories", gvariant_strv(categories)):
            logger.warning(f"Could not set categories for folder {fid}")
        self.set(folder, "translate", "false")

    def add_apps(self, name: str, desktop_ids: Sequence[str]):
        fid = folder_id(name)
        current = self.apps(fid)
        merged = current + [d for d in desktop_ids if d not in current]
        if merged != current:
            if not self.set(self._folder(fid), "apps", gvariant_strv(merged)):
                logger.warning(f"Failed to assign applications to folder {fid}")

    def set_children(self, names: Sequence[str]):
        current = self.children()
        wanted = [folder_id(n) for n in names]
        merged = current + [f for f in wanted if f not in current]
        if not self.set(APP_FOLDERS_SCHEMA, "folder-children", gvariant_strv(merged)):
            logger.error("Failed to set folder children")


def setup_gnome_menu_organization(ctx: Context):
    if not command_exists("gsettings"):
        raise StepSkipped("gsettings not found. GNOME menu organization requires GNOME.")

    folders = ctx.catalog.menu_folders()
    main_menu = ctx.catalog.get_packages("gnome", "main_menu_apps")
    store = AppFolders(ctx.runner)

    with ctx.console.status("[bold green]Detecting installed applications..."):
        apps = detect_installed_applications()

    for name, categories in folders:
        logger.info(f"Creating folder: {name}")
        store.create(name, categories)
    store.set_children([name for name, _ in folders])

    assignment = categorize(apps, folders, main_menu)
    for name, desktop_ids in assignment.items():
        if desktop_ids:
            store.add_apps(name, desktop_ids)

    verify_menu_organization(ctx, store, [name for name, _ in folders])


def verify_menu_organization(ctx: Context, store: AppFolders, names: Sequence[str]):
    table = Table(title="GNOME menu folders")
    table.add_column("Folder")
    table.add_column("Apps", justify="right")
    created = organized = 0
    for name in names:
        fid = folder_id(name)
        if store.get(f"{FOLDER_SCHEMA}:{FOLDER_PATH.format(fid)}", "name") is not None:
            created += 1
        count = len(store.apps(fid))
        organized += count
        table.add_row(name, str(count))
    ctx.console.print(table)
    logger.info(f"Verification complete: {created} folders created, {organized} applications organized.")


# --- Extensions ---


def setup_gnome_extensions(ctx: Context):
    extensions = ctx.catalog.get_described("gnome", "extensions")
    installed = failed = 0
    for uuid, description in extensions:
        res = ctx.runner.run(
            ["gnome-extensions-cli", "install", uuid], f"Installing GNOME extension: {description}",
            policy=Policy.PROCEED,
        )
        if res.ok:
            installed += 1
        else:
            logger.error(f"Failed to install extension: {uuid}")
            failed += 1

    logger.info(f"GNOME extensions installation completed: {installed} successful, {failed} failed")
    ctx.console.print(
        f"[green]{installed} extensions installed[/green], [red]{failed} failed[/red]. "
        "Log out and back in if extensions don't appear."
    )
