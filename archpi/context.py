import getpass
from dataclasses import dataclass, field

from rich.console import Console

from archpi.catalog import Catalog
from archpi.dialog import Dialog
from archpi.files import BackupStore, FileEditor
from archpi.packages import PackageManager
from archpi.probe import SystemProbe
from archpi.settings import Settings
from archpi.utils import CommandRunner


@dataclass
class Context:
    """Everything a component handler needs, built once per run."""

    settings: Settings
    catalog: Catalog
    runner: CommandRunner
    backups: BackupStore
    files: FileEditor
    packages: PackageManager
    probe: SystemProbe
    dialog: Dialog
    console: Console
    user: str = field(default_factory=getpass.getuser)

    @classmethod
    def create(cls, settings: Settings, catalog: Catalog, console: Console) -> "Context":
        runner = CommandRunner()
        backups = BackupStore(settings.backup_dir, runner)
        return cls(
            settings=settings,
            catalog=catalog,
            runner=runner,
            backups=backups,
            files=FileEditor(runner, backups),
            packages=PackageManager(runner, console, settings.temp_dir),
            probe=SystemProbe(runner),
            dialog=Dialog(settings.dialog_height, settings.dialog_width),
            console=console,
        )
