"""
Shared test utilities for ArchPI tests.

Builds a Context whose external commands are recorded instead of executed
and whose system paths all live under a temporary directory.
"""

import dataclasses
import io
from pathlib import Path
from unittest import mock

from rich.console import Console

from archpi.catalog import Catalog
from archpi.context import Context
from archpi.dialog import Dialog
from archpi.files import BackupStore, FileEditor
from archpi.packages import PackageManager
from archpi.probe import SystemProbe
from archpi.settings import Settings
from archpi.utils import CommandResult, CommandRunner


def ok_result(cmd=(), stdout=""):
    return CommandResult(tuple(cmd), 0, stdout, "")


def fake_runner():
    """CommandRunner double: every command succeeds, every probe finds nothing."""
    runner = mock.MagicMock(spec=CommandRunner)
    runner.run.side_effect = lambda cmd, *a, **kw: ok_result(cmd)
    runner.output.return_value = None
    return runner


def quiet_console():
    return Console(file=io.StringIO(), width=120)


def temp_settings(root: Path, **overrides) -> Settings:
    """Settings with every file location moved under ``root``."""
    paths = {
        "temp_dir": root / "temp",
        "backup_dir": root / "backup",
        "log_file": root / "archpi.log",
        "assets_dir": root / "assets",
        "user_config_dir": root / "config",
        "bashrc": root / "bashrc",
        "pacman_conf": root / "etc" / "pacman.conf",
        "mirrorlist": root / "etc" / "mirrorlist",
        "locale_gen": root / "etc" / "locale.gen",
        "locale_conf": root / "etc" / "locale.conf",
        "loader_dir": root / "boot" / "loader",
        "plymouth_conf": root / "etc" / "plymouthd.conf",
        "systemd_unit_dir": root / "etc" / "systemd",
        "boot_count_file": root / "var" / "boot-count",
        "sysctl_dir": root / "etc" / "sysctl.d",
        "modprobe_dir": root / "etc" / "modprobe.d",
        "udev_rules_dir": root / "etc" / "udev",
        "environment_dir": root / "etc" / "environment.d",
        "crontab": root / "etc" / "crontab",
        "local_bin": root / "bin",
    }
    paths.update(overrides)
    return dataclasses.replace(Settings(), **paths)


def make_context(root: Path, runner=None, **overrides) -> Context:
    settings = temp_settings(root, **overrides)
    runner = runner or fake_runner()
    console = quiet_console()
    backups = BackupStore(settings.backup_dir, runner)
    return Context(
        settings=settings,
        catalog=Catalog(),
        runner=runner,
        backups=backups,
        files=FileEditor(runner, backups),
        packages=PackageManager(runner, console, settings.temp_dir),
        probe=SystemProbe(runner, dri_node=root / "dri" / "card0"),
        dialog=mock.MagicMock(spec=Dialog),
        console=console,
        user="tester",
    )


def run_commands(runner):
    """Argument lists of every ``runner.run`` call, in order."""
    return [c.args[0] for c in runner.run.call_args_list]
