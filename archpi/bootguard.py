"""Boot-failure counter and recovery menu activation.

Installed as two systemd oneshot units: one runs ``attempt`` early on every
boot, the other runs ``success`` once ``multi-user.target`` is reached. A boot
that never gets to the success unit leaves the counter raised, and when it
reaches the threshold the systemd-boot configuration is switched to a
recovery menu (snapshot rollback, LTS kernel, debug mode).

A slow boot that is reset by hand before reaching ``multi-user.target`` looks
exactly like a failed one; nothing here can tell the two apart.
"""

import argparse
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Optional

from archpi.utils import CommandRunner

logger = logging.getLogger("ArchPI")

DEFAULT_COUNT_FILE = Path("/var/cache/archpi-boot-count")
DEFAULT_LOADER_DIR = Path("/boot/loader")
DEFAULT_THRESHOLD = 3
RECOVERY_MARKER = "# ArchPI recovery mode"
ENTRY_PREFIX = "archpi-recovery"


class BootState(Enum):
    NORMAL = "normal"
    RECOVERY = "recovery"


class BootCounter:
    """Consecutive unconfirmed boots, persisted as a plain integer."""

    def __init__(self, path: Path = DEFAULT_COUNT_FILE, threshold: int = DEFAULT_THRESHOLD):
        self.path = path
        self.threshold = threshold

    def read(self) -> int:
        try:
            return max(int(self.path.read_text().strip()), 0)
        except FileNotFoundError:
            return 0
        except ValueError:
            logger.warning(f"Corrupt boot counter in {self.path}, treating it as 0")
            return 0

    def _write(self, value: int):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(f"{value}\n")

    def record_attempt(self) -> bool:
        """Count a boot attempt; True when recovery should be activated."""
        count = self.read() + 1
        self._write(count)
        if count >= self.threshold:
            logger.warning(
                f"Boot failure count reached {count} (threshold: {self.threshold}). Activating recovery mode."
            )
            return True
        logger.info(f"Boot attempt {count} of {self.threshold} allowed before recovery.")
        return False

    def record_success(self):
        self._write(0)
        logger.info("System reached multi-user.target, boot counter reset to 0")

    @property
    def state(self) -> BootState:
        return BootState.RECOVERY if self.read() >= self.threshold else BootState.NORMAL


class RecoveryMenu:
    """Writes the recovery entries and swaps loader.conf to show them."""

    def __init__(
        self,
        loader_dir: Path = DEFAULT_LOADER_DIR,
        kernel: str = "linux-cachyos",
        lts_kernel: str = "linux-cachyos-lts",
        runner: Optional[CommandRunner] = None,
    ):
        self.loader_dir = loader_dir
        self.kernel = kernel
        self.lts_kernel = lts_kernel
        self.runner = runner or CommandRunner(elevate=False)

    @property
    def loader_conf(self) -> Path:
        return self.loader_dir / "loader.conf"

    def root_options(self) -> str:
        source = (self.runner.output(["findmnt", "-n", "-o", "SOURCE", "/"]) or "").strip()
        # btrfs sources look like /dev/sda2[/@]
        device = source.split("[", 1)[0]
        partuuid = ""
        if device:
            partuuid = (self.runner.output(["blkid", "-s", "PARTUUID", "-o", "value", device]) or "").strip()
        if partuuid:
            return f"root=PARTUUID={partuuid} rw"
        logger.warning("Could not determine the root PARTUUID, using the root device path")
        return f"root={device or '/dev/root'} rw"

    def entries(self, count: int):
        root = self.root_options()
        return {
            f"{ENTRY_PREFIX}-rollback.conf": (
                "title Arch Linux Recovery - Snapper Rollback\n"
                f"linux /vmlinuz-{self.kernel}\n"
                f"initrd /initramfs-{self.kernel}.img\n"
                f"options {root} quiet splash recovery=rollback count={count}\n"
            ),
            f"{ENTRY_PREFIX}-lts.conf": (
                "title Arch Linux Recovery - Switch to LTS Kernel\n"
                f"linux /vmlinuz-{self.lts_kernel}\n"
                f"initrd /initramfs-{self.lts_kernel}.img\n"
                f"options {root} quiet splash recovery=lts count={count}\n"
            ),
            f"{ENTRY_PREFIX}-debug.conf": (
                "title Arch Linux Recovery - Debug Mode\n"
                f"linux /vmlinuz-{self.kernel}\n"
                f"initrd /initramfs-{self.kernel}.img\n"
                f"options {root} recovery=debug systemd.log_level=debug systemd.log_target=console\n"
            ),
        }

    def recovery_loader_conf(self, count: int) -> str:
        return (
            f"{RECOVERY_MARKER}: boot failed {count} times\n"
            "timeout 30\n"
            "console-mode keep\n"
            "editor 1\n"
            f"default {ENTRY_PREFIX}-rollback.conf\n"
            "auto-entries 0\n"
            "auto-reboot 0\n"
            "beep 0\n"
            "# 1. Rollback to previous snapshot\n"
            "# 2. Switch to LTS kernel\n"
            "# 3. Debug mode for troubleshooting\n"
        )

    def is_active(self) -> bool:
        return self.loader_conf.exists() and self.loader_conf.read_text().startswith(RECOVERY_MARKER)

    def activate(self, count: int):
        entries_dir = self.loader_dir / "entries"
        entries_dir.mkdir(parents=True, exist_ok=True)
        for name, content in self.entries(count).items():
            (entries_dir / name).write_text(content)

        if not self.is_active():
            backup = self.loader_dir / "loader.conf.backup"
            if self.loader_conf.exists():
                backup.write_text(self.loader_conf.read_text())
        self.loader_conf.write_text(self.recovery_loader_conf(count))
        logger.warning("Boot recovery mode activated. Reboot and select a recovery option.")

    def deactivate(self) -> bool:
        """Put the saved loader.conf back; True if recovery mode was active."""
        if not self.is_active():
            return False
        backup = self.loader_dir / "loader.conf.backup"
        if backup.exists():
            self.loader_conf.write_text(backup.read_text())
        for entry in (self.loader_dir / "entries").glob(f"{ENTRY_PREFIX}-*.conf"):
            entry.unlink()
        logger.info("Boot recovery mode deactivated")
        return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="archpi-bootguard", description=__doc__.splitlines()[0])
    parser.add_argument("action", choices=["attempt", "success", "status", "restore"])
    parser.add_argument("--count-file", type=Path, default=DEFAULT_COUNT_FILE)
    parser.add_argument("--threshold", type=int, default=DEFAULT_THRESHOLD)
    parser.add_argument("--loader-dir", type=Path, default=DEFAULT_LOADER_DIR)
    parser.add_argument("--kernel", default="linux-cachyos")
    parser.add_argument("--lts-kernel", default="linux-cachyos-lts")
    args = parser.parse_args(argv)

    logging.basicConfig(level="INFO", format="archpi-bootguard: %(message)s", stream=sys.stderr)

    counter = BootCounter(args.count_file, args.threshold)
    menu = RecoveryMenu(args.loader_dir, args.kernel, args.lts_kernel)

    if args.action == "attempt":
        if counter.record_attempt():
            menu.activate(counter.read())
    elif args.action == "success":
        counter.record_success()
    elif args.action == "restore":
        counter.record_success()
        menu.deactivate()
    else:
        print(f"{counter.state.value} (count={counter.read()}, threshold={counter.threshold})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
