"""Backups and idempotent edits of system configuration files."""

import logging
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from archpi.utils import CommandRunner, Policy

logger = logging.getLogger("ArchPI")

Transform = Callable[[str], str]


# --- Text transforms ---
# Each one returns the text unchanged when there is nothing to do, so applying
# it a second time is a no-op.


def uncomment_directive(text: str, directive: str) -> str:
    """``#Color`` -> ``Color``. Leaves an already active directive alone."""
    pattern = re.compile(rf"^#\s*({re.escape(directive)}\b.*)$", re.MULTILINE)
    return pattern.sub(r"\1", text, count=1)


def uncomment_section(text: str, section: str) -> str:
    """Enable a commented INI section and its ``#Key = value`` lines.

    Turns::

        #[multilib]
        #Include = /etc/pacman.d/mirrorlist

    into the active block. The section ends at a blank line or the next
    header, active or commented.
    """
    header = f"[{section}]"
    lines = text.split("\n")
    inside = False
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped in (header, f"#{header}"):
            lines[i] = header
            inside = True
            continue
        if not inside:
            continue
        if not stripped or stripped.lstrip("#").lstrip().startswith("["):
            inside = False
            continue
        if re.match(r"^#\s*\w+\s*=", stripped):
            lines[i] = stripped.lstrip("#").lstrip()
    return "\n".join(lines)


def set_directive(text: str, key: str, value: str, sep: str = " = ") -> str:
    """Set ``key`` to ``value`` on its first (possibly commented) occurrence."""
    pattern = re.compile(rf"^#?\s*{re.escape(key)}\s*=.*$", re.MULTILINE)
    return pattern.sub(lambda _: f"{key}{sep}{value}", text, count=1)


def insert_after(text: str, anchor: str, line: str) -> str:
    """Insert ``line`` after the first line matching ``anchor`` unless present."""
    if re.search(rf"^{re.escape(line)}$", text, re.MULTILINE):
        return text
    pattern = re.compile(rf"^({anchor})$", re.MULTILINE)
    return pattern.sub(lambda m: f"{m.group(1)}\n{line}", text, count=1)


def append_block(text: str, marker: str, block: str) -> str:
    """Append ``block`` unless ``marker`` already appears in the text."""
    if marker in text:
        return text
    body = text.rstrip("\n")
    block = block.strip("\n")
    prefix = f"{body}\n\n" if body else ""
    return f"{prefix}{block}\n"


def append_to_line(text: str, prefix: str, suffix: str) -> str:
    """Append ``suffix`` to the first line starting with ``prefix`` unless it has it."""
    pattern = re.compile(rf"^({re.escape(prefix)}.*)$", re.MULTILINE)
    match = pattern.search(text)
    if not match or suffix in match.group(1):
        return text
    return text[: match.end()] + f" {suffix}" + text[match.end():]


def remove_lines_containing(text: str, needle: str) -> str:
    lines = text.split("\n")
    kept = [line for line in lines if needle not in line]
    return "\n".join(kept)


# --- Backups ---


class BackupStore:
    """Timestamped copies of files taken before they are modified."""

    def __init__(self, backup_dir: Path, runner: CommandRunner):
        self.backup_dir = backup_dir
        self.runner = runner

    def backup(self, path: Path) -> Optional[Path]:
        """Copy ``path`` to the backup directory; a missing file is a no-op."""
        path = Path(path)
        if not path.is_file():
            return None

        self.backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        dest = self.backup_dir / f"{path.name}.backup.{stamp}"
        counter = 1
        while dest.exists():
            dest = self.backup_dir / f"{path.name}.backup.{stamp}_{counter}"
            counter += 1

        try:
            shutil.copy2(path, dest)
        except PermissionError:
            self.runner.run(["cp", str(path), str(dest)], f"Backing up {path}", sudo=True)
            self.runner.run(
                ["chmod", "644", str(dest)], f"Making backup of {path} readable", sudo=True,
                policy=Policy.PROCEED,
            )
        logger.info(f"Backed up {path} to {dest}")
        return dest

    def latest(self, path: Path) -> Optional[Path]:
        candidates = sorted(self.backup_dir.glob(f"{Path(path).name}.backup.*"))
        return candidates[-1] if candidates else None

    def restore_latest(self, path: Path) -> bool:
        backup = self.latest(path)
        if backup is None:
            logger.warning(f"No backup available to restore {path}")
            return False
        result = self.runner.run(
            ["cp", str(backup), str(path)], f"Restoring {path} from {backup}", sudo=True,
            policy=Policy.PROCEED,
        )
        return result.ok


# --- Editing ---


class FileEditor:
    """Read, write and patch configuration files, backing them up first."""

    def __init__(self, runner: CommandRunner, backups: BackupStore):
        self.runner = runner
        self.backups = backups

    @staticmethod
    def read(path: Path) -> str:
        path = Path(path)
        if not path.exists():
            return ""
        return path.read_text()

    def write(self, path: Path, content: str, sudo: bool = True, mode: Optional[str] = None, backup: bool = True):
        path = Path(path)
        if backup:
            self.backups.backup(path)

        if sudo:
            if not path.parent.exists():
                self.runner.run(["mkdir", "-p", str(path.parent)], f"Creating {path.parent}", sudo=True)
            self.runner.run(["tee", str(path)], f"Writing {path}", sudo=True, input=content)
            if mode:
                self.runner.run(["chmod", mode, str(path)], f"Setting mode {mode} on {path}", sudo=True)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
            if mode:
                path.chmod(int(mode, 8))

    def patch(self, path: Path, *transforms: Transform, sudo: bool = True) -> bool:
        """Apply text transforms; write (after a backup) only if anything changed."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"{path} not found, nothing to patch")
            return False

        original = self.read(path)
        content = original
        for transform in transforms:
            content = transform(content)

        if content == original:
            logger.debug(f"{path} already up to date")
            return False

        self.write(path, content, sudo=sudo)
        return True

    def append_once(self, path: Path, marker: str, block: str, sudo: bool = True) -> bool:
        path = Path(path)
        original = self.read(path)
        content = append_block(original, marker, block)
        if content == original:
            logger.info(f"{marker} already present in {path}")
            return False
        self.write(path, content, sudo=sudo)
        return True
