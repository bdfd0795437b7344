"""Thin wrapper around the ``dialog`` program.

``dialog`` draws on the terminal and reports the user's answer on stderr.
Exit status 0 means OK/Yes, 1 means Cancel/No and 255 means ESC; cancel and
ESC are both treated as "no answer" and never raise.
"""

import logging
import subprocess
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger("ArchPI")

DIALOG_OK = 0


class Dialog:
    def __init__(self, height: int = 20, width: int = 70, binary: str = "dialog"):
        self.height = height
        self.width = width
        self.binary = binary

    def _run(self, args: Sequence[str]) -> Tuple[int, str]:
        cmd = [self.binary] + [str(a) for a in args]
        logger.debug(f"dialog: {' '.join(cmd)}")
        proc = subprocess.run(cmd, stderr=subprocess.PIPE, text=True)
        return proc.returncode, proc.stderr or ""

    def msgbox(self, title: str, text: str):
        self._run(["--title", title, "--msgbox", text, self.height, self.width])

    def yesno(self, title: str, text: str) -> bool:
        code, _ = self._run(["--title", title, "--yesno", text, self.height, self.width])
        return code == DIALOG_OK

    def menu(self, title: str, text: str, choices: Sequence[Tuple[str, str]]) -> Optional[str]:
        args = ["--title", title, "--menu", text, self.height, self.width, len(choices)]
        for tag, item in choices:
            args += [tag, item]
        code, output = self._run(args)
        if code != DIALOG_OK:
            return None
        return output.strip()

    def checklist(
        self, title: str, text: str, choices: Sequence[Tuple[str, str, bool]]
    ) -> Optional[List[str]]:
        """Selected tags in menu order, or None when the user cancelled."""
        args = [
            "--separate-output", "--title", title, "--checklist", text,
            self.height, self.width, len(choices),
        ]
        for tag, item, status in choices:
            args += [tag, item, "on" if status else "off"]
        code, output = self._run(args)
        if code != DIALOG_OK:
            return None
        selected = {line.strip() for line in output.splitlines() if line.strip()}
        return [tag for tag, _, _ in choices if tag in selected]
