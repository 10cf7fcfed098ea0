"""
File openers — best-effort "jump to source" collaborators.
open() returns on success and raises FileOpenFailure otherwise; nobody retries.
"""
from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Optional, Protocol

from dbc_explorer.errors import FileOpenFailure

logger = logging.getLogger(__name__)


class FileOpener(Protocol):
    def open(self, path: str, line: int) -> None: ...


class CommandFileOpener:
    """
    Runs an editor command built from a template, e.g.
    "code --goto {path}:{line}" or "vim +{line} {path}".
    """

    def __init__(self, template: str, timeout: float = 10.0):
        self.template = template
        self.timeout  = timeout

    def argv(self, path: str, line: int) -> list[str]:
        # split first so a path with spaces stays one argument
        return [part.format(path=path, line=line) for part in shlex.split(self.template)]

    def open(self, path: str, line: int) -> None:
        if not Path(path).is_file():
            raise FileOpenFailure(path, line, "file not found")
        argv = self.argv(path, line)
        try:
            proc = subprocess.run(argv, capture_output=True, text=True, timeout=self.timeout)
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise FileOpenFailure(path, line, str(exc)) from exc
        if proc.returncode != 0:
            raise FileOpenFailure(path, line, f"{argv[0]} exited with {proc.returncode}")
        logger.info("opened %s:%d", path, line)


class UnconfiguredFileOpener:
    def open(self, path: str, line: int) -> None:
        raise FileOpenFailure(path, line, "no editor command configured (set DBC_EDITOR_COMMAND)")


def opener_from_template(template: Optional[str]) -> FileOpener:
    return CommandFileOpener(template) if template else UnconfiguredFileOpener()
