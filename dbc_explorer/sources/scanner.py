"""
Environment scanner — heuristic fallback when the primary source is down.

Library roots come from environment variables named <prefix><LIBRARY>
(e.g. SIMPLE_JSON=/src/simple_json). Each root is walked for source files;
the numbers derived from them are fixed heuristics, see analytics/aggregate.py.
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

_BRACED = re.compile(r"\$\{([^}]+)\}")
_BARE   = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")
_WIN    = re.compile(r"%([^%]+)%")


def expand_env_vars(value: str, environ: Mapping[str, str]) -> str:
    """Expand ${VAR}, $VAR and %VAR% references; unknown variables become ''."""
    result = _BRACED.sub(lambda m: environ.get(m.group(1), ""), value)
    result = _BARE.sub(lambda m: environ.get(m.group(1), ""), result)
    return _WIN.sub(lambda m: environ.get(m.group(1), ""), result)


def env_key_for(library_name: str) -> str:
    """simple-json → SIMPLE_JSON"""
    return library_name.upper().replace("-", "_")


@dataclass
class ScannedLibrary:
    name:       str
    root:       Path
    file_count: int = 0
    files:      list[Path] = field(default_factory=list)   # materialized, ≤ class cap


class EnvironmentScanner:
    def __init__(
        self,
        environ:    Optional[Mapping[str, str]] = None,
        prefix:     str = "SIMPLE_",
        extensions: Iterable[str] = (".e",),
        skip_dirs:  Iterable[str] = ("EIFGENs",),
        class_cap:  int = 10,
    ):
        self.environ    = os.environ if environ is None else environ
        self.prefix     = prefix
        self.extensions = tuple(e.lower() for e in extensions)
        self.skip_dirs  = set(skip_dirs)
        self.class_cap  = class_cap

    # ── Root discovery ───────────────────────────────────────────────────────

    def _root_for(self, var: str) -> Optional[Path]:
        value = self.environ.get(var)
        if not value:
            return None
        try:
            root = Path(expand_env_vars(value, self.environ)).expanduser()
            return root if root.is_dir() else None
        except (RuntimeError, OSError) as exc:
            logger.info("ignoring %s: %s", var, exc)
            return None

    def discover_roots(self) -> list[tuple[str, Path]]:
        """[(library_name, root)] for every prefixed variable pointing at a directory."""
        roots: list[tuple[str, Path]] = []
        seen: set[str] = set()
        for var in sorted(self.environ):
            if not var.upper().startswith(self.prefix.upper()):
                continue
            root = self._root_for(var)
            if root is None:
                continue
            name = var.lower()
            if name in seen:
                continue
            seen.add(name)
            roots.append((name, root))
        return roots

    # ── Walk ─────────────────────────────────────────────────────────────────

    def _skip_dir(self, path: Path) -> bool:
        return path.name.startswith(".") or path.name in self.skip_dirs

    def _matches(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def scan_root(self, name: str, root: Path, stop_at_cap: bool = False) -> ScannedLibrary:
        """
        Iterative depth-first walk of *root*.

        Directories are tracked by resolved path so symlink cycles are walked
        once. Only the first `class_cap` matching files are kept; the rest are
        counted. With stop_at_cap the walk ends as soon as the cap is reached.
        """
        lib = ScannedLibrary(name=name, root=root)
        visited: set[str] = set()
        stack = [root]

        while stack:
            current = stack.pop()
            real = os.path.realpath(current)
            if real in visited:
                continue
            visited.add(real)

            try:
                entries = sorted(current.iterdir(), key=lambda p: p.name)
            except OSError as exc:
                logger.debug("skipping unreadable directory %s: %s", current, exc)
                continue

            subdirs = []
            for entry in entries:
                if entry.is_dir():
                    if not self._skip_dir(entry):
                        subdirs.append(entry)
                elif entry.is_file() and self._matches(entry):
                    lib.file_count += 1
                    if len(lib.files) < self.class_cap:
                        lib.files.append(entry)
                    elif stop_at_cap:
                        return lib
            if stop_at_cap and len(lib.files) >= self.class_cap:
                return lib
            # reversed so the walk visits siblings in name order
            stack.extend(reversed(subdirs))

        return lib

    # ── Public API ───────────────────────────────────────────────────────────

    def scan(self) -> list[ScannedLibrary]:
        libraries = [self.scan_root(name, root) for name, root in self.discover_roots()]
        logger.info("environment scan found %d librar%s", len(libraries),
                    "y" if len(libraries) == 1 else "ies")
        return libraries

    def lookup(self, library_name: str) -> Optional[ScannedLibrary]:
        """
        Name-derived lookup used by drill-down on a cache miss.
        "simple-json" is looked up as SIMPLE_JSON in the environment.
        """
        var = env_key_for(library_name)
        root = self._root_for(var)
        if root is None:
            return None
        return self.scan_root(library_name, root, stop_at_cap=True)
