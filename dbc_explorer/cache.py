"""
Single-slot snapshot cache and the drill-down lookup built on it.
"""
from __future__ import annotations

import logging
from typing import Optional

from dbc_explorer.analytics.aggregate import heuristic_class, library_from_classes
from dbc_explorer.models import Library, Snapshot
from dbc_explorer.sources.scanner import EnvironmentScanner

logger = logging.getLogger(__name__)


class SnapshotCache:
    """Holds the latest Snapshot; every set() replaces it wholesale."""

    def __init__(self):
        self._snapshot: Optional[Snapshot] = None

    def set(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot

    def get(self) -> Optional[Snapshot]:
        return self._snapshot

    def clear(self) -> None:
        self._snapshot = None

    @property
    def empty(self) -> bool:
        return self._snapshot is None


def find_library(
    cache: SnapshotCache,
    name: str,
    scanner: Optional[EnvironmentScanner] = None,
) -> Optional[Library]:
    """
    Resolve a drill-down target.

    1. cached snapshot, exact name
    2. cached snapshot, case-insensitive name
    3. environment lookup of the name-derived key (simple-json → SIMPLE_JSON),
       classes scanned fresh with heuristic metrics

    Returns None when every lookup misses.
    """
    snapshot = cache.get()
    if snapshot is not None:
        lib = snapshot.find_library(name)
        if lib is not None:
            return lib

    if scanner is None:
        return None
    scanned = scanner.lookup(name)
    if scanned is None:
        logger.info("drill-down miss: %r not cached and not in environment", name)
        return None
    classes = tuple(heuristic_class(p) for p in scanned.files)
    logger.debug("drill-down %r synthesized from %s (%d classes)", name, scanned.root, len(classes))
    return library_from_classes(name, str(scanned.root), classes)
