"""
Aggregation — pure functions only.

Normalizes every source's output into the canonical Snapshot model.

Two score policies coexist:
  - primary payloads already carry consistent rollups, so every aggregate
    (overall score included) is copied as-is
  - scanner results carry none, so the overall score is the mean of the
    library scores and totals are summed here
"""
from __future__ import annotations

import math
import statistics
from typing import Any, Mapping

from pydantic import BaseModel, ValidationError

from dbc_explorer.errors import MalformedResponse, SourceUnavailable
from dbc_explorer.models import ClassMetrics, Count, Library, Score, Snapshot
from dbc_explorer.sources.scanner import ScannedLibrary

# Per-file heuristics for scanned libraries.
HEURISTIC_SCORE   = 50
FEATURES_PER_FILE = 5
REQUIRE_PER_FILE  = 2
ENSURE_PER_FILE   = 2
INVARIANT_RATIO   = 0.7


class PrimaryPayload(BaseModel):
    """Shape the primary metrics source must answer with."""
    available:        bool = True
    name:             str = "Codebase"
    overall_score:    Score
    library_count:    Count
    class_count:      Count = 0
    total_features:   Count = 0
    total_require:    Count = 0
    total_ensure:     Count = 0
    total_invariants: Count = 0
    libraries:        list[Library] = []


def snapshot_from_payload(payload: Any) -> Snapshot:
    """
    Primary payload → Snapshot. Aggregates are authoritative, nothing is recomputed.

    Raises MalformedResponse for a payload of the wrong shape and
    SourceUnavailable when the source reports itself unavailable.
    """
    if not isinstance(payload, Mapping):
        raise MalformedResponse(f"expected an object, got {type(payload).__name__}")
    try:
        parsed = PrimaryPayload.model_validate(payload)
    except ValidationError as exc:
        raise MalformedResponse(f"invalid metrics payload: {exc.error_count()} error(s)") from exc
    if not parsed.available:
        raise SourceUnavailable("primary source reported itself unavailable")

    try:
        return Snapshot(
            name=parsed.name,
            score=parsed.overall_score,
            library_count=parsed.library_count,
            class_count=parsed.class_count,
            total_features=parsed.total_features,
            total_require=parsed.total_require,
            total_ensure=parsed.total_ensure,
            total_invariants=parsed.total_invariants,
            libraries=tuple(parsed.libraries),
        )
    except ValidationError as exc:
        # duplicate library names
        raise MalformedResponse(str(exc.errors()[0]["msg"])) from exc


# ── Scanner path ─────────────────────────────────────────────────────────────

def heuristic_class(path) -> ClassMetrics:
    return ClassMetrics(
        name=path.stem.upper(),
        path=str(path),
        line=1,
        score=HEURISTIC_SCORE,
        feature_count=FEATURES_PER_FILE,
        require_count=REQUIRE_PER_FILE,
        ensure_count=ENSURE_PER_FILE,
        has_invariant=True,
    )


def library_from_scan(scanned: ScannedLibrary) -> Library:
    """Fixed heuristics over the number of source files found under the root."""
    n = scanned.file_count
    return Library(
        name=scanned.name,
        path=str(scanned.root),
        score=HEURISTIC_SCORE,
        feature_count=n * FEATURES_PER_FILE,
        require_count=n * REQUIRE_PER_FILE,
        ensure_count=n * ENSURE_PER_FILE,
        invariant_count=math.floor(n * INVARIANT_RATIO),
        classes=tuple(heuristic_class(p) for p in scanned.files),
    )


def library_from_classes(name: str, path: str, classes: tuple[ClassMetrics, ...]) -> Library:
    """Library synthesized on drill-down, counts rolled up from its classes."""
    return Library(
        name=name,
        path=path,
        score=HEURISTIC_SCORE,
        feature_count=sum(c.feature_count for c in classes),
        require_count=sum(c.require_count for c in classes),
        ensure_count=sum(c.ensure_count for c in classes),
        invariant_count=sum(1 for c in classes if c.has_invariant),
        classes=classes,
    )


def mean_score(libraries) -> int:
    scores = [lib.score for lib in libraries]
    if not scores:
        return 0
    # halves round up
    return math.floor(statistics.fmean(scores) + 0.5)


def snapshot_from_libraries(libraries: list[Library], name: str = "Codebase") -> Snapshot:
    """Snapshot with computed rollups; score is the mean of library scores."""
    return Snapshot(
        name=name,
        score=mean_score(libraries),
        library_count=len(libraries),
        class_count=sum(len(lib.classes) for lib in libraries),
        total_features=sum(lib.feature_count for lib in libraries),
        total_require=sum(lib.require_count for lib in libraries),
        total_ensure=sum(lib.ensure_count for lib in libraries),
        total_invariants=sum(lib.invariant_count for lib in libraries),
        libraries=tuple(libraries),
    )


def snapshot_from_scan(scanned: list[ScannedLibrary], name: str = "Codebase") -> Snapshot:
    libraries = [library_from_scan(s) for s in scanned]
    snap = snapshot_from_libraries(libraries, name)
    # every discovered file counts as a class, materialized or not
    return snap.model_copy(update={"class_count": sum(s.file_count for s in scanned)})
