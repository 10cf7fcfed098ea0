"""
Canonical contract-coverage model.

Snapshot → Library → ClassMetrics. Every model is frozen: a new fetch
produces a new Snapshot, nothing is patched in place.
"""
from __future__ import annotations

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

Score = Annotated[int, Field(ge=0, le=100)]
Count = Annotated[int, Field(ge=0)]


class ClassMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    name:             str
    path:             str = ""
    line:             int = Field(default=1, ge=1)
    score:            Score
    feature_count:    Count = 0
    require_count:    Count = 0
    ensure_count:     Count = 0
    has_invariant:    bool = False


class Library(BaseModel):
    model_config = ConfigDict(frozen=True)

    name:             str = Field(min_length=1)
    path:             str = ""
    score:            Score
    feature_count:    Count = 0
    require_count:    Count = 0
    ensure_count:     Count = 0
    invariant_count:  Count = 0
    classes:          tuple[ClassMetrics, ...] = ()

    @property
    def key(self) -> str:
        """Case-insensitive drill-down key."""
        return self.name.lower()


class Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    name:             str = "Codebase"
    score:            Score
    library_count:    Count = 0
    class_count:      Count = 0
    total_features:   Count = 0
    total_require:    Count = 0
    total_ensure:     Count = 0
    total_invariants: Count = 0
    libraries:        tuple[Library, ...] = ()

    @model_validator(mode="after")
    def _unique_library_names(self) -> "Snapshot":
        seen: set[str] = set()
        for lib in self.libraries:
            if lib.key in seen:
                raise ValueError(f"duplicate library name (case-insensitive): {lib.name!r}")
            seen.add(lib.key)
        return self

    @property
    def is_empty(self) -> bool:
        return self.library_count <= 0 or not self.libraries

    def find_library(self, name: str) -> Optional[Library]:
        """Exact name match first, then case-insensitive."""
        for lib in self.libraries:
            if lib.name == name:
                return lib
        wanted = name.lower()
        for lib in self.libraries:
            if lib.key == wanted:
                return lib
        return None


def library_detail(lib: Library) -> dict:
    """Payload of the `showLibrary` message."""
    return {
        "name":    lib.name,
        "path":    lib.path,
        "score":   lib.score,
        "classes": [c.model_dump() for c in lib.classes],
    }
