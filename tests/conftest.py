"""
Shared fixtures and helpers for the dbc_explorer test suite.

Everything runs in-process: metrics providers and file openers are fakes,
library roots are built under tmp_path, and coroutines are driven with
asyncio.run. No server or external tool required.
"""
import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from dbc_explorer.errors import FileOpenFailure, SourceUnavailable  # noqa: E402
from dbc_explorer.models import ClassMetrics, Library, Snapshot  # noqa: E402
from dbc_explorer.session import VisualizationSession  # noqa: E402
from dbc_explorer.settings import Settings  # noqa: E402


# ── Model builders ─────────────────────────────────────────────────────────────

def make_class(name="SIMPLE_JSON", score=80, path="simple_json/simple_json.e", line=1, **counts):
    return ClassMetrics(name=name, path=path, line=line, score=score, **counts)


def make_library(name="simple_json", score=80, classes=(), path=None, **counts):
    return Library(name=name, path=path or f"/src/{name}", score=score,
                   classes=tuple(classes), **counts)


def make_snapshot(libraries, score=70, name="Codebase"):
    libraries = tuple(libraries)
    return Snapshot(
        name=name,
        score=score,
        library_count=len(libraries),
        class_count=sum(len(lib.classes) for lib in libraries),
        libraries=libraries,
    )


def make_payload(libraries=None, overall_score=42, **extra) -> dict:
    """Primary-source payload in its wire shape."""
    if libraries is None:
        libraries = [
            {"name": "simple_json", "path": "/src/simple_json", "score": 90,
             "feature_count": 10, "require_count": 8, "ensure_count": 7, "invariant_count": 1,
             "classes": [{"name": "SIMPLE_JSON", "path": "/src/simple_json/simple_json.e",
                          "line": 12, "score": 90, "feature_count": 10}]},
            {"name": "simple_http", "path": "/src/simple_http", "score": 10},
        ]
    payload = {
        "overall_score":    overall_score,
        "library_count":    len(libraries),
        "class_count":      3,
        "total_features":   120,
        "total_require":    60,
        "total_ensure":     55,
        "total_invariants": 4,
        "libraries":        libraries,
    }
    payload.update(extra)
    return payload


# ── Collaborator fakes ─────────────────────────────────────────────────────────

class FakeProvider:
    """MetricsProvider returning a fixed payload, or raising a fixed error."""

    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error   = error
        self.calls   = 0

    def query(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.payload


def failing_provider():
    return FakeProvider(error=SourceUnavailable("connection refused"))


class FakeOpener:
    def __init__(self, fail=False):
        self.fail   = fail
        self.opened = []

    def open(self, path, line):
        if self.fail:
            raise FileOpenFailure(path, line, "editor not running")
        self.opened.append((path, line))


class FakeSurface:
    """Collects everything the controller posts."""

    def __init__(self):
        self.messages = []

    async def __call__(self, message):
        self.messages.append(message)

    def commands(self):
        return [m["command"] for m in self.messages]

    def last(self, command):
        found = [m for m in self.messages if m["command"] == command]
        return found[-1] if found else None


# ── Filesystem builders ────────────────────────────────────────────────────────

def make_tree(root: Path, files: list[str]) -> Path:
    """Create *files* (relative paths) under *root* and return root."""
    for rel in files:
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text("class X end\n")
    return root


def make_session(provider=None, environ=None, opener=None, **settings_overrides):
    settings = Settings(**settings_overrides)
    return VisualizationSession(
        settings,
        provider=provider,
        file_opener=opener or FakeOpener(),
        environ=environ if environ is not None else {},
        auto_layout=False,
    )


def run(coro):
    return asyncio.run(coro)


# ── Fixtures ───────────────────────────────────────────────────────────────────

@pytest.fixture
def library_root(tmp_path):
    """One library root holding four .e files plus noise the scanner must ignore."""
    return make_tree(tmp_path / "simple_json", [
        "src/simple_json.e",
        "src/simple_json_object.e",
        "src/parser/simple_json_parser.e",
        "tests/test_simple_json.e",
        "README.md",
        ".git/hooks/pre_commit.e",
        "EIFGENs/simple_json/W_code/generated.e",
    ])


@pytest.fixture
def surface():
    return FakeSurface()
