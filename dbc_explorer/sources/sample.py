"""
Sample dataset — last link of the resolution chain, always non-empty.
"""
from __future__ import annotations

from dbc_explorer.models import ClassMetrics, Library, Snapshot


def _cls(name, path, line, score, features, require, ensure, invariant=True):
    return ClassMetrics(
        name=name, path=path, line=line, score=score,
        feature_count=features, require_count=require, ensure_count=ensure,
        has_invariant=invariant,
    )


SAMPLE_LIBRARIES: tuple[Library, ...] = (
    Library(
        name="simple_json", path="simple_json", score=92,
        feature_count=148, require_count=121, ensure_count=133, invariant_count=4,
        classes=(
            _cls("SIMPLE_JSON",        "simple_json/src/simple_json.e",        1, 95, 42, 38, 40),
            _cls("SIMPLE_JSON_OBJECT", "simple_json/src/simple_json_object.e", 1, 91, 51, 40, 46),
            _cls("SIMPLE_JSON_ARRAY",  "simple_json/src/simple_json_array.e",  1, 90, 33, 27, 30),
            _cls("SIMPLE_JSON_PARSER", "simple_json/src/simple_json_parser.e", 1, 88, 22, 16, 17),
        ),
    ),
    Library(
        name="simple_http", path="simple_http", score=78,
        feature_count=96, require_count=70, ensure_count=68, invariant_count=3,
        classes=(
            _cls("SIMPLE_HTTP",          "simple_http/src/simple_http.e",          1, 81, 40, 31, 30),
            _cls("SIMPLE_HTTP_REQUEST",  "simple_http/src/simple_http_request.e",  1, 77, 30, 21, 21),
            _cls("SIMPLE_HTTP_RESPONSE", "simple_http/src/simple_http_response.e", 1, 74, 26, 18, 17, False),
        ),
    ),
    Library(
        name="simple_file", path="simple_file", score=61,
        feature_count=74, require_count=44, ensure_count=46, invariant_count=2,
        classes=(
            _cls("SIMPLE_FILE",       "simple_file/src/simple_file.e",       1, 66, 44, 28, 30),
            _cls("SIMPLE_FILE_UTILS", "simple_file/src/simple_file_utils.e", 1, 54, 30, 16, 16),
        ),
    ),
    Library(
        name="simple_process", path="simple_process", score=33,
        feature_count=41, require_count=14, ensure_count=13, invariant_count=1,
        classes=(
            _cls("SIMPLE_PROCESS",        "simple_process/src/simple_process.e",        1, 38, 27, 10, 10),
            _cls("SIMPLE_PROCESS_HELPER", "simple_process/src/simple_process_helper.e", 1, 24, 14, 4, 3, False),
        ),
    ),
    Library(
        name="simple_legacy", path="simple_legacy", score=0,
        feature_count=18, require_count=0, ensure_count=0, invariant_count=0,
        classes=(
            _cls("SIMPLE_LEGACY", "simple_legacy/src/simple_legacy.e", 1, 0, 18, 0, 0, False),
        ),
    ),
)


def sample_snapshot() -> Snapshot:
    """Fixed demo snapshot; rollups are precomputed like a primary payload."""
    libs = SAMPLE_LIBRARIES
    return Snapshot(
        name="Sample Codebase",
        score=64,
        library_count=len(libs),
        class_count=sum(len(lib.classes) for lib in libs),
        total_features=sum(lib.feature_count for lib in libs),
        total_require=sum(lib.require_count for lib in libs),
        total_ensure=sum(lib.ensure_count for lib in libs),
        total_invariants=sum(lib.invariant_count for lib in libs),
        libraries=libs,
    )
