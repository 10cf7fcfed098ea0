"""
Score → heat color mapping.

Six buckets, first match in descending order. The thresholds are part of the
public contract: the legend and tests read them from SCORE_BUCKETS.
"""
from __future__ import annotations

# (min_score, color, label)
SCORE_BUCKETS: list[tuple[int, str, str]] = [
    (90, "#1a9850", "Excellent"),      # deep green
    (75, "#66bd63", "Good"),
    (50, "#fee08b", "Fair"),           # yellow
    (25, "#fc8d59", "Weak"),
    (1,  "#d73027", "Poor"),           # red
    (0,  "#4d0d0d", "No contracts"),   # darkest
]

NO_CONTRACTS_COLOR = SCORE_BUCKETS[-1][1]


def score_bucket(score: int) -> int:
    """Index into SCORE_BUCKETS for *score*."""
    for i, (threshold, _color, _label) in enumerate(SCORE_BUCKETS[:-1]):
        if score >= threshold:
            return i
    return len(SCORE_BUCKETS) - 1


def score_color(score: int) -> str:
    return SCORE_BUCKETS[score_bucket(score)][1]


def score_label(score: int) -> str:
    return SCORE_BUCKETS[score_bucket(score)][2]


def score_bar_width(score: int) -> str:
    """CSS width of the score bar."""
    return f"{score}%"


def legend() -> list[dict]:
    return [
        {"min_score": threshold, "color": color, "label": label}
        for threshold, color, label in SCORE_BUCKETS
    ]
