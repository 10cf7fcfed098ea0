"""
Renderer / interaction layer.

Turns a Snapshot (universe view) or a Library (library view) into a scene:
heat-colored nodes, links, tooltips, breadcrumb and legend, positioned by
the force simulation. Pointer events on the scene come back here and are
translated into surface → controller messages.
"""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Awaitable, Callable, Optional

from dbc_explorer.analytics.colors import legend, score_bar_width, score_color, score_label
from dbc_explorer.analytics.layout import LIBRARY, UNIVERSE, ForceSimulation, star_graph
from dbc_explorer.models import Library, Snapshot

logger = logging.getLogger(__name__)

ROOT_BREADCRUMB = "All Libraries"
ROOT_RADIUS = {UNIVERSE: 44.0, LIBRARY: 34.0}


def node_radius(feature_count: int) -> float:
    """Leaf radius grows with the square root of its feature count, capped."""
    return round(12 + min(math.sqrt(max(feature_count, 0)) * 2, 28), 2)


def _library_tooltip(lib: Library) -> str:
    return "\n".join([
        lib.name,
        f"Score: {lib.score}% ({score_label(lib.score)})",
        f"Features: {lib.feature_count}",
        f"Require: {lib.require_count} | Ensure: {lib.ensure_count}",
        f"Classes with invariants: {lib.invariant_count}",
        lib.path,
    ])


def _class_tooltip(cls) -> str:
    return "\n".join([
        cls.name,
        f"Score: {cls.score}% ({score_label(cls.score)})",
        f"Features: {cls.feature_count}",
        f"Require: {cls.require_count} | Ensure: {cls.ensure_count}",
        f"Invariant: {'yes' if cls.has_invariant else 'no'}",
        f"{cls.path}:{cls.line}" if cls.path else "(no source location)",
    ])


def _node(node_id, label, kind, score, radius, tooltip, target=None) -> dict:
    return {
        "id":        node_id,
        "label":     label,
        "kind":      kind,
        "score":     score,
        "color":     score_color(score),
        "bar_width": score_bar_width(score),
        "radius":    radius,
        "tooltip":   tooltip,
        "target":    target,
    }


def universe_nodes(snapshot: Snapshot) -> list[dict]:
    root = _node(
        "codebase", snapshot.name, "codebase", snapshot.score, ROOT_RADIUS[UNIVERSE],
        "\n".join([
            snapshot.name,
            f"Score: {snapshot.score}% ({score_label(snapshot.score)})",
            f"Libraries: {snapshot.library_count} | Classes: {snapshot.class_count}",
            f"Features: {snapshot.total_features}",
            f"Require: {snapshot.total_require} | Ensure: {snapshot.total_ensure}",
            f"Invariants: {snapshot.total_invariants}",
        ]),
    )
    leaves = [
        _node(f"lib:{lib.name}", lib.name, "library", lib.score,
              node_radius(lib.feature_count), _library_tooltip(lib),
              target={"libraryName": lib.name})
        for lib in snapshot.libraries
    ]
    return [root] + leaves


def library_nodes(lib: Library) -> list[dict]:
    root = _node(f"lib:{lib.name}", lib.name, "library", lib.score,
                 ROOT_RADIUS[LIBRARY], _library_tooltip(lib))
    leaves = []
    seen: set[str] = set()
    for i, cls in enumerate(lib.classes):
        node_id = f"class:{cls.name}"
        if node_id in seen:
            node_id = f"{node_id}#{i}"
        seen.add(node_id)
        target = {"filePath": cls.path, "line": cls.line} if cls.path else None
        leaves.append(_node(node_id, cls.name, "class", cls.score,
                            node_radius(cls.feature_count), _class_tooltip(cls), target))
    return [root] + leaves


class Renderer:
    """Current scene plus the simulation laying it out."""

    def __init__(self, width: float = 960, height: float = 640):
        self.width      = width
        self.height     = height
        self.view:       Optional[str] = None
        self.nodes:      list[dict] = []
        self.by_id:      dict[str, dict] = {}
        self.breadcrumb: list[str] = []
        self.simulation: Optional[ForceSimulation] = None
        self._dragging:  set[str] = set()

    # ── Scene construction ───────────────────────────────────────────────────

    def _build(self, view: str, nodes: list[dict], breadcrumb: list[str]) -> dict:
        root, leaves = nodes[0], nodes[1:]
        graph = star_graph(root["id"], [n["id"] for n in leaves])
        self.simulation = ForceSimulation(
            graph, root["id"], {n["id"]: n["radius"] for n in nodes},
            view=view, width=self.width, height=self.height,
        )
        self.view       = view
        self.nodes      = nodes
        self.by_id      = {n["id"]: n for n in nodes}
        self.breadcrumb = breadcrumb
        self._dragging.clear()
        return self.scene()

    def render_universe(self, snapshot: Snapshot) -> dict:
        return self._build(UNIVERSE, universe_nodes(snapshot), [ROOT_BREADCRUMB])

    def render_library(self, lib: Library) -> dict:
        return self._build(LIBRARY, library_nodes(lib), [ROOT_BREADCRUMB, lib.name])

    def scene(self) -> dict:
        positions = self.simulation.positions() if self.simulation else {}
        root_id = self.nodes[0]["id"] if self.nodes else None
        return {
            "view":       self.view,
            "nodes":      [{**n, "x": positions[n["id"]][0], "y": positions[n["id"]][1]}
                           for n in self.nodes],
            "links":      [{"source": root_id, "target": n["id"]} for n in self.nodes[1:]],
            "breadcrumb": list(self.breadcrumb),
            "legend":     legend(),
            "width":      self.width,
            "height":     self.height,
        }

    # ── Interaction ──────────────────────────────────────────────────────────

    def click(self, node_id: str) -> Optional[dict]:
        """Surface → controller message for a click on *node_id*, or None."""
        node = self.by_id.get(node_id)
        if node is None:
            return None
        if node["kind"] == "library" and self.view == UNIVERSE:
            return {"command": "drillDown", **node["target"]}
        if node["kind"] == "class":
            return {"command": "openFile", **node["target"]} if node["target"] else None
        if self.view == LIBRARY and node is self.nodes[0]:
            return {"command": "showUniverse"}
        return None

    def breadcrumb_click(self, index: int) -> Optional[dict]:
        if index == 0 and self.view == LIBRARY:
            return {"command": "showUniverse"}
        return None

    def drag_start(self, node_id: str, x: float, y: float) -> None:
        if self.simulation is None or node_id not in self.by_id:
            return
        if not self._dragging:
            self.simulation.reheat()
        self._dragging.add(node_id)
        self.simulation.pin(node_id, x, y)

    def drag(self, node_id: str, x: float, y: float) -> None:
        if self.simulation is None or node_id not in self._dragging:
            return
        self.simulation.pin(node_id, x, y)

    def drag_end(self, node_id: str) -> None:
        if self.simulation is None or node_id not in self._dragging:
            return
        self._dragging.discard(node_id)
        self.simulation.release(node_id)
        if not self._dragging:
            self.simulation.reheat(0.0)

    # ── Tick loop ────────────────────────────────────────────────────────────

    def frame(self) -> dict:
        sim = self.simulation
        return {
            "command":   "layoutFrame",
            "view":      self.view,
            "alpha":     round(sim.alpha, 4) if sim else 0.0,
            "positions": {k: {"x": x, "y": y} for k, (x, y) in sim.positions().items()} if sim else {},
        }

    async def run_tick_loop(
        self,
        emit: Callable[[dict], Awaitable[None]],
        interval: float = 1 / 30,
        frame_every: int = 5,
    ) -> None:
        """
        Advance the current simulation until it cools, emitting a layoutFrame
        every `frame_every` ticks and once when it settles. A scene built
        while the loop runs is picked up on the next tick, so one loop covers
        every view change.
        """
        while self.simulation is not None and not self.simulation.settled:
            sim = self.simulation
            sim.tick()
            if sim.settled:
                logger.debug("%s layout settled after %d ticks", self.view, sim.ticks)
                await emit(self.frame())
            elif sim.ticks % frame_every == 0:
                await emit(self.frame())
            await asyncio.sleep(interval)
