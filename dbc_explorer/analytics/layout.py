"""
Force-directed layout — numpy port of the usual d3-force model.

Forces applied each tick, in order: link springs, many-body repulsion,
collision, centering. Then velocities decay and positions integrate.
Nothing is random: the initial placement is a fixed ring and coincident
nodes are separated by a fixed nudge, so a given graph always settles
the same way.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Hashable, Optional

import networkx as nx
import numpy as np

UNIVERSE = "universe"
LIBRARY  = "library"


@dataclass(frozen=True)
class ForceParams:
    root_charge:     float
    leaf_charge:     float
    collide_padding: float
    link_distance:   float
    link_strength:   float
    ring_fraction:   float   # initial ring radius, fraction of min(width, height)


FORCE_PARAMS: dict[str, ForceParams] = {
    UNIVERSE: ForceParams(root_charge=-800, leaf_charge=-300, collide_padding=20,
                          link_distance=150, link_strength=0.3, ring_fraction=0.35),
    LIBRARY:  ForceParams(root_charge=-200, leaf_charge=-200, collide_padding=15,
                          link_distance=100, link_strength=0.4, ring_fraction=0.30),
}

ALPHA_MIN      = 0.001
ALPHA_DECAY    = 1 - ALPHA_MIN ** (1 / 300)
VELOCITY_DECAY = 0.4
DRAG_ALPHA     = 0.3
_NUDGE         = 1e-6


def star_graph(root: Hashable, children: list[Hashable], **root_attrs) -> nx.Graph:
    """Root linked to every child; node insertion order is root first, then children."""
    G = nx.Graph()
    G.add_node(root, root=True, **root_attrs)
    for child in children:
        G.add_node(child, root=False)
        G.add_edge(root, child)
    return G


def initial_positions(n_children: int, width: float, height: float, ring_fraction: float) -> np.ndarray:
    """
    Root at the viewport center, child i of n at angle 2πi/n on a ring of
    radius ring_fraction × min(width, height). Row 0 is the root.
    """
    cx, cy = width / 2, height / 2
    ring = ring_fraction * min(width, height)
    pos = np.empty((n_children + 1, 2), dtype=float)
    pos[0] = (cx, cy)
    for i in range(n_children):
        angle = 2 * math.pi * i / n_children
        pos[i + 1] = (cx + ring * math.cos(angle), cy + ring * math.sin(angle))
    return pos


class ForceSimulation:
    def __init__(
        self,
        graph:  nx.Graph,
        root:   Hashable,
        radii:  dict[Hashable, float],
        view:   str = UNIVERSE,
        width:  float = 960,
        height: float = 640,
    ):
        self.params = FORCE_PARAMS[view]
        self.view   = view
        self.width  = width
        self.height = height

        self.ids: list[Hashable] = [root] + [n for n in graph.nodes if n != root]
        self.index = {node_id: i for i, node_id in enumerate(self.ids)}
        n = len(self.ids)

        self.pos   = initial_positions(n - 1, width, height, self.params.ring_fraction)
        self.vel   = np.zeros((n, 2))
        self.fixed = np.full((n, 2), np.nan)

        self.charge = np.full(n, float(self.params.leaf_charge))
        self.charge[0] = self.params.root_charge
        self.collide_r = np.array([radii.get(i, 10.0) for i in self.ids]) + self.params.collide_padding

        edges = [(self.index[u], self.index[v]) for u, v in graph.edges]
        self.src = np.array([e[0] for e in edges], dtype=int)
        self.tgt = np.array([e[1] for e in edges], dtype=int)
        degree = np.bincount(np.concatenate([self.src, self.tgt]), minlength=n) if edges else np.zeros(n)
        self.bias = (degree[self.src] / (degree[self.src] + degree[self.tgt])) if edges else np.zeros(0)

        self.alpha        = 1.0
        self.alpha_target = 0.0
        self.ticks        = 0

    # ── State ────────────────────────────────────────────────────────────────

    @property
    def settled(self) -> bool:
        return self.alpha < ALPHA_MIN and self.alpha_target < ALPHA_MIN

    def positions(self) -> dict[Hashable, tuple[float, float]]:
        return {
            node_id: (round(float(x), 2), round(float(y), 2))
            for node_id, (x, y) in zip(self.ids, self.pos)
        }

    def is_pinned(self, node_id: Hashable) -> bool:
        return not np.isnan(self.fixed[self.index[node_id]]).any()

    def pin(self, node_id: Hashable, x: float, y: float) -> None:
        self.fixed[self.index[node_id]] = (x, y)

    def release(self, node_id: Hashable) -> None:
        self.fixed[self.index[node_id]] = np.nan

    def reheat(self, alpha_target: float = DRAG_ALPHA) -> None:
        self.alpha_target = alpha_target
        if self.alpha < alpha_target:
            self.alpha = alpha_target

    # ── Forces ───────────────────────────────────────────────────────────────

    def _link(self, alpha: float) -> None:
        if not len(self.src):
            return
        delta = (self.pos[self.tgt] + self.vel[self.tgt]) - (self.pos[self.src] + self.vel[self.src])
        dist = np.hypot(delta[:, 0], delta[:, 1])
        zero = dist == 0
        delta[zero] = (_NUDGE, 0.0)
        dist[zero] = _NUDGE
        k = (dist - self.params.link_distance) / dist * alpha * self.params.link_strength
        delta *= k[:, None]
        np.add.at(self.vel, self.tgt, -delta * self.bias[:, None])
        np.add.at(self.vel, self.src, delta * (1 - self.bias)[:, None])

    def _many_body(self, alpha: float) -> None:
        diff = self.pos[None, :, :] - self.pos[:, None, :]     # [i, j] = x_j - x_i
        d2 = np.maximum((diff ** 2).sum(axis=2), 1.0)
        w = self.charge[None, :] * alpha / d2
        np.fill_diagonal(w, 0.0)
        self.vel += (diff * w[:, :, None]).sum(axis=1)

    def _collide(self) -> None:
        n = len(self.ids)
        if n < 2:
            return
        p = self.pos + self.vel
        diff = p[:, None, :] - p[None, :, :]                  # [i, j] = x_i - x_j
        dist = np.hypot(diff[..., 0], diff[..., 1])
        reach = self.collide_r[:, None] + self.collide_r[None, :]
        upper = np.triu(np.ones((n, n), dtype=bool), k=1)
        hit = upper & (dist < reach)
        if not hit.any():
            return
        coincident = hit & (dist == 0)
        diff[coincident] = (_NUDGE, 0.0)
        dist[coincident] = _NUDGE
        r2 = self.collide_r ** 2
        share = r2[None, :] / (r2[:, None] + r2[None, :])     # fraction moved by i
        l = np.where(hit, (reach - dist) / np.where(dist == 0, 1, dist), 0.0)
        push = diff * l[:, :, None]
        self.vel += (push * share[:, :, None]).sum(axis=1)
        self.vel -= (push * (1 - share)[:, :, None]).sum(axis=0)

    def _center(self) -> None:
        self.pos -= self.pos.mean(axis=0) - (self.width / 2, self.height / 2)

    # ── Tick ─────────────────────────────────────────────────────────────────

    def tick(self, iterations: int = 1) -> None:
        for _ in range(iterations):
            self.alpha += (self.alpha_target - self.alpha) * ALPHA_DECAY
            self._link(self.alpha)
            self._many_body(self.alpha)
            self._collide()
            self._center()

            self.vel *= 1 - VELOCITY_DECAY
            self.pos += self.vel

            pinned = ~np.isnan(self.fixed[:, 0])
            self.pos[pinned] = self.fixed[pinned]
            self.vel[pinned] = 0.0
            self.ticks += 1

    def run(self, max_ticks: int = 300) -> dict[Hashable, tuple[float, float]]:
        """Tick until cool (or max_ticks) and return the final positions."""
        while not self.settled and self.ticks < max_ticks:
            self.tick()
        return self.positions()


def find_root(graph: nx.Graph) -> Optional[Hashable]:
    for node_id, attrs in graph.nodes(data=True):
        if attrs.get("root"):
            return node_id
    return None
