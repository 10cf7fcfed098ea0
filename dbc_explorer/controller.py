"""
Visualization controller — view-state machine behind one panel.

States: Universe, Library(selected). Every transition pushes the matching
render messages to the surface through `emit`. Fetches run off the event
loop so the layout tick loop keeps going while a source is slow.

In-flight fetches are not cancelled: two overlapping requestData calls both
finish and the later one to resolve wins the cache and the view.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from starlette.concurrency import run_in_threadpool

from dbc_explorer.analytics.scene import Renderer
from dbc_explorer.cache import SnapshotCache, find_library
from dbc_explorer.errors import FileOpenFailure
from dbc_explorer.models import Library, Snapshot
from dbc_explorer.opener import FileOpener
from dbc_explorer.protocol import (
    ClickNode,
    DragNode,
    DrillDown,
    IncomingMessage,
    OpenFile,
    RequestData,
    ShowUniverse,
    notice,
    parse_message,
    scene_message,
    show_library,
    update_data,
)
from dbc_explorer.sources.chain import ResolutionChain
from dbc_explorer.sources.scanner import EnvironmentScanner

logger = logging.getLogger(__name__)

Emit = Callable[[dict], Awaitable[None]]


class ViewKind(str, Enum):
    UNIVERSE = "universe"
    LIBRARY  = "library"


@dataclass(frozen=True)
class ViewState:
    kind:     ViewKind
    selected: Optional[str] = None


UNIVERSE_VIEW = ViewState(ViewKind.UNIVERSE)


class VisualizationController:
    def __init__(
        self,
        chain:       ResolutionChain,
        cache:       SnapshotCache,
        scanner:     Optional[EnvironmentScanner],
        file_opener: FileOpener,
        renderer:    Renderer,
        emit:        Emit,
        on_render:   Optional[Callable[[], None]] = None,
    ):
        self.chain       = chain
        self.cache       = cache
        self.scanner     = scanner
        self.file_opener = file_opener
        self.renderer    = renderer
        self.emit        = emit
        self.on_render   = on_render
        self.state: Optional[ViewState] = None   # set by the first render
        self.disposed = False

    # ── Rendering ────────────────────────────────────────────────────────────

    async def _push_scene(self, scene: dict) -> None:
        await self.emit(scene_message(scene))
        if self.on_render is not None:
            self.on_render()

    async def _render_universe(self, snapshot: Snapshot) -> None:
        self.state = UNIVERSE_VIEW
        await self.emit(update_data(snapshot))
        await self._push_scene(self.renderer.render_universe(snapshot))

    # ── Transitions ──────────────────────────────────────────────────────────

    async def request_data(self) -> Snapshot:
        snapshot = await run_in_threadpool(self.chain.resolve)
        self.cache.set(snapshot)
        await self._render_universe(snapshot)
        return snapshot

    async def drill_down(self, library_name: str) -> Optional[Library]:
        lib = await run_in_threadpool(find_library, self.cache, library_name, self.scanner)
        if lib is None:
            logger.info("drill-down into %r found no data, staying in %s view", library_name,
                        (self.state or UNIVERSE_VIEW).kind.value)
            await self.emit(show_library(None))
            return None
        self.state = ViewState(ViewKind.LIBRARY, lib.name)
        await self.emit(show_library(lib))
        await self._push_scene(self.renderer.render_library(lib))
        return lib

    async def show_universe(self) -> Snapshot:
        snapshot = self.cache.get()
        if snapshot is None:
            return await self.request_data()
        await self._render_universe(snapshot)
        return snapshot

    async def open_file(self, path: str, line: int = 1) -> bool:
        try:
            await run_in_threadpool(self.file_opener.open, path, line)
        except FileOpenFailure as exc:
            await self._open_failed(exc)
            return False
        return True

    async def _open_failed(self, exc: FileOpenFailure) -> None:
        logger.warning("%s", exc)
        await self.emit(notice(str(exc), level="error"))

    def drag(self, message: DragNode) -> None:
        if message.phase == "start":
            self.renderer.drag_start(message.nodeId, message.x, message.y)
        elif message.phase == "move":
            self.renderer.drag(message.nodeId, message.x, message.y)
        else:
            self.renderer.drag_end(message.nodeId)
        if self.on_render is not None:
            self.on_render()

    # ── Dispatch ─────────────────────────────────────────────────────────────

    async def dispatch(self, message: IncomingMessage) -> None:
        if self.disposed:
            logger.debug("ignoring %s on a disposed panel", message.command)
            return
        if isinstance(message, RequestData):
            await self.request_data()
        elif isinstance(message, DrillDown):
            await self.drill_down(message.libraryName)
        elif isinstance(message, ShowUniverse):
            await self.show_universe()
        elif isinstance(message, OpenFile):
            await self.open_file(message.filePath, message.line)
        elif isinstance(message, DragNode):
            self.drag(message)
        elif isinstance(message, ClickNode):
            follow_up = self.renderer.click(message.nodeId)
            if follow_up is not None:
                await self.dispatch(parse_message(follow_up))
                return
            node = self.renderer.by_id.get(message.nodeId)
            if node is not None and node["kind"] == "class":
                await self._open_failed(
                    FileOpenFailure(node["label"], 1, "no source location recorded"))

    async def handle(self, raw: dict) -> None:
        """Parse and dispatch one raw surface message. Raises ProtocolError."""
        await self.dispatch(parse_message(raw))

    def dispose(self) -> None:
        self.disposed = True
        self.state = None
