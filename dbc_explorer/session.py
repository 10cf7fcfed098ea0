"""
Visualization session and the single-panel registry.

A session owns everything one panel needs (cache, resolution chain,
renderer, controller, tick loop) and is passed explicitly to whoever
drives it; nothing lives in module globals. The registry allows a single
live session: opening again reveals the existing one.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Awaitable, Callable, Iterator, Mapping, Optional

from dbc_explorer.analytics.scene import Renderer
from dbc_explorer.cache import SnapshotCache
from dbc_explorer.controller import ViewKind, VisualizationController
from dbc_explorer.opener import FileOpener, opener_from_template
from dbc_explorer.protocol import notice
from dbc_explorer.settings import Settings
from dbc_explorer.sources.chain import ResolutionChain, build_chain
from dbc_explorer.sources.primary import MetricsProvider, provider_from_settings
from dbc_explorer.sources.scanner import EnvironmentScanner

logger = logging.getLogger(__name__)

Sender = Callable[[dict], Awaitable[None]]


class VisualizationSession:
    def __init__(
        self,
        settings:    Settings,
        provider:    Optional[MetricsProvider] = None,
        file_opener: Optional[FileOpener] = None,
        environ:     Optional[Mapping[str, str]] = None,
        chain:       Optional[ResolutionChain] = None,
        auto_layout: bool = True,
    ):
        self.settings = settings
        self.scanner = EnvironmentScanner(
            environ,
            prefix=settings.scan_prefix,
            extensions=settings.source_extensions,
            skip_dirs=settings.skip_dirs,
            class_cap=settings.class_cap,
        )
        self.provider = provider
        self.chain    = chain or build_chain(provider, self.scanner)
        self.cache    = SnapshotCache()
        self.renderer = Renderer(settings.viewport_width, settings.viewport_height)
        self.controller = VisualizationController(
            self.chain,
            self.cache,
            self.scanner,
            file_opener or opener_from_template(settings.editor_command),
            self.renderer,
            emit=self.post,
            on_render=self.ensure_ticking if auto_layout else None,
        )
        self.disposed     = False
        self.reveal_count = 0
        self._sender:     Optional[Sender] = None
        self._captures:   list[list[dict]] = []
        self._tick_task:  Optional[asyncio.Task] = None

    # ── Surface wiring ───────────────────────────────────────────────────────

    def startup_notices(self) -> list[dict]:
        if self.provider is None:
            return [notice(
                "No primary metrics source configured (DBC_PRIMARY_COMMAND / DBC_PRIMARY_URL); "
                "showing environment or sample data.",
                level="warning",
            )]
        return []

    @property
    def sender(self) -> Optional[Sender]:
        return self._sender

    def attach(self, sender: Optional[Sender]) -> None:
        """Route outgoing messages to *sender* (a WebSocket, usually). None detaches."""
        self._sender = sender

    async def post(self, message: dict) -> None:
        for captured in self._captures:
            captured.append(message)
        if self._sender is not None:
            await self._sender(message)

    @contextmanager
    def capture(self) -> Iterator[list[dict]]:
        """Collect every message posted while the block runs."""
        captured: list[dict] = []
        self._captures.append(captured)
        try:
            yield captured
        finally:
            self._captures.remove(captured)

    async def replay(self) -> None:
        """Re-push the current view to a freshly attached surface, without re-querying."""
        state = self.controller.state
        if state is not None and state.kind is ViewKind.LIBRARY and state.selected:
            await self.controller.drill_down(state.selected)
        elif not self.cache.empty:
            await self.controller.show_universe()

    # ── Layout tick loop ─────────────────────────────────────────────────────

    def ensure_ticking(self) -> None:
        if self.disposed:
            return
        if self._tick_task is not None and not self._tick_task.done():
            return
        self._tick_task = asyncio.get_running_loop().create_task(
            self.renderer.run_tick_loop(
                self.post, self.settings.tick_interval, self.settings.frame_every,
            )
        )

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def reveal(self) -> None:
        self.reveal_count += 1

    def dispose(self) -> None:
        """Terminal. The cache goes with the session."""
        if self.disposed:
            return
        self.disposed = True
        if self._tick_task is not None and not self._tick_task.done():
            self._tick_task.cancel()
        self.controller.dispose()
        self.cache.clear()
        self._sender = None
        logger.info("visualization session disposed")


class PanelRegistry:
    """At most one live session per process."""

    def __init__(self, factory: Callable[[], VisualizationSession]):
        self.factory = factory
        self.active: Optional[VisualizationSession] = None

    def open(self) -> tuple[VisualizationSession, bool]:
        """(session, created). A live session is revealed instead of replaced."""
        if self.active is not None and not self.active.disposed:
            self.active.reveal()
            return self.active, False
        self.active = self.factory()
        logger.info("visualization session opened")
        return self.active, True

    def current(self) -> Optional[VisualizationSession]:
        if self.active is not None and self.active.disposed:
            self.active = None
        return self.active

    def dispose(self) -> None:
        if self.active is not None:
            self.active.dispose()
        self.active = None


def session_factory(
    settings: Settings,
    environ: Optional[Mapping[str, str]] = None,
) -> Callable[[], VisualizationSession]:
    def make() -> VisualizationSession:
        return VisualizationSession(
            settings,
            provider=provider_from_settings(settings),
            environ=environ,
        )
    return make
