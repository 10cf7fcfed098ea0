import json
import logging

from fastapi import APIRouter, Body, HTTPException, Request, WebSocket, WebSocketDisconnect

from dbc_explorer.cache import find_library
from dbc_explorer.errors import ProtocolError
from dbc_explorer.models import library_detail
from dbc_explorer.protocol import notice
from dbc_explorer.session import PanelRegistry, VisualizationSession

logger = logging.getLogger(__name__)

router = APIRouter()


def _registry(request: Request) -> PanelRegistry:
    return request.app.state.registry


def _session(request: Request) -> VisualizationSession:
    """The live session, opened on first use. Reads do not count as reveals."""
    registry = _registry(request)
    session = registry.current()
    if session is None:
        session, _created = registry.open()
    return session


def _view(session: VisualizationSession) -> dict:
    state = session.controller.state
    return {
        "view":     state.kind.value if state else None,
        "selected": state.selected if state else None,
        "source":   session.chain.last_source,
    }


@router.post("/api/panel")
def open_panel(request: Request):
    """Open the visualization, or reveal it when one is already live."""
    session, created = _registry(request).open()
    return {"created": created, "reveal_count": session.reveal_count, **_view(session)}


@router.delete("/api/panel")
def close_panel(request: Request):
    _registry(request).dispose()
    return {"disposed": True}


@router.get("/api/snapshot")
async def get_snapshot(request: Request, refresh: bool = False):
    """Current snapshot; resolved on first use or when refresh=true."""
    session = _session(request)
    snapshot = session.cache.get()
    if snapshot is None or refresh:
        snapshot = await session.controller.request_data()
    return {**_view(session), "snapshot": snapshot.model_dump(mode="json")}


@router.get("/api/libraries/{library_name}")
def get_library(request: Request, library_name: str):
    """Library detail by drill-down lookup. Read-only: the view does not change."""
    session = _session(request)
    lib = find_library(session.cache, library_name, session.scanner)
    if lib is None:
        raise HTTPException(status_code=404, detail=f"Library '{library_name}' not found")
    return library_detail(lib)


@router.get("/api/scene")
def get_scene(request: Request):
    session = _session(request)
    if session.renderer.view is None:
        raise HTTPException(status_code=404, detail="Nothing rendered yet. Send requestData first.")
    return session.renderer.scene()


@router.post("/api/messages")
async def post_message(request: Request, message: dict = Body(...)):
    """
    One surface → controller message over plain HTTP.
    Returns every controller → surface message it produced.
    """
    session = _session(request)
    with session.capture() as out:
        try:
            await session.controller.handle(message)
        except ProtocolError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
    return {**_view(session), "messages": [m for m in out if m["command"] != "layoutFrame"]}


@router.websocket("/ws")
async def surface(websocket: WebSocket):
    registry = websocket.app.state.registry
    session, created = registry.open()
    await websocket.accept()

    sender = websocket.send_json
    session.attach(sender)
    if created:
        for message in session.startup_notices():
            await sender(message)
    else:
        await session.replay()

    try:
        while True:
            text = await websocket.receive_text()
            try:
                await session.controller.handle(json.loads(text))
            except json.JSONDecodeError:
                await sender(notice("message is not valid JSON", level="error"))
            except ProtocolError as exc:
                await sender(notice(str(exc), level="error"))
    except WebSocketDisconnect:
        # a superseded surface leaving does not close the panel
        if session.sender == sender:
            registry.dispose()
