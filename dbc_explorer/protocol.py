"""
Controller ⇄ rendering-surface message protocol.

Every message is a JSON object tagged by "command". Incoming (surface →
controller) messages form a closed union validated per kind; anything else
is rejected with ProtocolError. Field names are the wire contract.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from dbc_explorer.errors import ProtocolError
from dbc_explorer.models import Library, Snapshot, library_detail


class _Message(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


# ── Surface → controller ─────────────────────────────────────────────────────

class RequestData(_Message):
    command: Literal["requestData"]


class DrillDown(_Message):
    command:     Literal["drillDown"]
    libraryName: str = Field(min_length=1)


class OpenFile(_Message):
    command:  Literal["openFile"]
    filePath: str = Field(min_length=1)
    line:     int = Field(default=1, ge=1)


class ShowUniverse(_Message):
    command: Literal["showUniverse"]


class ClickNode(_Message):
    command: Literal["clickNode"]
    nodeId:  str


class DragNode(_Message):
    command: Literal["dragNode"]
    nodeId:  str
    phase:   Literal["start", "move", "end"]
    x:       float = 0.0
    y:       float = 0.0


IncomingMessage = Annotated[
    Union[RequestData, DrillDown, OpenFile, ShowUniverse, ClickNode, DragNode],
    Field(discriminator="command"),
]

_incoming = TypeAdapter(IncomingMessage)

INCOMING_COMMANDS = ("requestData", "drillDown", "openFile", "showUniverse", "clickNode", "dragNode")


def parse_message(raw: Any) -> IncomingMessage:
    """Validate a decoded JSON value into one of the incoming message kinds."""
    if not isinstance(raw, dict):
        raise ProtocolError(f"message must be an object, got {type(raw).__name__}")
    command = raw.get("command")
    if command not in INCOMING_COMMANDS:
        raise ProtocolError(f"unknown command: {command!r}")
    try:
        return _incoming.validate_python(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first["loc"][1:]) or command
        raise ProtocolError(f"invalid {command} message: {where}: {first['msg']}") from exc


# ── Controller → surface ─────────────────────────────────────────────────────

def update_data(snapshot: Snapshot) -> dict:
    return {"command": "updateData", "data": snapshot.model_dump(mode="json")}


def show_library(lib: Optional[Library]) -> dict:
    return {"command": "showLibrary", "data": library_detail(lib) if lib is not None else None}


def scene_message(scene: dict) -> dict:
    return {"command": "scene", "data": scene}


def notice(text: str, level: Literal["info", "warning", "error"] = "info") -> dict:
    return {"command": "notice", "level": level, "text": text}
