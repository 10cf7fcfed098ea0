"""
Runtime configuration — read once from DBC_* environment variables.
No behaviour lives here, only knobs and their defaults.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field

PACKAGE_DIR   = Path(__file__).parent
FRONTEND_DIST = PACKAGE_DIR.parent / "frontend" / "dist"

ENV_PREFIX = "DBC_"


class Settings(BaseModel):
    # Environment scanner
    scan_prefix:       str       = "SIMPLE_"
    source_extensions: list[str] = Field(default_factory=lambda: [".e"])
    skip_dirs:         list[str] = Field(default_factory=lambda: ["EIFGENs"])
    class_cap:         int       = Field(default=10, ge=0)

    # Primary source (either one, command wins when both are set)
    primary_command:   Optional[str] = None
    primary_url:       Optional[str] = None
    primary_timeout:   float         = Field(default=10.0, gt=0)

    # File opener, e.g. "code --goto {path}:{line}"
    editor_command:    Optional[str] = None

    # Rendering
    viewport_width:    int   = Field(default=960, gt=0)
    viewport_height:   int   = Field(default=640, gt=0)
    tick_interval:     float = Field(default=1 / 30, gt=0)
    frame_every:       int   = Field(default=5, ge=1)

    log_level:         str  = "INFO"
    frontend_dist:     Path = FRONTEND_DIST


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.replace(";", ",").split(",") if part.strip()]


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from DBC_* variables.

    DBC_SCAN_PREFIX, DBC_SOURCE_EXTENSIONS (comma list), DBC_SKIP_DIRS (comma list),
    DBC_CLASS_CAP, DBC_PRIMARY_COMMAND, DBC_PRIMARY_URL, DBC_PRIMARY_TIMEOUT,
    DBC_EDITOR_COMMAND, DBC_VIEWPORT_WIDTH, DBC_VIEWPORT_HEIGHT, DBC_TICK_INTERVAL,
    DBC_FRAME_EVERY, DBC_LOG_LEVEL, DBC_FRONTEND_DIST.
    """
    env = os.environ if environ is None else environ
    raw: dict[str, object] = {}
    for name in Settings.model_fields:
        value = env.get(ENV_PREFIX + name.upper())
        if value is None or value == "":
            continue
        if name in ("source_extensions", "skip_dirs"):
            raw[name] = _split(value)
        else:
            raw[name] = value
    return Settings.model_validate(raw)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
