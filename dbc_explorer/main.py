"""
DbC Explorer — FastAPI backend
Serves the contract-coverage graph to a rendering surface over WebSocket/HTTP.

Usage:
    python -m dbc_explorer.main                  # 127.0.0.1:8000
    python -m dbc_explorer.main --port 9000
    uvicorn dbc_explorer.main:app --reload
"""
from __future__ import annotations

import argparse
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from dbc_explorer import __version__
from dbc_explorer.routers import visualization
from dbc_explorer.session import PanelRegistry, session_factory
from dbc_explorer.settings import Settings, configure_logging, load_settings


def create_app(settings: Optional[Settings] = None, registry: Optional[PanelRegistry] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.registry.dispose()

    app = FastAPI(title="DbC Explorer API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry or PanelRegistry(session_factory(settings))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(visualization.router)

    # ── Serve the frontend bundle (must be last) ─────────────────────────────
    dist = settings.frontend_dist
    if dist.exists():
        if (dist / "assets").exists():
            app.mount("/assets", StaticFiles(directory=dist / "assets"), name="assets")

        @app.get("/{full_path:path}")
        async def serve_spa(full_path: str):
            """Return index.html for all non-API routes."""
            return FileResponse(dist / "index.html")

    return app


app = create_app()


def main() -> None:
    import uvicorn

    parser = argparse.ArgumentParser(description="Serve the DbC Explorer backend.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
