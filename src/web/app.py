"""
FastAPI application factory for Litter Spawn.

Routes:
- /api/status, /api/strategy, /api/spawns -> status and control API
- /detect -> reference remote detection endpoint (multipart "image")
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from runtime.context import RuntimeContext
from .routes import api


def create_app(ctx: RuntimeContext) -> FastAPI:
    """Create the FastAPI app bound to a runtime context."""
    app = FastAPI(
        title="Litter Spawn",
        version="0.1.0",
        description="Camera-driven litter detection and AR spawn pipeline",
    )
    app.state.ctx = ctx

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")
    app.include_router(api.detect_router)

    return app
