from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ndvi_monitor.api.routes import health_router, router as ndvi_router
from ndvi_monitor.config import get_settings
from ndvi_monitor.services.earth_engine import ensure_ee
from ndvi_monitor.utils.logging_colors import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        ensure_ee(settings)
    except Exception as exc:  # pragma: no cover - EE errors vary at runtime
        # Sessions still work offline; the analysis endpoint reports the backend error.
        logger.error("Earth Engine initialisation failed: %s", exc)
    yield


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="NDVI Monitor", version="1.0.0", lifespan=lifespan)

    allowed_origins = settings.cors_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(ndvi_router)

    @app.get("/")
    def root() -> dict[str, object]:
        return {
            "service": "ndvi-monitor",
            "project": settings.gcp_project,
            "years": settings.supported_years,
        }

    @app.get("/healthz")
    def healthz() -> dict[str, object]:
        return {"ok": True}

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn (`ndvi-monitor-api`)."""
    uvicorn.run("ndvi_monitor.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
