"""FastAPI application entry point with lifespan management.

Startup: validate settings, configure logging, load the proxy list and
fetch policies, build the fetch orchestrator, optionally start background
proxy probing.
Shutdown: cancel background probing, close the orchestrator's HTTP clients.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from marketfetch.config.settings import FetchSettings
from marketfetch.fetch.orchestrator import FetchOrchestrator
from marketfetch.logging_config import configure_logging
from marketfetch.middleware.error_handler import register_error_handlers
from marketfetch.proxy.prober import ProxyProber
from marketfetch.routers.health import create_health_router

logger = logging.getLogger(__name__)

# Populated during lifespan startup
_state: dict = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown logic."""
    settings: FetchSettings = app.state.settings

    configure_logging(settings.log_level, json_output=settings.log_json)
    logger.info("Starting marketfetch monitor on port %d", settings.port)

    orchestrator = FetchOrchestrator.from_settings(settings)
    logger.info(
        "Fetch orchestrator ready (proxies=%d, use_proxies=%s)",
        len(orchestrator.proxy_registry),
        settings.use_proxies,
    )

    # Background proxy probing
    probe_task: asyncio.Task | None = None
    if settings.proxy_probe_interval_seconds and len(orchestrator.proxy_registry):
        prober = ProxyProber(orchestrator.proxy_registry, test_url=settings.proxy_probe_url)
        probe_task = asyncio.create_task(
            prober.probe_loop(settings.proxy_probe_interval_seconds)
        )

    app.include_router(create_health_router(orchestrator=orchestrator))

    _state.update({
        "settings": settings,
        "orchestrator": orchestrator,
        "probe_task": probe_task,
    })

    yield

    # --- Shutdown ---
    logger.info("Shutting down marketfetch monitor…")

    if probe_task is not None:
        probe_task.cancel()
        try:
            await probe_task
        except asyncio.CancelledError:
            pass

    await orchestrator.aclose()
    _state.clear()

    logger.info("marketfetch monitor shut down")


def create_app(settings: FetchSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Loads ``FetchSettings`` eagerly so that invalid environment values cause
    an immediate startup failure.
    """
    settings = settings or FetchSettings()

    app = FastAPI(
        title="marketfetch",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    register_error_handlers(app)

    return app


app = create_app()
