"""Health, stats and proxy maintenance endpoints.

- GET /health — service status + proxy pool summary
- GET /stats — orchestrator, proxy pool and pacer statistics
- POST /proxies/reset — reactivate every failed proxy
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter

from marketfetch.models.responses import ApiResponse

if TYPE_CHECKING:
    from marketfetch.fetch.orchestrator import FetchOrchestrator


def create_health_router(*, orchestrator: "FetchOrchestrator | None" = None) -> APIRouter:
    """Factory that creates the health router with injected dependencies."""

    health_router = APIRouter(tags=["health"])

    @health_router.get("/health")
    async def health() -> dict:
        """Service health check with proxy pool summary."""
        proxy_stats = (
            orchestrator.proxy_registry.stats().as_dict() if orchestrator else {}
        )
        return ApiResponse(
            success=True,
            data={
                "status": "healthy",
                "proxy_pool": proxy_stats,
            },
        ).model_dump()

    @health_router.get("/stats")
    async def stats() -> dict:
        """Monitoring snapshot: request counters, proxy pool, pacing."""
        if orchestrator is None:
            return ApiResponse(success=True, data={}).model_dump()

        return ApiResponse.snapshot(
            {
                "orchestrator": orchestrator.stats().as_dict(),
                "proxy_pool": orchestrator.proxy_registry.stats().as_dict(),
                "proxies": orchestrator.proxy_registry.snapshot(),
                "pacer": orchestrator.pacer.stats(),
            }
        )

    @health_router.post("/proxies/reset")
    async def reset_proxies() -> dict:
        """Move every failed proxy back to active, keeping its history."""
        reset = orchestrator.proxy_registry.reset_failed() if orchestrator else 0
        return ApiResponse(
            success=True,
            data={"reset": reset},
        ).model_dump()

    return health_router
