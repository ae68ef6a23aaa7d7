"""Health check router with store connectivity and provider configuration status."""

import asyncio
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from config.settings import Settings, get_settings
from core.dependencies import get_library_db, get_provider_registry
from library.db import LibraryDB
from providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

CHECK_TIMEOUT = 3.0


async def _check_database(db: LibraryDB) -> str:
    """Ping the SQLite database."""
    return "ok" if await db.is_available() else "error"


async def _run_check(coro) -> str:
    """Run a single health check with a timeout."""
    try:
        return await asyncio.wait_for(coro, timeout=CHECK_TIMEOUT)
    except TimeoutError:
        return "timeout"


@router.get(
    "/health",
    summary="Health check",
    responses={
        200: {"description": "Service is healthy or degraded"},
        503: {"description": "Service is unhealthy (database down)"},
    },
)
async def health_check(
    settings: Settings = Depends(get_settings),
    db: LibraryDB = Depends(get_library_db),
    providers: ProviderRegistry = Depends(get_provider_registry),
):
    """Health check: probes the store, reports which providers are usable.

    Providers are not called; an adapter is "enabled" when it is switched on
    and has its required credentials, "unavailable" otherwise.
    """
    database = await _run_check(_check_database(db))
    provider_status = {
        str(adapter.name): "enabled" if adapter.is_enabled else "unavailable"
        for adapter in providers
    }

    if database != "ok":
        status = "unhealthy"
    elif any(state == "enabled" for state in provider_status.values()):
        status = "healthy"
    else:
        status = "degraded"

    body = {
        "status": status,
        "version": settings.app_version,
        "lookup_policy": str(settings.lookup_policy),
        "services": {"database": database},
        "providers": provider_status,
    }

    status_code = 200 if status in ("healthy", "degraded") else 503
    return JSONResponse(content=body, status_code=status_code)
