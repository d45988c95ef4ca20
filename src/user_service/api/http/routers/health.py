"""Health check endpoints router for monitoring service availability."""

from typing import Any

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from src.user_service.api.http.app_data import ApplicationDependencies
from src.user_service.core.storage.table_storage import RedisTableStorage
from src.user_service.runtime.context import get_config

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 as long as the process is running."""
    return {"status": "healthy", "service": get_config().app.service_name}


@router.get("/ready", response_model=None)
async def readiness(request: Request) -> dict[str, Any] | JSONResponse:
    """Readiness probe.

    The table store is critical. Redis as a whole is only critical when a
    Redis backend is configured; otherwise it is reported for information.
    """
    app_deps: ApplicationDependencies = request.app.state.app_dependencies
    config = get_config()

    checks: dict[str, Any] = {}
    all_healthy = True

    storage = app_deps.table_storage
    if isinstance(storage, RedisTableStorage):
        storage_ok = await storage.ping()
    else:
        storage_ok = storage.is_available()
    checks["storage"] = {
        "status": "healthy" if storage_ok else "unhealthy",
        "type": "redis" if isinstance(storage, RedisTableStorage) else "in-memory",
        "table": config.storage.table_name,
    }
    if not storage_ok:
        all_healthy = False

    redis_ok = await app_deps.redis_service.health_check()
    checks["redis"] = {
        "status": "healthy" if redis_ok else "unavailable",
        "enabled": app_deps.redis_service.is_enabled,
    }
    if redis_ok:
        checks["redis"]["info"] = await app_deps.redis_service.get_info()
    redis_required = "redis" in (config.storage.backend, config.events.backend)
    if redis_required and not redis_ok:
        all_healthy = False

    bus_ok = app_deps.event_bus.is_available()
    checks["event_bus"] = {
        "status": "healthy" if bus_ok else "degraded",
        "bus_name": config.events.bus_name,
    }

    body = {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks,
        "environment": config.app.environment,
    }
    if not all_healthy:
        return JSONResponse(status_code=503, content=body)
    return body
