"""FastAPI application factory and setup."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from loguru import logger
from starlette.responses import JSONResponse

from src.user_service.api.http.app_data import ApplicationDependencies
from src.user_service.api.http.routers.health import router as health_router
from src.user_service.api.http.routers.users import router as users_router
from src.user_service.api.utils.app_startup import configure_logging
from src.user_service.core.errors import ServiceError, error_response
from src.user_service.core.events.event_bus import get_event_bus
from src.user_service.core.events.publisher import create_event_publisher
from src.user_service.core.services.redis_service import RedisService
from src.user_service.core.storage.table_storage import get_table_storage
from src.user_service.entities.core.user.repository import UserRepository
from src.user_service.runtime.context import get_config

# Initialize logging
configure_logging()


# --- FastAPI app setup ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup()
    try:
        yield
    finally:
        await shutdown()


app = FastAPI(
    title="user-service",
    lifespan=lifespan,
    docs_url=None if get_config().app.environment == "production" else "/docs",
    redoc_url=None if get_config().app.environment == "production" else "/redoc",
)

# expose startup for tests
__all__ = ["app", "startup", "shutdown"]


# --- Request logging middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    base_ctx = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
    }

    start = time.perf_counter()

    # Everything that logs within this block inherits base_ctx
    with logger.contextualize(**base_ctx):
        try:
            logger.info("request.start")
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start) * 1000
            logger.bind(
                status_code=response.status_code,
                duration_ms=round(duration_ms, 1),
            ).info("request.end")

            response.headers.setdefault("X-Request-ID", request_id)
            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            status_code, body = error_response(exc)
            logger.bind(
                status_code=status_code,
                duration_ms=round(duration_ms, 1),
                error_type=type(exc).__name__,
            ).exception("request.error")
            return JSONResponse(
                status_code=status_code,
                content=body,
                headers={"X-Request-ID": request_id},
            )


# --- Error handlers ---
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    status_code, body = error_response(exc)
    log = logger.bind(status_code=status_code, error_kind=exc.kind.name)
    if status_code >= 500:
        log.error("Request failed: {}", exc.message)
    else:
        log.warning("Request rejected: {}", exc.message)
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.bind(status_code=422).warning("request.validation_error")
    return JSONResponse(
        status_code=422,
        content={
            "statusCode": 422,
            "error": "Unprocessable Entity",
            "message": "Invalid request body",
            "details": jsonable_encoder(exc.errors()),
        },
    )


# --- Router registration ---
app.include_router(health_router)
app.include_router(users_router)


# --- Lifecycle hooks ---
async def startup() -> None:
    config = get_config()
    logger.info("Starting up application in {} environment", config.app.environment)

    redis_service = RedisService()
    redis_client = redis_service.get_client()

    # Fails fast in production when a Redis backend cannot be reached
    table_storage = await get_table_storage(redis_client)
    event_bus = get_event_bus(redis_client)

    app.state.app_dependencies = ApplicationDependencies(
        redis_service=redis_service,
        table_storage=table_storage,
        event_bus=event_bus,
        user_repository=UserRepository(table_storage),
        event_publisher=create_event_publisher(event_bus),
    )


async def shutdown() -> None:
    logger.info("Shutting down application")
    app_dependencies: ApplicationDependencies = app.state.app_dependencies
    await app_dependencies.redis_service.close()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=get_config().app.host,
        port=get_config().app.port,
        access_log=False,  # We handle access logging in middleware
    )
