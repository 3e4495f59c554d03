import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import dispose_engine
from .locks import SlotLocks
from .realtime.registry import ConnectionRegistry
from .routers import availability, bookings, overrides, restaurant, ws
from .utils.http_errors import error_detail
from .utils.logging_config import setup_logging
from .utils.request_id import REQUEST_ID_HEADER, accept_request_id, set_request_id

logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    registry = ConnectionRegistry(sweep_interval=settings.ws_sweep_interval_seconds)
    app.state.registry = registry
    app.state.slot_locks = SlotLocks()
    registry.start()
    logger.info("ehgezli started (ws sweep every %ss)", settings.ws_sweep_interval_seconds)
    try:
        yield
    finally:
        await registry.stop()
        await dispose_engine()
        logger.info("ehgezli stopped")


app = FastAPI(title="Ehgezli Booking API", lifespan=lifespan)


@app.middleware("http")
async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = accept_request_id(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        set_request_id(None)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": error_detail("ServerError", "internal server error")},
    )


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(availability.router)
app.include_router(bookings.router)
app.include_router(restaurant.router)
app.include_router(overrides.router)
app.include_router(ws.router)
