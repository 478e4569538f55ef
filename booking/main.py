# booking/main.py

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from booking.config import settings
from booking.db import create_db_and_tables
from booking.log import bind_request, clear_request, get_logger, setup_logging
from booking.routers.appointments_routes import router as appointments_router
from booking.routers.blocked_periods_routes import router as blocked_periods_router

setup_logging(settings.LOG_LEVEL, debug=settings.is_development)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    logger.info("app_started", env=settings.APP_ENV)
    yield


app = FastAPI(title="Appointment Booking Engine", lifespan=lifespan)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
    bind_request(request_id, method=request.method, path=request.url.path)
    started = time.perf_counter()
    try:
        response = await call_next(request)
        logger.info(
            "request_finished",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        clear_request()


@app.get("/health")
def health_check():
    return {"status": "ok"}


app.include_router(appointments_router)
app.include_router(blocked_periods_router)
