import asyncio
import logging
import os

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

from db import create_db_and_tables, engine
from errors import HopeCycleError
from notifications import run_delivery_worker
from routers import admin, auth, broadcasts, donations, interests, messages, ngo, notifications, profiles

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
NOTIFICATION_POLL_SECONDS = float(os.getenv("NOTIFICATION_POLL_SECONDS", "5"))

logging.basicConfig(format="%(message)s", level=LOG_LEVEL)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

app = FastAPI(title="HopeCycle")


@app.exception_handler(HopeCycleError)
async def hopecycle_error_handler(request: Request, exc: HopeCycleError) -> JSONResponse:
    logger.warning(
        "request.rejected",
        error=type(exc).__name__,
        message=exc.message,
        details=exc.details,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.on_event("startup")
async def on_startup() -> None:
    create_db_and_tables()
    with Session(engine) as session:
        auth.ensure_admin(session)
    app.state.delivery_task = asyncio.create_task(
        run_delivery_worker(lambda: Session(engine), NOTIFICATION_POLL_SECONDS)
    )
    logger.info("app.started")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    task = getattr(app.state, "delivery_task", None)
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    logger.info("app.stopped")


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(auth.router)
app.include_router(profiles.router, prefix="/profiles")
app.include_router(donations.router, prefix="/donations")
app.include_router(interests.router, prefix="/interests")
app.include_router(ngo.router, prefix="/ngo")
app.include_router(broadcasts.router, prefix="/broadcasts")
app.include_router(messages.router, prefix="/messages")
app.include_router(notifications.router, prefix="/notifications")
app.include_router(admin.router, prefix="/admin")
