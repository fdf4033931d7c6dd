from pathlib import Path as _Path
# Load .env ASAP so settings see env vars before get_settings() caches them
try:
    from dotenv import load_dotenv as _load_dotenv  # type: ignore
    _load_dotenv(dotenv_path=_Path(__file__).resolve().parent.parent / ".env", override=False)
except Exception:
    pass

import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse

from . import db as _db_module
from .config import get_settings
from .db import close_mongo_connection, connect_to_mongo
from .redis_bus import start_consumer as redis_bus_start_consumer, stop as redis_bus_stop
from .routers import matches, messages, realtime, swipes
from .services.events import get_event_hub

LOGGER = logging.getLogger("uvicorn.error")

app = FastAPI(title="Mutual Matching API", default_response_class=ORJSONResponse)
settings = get_settings()

LOGGER.info("[CORS] allow_origins=%s", settings.allow_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)
app.add_middleware(GZipMiddleware, minimum_size=512)


@app.middleware("http")
async def log_slow_requests(request, call_next):
    t0 = time.time()
    response = await call_next(request)
    dt = (time.time() - t0) * 1000
    if dt >= get_settings().slow_request_ms:
        LOGGER.warning(
            "[perf] slow request %s %s %dms status=%s",
            request.method,
            request.url.path,
            int(dt),
            response.status_code,
        )
    return response


@app.on_event("startup")
async def startup():
    await connect_to_mongo()
    # Cross-instance fan-out for real-time events (optional)
    try:
        if get_settings().redis_pubsub_enabled:
            started = await redis_bus_start_consumer(get_event_hub().handle_remote)
            LOGGER.info("[Events] Redis pub/sub listener %s", "started" if started else "unavailable")
        else:
            LOGGER.info("[Events] Redis pub/sub disabled")
    except Exception as e:
        LOGGER.error("[Events] listener start failed (non-fatal): %s", e)


@app.on_event("shutdown")
async def shutdown():
    await close_mongo_connection()
    try:
        await redis_bus_stop()
    except Exception as e:
        LOGGER.warning("[Events] listener stop failed: %s", e)


# Routers
app.include_router(swipes.router, prefix="/api")
app.include_router(matches.router, prefix="/api")
app.include_router(messages.router, prefix="/api")
app.include_router(realtime.router, prefix="/api")


@app.get("/")
async def root():
    return {"status": "mutual-api-ok"}


@app.get("/api/health/db")
async def db_health():
    return {
        "mongo": "connected" if _db_module.is_connected() else "disconnected",
        "db": str(get_settings().mongo_db),
    }
