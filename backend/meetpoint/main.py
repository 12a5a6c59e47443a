import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from meetpoint.config import settings

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_LOG_DIR.mkdir(exist_ok=True)

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "meetpoint.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from meetpoint.exception_handlers import setup_exception_handlers
from meetpoint.routers import geocode, meeting_points, rooms

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: make sure the room tables exist
    if settings.room_store_backend == "sql":
        from meetpoint.database import init_models

        await init_models()
        logger.info("Room tables ready")
    if not settings.google_maps_api_key:
        logger.warning("GOOGLE_MAPS_API_KEY not set, serving mock place data")

    yield

    # Shutdown
    from meetpoint.services.cache_service import cache_service
    from meetpoint.services.google_maps_client import google_maps_client

    await google_maps_client.close()
    await cache_service.close()
    if settings.room_store_backend == "sql":
        from meetpoint.database import engine

        await engine.dispose()
    logger.info("MeetPoint shut down")


app = FastAPI(
    title="MeetPoint",
    description="Fair meeting point recommendations and group voting",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

app.include_router(meeting_points.router, prefix="/api", tags=["meeting-points"])
app.include_router(rooms.router, prefix="/api", tags=["rooms"])
app.include_router(geocode.router, prefix="/api", tags=["geocode"])


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "service": "meetpoint"}
