# app/main.py

from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.database import db
from app.core.cache import cache
from app.core.exceptions import WatchMatesError

# Routers
from app.modules.groups.router import router as groups_router
from app.modules.memberships.router import router as memberships_router
from app.modules.matches.router import router as matches_router

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application startup/shutdown lifecycle.
    - Connect DB pool
    - Connect Redis
    """
    logger.info("Starting WatchMates application...")
    await db.connect()
    await cache.connect()
    logger.info("Database and cache connections established.")
    yield
    logger.info("Shutting down WatchMates application...")
    await db.disconnect()
    await cache.close()
    logger.info("Database and cache connections closed.")


app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS (tighten allow_origins in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------------------------------------------------------
# ERROR TRANSLATION
# -------------------------------------------------------------------
ERROR_STATUS = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "conflict": status.HTTP_409_CONFLICT,
    "limit_exceeded": status.HTTP_409_CONFLICT,
}


@app.exception_handler(WatchMatesError)
async def watchmates_error_handler(request: Request, exc: WatchMatesError):
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.kind, status.HTTP_400_BAD_REQUEST),
        content={"detail": exc.detail, "error": exc.kind},
    )


# -------------------------------------------------------------------
# HEALTH CHECK
# -------------------------------------------------------------------
@app.get("/health", tags=["System"])
async def health_check():
    """
    Runtime liveness probe used by infra / load balancers.
    Verifies DB and Redis.
    """
    db_health = await db.ping()
    cache_health = await cache.ping()

    status_code = 200 if (db_health and cache_health) else 503

    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ok" if status_code == 200 else "unhealthy",
            "components": {
                "database": "connected" if db_health else "disconnected",
                "redis": "connected" if cache_health else "disconnected",
            },
        },
    )


# -------------------------------------------------------------------
# API ROUTERS (versioned)
# -------------------------------------------------------------------
API_PREFIX = "/api/v1"

app.include_router(groups_router, prefix=API_PREFIX)
app.include_router(memberships_router, prefix=API_PREFIX)
app.include_router(matches_router, prefix=API_PREFIX)


# -------------------------------------------------------------------
# Request logging
# -------------------------------------------------------------------
request_logger = logging.getLogger("app.request")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    request_logger.info(
        "%s %s -> %d (%.1f ms)",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
    )
    return response
