"""FastAPI application for the HikariCha rewards service."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

import config
import models  # noqa: F401  registers every table on Base.metadata
from database import Base, SessionLocal, engine
from exceptions import AppException
from routers import achievements, borders, points
from services.border_service import ensure_default_borders


logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.validate_config()
    logger.info("Starting %s (%s)", config.APP_NAME, config.ENV)

    if config.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        ensure_default_borders(db)
    finally:
        db.close()

    yield

    engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(title=config.APP_NAME, lifespan=lifespan)

app.state.limiter = borders.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(achievements.router, prefix="/api/v1/achievements", tags=["achievements"])
app.include_router(borders.router, prefix="/api/v1/borders", tags=["borders"])
app.include_router(points.router, prefix="/api/v1/points", tags=["points"])


@app.exception_handler(AppException)
async def app_exception_handler(request, exc: AppException):
    if exc.status_code >= 500:
        logger.error("%s: %s", type(exc).__name__, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "error": type(exc).__name__,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


@app.get("/health", tags=["health"])
def health_check():
    """Report whether the database answers."""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except Exception:
        logger.exception("Health check failed")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "connection failed"},
        )
    finally:
        db.close()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, log_level=config.LOG_LEVEL.lower())
