import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.api.router import api_router
from app.core.cache import CacheSweeper, QueryCache
from app.core.config import settings
from app.core.logging_config import setup_logging
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app import models  # noqa: F401

setup_logging()
logger = logging.getLogger("dsa_tracker.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ready (%s)", "Postgres" if settings.is_production else "SQLite")
    except Exception:
        logger.exception("Database initialization failed")

    sweeper = CacheSweeper(app.state.query_cache, settings.cache_sweep_interval_seconds)
    sweeper.start()
    logger.info("Query cache sweeper started (every %.0fs)", settings.cache_sweep_interval_seconds)
    try:
        yield
    finally:
        sweeper.stop()
        logger.info("Query cache sweeper stopped")


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.state.query_cache = QueryCache(default_ttl=settings.questions_cache_ttl_seconds)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
def health():
    return {"status": "ok", "cache_entries": len(app.state.query_cache)}


@app.get("/health/db")
def health_db():
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except Exception as exc:
        logger.warning("Database health check failed: %s", exc)
        return {"status": "error", "database": str(exc)}
    finally:
        db.close()


app.include_router(api_router, prefix=settings.api_prefix)
