"""
Adherence Engine API.
FastAPI app exposing on-demand recompute and manual batch triggers; the
nightly batch itself runs on Celery beat.
"""
import os
import time
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

# Load .env in dev before any module reads the environment
load_dotenv()

from adherence.api.adherence_routes import router as adherence_router  # noqa: E402
from adherence.config import EngineConfig  # noqa: E402
from adherence.services.logging_config import setup_logging  # noqa: E402
from adherence.services.middleware import RequestTimingMiddleware  # noqa: E402
from adherence.services.perf_monitor import tracker as perf_tracker  # noqa: E402

_log_level = os.getenv("LOG_LEVEL", "INFO")
_json_logs = os.getenv("LOG_FORMAT", "json").lower() != "text"
setup_logging(level=_log_level, json_output=_json_logs)
logger = logging.getLogger("adherence-api")

_PROCESS_START = time.monotonic()

if not os.getenv("DATABASE_URL"):
    logger.warning("MISSING env var: DATABASE_URL — running in dev mode")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail fast on a bad timezone or batch size rather than at 22:00
    config = EngineConfig.from_env()
    logger.info(
        f"Adherence engine starting (timezone={config.local_timezone}, "
        f"batch_size={config.batch_size}, break_tolerance={config.break_tolerance_minutes}m)"
    )
    try:
        from adherence.db import init_db
        await init_db()
    except Exception as e:
        logger.warning(f"Table init warning (OK if using Alembic): {e}")
    yield


app = FastAPI(
    title="Adherence Calculation Engine",
    version="1.0.0",
    description="Daily schedule-adherence scoring from desktop activity events",
    lifespan=lifespan,
)

app.add_middleware(RequestTimingMiddleware)
app.include_router(adherence_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": "1.0.0",
        "uptime_seconds": round(time.monotonic() - _PROCESS_START, 1),
        "db_configured": bool(os.getenv("DATABASE_URL")),
        "metrics": perf_tracker.get_metrics(),
    }
