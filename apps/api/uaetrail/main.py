from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from uaetrail.api.v1.router import router as v1_router
from uaetrail.core.config import settings
from uaetrail.core.logging import configure_logging
from uaetrail.db import SessionLocal, init_db
from uaetrail.middleware.rate_limit import RateLimitMiddleware
from uaetrail.middleware.request_id import RequestIdMiddleware
from uaetrail.middleware.security_headers import SecurityHeadersMiddleware
from uaetrail.redis_client import redis_available

configure_logging()

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.db_auto_create:
        init_db()
        logger.info("database_schema_ensured")
    logger.info("startup_complete", env=settings.env)
    yield
    logger.info("shutdown_complete")


app = FastAPI(title="UAE Trail API", lifespan=lifespan)

# Starlette runs the LAST added middleware FIRST (outermost):
# RequestId + SecurityHeaders wrap CORS preflight and rate limit responses,
# RateLimit sits closest to the app.
app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIdMiddleware)

Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.get("/")
def root():
    return {"name": "UAE Trail API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/health/ready")
def ready():
    db_ok = True
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("readiness_db_failed")
        db_ok = False

    return {
        "status": "ok" if db_ok else "degraded",
        "database": db_ok,
        "redis": redis_available(),
    }


app.include_router(v1_router, prefix="/v1")
