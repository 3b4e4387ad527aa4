# app/backend/main.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import redis.asyncio as redis
import asyncpg
import logging

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config.config import settings
from .logging.logging_config import setup_logging
from .api import auth, users, fingerprints, attendance, system_settings
from .api.utilities.limiter import limiter
from .db.db_client import AsyncPostgresClient
from .db.schema import create_schema
from .db.seed import seed_database

from fastapi.middleware.cors import CORSMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Opens the shared PostgreSQL and Redis pools on startup, prepares the
    schema and closes everything on shutdown.
    """
    setup_logging()
    logger.info("Application starting...")

    postgres_pool = None
    redis_pool = None

    try:
        postgres_pool = await asyncpg.create_pool(
            dsn=settings.DATABASE_URL, min_size=2, max_size=20
        )
        redis_pool = redis.ConnectionPool.from_url(
            settings.APPLICATION_REDIS_URL, decode_responses=True
        )

        app.state.postgres_pool = postgres_pool
        app.state.redis_pool = redis_pool
        logger.info("PostgreSQL and Redis connection pools created.")

        await create_schema(postgres_pool)
        if settings.SEED_DATABASE:
            await seed_database(AsyncPostgresClient(pool=postgres_pool))

    except Exception as e:
        logger.error(f"ERROR: startup failed: {e}", exc_info=True)
        app.state.postgres_pool = None
        app.state.redis_pool = None

    yield

    logger.info("Application shutting down...")
    if getattr(app.state, 'postgres_pool', None):
        await app.state.postgres_pool.close()
        logger.info("PostgreSQL connection pool closed.")
    if getattr(app.state, 'redis_pool', None):
        await app.state.redis_pool.disconnect()
        logger.info("Redis connection pool closed.")


app = FastAPI(
    title="Fingerprint Attendance API",
    description="Biometric sign-in/sign-out tracking for students and staff",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Renders every HTTP error as {"message": ...}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies or parameters are a 400, reported with the first failing field."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    content = {"message": first.get("msg", "Validation error")}
    if location:
        content["field"] = ".".join(location)
    return JSONResponse(status_code=400, content=content)


app.include_router(auth.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(fingerprints.router, prefix="/api")
app.include_router(attendance.router, prefix="/api")
app.include_router(system_settings.router, prefix="/api")


@app.get("/health", tags=["System"])
def health_check():
    """Simple liveness endpoint."""
    return {"status": "ok", "message": "Fingerprint Attendance API is running."}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.backend.main:app", host="0.0.0.0", port=8000)
