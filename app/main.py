import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import engine, Base
from app.middlewares import GlobalErrorHandler, LoggingMiddleware, register_exception_handlers, setup_logging
from app.redis_client import redis_health_check, close_redis
from app.routes import (
    admin,
    auth,
    comments,
    conversations,
    notifications,
    payments,
    payouts,
    posts,
    realtime,
    subscriptions,
    tiers,
    users,
)

# Register every table on Base.metadata before create_all
from app.models import comment, message, notification, payout, post, report, subscription, user  # noqa: F401

setup_logging()
logger = logging.getLogger(__name__)

ROUTERS = [
    auth.router,
    users.router,
    posts.router,
    comments.router,
    tiers.router,
    subscriptions.router,
    payments.router,
    payouts.router,
    notifications.router,
    conversations.router,
    admin.reports_router,
    admin.router,
    realtime.router,
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database connected and tables ready")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        raise

    # Startup does not require Redis
    if await redis_health_check():
        logger.info("Redis connected")
    else:
        logger.warning("Redis ping failed; logout and caching are degraded")

    yield

    await close_redis()
    await engine.dispose()
    logger.info("Connections closed")


def include_routers(app: FastAPI) -> None:
    for router in ROUTERS:
        app.include_router(router)


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    version=settings.version,
    description="Creator subscription platform: tiered content, subscriptions, payments and realtime notifications",
    lifespan=lifespan
)

app.add_middleware(GlobalErrorHandler, debug=settings.debug)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
include_routers(app)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.version,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.version,
        "redis": "up" if await redis_health_check() else "down",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
