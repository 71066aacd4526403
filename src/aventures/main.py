"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from aventures.config import get_settings
from aventures.database import close_db, init_db
from aventures.enrollment.router import router as enrollment_router
from aventures.gamification.router import router as gamification_router
from aventures.health.router import router as health_router
from aventures.middleware import setup_middleware
from aventures.redis_client import close_redis, init_redis
from aventures.trips.router import router as trips_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Camping Aventures API",
        description="Backend API for Camping Aventures — trip enrollment and adventurer progression",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(gamification_router)
    app.include_router(trips_router)
    app.include_router(enrollment_router)

    return app


app = create_app()
