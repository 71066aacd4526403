"""Health, readiness, and version endpoints."""

import os
from pathlib import Path

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from aventures.config import get_settings
from aventures.database import get_session
from aventures.redis_client import get_redis

router = APIRouter()

SERVICE_NAME = "camping-aventures-api"


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe — returns 200 if the process is alive."""
    return {"status": "healthy"}


def check_proof_storage(directory: str) -> str:
    """Payment proofs are written under this directory; it must be writable."""
    path = Path(directory)
    while not path.exists() and path != path.parent:
        path = path.parent
    if os.access(path, os.W_OK):
        return "ok"
    return f"error: {directory} is not writable"


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe — checks DB, Redis and proof storage."""
    checks: dict[str, object] = {}

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    # Wizard sessions live in Redis, so enrollment is down without it
    try:
        redis = get_redis()
        await redis.ping()
        checks["redis"] = "ok"
    except Exception as exc:
        checks["redis"] = f"error: {exc}"

    checks["proof_storage"] = check_proof_storage(get_settings().payment_proof_dir)

    all_ok = all(v == "ok" for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return service name, API version and environment."""
    settings = get_settings()
    return {
        "service": SERVICE_NAME,
        "version": settings.app_version,
        "environment": settings.environment,
    }
