"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from fastapi import Header, HTTPException

from aventures.redis_client import get_redis as _get_redis


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """Yield the Redis client as a FastAPI dependency."""
    yield _get_redis()


async def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    """Return the caller's user id, as forwarded by the auth gateway."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id


async def require_admin(
    x_user_role: str | None = Header(default=None, alias="X-User-Role"),
) -> None:
    """Reject callers the auth gateway did not tag as administrators."""
    if x_user_role != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
