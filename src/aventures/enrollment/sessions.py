"""Wizard session storage in Redis, keyed by (user, trip), expiring after inactivity."""

from __future__ import annotations

import json
from typing import Any


def session_key(user_id: str, trip_id: str) -> str:
    return f"enrollment:wizard:{user_id}:{trip_id}"


class WizardSessionStore:
    def __init__(self, redis: Any, ttl_seconds: int) -> None:
        self._redis = redis
        self._ttl = ttl_seconds

    async def load(self, user_id: str, trip_id: str) -> dict[str, Any] | None:
        raw = await self._redis.get(session_key(user_id, trip_id))
        if raw is None:
            return None
        return json.loads(raw)

    async def save(self, state: dict[str, Any]) -> None:
        await self._redis.set(
            session_key(state["user_id"], state["trip_id"]),
            json.dumps(state),
            ex=self._ttl,
        )

    async def delete(self, user_id: str, trip_id: str) -> None:
        await self._redis.delete(session_key(user_id, trip_id))
