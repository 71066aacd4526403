"""Trip capacity: availability pre-check and atomic seat reservation."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from aventures.db.models import Trip
from aventures.enrollment.errors import TripClosedError, TripFullError, TripNotFoundError

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("upcoming",)


@dataclass(frozen=True)
class Availability:
    available: bool
    remaining: int


async def get_trip(db: AsyncSession, trip_id: str) -> Trip:
    """Get a trip by ID. Raises TripNotFoundError if missing."""
    result = await db.execute(
        select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
    )
    trip = result.scalar_one_or_none()
    if trip is None:
        raise TripNotFoundError(trip_id)
    return trip


async def check_availability(db: AsyncSession, trip_id: str) -> Availability:
    """Advisory seat count. Seats are only guaranteed by ``reserve_seat``."""
    trip = await get_trip(db, trip_id)
    remaining = max(trip.max_participants - trip.participants_count, 0)
    return Availability(
        available=remaining > 0 and trip.status in OPEN_STATUSES,
        remaining=remaining,
    )


async def reserve_seat(db: AsyncSession, trip_id: str) -> None:
    """Take one seat on an open trip with a single conditional update.

    Runs in the caller's transaction, so a later failure in the same
    transaction gives the seat back on rollback.
    """
    result = await db.execute(
        update(Trip)
        .where(
            Trip.id == trip_id,
            Trip.status.in_(OPEN_STATUSES),
            Trip.participants_count < Trip.max_participants,
        )
        .values(participants_count=Trip.participants_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # Distinguish a full trip from a closed or missing one
        trip = await get_trip(db, trip_id)
        if trip.status not in OPEN_STATUSES:
            raise TripClosedError(trip_id, trip.status)
        raise TripFullError(trip_id)
    logger.info("Reserved seat on trip %s", trip_id)


async def release_seat(db: AsyncSession, trip_id: str) -> None:
    """Give back one seat, never going below zero."""
    await db.execute(
        update(Trip)
        .where(Trip.id == trip_id, Trip.participants_count > 0)
        .values(participants_count=Trip.participants_count - 1)
        .execution_options(synchronize_session=False)
    )
    logger.info("Released seat on trip %s", trip_id)
