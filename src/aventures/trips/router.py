"""Trip API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from aventures.database import get_session
from aventures.enrollment.errors import TripNotFoundError
from aventures.trips.schemas import AvailabilityResponse
from aventures.trips.service import check_availability

router = APIRouter(prefix="/api/v1/trips", tags=["Trips"])


@router.get("/{trip_id}/availability", response_model=AvailabilityResponse)
async def get_availability(trip_id: str, db: AsyncSession = Depends(get_session)):
    """Remaining seats on a trip. Advisory only."""
    try:
        availability = await check_availability(db, trip_id)
    except TripNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return AvailabilityResponse(
        trip_id=trip_id,
        available=availability.available,
        remaining=availability.remaining,
    )
