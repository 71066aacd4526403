"""Pydantic response models for trip endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class AvailabilityResponse(BaseModel):
    trip_id: str
    available: bool
    remaining: int
