"""Enrollment persistence and lifecycle.

Status progression: pending -> confirmed -> completed
Cancellation is reachable from pending and confirmed. Cancelled and
completed are terminal.
"""

from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from aventures.config import get_settings
from aventures.db.models import Enrollment
from aventures.enrollment.errors import DuplicateEnrollmentError, EnrollmentNotFoundError
from aventures.enrollment.wizard import EnrollmentForm
from aventures.gamification.catalog import Badge
from aventures.gamification.progress_service import complete_trip, publish_unlocks
from aventures.trips.service import Availability, check_availability, get_trip, release_seat, reserve_seat

logger = logging.getLogger(__name__)

ENROLLMENT_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["confirmed", "cancelled"],
    "confirmed": ["completed", "cancelled"],
    "cancelled": [],
    "completed": [],
}

ACTIVE_STATUSES = ("pending", "confirmed")

RESERVATION_ALPHABET = string.ascii_uppercase + string.digits
RESERVATION_SUFFIX_LENGTH = 6


def validate_status_transition(current_status: str, target_status: str) -> None:
    """Validate a status transition. Raises ValueError if invalid."""
    valid = ENROLLMENT_TRANSITIONS.get(current_status, [])
    if target_status not in valid:
        raise ValueError(
            f"Invalid transition: {current_status} -> {target_status}. "
            f"Valid transitions: {valid}"
        )


def generate_reservation_number(prefix: str = "CA", now: datetime | None = None) -> str:
    """Human-facing reference, e.g. ``CA-2026-7K2Q9X``."""
    year = (now or datetime.now(timezone.utc)).year
    suffix = "".join(secrets.choice(RESERVATION_ALPHABET) for _ in range(RESERVATION_SUFFIX_LENGTH))
    return f"{prefix}-{year}-{suffix}"


async def get_enrollment(db: AsyncSession, enrollment_id: str) -> Enrollment:
    """Get an enrollment by ID. Raises EnrollmentNotFoundError if missing."""
    result = await db.execute(
        select(Enrollment).where(Enrollment.id == enrollment_id)
    )
    enrollment = result.scalar_one_or_none()
    if enrollment is None:
        raise EnrollmentNotFoundError(enrollment_id)
    return enrollment


def is_active_enrollment_conflict(exc: IntegrityError) -> bool:
    """Whether ``exc`` comes from the one-active-enrollment-per-(trip, user) index."""
    message = str(exc.orig)
    # PostgreSQL names the index, SQLite lists its columns
    return (
        "uq_enrollments_active_trip_user" in message
        or "enrollments.trip_id, enrollments.user_id" in message
    )


async def get_active_enrollment(db: AsyncSession, trip_id: str, user_id: str) -> Enrollment | None:
    result = await db.execute(
        select(Enrollment).where(
            Enrollment.trip_id == trip_id,
            Enrollment.user_id == user_id,
            Enrollment.status.in_(ACTIVE_STATUSES),
        )
    )
    return result.scalars().first()


async def create_enrollment(
    db: AsyncSession,
    trip_id: str,
    user_id: str,
    form: EnrollmentForm,
) -> Enrollment:
    """Create a pending enrollment and take a seat, in one transaction.

    Raises TripNotFoundError, TripFullError or DuplicateEnrollmentError and
    leaves nothing behind when any step fails.
    """
    settings = get_settings()
    try:
        trip = await get_trip(db, trip_id)
        if await get_active_enrollment(db, trip_id, user_id) is not None:
            raise DuplicateEnrollmentError(trip_id, user_id)

        await reserve_seat(db, trip_id)

        now = datetime.now(timezone.utc)
        enrollment = Enrollment(
            trip_id=trip_id,
            user_id=user_id,
            status="pending",
            accepted_terms=form.accepted_terms,
            dietary_preference=form.dietary_preference,
            tshirt_size=form.tshirt_size,
            needs_transport=form.needs_transport,
            transport_pickup_point=form.transport_pickup_point if form.needs_transport else None,
            additional_questions=form.additional_questions,
            medical_info_confirmed=form.medical_info_confirmed,
            payment_method=form.payment_method.value if form.payment_method else None,
            transaction_number=(form.transaction_number or "").strip() or None,
            total_amount=trip.price,
            reservation_number=generate_reservation_number(settings.reservation_prefix, now),
            created_at=now,
            updated_at=now,
        )
        db.add(enrollment)
        await db.flush()
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if is_active_enrollment_conflict(e):
            # A concurrent request won the race for the active-enrollment index
            raise DuplicateEnrollmentError(trip_id, user_id) from e
        raise
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Enrollment %s (%s) created for user %s on trip %s",
        enrollment.id, enrollment.reservation_number, user_id, trip_id,
    )
    return enrollment


async def attach_payment_proof(db: AsyncSession, enrollment_id: str, url: str) -> Enrollment:
    """Record the uploaded proof URL on an existing enrollment."""
    enrollment = await get_enrollment(db, enrollment_id)
    enrollment.payment_proof_url = url
    enrollment.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return enrollment


async def transition_status(
    db: AsyncSession,
    redis: object,
    enrollment_id: str,
    target_status: str,
) -> Enrollment:
    """Move an enrollment to ``target_status`` and apply the side effects.

    Cancelling releases the seat. Completing records the trip in the user's
    progress, which may unlock trip badges.
    """
    enrollment = await get_enrollment(db, enrollment_id)
    validate_status_transition(enrollment.status, target_status)

    if target_status in ("confirmed", "completed") and not (
        enrollment.accepted_terms and enrollment.medical_info_confirmed
    ):
        raise ValueError(
            f"Enrollment {enrollment_id} cannot be {target_status}: "
            "terms and medical information must both be confirmed"
        )

    unlocked: list[Badge] = []
    try:
        previous = enrollment.status
        enrollment.status = target_status
        enrollment.updated_at = datetime.now(timezone.utc)

        if target_status == "cancelled":
            await release_seat(db, enrollment.trip_id)
        elif target_status == "completed":
            trip = await get_trip(db, enrollment.trip_id)
            unlocked = await complete_trip(db, enrollment.user_id, trip)

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Enrollment %s: %s -> %s", enrollment_id, previous, target_status)
    await publish_unlocks(redis, enrollment.user_id, unlocked)
    return enrollment


class SqlEnrollmentGateway:
    """Availability checker and enrollment store backed by one DB session."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def check_availability(self, trip_id: str) -> Availability:
        return await check_availability(self._db, trip_id)

    async def create(self, trip_id: str, user_id: str, form: EnrollmentForm) -> Enrollment:
        return await create_enrollment(self._db, trip_id, user_id, form)

    async def attach_proof(self, enrollment_id: str, url: str) -> None:
        await attach_payment_proof(self._db, enrollment_id, url)
