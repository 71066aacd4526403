"""ORM models for trips, enrollments and gamification progress.

User accounts live in the external auth backend; ``user_id`` columns hold
its opaque string identifiers and carry no foreign key.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from aventures.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------


class Trip(Base):
    """Scheduled guided excursion. Only the fields enrollment needs."""

    __tablename__ = "trips"
    __table_args__ = (
        CheckConstraint(
            "participants_count >= 0 AND participants_count <= max_participants",
            name="seats",
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    location_name: Mapped[str] = mapped_column(String(200), nullable=False, default="", server_default="")
    difficulty: Mapped[str] = mapped_column(String(32), nullable=False, default="débutant", server_default="débutant")
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    participants_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="upcoming", server_default="upcoming")
    starts_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Enrollments
# ---------------------------------------------------------------------------


class Enrollment(Base):
    """A user's registration for a trip, created when the wizard commits."""

    __tablename__ = "enrollments"
    __table_args__ = (
        Index("idx_enrollments_trip_user", "trip_id", "user_id"),
        # At most one pending/confirmed enrollment per (trip, user)
        Index(
            "uq_enrollments_active_trip_user",
            "trip_id",
            "user_id",
            unique=True,
            postgresql_where=text("status IN ('pending', 'confirmed')"),
            sqlite_where=text("status IN ('pending', 'confirmed')"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    trip_id: Mapped[str] = mapped_column(String(64), ForeignKey("trips.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")

    # Step 1
    accepted_terms: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())

    # Step 2
    dietary_preference: Mapped[str | None] = mapped_column(String(32), nullable=True)
    tshirt_size: Mapped[str | None] = mapped_column(String(8), nullable=True)
    needs_transport: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    transport_pickup_point: Mapped[str | None] = mapped_column(String(200), nullable=True)
    additional_questions: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Step 3
    medical_info_confirmed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    # Step 4
    payment_method: Mapped[str | None] = mapped_column(String(16), nullable=True)
    payment_proof_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    transaction_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    reservation_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Gamification
# ---------------------------------------------------------------------------


class UserProgress(Base):
    """Per-user gamification state. ``level`` is recomputed on every write."""

    __tablename__ = "user_progress"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    total_points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_active_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Explicit counters behind activity and custom badge rules
    activities_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    challenges_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    survival_challenges_completed: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    perfect_challenges: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    photos_shared: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    interactions_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    help_provided_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    eco_actions_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    early_activities_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    night_activities_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    destinations_visited: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    member_since: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class UserBadge(Base):
    """Badges earned by users. UNIQUE(user_id, badge_id) prevents duplicates."""

    __tablename__ = "user_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="user_badges_user_id_badge_id_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    badge_id: Mapped[str] = mapped_column(String(64), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CompletedTrip(Base):
    """Trips a user has completed, one row per (user, trip)."""

    __tablename__ = "user_completed_trips"
    __table_args__ = (
        UniqueConstraint("user_id", "trip_id", name="user_completed_trips_user_id_trip_id_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    trip_id: Mapped[str] = mapped_column(String(64), ForeignKey("trips.id", ondelete="CASCADE"), nullable=False)
    location_name: Mapped[str] = mapped_column(String(200), nullable=False, default="", server_default="")
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class PointsLedger(Base):
    """Immutable log of scored actions with idempotency key."""

    __tablename__ = "points_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(256), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
