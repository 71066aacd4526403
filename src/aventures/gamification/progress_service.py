"""Progress store: point grants with idempotency, level-up detection and badge unlocks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from aventures.db.models import CompletedTrip, PointsLedger, Trip, UserBadge, UserProgress
from aventures.gamification.badge_rules import ProgressSnapshot, check_badge_unlock
from aventures.gamification.catalog import BADGE_CATALOG, Badge
from aventures.gamification.levels import calculate_level, get_level_title
from aventures.gamification.points import ActionKind, PointsContext, calculate_points
from aventures.gamification.streak_service import record_activity_day
from aventures.redis_client import publish_event

logger = logging.getLogger(__name__)

# Counter bumped on the progress row for each scored action
ACTION_COUNTERS: dict[ActionKind, str] = {
    ActionKind.ACTIVITY_COMPLETED: "activities_completed",
    ActionKind.CHALLENGE_COMPLETED: "challenges_completed",
    ActionKind.PHOTO_SHARED: "photos_shared",
    ActionKind.HELP_PROVIDED: "help_provided_count",
    ActionKind.ECO_ACTION: "eco_actions_count",
    ActionKind.MESSAGE_SENT: "interactions_count",
    ActionKind.EARLY_ACTIVITY: "early_activities_count",
    ActionKind.NIGHT_ACTIVITY: "night_activities_count",
    ActionKind.PERFECT_CHALLENGE: "perfect_challenges",
}


@dataclass
class ActionResult:
    points_awarded: int
    total_points: int
    level: int
    leveled_up: bool
    old_level: int = 1
    unlocked: list[Badge] = field(default_factory=list)


async def get_or_create_progress(db: AsyncSession, user_id: str) -> UserProgress:
    """Get or create the progress row for a user, with all-zero defaults."""
    result = await db.execute(
        select(UserProgress).where(UserProgress.user_id == user_id)
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        now = datetime.now(timezone.utc)
        progress = UserProgress(
            user_id=user_id,
            total_points=0,
            level=1,
            current_streak=0,
            longest_streak=0,
            member_since=now,
            updated_at=now,
        )
        db.add(progress)
        await db.flush()
    return progress


async def get_earned_badges(db: AsyncSession, user_id: str) -> list[UserBadge]:
    result = await db.execute(
        select(UserBadge)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.asc(), UserBadge.id.asc())
    )
    return list(result.scalars().all())


async def get_completed_trips(db: AsyncSession, user_id: str) -> list[CompletedTrip]:
    result = await db.execute(
        select(CompletedTrip).where(CompletedTrip.user_id == user_id)
    )
    return list(result.scalars().all())


def snapshot_of(
    progress: UserProgress,
    earned_badges: set[str],
    completed_trips: set[str],
) -> ProgressSnapshot:
    """Freeze a progress row into the value the badge rules evaluate."""
    return ProgressSnapshot(
        user_id=progress.user_id,
        total_points=progress.total_points,
        current_streak=progress.current_streak,
        longest_streak=progress.longest_streak,
        earned_badges=frozenset(earned_badges),
        completed_trips=frozenset(completed_trips),
        member_since=progress.member_since,
        activities_completed=progress.activities_completed,
        challenges_completed=progress.challenges_completed,
        survival_challenges_completed=progress.survival_challenges_completed,
        perfect_challenges=progress.perfect_challenges,
        photos_shared=progress.photos_shared,
        interactions_count=progress.interactions_count,
        help_provided_count=progress.help_provided_count,
        eco_actions_count=progress.eco_actions_count,
        early_activities_count=progress.early_activities_count,
        night_activities_count=progress.night_activities_count,
        destinations_visited=progress.destinations_visited,
    )


async def load_snapshot(db: AsyncSession, user_id: str) -> ProgressSnapshot:
    progress = await get_or_create_progress(db, user_id)
    earned = {b.badge_id for b in await get_earned_badges(db, user_id)}
    completed = {t.trip_id for t in await get_completed_trips(db, user_id)}
    return snapshot_of(progress, earned, completed)


def apply_action_counters(progress: UserProgress, context: PointsContext) -> None:
    """Bump the explicit counters the badge rules read."""
    counter = ACTION_COUNTERS.get(context.action)
    if counter is not None:
        setattr(progress, counter, getattr(progress, counter) + 1)
    if context.action is ActionKind.CHALLENGE_COMPLETED and context.challenge_id and "survie" in context.challenge_id:
        progress.survival_challenges_completed += 1


async def record_action(
    db: AsyncSession,
    user_id: str,
    context: PointsContext,
    idempotency_key: str | None = None,
    now: datetime | None = None,
) -> ActionResult | None:
    """Score an action for a user. Returns None if ``idempotency_key`` was already used.

    After scoring:
    1. Insert into points_ledger
    2. Update counters, total_points and the daily streak
    3. Recompute level from total_points
    4. Unlock every badge the new state satisfies, one evaluation at a time

    Nothing is published here. Once the caller has committed, it passes the
    result to ``publish_action_events``. A key recorded concurrently by
    another request is detected on the ledger insert, which rolls the
    session back.
    """
    if idempotency_key is not None and await _ledger_has_key(db, idempotency_key):
        return None

    now = now or datetime.now(timezone.utc)
    points = calculate_points(context)

    db.add(PointsLedger(
        user_id=user_id,
        action=context.action.value,
        points=points,
        source_id=context.source_id,
        idempotency_key=idempotency_key,
        created_at=now,
    ))
    try:
        await db.flush()
    except IntegrityError:
        if idempotency_key is None:
            raise
        await db.rollback()
        logger.info("Duplicate action key %s for user %s", idempotency_key, user_id)
        return None

    progress = await get_or_create_progress(db, user_id)
    old_level = calculate_level(progress.total_points)
    apply_action_counters(progress, context)
    progress.total_points += points
    progress.level = calculate_level(progress.total_points)
    record_activity_day(progress, now)
    progress.updated_at = now
    await db.flush()

    unlocked = await evaluate_badges(db, progress, context.action, context, now)

    return ActionResult(
        points_awarded=points,
        total_points=progress.total_points,
        level=progress.level,
        leveled_up=progress.level > old_level,
        old_level=old_level,
        unlocked=unlocked,
    )


async def _ledger_has_key(db: AsyncSession, idempotency_key: str) -> bool:
    existing = await db.execute(
        select(PointsLedger.id).where(PointsLedger.idempotency_key == idempotency_key)
    )
    return existing.first() is not None


async def evaluate_badges(
    db: AsyncSession,
    progress: UserProgress,
    action: ActionKind | None = None,
    context: PointsContext | None = None,
    now: datetime | None = None,
) -> list[Badge]:
    """Persist every badge the current progress unlocks, in catalog order."""
    now = now or datetime.now(timezone.utc)
    earned = {b.badge_id for b in await get_earned_badges(db, progress.user_id)}
    completed = {t.trip_id for t in await get_completed_trips(db, progress.user_id)}

    unlocked: list[Badge] = []
    # Each pass unlocks at most one badge, so the catalog size bounds the loop
    for _ in range(len(BADGE_CATALOG)):
        badge = check_badge_unlock(snapshot_of(progress, earned, completed), action, context, now)
        if badge is None:
            break
        db.add(UserBadge(user_id=progress.user_id, badge_id=badge.id, earned_at=now))
        earned.add(badge.id)
        unlocked.append(badge)

    if unlocked:
        await db.flush()
    return unlocked


async def complete_trip(
    db: AsyncSession,
    user_id: str,
    trip: Trip,
    now: datetime | None = None,
) -> list[Badge]:
    """Record a completed trip and unlock any badge it satisfies.

    Completing the same trip twice is a no-op.
    """
    now = now or datetime.now(timezone.utc)
    progress = await get_or_create_progress(db, user_id)
    completed = await get_completed_trips(db, user_id)
    if any(t.trip_id == trip.id for t in completed):
        return []

    location = trip.location_name.strip().lower()
    if location and all(t.location_name.strip().lower() != location for t in completed):
        progress.destinations_visited += 1

    db.add(CompletedTrip(
        user_id=user_id,
        trip_id=trip.id,
        location_name=trip.location_name,
        completed_at=now,
    ))
    progress.updated_at = now
    await db.flush()

    return await evaluate_badges(db, progress, now=now)


# ── Events, published after commit ──


async def publish_action_events(redis: object, user_id: str, result: ActionResult) -> None:
    await publish_unlocks(redis, user_id, result.unlocked)
    if result.leveled_up:
        await publish_event(redis, "pubsub:level_up", {
            "user_id": user_id,
            "old_level": result.old_level,
            "new_level": result.level,
            "title": get_level_title(result.level),
        })


async def publish_unlocks(redis: object, user_id: str, badges: list[Badge]) -> None:
    for badge in badges:
        logger.info("User %s unlocked badge %s", user_id, badge.id)
        await publish_event(redis, "pubsub:badge_unlocked", {
            "user_id": user_id,
            "badge_id": badge.id,
            "badge_name": badge.name,
            "icon": badge.icon,
        })
