"""Gamification API endpoints — 7 routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from aventures.database import get_session
from aventures.dependencies import get_current_user_id, get_redis_dep
from aventures.gamification.badge_rules import get_next_badge
from aventures.gamification.catalog import (
    BADGE_CATALOG,
    BADGE_CATEGORIES,
    get_all_badges,
    get_badge_by_id,
    get_badges_by_category,
)
from aventures.gamification.levels import (
    calculate_level,
    compute_level,
    get_level_title,
    get_points_for_level,
)
from aventures.gamification.points import PointsContext
from aventures.gamification.progress_service import (
    get_completed_trips,
    get_earned_badges,
    get_or_create_progress,
    load_snapshot,
    publish_action_events,
    record_action,
)
from aventures.gamification.schemas import (
    ActionRequest,
    ActionResponse,
    AllBadgesResponse,
    AllLevelsResponse,
    BadgeResponse,
    EarnedBadgeResponse,
    LevelEntry,
    LevelResponse,
    NextBadgeResponse,
    ProgressResponse,
    UserBadgesResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


# ── Public endpoints ──


@router.get("/badges", response_model=AllBadgesResponse)
async def list_badges(category: str | None = Query(None)):
    """Get the badge catalog, optionally filtered by category."""
    if category is None:
        badges = get_all_badges()
    elif category in BADGE_CATEGORIES:
        badges = tuple(get_badges_by_category(category))
    else:
        raise HTTPException(status_code=422, detail=f"Unknown badge category: {category}")
    return AllBadgesResponse(badges=[BadgeResponse.from_badge(b) for b in badges])


@router.get("/badges/{badge_id}", response_model=BadgeResponse)
async def get_badge(badge_id: str):
    badge = get_badge_by_id(badge_id)
    if badge is None:
        raise HTTPException(status_code=404, detail="Badge not found")
    return BadgeResponse.from_badge(badge)


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels(up_to: int = Query(20, ge=1, le=200)):
    """Get level thresholds and titles from level 1 to ``up_to``."""
    return AllLevelsResponse(
        levels=[
            LevelEntry(
                level=level,
                title=get_level_title(level),
                points_required=get_points_for_level(level),
            )
            for level in range(1, up_to + 1)
        ]
    )


# ── Authenticated endpoints ──


@router.get("/users/me/progress", response_model=ProgressResponse)
async def get_my_progress(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Get current user's points, level, streak and counts."""
    progress = await get_or_create_progress(db, user_id)
    badges = await get_earned_badges(db, user_id)
    trips = await get_completed_trips(db, user_id)
    await db.commit()

    # Level is derived from points on read, never taken from the stored column
    return ProgressResponse(
        user_id=user_id,
        total_points=progress.total_points,
        level=LevelResponse(**compute_level(progress.total_points)),
        current_streak=progress.current_streak,
        longest_streak=progress.longest_streak,
        badges_earned=len(badges),
        trips_completed=len(trips),
        member_since=progress.member_since,
    )


@router.get("/users/me/badges", response_model=UserBadgesResponse)
async def get_my_badges(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Get current user's earned badges, oldest first."""
    earned = []
    for user_badge in await get_earned_badges(db, user_id):
        badge = get_badge_by_id(user_badge.badge_id)
        if badge is None:
            continue
        earned.append(EarnedBadgeResponse(
            badge=BadgeResponse.from_badge(badge),
            earned_at=user_badge.earned_at,
        ))

    return UserBadgesResponse(
        earned=earned,
        total_available=len(BADGE_CATALOG),
        total_earned=len(earned),
    )


@router.get("/users/me/badges/next", response_model=NextBadgeResponse)
async def get_my_next_badge(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Get the unearned badge the user is closest to."""
    snapshot = await load_snapshot(db, user_id)
    await db.commit()

    result = get_next_badge(snapshot)
    if result is None:
        return NextBadgeResponse()
    badge, ratio = result
    return NextBadgeResponse(badge=BadgeResponse.from_badge(badge), progress=ratio)


@router.post("/users/me/actions", response_model=ActionResponse)
async def post_action(
    body: ActionRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Score an action for the current user and unlock any badges it earns."""
    context = PointsContext(
        action=body.action,
        trip_id=body.trip_id,
        activity_id=body.activity_id,
        challenge_id=body.challenge_id,
        difficulty=body.difficulty,
        time_bonus=body.time_bonus,
        quality=body.quality,
    )
    result = await record_action(db, user_id, context, idempotency_key=body.idempotency_key)
    await db.commit()

    if result is None:
        progress = await get_or_create_progress(db, user_id)
        await db.commit()
        return ActionResponse(
            points_awarded=0,
            total_points=progress.total_points,
            level=calculate_level(progress.total_points),
            leveled_up=False,
            duplicate=True,
        )

    await publish_action_events(redis, user_id, result)
    return ActionResponse(
        points_awarded=result.points_awarded,
        total_points=result.total_points,
        level=result.level,
        leveled_up=result.leveled_up,
        unlocked_badges=[BadgeResponse.from_badge(b) for b in result.unlocked],
    )
