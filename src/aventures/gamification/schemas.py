"""Pydantic request/response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from aventures.gamification.catalog import Badge
from aventures.gamification.points import ActionKind, Difficulty


# --- Badge ---


class BadgeRequirementResponse(BaseModel):
    type: str
    value: int
    description: str


class BadgeResponse(BaseModel):
    id: str
    name: str
    icon: str
    description: str
    category: str
    requirement: BadgeRequirementResponse

    @classmethod
    def from_badge(cls, badge: Badge) -> BadgeResponse:
        return cls(
            id=badge.id,
            name=badge.name,
            icon=badge.icon,
            description=badge.description,
            category=badge.category,
            requirement=BadgeRequirementResponse(
                type=badge.requirement.type.value,
                value=badge.requirement.value,
                description=badge.requirement.description,
            ),
        )


class AllBadgesResponse(BaseModel):
    badges: list[BadgeResponse]


class EarnedBadgeResponse(BaseModel):
    badge: BadgeResponse
    earned_at: datetime


class UserBadgesResponse(BaseModel):
    earned: list[EarnedBadgeResponse]
    total_available: int
    total_earned: int


class NextBadgeResponse(BaseModel):
    badge: BadgeResponse | None = None
    progress: float = 0.0


# --- Levels ---


class LevelEntry(BaseModel):
    level: int
    title: str
    points_required: int


class AllLevelsResponse(BaseModel):
    levels: list[LevelEntry]


class LevelResponse(BaseModel):
    level: int
    title: str
    points_into_level: int
    points_for_level: int
    next_level: int
    next_title: str
    next_level_points: int
    progress: float


# --- Progress ---


class ProgressResponse(BaseModel):
    user_id: str
    total_points: int
    level: LevelResponse
    current_streak: int
    longest_streak: int
    badges_earned: int
    trips_completed: int
    member_since: datetime


# --- Actions ---


class ActionRequest(BaseModel):
    action: ActionKind
    trip_id: str | None = None
    activity_id: str | None = None
    challenge_id: str | None = None
    difficulty: Difficulty | None = None
    time_bonus: bool = False
    quality: float | None = Field(default=None, ge=0.0, le=1.0)
    idempotency_key: str | None = Field(default=None, max_length=256)


class ActionResponse(BaseModel):
    points_awarded: int
    total_points: int
    level: int
    leveled_up: bool
    unlocked_badges: list[BadgeResponse] = []
    duplicate: bool = False
