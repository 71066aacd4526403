"""Point values for scored user actions.

Pure functions only: the caller persists the result into the user's progress.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


class ActionKind(str, Enum):
    """Actions that earn points."""

    ACTIVITY_COMPLETED = "activity_completed"
    CHALLENGE_COMPLETED = "challenge_completed"
    PHOTO_SHARED = "photo_shared"
    HELP_PROVIDED = "help_provided"
    ECO_ACTION = "eco_action"
    MESSAGE_SENT = "message_sent"
    EARLY_ACTIVITY = "early_activity"
    NIGHT_ACTIVITY = "night_activity"
    PERFECT_CHALLENGE = "perfect_challenge"


class Difficulty(str, Enum):
    BEGINNER = "débutant"
    INTERMEDIATE = "intermédiaire"
    ADVANCED = "avancé"


POINT_VALUES: dict[ActionKind, int] = {
    ActionKind.ACTIVITY_COMPLETED: 10,
    ActionKind.CHALLENGE_COMPLETED: 50,
    ActionKind.PHOTO_SHARED: 5,
    ActionKind.HELP_PROVIDED: 15,
    ActionKind.ECO_ACTION: 10,
    ActionKind.MESSAGE_SENT: 1,
    ActionKind.EARLY_ACTIVITY: 5,
    ActionKind.NIGHT_ACTIVITY: 5,
    ActionKind.PERFECT_CHALLENGE: 25,
}

DIFFICULTY_MULTIPLIERS: dict[Difficulty, float] = {
    Difficulty.BEGINNER: 1.0,
    Difficulty.INTERMEDIATE: 1.5,
    Difficulty.ADVANCED: 2.0,
}

TIME_BONUS_POINTS = 5
QUALITY_THRESHOLD = 0.8
QUALITY_MULTIPLIER = 1.2


@dataclass(frozen=True)
class PointsContext:
    """One scored action and the details that modify its value."""

    action: ActionKind
    trip_id: str | None = None
    activity_id: str | None = None
    challenge_id: str | None = None
    difficulty: Difficulty | None = None
    time_bonus: bool = False
    quality: float | None = None

    def __post_init__(self) -> None:
        if self.quality is not None and not 0.0 <= self.quality <= 1.0:
            raise ValueError(f"quality must be within [0, 1], got {self.quality}")

    @property
    def source_id(self) -> str | None:
        """Most specific identifier of the thing acted upon."""
        return self.challenge_id or self.activity_id or self.trip_id


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def calculate_points(context: PointsContext) -> int:
    """Points earned for an action.

    Bonuses do not stack. A difficulty on a completed challenge wins, then the
    flat time bonus, then the quality multiplier.
    """
    base = POINT_VALUES.get(context.action, 0)

    if context.action is ActionKind.CHALLENGE_COMPLETED and context.difficulty is not None:
        return round_half_up(base * DIFFICULTY_MULTIPLIERS.get(context.difficulty, 1.0))

    if context.time_bonus:
        return base + TIME_BONUS_POINTS

    if context.quality is not None and context.quality > QUALITY_THRESHOLD:
        return round_half_up(base * QUALITY_MULTIPLIER)

    return base
