"""Badge unlock rules. Evaluates a progress snapshot against the catalog."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from aventures.gamification.catalog import BADGE_CATALOG, Badge, RequirementType
from aventures.gamification.points import ActionKind, PointsContext


@dataclass(frozen=True)
class ProgressSnapshot:
    """Read-only view of a user's progress, as the rules see it."""

    user_id: str
    total_points: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    earned_badges: frozenset[str] = field(default_factory=frozenset)
    completed_trips: frozenset[str] = field(default_factory=frozenset)
    member_since: datetime | None = None
    activities_completed: int = 0
    challenges_completed: int = 0
    survival_challenges_completed: int = 0
    perfect_challenges: int = 0
    photos_shared: int = 0
    interactions_count: int = 0
    help_provided_count: int = 0
    eco_actions_count: int = 0
    early_activities_count: int = 0
    night_activities_count: int = 0
    destinations_visited: int = 0

    def counter(self, name: str) -> int:
        return int(getattr(self, name))

    def membership_days(self, now: datetime) -> int:
        if self.member_since is None:
            return 0
        since = self.member_since
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        return max(0, (now - since).days)


CustomRule = Callable[[Badge, ProgressSnapshot, ActionKind | None, PointsContext | None, datetime], bool]


def _is_survival_challenge(action: ActionKind | None, context: PointsContext | None) -> bool:
    return (
        action is ActionKind.CHALLENGE_COMPLETED
        and context is not None
        and context.challenge_id is not None
        and "survie" in context.challenge_id
    )


CUSTOM_RULES: dict[str, CustomRule] = {
    "photographer": lambda b, p, a, c, now: p.photos_shared >= b.requirement.value,
    "survivor": lambda b, p, a, c, now: _is_survival_challenge(a, c),
    "lightning": lambda b, p, a, c, now: (
        a is ActionKind.PERFECT_CHALLENGE and c is not None and c.time_bonus
    ),
    "perfectionist": lambda b, p, a, c, now: a is ActionKind.PERFECT_CHALLENGE,
    "veteran": lambda b, p, a, c, now: p.membership_days(now) >= b.requirement.value,
    "globetrotter": lambda b, p, a, c, now: p.destinations_visited >= b.requirement.value,
    "social": lambda b, p, a, c, now: p.interactions_count >= b.requirement.value,
    "helper": lambda b, p, a, c, now: p.help_provided_count >= b.requirement.value,
    "eco-warrior": lambda b, p, a, c, now: p.eco_actions_count >= b.requirement.value,
}

# Counter measured by custom badges with a numeric target, for progress bars
CUSTOM_PROGRESS_COUNTERS: dict[str, str] = {
    "photographer": "photos_shared",
    "globetrotter": "destinations_visited",
    "social": "interactions_count",
    "helper": "help_provided_count",
    "eco-warrior": "eco_actions_count",
}


def is_requirement_met(
    badge: Badge,
    progress: ProgressSnapshot,
    action: ActionKind | None = None,
    context: PointsContext | None = None,
    now: datetime | None = None,
) -> bool:
    """Whether ``progress`` (plus the action just performed) satisfies ``badge``."""
    requirement = badge.requirement
    now = now or datetime.now(timezone.utc)

    if requirement.type is RequirementType.POINTS:
        return progress.total_points >= requirement.value
    if requirement.type is RequirementType.TRIPS:
        return len(progress.completed_trips) >= requirement.value
    if requirement.type is RequirementType.ACTIVITIES:
        return progress.counter(requirement.counter) >= requirement.value
    if requirement.type is RequirementType.STREAK:
        return progress.current_streak >= requirement.value
    if requirement.type is RequirementType.CUSTOM:
        rule = CUSTOM_RULES.get(badge.id)
        return rule is not None and rule(badge, progress, action, context, now)
    return False


def check_badge_unlock(
    progress: ProgressSnapshot,
    action: ActionKind | None = None,
    context: PointsContext | None = None,
    now: datetime | None = None,
    catalog: tuple[Badge, ...] = BADGE_CATALOG,
) -> Badge | None:
    """Return the first not-yet-earned badge whose requirement is met.

    At most one badge per call. Callers persist it and call again to surface
    any further badge the same action satisfied.
    """
    for badge in catalog:
        if badge.id in progress.earned_badges:
            continue
        if is_requirement_met(badge, progress, action, context, now):
            return badge
    return None


def badge_progress(badge: Badge, progress: ProgressSnapshot, now: datetime | None = None) -> float:
    """Completion ratio toward ``badge`` in [0, 1].

    Badges unlocked by a single qualifying action report 0 until earned.
    """
    if badge.id in progress.earned_badges:
        return 1.0
    if not is_measurable(badge):
        return 0.0

    requirement = badge.requirement
    target = max(requirement.value, 1)

    if requirement.type is RequirementType.POINTS:
        current = progress.total_points
    elif requirement.type is RequirementType.TRIPS:
        current = len(progress.completed_trips)
    elif requirement.type is RequirementType.ACTIVITIES:
        current = progress.counter(requirement.counter)
    elif requirement.type is RequirementType.STREAK:
        current = progress.current_streak
    elif badge.id == "veteran":
        current = progress.membership_days(now or datetime.now(timezone.utc))
    else:
        current = progress.counter(CUSTOM_PROGRESS_COUNTERS[badge.id])

    return min(current / target, 1.0)


def get_next_badge(
    progress: ProgressSnapshot,
    now: datetime | None = None,
    catalog: tuple[Badge, ...] = BADGE_CATALOG,
) -> tuple[Badge, float] | None:
    """The unearned, measurable badge closest to completion, with its ratio.

    Ties go to the badge listed first in the catalog.
    """
    best: tuple[Badge, float] | None = None
    for badge in catalog:
        if badge.id in progress.earned_badges or not is_measurable(badge):
            continue
        ratio = badge_progress(badge, progress, now)
        if ratio >= 1.0:
            continue
        if best is None or ratio > best[1]:
            best = (badge, ratio)
    return best


def is_measurable(badge: Badge) -> bool:
    """Whether the badge tracks a counter rather than a single qualifying action."""
    if badge.requirement.type is not RequirementType.CUSTOM:
        return True
    return badge.id == "veteran" or badge.id in CUSTOM_PROGRESS_COUNTERS
