"""Badge catalog. Static data, iterated in declaration order by the unlock rules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RequirementType(str, Enum):
    POINTS = "points"
    TRIPS = "trips"
    ACTIVITIES = "activities"
    STREAK = "streak"
    CUSTOM = "custom"


@dataclass(frozen=True)
class BadgeRequirement:
    type: RequirementType
    value: int
    description: str
    # Progress counter compared by ``activities`` requirements
    counter: str = "activities_completed"


@dataclass(frozen=True)
class Badge:
    id: str
    name: str
    icon: str
    description: str
    category: str
    requirement: BadgeRequirement


BADGE_CATALOG: tuple[Badge, ...] = (
    Badge(
        id="explorer",
        name="Explorateur",
        icon="🎒",
        description="Complétez votre première sortie",
        category="trips",
        requirement=BadgeRequirement(RequirementType.TRIPS, 1, "Compléter 1 sortie"),
    ),
    Badge(
        id="climber",
        name="Grimpeur",
        icon="🏔️",
        description="Complétez 5 sorties",
        category="trips",
        requirement=BadgeRequirement(RequirementType.TRIPS, 5, "Compléter 5 sorties"),
    ),
    Badge(
        id="photographer",
        name="Photographe",
        icon="📸",
        description="Partagez 50 photos",
        category="social",
        requirement=BadgeRequirement(RequirementType.CUSTOM, 50, "Partager 50 photos"),
    ),
    Badge(
        id="survivor",
        name="Survivant",
        icon="🔥",
        description="Réussissez un challenge de survie",
        category="challenges",
        requirement=BadgeRequirement(RequirementType.CUSTOM, 1, "Réussir un challenge de survie"),
    ),
    Badge(
        id="leader",
        name="Leader",
        icon="👑",
        description="Soyez responsable de 10 activités",
        category="activities",
        requirement=BadgeRequirement(RequirementType.ACTIVITIES, 10, "Être responsable de 10 activités"),
    ),
    Badge(
        id="veteran",
        name="Vétéran",
        icon="🌟",
        description="Membre depuis 1 an",
        category="other",
        requirement=BadgeRequirement(RequirementType.CUSTOM, 365, "Membre depuis 365 jours"),
    ),
    Badge(
        id="globetrotter",
        name="Globe-trotter",
        icon="🌍",
        description="Visitez 10 destinations différentes",
        category="trips",
        requirement=BadgeRequirement(RequirementType.CUSTOM, 10, "Visiter 10 destinations différentes"),
    ),
    Badge(
        id="social",
        name="Social",
        icon="🤝",
        description="100 interactions avec le groupe",
        category="social",
        requirement=BadgeRequirement(
            RequirementType.CUSTOM, 100, "100 interactions (messages, likes, commentaires)"
        ),
    ),
    Badge(
        id="lightning",
        name="Éclair",
        icon="⚡",
        description="Complétez un challenge sous le temps imparti",
        category="challenges",
        requirement=BadgeRequirement(
            RequirementType.CUSTOM, 1, "Compléter un challenge avant la limite de temps"
        ),
    ),
    Badge(
        id="perfectionist",
        name="Perfectionniste",
        icon="🎯",
        description="Complétez tous les challenges d'une sortie",
        category="challenges",
        requirement=BadgeRequirement(
            RequirementType.CUSTOM, 1, "Compléter tous les challenges d'une sortie"
        ),
    ),
    Badge(
        id="early-bird",
        name="Lève-tôt",
        icon="🌅",
        description="Participez à 5 activités matinales",
        category="activities",
        requirement=BadgeRequirement(
            RequirementType.ACTIVITIES, 5, "Participer à 5 activités avant 8h", counter="early_activities_count"
        ),
    ),
    Badge(
        id="night-owl",
        name="Oiseau de nuit",
        icon="🦉",
        description="Participez à 5 activités nocturnes",
        category="activities",
        requirement=BadgeRequirement(
            RequirementType.ACTIVITIES, 5, "Participer à 5 activités après 20h", counter="night_activities_count"
        ),
    ),
    Badge(
        id="helper",
        name="Aidant",
        icon="💪",
        description="Aidez 5 co-participants",
        category="social",
        requirement=BadgeRequirement(RequirementType.CUSTOM, 5, "Aider 5 co-participants"),
    ),
    Badge(
        id="eco-warrior",
        name="Éco-guerrier",
        icon="🌱",
        description="Respectez l'environnement lors de 10 sorties",
        category="other",
        requirement=BadgeRequirement(
            RequirementType.CUSTOM, 10, "Respecter l'environnement lors de 10 sorties"
        ),
    ),
)

_BY_ID: dict[str, Badge] = {badge.id: badge for badge in BADGE_CATALOG}

BADGE_CATEGORIES = ("trips", "activities", "social", "challenges", "other")


def get_badge_by_id(badge_id: str) -> Badge | None:
    return _BY_ID.get(badge_id)


def get_all_badges() -> tuple[Badge, ...]:
    return BADGE_CATALOG


def get_badges_by_category(category: str) -> list[Badge]:
    """Badges shown under one filter tab of the badge grid."""
    return [badge for badge in BADGE_CATALOG if badge.category == category]
