"""Level computation from cumulative points.

One canonical linear curve: every 100 points is a level, starting at level 1.
The web client derives progress bars from ``compute_level`` and must not
reimplement the formula.
"""

from __future__ import annotations

POINTS_PER_LEVEL = 100

# Titles unlock at the given minimum level and hold until the next entry.
LEVEL_TITLES: list[dict] = [
    {"level": 1, "title": "Randonneur novice"},
    {"level": 3, "title": "Campeur"},
    {"level": 5, "title": "Aventurier"},
    {"level": 10, "title": "Explorateur chevronné"},
    {"level": 20, "title": "Guide des sommets"},
    {"level": 50, "title": "Légende du bivouac"},
]


def calculate_level(total_points: int) -> int:
    """Level reached with ``total_points``. Always >= 1."""
    if total_points < 0:
        raise ValueError(f"total_points must be non-negative, got {total_points}")
    return total_points // POINTS_PER_LEVEL + 1


def get_points_for_level(level: int) -> int:
    """Cumulative points at which ``level`` starts."""
    if level < 1:
        raise ValueError(f"level must be >= 1, got {level}")
    return (level - 1) * POINTS_PER_LEVEL


def get_next_level_points(level: int) -> int:
    """Cumulative points at which the level after ``level`` starts."""
    return get_points_for_level(level + 1)


def get_level_progress(total_points: int) -> float:
    """Fraction of the current level already earned, in [0, 1)."""
    level = calculate_level(total_points)
    floor = get_points_for_level(level)
    ceiling = get_next_level_points(level)
    return (total_points - floor) / (ceiling - floor)


def get_level_title(level: int) -> str:
    title = LEVEL_TITLES[0]["title"]
    for entry in LEVEL_TITLES:
        if level >= entry["level"]:
            title = entry["title"]
    return title


def compute_level(total_points: int) -> dict:
    """Compute level info from total points for display."""
    level = calculate_level(total_points)
    floor = get_points_for_level(level)
    ceiling = get_next_level_points(level)

    return {
        "level": level,
        "title": get_level_title(level),
        "points_into_level": total_points - floor,
        "points_for_level": ceiling - floor,
        "next_level": level + 1,
        "next_title": get_level_title(level + 1),
        "next_level_points": ceiling,
        "progress": (total_points - floor) / (ceiling - floor),
    }
