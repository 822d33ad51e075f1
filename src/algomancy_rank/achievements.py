"""Achievement definitions and checking for algomancy-rank."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class Rarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def xp(self) -> int:
        return _RARITY_XP[self]

    @property
    def label(self) -> str:
        return self.value.capitalize()


_RARITY_XP: dict[Rarity, int] = {
    Rarity.COMMON: 5,
    Rarity.UNCOMMON: 10,
    Rarity.RARE: 20,
    Rarity.EPIC: 35,
    Rarity.LEGENDARY: 50,
}


@dataclass
class AchievementDef:
    key: str
    title: str
    description: str
    rarity: Rarity
    icon: str
    criteria_type: str
    count: int


@dataclass
class AchievementStatus:
    definition: AchievementDef
    progress: float  # 0.0 to 1.0
    unlocked: bool
    unlocked_at: str | None  # ISO timestamp or None


@dataclass
class GameLogMetrics:
    """Counts over a user's qualifying (non-seeded) game logs."""

    total_logs: int = 0
    win_logs: int = 0
    constructed_logs: int = 0
    live_draft_logs: int = 0
    public_logs: int = 0
    mvp_logs: int = 0


# criteria_type -> GameLogMetrics attribute
CRITERIA_FIELDS: dict[str, str] = {
    "total_logs": "total_logs",
    "wins": "win_logs",
    "constructed_logs": "constructed_logs",
    "live_draft_logs": "live_draft_logs",
    "public_logs": "public_logs",
    "mvp_logs": "mvp_logs",
}


ACHIEVEMENTS: list[AchievementDef] = [
    AchievementDef(
        key="first_log",
        title="First Log",
        description="Record your first game log.",
        rarity=Rarity.COMMON,
        icon="LOG",
        criteria_type="total_logs",
        count=1,
    ),
    AchievementDef(
        key="constructed_debut",
        title="Constructed Debut",
        description="Log your first constructed match.",
        rarity=Rarity.COMMON,
        icon="CON",
        criteria_type="constructed_logs",
        count=1,
    ),
    AchievementDef(
        key="draft_debut",
        title="Draft Debut",
        description="Log your first live draft match.",
        rarity=Rarity.COMMON,
        icon="DRF",
        criteria_type="live_draft_logs",
        count=1,
    ),
    AchievementDef(
        key="first_win",
        title="First Victory",
        description="Record your first win.",
        rarity=Rarity.UNCOMMON,
        icon="WIN",
        criteria_type="wins",
        count=1,
    ),
    AchievementDef(
        key="public_record",
        title="Public Record",
        description="Make a game log public.",
        rarity=Rarity.UNCOMMON,
        icon="PUB",
        criteria_type="public_logs",
        count=1,
    ),
    AchievementDef(
        key="mvp_spotlight",
        title="MVP Spotlight",
        description="Record at least one MVP card.",
        rarity=Rarity.UNCOMMON,
        icon="MVP",
        criteria_type="mvp_logs",
        count=1,
    ),
    AchievementDef(
        key="getting_consistent",
        title="Getting Consistent",
        description="Log 5 games.",
        rarity=Rarity.RARE,
        icon="5X",
        criteria_type="total_logs",
        count=5,
    ),
    AchievementDef(
        key="chronicler",
        title="Chronicler",
        description="Log 10 games.",
        rarity=Rarity.EPIC,
        icon="10X",
        criteria_type="total_logs",
        count=10,
    ),
]


def _current_value(definition: AchievementDef, metrics: GameLogMetrics) -> int | None:
    field = CRITERIA_FIELDS.get(definition.criteria_type)
    if field is None:
        return None
    return getattr(metrics, field)


def meets_criteria(definition: AchievementDef, metrics: GameLogMetrics) -> bool:
    """Unknown criteria types are never met."""
    current = _current_value(definition, metrics)
    if current is None:
        return False
    return current >= definition.count


def check_achievements(metrics: GameLogMetrics) -> list[AchievementStatus]:
    """Check all achievements against current metrics.

    Returns list of AchievementStatus with progress calculated as min(current/count, 1.0).
    """
    results: list[AchievementStatus] = []
    for achievement in ACHIEVEMENTS:
        current = _current_value(achievement, metrics) or 0
        progress = min(current / achievement.count, 1.0) if achievement.count > 0 else 0.0
        results.append(
            AchievementStatus(
                definition=achievement,
                progress=progress,
                unlocked=meets_criteria(achievement, metrics),
                unlocked_at=None,
            )
        )
    return results


def get_newly_unlocked(existing_keys: Iterable[str], metrics: GameLogMetrics) -> list[AchievementDef]:
    """Return achievements whose criteria are met but which are not yet awarded."""
    existing = set(existing_keys)
    return [a for a in ACHIEVEMENTS if a.key not in existing and meets_criteria(a, metrics)]


def badge_xp(keys: Iterable[str]) -> int:
    """Sum of rarity XP for the given achievement keys. Unknown keys count 0."""
    wanted = set(keys)
    return sum(a.rarity.xp for a in ACHIEVEMENTS if a.key in wanted)
