"""Rank tier lookup and progress calculation. Pure functions, no side effects."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class RankDefinition:
    key: str
    name: str
    min_xp: int
    max_xp: int | None
    icon_path: str


@dataclass(frozen=True)
class RankProgress:
    current: RankDefinition
    next: RankDefinition | None
    progress: float  # 0.0 to 1.0
    current_xp: int | float
    next_xp: int | None


@dataclass(frozen=True)
class RankUp:
    previous_rank_key: str
    new_rank_key: str
    previous_xp: int
    new_xp: int


RANKS: tuple[RankDefinition, ...] = (
    RankDefinition("awakened", "Awakened", 0, 49, "/icons/ranks/awakened.svg"),
    RankDefinition("subject", "Subject", 50, 149, "/icons/ranks/subject.svg"),
    RankDefinition("catalyst", "Catalyst", 150, 299, "/icons/ranks/catalyst.svg"),
    RankDefinition("architect", "Architect", 300, 499, "/icons/ranks/architect.svg"),
    RankDefinition("ascendant", "Ascendant", 500, 799, "/icons/ranks/ascendant.svg"),
    RankDefinition("echelon", "Echelon", 800, None, "/icons/ranks/echelon.svg"),
)


def is_contiguous(ranks: tuple[RankDefinition, ...] | list[RankDefinition]) -> bool:
    """True if tiers start at 0, touch without gaps, and only the last is unbounded."""
    if not ranks or ranks[0].min_xp != 0:
        return False
    for prev, nxt in zip(ranks, ranks[1:]):
        if prev.max_xp is None or nxt.min_xp != prev.max_xp + 1:
            return False
    return ranks[-1].max_xp is None


def _safe_xp(xp: object) -> int | float:
    """Non-numeric and NaN XP count as 0."""
    if isinstance(xp, bool) or not isinstance(xp, (int, float)):
        return 0
    if isinstance(xp, float) and math.isnan(xp):
        return 0
    return xp


def _whole_xp(xp: object) -> int:
    value = _safe_xp(xp)
    return math.floor(value) if math.isfinite(value) else 0


def get_rank_for_xp(xp: object) -> RankDefinition:
    """Return the highest tier whose min_xp <= xp."""
    safe_xp = _safe_xp(xp)
    for rank in reversed(RANKS):
        if safe_xp >= rank.min_xp:
            return rank
    return RANKS[0]


def get_rank_by_key(key: str) -> RankDefinition:
    """Look up a tier by key. Raises KeyError for unknown keys."""
    for rank in RANKS:
        if rank.key == key:
            return rank
    raise KeyError(key)


def get_rank_progress(xp: object) -> RankProgress:
    """Return current tier, next tier and progress between them.

    At the top tier, next is None and progress is 1.0.
    """
    current = get_rank_for_xp(xp)
    current_xp = _safe_xp(xp)
    index = RANKS.index(current)
    nxt = RANKS[index + 1] if index + 1 < len(RANKS) else None

    if nxt is None:
        return RankProgress(current=current, next=None, progress=1.0, current_xp=current_xp, next_xp=None)

    span = max(1, nxt.min_xp - current.min_xp)
    progress = min(max((current_xp - current.min_xp) / span, 0.0), 1.0)
    return RankProgress(
        current=current,
        next=nxt,
        progress=progress,
        current_xp=current_xp,
        next_xp=nxt.min_xp,
    )


def detect_rank_up(previous_xp: object, new_xp: object) -> RankUp | None:
    """Return a RankUp if new_xp lands in a strictly higher tier than previous_xp."""
    previous = get_rank_for_xp(previous_xp)
    new = get_rank_for_xp(new_xp)
    if RANKS.index(new) <= RANKS.index(previous):
        return None
    return RankUp(
        previous_rank_key=previous.key,
        new_rank_key=new.key,
        previous_xp=_whole_xp(previous_xp),
        new_xp=_whole_xp(new_xp),
    )
