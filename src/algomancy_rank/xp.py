"""XP accrual engine for algomancy-rank.

Pure functions that turn activity aggregates (likes received, decks created
per day, game logs submitted) into bonus XP.
All calculations use integers. Malformed input never raises: it contributes 0.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date

# Default rates
LIKE_XP = 5
DECK_CREATE_XP = 10
DECK_CREATE_DAILY_CAP = 50
LOG_CREATE_XP = 5


@dataclass(frozen=True)
class XpRates:
    """Per-source XP rates and the daily deck-creation cap."""

    like_xp: int = LIKE_XP
    deck_create_xp: int = DECK_CREATE_XP
    deck_create_daily_cap: int = DECK_CREATE_DAILY_CAP
    log_create_xp: int = LOG_CREATE_XP


DEFAULT_RATES = XpRates()


@dataclass(frozen=True)
class DeckCountEntry:
    """Number of decks a user created on one calendar day."""

    day: date | None
    count: int


@dataclass(frozen=True)
class BonusXpBreakdown:
    """Bonus XP per source. Only total_bonus_xp is persisted."""

    like_xp: int
    deck_xp: int
    log_xp: int
    total_bonus_xp: int


def _as_count(value: object) -> int:
    """Coerce an aggregate value to an int, treating junk as 0.

    bool is not a count.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return 0
        return math.floor(value)
    return value


def _entry_count(entry: object) -> int:
    """Read the count from a DeckCountEntry, a mapping, or any object with .count."""
    if isinstance(entry, Mapping):
        return _as_count(entry.get("count"))
    return _as_count(getattr(entry, "count", None))


def calculate_like_xp(total_likes: object, like_rate: object = LIKE_XP) -> int:
    """XP for likes received across all of a user's decks."""
    likes = _as_count(total_likes)
    rate = _as_count(like_rate)
    if likes <= 0 or rate <= 0:
        return 0
    return likes * rate


def calculate_log_xp(total_logs: object, log_rate: object = LOG_CREATE_XP) -> int:
    """XP for qualifying game logs. Same contract as calculate_like_xp."""
    logs = _as_count(total_logs)
    rate = _as_count(log_rate)
    if logs <= 0 or rate <= 0:
        return 0
    return logs * rate


def get_max_decks_per_day(
    daily_cap: object = DECK_CREATE_DAILY_CAP,
    deck_rate: object = DECK_CREATE_XP,
) -> int:
    """Number of decks per day that still earn XP: floor(cap / rate), or 0."""
    cap = _as_count(daily_cap)
    rate = _as_count(deck_rate)
    if cap <= 0 or rate <= 0:
        return 0
    return cap // rate


def calculate_deck_create_xp(
    deck_counts: Iterable[object] | None,
    deck_rate: object = DECK_CREATE_XP,
    daily_cap: object = DECK_CREATE_DAILY_CAP,
) -> int:
    """XP for deck creation, capped per calendar day.

    Each day's count is clamped to get_max_decks_per_day() before multiplying,
    so ten active days can each earn up to the cap.
    """
    max_decks_per_day = get_max_decks_per_day(daily_cap, deck_rate)
    if max_decks_per_day <= 0:
        return 0
    rate = _as_count(deck_rate)

    total = 0
    for entry in deck_counts or ():
        count = max(0, _entry_count(entry))
        total += min(count, max_decks_per_day) * rate
    return total


def calculate_bonus_xp(
    total_likes: object,
    deck_counts: Iterable[object] | None,
    total_logs: object = 0,
    *,
    like_rate: int | None = None,
    deck_rate: int | None = None,
    daily_cap: int | None = None,
    log_rate: int | None = None,
    rates: XpRates | None = None,
) -> BonusXpBreakdown:
    """Compose like, deck and log XP into one breakdown.

    Explicit rate keywords win over `rates`, which wins over DEFAULT_RATES.
    """
    base = rates or DEFAULT_RATES
    like_xp = calculate_like_xp(
        total_likes, base.like_xp if like_rate is None else like_rate
    )
    deck_xp = calculate_deck_create_xp(
        deck_counts,
        base.deck_create_xp if deck_rate is None else deck_rate,
        base.deck_create_daily_cap if daily_cap is None else daily_cap,
    )
    log_xp = calculate_log_xp(
        total_logs, base.log_create_xp if log_rate is None else log_rate
    )
    return BonusXpBreakdown(
        like_xp=like_xp,
        deck_xp=deck_xp,
        log_xp=log_xp,
        total_bonus_xp=like_xp + deck_xp + log_xp,
    )
