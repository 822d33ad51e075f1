"""XP refresh, achievement awards and backfill for algomancy-rank.

These are the only operations with side effects: they read aggregates from the
database, run the pure calculators in xp/achievements/ranks, and write results back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from algomancy_rank.achievements import (
    ACHIEVEMENTS,
    AchievementDef,
    AchievementStatus,
    check_achievements,
    get_newly_unlocked,
    meets_criteria,
)
from algomancy_rank.db import Database
from algomancy_rank.ranks import RankUp, detect_rank_up
from algomancy_rank.xp import BonusXpBreakdown, XpRates, calculate_bonus_xp

logger = logging.getLogger(__name__)


class UserNotFound(LookupError):
    """No user row matched the given id."""


@dataclass
class AwardResult:
    unlocked: list[AchievementDef]
    achievement_xp: int
    previous_achievement_xp: int
    rank_up: RankUp | None = None


@dataclass
class BackfillRow:
    user_id: int
    label: str
    badges: list[str] = field(default_factory=list)
    achievement_xp: int = 0


def get_xp_breakdown(db: Database, user_id: int, rates: XpRates | None = None) -> BonusXpBreakdown:
    """Fetch the user's aggregates and compute their bonus XP without writing it."""
    total_likes = db.fetch_total_likes(user_id)
    deck_counts = db.fetch_deck_creation_counts_by_day(user_id)
    total_logs = db.fetch_qualifying_log_count(user_id)
    return calculate_bonus_xp(total_likes, deck_counts, total_logs, rates=rates)


def refresh_user_xp(db: Database, user_id: int, rates: XpRates | None = None) -> int:
    """Recompute the user's achievement XP from scratch and store it.

    All reads happen before the single write, so a DataUnavailable during a
    fetch leaves the stored value untouched. Safe to re-run.
    """
    breakdown = get_xp_breakdown(db, user_id, rates)
    if not db.write_achievement_xp(user_id, breakdown.total_bonus_xp):
        logger.warning("Achievement XP write matched no user: %s", user_id)
        raise UserNotFound(f"User {user_id} not found")
    logger.info(
        "Refreshed XP for user %s: %d (likes=%d decks=%d logs=%d)",
        user_id,
        breakdown.total_bonus_xp,
        breakdown.like_xp,
        breakdown.deck_xp,
        breakdown.log_xp,
    )
    return breakdown.total_bonus_xp


def award_achievements(
    db: Database,
    user_id: int,
    rates: XpRates | None = None,
    now: datetime | None = None,
) -> AwardResult:
    """Award badges whose criteria are now met, then refresh XP.

    Returns the newly unlocked achievements, the XP before and after, and the
    rank-up if the refresh moved the user into a higher tier.
    """
    user = db.get_user(user_id)
    if user is None:
        raise UserNotFound(f"User {user_id} not found")
    previous_xp = user["achievement_xp"] or 0

    metrics = db.fetch_game_log_metrics(user_id)
    unlocked = get_newly_unlocked(db.get_user_badges(user_id), metrics)
    if unlocked:
        awarded_at = (now or datetime.now(tz=timezone.utc)).isoformat(timespec="seconds")
        db.insert_user_badges(user_id, [a.key for a in unlocked], awarded_at)
        logger.info("User %s unlocked: %s", user_id, ", ".join(a.key for a in unlocked))

    new_xp = refresh_user_xp(db, user_id, rates)
    rank_up = detect_rank_up(previous_xp, new_xp)
    if rank_up:
        logger.info("User %s ranked up: %s -> %s", user_id, rank_up.previous_rank_key, rank_up.new_rank_key)

    return AwardResult(
        unlocked=unlocked,
        achievement_xp=new_xp,
        previous_achievement_xp=previous_xp,
        rank_up=rank_up,
    )


def get_achievement_snapshot(db: Database, user_id: int) -> list[AchievementStatus]:
    """All achievements with progress, marking stored badges as unlocked."""
    awarded = db.get_user_badges(user_id)
    statuses = check_achievements(db.fetch_game_log_metrics(user_id))
    for status in statuses:
        awarded_at = awarded.get(status.definition.key)
        if awarded_at:
            status.unlocked = True
            status.progress = 1.0
            status.unlocked_at = awarded_at
        else:
            status.unlocked = False
    return statuses


def _select_users(db: Database, user_filter: str | None) -> list[dict]:
    if not user_filter:
        return db.list_users()
    if "@" not in user_filter and not user_filter.isdecimal():
        raise ValueError("Invalid --user value. Use email or numeric id.")
    user = db.find_user(user_filter)
    return [user] if user else []


def backfill(
    db: Database,
    user_filter: str | None = None,
    dry_run: bool = False,
    reset: bool = False,
    rates: XpRates | None = None,
) -> list[BackfillRow]:
    """Recompute badges and XP for every user (or one, by id or email).

    reset wipes existing badges and zeroes XP first. dry_run computes the same
    rows without touching the database.
    """
    users = _select_users(db, user_filter)
    user_ids = [u["id"] for u in users]

    if reset and not dry_run and user_ids:
        db.delete_user_badges(user_ids)
        db.reset_achievement_xp(user_ids)

    rows: list[BackfillRow] = []
    for user in users:
        user_id = user["id"]
        label = user.get("email") or str(user_id)
        metrics = db.fetch_game_log_metrics(user_id)
        earned = [a.key for a in ACHIEVEMENTS if meets_criteria(a, metrics)]

        if dry_run:
            xp = get_xp_breakdown(db, user_id, rates).total_bonus_xp
        else:
            db.insert_user_badges(user_id, earned)
            xp = refresh_user_xp(db, user_id, rates)

        logger.info("[%s] achievements: %d, xp: %d", label, len(earned), xp)
        rows.append(BackfillRow(user_id=user_id, label=label, badges=earned, achievement_xp=xp))
    return rows
