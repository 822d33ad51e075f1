"""User leaderboard and public deck ordering for algomancy-rank.

Pure functions over rows read from the database.
"""
from __future__ import annotations

from algomancy_rank.ranks import get_rank_for_xp

DECK_SORTS = ("popular", "newest", "liked")


def rank_users(entries: list[dict]) -> list[dict]:
    """Sort users by achievement_xp descending. Adds 'rank' (1-based) and 'rank_name'.

    Tie-break: total_likes desc, then name asc.
    """
    sorted_entries = sorted(
        entries,
        key=lambda e: (
            -(e.get("achievement_xp") or 0),
            -(e.get("total_likes") or 0),
            e.get("name") or "",
        ),
    )
    for i, entry in enumerate(sorted_entries):
        entry["rank"] = i + 1
        entry["rank_name"] = get_rank_for_xp(entry.get("achievement_xp") or 0).name
    return sorted_entries


def sort_decks(decks: list[dict], sort_by: str = "popular") -> list[dict]:
    """Order public decks: popular = most views, liked = most likes, newest = latest created.

    Unknown modes fall back to popular.
    """
    if sort_by == "newest":
        return sorted(decks, key=lambda d: d.get("created_at") or "", reverse=True)
    if sort_by == "liked":
        return sorted(decks, key=lambda d: (-(d.get("likes") or 0), -(d.get("views") or 0)))
    return sorted(decks, key=lambda d: (-(d.get("views") or 0), -(d.get("likes") or 0)))
