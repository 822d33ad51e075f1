"""MCP server for algomancy-rank.

Exposes ranks, XP breakdowns and achievements as MCP tools.
Run via: python3 -m algomancy_rank.mcp_server
"""
from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from algomancy_rank.db import DataUnavailable

mcp = FastMCP(name="algomancy-rank")


def _get_db():
    from algomancy_rank.config import get_db_path
    from algomancy_rank.db import Database
    return Database(get_db_path())


def _get_rates():
    from algomancy_rank.config import get_xp_rates
    return get_xp_rates()


@mcp.tool()
def get_rank(user_id: int) -> dict[str, Any]:
    """Get a user's rank tier, stored achievement XP and progress to the next tier."""
    try:
        db = _get_db()
    except DataUnavailable as exc:
        return {"error": str(exc)}
    try:
        from algomancy_rank.ranks import get_rank_progress
        user = db.get_user(user_id)
        if user is None:
            return {"error": f"User {user_id} not found"}
        xp = user["achievement_xp"] or 0
        progress = get_rank_progress(xp)
        return {
            "user_id": user_id, "name": user["name"], "achievement_xp": xp,
            "rank_key": progress.current.key, "rank_name": progress.current.name,
            "icon_path": progress.current.icon_path,
            "next_rank_name": progress.next.name if progress.next else None,
            "next_xp": progress.next_xp, "progress": progress.progress,
        }
    except DataUnavailable as exc:
        return {"error": str(exc)}
    finally:
        db.close()


@mcp.tool()
def get_xp_breakdown(user_id: int) -> dict[str, Any]:
    """Get bonus XP per source (likes, decks, logs) computed from current data."""
    try:
        db = _get_db()
    except DataUnavailable as exc:
        return {"error": str(exc)}
    try:
        from algomancy_rank.progression import get_xp_breakdown as compute_breakdown
        if db.get_user(user_id) is None:
            return {"error": f"User {user_id} not found"}
        breakdown = compute_breakdown(db, user_id, _get_rates())
        return {
            "user_id": user_id, "like_xp": breakdown.like_xp, "deck_xp": breakdown.deck_xp,
            "log_xp": breakdown.log_xp, "total_bonus_xp": breakdown.total_bonus_xp,
        }
    except DataUnavailable as exc:
        return {"error": str(exc)}
    finally:
        db.close()


@mcp.tool()
def get_achievements(user_id: int) -> dict[str, Any]:
    """Get all achievements with unlock status and progress for a user."""
    try:
        db = _get_db()
    except DataUnavailable as exc:
        return {"error": str(exc)}
    try:
        from algomancy_rank.progression import get_achievement_snapshot
        if db.get_user(user_id) is None:
            return {"error": f"User {user_id} not found"}
        result = []
        for status in get_achievement_snapshot(db, user_id):
            achdef = status.definition
            result.append({
                "key": achdef.key, "title": achdef.title,
                "description": achdef.description, "rarity": achdef.rarity.value,
                "xp": achdef.rarity.xp, "progress": status.progress,
                "progress_pct": int(status.progress * 100), "unlocked": status.unlocked,
                "unlocked_at": status.unlocked_at,
            })
        return {"achievements": result, "unlocked_count": sum(1 for a in result if a["unlocked"]),
                "total_count": len(result)}
    except DataUnavailable as exc:
        return {"error": str(exc)}
    finally:
        db.close()


@mcp.tool()
def refresh_xp(user_id: int) -> dict[str, Any]:
    """Award newly earned badges and recompute a user's achievement XP."""
    try:
        db = _get_db()
    except DataUnavailable as exc:
        return {"error": str(exc)}
    try:
        from algomancy_rank.progression import UserNotFound, award_achievements
        try:
            award = award_achievements(db, user_id, _get_rates())
        except UserNotFound as exc:
            return {"error": str(exc)}
        return {
            "user_id": user_id,
            "achievement_xp": award.achievement_xp,
            "previous_achievement_xp": award.previous_achievement_xp,
            "unlocked": [{"key": a.key, "title": a.title, "xp": a.rarity.xp} for a in award.unlocked],
            "rank_up": (
                {"previous_rank_key": award.rank_up.previous_rank_key,
                 "new_rank_key": award.rank_up.new_rank_key}
                if award.rank_up else None
            ),
        }
    except DataUnavailable as exc:
        return {"error": str(exc)}
    finally:
        db.close()


@mcp.tool()
def get_leaderboard(limit: int = 10) -> dict[str, Any]:
    """Get users ranked by achievement XP."""
    try:
        db = _get_db()
    except DataUnavailable as exc:
        return {"error": str(exc)}
    try:
        from algomancy_rank.leaderboard import rank_users
        ranked = rank_users(db.list_user_standings())
        return {"entries": ranked[:limit] if limit > 0 else ranked, "count": len(ranked)}
    except DataUnavailable as exc:
        return {"error": str(exc)}
    finally:
        db.close()


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
