"""CLI commands for algomancy-rank."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import asdict

from rich.logging import RichHandler

from algomancy_rank.achievements import ACHIEVEMENTS, badge_xp
from algomancy_rank.config import RATE_NAMES, get_db_path, get_xp_rates, set_xp_rate
from algomancy_rank.db import FORMATS, OUTCOMES, Database, DataUnavailable
from algomancy_rank.display import (
    console,
    print_achievements,
    print_backfill,
    print_decks,
    print_error,
    print_leaderboard,
    print_profile,
    print_rates,
    print_ranks,
    print_refresh_result,
)
from algomancy_rank.leaderboard import DECK_SORTS, rank_users, sort_decks
from algomancy_rank.progression import (
    UserNotFound,
    award_achievements,
    backfill,
    get_achievement_snapshot,
    get_xp_breakdown,
)
from algomancy_rank.ranks import get_rank_by_key, get_rank_for_xp, get_rank_progress
from algomancy_rank.social import DeckNotFound, LikeNotAllowed, record_view, toggle_like, viewer_id_for
from algomancy_rank.xp import XpRates


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="algomancy-rank",
        description="Achievement XP and ranks for Algomancy deck builders",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log info messages")
    subparsers = parser.add_subparsers(dest="command")

    refresh_p = subparsers.add_parser("refresh", help="Award badges and recompute a user's XP")
    refresh_p.add_argument("--user", "-u", type=int, required=True, help="User id")
    profile_p = subparsers.add_parser("profile", help="Show a user's rank and XP breakdown")
    profile_p.add_argument("--user", "-u", type=int, required=True, help="User id")
    ranks_p = subparsers.add_parser("ranks", help="List rank tiers")
    ranks_p.add_argument("--xp", type=int, default=None, help="Highlight the tier for this XP")
    ach_p = subparsers.add_parser("achievements", help="List achievements for a user")
    ach_p.add_argument("--user", "-u", type=int, required=True, help="User id")

    backfill_p = subparsers.add_parser("backfill", help="Recompute badges and XP for all users")
    backfill_p.add_argument("--user", "-u", default=None, help="Limit to one user (id or email)")
    backfill_p.add_argument("--dry-run", action="store_true", help="Compute without writing")
    backfill_p.add_argument("--reset", action="store_true", help="Wipe badges and XP before recomputing")

    lb_p = subparsers.add_parser("leaderboard", help="Users ranked by achievement XP")
    lb_p.add_argument("--limit", "-n", type=int, default=10)
    decks_p = subparsers.add_parser("decks", help="List public decks")
    decks_p.add_argument("--sort", choices=DECK_SORTS, default="popular")
    decks_p.add_argument("--viewer", type=int, default=None, help="Mark decks liked by this user id")
    liked_p = subparsers.add_parser("liked", help="Public decks a user has liked")
    liked_p.add_argument("--user", "-u", type=int, required=True)

    like_p = subparsers.add_parser("like", help="Toggle a like on a deck")
    like_p.add_argument("--deck", "-d", type=int, required=True)
    like_p.add_argument("--user", "-u", type=int, required=True)
    view_p = subparsers.add_parser("view", help="Record a deck view")
    view_p.add_argument("--deck", "-d", type=int, required=True)
    view_p.add_argument("--ip", default=None, help="Client address (forwarded-for chain accepted)")
    view_p.add_argument("--session", default=None, help="Session token of a signed-in viewer")

    user_p = subparsers.add_parser("user", help="Manage users")
    user_sub = user_p.add_subparsers(dest="user_command")
    user_add = user_sub.add_parser("add", help="Create a user")
    user_add.add_argument("--name", required=True)
    user_add.add_argument("--email", default=None)

    deck_p = subparsers.add_parser("deck", help="Manage decks")
    deck_sub = deck_p.add_subparsers(dest="deck_command")
    deck_add = deck_sub.add_parser("add", help="Create a deck")
    deck_add.add_argument("--user", "-u", type=int, required=True)
    deck_add.add_argument("--name", required=True)
    deck_add.add_argument("--public", action="store_true")
    deck_add.add_argument("--created-at", default=None, help="ISO timestamp (default: now)")

    log_p = subparsers.add_parser("log", help="Manage game logs")
    log_sub = log_p.add_subparsers(dest="log_command")
    log_add = log_sub.add_parser("add", help="Record a game log")
    log_add.add_argument("--user", "-u", type=int, required=True)
    log_add.add_argument("--outcome", choices=OUTCOMES, required=True)
    log_add.add_argument("--format", choices=FORMATS, required=True)
    log_add.add_argument("--public", action="store_true")
    log_add.add_argument("--mvp", action="store_true", help="At least one MVP card recorded")
    log_add.add_argument("--seed-tag", default=None, help="Mark as seeded demo data (earns no XP)")

    rates_p = subparsers.add_parser("rates", help="Show or override XP rates")
    rates_sub = rates_p.add_subparsers(dest="rates_command")
    rates_sub.add_parser("show", help="Show active XP rates")
    rates_set = rates_sub.add_parser("set", help="Override one XP rate")
    rates_set.add_argument("name", choices=RATE_NAMES)
    rates_set.add_argument("value", type=int)
    return parser


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def main(argv: list[str] | None = None) -> None:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    command = args.command or "ranks"

    if command == "rates":
        if getattr(args, "rates_command", None) == "set":
            do_rates_set(args.name, args.value)
        else:
            do_rates_show()
        return

    if command == "ranks":
        do_ranks(xp=args.xp if hasattr(args, "xp") else None)
        return

    rates = get_xp_rates()
    try:
        db = Database(get_db_path())
    except DataUnavailable as exc:
        print_error(str(exc))
        sys.exit(1)

    try:
        _dispatch(db, args, command, rates)
    except (DataUnavailable, UserNotFound, DeckNotFound, LikeNotAllowed, ValueError) as exc:
        print_error(str(exc))
        sys.exit(1)
    finally:
        db.close()


def _dispatch(db: Database, args: argparse.Namespace, command: str, rates: XpRates) -> None:
    if command == "refresh":
        do_refresh(db, args.user, rates)
    elif command == "profile":
        do_profile(db, args.user, rates)
    elif command == "achievements":
        do_achievements(db, args.user)
    elif command == "backfill":
        do_backfill(db, user_filter=args.user, dry_run=args.dry_run, reset=args.reset, rates=rates)
    elif command == "leaderboard":
        do_leaderboard(db, limit=args.limit)
    elif command == "decks":
        do_decks(db, sort_by=args.sort, viewer_id=args.viewer)
    elif command == "liked":
        do_liked(db, args.user)
    elif command == "like":
        do_like(db, args.deck, args.user, rates)
    elif command == "view":
        do_view(db, args.deck, ip=args.ip, session=args.session)
    elif command == "user" and args.user_command == "add":
        do_user_add(db, args.name, args.email)
    elif command == "deck" and args.deck_command == "add":
        do_deck_add(db, args.user, args.name, is_public=args.public, created_at=args.created_at, rates=rates)
    elif command == "log" and args.log_command == "add":
        do_log_add(
            db, args.user, args.outcome, args.format,
            is_public=args.public, has_mvp=args.mvp, seed_tag=args.seed_tag, rates=rates,
        )
    else:
        console.print(f"[grey50]Nothing to do for '{command}'. See --help.[/]")


def do_refresh(db: Database, user_id: int, rates: XpRates | None = None) -> dict:
    """Award newly met badges and recompute achievement XP for one user."""
    award = award_achievements(db, user_id, rates)
    rank_up_text = None
    if award.rank_up:
        rank_up_text = (
            f"{get_rank_by_key(award.rank_up.previous_rank_key).name} → "
            f"{get_rank_by_key(award.rank_up.new_rank_key).name}"
        )
    result = {
        "user_id": user_id,
        "previous_xp": award.previous_achievement_xp,
        "achievement_xp": award.achievement_xp,
        "rank_name": get_rank_for_xp(award.achievement_xp).name,
        "unlocked": [a.title for a in award.unlocked],
        "rank_up": rank_up_text,
    }
    print_refresh_result(result)
    return result


def do_profile(db: Database, user_id: int, rates: XpRates | None = None) -> dict:
    """Show rank, progress and XP breakdown for one user."""
    user = db.get_user(user_id)
    if user is None:
        raise UserNotFound(f"User {user_id} not found")

    breakdown = get_xp_breakdown(db, user_id, rates)
    stored_xp = user["achievement_xp"] or 0
    progress = get_rank_progress(stored_xp)
    badges = db.get_user_badges(user_id)

    data = {
        "name": user["name"],
        "achievement_xp": stored_xp,
        "rank_key": progress.current.key,
        "rank_name": progress.current.name,
        "next_rank_name": progress.next.name if progress.next else None,
        "next_xp": progress.next_xp,
        "progress": progress.progress,
        "like_xp": breakdown.like_xp,
        "deck_xp": breakdown.deck_xp,
        "log_xp": breakdown.log_xp,
        "stale": stored_xp != breakdown.total_bonus_xp,
        "badges_unlocked": len(badges),
        "badge_xp": badge_xp(badges),
        "badges_total": len(ACHIEVEMENTS),
    }
    print_profile(data)
    return data


def do_ranks(xp: int | None = None) -> None:
    print_ranks(get_rank_for_xp(xp).key if xp is not None else None)


def do_achievements(db: Database, user_id: int) -> list[dict]:
    """Show all achievements with progress for one user."""
    if db.get_user(user_id) is None:
        raise UserNotFound(f"User {user_id} not found")

    achievements_data = [
        {
            "key": status.definition.key,
            "title": status.definition.title,
            "description": status.definition.description,
            "rarity": status.definition.rarity.value,
            "rarity_label": status.definition.rarity.label,
            "xp": status.definition.rarity.xp,
            "progress": status.progress,
            "unlocked": status.unlocked,
            "unlocked_at": status.unlocked_at,
        }
        for status in get_achievement_snapshot(db, user_id)
    ]
    print_achievements(achievements_data)
    return achievements_data


def do_backfill(
    db: Database,
    user_filter: str | None = None,
    dry_run: bool = False,
    reset: bool = False,
    rates: XpRates | None = None,
) -> list[dict]:
    rows = [asdict(row) for row in backfill(db, user_filter, dry_run=dry_run, reset=reset, rates=rates)]
    print_backfill(rows, dry_run=dry_run)
    return rows


def do_leaderboard(db: Database, limit: int = 10) -> list[dict]:
    ranked = rank_users(db.list_user_standings())
    print_leaderboard(ranked, limit=limit)
    return ranked


def do_decks(db: Database, sort_by: str = "popular", viewer_id: int | None = None) -> list[dict]:
    decks = sort_decks(db.list_public_decks(), sort_by)
    if viewer_id is not None:
        for deck in decks:
            deck["liked"] = db.has_liked(deck["id"], viewer_id)
    print_decks(decks, sort_by)
    return decks


def do_liked(db: Database, user_id: int) -> list[dict]:
    if db.get_user(user_id) is None:
        raise UserNotFound(f"User {user_id} not found")
    decks = db.get_liked_decks(user_id)
    print_decks(decks, "liked")
    return decks


def do_like(db: Database, deck_id: int, user_id: int, rates: XpRates | None = None) -> dict:
    result = toggle_like(db, deck_id, user_id, rates)
    verb = "Liked" if result.liked else "Unliked"
    console.print(f"{verb} deck {deck_id} ({result.likes} likes)")
    return {"liked": result.liked, "likes": result.likes}


def do_view(db: Database, deck_id: int, ip: str | None = None, session: str | None = None) -> dict:
    viewer_id = viewer_id_for(ip, session)
    views = record_view(db, deck_id, viewer_id)
    console.print(f"Deck {deck_id}: {views} views")
    return {"viewer_id": viewer_id, "views": views}


def do_user_add(db: Database, name: str, email: str | None = None) -> int:
    user_id = db.create_user(name, email)
    console.print(f"Created user {user_id} ({name})")
    return user_id


def do_deck_add(
    db: Database,
    user_id: int,
    name: str,
    is_public: bool = False,
    created_at: str | None = None,
    rates: XpRates | None = None,
) -> int:
    """Create a deck and refresh the owner's XP."""
    if db.get_user(user_id) is None:
        raise UserNotFound(f"User {user_id} not found")
    deck_id = db.create_deck(user_id, name, is_public=is_public, created_at=created_at)
    console.print(f"Created deck {deck_id} ({name})")
    do_refresh(db, user_id, rates)
    return deck_id


def do_log_add(
    db: Database,
    user_id: int,
    outcome: str,
    format: str,
    is_public: bool = False,
    has_mvp: bool = False,
    seed_tag: str | None = None,
    rates: XpRates | None = None,
) -> int:
    """Record a game log, then award badges and refresh XP."""
    if db.get_user(user_id) is None:
        raise UserNotFound(f"User {user_id} not found")
    log_id = db.create_game_log(
        user_id, outcome, format, is_public=is_public, has_mvp=has_mvp, seed_tag=seed_tag
    )
    console.print(f"Recorded game log {log_id}")
    do_refresh(db, user_id, rates)
    return log_id


def do_rates_show() -> dict:
    rates = asdict(get_xp_rates())
    print_rates(rates)
    return rates


def do_rates_set(name: str, value: int) -> dict:
    set_xp_rate(name, value)
    return do_rates_show()
