"""Deck likes and view counting for algomancy-rank.

Likes are one per user per deck and feed the deck owner's XP. Views are
counted once per viewer id so reloading a page does not inflate the count.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from algomancy_rank.db import Database
from algomancy_rank.progression import UserNotFound, refresh_user_xp
from algomancy_rank.xp import XpRates

logger = logging.getLogger(__name__)

SESSION_PREFIX_LENGTH = 10


class DeckNotFound(LookupError):
    """No deck matched the given id."""


class LikeNotAllowed(PermissionError):
    """The deck is private or belongs to the user trying to like it."""


@dataclass
class LikeResult:
    liked: bool
    likes: int


def viewer_id_for(ip: str | None, session_token: str | None = None) -> str:
    """Build the identifier used to dedupe deck views.

    Uses the first address of a forwarded-for chain, plus a short prefix of the
    session token when the viewer is signed in.
    """
    address = (ip or "").split(",")[0].strip() or "unknown"
    if session_token:
        return f"{address}-{session_token[:SESSION_PREFIX_LENGTH]}"
    return address


def toggle_like(db: Database, deck_id: int, user_id: int, rates: XpRates | None = None) -> LikeResult:
    """Like or unlike a public deck on behalf of user_id.

    Raises DeckNotFound for a missing deck, LikeNotAllowed for private decks
    or the owner's own deck, and UserNotFound for an unknown liker.
    Refreshes the owner's XP after a change.
    """
    deck = db.get_deck(deck_id)
    if deck is None:
        raise DeckNotFound(f"Deck {deck_id} not found")
    if not deck["is_public"]:
        raise LikeNotAllowed("Cannot like private decks")
    if deck["user_id"] == user_id:
        raise LikeNotAllowed("Cannot like your own deck")
    if db.get_user(user_id) is None:
        raise UserNotFound(f"User {user_id} not found")

    result = db.toggle_deck_like(deck_id, user_id)
    if result is None:
        raise DeckNotFound(f"Deck {deck_id} not found")

    logger.info("User %s %s deck %s (%d likes)", user_id, "liked" if result["liked"] else "unliked",
                deck_id, result["likes"])
    refresh_user_xp(db, deck["user_id"], rates)
    return LikeResult(liked=result["liked"], likes=result["likes"])


def record_view(db: Database, deck_id: int, viewer_id: str) -> int:
    """Count a view of the deck, at most once per viewer. Returns the view count."""
    views = db.increment_deck_views(deck_id, viewer_id)
    if views is None:
        raise DeckNotFound(f"Deck {deck_id} not found")
    return views
