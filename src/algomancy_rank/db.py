"""SQLite database layer for algomancy-rank."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path

from algomancy_rank.achievements import GameLogMetrics
from algomancy_rank.xp import DeckCountEntry

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".algomancy-rank" / "data.db"

OUTCOMES = ("win", "loss", "draw")
FORMATS = ("constructed", "live_draft")


class DataUnavailable(Exception):
    """The database could not be reached or a statement failed."""


def _utc_now() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="seconds")


def _timestamp(value: datetime | str | None) -> str:
    if value is None:
        return _utc_now()
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    return value


@contextmanager
def _unavailable_on_error(action: str) -> Iterator[None]:
    try:
        yield
    except (sqlite3.Error, OSError) as exc:
        logger.warning("Database error while %s: %s", action, exc)
        raise DataUnavailable(f"{action} failed: {exc}") from exc


class Database:
    """SQLite database manager with WAL mode."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path or DEFAULT_DB_PATH
        with _unavailable_on_error("opening database"):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(str(self.db_path))
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute("PRAGMA foreign_keys=ON")
            self.init_db()

    def init_db(self) -> None:
        """Create tables if they do not exist."""
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                email TEXT UNIQUE,
                achievement_xp INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS decks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                is_public BOOLEAN NOT NULL DEFAULT 0,
                likes INTEGER NOT NULL DEFAULT 0,
                views INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_decks_user ON decks (user_id, created_at);

            CREATE TABLE IF NOT EXISTS deck_likes (
                deck_id INTEGER NOT NULL REFERENCES decks(id) ON DELETE CASCADE,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                PRIMARY KEY (deck_id, user_id)
            );

            CREATE TABLE IF NOT EXISTS deck_views (
                deck_id INTEGER NOT NULL REFERENCES decks(id) ON DELETE CASCADE,
                viewer_id TEXT NOT NULL,
                PRIMARY KEY (deck_id, viewer_id)
            );

            CREATE TABLE IF NOT EXISTS game_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                outcome TEXT NOT NULL CHECK (outcome IN ('win', 'loss', 'draw')),
                format TEXT NOT NULL CHECK (format IN ('constructed', 'live_draft')),
                is_public BOOLEAN NOT NULL DEFAULT 0,
                has_mvp BOOLEAN NOT NULL DEFAULT 0,
                seed_tag TEXT,
                played_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_game_logs_user ON game_logs (user_id, played_at);

            CREATE TABLE IF NOT EXISTS user_badges (
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                key TEXT NOT NULL,
                awarded_at TEXT NOT NULL,
                PRIMARY KEY (user_id, key)
            );
        """)
        self.conn.commit()

    # ── Users ────────────────────────────────────────────────────────────────

    def create_user(self, name: str, email: str | None = None) -> int:
        """Insert a user and return its id."""
        now = _utc_now()
        with _unavailable_on_error("creating user"):
            cursor = self.conn.execute(
                "INSERT INTO users (name, email, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (name, email, now, now),
            )
            self.conn.commit()
        return cursor.lastrowid

    def get_user(self, user_id: int) -> dict | None:
        """Get a single user by id."""
        with _unavailable_on_error("reading user"):
            row = self.conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return dict(row) if row else None

    def find_user(self, identifier: str) -> dict | None:
        """Find a user by email (if it contains '@') or by numeric id."""
        with _unavailable_on_error("finding user"):
            if "@" in identifier:
                row = self.conn.execute(
                    "SELECT * FROM users WHERE email = ?", (identifier,)
                ).fetchone()
            elif identifier.isdecimal():
                row = self.conn.execute(
                    "SELECT * FROM users WHERE id = ?", (int(identifier),)
                ).fetchone()
            else:
                row = None
        return dict(row) if row else None

    def list_users(self) -> list[dict]:
        """Return all users ordered by id."""
        with _unavailable_on_error("listing users"):
            rows = self.conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [dict(row) for row in rows]

    def list_user_standings(self) -> list[dict]:
        """Return id, name, achievement_xp and total likes received for every user."""
        with _unavailable_on_error("listing user standings"):
            rows = self.conn.execute("""
                SELECT u.id, u.name, u.achievement_xp,
                       COALESCE(SUM(d.likes), 0) AS total_likes
                FROM users u
                LEFT JOIN decks d ON d.user_id = u.id
                GROUP BY u.id
                ORDER BY u.id
            """).fetchall()
        return [dict(row) for row in rows]

    # ── XP collaborator contract ─────────────────────────────────────────────

    def fetch_total_likes(self, user_id: int) -> int:
        """Total likes across all of the user's decks."""
        with _unavailable_on_error("fetching total likes"):
            row = self.conn.execute(
                "SELECT COALESCE(SUM(likes), 0) AS total FROM decks WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        return int(row["total"])

    def fetch_deck_creation_counts_by_day(self, user_id: int) -> list[DeckCountEntry]:
        """Deck creation counts grouped by UTC calendar day, oldest first."""
        with _unavailable_on_error("fetching deck creation counts"):
            rows = self.conn.execute(
                "SELECT date(created_at) AS day, COUNT(*) AS count FROM decks "
                "WHERE user_id = ? GROUP BY day ORDER BY day",
                (user_id,),
            ).fetchall()
        return [
            DeckCountEntry(
                day=date.fromisoformat(row["day"]) if row["day"] else None,
                count=row["count"],
            )
            for row in rows
        ]

    def fetch_qualifying_log_count(self, user_id: int) -> int:
        """Number of game logs that are not seeded demo data."""
        with _unavailable_on_error("fetching log count"):
            row = self.conn.execute(
                "SELECT COUNT(*) AS total FROM game_logs WHERE user_id = ? AND seed_tag IS NULL",
                (user_id,),
            ).fetchone()
        return int(row["total"])

    def write_achievement_xp(self, user_id: int, xp: int) -> bool:
        """Overwrite the user's achievement XP. Returns False if the user does not exist."""
        with _unavailable_on_error("writing achievement XP"):
            cursor = self.conn.execute(
                "UPDATE users SET achievement_xp = ?, updated_at = ? WHERE id = ?",
                (xp, _utc_now(), user_id),
            )
            self.conn.commit()
        return cursor.rowcount > 0

    def reset_achievement_xp(self, user_ids: Iterable[int]) -> None:
        """Zero achievement XP for the given users."""
        now = _utc_now()
        with _unavailable_on_error("resetting achievement XP"):
            self.conn.executemany(
                "UPDATE users SET achievement_xp = 0, updated_at = ? WHERE id = ?",
                [(now, uid) for uid in user_ids],
            )
            self.conn.commit()

    # ── Decks ────────────────────────────────────────────────────────────────

    def create_deck(
        self,
        user_id: int,
        name: str,
        is_public: bool = False,
        created_at: datetime | str | None = None,
    ) -> int:
        """Insert a deck and return its id."""
        with _unavailable_on_error("creating deck"):
            cursor = self.conn.execute(
                "INSERT INTO decks (user_id, name, is_public, created_at) VALUES (?, ?, ?, ?)",
                (user_id, name, is_public, _timestamp(created_at)),
            )
            self.conn.commit()
        return cursor.lastrowid

    def get_deck(self, deck_id: int) -> dict | None:
        """Get a single deck by id."""
        with _unavailable_on_error("reading deck"):
            row = self.conn.execute("SELECT * FROM decks WHERE id = ?", (deck_id,)).fetchone()
        return dict(row) if row else None

    def list_public_decks(self) -> list[dict]:
        """Return all public decks with their owner's name."""
        with _unavailable_on_error("listing public decks"):
            rows = self.conn.execute("""
                SELECT d.*, u.name AS owner_name
                FROM decks d JOIN users u ON u.id = d.user_id
                WHERE d.is_public = 1
                ORDER BY d.id
            """).fetchall()
        return [dict(row) for row in rows]

    def get_liked_decks(self, user_id: int) -> list[dict]:
        """Public decks liked by the user, newest first."""
        with _unavailable_on_error("reading liked decks"):
            rows = self.conn.execute("""
                SELECT d.* FROM decks d
                JOIN deck_likes l ON l.deck_id = d.id
                WHERE l.user_id = ? AND d.is_public = 1
                ORDER BY d.created_at DESC
            """, (user_id,)).fetchall()
        return [dict(row) for row in rows]

    def toggle_deck_like(self, deck_id: int, user_id: int) -> dict | None:
        """Unlike if the user already liked the deck, like otherwise.

        Runs in one transaction. Returns {"liked", "likes"} or None if the deck does not exist.
        """
        with _unavailable_on_error("toggling deck like"):
            with self.conn:
                if self.conn.execute("SELECT 1 FROM decks WHERE id = ?", (deck_id,)).fetchone() is None:
                    return None
                removed = self.conn.execute(
                    "DELETE FROM deck_likes WHERE deck_id = ? AND user_id = ?",
                    (deck_id, user_id),
                ).rowcount
                if removed:
                    self.conn.execute(
                        "UPDATE decks SET likes = MAX(likes - 1, 0) WHERE id = ?", (deck_id,)
                    )
                    liked = False
                else:
                    added = self.conn.execute(
                        "INSERT OR IGNORE INTO deck_likes (deck_id, user_id) VALUES (?, ?)",
                        (deck_id, user_id),
                    ).rowcount
                    if added:
                        self.conn.execute(
                            "UPDATE decks SET likes = likes + 1 WHERE id = ?", (deck_id,)
                        )
                    liked = True
                likes = self.conn.execute(
                    "SELECT likes FROM decks WHERE id = ?", (deck_id,)
                ).fetchone()["likes"]
        return {"liked": liked, "likes": max(0, likes)}

    def has_liked(self, deck_id: int, user_id: int) -> bool:
        with _unavailable_on_error("reading like status"):
            row = self.conn.execute(
                "SELECT 1 FROM deck_likes WHERE deck_id = ? AND user_id = ?", (deck_id, user_id)
            ).fetchone()
        return row is not None

    def increment_deck_views(self, deck_id: int, viewer_id: str) -> int | None:
        """Count a view once per viewer. Returns the view count, or None if the deck does not exist."""
        with _unavailable_on_error("incrementing deck views"):
            with self.conn:
                if self.conn.execute("SELECT 1 FROM decks WHERE id = ?", (deck_id,)).fetchone() is None:
                    return None
                added = self.conn.execute(
                    "INSERT OR IGNORE INTO deck_views (deck_id, viewer_id) VALUES (?, ?)",
                    (deck_id, viewer_id),
                ).rowcount
                if added:
                    self.conn.execute("UPDATE decks SET views = views + 1 WHERE id = ?", (deck_id,))
                views = self.conn.execute(
                    "SELECT views FROM decks WHERE id = ?", (deck_id,)
                ).fetchone()["views"]
        return views

    # ── Game logs ────────────────────────────────────────────────────────────

    def create_game_log(
        self,
        user_id: int,
        outcome: str,
        format: str,
        is_public: bool = False,
        has_mvp: bool = False,
        seed_tag: str | None = None,
        played_at: datetime | str | None = None,
    ) -> int:
        """Insert a game log and return its id. Raises ValueError on unknown outcome/format."""
        if outcome not in OUTCOMES:
            raise ValueError(f"Invalid outcome {outcome!r}. Must be one of: {', '.join(OUTCOMES)}")
        if format not in FORMATS:
            raise ValueError(f"Invalid format {format!r}. Must be one of: {', '.join(FORMATS)}")
        with _unavailable_on_error("creating game log"):
            cursor = self.conn.execute(
                "INSERT INTO game_logs (user_id, outcome, format, is_public, has_mvp, seed_tag, played_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (user_id, outcome, format, is_public, has_mvp, seed_tag, _timestamp(played_at)),
            )
            self.conn.commit()
        return cursor.lastrowid

    def fetch_game_log_metrics(self, user_id: int) -> GameLogMetrics:
        """Achievement metrics over the user's qualifying game logs."""
        with _unavailable_on_error("fetching game log metrics"):
            row = self.conn.execute("""
                SELECT
                    COUNT(*) AS total_logs,
                    COALESCE(SUM(outcome = 'win'), 0) AS win_logs,
                    COALESCE(SUM(format = 'constructed'), 0) AS constructed_logs,
                    COALESCE(SUM(format = 'live_draft'), 0) AS live_draft_logs,
                    COALESCE(SUM(is_public = 1), 0) AS public_logs,
                    COALESCE(SUM(has_mvp = 1), 0) AS mvp_logs
                FROM game_logs
                WHERE user_id = ? AND seed_tag IS NULL
            """, (user_id,)).fetchone()
        return GameLogMetrics(**dict(row))

    # ── Badges ───────────────────────────────────────────────────────────────

    def get_user_badges(self, user_id: int) -> dict[str, str]:
        """Return {achievement key: awarded_at} for the user."""
        with _unavailable_on_error("reading user badges"):
            rows = self.conn.execute(
                "SELECT key, awarded_at FROM user_badges WHERE user_id = ?", (user_id,)
            ).fetchall()
        return {row["key"]: row["awarded_at"] for row in rows}

    def insert_user_badges(self, user_id: int, keys: Iterable[str], awarded_at: str | None = None) -> int:
        """Award badges, ignoring ones the user already holds. Returns the number inserted."""
        timestamp = awarded_at or _utc_now()
        with _unavailable_on_error("inserting user badges"):
            inserted = 0
            with self.conn:
                for key in keys:
                    inserted += self.conn.execute(
                        "INSERT OR IGNORE INTO user_badges (user_id, key, awarded_at) VALUES (?, ?, ?)",
                        (user_id, key, timestamp),
                    ).rowcount
        return inserted

    def delete_user_badges(self, user_ids: Iterable[int]) -> None:
        """Remove every badge held by the given users."""
        with _unavailable_on_error("deleting user badges"):
            self.conn.executemany(
                "DELETE FROM user_badges WHERE user_id = ?", [(uid,) for uid in user_ids]
            )
            self.conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()
