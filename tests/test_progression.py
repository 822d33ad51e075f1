"""Tests for XP refresh, achievement awards and backfill."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from algomancy_rank.db import DataUnavailable, Database
from algomancy_rank.progression import (
    UserNotFound,
    award_achievements,
    backfill,
    get_achievement_snapshot,
    get_xp_breakdown,
    refresh_user_xp,
)
from algomancy_rank.xp import DeckCountEntry, XpRates


@pytest.fixture
def db(tmp_path):
    """Create a temporary database for testing."""
    database = Database(db_path=tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def user_id(db):
    return db.create_user("Ada", "ada@example.com")


def _mock_db(likes=8, counts=None, logs=3):
    mock_db = MagicMock()
    mock_db.fetch_total_likes.return_value = likes
    mock_db.fetch_deck_creation_counts_by_day.return_value = (
        counts if counts is not None else [DeckCountEntry(None, 6), DeckCountEntry(None, 2)]
    )
    mock_db.fetch_qualifying_log_count.return_value = logs
    mock_db.write_achievement_xp.return_value = True
    return mock_db


class TestGetXpBreakdown:
    def test_uses_all_three_sources(self):
        breakdown = get_xp_breakdown(_mock_db(), 1)
        assert (breakdown.like_xp, breakdown.deck_xp, breakdown.log_xp) == (40, 70, 15)

    def test_does_not_write(self):
        mock_db = _mock_db()
        get_xp_breakdown(mock_db, 1)
        mock_db.write_achievement_xp.assert_not_called()


class TestRefreshUserXp:
    def test_writes_total(self):
        mock_db = _mock_db()
        assert refresh_user_xp(mock_db, 7) == 125
        mock_db.write_achievement_xp.assert_called_once_with(7, 125)

    def test_custom_rates(self):
        mock_db = _mock_db(likes=2, counts=[], logs=0)
        assert refresh_user_xp(mock_db, 7, XpRates(like_xp=3)) == 6

    def test_fetch_failure_skips_write(self):
        mock_db = _mock_db()
        mock_db.fetch_deck_creation_counts_by_day.side_effect = DataUnavailable("down")
        with pytest.raises(DataUnavailable):
            refresh_user_xp(mock_db, 7)
        mock_db.write_achievement_xp.assert_not_called()

    def test_missing_user(self):
        mock_db = _mock_db()
        mock_db.write_achievement_xp.return_value = False
        with pytest.raises(UserNotFound):
            refresh_user_xp(mock_db, 7)

    def test_against_database(self, db, user_id):
        fan = db.create_user("Bo")
        deck = db.create_deck(user_id, "Red", is_public=True, created_at="2026-02-01T10:00:00+00:00")
        db.toggle_deck_like(deck, fan)
        db.create_game_log(user_id, "win", "constructed")
        assert refresh_user_xp(db, user_id) == 5 + 10 + 5
        assert db.get_user(user_id)["achievement_xp"] == 20

    def test_idempotent(self, db, user_id):
        db.create_game_log(user_id, "win", "constructed")
        first = refresh_user_xp(db, user_id)
        second = refresh_user_xp(db, user_id)
        assert first == second == 5
        assert db.get_user(user_id)["achievement_xp"] == 5

    def test_overwrites_stale_value(self, db, user_id):
        db.write_achievement_xp(user_id, 9999)
        assert refresh_user_xp(db, user_id) == 0
        assert db.get_user(user_id)["achievement_xp"] == 0

    def test_unknown_user_against_database(self, db):
        with pytest.raises(UserNotFound):
            refresh_user_xp(db, 404)


class TestAwardAchievements:
    def test_unlocks_and_refreshes(self, db, user_id):
        db.create_game_log(user_id, "win", "constructed")
        now = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
        result = award_achievements(db, user_id, now=now)
        keys = {a.key for a in result.unlocked}
        assert keys == {"first_log", "constructed_debut", "first_win"}
        assert result.previous_achievement_xp == 0
        assert result.achievement_xp == 5
        assert db.get_user_badges(user_id)["first_log"] == "2026-05-01T12:00:00+00:00"

    def test_second_run_unlocks_nothing(self, db, user_id):
        db.create_game_log(user_id, "loss", "live_draft")
        award_achievements(db, user_id)
        assert award_achievements(db, user_id).unlocked == []

    def test_rank_up_reported(self, db, user_id):
        for _ in range(10):
            db.create_game_log(user_id, "loss", "constructed")
        result = award_achievements(db, user_id)
        assert result.achievement_xp == 50
        assert result.rank_up is not None
        assert result.rank_up.new_rank_key == "subject"

    def test_no_rank_up_within_tier(self, db, user_id):
        db.create_game_log(user_id, "loss", "constructed")
        assert award_achievements(db, user_id).rank_up is None

    def test_seeded_logs_ignored(self, db, user_id):
        db.create_game_log(user_id, "win", "constructed", seed_tag="demo")
        result = award_achievements(db, user_id)
        assert result.unlocked == []
        assert result.achievement_xp == 0

    def test_missing_user(self, db):
        with pytest.raises(UserNotFound):
            award_achievements(db, 404)


class TestAchievementSnapshot:
    def test_stored_badges_marked_unlocked(self, db, user_id):
        db.insert_user_badges(user_id, ["chronicler"], "2026-01-01T00:00:00+00:00")
        statuses = {s.definition.key: s for s in get_achievement_snapshot(db, user_id)}
        assert statuses["chronicler"].unlocked
        assert statuses["chronicler"].progress == 1.0
        assert statuses["chronicler"].unlocked_at == "2026-01-01T00:00:00+00:00"

    def test_met_but_not_awarded_is_locked(self, db, user_id):
        db.create_game_log(user_id, "win", "constructed")
        statuses = {s.definition.key: s for s in get_achievement_snapshot(db, user_id)}
        assert statuses["first_log"].unlocked is False
        assert statuses["first_log"].progress == 1.0


class TestBackfill:
    def test_all_users(self, db, user_id):
        other = db.create_user("Bo")
        db.create_game_log(user_id, "win", "constructed")
        rows = backfill(db)
        assert [r.user_id for r in rows] == [user_id, other]
        assert rows[0].label == "ada@example.com"
        assert rows[1].label == str(other)
        assert rows[0].achievement_xp == 5
        assert "first_win" in rows[0].badges
        assert "first_win" in db.get_user_badges(user_id)

    def test_dry_run_writes_nothing(self, db, user_id):
        db.create_game_log(user_id, "win", "constructed")
        rows = backfill(db, dry_run=True)
        assert rows[0].achievement_xp == 5
        assert db.get_user_badges(user_id) == {}
        assert db.get_user(user_id)["achievement_xp"] == 0

    def test_filter_by_email(self, db, user_id):
        db.create_user("Bo", "bo@example.com")
        rows = backfill(db, user_filter="ada@example.com")
        assert [r.user_id for r in rows] == [user_id]

    def test_filter_by_id(self, db, user_id):
        rows = backfill(db, user_filter=str(user_id))
        assert len(rows) == 1

    def test_filter_no_match(self, db, user_id):
        assert backfill(db, user_filter="nobody@example.com") == []

    def test_invalid_filter(self, db, user_id):
        with pytest.raises(ValueError, match="Invalid --user value"):
            backfill(db, user_filter="ada")

    def test_non_ascii_digit_filter(self, db, user_id):
        with pytest.raises(ValueError, match="Invalid --user value"):
            backfill(db, user_filter="\u00b2")

    def test_reset_clears_stale_badges(self, db, user_id):
        db.insert_user_badges(user_id, ["chronicler"])
        db.write_achievement_xp(user_id, 500)
        rows = backfill(db, reset=True)
        assert rows[0].badges == []
        assert db.get_user_badges(user_id) == {}
        assert db.get_user(user_id)["achievement_xp"] == 0

    def test_without_reset_keeps_badges(self, db, user_id):
        db.insert_user_badges(user_id, ["chronicler"])
        backfill(db)
        assert "chronicler" in db.get_user_badges(user_id)
