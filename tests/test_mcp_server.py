"""Tests for the MCP server tool functions."""
from unittest.mock import MagicMock, patch

import pytest

from algomancy_rank.db import DataUnavailable, Database
from algomancy_rank.mcp_server import get_achievements, get_leaderboard, get_rank, get_xp_breakdown, refresh_xp
from algomancy_rank.xp import DEFAULT_RATES


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "mcp.db"
    database = Database(db_path=path)
    uid = database.create_user("Ada", "ada@example.com")
    database.create_deck(uid, "Red", is_public=True)
    database.create_game_log(uid, "win", "constructed")
    database.close()
    return path


@pytest.fixture
def real_db(db_path):
    with patch("algomancy_rank.mcp_server._get_db", side_effect=lambda: Database(db_path=db_path)), \
            patch("algomancy_rank.mcp_server._get_rates", return_value=DEFAULT_RATES):
        yield db_path


class TestGetRank:
    @patch("algomancy_rank.mcp_server._get_db")
    def test_reads_stored_xp(self, mock_get_db):
        mock_db = MagicMock()
        mock_db.get_user.return_value = {"id": 1, "name": "Ada", "achievement_xp": 160}
        mock_get_db.return_value = mock_db
        result = get_rank(1)
        assert result["rank_key"] == "catalyst"
        assert result["next_rank_name"] == "Architect"
        assert result["icon_path"] == "/icons/ranks/catalyst.svg"
        mock_db.close.assert_called_once()

    @patch("algomancy_rank.mcp_server._get_db")
    def test_missing_user(self, mock_get_db):
        mock_db = MagicMock()
        mock_db.get_user.return_value = None
        mock_get_db.return_value = mock_db
        assert "error" in get_rank(9)
        mock_db.close.assert_called_once()

    @patch("algomancy_rank.mcp_server._get_db")
    def test_database_unavailable(self, mock_get_db):
        mock_get_db.side_effect = DataUnavailable("opening database failed")
        assert get_rank(1) == {"error": "opening database failed"}

    @patch("algomancy_rank.mcp_server._get_db")
    def test_query_failure(self, mock_get_db):
        mock_db = MagicMock()
        mock_db.get_user.side_effect = DataUnavailable("reading user failed")
        mock_get_db.return_value = mock_db
        assert get_rank(1) == {"error": "reading user failed"}
        mock_db.close.assert_called_once()


class TestGetXpBreakdown:
    def test_breakdown(self, real_db):
        result = get_xp_breakdown(1)
        assert result["deck_xp"] == 10
        assert result["log_xp"] == 5
        assert result["like_xp"] == 0
        assert result["total_bonus_xp"] == 15

    def test_missing_user(self, real_db):
        assert "error" in get_xp_breakdown(404)


class TestRefreshXp:
    def test_refresh(self, real_db):
        result = refresh_xp(1)
        assert result["achievement_xp"] == 15
        assert result["previous_achievement_xp"] == 0
        assert {a["key"] for a in result["unlocked"]} == {"first_log", "constructed_debut", "first_win"}
        assert result["rank_up"] is None

    def test_missing_user(self, real_db):
        assert "error" in refresh_xp(404)


class TestGetAchievements:
    def test_after_refresh(self, real_db):
        refresh_xp(1)
        result = get_achievements(1)
        assert result["total_count"] == 8
        assert result["unlocked_count"] == 3
        chronicler = next(a for a in result["achievements"] if a["key"] == "chronicler")
        assert chronicler["progress_pct"] == 10

    def test_missing_user(self, real_db):
        assert "error" in get_achievements(404)


class TestGetLeaderboard:
    def test_entries(self, real_db):
        refresh_xp(1)
        result = get_leaderboard()
        assert result["count"] == 1
        assert result["entries"][0]["name"] == "Ada"
        assert result["entries"][0]["rank"] == 1

    @patch("algomancy_rank.mcp_server._get_db")
    def test_limit(self, mock_get_db):
        mock_db = MagicMock()
        mock_db.list_user_standings.return_value = [
            {"id": i, "name": f"u{i}", "achievement_xp": i, "total_likes": 0} for i in range(5)
        ]
        mock_get_db.return_value = mock_db
        result = get_leaderboard(limit=2)
        assert [e["name"] for e in result["entries"]] == ["u4", "u3"]
        assert result["count"] == 5
