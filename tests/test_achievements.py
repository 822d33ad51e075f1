"""Tests for achievement definitions and checking."""

from algomancy_rank.achievements import (
    ACHIEVEMENTS,
    CRITERIA_FIELDS,
    AchievementDef,
    GameLogMetrics,
    Rarity,
    badge_xp,
    check_achievements,
    get_newly_unlocked,
    meets_criteria,
)


def _by_key(key):
    return next(a for a in ACHIEVEMENTS if a.key == key)


class TestDefinitions:
    def test_keys_unique(self):
        keys = [a.key for a in ACHIEVEMENTS]
        assert len(keys) == len(set(keys))

    def test_every_criteria_type_is_known(self):
        for achievement in ACHIEVEMENTS:
            assert achievement.criteria_type in CRITERIA_FIELDS

    def test_counts_positive(self):
        assert all(a.count > 0 for a in ACHIEVEMENTS)


class TestRarity:
    def test_xp_values(self):
        assert Rarity.COMMON.xp == 5
        assert Rarity.UNCOMMON.xp == 10
        assert Rarity.RARE.xp == 20
        assert Rarity.EPIC.xp == 35
        assert Rarity.LEGENDARY.xp == 50

    def test_label(self):
        assert Rarity.EPIC.label == "Epic"

    def test_string_value(self):
        assert Rarity("rare") is Rarity.RARE


class TestMeetsCriteria:
    def test_first_log(self):
        assert meets_criteria(_by_key("first_log"), GameLogMetrics(total_logs=1))
        assert not meets_criteria(_by_key("first_log"), GameLogMetrics())

    def test_wins_maps_to_win_logs(self):
        assert meets_criteria(_by_key("first_win"), GameLogMetrics(total_logs=1, win_logs=1))

    def test_threshold(self):
        assert not meets_criteria(_by_key("chronicler"), GameLogMetrics(total_logs=9))
        assert meets_criteria(_by_key("chronicler"), GameLogMetrics(total_logs=10))

    def test_unknown_criteria_never_met(self):
        odd = AchievementDef("odd", "Odd", "", Rarity.COMMON, "", "unknown_metric", 1)
        assert meets_criteria(odd, GameLogMetrics(total_logs=100)) is False


class TestCheckAchievements:
    def test_empty_metrics(self):
        results = check_achievements(GameLogMetrics())
        assert len(results) == len(ACHIEVEMENTS)
        assert not any(r.unlocked for r in results)
        assert all(r.progress == 0.0 for r in results)

    def test_partial_progress(self):
        results = {r.definition.key: r for r in check_achievements(GameLogMetrics(total_logs=4))}
        assert results["first_log"].unlocked
        assert results["getting_consistent"].progress == 0.8
        assert not results["getting_consistent"].unlocked
        assert results["chronicler"].progress == 0.4

    def test_progress_capped(self):
        results = {r.definition.key: r for r in check_achievements(GameLogMetrics(total_logs=50))}
        assert results["chronicler"].progress == 1.0

    def test_unlocked_at_unset(self):
        assert all(r.unlocked_at is None for r in check_achievements(GameLogMetrics(total_logs=3)))


class TestNewlyUnlocked:
    def test_skips_existing(self):
        metrics = GameLogMetrics(total_logs=1, constructed_logs=1)
        keys = [a.key for a in get_newly_unlocked({"first_log"}, metrics)]
        assert keys == ["constructed_debut"]

    def test_nothing_new(self):
        assert get_newly_unlocked([], GameLogMetrics()) == []


class TestBadgeXp:
    def test_sum(self):
        assert badge_xp(["first_log", "first_win", "chronicler"]) == 5 + 10 + 35

    def test_unknown_keys_ignored(self):
        assert badge_xp(["nope"]) == 0

    def test_duplicates_counted_once(self):
        assert badge_xp(["first_log", "first_log"]) == 5
