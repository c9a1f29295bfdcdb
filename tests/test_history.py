"""
Tests for velocity history statistics and retrospective grouping.
"""

from scrum_health.history import VelocityRecord, historical_velocities, velocity_stats
from scrum_health.retrospective import RetroCategory, RetrospectiveItem, group_items


def sprint(number, completed, planned=30, absent=0, holidays=0):
    return VelocityRecord(
        team_id=1,
        sprint_number=number,
        planned_story_points=planned,
        completed_story_points=completed,
        absent_days=absent,
        holiday_days=holidays,
    )


class TestVelocityStats:
    """Tests for velocity_stats (records are most recent first)."""

    def test_empty_history(self):
        stats = velocity_stats([])
        assert stats.to_dict() == {
            "current": 0,
            "average": 0,
            "trend_percent": 0,
            "predicted_next": 0,
            "average_absent_days": 0.0,
            "average_holiday_days": 0.0,
            "sprints_analyzed": 0,
        }

    def test_average_covers_last_three(self):
        records = [sprint("S05", 30), sprint("S04", 25), sprint("S03", 26), sprint("S02", 100)]
        stats = velocity_stats(records)
        assert stats.current == 30
        assert stats.average == 27
        assert stats.predicted_next == 30
        assert stats.sprints_analyzed == 4

    def test_trend_against_previous_sprint(self):
        assert velocity_stats([sprint("S02", 24), sprint("S01", 20)]).trend_percent == 20
        assert velocity_stats([sprint("S02", 15), sprint("S01", 20)]).trend_percent == -25

    def test_no_trend_from_zero(self):
        assert velocity_stats([sprint("S02", 24), sprint("S01", 0)]).trend_percent == 0
        assert velocity_stats([sprint("S01", 24)]).trend_percent == 0

    def test_average_absences_and_holidays(self):
        stats = velocity_stats([sprint("S02", 20, absent=3, holidays=1), sprint("S01", 20, absent=2)])
        assert stats.average_absent_days == 2.5
        assert stats.average_holiday_days == 0.5

    def test_completion_rate(self):
        assert sprint("S01", 24, planned=30).completion_rate == 80
        assert sprint("S01", 24, planned=0).completion_rate == 0

    def test_historical_velocities_feed_planning_form(self):
        records = [sprint(f"S0{n}", n * 10) for n in range(7, 0, -1)]
        assert historical_velocities(records) == [30, 40, 50, 60, 70]
        assert historical_velocities(records[:2]) == [60, 70]


class TestRetrospectiveGrouping:
    """Tests for grouping items into board columns."""

    def test_all_columns_present(self):
        items = [
            RetrospectiveItem(board_id=1, category=RetroCategory.TO_IMPROVE, content="Flaky CI", id=1),
            RetrospectiveItem(board_id=1, category=RetroCategory.TO_IMPROVE, content="Long standups", id=2),
        ]
        columns = group_items(items)
        assert list(columns) == ["went_well", "to_improve", "action_items", "appreciations"]
        assert columns["to_improve"]["title"] == "What could be improved?"
        assert [i["content"] for i in columns["to_improve"]["items"]] == ["Flaky CI", "Long standups"]
        assert columns["went_well"]["items"] == []
