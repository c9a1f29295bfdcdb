"""
Tests for health metric records, roles and the metric store.
"""

import pytest

from scrum_health.classifier import MetricColor
from scrum_health.metrics import (
    HealthMetricRecord,
    NumericValue,
    TextValue,
    DEFAULT_METRICS,
    default_configs,
    display_name,
    metric_value_from_raw,
    summarize_metrics
)
from scrum_health.projector import MemberRole, VelocityCalculationResult
from scrum_health.retrospective import RetroCategory
from scrum_health.roles import Role, capabilities_for
from scrum_health.store import MetricStore, NotFoundError


@pytest.fixture
def store():
    return MetricStore()


@pytest.fixture
def team(store):
    return store.create_team("Platform")


class TestMetricValues:
    """Tests for the numeric/text value variants."""

    def test_numeric(self):
        value = metric_value_from_raw("42")
        assert isinstance(value, NumericValue)
        assert value.kind == "numeric"
        assert value.display == "42"

    def test_text(self):
        value = metric_value_from_raw(" pending audit ")
        assert isinstance(value, TextValue)
        assert value.kind == "text"
        assert value.display == "pending audit"

    def test_none_is_empty_text(self):
        assert metric_value_from_raw(None) == TextValue("")


class TestHealthMetricRecord:
    """Tests for classification and approval on a record."""

    def test_classify_numeric(self):
        record = HealthMetricRecord(1, "velocity_sp", "S01", NumericValue(20))
        assert record.classify(DEFAULT_METRICS["velocity_sp"].config_for(1)) == MetricColor.RED
        assert record.needs_approval

    def test_classify_text_is_neutral(self):
        record = HealthMetricRecord(1, "velocity_sp", "S01", TextValue("n/a"))
        assert record.classify(DEFAULT_METRICS["velocity_sp"].config_for(1)) == MetricColor.NEUTRAL

    def test_approval_forces_green_and_keeps_actual(self):
        record = HealthMetricRecord(1, "old_bugs", "S02", NumericValue(12), actual_color=MetricColor.RED)
        assert record.approve("pat", "Legacy backlog migration")
        assert record.final_color == MetricColor.GREEN
        assert record.actual_color == MetricColor.RED
        assert record.po_approved_by == "pat"
        assert record.po_approval_comment == "Legacy backlog migration"
        assert record.po_approved_at is not None
        assert not record.needs_approval

    def test_approval_is_one_way(self):
        record = HealthMetricRecord(1, "old_bugs", "S02", NumericValue(12), actual_color=MetricColor.RED)
        record.approve("pat")
        assert not record.approve("sam", "second opinion")
        assert record.po_approved_by == "pat"
        assert record.po_approval_comment is None

    def test_reclassify_keeps_approval(self):
        record = HealthMetricRecord(1, "old_bugs", "S02", NumericValue(12))
        record.approve("pat")
        record.classify(DEFAULT_METRICS["old_bugs"].config_for(1))
        assert record.actual_color == MetricColor.RED
        assert record.final_color == MetricColor.GREEN

    def test_to_dict(self):
        record = HealthMetricRecord(1, "velocity_sp", "S01", NumericValue(55), actual_color=MetricColor.GREEN, id=7)
        data = record.to_dict()
        assert data["id"] == 7
        assert data["value"] == {"kind": "numeric", "display": "55", "number": 55.0}
        assert data["final_color"] == "green"


class TestCatalogue:
    """Tests for the standard metric catalogue."""

    def test_defaults_are_consistent(self):
        assert all(c.is_consistent for c in default_configs(1))

    def test_bug_metrics_are_lower_is_better(self):
        assert not DEFAULT_METRICS["critical_high_bugs"].is_higher_better
        assert not DEFAULT_METRICS["old_bugs"].is_higher_better

    def test_display_name(self):
        assert display_name("cpp_percentage") == "Cost Per Point Percentage"
        assert display_name("custom_metric") == "custom_metric"

    def test_summary(self):
        records = [
            HealthMetricRecord(1, "a", "S01", NumericValue(1), actual_color=MetricColor.GREEN),
            HealthMetricRecord(1, "b", "S01", NumericValue(1), actual_color=MetricColor.RED),
            HealthMetricRecord(1, "c", "S01", NumericValue(1), actual_color=MetricColor.YELLOW),
            HealthMetricRecord(1, "d", "S01", TextValue("x")),
        ]
        records[1].approve("pat")
        summary = summarize_metrics(records)
        assert (summary.green, summary.yellow, summary.red, summary.neutral) == (2, 1, 0, 1)
        assert summary.approved == 1
        assert summary.total == 4
        assert summary.health_percentage == pytest.approx(200 / 3)


class TestRoles:
    """Tests for advisory role capabilities."""

    def test_product_owner_can_approve(self):
        caps = capabilities_for(Role.PRODUCT_OWNER)
        assert caps.can_approve
        assert not caps.can_enter_data

    def test_scrum_master_enters_data(self):
        caps = capabilities_for(Role.SCRUM_MASTER)
        assert caps.can_enter_data
        assert not caps.can_approve
        assert caps.label == "Data Entry"

    def test_admin_has_everything(self):
        caps = capabilities_for(Role.ADMIN)
        assert all([caps.can_edit_config, caps.can_enter_data, caps.can_approve,
                    caps.can_view_all, caps.can_manage_teams])

    def test_parse_falls_back(self):
        assert Role.parse("PRODUCT_OWNER") == Role.PRODUCT_OWNER
        assert Role.parse("ceo") == Role.SCRUM_MASTER
        assert Role.parse(None, default=Role.ADMIN) == Role.ADMIN


class TestMetricStore:
    """Tests for MetricStore."""

    def test_create_team_seeds_configs(self, store, team):
        names = {c.metric_name for c in store.list_configs(team.id)}
        assert names == set(DEFAULT_METRICS)

    def test_create_team_without_seed(self, store):
        bare = store.create_team("Bare", seed_defaults=False)
        assert store.list_configs(bare.id) == []

    def test_unknown_team(self, store):
        with pytest.raises(NotFoundError):
            store.get_team(99)
        with pytest.raises(NotFoundError):
            store.list_configs(99)

    def test_record_classifies_on_write(self, store, team):
        record = store.record_metric(team.id, "velocity_sp", "S01", "55")
        assert record.id is not None
        assert record.actual_color == MetricColor.GREEN

    def test_record_unconfigured_metric(self, store, team):
        record = store.record_metric(team.id, "mystery", "S01", "3")
        assert record.actual_color == MetricColor.NEUTRAL

    def test_rerecord_corrects_value_and_keeps_approval(self, store, team):
        first = store.record_metric(team.id, "velocity_sp", "S01", "10")
        store.approve_metric(first.id, "pat", "Holiday sprint")
        approved_at = first.po_approved_at

        second = store.record_metric(team.id, "velocity_sp", "S01", "12")

        assert second.id == first.id
        assert second.value.display == "12"
        assert second.actual_color == MetricColor.RED
        assert second.po_approved
        assert second.po_approved_by == "pat"
        assert second.po_approval_comment == "Holiday sprint"
        assert second.po_approved_at == approved_at
        assert second.final_color == MetricColor.GREEN
        assert store.list_metrics(team.id) == [second]
        assert store.red_metrics() == []

    def test_rerecord_unapproved_reclassifies(self, store, team):
        first = store.record_metric(team.id, "velocity_sp", "S01", "10")
        second = store.record_metric(team.id, "velocity_sp", "S01", "60")
        assert second.id == first.id
        assert second.final_color == MetricColor.GREEN

    def test_new_sprint_needs_fresh_approval(self, store, team):
        first = store.record_metric(team.id, "old_bugs", "S01", "20")
        store.approve_metric(first.id, "pat")
        later = store.record_metric(team.id, "old_bugs", "S02", "20")
        assert later.final_color == MetricColor.RED
        assert store.red_metrics() == [later]

    def test_list_metrics_by_sprint(self, store, team):
        store.record_metric(team.id, "velocity_sp", "S01", "40")
        s2 = store.record_metric(team.id, "velocity_sp", "S02", "45")
        assert store.list_metrics(team.id, sprint_number="S02") == [s2]

    def test_update_config_changes_future_classification(self, store, team):
        store.update_config(team.id, "velocity_sp", green_threshold=40)
        assert store.record_metric(team.id, "velocity_sp", "S01", "42").actual_color == MetricColor.GREEN

    def test_update_config_reclassifies_stored_records(self, store, team):
        yellow = store.record_metric(team.id, "velocity_sp", "S01", "42")
        red = store.record_metric(team.id, "velocity_sp", "S02", "20")
        store.approve_metric(red.id, "pat")
        other = store.record_metric(team.id, "dor_work_percentage", "S01", "42")

        store.update_config(team.id, "velocity_sp", green_threshold=40, yellow_threshold=15)

        assert yellow.actual_color == MetricColor.GREEN
        assert red.actual_color == MetricColor.YELLOW
        assert red.po_approved
        assert other.actual_color == MetricColor.RED

    def test_update_config_accepts_inconsistent(self, store, team):
        config = store.update_config(team.id, "velocity_sp", yellow_threshold=70)
        assert not config.is_consistent

    def test_update_config_new_metric(self, store, team):
        config = store.update_config(team.id, "lead_time_days", green_threshold=3, yellow_threshold=7,
                                     is_higher_better=False)
        assert store.get_config(team.id, "lead_time_days") is config
        with pytest.raises(ValueError):
            store.update_config(team.id, "other_metric", green_threshold=1)

    def test_approve_unknown(self, store):
        with pytest.raises(NotFoundError):
            store.approve_metric(123, "pat")

    def test_calculations(self, store):
        result = VelocityCalculationResult(
            projected_velocity=20, average_historical_velocity=22, team_capacity=90,
            working_days=10, total_sprint_days=10,
        )
        saved = store.save_calculation("Platform", [20, 22, 21, 23, 24], result)
        store.save_calculation("Mobile", [10, 10, 10, 10, 10], result)
        assert [c.id for c in store.list_calculations("Platform")] == [saved.id]
        assert len(store.list_calculations()) == 2
        assert saved.to_dict()["result"]["team_capacity"] == 90


class TestTeamSettings:
    """Tests for team editing and the member roster."""

    def test_update_team(self, store, team):
        store.update_team(team.id, size=6, sprint_duration_days=15)
        updated = store.get_team(team.id)
        assert updated.size == 6
        assert updated.sprint_duration_days == 15
        assert updated.name == "Platform"

    def test_update_unknown_team(self, store):
        with pytest.raises(NotFoundError):
            store.update_team(42, name="Ghost")

    def test_roster(self, store, team):
        ana = store.add_member(team.id, " Ana ", MemberRole.QA, 0.8)
        store.add_member(team.id, "Ben")
        other = store.create_team("Mobile")
        store.add_member(other.id, "Cy")

        assert [m.name for m in store.list_members(team.id)] == ["Ana", "Ben"]
        assert ana.to_dict()["role"] == "qa"

        store.remove_member(ana.id)
        assert [m.name for m in store.list_members(team.id)] == ["Ben"]
        with pytest.raises(NotFoundError):
            store.remove_member(ana.id)

    def test_roster_needs_name(self, store, team):
        with pytest.raises(ValueError):
            store.add_member(team.id, "  ")


class TestVelocityHistoryStore:
    """Tests for per-team velocity records."""

    def test_most_recent_first(self, store, team):
        store.add_velocity(team.id, "S01", 30, 25)
        store.add_velocity(team.id, "S02", 30, 28, absent_days=2)
        assert [r.sprint_number for r in store.list_velocity(team.id)] == ["S02", "S01"]

    def test_sprint_number_required(self, store, team):
        with pytest.raises(ValueError):
            store.add_velocity(team.id, "", 30, 25)

    def test_unknown_team(self, store):
        with pytest.raises(NotFoundError):
            store.add_velocity(9, "S01", 30, 25)


class TestRetrospectiveStore:
    """Tests for retrospective boards and items."""

    def test_board_and_items(self, store, team):
        board = store.create_board(team.id, "S03")
        assert board.title == "Sprint S03 Retrospective"
        assert board.status == "active"

        store.add_item(board.id, "went_well", "Pairing on the migration")
        store.add_item(board.id, RetroCategory.ACTION_ITEMS, "Automate release notes", "Dee")
        items = store.list_items(board.id)

        assert [i.category for i in items] == [RetroCategory.WENT_WELL, RetroCategory.ACTION_ITEMS]
        assert items[0].author_name == "Anonymous"
        assert store.list_boards(team.id) == [board]

    def test_invalid_items(self, store, team):
        board = store.create_board(team.id, "S03")
        with pytest.raises(ValueError):
            store.add_item(board.id, "went_well", "   ")
        with pytest.raises(ValueError):
            store.add_item(board.id, "complaints", "Too many meetings")
        with pytest.raises(NotFoundError):
            store.add_item(99, "went_well", "Nice")

    def test_delete_item(self, store, team):
        board = store.create_board(team.id, "S03")
        item = store.add_item(board.id, "to_improve", "Flaky CI")
        store.delete_item(item.id)
        assert store.list_items(board.id) == []
        with pytest.raises(NotFoundError):
            store.delete_item(item.id)

    def test_board_needs_sprint(self, store, team):
        with pytest.raises(ValueError):
            store.create_board(team.id, " ")
