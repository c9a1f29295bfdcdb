"""
Tests for exports and text reports.
"""

import csv
import io
import json
import pytest
from datetime import date, datetime

from scrum_health.classifier import MetricColor
from scrum_health.exporter import (
    Exporter,
    TextReporter,
    CSV_COLUMNS,
    export_filename,
    metrics_to_csv,
    velocity_to_json
)
from scrum_health.metrics import HealthMetricRecord, NumericValue, TextValue
from scrum_health.projector import SprintVelocityForm, TeamMember, VelocityProjector


@pytest.fixture
def form():
    return SprintVelocityForm(
        team_name="Core Platform",
        historical_velocities=[20, 22, 21, 23, 24],
        team_members=[TeamMember(name="Alice"), TeamMember(name="Bob", capacity_factor=0.5)],
        sprint_start_date="2024-01-01",
        sprint_end_date="2024-01-12",
    )


@pytest.fixture
def records():
    approved = HealthMetricRecord(1, "old_bugs", "S01", NumericValue(12), actual_color=MetricColor.RED)
    approved.approve("pat", "Known, fixing, next sprint")
    return [
        HealthMetricRecord(1, "velocity_sp", "S01", NumericValue(55), actual_color=MetricColor.GREEN),
        approved,
        HealthMetricRecord(2, "code_quality", "S01", TextValue("pending")),
    ]


class TestVelocityExport:
    """Tests for velocity JSON export."""

    def test_json_document(self, form):
        result = VelocityProjector().project(form)
        data = json.loads(velocity_to_json(form, result, calculated_at=datetime(2024, 1, 1, 9, 30)))

        assert data["team_name"] == "Core Platform"
        assert data["calculation_date"] == "2024-01-01T09:30:00"
        assert data["historical_velocities"] == [20, 22, 21, 23, 24]
        assert data["team_capacity"] == pytest.approx(75.0)
        assert data["working_days"] == 10
        assert [m["name"] for m in data["team_members"]] == ["Alice", "Bob"]
        assert data["recommendations"] == result.recommendations

    def test_filename(self):
        assert export_filename("Core  Platform", "velocity", date(2024, 3, 1)) == \
            "sprint-velocity-Core-Platform-2024-03-01.json"
        assert export_filename(None, "metrics") == "scrum-metrics-report.csv"


class TestMetricsExport:
    """Tests for health metric CSV export."""

    def test_csv_rows(self, records):
        text = metrics_to_csv(records, team_names={1: "Platform"})
        rows = list(csv.reader(io.StringIO(text)))

        assert rows[0] == CSV_COLUMNS
        assert rows[1] == ["Platform", "S01", "velocity_sp", "55", "green", "No", "N/A", "N/A"]
        assert rows[2] == ["Platform", "S01", "old_bugs", "12", "green", "Yes", "pat",
                           "Known, fixing, next sprint"]
        assert rows[3][0] == "Unknown"
        assert rows[3][4] == "neutral"

    def test_empty(self):
        assert metrics_to_csv([]) == ",".join(CSV_COLUMNS) + "\n"


class TestTextReports:
    """Tests for text reports."""

    def test_velocity_report(self, form):
        result = VelocityProjector().project(form)
        report = TextReporter.velocity_report(result, form.team_name)
        assert "SPRINT VELOCITY: Core Platform" in report
        assert "Working Days: 10 of 10" in report
        assert "Bob" in report

    def test_metrics_report(self, records):
        report = TextReporter.metrics_report(records)
        assert "TEAM HEALTH REPORT" in report
        assert "Old Bugs (>30 days)" in report
        assert "(PO approved)" in report


class TestExporter:
    """Tests for format dispatch."""

    def test_dispatch(self, form, records):
        exporter = Exporter()
        result = VelocityProjector().project(form)
        assert json.loads(exporter.velocity(form, result))["team_name"] == "Core Platform"
        assert "SPRINT VELOCITY" in exporter.velocity(form, result, format="text")
        assert exporter.metrics(records).startswith("Team,Sprint")

    def test_unknown_format(self, form, records):
        exporter = Exporter()
        with pytest.raises(ValueError):
            exporter.metrics(records, format="xml")
