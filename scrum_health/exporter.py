"""
Exporters for Scrum Health

Serializes velocity projections and health metrics to JSON, CSV and
plain-text reports.
"""

import csv
import io
import json
import re
from datetime import date, datetime
from typing import Literal, Optional

from .metrics import HealthMetricRecord, display_name, summarize_metrics
from .projector import SprintVelocityForm, VelocityCalculationResult


CSV_COLUMNS = ["Team", "Sprint", "Metric", "Value", "Color", "Approved", "ApprovedBy", "Comment"]


def _capacity_bar(percentage: float, width: int = 20) -> str:
    filled = int(max(0, min(percentage, 100)) / 100 * width)
    return "█" * filled + "░" * (width - filled)


def export_filename(
    team_name: Optional[str],
    kind: Literal["velocity", "metrics"],
    on: Optional[date] = None
) -> str:
    """Download filename for an export."""
    if kind == "metrics":
        return "scrum-metrics-report.csv"
    on = on or date.today()
    slug = re.sub(r"\s+", "-", (team_name or "team").strip())
    return f"sprint-velocity-{slug}-{on.isoformat()}.json"


def velocity_to_dict(
    form: SprintVelocityForm,
    result: VelocityCalculationResult,
    calculated_at: Optional[datetime] = None
) -> dict:
    calculated_at = calculated_at or datetime.now()
    return {
        "team_name": form.team_name,
        "calculation_date": calculated_at.isoformat(),
        "historical_velocities": list(form.historical_velocities),
        "average_historical_velocity": result.average_historical_velocity,
        "projected_velocity": result.projected_velocity,
        "team_capacity": result.team_capacity,
        "working_days": result.working_days,
        "total_sprint_days": result.total_sprint_days,
        "recommendations": list(result.recommendations),
        "team_members": [m.to_dict() for m in result.team_members_with_capacity],
    }


def velocity_to_json(
    form: SprintVelocityForm,
    result: VelocityCalculationResult,
    calculated_at: Optional[datetime] = None
) -> str:
    return json.dumps(velocity_to_dict(form, result, calculated_at), indent=2, ensure_ascii=False)


def metrics_to_csv(
    records: list[HealthMetricRecord],
    team_names: Optional[dict[int, str]] = None
) -> str:
    """
    One row per record, columns as in ``CSV_COLUMNS``.

    Args:
        records: Health metric records
        team_names: Team id to display name; unknown ids export as "Unknown"
    """
    team_names = team_names or {}
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)

    for record in records:
        writer.writerow([
            team_names.get(record.team_id, "Unknown"),
            record.sprint_number,
            record.metric_name,
            record.value.display,
            record.final_color.value,
            "Yes" if record.po_approved else "No",
            record.po_approved_by or "N/A",
            record.po_approval_comment or "N/A",
        ])

    return buffer.getvalue()


class TextReporter:
    """Generate text-based reports."""

    @staticmethod
    def velocity_report(result: VelocityCalculationResult, team_name: str = "") -> str:
        lines = []

        title = f"SPRINT VELOCITY: {team_name}" if team_name else "SPRINT VELOCITY"
        lines.append("╔" + "═" * 60 + "╗")
        lines.append("║" + title.center(60) + "║")
        lines.append("╠" + "═" * 60 + "╣")

        lines.append(f"║  Average Velocity: {result.average_historical_velocity:.1f} SP".ljust(61) + "║")
        lines.append(f"║  Projected Velocity: {result.projected_velocity:.1f} SP".ljust(61) + "║")
        lines.append(f"║  Team Capacity: {result.team_capacity:.0f}%".ljust(61) + "║")
        lines.append(f"║  Working Days: {result.working_days} of {result.total_sprint_days}".ljust(61) + "║")

        if result.team_members_with_capacity:
            lines.append("║" + "─" * 60 + "║")
            lines.append("║  TEAM MEMBERS:".ljust(61) + "║")
            for member in result.team_members_with_capacity:
                name = member.name[:15].ljust(15)
                bar = _capacity_bar(member.effective_capacity, 15)
                lines.append(f"║    {name} {bar} {member.effective_capacity:5.1f}%".ljust(61) + "║")

        if result.recommendations:
            lines.append("║" + "─" * 60 + "║")
            lines.append("║  RECOMMENDATIONS:".ljust(61) + "║")
            for rec in result.recommendations:
                lines.append(f"║    • {rec[:52]}".ljust(61) + "║")

        lines.append("╚" + "═" * 60 + "╝")
        return "\n".join(lines)

    @staticmethod
    def metrics_report(records: list[HealthMetricRecord]) -> str:
        summary = summarize_metrics(records)
        lines = []

        lines.append("╔" + "═" * 60 + "╗")
        lines.append("║" + "TEAM HEALTH REPORT".center(60) + "║")
        lines.append("╠" + "═" * 60 + "╣")
        lines.append(
            f"║  🟢 {summary.green}  🟡 {summary.yellow}  🔴 {summary.red}  ⚪ {summary.neutral}"
            f"  Approved: {summary.approved}".ljust(61) + "║"
        )
        lines.append("║" + "─" * 60 + "║")

        for record in records:
            flag = " (PO approved)" if record.po_approved else ""
            name = display_name(record.metric_name)[:28].ljust(28)
            lines.append(
                f"║  {record.final_color.emoji} {record.sprint_number:<4} {name} {record.value.display[:10]}{flag}".ljust(61) + "║"
            )

        lines.append("╚" + "═" * 60 + "╝")
        return "\n".join(lines)


class Exporter:
    """
    Single entry point for every export format.

    Usage:
        exporter = Exporter()
        csv_text = exporter.metrics(records, format="csv", team_names={1: "Platform"})
        json_text = exporter.velocity(form, result, format="json")
    """

    def __init__(self):
        self.text = TextReporter()

    def velocity(
        self,
        form: SprintVelocityForm,
        result: VelocityCalculationResult,
        format: Literal["json", "text"] = "json"
    ) -> str:
        if format == "json":
            return velocity_to_json(form, result)
        elif format == "text":
            return self.text.velocity_report(result, form.team_name)
        else:
            raise ValueError(f"Unknown format: {format}")

    def metrics(
        self,
        records: list[HealthMetricRecord],
        format: Literal["csv", "text"] = "csv",
        team_names: Optional[dict[int, str]] = None
    ) -> str:
        if format == "csv":
            return metrics_to_csv(records, team_names)
        elif format == "text":
            return self.text.metrics_report(records)
        else:
            raise ValueError(f"Unknown format: {format}")
