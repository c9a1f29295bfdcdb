"""
Velocity History

Completed-sprint records per team and the statistics shown beside them.
The most recent completed story points feed the planning form's
historical velocities.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .projector import HISTORY_LENGTH, round_half_up


RECENT_SPRINTS = 3
PREDICTION_FACTOR = 1.1


@dataclass
class VelocityRecord:
    """One finished sprint."""
    team_id: int
    sprint_number: str
    planned_story_points: float
    completed_story_points: float
    sprint_duration_days: int = 14
    absent_days: int = 0
    holiday_days: int = 0
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def completion_rate(self) -> float:
        """Completed as a percentage of planned; 0 when nothing was planned."""
        if not self.planned_story_points:
            return 0.0
        return self.completed_story_points / self.planned_story_points * 100

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "team_id": self.team_id,
            "sprint_number": self.sprint_number,
            "planned_story_points": self.planned_story_points,
            "completed_story_points": self.completed_story_points,
            "completion_rate": round(self.completion_rate, 1),
            "sprint_duration_days": self.sprint_duration_days,
            "absent_days": self.absent_days,
            "holiday_days": self.holiday_days,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class VelocityStats:
    """Velocity statistics over a team's recorded sprints."""
    current: float
    average: int
    trend_percent: int
    predicted_next: int
    average_absent_days: float
    average_holiday_days: float
    sprints_analyzed: int

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "average": self.average,
            "trend_percent": self.trend_percent,
            "predicted_next": self.predicted_next,
            "average_absent_days": self.average_absent_days,
            "average_holiday_days": self.average_holiday_days,
            "sprints_analyzed": self.sprints_analyzed,
        }


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def velocity_stats(records: list[VelocityRecord], recent: int = RECENT_SPRINTS) -> VelocityStats:
    """
    Summarise velocity history.

    Args:
        records: Sprints ordered most recent first
        recent: How many recent sprints the average covers

    Returns:
        VelocityStats; all zeros for an empty history
    """
    completed = [r.completed_story_points for r in records]

    average = round_half_up(_mean(completed[:recent])) if completed else 0

    trend = 0
    if len(completed) >= 2 and completed[1]:
        trend = round_half_up((completed[0] - completed[1]) / completed[1] * 100)

    return VelocityStats(
        current=completed[0] if completed else 0,
        average=average,
        trend_percent=trend,
        predicted_next=round_half_up(average * PREDICTION_FACTOR) if average > 0 else 0,
        average_absent_days=round(_mean([r.absent_days for r in records]), 1),
        average_holiday_days=round(_mean([r.holiday_days for r in records]), 1),
        sprints_analyzed=len(records),
    )


def historical_velocities(records: list[VelocityRecord], count: int = HISTORY_LENGTH) -> list[float]:
    """Completed story points of the ``count`` most recent sprints, oldest first."""
    return [r.completed_story_points for r in records[:count]][::-1]
