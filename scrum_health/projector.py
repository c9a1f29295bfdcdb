"""
Sprint Velocity Projector

Projects next-sprint velocity from historical velocity, the sprint calendar
and each team member's availability.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Optional
from enum import Enum

from .workdays import DateLike, business_days_between, count_dates_within, parse_date


HISTORY_LENGTH = 5


class MemberRole(Enum):
    """Team member specialisation."""
    FRONTEND = "frontend"
    BACKEND = "backend"
    FULLSTACK = "fullstack"
    QA = "qa"
    DEVOPS = "devops"

    @property
    def label(self) -> str:
        return {
            MemberRole.FRONTEND: "Frontend Developer",
            MemberRole.BACKEND: "Backend Developer",
            MemberRole.FULLSTACK: "Full Stack Developer",
            MemberRole.QA: "QA Engineer",
            MemberRole.DEVOPS: "DevOps Engineer",
        }[self]


@dataclass
class TeamMember:
    """A team member as entered on the planning form."""
    name: str
    role: MemberRole = MemberRole.FULLSTACK
    capacity_factor: float = 1.0
    absent_dates: list[str] = field(default_factory=list)
    id: Optional[str] = None

    # Derived by the projector
    attendance_percentage: float = 100.0
    effective_capacity: float = 100.0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "capacity_factor": self.capacity_factor,
            "absent_dates": list(self.absent_dates),
            "attendance_percentage": round(self.attendance_percentage, 1),
            "effective_capacity": round(self.effective_capacity, 1),
        }


@dataclass
class Holiday:
    """A public or company holiday."""
    date: str
    name: str = ""
    id: Optional[str] = None


@dataclass
class SprintVelocityForm:
    """Everything needed to project a sprint."""
    team_name: str
    historical_velocities: list[float]
    team_members: list[TeamMember]
    sprint_start_date: DateLike
    sprint_end_date: DateLike
    holidays: list[Holiday] = field(default_factory=list)
    team_size: Optional[int] = None

    def __post_init__(self):
        if self.team_size is None:
            self.team_size = len(self.team_members)


@dataclass
class VelocityCalculationResult:
    """Projection output."""
    projected_velocity: float
    average_historical_velocity: float
    team_capacity: float
    working_days: int
    total_sprint_days: int
    recommendations: list[str] = field(default_factory=list)
    team_members_with_capacity: list[TeamMember] = field(default_factory=list)

    @property
    def capacity_ratio(self) -> float:
        return self.team_capacity / 100

    def to_dict(self) -> dict:
        return {
            "projected_velocity": round(self.projected_velocity, 1),
            "average_historical_velocity": round(self.average_historical_velocity, 1),
            "team_capacity": round(self.team_capacity, 1),
            "working_days": self.working_days,
            "total_sprint_days": self.total_sprint_days,
            "recommendations": self.recommendations,
            "team_members": [m.to_dict() for m in self.team_members_with_capacity],
        }


@dataclass
class ProjectionRules:
    """Trigger levels for recommendations."""
    scope_capacity_ratio: float = 0.8
    member_capacity_percent: float = 70.0
    short_sprint_days: int = 8


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def validate_velocity_form(form: SprintVelocityForm) -> list[str]:
    """
    Check that a form is complete enough to project.

    Returns:
        List of problems; empty when the form is ready
    """
    problems = []

    if not form.team_name or not form.team_name.strip():
        problems.append("Team name is required")

    if len(form.historical_velocities) != HISTORY_LENGTH:
        problems.append(f"Exactly {HISTORY_LENGTH} historical velocities are required")
    if any(v is None or v <= 0 for v in form.historical_velocities):
        problems.append("Historical velocities must be greater than zero")

    if len(form.team_members) != form.team_size:
        problems.append(
            f"Team size is {form.team_size} but {len(form.team_members)} members were entered"
        )
    if any(not m.name or not m.name.strip() for m in form.team_members):
        problems.append("Every team member needs a name")

    if parse_date(form.sprint_start_date) is None:
        problems.append("Sprint start date is required")
    if parse_date(form.sprint_end_date) is None:
        problems.append("Sprint end date is required")

    return problems


def velocity_form_warnings(form: SprintVelocityForm) -> list[str]:
    """
    Suspicious but calculable input.

    None of these block a projection: a reversed date range projects zero
    working days and a capacity factor above 1 simply raises capacity.
    """
    warnings = []

    for member in form.team_members:
        if not 0 < member.capacity_factor <= 1:
            warnings.append(f"Capacity factor for {member.name or 'unnamed member'} is outside 0-1")

    start = parse_date(form.sprint_start_date)
    end = parse_date(form.sprint_end_date)
    if start and end and end < start:
        warnings.append("Sprint end date is before the start date")

    return warnings


def is_ready_for_calculation(form: SprintVelocityForm) -> bool:
    return not validate_velocity_form(form)


class VelocityProjector:
    """
    Projects sprint velocity from history and team availability.

    The projector assumes a validated form (see ``validate_velocity_form``)
    and never raises on malformed dates: they are left out of the counts.

    Usage:
        projector = VelocityProjector()
        result = projector.project(form)
    """

    def __init__(self, rules: Optional[ProjectionRules] = None):
        self.rules = rules or ProjectionRules()

    def average_velocity(self, velocities: list[float]) -> float:
        if not velocities:
            return 0
        return sum(velocities) / len(velocities)

    def sprint_days(self, start: Optional[date], end: Optional[date]) -> int:
        if start is None or end is None:
            return 0
        return business_days_between(start, end)

    def working_days(
        self,
        start: Optional[date],
        end: Optional[date],
        holidays: list[Holiday]
    ) -> int:
        """Business days in the sprint minus holidays dated inside it."""
        total = self.sprint_days(start, end)
        if start is None or end is None:
            return total
        holiday_count = count_dates_within((h.date for h in holidays), start, end)
        return max(0, total - holiday_count)

    def member_capacity(
        self,
        member: TeamMember,
        start: Optional[date],
        end: Optional[date],
        working_days: int
    ) -> TeamMember:
        """
        Annotate a member with attendance and effective capacity.

        Args:
            member: Member from the form (left untouched)
            start: Sprint start
            end: Sprint end
            working_days: Team working days after holidays

        Returns:
            Copy of the member with derived fields filled in
        """
        if working_days <= 0 or start is None or end is None:
            return replace(member, attendance_percentage=0.0, effective_capacity=0.0)

        absent = count_dates_within(member.absent_dates, start, end)
        member_working_days = working_days - absent
        effective_days = member_working_days * member.capacity_factor

        attendance = max(0.0, (member_working_days / working_days) * 100)
        effective_capacity = max(0.0, (effective_days / working_days) * 100)

        return replace(
            member,
            absent_dates=list(member.absent_dates),
            attendance_percentage=attendance,
            effective_capacity=effective_capacity,
        )

    def recommendations(
        self,
        average_velocity: float,
        team_capacity: float,
        members: list[TeamMember],
        holidays: list[Holiday],
        working_days: int
    ) -> list[str]:
        recommendations = []
        capacity_ratio = team_capacity / 100

        if capacity_ratio < self.rules.scope_capacity_ratio:
            reduction = round_half_up((1 - capacity_ratio) * average_velocity)
            recommendations.append(
                f"Consider reducing sprint scope by {reduction} story points due to reduced capacity"
            )

        for member in members:
            if member.effective_capacity < self.rules.member_capacity_percent:
                recommendations.append(
                    f"{member.name}'s limited availability ({round_half_up(member.effective_capacity)}%) "
                    f"may impact {member.role.value} work"
                )

        if holidays:
            recommendations.append(
                f"{len(holidays)} holiday(s) during sprint affect overall team productivity"
            )

        if working_days < self.rules.short_sprint_days:
            recommendations.append(
                "Short sprint duration may limit velocity - consider adjusting scope accordingly"
            )

        return recommendations

    def project(self, form: SprintVelocityForm) -> VelocityCalculationResult:
        """
        Project velocity for the sprint described by the form.

        Args:
            form: Validated planning form

        Returns:
            VelocityCalculationResult with capacity, projection and recommendations
        """
        average = self.average_velocity(form.historical_velocities)

        start = parse_date(form.sprint_start_date)
        end = parse_date(form.sprint_end_date)
        total_sprint_days = self.sprint_days(start, end)
        working_days = self.working_days(start, end, form.holidays)

        members = [
            self.member_capacity(m, start, end, working_days)
            for m in form.team_members
        ]

        if members:
            team_capacity = sum(m.effective_capacity for m in members) / len(members)
        else:
            team_capacity = 0.0

        projected = average * (team_capacity / 100)

        return VelocityCalculationResult(
            projected_velocity=projected,
            average_historical_velocity=average,
            team_capacity=team_capacity,
            working_days=working_days,
            total_sprint_days=total_sprint_days,
            recommendations=self.recommendations(
                average, team_capacity, members, form.holidays, working_days
            ),
            team_members_with_capacity=members,
        )


# Convenience function
def project_sprint_velocity(
    form: SprintVelocityForm,
    rules: Optional[ProjectionRules] = None
) -> VelocityCalculationResult:
    """
    Quick function to project a sprint.

    Example:
        result = project_sprint_velocity(form)

        print(f"Projected velocity: {result.projected_velocity:.1f} SP")
        print(f"Team capacity: {result.team_capacity:.0f}%")
    """
    projector = VelocityProjector(rules=rules)
    return projector.project(form)
