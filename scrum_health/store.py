"""
Metric Store

In-process storage for teams and their rosters, threshold configs, health
metric records, velocity history, retrospectives and saved sprint
calculations.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from itertools import count
from typing import Optional, Union

from .classifier import MetricColor, MetricConfig, ThresholdClassifier
from .history import VelocityRecord
from .metrics import HealthMetricRecord, default_configs, metric_value_from_raw
from .projector import MemberRole, VelocityCalculationResult
from .retrospective import RetroCategory, RetrospectiveBoard, RetrospectiveItem

logger = logging.getLogger(__name__)


class NotFoundError(KeyError):
    """Requested team, config or record does not exist."""

    def __str__(self) -> str:
        return self.args[0] if self.args else "Not found"


@dataclass
class Team:
    id: int
    name: str
    description: Optional[str] = None
    size: int = 0
    sprint_duration_days: int = 10
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "size": self.size,
            "sprint_duration_days": self.sprint_duration_days,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class RosterMember:
    """A standing member of a team, as opposed to a planning-form entry."""
    id: int
    team_id: int
    name: str
    role: MemberRole = MemberRole.FULLSTACK
    capacity_factor: float = 1.0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "team_id": self.team_id,
            "name": self.name,
            "role": self.role.value,
            "capacity_factor": self.capacity_factor,
        }


@dataclass
class SavedCalculation:
    id: int
    team_name: str
    historical_velocities: list[float]
    result: VelocityCalculationResult
    saved_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "team_name": self.team_name,
            "historical_velocities": self.historical_velocities,
            "result": self.result.to_dict(),
            "saved_at": self.saved_at.isoformat(),
        }


class MetricStore:
    """
    Thread-safe in-memory store.

    Usage:
        store = MetricStore()
        team = store.create_team("Platform")
        record = store.record_metric(team.id, "velocity_sp", "S01", "42")
        store.approve_metric(record.id, "pat.po", "Holiday sprint")
    """

    def __init__(self, classifier: Optional[ThresholdClassifier] = None):
        self.classifier = classifier or ThresholdClassifier()
        self._lock = threading.Lock()
        self._team_ids = count(1)
        self._member_ids = count(1)
        self._metric_ids = count(1)
        self._velocity_ids = count(1)
        self._calculation_ids = count(1)
        self._board_ids = count(1)
        self._item_ids = count(1)

        self._teams: dict[int, Team] = {}
        self._members: dict[int, RosterMember] = {}
        self._configs: dict[tuple[int, str], MetricConfig] = {}
        self._metrics: dict[int, HealthMetricRecord] = {}
        self._metric_keys: dict[tuple[int, str, str], int] = {}
        self._velocity: dict[int, VelocityRecord] = {}
        self._calculations: dict[int, SavedCalculation] = {}
        self._boards: dict[int, RetrospectiveBoard] = {}
        self._items: dict[int, RetrospectiveItem] = {}

    # Teams

    def create_team(
        self,
        name: str,
        description: Optional[str] = None,
        sprint_duration_days: int = 10,
        seed_defaults: bool = True,
        size: int = 0
    ) -> Team:
        """Create a team, seeding thresholds from the standard metric catalogue."""
        with self._lock:
            team = Team(
                id=next(self._team_ids),
                name=name,
                description=description,
                size=size,
                sprint_duration_days=sprint_duration_days,
            )
            self._teams[team.id] = team
            if seed_defaults:
                for config in default_configs(team.id):
                    self._configs[(team.id, config.metric_name)] = config
        logger.info("Created team %s (%s)", team.id, team.name)
        return team

    def get_team(self, team_id: int) -> Team:
        team = self._teams.get(team_id)
        if team is None:
            raise NotFoundError(f"Team {team_id} not found")
        return team

    def list_teams(self) -> list[Team]:
        return sorted(self._teams.values(), key=lambda t: t.id)

    def update_team(
        self,
        team_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        size: Optional[int] = None,
        sprint_duration_days: Optional[int] = None
    ) -> Team:
        """Change team settings; arguments left as None keep their value."""
        with self._lock:
            team = self.get_team(team_id)
            if name is not None:
                team.name = name
            if description is not None:
                team.description = description
            if size is not None:
                team.size = size
            if sprint_duration_days is not None:
                team.sprint_duration_days = sprint_duration_days
        logger.info("Updated team %s", team_id)
        return team

    # Roster

    def add_member(
        self,
        team_id: int,
        name: str,
        role: MemberRole = MemberRole.FULLSTACK,
        capacity_factor: float = 1.0
    ) -> RosterMember:
        self.get_team(team_id)
        if not name or not name.strip():
            raise ValueError("Team member name is required")
        with self._lock:
            member = RosterMember(
                id=next(self._member_ids),
                team_id=team_id,
                name=name.strip(),
                role=role,
                capacity_factor=capacity_factor,
            )
            self._members[member.id] = member
        return member

    def list_members(self, team_id: int) -> list[RosterMember]:
        self.get_team(team_id)
        return [m for m in sorted(self._members.values(), key=lambda m: m.id) if m.team_id == team_id]

    def remove_member(self, member_id: int) -> None:
        with self._lock:
            if self._members.pop(member_id, None) is None:
                raise NotFoundError(f"Team member {member_id} not found")

    # Threshold configs

    def list_configs(self, team_id: int) -> list[MetricConfig]:
        self.get_team(team_id)
        return [c for (tid, _), c in self._configs.items() if tid == team_id]

    def get_config(self, team_id: int, metric_name: str) -> Optional[MetricConfig]:
        return self._configs.get((team_id, metric_name))

    def update_config(
        self,
        team_id: int,
        metric_name: str,
        green_threshold: Optional[float] = None,
        yellow_threshold: Optional[float] = None,
        red_threshold: Optional[float] = None,
        is_higher_better: Optional[bool] = None
    ) -> MetricConfig:
        """
        Create or update a metric's thresholds.

        Inconsistent thresholds are accepted and logged; callers surface
        ``config.threshold_warnings()`` to the user. Stored records of the
        metric are reclassified against the new thresholds. Approvals are
        untouched.
        """
        self.get_team(team_id)
        with self._lock:
            config = self._configs.get((team_id, metric_name))
            if config is None:
                if green_threshold is None or yellow_threshold is None:
                    raise ValueError(
                        f"New metric {metric_name} needs both green and yellow thresholds"
                    )
                config = MetricConfig(
                    metric_name=metric_name,
                    green_threshold=green_threshold,
                    yellow_threshold=yellow_threshold,
                    team_id=team_id,
                )
                self._configs[(team_id, metric_name)] = config
            if green_threshold is not None:
                config.green_threshold = green_threshold
            if yellow_threshold is not None:
                config.yellow_threshold = yellow_threshold
            if red_threshold is not None:
                config.red_threshold = red_threshold
            if is_higher_better is not None:
                config.is_higher_better = is_higher_better

            for record in self._metrics.values():
                if record.team_id == team_id and record.metric_name == metric_name:
                    record.classify(config, self.classifier)

        for warning in config.threshold_warnings():
            logger.warning("Team %s: %s", team_id, warning)
        return config

    # Health metrics

    def record_metric(
        self,
        team_id: int,
        metric_name: str,
        sprint_number: str,
        value: Union[str, int, float, None]
    ) -> HealthMetricRecord:
        """
        Store a value for (team, metric, sprint), classifying it on write.

        Re-entering the same key corrects the stored value in place: the
        record keeps its id and any PO approval already given.
        """
        self.get_team(team_id)
        config = self.get_config(team_id, metric_name)
        key = (team_id, metric_name, sprint_number)

        with self._lock:
            previous_id = self._metric_keys.get(key)
            if previous_id is not None:
                record = self._metrics[previous_id]
                record.value = metric_value_from_raw(value)
            else:
                record = HealthMetricRecord(
                    team_id=team_id,
                    metric_name=metric_name,
                    sprint_number=sprint_number,
                    value=metric_value_from_raw(value),
                    id=next(self._metric_ids),
                )
                self._metrics[record.id] = record
                self._metric_keys[key] = record.id
            record.classify(config, self.classifier)

        if previous_id is not None and record.po_approved:
            logger.info("Metric %s corrected; approval by %s kept", record.id, record.po_approved_by)

        if config is None:
            logger.info("Team %s has no thresholds for %s; stored unclassified", team_id, metric_name)
        return record

    def get_metric(self, metric_id: int) -> HealthMetricRecord:
        record = self._metrics.get(metric_id)
        if record is None:
            raise NotFoundError(f"Health metric {metric_id} not found")
        return record

    def list_metrics(self, team_id: int, sprint_number: Optional[str] = None) -> list[HealthMetricRecord]:
        self.get_team(team_id)
        return [
            r for r in self.all_metrics()
            if r.team_id == team_id and (sprint_number is None or r.sprint_number == sprint_number)
        ]

    def all_metrics(self) -> list[HealthMetricRecord]:
        return sorted(self._metrics.values(), key=lambda r: r.id)

    def red_metrics(self) -> list[HealthMetricRecord]:
        """Records computed red and still awaiting PO approval."""
        return [r for r in self.all_metrics() if r.actual_color == MetricColor.RED and not r.po_approved]

    def approve_metric(self, metric_id: int, approver: str, comment: Optional[str] = None) -> HealthMetricRecord:
        with self._lock:
            record = self.get_metric(metric_id)
            changed = record.approve(approver, comment)
        if changed:
            logger.info("Metric %s approved by %s", metric_id, approver)
        else:
            logger.info("Metric %s already approved by %s", metric_id, record.po_approved_by)
        return record

    # Velocity history

    def add_velocity(
        self,
        team_id: int,
        sprint_number: str,
        planned_story_points: float,
        completed_story_points: float,
        sprint_duration_days: int = 14,
        absent_days: int = 0,
        holiday_days: int = 0,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ) -> VelocityRecord:
        self.get_team(team_id)
        if not sprint_number or not sprint_number.strip():
            raise ValueError("Sprint number is required")
        with self._lock:
            record = VelocityRecord(
                team_id=team_id,
                sprint_number=sprint_number.strip(),
                planned_story_points=planned_story_points,
                completed_story_points=completed_story_points,
                sprint_duration_days=sprint_duration_days,
                absent_days=absent_days,
                holiday_days=holiday_days,
                start_date=start_date,
                end_date=end_date,
                id=next(self._velocity_ids),
            )
            self._velocity[record.id] = record
        logger.info("Team %s sprint %s: %s of %s SP", team_id, record.sprint_number,
                    completed_story_points, planned_story_points)
        return record

    def list_velocity(self, team_id: int) -> list[VelocityRecord]:
        """A team's sprints, most recent first."""
        self.get_team(team_id)
        records = [r for r in self._velocity.values() if r.team_id == team_id]
        return sorted(records, key=lambda r: r.id, reverse=True)

    # Retrospectives

    def create_board(self, team_id: int, sprint_number: str, title: str = "") -> RetrospectiveBoard:
        self.get_team(team_id)
        if not sprint_number or not sprint_number.strip():
            raise ValueError("Sprint number is required")
        with self._lock:
            board = RetrospectiveBoard(
                team_id=team_id,
                sprint_number=sprint_number.strip(),
                title=title,
                id=next(self._board_ids),
            )
            self._boards[board.id] = board
        return board

    def get_board(self, board_id: int) -> RetrospectiveBoard:
        board = self._boards.get(board_id)
        if board is None:
            raise NotFoundError(f"Retrospective board {board_id} not found")
        return board

    def list_boards(self, team_id: int) -> list[RetrospectiveBoard]:
        self.get_team(team_id)
        return [b for b in sorted(self._boards.values(), key=lambda b: b.id) if b.team_id == team_id]

    def add_item(
        self,
        board_id: int,
        category: Union[RetroCategory, str],
        content: str,
        author_name: Optional[str] = None
    ) -> RetrospectiveItem:
        self.get_board(board_id)
        if not content or not content.strip():
            raise ValueError("Retrospective item needs content")
        with self._lock:
            item = RetrospectiveItem(
                board_id=board_id,
                category=RetroCategory(category),
                content=content.strip(),
                author_name=(author_name or "").strip() or "Anonymous",
                id=next(self._item_ids),
            )
            self._items[item.id] = item
        return item

    def list_items(self, board_id: int) -> list[RetrospectiveItem]:
        self.get_board(board_id)
        return [i for i in sorted(self._items.values(), key=lambda i: i.id) if i.board_id == board_id]

    def delete_item(self, item_id: int) -> None:
        with self._lock:
            if self._items.pop(item_id, None) is None:
                raise NotFoundError(f"Retrospective item {item_id} not found")

    # Sprint calculations

    def save_calculation(
        self,
        team_name: str,
        historical_velocities: list[float],
        result: VelocityCalculationResult
    ) -> SavedCalculation:
        with self._lock:
            saved = SavedCalculation(
                id=next(self._calculation_ids),
                team_name=team_name,
                historical_velocities=list(historical_velocities),
                result=result,
            )
            self._calculations[saved.id] = saved
        logger.info("Saved sprint calculation %s for %s", saved.id, team_name)
        return saved

    def list_calculations(self, team_name: Optional[str] = None) -> list[SavedCalculation]:
        return [
            c for c in sorted(self._calculations.values(), key=lambda c: c.id)
            if team_name is None or c.team_name == team_name
        ]
