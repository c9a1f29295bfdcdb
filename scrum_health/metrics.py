"""
Health Metric Records

Metric values, per-sprint records with PO approval, and the catalogue of
standard scrum health metrics.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional, Union

from .classifier import (
    MetricColor,
    MetricConfig,
    ThresholdClassifier,
    parse_metric_value,
)


@dataclass(frozen=True)
class NumericValue:
    """A metric entered as a number."""
    number: float
    kind: Literal["numeric"] = "numeric"

    @property
    def display(self) -> str:
        return f"{self.number:g}"


@dataclass(frozen=True)
class TextValue:
    """A metric entered as free text (e.g. "n/a", "pending audit")."""
    text: str
    kind: Literal["text"] = "text"

    @property
    def display(self) -> str:
        return self.text


MetricValue = Union[NumericValue, TextValue]


def metric_value_from_raw(raw: Union[str, int, float, None]) -> MetricValue:
    """Numeric entries become NumericValue, everything else TextValue."""
    number = parse_metric_value(raw)
    if number is not None:
        return NumericValue(number)
    return TextValue("" if raw is None else str(raw).strip())


@dataclass
class HealthMetricRecord:
    """One metric value for one team in one sprint."""
    team_id: int
    metric_name: str
    sprint_number: str
    value: MetricValue
    actual_color: MetricColor = MetricColor.NEUTRAL
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)

    # PO approval (one-way)
    po_approved: bool = False
    po_approved_by: Optional[str] = None
    po_approval_comment: Optional[str] = None
    po_approved_at: Optional[datetime] = None

    @property
    def final_color(self) -> MetricColor:
        return ThresholdClassifier.effective_color(self.actual_color, self.po_approved)

    @property
    def numeric_value(self) -> Optional[float]:
        if isinstance(self.value, NumericValue):
            return self.value.number
        return None

    @property
    def needs_approval(self) -> bool:
        return self.actual_color == MetricColor.RED and not self.po_approved

    def classify(self, config: Optional[MetricConfig], classifier: Optional[ThresholdClassifier] = None) -> MetricColor:
        """Recompute ``actual_color`` from the current value and config."""
        classifier = classifier or ThresholdClassifier()
        if isinstance(self.value, NumericValue):
            result = classifier.classify(self.value.number, config)
        else:
            result = classifier.classify(self.value.text, config)
        self.actual_color = result.color
        return self.actual_color

    def approve(self, approver: str, comment: Optional[str] = None) -> bool:
        """
        Record PO approval, forcing the displayed colour to green.

        Returns False (and changes nothing) if the record was already
        approved; the first approval is never overwritten.
        """
        if self.po_approved:
            return False
        self.po_approved = True
        self.po_approved_by = approver
        self.po_approval_comment = comment or None
        self.po_approved_at = datetime.now()
        return True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "team_id": self.team_id,
            "metric_name": self.metric_name,
            "sprint_number": self.sprint_number,
            "value": {
                "kind": self.value.kind,
                "display": self.value.display,
                "number": self.numeric_value,
            },
            "actual_color": self.actual_color.value,
            "final_color": self.final_color.value,
            "po_approved": self.po_approved,
            "po_approved_by": self.po_approved_by,
            "po_approval_comment": self.po_approval_comment,
            "po_approved_at": self.po_approved_at.isoformat() if self.po_approved_at else None,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class MetricDefinition:
    """Catalogue entry for a standard health metric."""
    name: str
    display_name: str
    description: str
    is_higher_better: bool
    green_threshold: float
    yellow_threshold: float

    @property
    def red_threshold(self) -> float:
        return self.yellow_threshold

    def config_for(self, team_id: Optional[int] = None) -> MetricConfig:
        return MetricConfig(
            metric_name=self.name,
            green_threshold=self.green_threshold,
            yellow_threshold=self.yellow_threshold,
            red_threshold=self.red_threshold,
            is_higher_better=self.is_higher_better,
            team_id=team_id,
        )


DEFAULT_METRICS: dict[str, MetricDefinition] = {
    d.name: d for d in [
        MetricDefinition(
            "cpp_percentage", "Cost Per Point Percentage",
            "Development cost efficiency per story point delivered.",
            is_higher_better=True, green_threshold=50, yellow_threshold=30,
        ),
        MetricDefinition(
            "capex_percentage", "Capital Expenditure Percentage",
            "Share of budget spent on capitalisable work.",
            is_higher_better=True, green_threshold=50, yellow_threshold=30,
        ),
        MetricDefinition(
            "velocity_sp", "Velocity (Story Points)",
            "Story points completed per sprint.",
            is_higher_better=True, green_threshold=50, yellow_threshold=30,
        ),
        MetricDefinition(
            "dor_work_percentage", "Definition of Ready Work Percentage",
            "Work items meeting Definition of Ready before sprint start.",
            is_higher_better=True, green_threshold=80, yellow_threshold=60,
        ),
        MetricDefinition(
            "critical_high_bugs", "Critical/High Priority Bugs",
            "Critical and high priority bugs open in production.",
            is_higher_better=False, green_threshold=2, yellow_threshold=5,
        ),
        MetricDefinition(
            "old_bugs", "Old Bugs (>30 days)",
            "Bugs older than 30 days without resolution.",
            is_higher_better=False, green_threshold=3, yellow_threshold=8,
        ),
        MetricDefinition(
            "team_satisfaction", "Team Satisfaction Score",
            "Team happiness and engagement on a 1-10 scale.",
            is_higher_better=True, green_threshold=8, yellow_threshold=6,
        ),
        MetricDefinition(
            "code_quality", "Code Quality Score",
            "Test coverage, complexity and review scores combined.",
            is_higher_better=True, green_threshold=85, yellow_threshold=70,
        ),
    ]
}


def display_name(metric_name: str) -> str:
    definition = DEFAULT_METRICS.get(metric_name)
    return definition.display_name if definition else metric_name


def default_configs(team_id: Optional[int] = None) -> list[MetricConfig]:
    """Fresh threshold configs for every catalogue metric."""
    return [d.config_for(team_id) for d in DEFAULT_METRICS.values()]


@dataclass
class MetricSummary:
    """Counts of records by displayed colour."""
    green: int = 0
    yellow: int = 0
    red: int = 0
    neutral: int = 0
    approved: int = 0

    @property
    def total(self) -> int:
        return self.green + self.yellow + self.red + self.neutral

    @property
    def health_percentage(self) -> float:
        """Share of classified records showing green."""
        classified = self.green + self.yellow + self.red
        if classified == 0:
            return 0
        return (self.green / classified) * 100

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "green": self.green,
            "yellow": self.yellow,
            "red": self.red,
            "neutral": self.neutral,
            "approved": self.approved,
            "health_percentage": round(self.health_percentage, 1),
        }


def summarize_metrics(records: list[HealthMetricRecord]) -> MetricSummary:
    summary = MetricSummary()
    for record in records:
        color = record.final_color
        setattr(summary, color.value, getattr(summary, color.value) + 1)
        if record.po_approved:
            summary.approved += 1
    return summary
