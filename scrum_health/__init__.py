"""
Scrum Health

Colour-coded team health metrics with PO approval, and sprint velocity
projection from team availability.
"""

__version__ = "1.0.0"

from .classifier import (
    ThresholdClassifier,
    MetricConfig,
    MetricColor,
    Classification,
    classify_metric
)

from .metrics import (
    HealthMetricRecord,
    NumericValue,
    TextValue,
    MetricSummary,
    DEFAULT_METRICS,
    summarize_metrics
)

from .projector import (
    VelocityProjector,
    VelocityCalculationResult,
    SprintVelocityForm,
    TeamMember,
    MemberRole,
    Holiday,
    ProjectionRules,
    validate_velocity_form,
    velocity_form_warnings,
    project_sprint_velocity
)

from .history import VelocityRecord, VelocityStats, velocity_stats

from .retrospective import RetroCategory, RetrospectiveBoard, RetrospectiveItem

from .roles import Role, Capabilities, capabilities_for

from .exporter import Exporter, TextReporter

__all__ = [
    # Version
    "__version__",

    # Classifier
    "ThresholdClassifier",
    "MetricConfig",
    "MetricColor",
    "Classification",
    "classify_metric",

    # Metrics
    "HealthMetricRecord",
    "NumericValue",
    "TextValue",
    "MetricSummary",
    "DEFAULT_METRICS",
    "summarize_metrics",

    # Projector
    "VelocityProjector",
    "VelocityCalculationResult",
    "SprintVelocityForm",
    "TeamMember",
    "MemberRole",
    "Holiday",
    "ProjectionRules",
    "validate_velocity_form",
    "velocity_form_warnings",
    "project_sprint_velocity",

    # Velocity history
    "VelocityRecord",
    "VelocityStats",
    "velocity_stats",

    # Retrospectives
    "RetroCategory",
    "RetrospectiveBoard",
    "RetrospectiveItem",

    # Roles
    "Role",
    "Capabilities",
    "capabilities_for",

    # Exporter
    "Exporter",
    "TextReporter",
]
