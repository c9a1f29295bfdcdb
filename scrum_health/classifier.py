"""
Threshold Classifier

Maps raw health metric values onto green/yellow/red using a team's
per-metric threshold configuration.
"""

import math
from dataclasses import dataclass
from typing import Optional, Union
from enum import Enum


class MetricColor(Enum):
    """Health verdict for a metric value."""
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"
    NEUTRAL = "neutral"  # no classification possible

    @property
    def rank(self) -> int:
        """Ordering from best (0) to worst (2); neutral sorts last."""
        return {
            MetricColor.GREEN: 0,
            MetricColor.YELLOW: 1,
            MetricColor.RED: 2,
            MetricColor.NEUTRAL: 3,
        }[self]

    @property
    def emoji(self) -> str:
        return {
            MetricColor.GREEN: "🟢",
            MetricColor.YELLOW: "🟡",
            MetricColor.RED: "🔴",
            MetricColor.NEUTRAL: "⚪",
        }[self]


@dataclass
class MetricConfig:
    """Threshold configuration for one metric of one team."""
    metric_name: str
    green_threshold: float
    yellow_threshold: float
    is_higher_better: bool = True
    red_threshold: Optional[float] = None  # stored for reference, never read by classification
    team_id: Optional[int] = None

    @property
    def is_consistent(self) -> bool:
        """Thresholds must be ordered toward the better side of the polarity."""
        if self.is_higher_better:
            return self.yellow_threshold <= self.green_threshold
        return self.green_threshold <= self.yellow_threshold

    def threshold_warnings(self) -> list[str]:
        if self.is_consistent:
            return []
        if self.is_higher_better:
            return [
                f"{self.metric_name}: yellow threshold ({self.yellow_threshold:g}) should not "
                f"exceed green threshold ({self.green_threshold:g}) when higher is better"
            ]
        return [
            f"{self.metric_name}: green threshold ({self.green_threshold:g}) should not "
            f"exceed yellow threshold ({self.yellow_threshold:g}) when lower is better"
        ]

    def describe(self) -> str:
        """Legend text, e.g. 'Green: 50+ | Yellow: 30+ | Red: <30'."""
        g, y = self.green_threshold, self.yellow_threshold
        if self.is_higher_better:
            return f"Green: {g:g}+ | Yellow: {y:g}+ | Red: <{y:g}"
        return f"Green: ≤{g:g} | Yellow: ≤{y:g} | Red: >{y:g}"

    def to_dict(self) -> dict:
        return {
            "team_id": self.team_id,
            "metric_name": self.metric_name,
            "green_threshold": self.green_threshold,
            "yellow_threshold": self.yellow_threshold,
            "red_threshold": self.red_threshold,
            "is_higher_better": self.is_higher_better,
            "is_consistent": self.is_consistent,
            "warnings": self.threshold_warnings(),
        }


@dataclass(frozen=True)
class Classification:
    """Result of classifying one value."""
    color: MetricColor
    value: Optional[float] = None
    unconfigured: bool = False

    @property
    def is_classified(self) -> bool:
        return self.color is not MetricColor.NEUTRAL

    def to_dict(self) -> dict:
        return {
            "color": self.color.value,
            "value": self.value,
            "unconfigured": self.unconfigured,
        }


def parse_metric_value(raw: Union[str, int, float, None]) -> Optional[float]:
    """Parse a raw entry into a finite float, or None if it isn't one."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        number = float(raw)
    else:
        text = str(raw).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


class ThresholdClassifier:
    """
    Classifies metric values against threshold configurations.

    Boundaries are inclusive toward the better colour for both polarities,
    so a value sitting exactly on the green threshold is green.

    Usage:
        classifier = ThresholdClassifier()
        result = classifier.classify("42", config)
        print(result.color.value)
    """

    def classify(
        self,
        value: Union[str, int, float, None],
        config: Optional[MetricConfig]
    ) -> Classification:
        """
        Classify a single value.

        Args:
            value: Raw value as entered (string or number)
            config: Threshold configuration, or None if the team never set one

        Returns:
            Classification; NEUTRAL when the value is not numeric or the
            metric is unconfigured (flagged via ``unconfigured``)
        """
        number = parse_metric_value(value)

        if config is None:
            return Classification(MetricColor.NEUTRAL, number, unconfigured=True)
        if number is None:
            return Classification(MetricColor.NEUTRAL, None)

        green = config.green_threshold
        yellow = config.yellow_threshold

        if config.is_higher_better:
            if number >= green:
                color = MetricColor.GREEN
            elif number >= yellow:
                color = MetricColor.YELLOW
            else:
                color = MetricColor.RED
        else:
            if number <= green:
                color = MetricColor.GREEN
            elif number <= yellow:
                color = MetricColor.YELLOW
            else:
                color = MetricColor.RED

        return Classification(color, number)

    @staticmethod
    def effective_color(actual: MetricColor, approved: bool) -> MetricColor:
        """Displayed colour: an approved metric always shows green."""
        return MetricColor.GREEN if approved else actual


# Convenience function
def classify_metric(
    value: Union[str, int, float, None],
    config: Optional[MetricConfig]
) -> MetricColor:
    """
    Quick function to get the colour for a value.

    Example:
        config = MetricConfig("velocity_sp", green_threshold=50, yellow_threshold=30)
        classify_metric("42", config)   # MetricColor.YELLOW
    """
    return ThresholdClassifier().classify(value, config).color
