"""
classifier.py - Linear Metric Color Scale

Maps a metric value onto a light-to-dark purple ramp spanning the observed
range of that metric. Results are reproducible to the channel: rounding
follows the half-up rule of JavaScript `Math.round`, so colors match the web map.
"""

import math
from typing import Iterable, NamedTuple, Optional

import numpy as np

from .errors import ConfigurationError
from .metrics_parser import METRIC_COLUMNS, MetricRecord

DEFAULT_METRIC = "revenue"


class Color(NamedTuple):
    r: int
    g: int
    b: int

    def to_css(self) -> str:
        return f"rgb({self.r}, {self.g}, {self.b})"

    def to_hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"


class MetricRange(NamedTuple):
    min: float
    max: float


LIGHT_ANCHOR = Color(237, 233, 254)  # #ede9fe
DARK_ANCHOR = Color(88, 28, 135)  # #581c87
NEUTRAL_COLOR = Color(124, 58, 237)  # #7c3aed


def validate_metric(metric: str) -> str:
    """Return the metric name if it is one of the supported columns."""
    if metric not in METRIC_COLUMNS:
        raise ConfigurationError(f"Unknown metric {metric!r}; expected one of {', '.join(METRIC_COLUMNS)}")
    return metric


def compute_range(records: Iterable[MetricRecord], metric: str) -> Optional[MetricRange]:
    """Min and max of the finite values of `metric`, None if there are none."""
    validate_metric(metric)
    values = np.array([record.metric(metric) for record in records], dtype=float)
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return None
    return MetricRange(float(finite.min()), float(finite.max()))


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def color_for(value: float, metric_range: Optional[MetricRange]) -> Color:
    """Interpolate between the light and dark anchors; neutral when undefined."""
    if metric_range is None or value is None:
        return NEUTRAL_COLOR
    low, high = metric_range
    if not (math.isfinite(value) and math.isfinite(low) and math.isfinite(high)) or low == high:
        return NEUTRAL_COLOR

    t = (value - low) / (high - low)
    return Color(
        *(
            _round_half_up(light + (dark - light) * t)
            for light, dark in zip(LIGHT_ANCHOR, DARK_ANCHOR)
        )
    )
