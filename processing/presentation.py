"""
presentation.py - Per-Feature Style and Popup Decisions

The only piece of the engine the map renderer talks to. Given a feature, the
record index and the selected metric it returns the stroke/fill style and the
popup content for that feature. It holds no state.
"""

import html
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .classifier import MetricRange, color_for
from .join_resolver import feature_identifier, resolve
from .kml_parser import GeoFeature
from .metrics_parser import MetricRecord

DEFAULT_COLOR = "#3388ff"
DEFAULT_STROKE_WEIGHT = 3
DEFAULT_STROKE_OPACITY = 0.8
DEFAULT_FILL_OPACITY = 0.2


@dataclass(frozen=True)
class FeatureStyle:
    stroke_color: str
    fill_color: str
    stroke_weight: float = DEFAULT_STROKE_WEIGHT
    stroke_opacity: float = DEFAULT_STROKE_OPACITY
    fill_opacity: float = DEFAULT_FILL_OPACITY

    def to_leaflet(self) -> Dict[str, Any]:
        """Style dict in the shape folium/Leaflet `style_function` expects."""
        return {
            "color": self.stroke_color,
            "weight": self.stroke_weight,
            "opacity": self.stroke_opacity,
            "fillColor": self.fill_color,
            "fillOpacity": self.fill_opacity,
        }


def format_amount(value: float) -> str:
    """`$1,234.5` style with up to three decimals; non-finite values print as `n/a`."""
    if not math.isfinite(value):
        return "n/a"
    if float(value).is_integer():
        return f"${value:,.0f}"
    return "$" + f"{value:,.3f}".rstrip("0").rstrip(".")


@dataclass(frozen=True)
class PopupContent:
    """
    Popup payload for one feature.

    A matched feature carries its record. An unmatched feature carries the
    identifier it resolved to (possibly None) and every known record id so
    the mismatch can be diagnosed.
    """

    feature_name: str
    record: Optional[MetricRecord] = None
    feature_id: Optional[str] = None
    available_ids: List[str] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.record is not None

    def to_html(self) -> str:
        title = f'<div style="font-weight: 600; font-size: 14px; margin-bottom: 8px;">{html.escape(self.feature_name)}</div>'

        if self.record is not None:
            rows = [
                ("ID", html.escape(self.record.id)),
                ("Revenue", format_amount(self.record.revenue)),
                ("Cost", format_amount(self.record.cost)),
            ]
            body = "".join(f"<div><span>{label}:</span> <b>{value}</b></div>" for label, value in rows)
            return f'<div class="overlay-popup">{title}{body}</div>'

        parts = []
        if self.feature_id:
            parts.append(f"<div><span>Feature ID:</span> <code>{html.escape(self.feature_id)}</code></div>")
        parts.append('<div style="color: #dc2626;">No CSV data found for this ID</div>')
        if self.available_ids:
            ids = ", ".join(html.escape(record_id) for record_id in self.available_ids)
            parts.append(f"<div><span>Available CSV IDs:</span> <code>{ids}</code></div>")
        return f'<div class="overlay-popup">{title}{"".join(parts)}</div>'


@dataclass(frozen=True)
class FeaturePresentation:
    style: FeatureStyle
    popup: PopupContent


def _property_or_default(properties: Dict[str, Any], key: str, default: Any) -> Any:
    # Falsy values (0, "", None) fall back to the default
    return properties.get(key) or default


def base_style(feature: GeoFeature) -> FeatureStyle:
    """Style taken from the feature's own properties, with fixed defaults."""
    properties = feature.properties or {}
    return FeatureStyle(
        stroke_color=_property_or_default(properties, "stroke", DEFAULT_COLOR),
        fill_color=_property_or_default(properties, "fill", DEFAULT_COLOR),
        stroke_weight=_property_or_default(properties, "stroke-width", DEFAULT_STROKE_WEIGHT),
        stroke_opacity=_property_or_default(properties, "stroke-opacity", DEFAULT_STROKE_OPACITY),
        fill_opacity=_property_or_default(properties, "fill-opacity", DEFAULT_FILL_OPACITY),
    )


def present_feature(
    feature: GeoFeature,
    index: Dict[str, MetricRecord],
    metric: str,
    metric_range: Optional[MetricRange],
) -> FeaturePresentation:
    """
    Decide the style and popup for one feature.

    Args:
        feature: Feature to present
        index: Current record index
        metric: Selected metric name
        metric_range: Range of the selected metric, None if it has no finite values

    Returns:
        FeaturePresentation
    """
    record = resolve(feature, index)
    style = base_style(feature)

    if record is not None and metric_range is not None:
        color = color_for(record.metric(metric), metric_range).to_css()
        style = FeatureStyle(
            stroke_color=color,
            fill_color=color,
            stroke_weight=style.stroke_weight,
            stroke_opacity=style.stroke_opacity,
            fill_opacity=style.fill_opacity,
        )

    name = feature.display_name or "Unnamed"
    if record is not None:
        popup = PopupContent(feature_name=name, record=record)
    else:
        popup = PopupContent(
            feature_name=name,
            feature_id=feature_identifier(feature),
            available_ids=list(index),
        )

    return FeaturePresentation(style=style, popup=popup)
