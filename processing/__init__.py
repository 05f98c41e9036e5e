"""
Processing package for the KML metrics overlay

This package contains the data-correlation and classification engine:
KML and CSV parsing, the identifier join, and the metric color scale.
"""

__version__ = "0.1.0"

# Import key utilities for easy access
from .classifier import Color, MetricRange, color_for, compute_range, validate_metric
from .errors import ConfigurationError, ParseError, ParseErrorKind
from .join_resolver import feature_identifier, resolve
from .kml_parser import GeoCollection, GeoFeature, parse_kml
from .metrics_parser import MetricRecord, build_record_index, parse_metrics_csv
from .presentation import FeaturePresentation, FeatureStyle, PopupContent, present_feature

__all__ = [
    "parse_kml",
    "GeoCollection",
    "GeoFeature",
    "parse_metrics_csv",
    "build_record_index",
    "MetricRecord",
    "feature_identifier",
    "resolve",
    "compute_range",
    "color_for",
    "validate_metric",
    "Color",
    "MetricRange",
    "present_feature",
    "FeaturePresentation",
    "FeatureStyle",
    "PopupContent",
    "ParseError",
    "ParseErrorKind",
    "ConfigurationError",
]
