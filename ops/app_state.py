"""
Application State for the KML Metrics Overlay

Holds everything the stateful shell needs between uploads: the loaded
datasets, the selected metric and the map view. The engine functions in
`processing` stay pure; this object feeds them explicit inputs.

Datasets live in one immutable DatasetSnapshot. An upload is parsed to
completion, a new snapshot is built, and it replaces the old one with a
single assignment. A failed upload raises and leaves the old snapshot alone.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Tuple

from loguru import logger

from ops.config_loader import Config
from processing.classifier import MetricRange, compute_range, validate_metric
from processing.errors import ConfigurationError
from processing.kml_parser import GeoCollection, parse_kml
from processing.metrics_parser import MetricRecord, build_record_index, parse_metrics_csv
from processing.presentation import FeaturePresentation, present_feature


@dataclass(frozen=True)
class DatasetSnapshot:
    collection: Optional[GeoCollection] = None
    records: Tuple[MetricRecord, ...] = ()
    index: Dict[str, MetricRecord] = field(default_factory=dict)

    @property
    def has_records(self) -> bool:
        return bool(self.records)


class AppState:
    """Single-writer state shared by the upload handlers and the renderer."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.snapshot = DatasetSnapshot()
        self.selected_metric = validate_metric(self.config.get_default_metric())

        center = self.config.get_map_setting("center")
        self.center: Tuple[float, float] = (float(center[0]), float(center[1]))
        self.zoom: float = float(self.config.get_map_setting("zoom"))
        self.theme: str = self.config.get_map_setting("theme")
        self.config.get_theme(self.theme)

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    def load_kml(self, text: str) -> GeoCollection:
        """Parse a KML document and publish it as the active collection."""
        collection = parse_kml(text)
        self.snapshot = replace(self.snapshot, collection=collection)
        logger.success("KML file loaded successfully")
        return collection

    def clear_kml(self) -> None:
        self.snapshot = replace(self.snapshot, collection=None)
        logger.info("🧹 Cleared KML features")

    def load_csv(self, text: str) -> List[MetricRecord]:
        """Parse CSV metrics, publish them, and reset the metric to the default."""
        records = parse_metrics_csv(text)
        index = build_record_index(records, strict_duplicates=self.config.strict_duplicates())
        self.snapshot = replace(self.snapshot, records=tuple(records), index=index)
        self.selected_metric = validate_metric(self.config.get_default_metric())
        logger.success("CSV file loaded successfully")
        return records

    # ------------------------------------------------------------------
    # Selections
    # ------------------------------------------------------------------

    def select_metric(self, metric: str) -> None:
        self.selected_metric = validate_metric(metric)
        logger.debug(f"Selected metric: {metric}")

    def set_center(self, lat: float, lng: float) -> None:
        """Validate and set the map center."""
        try:
            lat, lng = float(lat), float(lng)
        except (TypeError, ValueError):
            raise ConfigurationError("Please enter valid coordinates")
        if math.isnan(lat) or math.isnan(lng):
            raise ConfigurationError("Please enter valid coordinates")
        if not -90 <= lat <= 90:
            raise ConfigurationError("Latitude must be between -90 and 90")
        if not -180 <= lng <= 180:
            raise ConfigurationError("Longitude must be between -180 and 180")
        self.center = (lat, lng)
        logger.info("Map center updated")

    def set_zoom(self, zoom: float) -> None:
        """Validate and set the zoom level."""
        min_zoom = self.config.get_map_setting("min_zoom")
        max_zoom = self.config.get_map_setting("max_zoom")
        try:
            zoom = float(zoom)
        except (TypeError, ValueError):
            raise ConfigurationError("Please enter a valid zoom level")
        if math.isnan(zoom):
            raise ConfigurationError("Please enter a valid zoom level")
        if not min_zoom <= zoom <= max_zoom:
            raise ConfigurationError(f"Zoom level must be between {min_zoom} and {max_zoom}")
        self.zoom = zoom
        logger.info("Zoom level updated")

    def select_theme(self, theme: str) -> None:
        self.config.get_theme(theme)
        self.theme = theme

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def metric_range(self, snapshot: Optional[DatasetSnapshot] = None) -> Optional[MetricRange]:
        snapshot = snapshot or self.snapshot
        if not snapshot.has_records:
            return None
        return compute_range(snapshot.records, self.selected_metric)

    def present(self) -> Iterator[FeaturePresentation]:
        """Presentation for every loaded feature, computed from one snapshot."""
        snapshot = self.snapshot
        if snapshot.collection is None:
            return
        metric_range = self.metric_range(snapshot)
        for feature in snapshot.collection:
            yield present_feature(feature, snapshot.index, self.selected_metric, metric_range)
