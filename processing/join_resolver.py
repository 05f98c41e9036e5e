"""
join_resolver.py - Feature to Metric Record Join

Looks up the metric record for a feature by exact identifier match.
Upstream producers disagree on where and how they spell the identifier, so
the lookup walks an ordered list of extractors and takes the first
non-empty value.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from .kml_parser import GeoFeature
from .metrics_parser import MetricRecord

IdentifierExtractor = Callable[[GeoFeature], Any]


def _property(key: str) -> IdentifierExtractor:
    def extract(feature: GeoFeature) -> Any:
        return (feature.properties or {}).get(key)

    extract.__name__ = f"properties[{key!r}]"
    return extract


IDENTIFIER_EXTRACTORS: Tuple[IdentifierExtractor, ...] = (
    lambda feature: feature.id,
    _property("id"),
    _property("Id"),
    _property("ID"),
)


def feature_identifier(feature: GeoFeature) -> Optional[str]:
    """First non-empty identifier found by IDENTIFIER_EXTRACTORS, else None."""
    for extract in IDENTIFIER_EXTRACTORS:
        value = extract(feature)
        if value is not None and value != "":
            return str(value)
    return None


def resolve(feature: GeoFeature, index: Dict[str, MetricRecord]) -> Optional[MetricRecord]:
    """Matching record for a feature, or None. Never raises."""
    feature_id = feature_identifier(feature)
    if feature_id is None:
        return None
    return index.get(feature_id)


def summarize_matches(features: Iterable[GeoFeature], index: Dict[str, MetricRecord]) -> Dict[str, List[str]]:
    """
    Report join coverage between a feature collection and a record index.

    Returns:
        Dict with `matched`, `unmatched_features` and `unused_records` id lists
    """
    matched: List[str] = []
    unmatched: List[str] = []
    for feature in features:
        feature_id = feature_identifier(feature)
        if feature_id is not None and feature_id in index:
            matched.append(feature_id)
        else:
            unmatched.append(feature_id or feature.display_name or "<unnamed>")

    used = set(matched)
    unused = [record_id for record_id in index if record_id not in used]

    logger.debug(f"  Matched features: {len(matched)}")
    if unmatched:
        logger.debug(f"  Features without a record: {unmatched[:5]}")
    if unused:
        logger.debug(f"  Records without a feature: {unused[:5]}")

    return {"matched": matched, "unmatched_features": unmatched, "unused_records": unused}
