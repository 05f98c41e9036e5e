"""
metrics_parser.py - CSV Metrics Parsing

Turns comma separated text with an `id`, `revenue` and `cost` header into
MetricRecord rows, and indexes those rows by identifier for the join.

Parsing is positional by header: the three required columns may appear in
any order, extra columns are ignored, and a cell that is not a number
becomes NaN for that field only. A blank cell reads as 0.

Usage:
    from processing.metrics_parser import build_record_index, parse_metrics_csv

    records = parse_metrics_csv(csv_text)
    index = build_record_index(records)
"""

import math
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List

import pandas as pd
from loguru import logger

from .data_utils import clean_numeric, locate_columns, split_cells, split_lines
from .errors import ParseError, ParseErrorKind

ID_COLUMN = "id"
METRIC_COLUMNS = ("revenue", "cost")
REQUIRED_COLUMNS = (ID_COLUMN,) + METRIC_COLUMNS

RecordIndex = Dict[str, "MetricRecord"]


@dataclass(frozen=True)
class MetricRecord:
    """One CSV data row. Metric values may be NaN."""

    id: str
    revenue: float
    cost: float

    def metric(self, name: str) -> float:
        if name not in METRIC_COLUMNS:
            raise KeyError(name)
        return getattr(self, name)

    @property
    def is_complete(self) -> bool:
        return all(math.isfinite(self.metric(name)) for name in METRIC_COLUMNS)


def parse_metrics_csv(text: str) -> List[MetricRecord]:
    """
    Parse CSV metrics text into one record per data line.

    Args:
        text: Raw CSV text, first line is the header

    Returns:
        Records in file order

    Raises:
        ParseError: EMPTY_TABLE with fewer than two lines, MISSING_COLUMNS
            when the header lacks id, revenue or cost
    """
    logger.info("📄 Parsing metrics CSV...")

    lines = split_lines(text or "")
    if len(lines) < 2:
        raise ParseError(ParseErrorKind.EMPTY_TABLE, "CSV file appears to be empty")

    header = split_cells(lines[0])
    positions, missing = locate_columns(header, REQUIRED_COLUMNS)
    if missing:
        raise ParseError(
            ParseErrorKind.MISSING_COLUMNS,
            f"CSV must contain id, revenue and cost columns (missing: {', '.join(missing)})",
        )

    rows = []
    for line in lines[1:]:
        cells = split_cells(line)
        rows.append({column: cells[index] if index < len(cells) else None for column, index in positions.items()})

    df = pd.DataFrame(rows, columns=list(REQUIRED_COLUMNS))
    df[ID_COLUMN] = df[ID_COLUMN].fillna("")
    for column in METRIC_COLUMNS:
        df[column] = clean_numeric(df[column])

    records = [
        MetricRecord(id=str(row[ID_COLUMN]), revenue=float(row["revenue"]), cost=float(row["cost"]))
        for row in df.to_dict("records")
    ]

    incomplete = [record.id for record in records if not record.is_complete]
    if incomplete:
        logger.warning(f"  ⚠️ {len(incomplete)} rows have metrics that could not be read as numbers: {incomplete[:5]}")

    logger.success(f"  ✅ Loaded {len(records)} metric rows")
    return records


def find_duplicate_ids(records: List[MetricRecord]) -> List[str]:
    """Identifiers that occur on more than one row, in first-seen order."""
    counts = Counter(record.id for record in records)
    return [record_id for record_id, count in counts.items() if count > 1]


def build_record_index(records: List[MetricRecord], strict_duplicates: bool = False) -> RecordIndex:
    """
    Index records by identifier. The last row wins on duplicate ids.

    Args:
        records: Parsed metric records
        strict_duplicates: Reject duplicate ids instead of overwriting

    Returns:
        Mapping of id -> MetricRecord

    Raises:
        ParseError: DUPLICATE_IDS when strict and an id repeats
    """
    duplicates = find_duplicate_ids(records)
    if duplicates:
        if strict_duplicates:
            raise ParseError(
                ParseErrorKind.DUPLICATE_IDS,
                f"CSV repeats identifiers: {', '.join(duplicates)}",
            )
        logger.warning(f"  ⚠️ Duplicate ids, keeping the last row for each: {duplicates}")

    index: RecordIndex = {}
    for record in records:
        index[record.id] = record
    return index
