"""Tests for CSV metrics parsing and the record index."""

import math

import pytest

from processing.classifier import MetricRange, compute_range
from processing.errors import ParseError, ParseErrorKind
from processing.metrics_parser import (
    MetricRecord,
    build_record_index,
    find_duplicate_ids,
    parse_metrics_csv,
)


def test_parses_one_record_per_data_line(metrics_csv):
    records = parse_metrics_csv(metrics_csv)

    assert records == [
        MetricRecord(id="S1", revenue=100.0, cost=40.0),
        MetricRecord(id="S2", revenue=200.0, cost=150.0),
    ]


def test_columns_are_read_by_header_position():
    text = "cost , region, id ,revenue\r\n 5 ,EU, a1 , 10\r\n6,US,b2,20\n"
    records = parse_metrics_csv(text)

    assert [(r.id, r.revenue, r.cost) for r in records] == [("a1", 10.0, 5.0), ("b2", 20.0, 6.0)]


def test_bad_numbers_degrade_to_nan_without_dropping_rows():
    records = parse_metrics_csv("id,revenue,cost\nA,abc,1\nB,,2\nC,3")

    assert len(records) == 3
    assert math.isnan(records[0].revenue)
    assert records[0].cost == 1.0
    assert records[1].revenue == 0.0
    assert records[1].is_complete
    assert records[2].revenue == 3.0
    assert math.isnan(records[2].cost)
    assert not records[2].is_complete


def test_blank_cells_read_as_zero_and_widen_the_range():
    records = parse_metrics_csv("id,revenue,cost\nA, ,1\nB,50,2")

    assert records[0].revenue == 0.0
    assert compute_range(records, "revenue") == MetricRange(0.0, 50.0)


def test_first_duplicate_header_column_is_used():
    records = parse_metrics_csv("id,revenue,revenue,cost\nA,1,2,3")
    assert records[0].revenue == 1.0


def test_header_only_is_empty_table():
    with pytest.raises(ParseError) as excinfo:
        parse_metrics_csv("id,revenue,cost")
    assert excinfo.value.kind is ParseErrorKind.EMPTY_TABLE


def test_blank_text_is_empty_table():
    with pytest.raises(ParseError) as excinfo:
        parse_metrics_csv("\n\n")
    assert excinfo.value.kind is ParseErrorKind.EMPTY_TABLE


def test_missing_columns():
    with pytest.raises(ParseError) as excinfo:
        parse_metrics_csv("name,value\nA,1")
    assert excinfo.value.kind is ParseErrorKind.MISSING_COLUMNS
    assert "id" in str(excinfo.value)


def test_metric_accessor_rejects_unknown_names():
    record = MetricRecord(id="A", revenue=1.0, cost=2.0)
    assert record.metric("cost") == 2.0
    with pytest.raises(KeyError):
        record.metric("profit")


def test_index_keeps_last_duplicate():
    records = parse_metrics_csv("id,revenue,cost\nA,1,1\nB,2,2\nA,3,3")
    index = build_record_index(records)

    assert list(index) == ["A", "B"]
    assert index["A"].revenue == 3.0
    assert find_duplicate_ids(records) == ["A"]


def test_strict_index_rejects_duplicates():
    records = parse_metrics_csv("id,revenue,cost\nA,1,1\nA,3,3")
    with pytest.raises(ParseError) as excinfo:
        build_record_index(records, strict_duplicates=True)
    assert excinfo.value.kind is ParseErrorKind.DUPLICATE_IDS
