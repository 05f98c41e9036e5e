#!/usr/bin/env python3
"""
data_utils.py - Shared Tabular Utilities

Small helpers shared by the CSV metrics parser: line and cell splitting,
header lookup, and permissive numeric coercion.
"""

import re
from typing import Dict, List, Sequence, Tuple

import pandas as pd
from loguru import logger

LINE_BREAK = re.compile(r"\r?\n")


def split_lines(text: str) -> List[str]:
    """Trim the whole document, then split on LF or CRLF."""
    return LINE_BREAK.split(text.strip())


def split_cells(line: str) -> List[str]:
    """Split a line on commas and trim every cell. No quoting rules apply."""
    return [cell.strip() for cell in line.split(",")]


def locate_columns(header: Sequence[str], required: Sequence[str]) -> Tuple[Dict[str, int], List[str]]:
    """Find the first index of each required column in a header row.

    Args:
        header: Trimmed header cells
        required: Column names that must be present

    Returns:
        Tuple of ({column: index} for found columns, [missing columns])
    """
    found: Dict[str, int] = {}
    missing: List[str] = []

    for column in required:
        if column in header:
            found[column] = list(header).index(column)
        else:
            missing.append(column)

    if missing:
        logger.error(f"❌ Missing required columns: {missing}")
        logger.info(f"Available columns: {list(header)}")
    else:
        logger.debug(f"  📍 Column positions: {found}")

    return found, missing


def clean_numeric(series: pd.Series) -> pd.Series:
    """
    Coerce a Series of strings to floats.

    Blank cells count as 0. Missing cells (None) and unparseable text become
    NaN rather than aborting the row.

    Args:
        series: The pandas Series to clean.

    Returns:
        A float64 Series.
    """
    s = series.astype(str).str.strip()
    s = s.mask(series.notna() & (s == ""), "0")
    return pd.to_numeric(s, errors="coerce").astype(float)
