from __future__ import annotations

import csv
import logging
from typing import Iterable, List, Tuple

import pandas as pd

from core.errors import EmptySelectionError


logger = logging.getLogger(__name__)

EXPORT_FILENAME = "manufacturer-data.csv"
JOIN_DELIMITER = "; "

# (header, record column)
CSV_COLUMNS: List[Tuple[str, str]] = [
    ("Name", "name"),
    ("City", "city"),
    ("State", "state"),
    ("Industry", "industry_keywords"),
    ("Employees", "number_of_employees"),
    ("Revenue", "annual_revenue"),
    ("Rating", "rating"),
    ("MOQ", "moq"),
    ("Lead Time", "lead_time_days"),
    ("Capacity", "current_capacity"),
    ("Sustainability", "sustainability_score"),
    ("Founded", "year_established"),
    ("Capabilities", "capabilities"),
    ("Materials", "materials"),
    ("Certifications", "certifications"),
]
CSV_HEADERS = [header for header, _ in CSV_COLUMNS]


def format_cell(value: object) -> str:
    if isinstance(value, (tuple, list)):
        return JOIN_DELIMITER.join(str(v) for v in value)
    if value is None or pd.isna(value):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def selected_records(df: pd.DataFrame, selection: Iterable[str]) -> pd.DataFrame:
    """Selected rows in collection order, regardless of the order ids were picked."""
    wanted = set(selection)
    if df.empty or not wanted:
        return df.iloc[0:0]
    return df[df["id"].astype(str).isin(wanted)]


def to_csv(df: pd.DataFrame, selection: Iterable[str]) -> str:
    """Serialize the selected manufacturers; every cell is quoted and embedded quotes are doubled."""
    rows = selected_records(df, selection)
    if rows.empty:
        raise EmptySelectionError("Please select rows to export")

    out = pd.DataFrame({header: rows[col].map(format_cell) for header, col in CSV_COLUMNS}, columns=CSV_HEADERS)
    logger.info("exporting %d manufacturers", len(out))
    return out.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
