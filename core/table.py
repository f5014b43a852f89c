from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple

import pandas as pd

from core import selection as sel
from core.charts import count_bar_chart
from core.data import record_to_dict
from core.filters import FilterConfig, active_filter_count, apply_filters


logger = logging.getLogger(__name__)

PAGE_SIZE_OPTIONS = (10, 25, 50, 100)
DEFAULT_PAGE_SIZE = 25

SORTABLE_FIELDS = (
    "name",
    "city",
    "state",
    "year_established",
    "number_of_employees",
    "annual_revenue",
    "current_capacity",
    "rating",
    "sustainability_score",
    "moq",
    "lead_time_days",
    "distance",
)

Direction = Literal["asc", "desc"]


@dataclass(frozen=True)
class SortConfig:
    key: Optional[str] = None
    direction: Direction = "asc"


@dataclass(frozen=True)
class PageInfo:
    current_page: int
    items_per_page: int
    total_items: int
    total_pages: int
    start: int
    end: int


def normalize_sort(raw: Optional[dict]) -> SortConfig:
    raw = raw or {}
    key = raw.get("key") or None
    if key is not None and key not in SORTABLE_FIELDS:
        logger.warning("unsortable field %r; leaving input order", key)
        key = None
    direction = "desc" if str(raw.get("direction", "asc")).lower() == "desc" else "asc"
    return SortConfig(key=key, direction=direction)


def next_sort(current: SortConfig, key: str) -> SortConfig:
    """Column-header click: ascending first, then flip on repeated clicks of the same column."""
    if current.key == key and current.direction == "asc":
        return SortConfig(key=key, direction="desc")
    return SortConfig(key=key, direction="asc")


def sort_records(df: pd.DataFrame, sort: SortConfig) -> pd.DataFrame:
    """Stable sort on ``sort.key``; ties fall back to ``id`` ascending, missing values last."""
    if sort.key is None or df.empty:
        return df.copy()
    ascending = sort.direction == "asc"
    # Tie-break runs first so the stable primary sort keeps equal keys in id order.
    out = df.sort_values("id", kind="mergesort")
    out = out.sort_values(sort.key, ascending=ascending, kind="mergesort", na_position="last")
    return out


def normalize_page_size(value: object) -> int:
    try:
        size = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return DEFAULT_PAGE_SIZE
    return size if size in PAGE_SIZE_OPTIONS else DEFAULT_PAGE_SIZE


def paginate(df: pd.DataFrame, current_page: int = 1, items_per_page: int = DEFAULT_PAGE_SIZE) -> Tuple[pd.DataFrame, PageInfo]:
    if items_per_page < 1:
        raise ValueError("items_per_page must be positive")
    total_items = int(len(df))
    total_pages = math.ceil(total_items / items_per_page)
    page = max(1, min(int(current_page), max(1, total_pages)))
    start = (page - 1) * items_per_page
    end = min(start + items_per_page, total_items)
    info = PageInfo(
        current_page=page,
        items_per_page=items_per_page,
        total_items=total_items,
        total_pages=total_pages,
        start=start,
        end=end,
    )
    return df.iloc[start:end], info


def reset_page_for(previous: FilterConfig, current: FilterConfig, page: int, previous_size: int, size: int) -> int:
    """Filter or page-size changes invalidate the page position."""
    if previous != current or previous_size != size:
        return 1
    return page


def state_chart(df: pd.DataFrame) -> Optional[Dict[str, Any]]:
    if df.empty:
        return None
    return count_bar_chart(df["state"], field="state", title="State")


def rows_payload(df: pd.DataFrame) -> List[Dict[str, Any]]:
    return [record_to_dict(row) for row in df.to_dict(orient="records")]


def compute_table(
    df: pd.DataFrame,
    filters: FilterConfig,
    sort: SortConfig,
    *,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    selection: Iterable[str] = (),
    current_year: Optional[int] = None,
) -> Dict[str, Any]:
    selected = frozenset(selection)
    filtered = apply_filters(df, filters, current_year=current_year)
    ordered = sort_records(filtered, sort)
    page_df, info = paginate(ordered, page, page_size)
    visible_ids = [str(i) for i in page_df["id"]] if not page_df.empty else []

    return {
        "filters": asdict(filters),
        "sort": asdict(sort),
        "active_filter_count": active_filter_count(filters),
        "pagination": asdict(info),
        "rows": rows_payload(page_df),
        "selection": {
            "selected_ids": sorted(selected),
            "selected_count": len(selected),
            "visible_coverage": sel.coverage(selected, visible_ids),
        },
        "charts": {"by_state": state_chart(filtered)},
    }
