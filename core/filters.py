from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd


logger = logging.getLogger(__name__)

ALL = "all"

# label -> (low, high, low_inclusive, high_inclusive); None means unbounded.
Bucket = Tuple[Optional[float], Optional[float], bool, bool]

EMPLOYEE_BUCKETS: Dict[str, Bucket] = {
    "1-25": (1, 25, True, True),
    "26-50": (26, 50, True, True),
    "51-100": (51, 100, True, True),
    "101-250": (101, 250, True, True),
    "251-500": (251, 500, True, True),
    "500+": (500, None, True, False),
}

REVENUE_BUCKETS: Dict[str, Bucket] = {
    "0-1M": (None, 1_000_000, False, False),
    "1M-10M": (1_000_000, 10_000_000, True, False),
    "10M-50M": (10_000_000, 50_000_000, True, False),
    "50M-100M": (50_000_000, 100_000_000, True, False),
    "100M+": (100_000_000, None, True, False),
}

CAPACITY_BUCKETS: Dict[str, Bucket] = {
    "low": (None, 50, False, False),
    "medium": (50, 80, True, False),
    "high": (80, None, True, False),
}

# Applied to company age (current year - year established).
AGE_BUCKETS: Dict[str, Bucket] = {
    "0-5": (None, 5, False, True),
    "6-15": (5, 15, False, True),
    "16-30": (15, 30, False, True),
    "30+": (30, None, False, False),
}

RATING_FLOORS: Dict[str, float] = {
    "4.5+": 4.5,
    "4.0+": 4.0,
    "3.5+": 3.5,
}

BUCKET_LABELS: Dict[str, Dict[str, str]] = {
    "employee_range": {
        ALL: "All Sizes",
        "1-25": "1-25 employees",
        "26-50": "26-50 employees",
        "51-100": "51-100 employees",
        "101-250": "101-250 employees",
        "251-500": "251-500 employees",
        "500+": "500+ employees",
    },
    "revenue_range": {
        ALL: "All Revenue",
        "0-1M": "Under $1M",
        "1M-10M": "$1M - $10M",
        "10M-50M": "$10M - $50M",
        "50M-100M": "$50M - $100M",
        "100M+": "$100M+",
    },
    "capacity_range": {
        ALL: "All Levels",
        "low": "Low (<50%)",
        "medium": "Medium (50-79%)",
        "high": "High (80%+)",
    },
    "rating_range": {
        ALL: "All Ratings",
        "4.5+": "4.5+ Stars",
        "4.0+": "4.0+ Stars",
        "3.5+": "3.5+ Stars",
    },
    "year_established_range": {
        ALL: "Any Age",
        "0-5": "0-5 years",
        "6-15": "6-15 years",
        "16-30": "16-30 years",
        "30+": "30+ years",
    },
}


@dataclass(frozen=True)
class FilterConfig:
    search: str = ""
    capabilities: List[str] = field(default_factory=list)
    materials: List[str] = field(default_factory=list)
    certifications: List[str] = field(default_factory=list)
    states: List[str] = field(default_factory=list)
    employee_range: str = ALL
    revenue_range: str = ALL
    capacity_range: str = ALL
    rating_range: str = ALL
    diversity_flag: Optional[bool] = None
    sustainability_min: float = 0.0
    year_established_range: str = ALL


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s and s not in out:
            out.append(s)
    return out


def _as_label(raw: dict, key: str) -> str:
    value = str(raw.get(key) or ALL).strip()
    if value not in BUCKET_LABELS[key]:
        logger.warning("unknown %s %r; ignoring", key, value)
        return ALL
    return value


def _as_tristate(value: object) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    token = str(value).strip().lower()
    if token in {"true", "yes", "1"}:
        return True
    if token in {"false", "no", "0"}:
        return False
    return None


def normalize_filters(raw: Optional[dict]) -> FilterConfig:
    raw = raw or {}

    sustainability_min = raw.get("sustainability_min", 0)
    try:
        sustainability_min = float(sustainability_min or 0)
    except (TypeError, ValueError):
        sustainability_min = 0.0
    sustainability_min = max(0.0, min(100.0, sustainability_min))

    return FilterConfig(
        search=str(raw.get("search") or ""),
        capabilities=_as_str_list(raw.get("capabilities")),
        materials=_as_str_list(raw.get("materials")),
        certifications=_as_str_list(raw.get("certifications")),
        states=_as_str_list(raw.get("states")),
        employee_range=_as_label(raw, "employee_range"),
        revenue_range=_as_label(raw, "revenue_range"),
        capacity_range=_as_label(raw, "capacity_range"),
        rating_range=_as_label(raw, "rating_range"),
        diversity_flag=_as_tristate(raw.get("diversity_flag")),
        sustainability_min=sustainability_min,
        year_established_range=_as_label(raw, "year_established_range"),
    )


def is_default(config: FilterConfig) -> bool:
    return config == FilterConfig()


def active_filter_count(config: FilterConfig) -> int:
    count = 1 if config.search else 0
    count += len(config.capabilities) + len(config.materials) + len(config.certifications) + len(config.states)
    for label in (
        config.employee_range,
        config.revenue_range,
        config.capacity_range,
        config.rating_range,
        config.year_established_range,
    ):
        if label != ALL:
            count += 1
    if config.diversity_flag is not None:
        count += 1
    if config.sustainability_min > 0:
        count += 1
    return count


def _bool_mask(mask: pd.Series) -> pd.Series:
    return mask.astype("boolean").fillna(False).astype(bool)


def in_bucket(values: pd.Series, bucket: Bucket) -> pd.Series:
    low, high, low_inc, high_inc = bucket
    values = pd.to_numeric(values, errors="coerce").astype(float)
    mask = values.notna()
    if low is not None:
        mask &= values >= low if low_inc else values > low
    if high is not None:
        mask &= values <= high if high_inc else values < high
    return _bool_mask(mask)


def overlaps(values: pd.Series, selected: Iterable[str]) -> pd.Series:
    wanted = set(selected)
    return values.map(lambda items: bool(wanted.intersection(items or ()))).astype(bool)


def search_text(df: pd.DataFrame) -> pd.Series:
    parts = [df[c].astype("string").fillna("") for c in ["name", "city", "state", "industry_keywords", "primary_applications"]]
    text = parts[0]
    for part in parts[1:]:
        text = text + " " + part
    lists = df["capabilities"].map(" ".join) + " " + df["materials"].map(" ".join)
    return (text + " " + lists.astype("string")).str.lower()


def apply_filters(df: pd.DataFrame, config: FilterConfig, *, current_year: Optional[int] = None) -> pd.DataFrame:
    """Return the rows of ``df`` passing every non-default predicate of ``config``, in input order."""
    if df.empty or is_default(config):
        return df.copy()

    mask = pd.Series(True, index=df.index)

    if config.search:
        term = config.search.lower()
        mask &= _bool_mask(search_text(df).str.contains(term, regex=False))

    if config.capabilities:
        mask &= overlaps(df["capabilities"], config.capabilities)
    if config.materials:
        mask &= overlaps(df["materials"], config.materials)
    if config.certifications:
        mask &= overlaps(df["certifications"], config.certifications)
    if config.states:
        mask &= _bool_mask(df["state"].isin(config.states))

    if config.employee_range != ALL:
        mask &= in_bucket(df["number_of_employees"], EMPLOYEE_BUCKETS[config.employee_range])
    if config.revenue_range != ALL:
        mask &= in_bucket(df["annual_revenue"], REVENUE_BUCKETS[config.revenue_range])
    if config.capacity_range != ALL:
        mask &= in_bucket(df["current_capacity"], CAPACITY_BUCKETS[config.capacity_range])
    if config.rating_range != ALL:
        floor = RATING_FLOORS[config.rating_range]
        mask &= in_bucket(df["rating"], (floor, None, True, False))

    if config.diversity_flag is not None:
        mask &= _bool_mask(df["diversity_flag"] == config.diversity_flag)

    if config.sustainability_min > 0:
        mask &= in_bucket(df["sustainability_score"], (config.sustainability_min, None, True, False))

    if config.year_established_range != ALL:
        year = current_year or date.today().year
        age = year - pd.to_numeric(df["year_established"], errors="coerce").astype(float)
        mask &= in_bucket(age, AGE_BUCKETS[config.year_established_range])

    return df[mask].copy()


def filter_options(df: pd.DataFrame) -> Dict[str, Any]:
    def vocab(col: str) -> List[str]:
        if df.empty or col not in df.columns:
            return []
        return sorted({item for items in df[col] for item in (items or ())})

    states: List[str] = []
    if not df.empty and "state" in df.columns:
        states = sorted(str(s) for s in df["state"].dropna().unique())

    return {
        "states": states,
        "capabilities": vocab("capabilities"),
        "materials": vocab("materials"),
        "certifications": vocab("certifications"),
        "buckets": {key: [{"value": v, "label": l} for v, l in labels.items()] for key, labels in BUCKET_LABELS.items()},
    }
