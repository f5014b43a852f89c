from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd


logger = logging.getLogger(__name__)

DATA_DIR = Path(os.environ.get("FACTORYLINK_DATA_DIR") or Path(__file__).resolve().parents[1] / "data")
MANUFACTURERS_FILE = "manufacturers.csv"
AUTH_SEED_FILE = "auth_seed.json"
WORKSPACE_SEED_FILE = "workspace_seed.json"

LIST_DELIMITER = ";"

REQUIRED_COLUMNS = ["id", "name"]

TEXT_COLUMNS = [
    "id",
    "manufacturer_id",
    "name",
    "city",
    "state",
    "naics_code",
    "sic_code",
    "industry_keywords",
    "primary_applications",
]

INT_COLUMNS = [
    "year_established",
    "number_of_employees",
    "moq",
    "lead_time_days",
]

FLOAT_COLUMNS = [
    "lat",
    "lon",
    "annual_revenue",
    "current_capacity",
    "max_capacity",
    "rating",
    "sustainability_score",
    "distance",
]

BOOL_COLUMNS = ["diversity_flag"]

LIST_COLUMNS = ["capabilities", "materials", "certifications"]

RECORD_COLUMNS = TEXT_COLUMNS + INT_COLUMNS + FLOAT_COLUMNS + BOOL_COLUMNS + LIST_COLUMNS

# camelCase keys accepted from JSON payloads.
COLUMN_ALIASES = {
    "manufacturerID": "manufacturer_id",
    "manufacturerId": "manufacturer_id",
    "naicsCode": "naics_code",
    "sicCode": "sic_code",
    "industryKeywords": "industry_keywords",
    "primaryApplications": "primary_applications",
    "yearEstablished": "year_established",
    "numberOfEmployees": "number_of_employees",
    "annualRevenue": "annual_revenue",
    "currentCapacity": "current_capacity",
    "maxCapacity": "max_capacity",
    "sustainabilityScore": "sustainability_score",
    "leadTimeDays": "lead_time_days",
    "diversityFlag": "diversity_flag",
}

_TRUE_TOKENS = {"true", "t", "yes", "y", "1"}
_FALSE_TOKENS = {"false", "f", "no", "n", "0"}
_NA_TOKENS = {"", "nan", "none", "null", "<na>", "na", "n/a"}


def get_source_files() -> List[Path]:
    path = DATA_DIR / MANUFACTURERS_FILE
    return [path] if path.exists() else []


def file_signature(files: List[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((str(f), f.stat().st_mtime) for f in files)


def to_number(value: object) -> float:
    if value is None or isinstance(value, bool):
        return float("nan")
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return float("nan")


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = df[col].map(to_number).astype(float)
    return df


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.mask(series.str.lower().isin(_NA_TOKENS))
            df[col] = series
    return df


def parse_bool(value: object) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    token = str(value).strip().lower()
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    return None


def split_list(value: object) -> Tuple[str, ...]:
    """Split a ``"; "`` delimited cell (or pass through a list) into a tuple of clean strings."""
    if value is None:
        return ()
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [str(v).strip() for v in value if v is not None]
    elif isinstance(value, str):
        items = [part.strip() for part in value.split(LIST_DELIMITER)]
    elif pd.isna(value):
        return ()
    else:
        items = [str(value).strip()]
    return tuple(item for item in items if item and item.lower() not in _NA_TOKENS)


def normalize_records(df: pd.DataFrame) -> Tuple[pd.DataFrame, int]:
    """Coerce a raw manufacturer table to the record schema.

    Returns the normalized frame and the number of rows rejected for a
    missing ``id``/``name`` or a duplicated ``id``.
    """
    df = df.rename(columns=COLUMN_ALIASES).copy()
    for col in RECORD_COLUMNS:
        if col not in df.columns:
            df[col] = pd.NA
    df = df[RECORD_COLUMNS + [c for c in df.columns if c not in RECORD_COLUMNS]]

    df = coerce_str_safe(df, TEXT_COLUMNS)
    df = numericize(df, INT_COLUMNS + FLOAT_COLUMNS)
    for col in INT_COLUMNS:
        df[col] = df[col].round().astype("Int64")
    for col in BOOL_COLUMNS:
        df[col] = df[col].map(parse_bool).astype("boolean")
    for col in LIST_COLUMNS:
        df[col] = df[col].map(split_list)

    before = len(df)
    df = df.dropna(subset=REQUIRED_COLUMNS)
    df = df.drop_duplicates(subset=["id"], keep="first")
    rejected = before - len(df)
    if rejected:
        logger.warning("rejected %d manufacturer rows (missing id/name or duplicate id)", rejected)
    return df.reset_index(drop=True), rejected


def records_frame(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    df, _ = normalize_records(pd.DataFrame(list(records)))
    return df


def load_manufacturers(path: Optional[Path] = None) -> pd.DataFrame:
    df, _ = _read_manufacturers(Path(path) if path else DATA_DIR / MANUFACTURERS_FILE)
    return df


def _read_manufacturers(path: Path) -> Tuple[pd.DataFrame, int]:
    raw = pd.read_csv(path, dtype=str, keep_default_na=False)
    return normalize_records(raw)


@lru_cache(maxsize=4)
def _load_dashboard_data_cached(files_sig: Tuple[Tuple[str, float], ...]) -> Dict[str, object]:
    frames: List[pd.DataFrame] = []
    rejected = 0
    for name, _ in files_sig:
        df, dropped = _read_manufacturers(Path(name))
        frames.append(df)
        rejected += dropped
    manufacturers = pd.concat(frames, ignore_index=True) if frames else records_frame([])
    logger.info("loaded %d manufacturers from %d file(s)", len(manufacturers), len(frames))
    return {
        "files": [Path(name).name for name, _ in files_sig],
        "manufacturers": manufacturers,
        "rejected_rows": rejected,
    }


def load_dashboard_data() -> Dict[str, object]:
    files = get_source_files()
    if not files:
        return {"files": [], "manufacturers": records_frame([]), "rejected_rows": 0}
    return _load_dashboard_data_cached(file_signature(files))


def load_seed(name: str) -> Dict[str, Any]:
    path = DATA_DIR / name
    if not path.exists():
        logger.warning("seed file %s not found; starting empty", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return json.load(fh)


def record_to_dict(row: Mapping[str, Any]) -> Dict[str, Any]:
    """JSON-friendly view of one record row (NA -> None, tuples -> lists)."""
    out: Dict[str, Any] = {}
    for key, value in row.items():
        if isinstance(value, tuple):
            out[key] = list(value)
        elif value is None or (not isinstance(value, (list, dict)) and pd.isna(value)):
            out[key] = None
        elif hasattr(value, "item"):
            out[key] = value.item()
        else:
            out[key] = value
    return out


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """ISO-8601 -> aware datetime (naive values are taken as UTC)."""
    if not value:
        return None
    dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
