from __future__ import annotations

from typing import Any, Dict, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def count_bar_chart(values: pd.Series, *, field: str, title: str, color: str = "#2563eb") -> Optional[Dict[str, Any]]:
    """Bar chart of value frequencies, tallest bar first."""
    if values.empty:
        return None
    counts = values.fillna("Unknown").astype(str).value_counts().rename_axis(field).reset_index(name="count")
    chart = (
        alt.Chart(counts)
        .mark_bar(color=color)
        .encode(
            x=alt.X(f"{field}:N", title=title, sort="-y"),
            y=alt.Y("count:Q", title="Manufacturers", axis=alt.Axis(format="d")),
            tooltip=[field, "count"],
        )
    )
    return to_vega_spec(chart)
