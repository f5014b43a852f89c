"""Row selection for bulk export.

A selection is a plain ``frozenset`` of record ids. Every operation returns a
new set, so callers can keep the previous value for undo or comparison.
Selection is independent of filtering, sorting and paging: an id stays
selected after it scrolls off the current page or is filtered out of view.
"""

from __future__ import annotations

from typing import FrozenSet, Iterable, Literal

Selection = FrozenSet[str]
Coverage = Literal["none", "some", "all"]


def clear() -> Selection:
    return frozenset()


def toggle(selection: Selection, record_id: str) -> Selection:
    if record_id in selection:
        return selection - {record_id}
    return selection | {record_id}


def select_visible(selection: Selection, visible_ids: Iterable[str]) -> Selection:
    return selection | frozenset(visible_ids)


def deselect_visible(selection: Selection, visible_ids: Iterable[str]) -> Selection:
    return selection - frozenset(visible_ids)


def coverage(selection: Selection, visible_ids: Iterable[str]) -> Coverage:
    visible = frozenset(visible_ids)
    if not visible:
        return "none"
    hit = len(visible & selection)
    if hit == len(visible):
        return "all"
    return "some" if hit else "none"


def toggle_visible(selection: Selection, visible_ids: Iterable[str]) -> Selection:
    """Header checkbox: deselect the page if it is fully selected, otherwise select all of it."""
    visible = frozenset(visible_ids)
    if not visible:
        return selection
    if visible <= selection:
        return deselect_visible(selection, visible)
    return select_visible(selection, visible)
