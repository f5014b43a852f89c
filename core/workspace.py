"""Application workspace: shortlist, quotes, conversations, notifications, templates.

Every operation is a reducer returning a new :class:`WorkspaceState`.
Manufacturers are referenced by id; the record table itself lives in
:mod:`core.data` and is never copied into the workspace.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from core.data import WORKSPACE_SEED_FILE, load_seed, parse_datetime
from core.filters import overlaps


logger = logging.getLogger(__name__)

MAX_SHORTLIST = 5
MAX_COMPARISON = 5

QUOTE_STATUSES = ("pending", "received", "accepted", "rejected", "expired")
QUOTE_SORTS = ("date", "price", "leadTime", "score")

TEMPLATE_VAR_RE = re.compile(r"\{\{(\w+)\}\}")


@dataclass(frozen=True)
class Quote:
    id: str
    manufacturer_id: str
    project_id: str
    status: str
    created_at: datetime
    updated_at: datetime
    price_per_unit: Optional[float] = None
    total_price: Optional[float] = None
    lead_time_days: Optional[int] = None
    moq: Optional[int] = None
    valid_until: Optional[datetime] = None
    notes: Optional[str] = None
    score: Optional[float] = None
    files: Tuple[Dict[str, Any], ...] = ()
    extracted_data: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class Message:
    id: str
    conversation_id: str
    sender_id: str
    sender_type: str
    content: str
    timestamp: datetime
    type: str = "text"
    read: bool = False
    files: Tuple[Dict[str, Any], ...] = ()


@dataclass(frozen=True)
class Conversation:
    id: str
    manufacturer_id: str
    user_id: str
    type: str
    subject: str
    status: str
    priority: str
    last_message_at: datetime
    messages: Tuple[Message, ...] = ()
    tags: Tuple[str, ...] = ()
    assigned_to: Optional[str] = None


@dataclass(frozen=True)
class Notification:
    id: str
    user_id: str
    type: str
    title: str
    message: str
    created_at: datetime
    priority: str = "medium"
    read: bool = False
    action_url: Optional[str] = None


@dataclass(frozen=True)
class ResponseTemplate:
    id: str
    name: str
    subject: str
    content: str
    category: str
    variables: Tuple[str, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    usage_count: int = 0


@dataclass(frozen=True)
class PerformanceMetrics:
    response_time: float = 0.0
    resolution_rate: float = 0.0
    customer_satisfaction: float = 0.0
    active_conversations: int = 0
    pending_quotes: int = 0
    completed_deals: int = 0


@dataclass(frozen=True)
class SearchFilters:
    capabilities: List[str] = field(default_factory=list)
    materials: List[str] = field(default_factory=list)
    certifications: List[str] = field(default_factory=list)
    max_distance: float = 500
    min_moq: int = 0
    max_moq: int = 100_000
    max_lead_time: int = 365
    min_rating: float = 0
    diversity_flag: Optional[bool] = None
    min_capacity: Optional[float] = None


@dataclass(frozen=True)
class WorkspaceState:
    shortlist: Tuple[str, ...] = ()
    quotes: Tuple[Quote, ...] = ()
    comparison: Tuple[str, ...] = ()
    conversations: Tuple[Conversation, ...] = ()
    notifications: Tuple[Notification, ...] = ()
    templates: Tuple[ResponseTemplate, ...] = ()
    metrics: Optional[PerformanceMetrics] = None
    search_filters: SearchFilters = field(default_factory=SearchFilters)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.read)


# ---------------- Shortlist / comparison ----------------
def _add_capped(items: Tuple[str, ...], item_id: str, cap: int) -> Tuple[str, ...]:
    if item_id in items:
        return items
    if len(items) >= cap:
        logger.debug("limit of %d reached; ignoring %s", cap, item_id)
        return items
    return items + (item_id,)


def add_to_shortlist(state: WorkspaceState, manufacturer_id: str) -> WorkspaceState:
    return replace(state, shortlist=_add_capped(state.shortlist, manufacturer_id, MAX_SHORTLIST))


def remove_from_shortlist(state: WorkspaceState, manufacturer_id: str) -> WorkspaceState:
    return replace(state, shortlist=tuple(i for i in state.shortlist if i != manufacturer_id))


def clear_shortlist(state: WorkspaceState) -> WorkspaceState:
    return replace(state, shortlist=())


def select_quote_for_comparison(state: WorkspaceState, quote_id: str) -> WorkspaceState:
    return replace(state, comparison=_add_capped(state.comparison, quote_id, MAX_COMPARISON))


def remove_quote_from_comparison(state: WorkspaceState, quote_id: str) -> WorkspaceState:
    return replace(state, comparison=tuple(i for i in state.comparison if i != quote_id))


# ---------------- Quotes ----------------
def add_quote(state: WorkspaceState, quote: Quote) -> WorkspaceState:
    return replace(state, quotes=state.quotes + (quote,))


def update_quote(state: WorkspaceState, quote_id: str, changes: Mapping[str, Any]) -> WorkspaceState:
    return replace(state, quotes=tuple(replace(q, **changes) if q.id == quote_id else q for q in state.quotes))


def list_quotes(quotes: Iterable[Quote], *, status: str = "all", query: str = "", sort_by: str = "date") -> List[Quote]:
    q = (query or "").strip().lower()
    out = [
        quote
        for quote in quotes
        if (status == "all" or quote.status == status) and (not q or q in quote.manufacturer_id.lower())
    ]
    if sort_by == "price":
        out.sort(key=lambda x: x.price_per_unit or 0)
    elif sort_by == "leadTime":
        out.sort(key=lambda x: x.lead_time_days or 0)
    elif sort_by == "score":
        out.sort(key=lambda x: x.score or 0, reverse=True)
    else:
        out.sort(key=lambda x: x.created_at, reverse=True)
    return out


def quote_status_counts(quotes: Iterable[Quote]) -> Dict[str, int]:
    quotes = list(quotes)
    counts = {"all": len(quotes)}
    for status in QUOTE_STATUSES:
        counts[status] = sum(1 for q in quotes if q.status == status)
    return counts


# ---------------- Conversations ----------------
def add_message(state: WorkspaceState, conversation_id: str, message: Message) -> WorkspaceState:
    def _apply(c: Conversation) -> Conversation:
        if c.id != conversation_id:
            return c
        return replace(c, messages=c.messages + (message,), last_message_at=message.timestamp)

    return replace(state, conversations=tuple(_apply(c) for c in state.conversations))


def mark_conversation_as_read(state: WorkspaceState, conversation_id: str) -> WorkspaceState:
    def _apply(c: Conversation) -> Conversation:
        if c.id != conversation_id:
            return c
        return replace(c, messages=tuple(replace(m, read=True) for m in c.messages))

    return replace(state, conversations=tuple(_apply(c) for c in state.conversations))


def unread_messages(conversation: Conversation) -> int:
    return sum(1 for m in conversation.messages if not m.read)


# ---------------- Notifications ----------------
def add_notification(state: WorkspaceState, notification: Notification) -> WorkspaceState:
    return replace(state, notifications=(notification,) + state.notifications)


def mark_notification_as_read(state: WorkspaceState, notification_id: str) -> WorkspaceState:
    return replace(
        state,
        notifications=tuple(replace(n, read=True) if n.id == notification_id else n for n in state.notifications),
    )


def mark_all_notifications_as_read(state: WorkspaceState) -> WorkspaceState:
    return replace(state, notifications=tuple(replace(n, read=True) for n in state.notifications))


# ---------------- Templates ----------------
def add_response_template(state: WorkspaceState, template: ResponseTemplate) -> WorkspaceState:
    return replace(state, templates=state.templates + (template,))


def update_response_template(state: WorkspaceState, template_id: str, changes: Mapping[str, Any]) -> WorkspaceState:
    return replace(
        state, templates=tuple(replace(t, **changes) if t.id == template_id else t for t in state.templates)
    )


def delete_response_template(state: WorkspaceState, template_id: str) -> WorkspaceState:
    return replace(state, templates=tuple(t for t in state.templates if t.id != template_id))


def render_template(template: ResponseTemplate, values: Mapping[str, Any]) -> Dict[str, str]:
    """Fill ``{{name}}`` placeholders; unknown names are left in place."""

    def _sub(text: str) -> str:
        return TEMPLATE_VAR_RE.sub(lambda m: str(values[m.group(1)]) if m.group(1) in values else m.group(0), text)

    return {"subject": _sub(template.subject), "content": _sub(template.content)}


# ---------------- Quick search ----------------
def update_search_filters(state: WorkspaceState, **changes: Any) -> WorkspaceState:
    return replace(state, search_filters=replace(state.search_filters, **changes))


def search_manufacturers(df: pd.DataFrame, filters: SearchFilters, query: Optional[str] = None) -> pd.DataFrame:
    """Sidebar quick search: range limits always apply, set filters only when non-empty."""
    if df.empty:
        return df.copy()

    mask = pd.Series(True, index=df.index)
    if filters.capabilities:
        mask &= overlaps(df["capabilities"], filters.capabilities)
    if filters.materials:
        mask &= overlaps(df["materials"], filters.materials)
    if filters.certifications:
        mask &= overlaps(df["certifications"], filters.certifications)

    # Unknown distance counts as 0 (nearby); every other missing value fails its bound.
    distance = df["distance"].astype(float).fillna(0)
    moq = df["moq"].astype(float)
    lead = df["lead_time_days"].astype(float)
    rating = df["rating"].astype(float)
    mask &= (
        (distance <= filters.max_distance)
        & (moq >= filters.min_moq)
        & (moq <= filters.max_moq)
        & (lead <= filters.max_lead_time)
        & (rating >= filters.min_rating)
    )

    if filters.diversity_flag is not None:
        mask &= (df["diversity_flag"] == filters.diversity_flag).fillna(False).astype(bool)
    if filters.min_capacity is not None:
        mask &= df["current_capacity"].astype(float) >= filters.min_capacity

    term = (query or "").strip().lower()
    if term:
        def _hit(row: Mapping[str, Any]) -> bool:
            fields = [row.get("name"), row.get("city"), row.get("state")]
            if any(isinstance(f, str) and term in f.lower() for f in fields):
                return True
            return any(term in item.lower() for item in tuple(row["capabilities"]) + tuple(row["materials"]))

        mask &= df.apply(_hit, axis=1).astype(bool)

    return df[mask].copy()


# ---------------- Seed ----------------
def _quote_from_seed(raw: Dict[str, Any]) -> Quote:
    return Quote(
        id=raw["id"],
        manufacturer_id=raw["manufacturer_id"],
        project_id=raw.get("project_id", ""),
        status=raw.get("status", "pending"),
        created_at=parse_datetime(raw["created_at"]),
        updated_at=parse_datetime(raw.get("updated_at") or raw["created_at"]),
        price_per_unit=raw.get("price_per_unit"),
        total_price=raw.get("total_price"),
        lead_time_days=raw.get("lead_time_days"),
        moq=raw.get("moq"),
        valid_until=parse_datetime(raw.get("valid_until")),
        notes=raw.get("notes"),
        score=raw.get("score"),
        files=tuple(raw.get("files", [])),
        extracted_data=raw.get("extracted_data"),
    )


def _conversation_from_seed(raw: Dict[str, Any]) -> Conversation:
    messages = tuple(
        Message(
            id=m["id"],
            conversation_id=raw["id"],
            sender_id=m["sender_id"],
            sender_type=m["sender_type"],
            content=m["content"],
            timestamp=parse_datetime(m["timestamp"]),
            type=m.get("type", "text"),
            read=bool(m.get("read", False)),
            files=tuple(m.get("files", [])),
        )
        for m in raw.get("messages", [])
    )
    return Conversation(
        id=raw["id"],
        manufacturer_id=raw["manufacturer_id"],
        user_id=raw["user_id"],
        type=raw["type"],
        subject=raw["subject"],
        status=raw["status"],
        priority=raw["priority"],
        last_message_at=parse_datetime(raw["last_message_at"]),
        messages=messages,
        tags=tuple(raw.get("tags", [])),
        assigned_to=raw.get("assigned_to"),
    )


def _notification_from_seed(raw: Dict[str, Any]) -> Notification:
    return Notification(
        id=raw["id"],
        user_id=raw["user_id"],
        type=raw["type"],
        title=raw["title"],
        message=raw["message"],
        created_at=parse_datetime(raw["created_at"]),
        priority=raw.get("priority", "medium"),
        read=bool(raw.get("read", False)),
        action_url=raw.get("action_url"),
    )


def _template_from_seed(raw: Dict[str, Any]) -> ResponseTemplate:
    return ResponseTemplate(
        id=raw["id"],
        name=raw["name"],
        subject=raw["subject"],
        content=raw["content"],
        category=raw["category"],
        variables=tuple(raw.get("variables", [])),
        created_at=parse_datetime(raw.get("created_at")),
        updated_at=parse_datetime(raw.get("updated_at")),
        usage_count=int(raw.get("usage_count", 0)),
    )


def state_from_seed(seed: Optional[Dict[str, Any]] = None) -> WorkspaceState:
    seed = load_seed(WORKSPACE_SEED_FILE) if seed is None else seed
    metrics = seed.get("performance_metrics")
    return WorkspaceState(
        quotes=tuple(_quote_from_seed(q) for q in seed.get("quotes", [])),
        conversations=tuple(_conversation_from_seed(c) for c in seed.get("conversations", [])),
        notifications=tuple(_notification_from_seed(n) for n in seed.get("notifications", [])),
        templates=tuple(_template_from_seed(t) for t in seed.get("response_templates", [])),
        metrics=PerformanceMetrics(**metrics) if metrics else None,
    )


class WorkspaceStore:
    def __init__(self, state: Optional[WorkspaceState] = None) -> None:
        self.state = state if state is not None else state_from_seed()
        self._lock = threading.Lock()

    def apply(self, reducer: Callable[..., WorkspaceState], *args: Any, **kwargs: Any) -> WorkspaceState:
        with self._lock:
            self.state = reducer(self.state, *args, **kwargs)
            return self.state
