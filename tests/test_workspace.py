from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from core import workspace as ws
from core.workspace import Message, Notification, ResponseTemplate, SearchFilters, search_manufacturers


def ids(items):
    return [item.id for item in items]


@pytest.fixture
def state(workspace_store):
    return workspace_store.state


def test_seed_loads(state):
    assert ids(state.quotes) == ["q1", "q2", "q3", "q4", "q5"]
    assert [c.id for c in state.conversations] == ["c1", "c2"]
    assert state.unread_count == 2
    assert state.metrics is not None


def test_shortlist_is_capped_and_unique(state):
    for i in range(7):
        state = ws.add_to_shortlist(state, f"factory-{i:03d}")
    state = ws.add_to_shortlist(state, "factory-000")
    assert state.shortlist == tuple(f"factory-{i:03d}" for i in range(ws.MAX_SHORTLIST))

    state = ws.remove_from_shortlist(state, "factory-002")
    assert "factory-002" not in state.shortlist
    assert ws.clear_shortlist(state).shortlist == ()


def test_comparison_is_capped(state):
    for quote_id in ["q1", "q2", "q3", "q4", "q5", "q6"]:
        state = ws.select_quote_for_comparison(state, quote_id)
    assert state.comparison == ("q1", "q2", "q3", "q4", "q5")
    assert ws.remove_quote_from_comparison(state, "q3").comparison == ("q1", "q2", "q4", "q5")


@pytest.mark.parametrize(
    "sort_by, expected",
    [
        ("date", ["q5", "q4", "q3", "q2", "q1"]),
        ("price", ["q3", "q2", "q1", "q4", "q5"]),
        ("leadTime", ["q3", "q4", "q1", "q2", "q5"]),
        ("score", ["q4", "q1", "q5", "q2", "q3"]),
    ],
)
def test_list_quotes_sorting(state, sort_by, expected):
    assert ids(ws.list_quotes(state.quotes, sort_by=sort_by)) == expected


def test_list_quotes_filters(state):
    assert ids(ws.list_quotes(state.quotes, status="pending")) == ["q3"]
    assert ids(ws.list_quotes(state.quotes, query="FACTORY-00")) == ["q4", "q3", "q2", "q1"]
    counts = ws.quote_status_counts(state.quotes)
    assert counts["all"] == 5
    assert counts["pending"] == 1
    assert counts["received"] == 4
    assert counts["expired"] == 0


def test_update_quote_merges_fields(state):
    state = ws.update_quote(state, "q3", {"status": "received", "price_per_unit": 60.0})
    q3 = next(q for q in state.quotes if q.id == "q3")
    assert (q3.status, q3.price_per_unit, q3.manufacturer_id) == ("received", 60.0, "factory-004")


def test_messages_and_read_state(state):
    c1 = state.conversations[0]
    assert ws.unread_messages(c1) == 1

    at = datetime(2024, 2, 11, 9, 0, tzinfo=timezone.utc)
    msg = Message(id="m9", conversation_id="c1", sender_id="1", sender_type="user", content="Thanks!", timestamp=at)
    state = ws.add_message(state, "c1", msg)
    c1 = state.conversations[0]
    assert c1.messages[-1].id == "m9"
    assert c1.last_message_at == at

    state = ws.mark_conversation_as_read(state, "c1")
    assert ws.unread_messages(state.conversations[0]) == 0
    assert ws.unread_messages(state.conversations[1]) == 1


def test_notifications_unread_count_never_negative(state):
    state = ws.mark_notification_as_read(state, "n1")
    assert state.unread_count == 1
    state = ws.mark_notification_as_read(state, "n1")
    state = ws.mark_notification_as_read(state, "n3")
    assert state.unread_count == 1
    state = ws.mark_all_notifications_as_read(state)
    assert state.unread_count == 0
    assert ws.mark_all_notifications_as_read(state).unread_count == 0


def test_add_notification_prepends(state):
    note = Notification(
        id="n4",
        user_id="1",
        type="system",
        title="Maintenance",
        message="Scheduled downtime tonight.",
        created_at=datetime(2024, 2, 12, tzinfo=timezone.utc),
    )
    state = ws.add_notification(state, note)
    assert state.notifications[0].id == "n4"
    assert state.unread_count == 3


def test_templates_crud_and_render(state):
    template = ResponseTemplate(
        id="t3",
        name="Thanks",
        subject="Thanks {{manufacturerName}}",
        content="Hi {{manufacturerName}}, see you {{when}}.",
        category="general",
        variables=("manufacturerName", "when"),
    )
    state = ws.add_response_template(state, template)
    assert [t.id for t in state.templates] == ["t1", "t2", "t3"]

    state = ws.update_response_template(state, "t3", {"name": "Thank you"})
    assert state.templates[-1].name == "Thank you"

    rendered = ws.render_template(state.templates[-1], {"manufacturerName": "Acme"})
    assert rendered == {"subject": "Thanks Acme", "content": "Hi Acme, see you {{when}}."}

    state = ws.delete_response_template(state, "t3")
    assert [t.id for t in state.templates] == ["t1", "t2"]


def test_store_apply_commits(workspace_store):
    state = workspace_store.apply(ws.add_to_shortlist, "factory-001")
    assert workspace_store.state is state
    assert state.shortlist == ("factory-001",)


def test_store_apply_is_serialized(workspace_store):
    before = len(workspace_store.state.notifications)

    def notify(i):
        note = Notification(
            id=f"bulk-{i}",
            user_id="1",
            type="system",
            title="Batch",
            message=f"Update {i}",
            created_at=datetime(2024, 2, 12, tzinfo=timezone.utc),
        )
        workspace_store.apply(ws.add_notification, note)

    with ThreadPoolExecutor(max_workers=16) as pool:
        list(pool.map(notify, range(200)))

    notes = workspace_store.state.notifications
    assert len(notes) == before + 200
    assert len({n.id for n in notes}) == len(notes)


def test_update_search_filters(state):
    state = ws.update_search_filters(state, min_rating=4.0, capabilities=["Welding"])
    assert state.search_filters.min_rating == 4.0
    assert state.search_filters.max_distance == 500


def test_quick_search_defaults_drop_far_and_incomplete(manufacturers):
    out = list(search_manufacturers(manufacturers, SearchFilters())["id"])
    # m10 has no MOQ or lead time; distance beyond 500 miles is excluded.
    assert out == ["m01", "m02", "m03"]


def test_quick_search_filters_and_text(manufacturers):
    wide = SearchFilters(max_distance=5000)
    assert list(search_manufacturers(manufacturers, wide, "weld")["id"]) == ["m01", "m02", "m04", "m09"]
    assert list(search_manufacturers(manufacturers, wide, "titanium")["id"]) == ["m07"]

    picky = SearchFilters(max_distance=5000, capabilities=["Welding"], min_rating=4.5, diversity_flag=True)
    assert list(search_manufacturers(manufacturers, picky)["id"]) == ["m01", "m04"]

    capacity = SearchFilters(max_distance=5000, min_capacity=90)
    assert list(search_manufacturers(manufacturers, capacity)["id"]) == ["m05", "m09"]
