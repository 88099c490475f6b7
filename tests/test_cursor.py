from backoffice.database.interfaces import ASCENDING, DESCENDING, Predicate, Snapshot
from backoffice.database.redis import RedisCache
from backoffice.search.cursor import (
    CursorManager,
    CursorState,
    SearchPage,
    decode_cursor,
    encode_cursor,
    filter_signature,
)
from backoffice.search.query_composer import SortSpec, compose


def _composed(status="paid", sort=SortSpec("createdAt", DESCENDING)):
    return compose("Claims", [Predicate("status", "==", status)], sort)


def test_cursor_token_is_url_safe_and_decodes():
    state = CursorState("createdAt", DESCENDING, "abc", "2024-01-01T00:00:00.000Z", "CLM000001")
    token = encode_cursor(state)
    assert "=" not in token and "+" not in token and "/" not in token
    assert decode_cursor(token) == state


def test_malformed_cursor_decodes_to_none():
    assert decode_cursor("not-a-cursor!!") is None
    assert decode_cursor(encode_cursor(CursorState("a", ASCENDING, "s", 1, "k"))[:-4]) is None


def test_filter_signature_ignores_order():
    a = [Predicate("status", "==", "paid"), Predicate("contractNumber", "==", "CNT000001")]
    assert filter_signature(a) == filter_signature(list(reversed(a)))
    assert filter_signature(a) != filter_signature(a[:1])


def test_resume_position_for_matching_query():
    manager = CursorManager()
    composed = _composed()
    row = Snapshot("Claims", "CLM000004", {"createdAt": "2024-02-04T00:00:00.000Z"})
    token = manager.issue(composed, row)
    assert manager.resume_position(token, composed) == ("2024-02-04T00:00:00.000Z", "CLM000004")


def test_cursor_ignored_when_sort_or_filters_change():
    manager = CursorManager()
    row = Snapshot("Claims", "CLM000004", {"createdAt": "2024-02-04T00:00:00.000Z", "status": "paid"})
    token = manager.issue(_composed(), row)

    assert manager.resume_position(token, _composed(sort=SortSpec("createdAt", ASCENDING))) is None
    assert manager.resume_position(token, _composed(sort=SortSpec("status", DESCENDING))) is None
    assert manager.resume_position(token, _composed(status="FNOL")) is None
    assert manager.resume_position(None, _composed()) is None


def test_session_state_round_trip():
    cache = RedisCache()
    manager = CursorManager(cache, session_ttl=60)
    page = SearchPage(rows=[], cursor="tok", has_more=True)

    manager.remember("sess-1", page, SortSpec("createdAt", DESCENDING))
    assert manager.session_cursor("sess-1") == "tok"
    assert manager.recall("sess-1")["sort"] == {"field": "createdAt", "direction": DESCENDING}

    manager.forget("sess-1")
    assert manager.session_cursor("sess-1") is None


def test_manager_without_cache_keeps_no_state():
    manager = CursorManager()
    manager.remember("sess-1", SearchPage(rows=[], cursor="tok", has_more=False), SortSpec("createdAt"))
    assert manager.recall("sess-1") is None
